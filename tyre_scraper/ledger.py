# tyre_scraper/ledger.py
import enum
import logging
from pathlib import Path
from typing import Dict, List, Set

from .config import ScraperConfig
from .errors import PersistenceError
from .persistence import read_json_list, write_json_atomic

logger = logging.getLogger(__name__)


class LedgerStatus(enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"
    NON_MATCH = "non_match"


class Ledger:
    """
    The three append-only URL sets (success, failed, non-matching), each
    backed by a JSON array file. Membership is checked in memory; every new
    entry rewrites the corresponding file.
    """

    def __init__(self, paths: Dict[LedgerStatus, Path]):
        self.paths = {status: Path(path) for status, path in paths.items()}
        self._entries: Dict[LedgerStatus, List[str]] = {status: [] for status in LedgerStatus}
        self._members: Dict[LedgerStatus, Set[str]] = {status: set() for status in LedgerStatus}

    @classmethod
    def from_config(cls, config: ScraperConfig) -> "Ledger":
        return cls(
            {
                LedgerStatus.SUCCESS: config.success_file,
                LedgerStatus.FAILED: config.failed_file,
                LedgerStatus.NON_MATCH: config.non_match_file,
            }
        )

    def initialize(self) -> None:
        """Creates the parent directories and an empty array for any missing file."""
        for status, path in self.paths.items():
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                if not path.exists():
                    path.write_text("[]", encoding="utf-8")
            except OSError as e:
                logger.error(f"Error initializing {path}: {e}")

    def load(self) -> None:
        for status, path in self.paths.items():
            try:
                urls = [u for u in read_json_list(path) if isinstance(u, str)]
            except PersistenceError as e:
                logger.error(str(e))
                urls = []
            # Files may contain duplicates if edited by hand; keep first occurrence.
            unique = list(dict.fromkeys(urls))
            self._entries[status] = unique
            self._members[status] = set(unique)
            logger.debug(f"Loaded {len(unique)} {status.value} URLs from {path}")

    def is_processed(self, url: str) -> bool:
        return any(url in members for members in self._members.values())

    def contains(self, status: LedgerStatus, url: str) -> bool:
        return url in self._members[status]

    def urls(self, status: LedgerStatus) -> List[str]:
        return list(self._entries[status])

    def count(self, status: LedgerStatus) -> int:
        return len(self._entries[status])

    def filter_pending(self, urls: List[str]) -> List[str]:
        """Returns the URLs not present in any ledger set, order preserved."""
        return [url for url in urls if not self.is_processed(url)]

    def mark(self, url: str, status: LedgerStatus) -> bool:
        """
        Adds url to the given set and rewrites its file. Returns False when the
        URL was already there. A write failure is logged and the in-memory
        entry kept, so the next successful write for this set persists it.
        """
        if url in self._members[status]:
            return False
        self._members[status].add(url)
        self._entries[status].append(url)
        try:
            write_json_atomic(self.paths[status], self._entries[status])
        except PersistenceError as e:
            logger.error(f"{e} (while marking {url} as {status.value})")
        return True
