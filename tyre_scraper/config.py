# tyre_scraper/config.py
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

# --- Constants ---
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
DEFAULT_SITEMAP_URL = "https://www.pitstoparabia.com/sitemap.xml"
DEFAULT_TARGET_HOSTS = ("www.pitstoparabia.com",)

SUCCESS_FILE = "success.json"
FAILED_FILE = "failed.json"
NON_MATCH_FILE = "nonmatch.json"
JSON_OUTPUT_FILE = "tireData.json"
EXCEL_OUTPUT_FILE = "tireData.xlsx"


@dataclass(frozen=True)
class ScraperConfig:
    """
    Settings for one scraper run. Built once at startup and handed to each
    component; nothing reads configuration from module globals.
    """

    sitemap_url: str = DEFAULT_SITEMAP_URL
    input_file: Optional[Path] = None
    url_column: str = "url"
    data_dir: Path = Path("data")

    request_timeout: float = 30.0
    user_agent: str = USER_AGENT
    target_hosts: Tuple[str, ...] = DEFAULT_TARGET_HOSTS

    batch_size: int = 5
    batch_delay: float = 2.0
    save_interval: int = 5
    export_interval: int = 50

    max_retries: int = 3
    max_retries_non_match: int = 1
    retry_non_matches: bool = False
    retry_base_delay: float = 1.0

    price_discount: float = 5.0
    set_price_discount: float = 20.0

    sitemap_max_depth: int = 5

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.batch_size}")
        if self.save_interval < 1:
            raise ValueError(f"save_interval must be at least 1, got {self.save_interval}")
        if self.export_interval < 1:
            raise ValueError(f"export_interval must be at least 1, got {self.export_interval}")
        if self.max_retries < 0 or self.max_retries_non_match < 0:
            raise ValueError("retry budgets cannot be negative")

    @property
    def success_file(self) -> Path:
        return self.data_dir / SUCCESS_FILE

    @property
    def failed_file(self) -> Path:
        return self.data_dir / FAILED_FILE

    @property
    def non_match_file(self) -> Path:
        return self.data_dir / NON_MATCH_FILE

    @property
    def json_output_file(self) -> Path:
        return self.data_dir / JSON_OUTPUT_FILE

    @property
    def excel_output_file(self) -> Path:
        return self.data_dir / EXCEL_OUTPUT_FILE

    @classmethod
    def from_args(cls, args) -> "ScraperConfig":
        """Builds a config from the namespace returned by the CLI parser."""
        return cls(
            sitemap_url=args.sitemap,
            input_file=Path(args.input) if args.input else None,
            url_column=args.column,
            data_dir=Path(args.data_dir),
            request_timeout=args.timeout,
            user_agent=args.user_agent or USER_AGENT,
            target_hosts=tuple(args.target_hosts),
            batch_size=args.concurrency,
            batch_delay=args.delay,
            save_interval=args.save_interval,
            export_interval=args.export_interval,
            max_retries=args.max_retries,
            max_retries_non_match=args.max_retries_non_match,
            retry_non_matches=args.retry_non_matches,
            retry_base_delay=args.retry_delay,
            price_discount=args.price_discount,
            set_price_discount=args.set_price_discount,
            sitemap_max_depth=args.sitemap_depth,
        )
