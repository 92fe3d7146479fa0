# tyre_scraper/persistence.py
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, List

from .errors import PersistenceError

logger = logging.getLogger(__name__)


def read_json_list(path: Path) -> List[Any]:
    """
    Reads a JSON array from disk. A missing or blank file is an empty list.
    Raises PersistenceError when the file exists but cannot be read or parsed.
    """
    path = Path(path)
    if not path.exists():
        return []
    try:
        content = path.read_text(encoding="utf-8").strip()
        if not content:
            return []
        data = json.loads(content)
    except (OSError, ValueError) as e:
        raise PersistenceError(f"Error loading {path}: {e}") from e
    if not isinstance(data, list):
        raise PersistenceError(f"Expected a JSON array in {path}, got {type(data).__name__}")
    return data


def replace_atomically(path: Path, write_func) -> None:
    """
    Calls write_func(tmp_path) for a temp file next to path, then renames it
    over path so readers never see a partial file.
    """
    path = Path(path)
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.stem}-", suffix=path.suffix, dir=path.parent)
    except OSError as e:
        raise PersistenceError(f"Error writing {path}: {e}") from e
    os.close(fd)
    try:
        write_func(Path(tmp_name))
        os.replace(tmp_name, path)
    except Exception as e:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise PersistenceError(f"Error writing {path}: {e}") from e


def write_json_atomic(path: Path, data: Any) -> None:
    def _dump(tmp_path: Path):
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    replace_atomically(path, _dump)
