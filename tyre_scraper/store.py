# tyre_scraper/store.py
import logging
from pathlib import Path
from typing import Dict, Iterable, List

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font
from openpyxl.utils.exceptions import IllegalCharacterError

from .config import ScraperConfig
from .errors import PersistenceError
from .extractor import TyreRecord
from .persistence import read_json_list, replace_atomically, write_json_atomic

logger = logging.getLogger(__name__)

SHEET_TITLE = "Tire Data"

EXPORT_COLUMNS = [
    ("URL", lambda r: r.url),
    ("Product Name", lambda r: r.name),
    ("Brand", lambda r: r.brand),
    ("Size No", lambda r: r.size_no),
    ("Price", lambda r: r.price),
    ("Set Price", lambda r: r.set_price),
    ("Service Description", lambda r: r.service_desc),
    ("Country", lambda r: r.country),
    ("UTQG", lambda r: r.utqg),
    ("Year", lambda r: r.manufacture_year),
    ("Sidewall Style", lambda r: r.sidewall_style),
    ("Description", lambda r: r.description),
    ("Title", lambda r: r.title),
    ("Rating", lambda r: r.rating),
    ("SKU ID", lambda r: r.sku_id),
    ("Logo URL", lambda r: r.logo),
    ("Tire Image", lambda r: r.tyre_image),
    ("Run Flat Image", lambda r: r.run_flat_image),
    ("Offer Text", lambda r: r.offer_text),
    ("Offer Description", lambda r: r.offer_description),
    ("Tyre Type", lambda r: r.tyre_type if r.run_flat_image else ""),
    ("Width", lambda r: r.width),
    ("Ratio", lambda r: r.ratio),
    ("Rim", lambda r: r.rim),
    ("Category", lambda r: r.category),
    ("Vehicle Type Image", lambda r: r.vehicle_type_image),
    ("Specifications", lambda r: "; ".join(f"{label}: {value}" for label, value in r.specifications)),
]


def clean_cell(value: str) -> str:
    """Drops control characters that worksheets cannot hold."""
    return ILLEGAL_CHARACTERS_RE.sub("", value or "")


def record_to_row(record: TyreRecord) -> List[str]:
    return [clean_cell(getter(record)) for _, getter in EXPORT_COLUMNS]


class RecordStore:
    """
    JSON snapshot of every extracted record, unique by URL, plus the xlsx
    export regenerated from it.
    """

    def __init__(self, json_path: Path, excel_path: Path, export_interval: int = 50):
        self.json_path = Path(json_path)
        self.excel_path = Path(excel_path)
        self.export_interval = export_interval
        self._last_export_total = 0

    @classmethod
    def from_config(cls, config: ScraperConfig) -> "RecordStore":
        return cls(config.json_output_file, config.excel_output_file, config.export_interval)

    def load(self) -> List[TyreRecord]:
        """Raises PersistenceError when the snapshot exists but is unreadable."""
        records = []
        for item in read_json_list(self.json_path):
            if isinstance(item, dict) and item.get("url"):
                records.append(TyreRecord.from_dict(item))
        return records

    def merge(self, new_records: Iterable[TyreRecord], final: bool = False) -> int:
        """
        Appends complete records whose URL is not stored yet and rewrites the
        snapshot. Returns how many were added. Without new records the call is
        a no-op unless final is set, which also forces the xlsx export.
        """
        valid = [r for r in new_records if r is not None and r.is_complete()]
        if not valid and not final:
            return 0

        by_url: Dict[str, TyreRecord] = {}
        try:
            for record in self.load():
                by_url.setdefault(record.url, record)
        except PersistenceError as e:
            logger.error(f"{e}; skipping save so the existing snapshot is not overwritten")
            return 0

        merged = list(by_url.values())
        added = 0
        for record in valid:
            if record.url not in by_url:
                by_url[record.url] = record
                merged.append(record)
                added += 1

        try:
            write_json_atomic(self.json_path, [r.to_dict() for r in merged])
        except PersistenceError as e:
            logger.error(str(e))
            return 0

        if final or self._crossed_export_boundary(len(merged)):
            self.export(merged)
        logger.info(f"Saved {len(merged)} records ({added} new)")
        return added

    def _crossed_export_boundary(self, total: int) -> bool:
        return total // self.export_interval > self._last_export_total // self.export_interval

    def export(self, records: List[TyreRecord]) -> bool:
        """Writes the xlsx export via a temp file renamed over the target."""
        wb = Workbook()
        ws = wb.active
        ws.title = SHEET_TITLE
        ws.append([header for header, _ in EXPORT_COLUMNS])
        for cell in ws[1]:
            cell.font = Font(bold=True)
        try:
            for record in records:
                ws.append(record_to_row(record))
                # Scraped text starting with "=" is data, not a formula
                for cell in ws[ws.max_row]:
                    if cell.data_type == "f":
                        cell.data_type = "s"
        except (IllegalCharacterError, ValueError) as e:
            logger.error(f"Error building export for {self.excel_path}: {e}")
            return False

        try:
            replace_atomically(self.excel_path, wb.save)
        except PersistenceError as e:
            logger.error(str(e))
            return False
        self._last_export_total = len(records)
        logger.info(f"Exported {len(records)} records to {self.excel_path}")
        return True
