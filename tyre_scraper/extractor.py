# tyre_scraper/extractor.py
import logging
import re
from dataclasses import asdict, dataclass, field, fields
from typing import Callable, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup, Comment, NavigableString

from .config import ScraperConfig
from .errors import ExtractionIncomplete

logger = logging.getLogger(__name__)

Strategy = Callable[[BeautifulSoup], Optional[str]]

SIZE_PATTERN = re.compile(r"(\d+)/(\d+)\s*R(\d+)")
NUMERIC_PATTERN = re.compile(r"[\d,]+\.?\d*")

MANDATORY_FIELDS = ("name", "size_no")


@dataclass
class TyreRecord:
    """One product page's attributes, keyed by its source URL."""

    url: str
    name: str = ""
    brand: str = ""
    size_no: str = ""
    price: str = ""
    width: str = ""
    ratio: str = ""
    rim: str = ""
    set_price: str = ""
    service_desc: str = ""
    country: str = ""
    utqg: str = ""
    manufacture_year: str = ""
    sidewall_style: str = ""
    description: str = ""
    title: str = ""
    rating: str = ""
    sku_id: str = ""
    logo: str = ""
    tyre_image: str = ""
    run_flat_image: str = ""
    offer_text: str = ""
    offer_description: str = ""
    tyre_type: str = ""
    tyre_width: str = ""
    tyre_aspect_ratio: str = ""
    category: str = ""
    vehicle_type_image: str = ""
    specifications: List[Tuple[str, str]] = field(default_factory=list)

    def missing_fields(self) -> List[str]:
        return [name for name in MANDATORY_FIELDS if not getattr(self, name)]

    def is_complete(self) -> bool:
        return bool(self.url) and not self.missing_fields()

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["specifications"] = [list(pair) for pair in self.specifications]
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "TyreRecord":
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        kwargs["specifications"] = [
            (str(pair[0]), str(pair[1]))
            for pair in data.get("specifications") or []
            if isinstance(pair, (list, tuple)) and len(pair) == 2
        ]
        return cls(**kwargs)


# --- Derived fields ---


def extract_brand(name: str) -> str:
    """First space-separated token of the product name."""
    if not name:
        return ""
    return name.split(" ")[0]


def parse_size(size: str) -> Tuple[str, str, str]:
    """Splits '205/55R16' into ('205', '55', 'R16'); anything else gives empty parts."""
    if not size:
        return "", "", ""
    match = SIZE_PATTERN.search(size)
    if not match:
        return "", "", ""
    return match.group(1), match.group(2), f"R{match.group(3)}"


def discount_price(price: str, offset: float) -> str:
    """
    Subtracts offset from the first number in price and re-attaches the
    surrounding text: 'AED 100.00' with offset 5 -> 'AED 95.00'.
    Returns price unchanged when there is no usable number.
    """
    if not price:
        return ""
    match = NUMERIC_PATTERN.search(price)
    if not match:
        return price
    try:
        value = float(match.group(0).replace(",", ""))
    except ValueError:
        return price
    currency_part = price.replace(match.group(0), "", 1)
    return f"{currency_part}{value - offset:.2f}"


# --- Selector strategies ---


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def text_of(selector: str) -> Strategy:
    def strategy(soup: BeautifulSoup) -> Optional[str]:
        node = soup.select_one(selector)
        return _clean(node.get_text()) if node else None

    return strategy


def attr_of(selector: str, attr: str) -> Strategy:
    def strategy(soup: BeautifulSoup) -> Optional[str]:
        node = soup.select_one(selector)
        return _clean(node.get(attr)) if node else None

    return strategy


def own_text_of(selector: str) -> Strategy:
    """Text of the element's direct text nodes, ignoring child elements."""

    def strategy(soup: BeautifulSoup) -> Optional[str]:
        node = soup.select_one(selector)
        if not node:
            return None
        return _clean(
            "".join(
                str(child)
                for child in node.children
                if isinstance(child, NavigableString) and not isinstance(child, Comment)
            )
        )

    return strategy


def labelled_text_of(selector: str, label: str) -> Strategy:
    def strategy(soup: BeautifulSoup) -> Optional[str]:
        node = soup.select_one(selector)
        return _clean(node.get_text().replace(label, "")) if node else None

    return strategy


def joined_text_of(selector: str) -> Strategy:
    def strategy(soup: BeautifulSoup) -> Optional[str]:
        parts = [node.get_text().replace("\xa0", "").replace("&nbsp;", "").strip() for node in soup.select(selector)]
        return _clean(" ".join(parts))

    return strategy


def text_after_colon(selector: str) -> Strategy:
    def strategy(soup: BeautifulSoup) -> Optional[str]:
        node = soup.select_one(selector)
        if not node:
            return None
        parts = node.get_text().split(":")
        return _clean(parts[1]) if len(parts) > 1 else None

    return strategy


def parent_text_of_label(label: str) -> Strategy:
    def strategy(soup: BeautifulSoup) -> Optional[str]:
        node = soup.select_one(f'span:-soup-contains("{label}")')
        if not node or node.parent is None:
            return None
        return _clean(node.parent.get_text().replace(label, ""))

    return strategy


FIELD_STRATEGIES: Dict[str, List[Strategy]] = {
    "name": [
        own_text_of("h1[data-ui-id='page-title-wrapper']"),
        text_of("h1.product-name"),
        text_of("h1"),
    ],
    "size_no": [
        text_of("span.size_no"),
        text_of(".tire-size"),
        text_of(".product-size"),
    ],
    "price": [
        text_of('span[id^="product-price-"]'),
        text_of(".price-final"),
        text_of(".regular-price"),
    ],
    "set_price": [text_of("div.set_price span.price")],
    "service_desc": [labelled_text_of(".serv_desc", "Serv. Desc:")],
    "country": [labelled_text_of(".menufacture_country", "Country:")],
    "utqg": [joined_text_of("span.utqg_val")],
    "manufacture_year": [text_after_colon('div[title="Year of manufacture"]')],
    "sidewall_style": [parent_text_of_label("Sidewall Style:")],
    "description": [own_text_of("div.detail_descrption")],
    "title": [text_of("div.detail_descrption h2.title")],
    "rating": [text_of("div.driverreviews-widget_rating-value")],
    "sku_id": [text_of("div.pro_size_detail span.sku")],
    "logo": [attr_of("div.brand img.img-responsive", "src")],
    "tyre_image": [attr_of("div.product_thumbnail_container img.img-responsive", "src")],
    "run_flat_image": [attr_of('.product_detail_right div.detail_left li img[title="Run Flat"]', "src")],
    "offer_text": [text_of("div.offer_block_inner span.large_text")],
    "offer_description": [text_of("div.offer_block_inner p.offer_desc")],
    "tyre_width": [text_of("span.tire_width")],
    "tyre_aspect_ratio": [text_of("span.tire_aspect_ratio")],
    "vehicle_type_image": [attr_of("img.v_type", "src")],
}


def first_match(soup: BeautifulSoup, strategies: List[Strategy]) -> str:
    """Runs strategies in order and returns the first non-empty result, else ''."""
    for strategy in strategies:
        value = strategy(soup)
        if value:
            return value
    return ""


def extract_specifications(soup: BeautifulSoup) -> List[Tuple[str, str]]:
    specs = []
    for row in soup.select("div.product_detail_right tr"):
        cells = row.find_all("td")
        if not cells:
            continue
        label = cells[0].get_text().strip()
        if not label:
            continue
        specs.append((label, cells[-1].get_text().strip()))
    return specs


def extract_record(markup: str, url: str, config: ScraperConfig) -> TyreRecord:
    """
    Maps a product page to a TyreRecord.
    Raises ExtractionIncomplete if the name or size is missing.
    """
    soup = BeautifulSoup(markup, "lxml")
    values = {name: first_match(soup, strategies) for name, strategies in FIELD_STRATEGIES.items()}

    width, ratio, rim = parse_size(values["size_no"])
    record = TyreRecord(
        url=url,
        brand=extract_brand(values["name"]),
        width=width,
        ratio=ratio,
        rim=rim,
        tyre_type="Run Flat",
        category="Tyres",
        specifications=extract_specifications(soup),
        **values,
    )
    record.price = discount_price(record.price, config.price_discount)
    record.set_price = discount_price(record.set_price, config.set_price_discount)

    missing = record.missing_fields()
    if missing:
        raise ExtractionIncomplete(url, missing)
    logger.debug(f"Extracted {record.name!r} ({record.size_no}) from {url}")
    return record
