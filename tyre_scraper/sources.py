# tyre_scraper/sources.py
import gzip
import logging
import re
from collections import deque
from pathlib import Path
from typing import List, Tuple

import httpx
import pandas as pd
from lxml import etree

from .errors import NetworkError, ParseError

logger = logging.getLogger(__name__)

SITEMAP_NS = {"sm": "http://www.sitemaps.org/schemas/sitemap/0.9"}

SPREADSHEET_EXTENSIONS = (".xlsx", ".xlsm")
CSV_EXTENSIONS = (".csv",)


def _unique(urls: List[str]) -> List[str]:
    return list(dict.fromkeys(urls))


def load_urls_from_file(path: Path, column: str) -> List[str]:
    """
    Reads the URL universe from one column of a CSV or Excel file. The column
    name is matched case-insensitively; only values starting with 'http' are
    kept.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    try:
        if suffix in CSV_EXTENSIONS:
            df = pd.read_csv(path, dtype=str)
        elif suffix in SPREADSHEET_EXTENSIONS:
            df = pd.read_excel(path, dtype=str)
        else:
            raise ParseError(f"Unsupported input file type '{path.suffix}' for {path}")
    except ParseError:
        raise
    except Exception as e:
        raise ParseError(f"Failed to read URL file {path}: {e}") from e

    matches = [c for c in df.columns if str(c).strip().lower() == column.strip().lower()]
    if not matches:
        raise ParseError(f"Column '{column}' not found in {path} (columns: {list(df.columns)})")

    urls = []
    for value in df[matches[0]]:
        if pd.isna(value) or not isinstance(value, str):
            continue
        value = value.strip()
        if value.startswith("http"):
            urls.append(value)

    urls = _unique(urls)
    logger.info(f"Loaded {len(urls)} URLs from column '{matches[0]}' of {path}")
    return urls


def parse_sitemap(content: bytes, sitemap_url: str) -> Tuple[List[str], List[str]]:
    """
    Parses one sitemap document.
    Returns (page_urls, nested_sitemap_urls); raises ParseError on malformed XML
    or an unknown root element.
    """
    content = re.sub(b"^<\\?xml.*?\\?>", b"", content.strip()).strip()
    if not content:
        raise ParseError(f"Sitemap content empty: {sitemap_url}")
    try:
        tree = etree.fromstring(content)
    except etree.XMLSyntaxError as e:
        raise ParseError(f"Failed to parse XML sitemap {sitemap_url}: {e}") from e

    root_tag = etree.QName(tree.tag)
    root_ns = root_tag.namespace
    ns_map = {"sm": root_ns} if root_ns else SITEMAP_NS
    # Sitemaps without a namespace use bare tag names
    prefix = "sm:" if root_ns else ""

    page_urls, nested = [], []
    if root_tag.localname == "sitemapindex":
        for loc_tag in tree.xpath(f"//{prefix}sitemap/{prefix}loc", namespaces=ns_map):
            if loc_tag.text and loc_tag.text.strip():
                nested.append(loc_tag.text.strip())
    elif root_tag.localname == "urlset":
        for loc_tag in tree.xpath(f"//{prefix}url/{prefix}loc", namespaces=ns_map):
            if loc_tag.text and loc_tag.text.strip():
                page_urls.append(loc_tag.text.strip())
    else:
        raise ParseError(f"Unknown root tag '{tree.tag}' in sitemap: {sitemap_url}")
    return page_urls, nested


async def fetch_sitemap_urls(client: httpx.AsyncClient, sitemap_url: str, timeout: float, max_depth: int = 5) -> List[str]:
    """
    Fetches a sitemap and returns every page URL it lists, following
    sitemap indexes breadth-first up to max_depth.
    """
    sitemap_queue = deque([(sitemap_url, 0)])
    processed = set()
    urls: List[str] = []

    while sitemap_queue:
        current_url, current_depth = sitemap_queue.popleft()
        if current_url in processed:
            continue
        if current_depth > max_depth:
            logger.warning(f"Reached max sitemap depth ({max_depth}) at {current_url}, skipping.")
            continue
        processed.add(current_url)

        logger.info(f"Fetching sitemap from {current_url}")
        try:
            response = await client.get(current_url, timeout=timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NetworkError(current_url, f"HTTP {e.response.status_code} fetching sitemap") from e
        except httpx.RequestError as e:
            raise NetworkError(current_url, f"Network error fetching sitemap: {e}") from e

        content = response.content
        if str(response.url).endswith(".gz") and content[:2] == b"\x1f\x8b":
            try:
                content = gzip.decompress(content)
            except (OSError, EOFError) as e:
                raise ParseError(f"Failed to decompress gzipped sitemap {current_url}: {e}") from e

        page_urls, nested = parse_sitemap(content, current_url)
        if nested:
            logger.info(f"Found sitemap index with {len(nested)} sitemaps: {current_url}")
        sitemap_queue.extend((nested_url, current_depth + 1) for nested_url in nested)
        urls.extend(page_urls)

    urls = _unique(urls)
    if not urls:
        raise ParseError(f"No URLs found in sitemap {sitemap_url}")
    logger.info(f"Found {len(urls)} URLs in sitemap")
    return urls
