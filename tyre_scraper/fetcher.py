# tyre_scraper/fetcher.py
import logging

import httpx

from .config import ScraperConfig
from .errors import NetworkError

logger = logging.getLogger(__name__)


def build_client(config: ScraperConfig, transport: httpx.AsyncBaseTransport = None) -> httpx.AsyncClient:
    """
    Shared client for the whole run: browser User-Agent, redirects followed,
    connection limits sized to one batch.
    """
    headers = {
        "User-Agent": config.user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Encoding": "gzip",
        "Accept-Language": "en-US,en;q=0.9",
    }
    timeouts = httpx.Timeout(config.request_timeout, pool=5.0)
    limits = httpx.Limits(
        max_connections=config.batch_size + 5,
        max_keepalive_connections=config.batch_size,
    )
    kwargs = dict(
        follow_redirects=True,
        headers=headers,
        timeout=timeouts,
        limits=limits,
    )
    if transport is not None:
        kwargs["transport"] = transport
    else:
        kwargs["http2"] = True
    return httpx.AsyncClient(**kwargs)


async def fetch_page(client: httpx.AsyncClient, url: str, timeout: float) -> str:
    """
    GETs url and returns the response body as text.
    Raises NetworkError on timeouts, transport errors and non-2xx statuses.
    """
    try:
        response = await client.get(url, timeout=timeout)
        response.raise_for_status()
    except httpx.TimeoutException as e:
        raise NetworkError(url, f"Timeout after {timeout}s: {e.__class__.__name__}") from e
    except httpx.HTTPStatusError as e:
        raise NetworkError(url, f"HTTP {e.response.status_code} received") from e
    except httpx.RequestError as e:
        raise NetworkError(url, f"Network error: {e}") from e

    logger.debug(f"Fetched {url} ({len(response.content)} bytes)")
    return response.text
