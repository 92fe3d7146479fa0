# tyre_scraper/retry.py
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional
from urllib.parse import urlparse

from .errors import ExtractionIncomplete, NetworkError, ScraperError
from .extractor import TyreRecord

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (NetworkError, ExtractionIncomplete)


def is_target_url(url: str, target_hosts: Iterable[str]) -> bool:
    """Accepts url only if its hostname is exactly one of target_hosts."""
    try:
        hostname = urlparse(url).hostname
    except (ValueError, TypeError, AttributeError):
        return False
    if not hostname:
        return False
    return hostname in set(target_hosts)


@dataclass
class RetryResult:
    record: Optional[TyreRecord] = None
    error: Optional[ScraperError] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.record is not None


async def with_retry(
    operation: Callable[[], Awaitable[TyreRecord]],
    max_retries: int,
    base_delay: float,
    label: str = "",
) -> RetryResult:
    """
    Runs operation up to 1 + max_retries times. After failed attempt n the
    next one waits base_delay * n seconds. Only NetworkError and
    ExtractionIncomplete are retried; anything else propagates.
    """
    attempt = 0
    last_error: Optional[ScraperError] = None
    while attempt <= max_retries:
        logger.info(f"Attempt {attempt + 1} for {label}")
        try:
            record = await operation()
            return RetryResult(record=record, attempts=attempt + 1)
        except RETRYABLE_ERRORS as e:
            last_error = e
            attempt += 1
            if attempt > max_retries:
                break
            delay = base_delay * attempt
            logger.warning(f"Retrying {label} in {delay:.1f}s ({attempt}/{max_retries}): {e}")
            await asyncio.sleep(delay)

    logger.error(f"Giving up on {label} after {attempt} attempt(s): {last_error}")
    return RetryResult(error=last_error, attempts=attempt)
