# tyre_scraper/scheduler.py
import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

import httpx

from .config import ScraperConfig
from .errors import ScraperError
from .extractor import TyreRecord, extract_record
from .fetcher import fetch_page
from .ledger import Ledger, LedgerStatus
from .retry import is_target_url, with_retry
from .store import RecordStore

logger = logging.getLogger(__name__)


@dataclass
class UrlOutcome:
    url: str
    status: LedgerStatus
    record: Optional[TyreRecord] = None
    error: Optional[Exception] = None
    attempts: int = 0


def chunk_urls(urls: List[str], size: int) -> List[List[str]]:
    """Consecutive chunks of at most size URLs: 12 URLs by 5 -> 5, 5, 2."""
    if size < 1:
        raise ValueError(f"Batch size must be at least 1, got {size}")
    return [urls[i : i + size] for i in range(0, len(urls), size)]


class BatchScheduler:
    """
    Runs fetch + extract + retry for each URL, one fixed-size batch at a
    time. A batch's pipelines run concurrently and the next batch starts only
    after all of them have settled. Ledger and record store writes happen
    between batches.
    """

    def __init__(self, config: ScraperConfig, client: httpx.AsyncClient, ledger: Ledger, store: RecordStore):
        self.config = config
        self.client = client
        self.ledger = ledger
        self.store = store
        self.processed_count = 0

    async def fetch_and_extract(self, url: str) -> TyreRecord:
        markup = await fetch_page(self.client, url, self.config.request_timeout)
        return extract_record(markup, url, self.config)

    async def scrape_url(self, url: str) -> UrlOutcome:
        target = is_target_url(url, self.config.target_hosts)
        if not target and not self.config.retry_non_matches:
            logger.debug(f"Skipping non-matching URL: {url}")
            return UrlOutcome(url, LedgerStatus.NON_MATCH)

        max_retries = self.config.max_retries if target else self.config.max_retries_non_match
        result = await with_retry(
            lambda: self.fetch_and_extract(url),
            max_retries,
            self.config.retry_base_delay,
            label=url,
        )
        if result.ok:
            return UrlOutcome(url, LedgerStatus.SUCCESS, record=result.record, attempts=result.attempts)
        status = LedgerStatus.FAILED if target else LedgerStatus.NON_MATCH
        return UrlOutcome(url, status, error=result.error, attempts=result.attempts)

    def _outcome_from_exception(self, url: str, error: BaseException) -> UrlOutcome:
        logger.error(f"Error processing {url}: {error!r}", exc_info=None if isinstance(error, ScraperError) else error)
        target = is_target_url(url, self.config.target_hosts)
        status = LedgerStatus.FAILED if target else LedgerStatus.NON_MATCH
        return UrlOutcome(url, status, error=error)

    async def run_batch(self, batch: List[str]) -> List[UrlOutcome]:
        results = await asyncio.gather(*(self.scrape_url(url) for url in batch), return_exceptions=True)
        outcomes = []
        for url, result in zip(batch, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                result = self._outcome_from_exception(url, result)
            outcomes.append(result)
        return outcomes

    def record_outcomes(self, outcomes: List[UrlOutcome]) -> List[TyreRecord]:
        records = []
        for outcome in outcomes:
            self.ledger.mark(outcome.url, outcome.status)
            if outcome.status is LedgerStatus.SUCCESS and outcome.record is not None:
                records.append(outcome.record)
        return records

    def _crossed_save_boundary(self, before: int, after: int) -> bool:
        interval = self.config.save_interval
        return after // interval > before // interval

    async def run(self, urls: List[str]) -> List[TyreRecord]:
        batches = chunk_urls(urls, self.config.batch_size)
        total_batches = len(batches)
        results: List[TyreRecord] = []

        for index, batch in enumerate(batches, start=1):
            logger.info(f"[batch {index}/{total_batches}] Processing {len(batch)} URLs")
            outcomes = await self.run_batch(batch)
            batch_records = self.record_outcomes(outcomes)
            results.extend(batch_records)

            before = self.processed_count
            self.processed_count += len(batch)
            is_last = index == total_batches
            if self._crossed_save_boundary(before, self.processed_count) or is_last:
                self.store.merge(batch_records)

            failed = sum(1 for o in outcomes if o.status is LedgerStatus.FAILED)
            skipped = sum(1 for o in outcomes if o.status is LedgerStatus.NON_MATCH)
            logger.info(
                f"[batch {index}/{total_batches}] {len(batch_records)} scraped, {failed} failed, "
                f"{skipped} non-matching. Processed {self.processed_count}/{len(urls)}."
            )

            if not is_last:
                await asyncio.sleep(self.config.batch_delay)

        return results
