# tyre_scraper/main.py
import argparse
import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from typing import List, Optional

from .config import (
    DEFAULT_SITEMAP_URL,
    DEFAULT_TARGET_HOSTS,
    ScraperConfig,
)
from .errors import PersistenceError
from .fetcher import build_client
from .ledger import Ledger, LedgerStatus
from .scheduler import BatchScheduler
from .sources import fetch_sitemap_urls, load_urls_from_file
from .store import RecordStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - [%(threadName)s] - %(message)s",
)
logger = logging.getLogger(__name__)


class RunState(enum.Enum):
    INIT = "init"
    LOADING_URLS = "loading_urls"
    FILTERING = "filtering"
    PROCESSING = "processing"
    FINAL_FLUSH = "final_flush"
    REPORTING = "reporting"
    DONE = "done"


@dataclass
class RunSummary:
    total_urls: int = 0
    previously_succeeded: int = 0
    previously_failed: int = 0
    previously_non_matching: int = 0
    pending_urls: int = 0
    new_records: int = 0
    total_records: int = 0
    succeeded: int = 0
    failed: int = 0
    non_matching: int = 0
    state: RunState = RunState.INIT
    error: Optional[str] = None


class ScraperRun:
    """Drives one run through the RunState sequence and collects the summary."""

    def __init__(self, config: ScraperConfig, client=None):
        self.config = config
        self.ledger = Ledger.from_config(config)
        self.store = RecordStore.from_config(config)
        self.summary = RunSummary()
        self._client = client

    def _enter(self, state: RunState):
        logger.debug(f"State {self.summary.state.value} -> {state.value}")
        self.summary.state = state

    async def load_urls(self, client) -> List[str]:
        if self.config.input_file:
            return load_urls_from_file(self.config.input_file, self.config.url_column)
        return await fetch_sitemap_urls(
            client,
            self.config.sitemap_url,
            self.config.request_timeout,
            self.config.sitemap_max_depth,
        )

    async def execute(self) -> RunSummary:
        if self._client is not None:
            return await self._execute(self._client)
        async with build_client(self.config) as client:
            return await self._execute(client)

    async def _execute(self, client) -> RunSummary:
        self._enter(RunState.INIT)
        self.ledger.initialize()
        self.ledger.load()

        try:
            self._enter(RunState.LOADING_URLS)
            urls = await self.load_urls(client)

            self._enter(RunState.FILTERING)
            pending = self.ledger.filter_pending(urls)
            self.summary.total_urls = len(urls)
            self.summary.previously_succeeded = self.ledger.count(LedgerStatus.SUCCESS)
            self.summary.previously_failed = self.ledger.count(LedgerStatus.FAILED)
            self.summary.previously_non_matching = self.ledger.count(LedgerStatus.NON_MATCH)
            self.summary.pending_urls = len(pending)
            logger.info(
                f"Total URLs: {len(urls)}. Already processed: {self.summary.previously_succeeded}. "
                f"Previously failed: {self.summary.previously_failed}. "
                f"Non-matching skipped: {self.summary.previously_non_matching}. "
                f"New URLs to process: {len(pending)}."
            )

            if pending:
                self._enter(RunState.PROCESSING)
                scheduler = BatchScheduler(self.config, client, self.ledger, self.store)
                records = await scheduler.run(pending)
                self.summary.new_records = len(records)

                self._enter(RunState.FINAL_FLUSH)
                self.store.merge(records, final=True)
            else:
                logger.info("No new URLs to process")
        except Exception as e:
            logger.exception(f"Fatal scraper error during {self.summary.state.value}: {e}")
            self.summary.error = str(e)

        self._enter(RunState.REPORTING)
        self.report()
        self._enter(RunState.DONE)
        return self.summary

    def report(self):
        try:
            self.summary.total_records = len(self.store.load())
        except PersistenceError as e:
            logger.error(str(e))
        self.summary.succeeded = self.ledger.count(LedgerStatus.SUCCESS)
        self.summary.failed = self.ledger.count(LedgerStatus.FAILED)
        self.summary.non_matching = self.ledger.count(LedgerStatus.NON_MATCH)

        logger.info(
            f"Scraping completed. New records added: {self.summary.new_records}. "
            f"Total records now: {self.summary.total_records}. "
            f"Successful URLs: {self.summary.succeeded}. Failed URLs: {self.summary.failed}. "
            f"Non-matching URLs: {self.summary.non_matching}."
        )
        logger.info(
            f"Output files: {self.config.excel_output_file}, {self.config.json_output_file}, "
            f"{self.config.success_file}, {self.config.failed_file}, {self.config.non_match_file}"
        )


async def run_scraper(config: ScraperConfig, client=None) -> RunSummary:
    """Runs the scraper once. Errors are logged and reported in the summary, never raised."""
    start_time = time.monotonic()
    logger.info("Starting scraper...")
    summary = await ScraperRun(config, client=client).execute()
    logger.info(f"Scraper finished in {time.monotonic() - start_time:.2f} seconds.")
    return summary


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Tyre product page scraper using httpx, asyncio and BeautifulSoup.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--sitemap", default=DEFAULT_SITEMAP_URL, help="Sitemap URL listing product pages")
    source.add_argument("-i", "--input", help="CSV or Excel file with product URLs (instead of the sitemap)")
    parser.add_argument("--column", default="url", help="Column of --input holding the URLs (case-insensitive)")
    parser.add_argument("-d", "--data-dir", default="data", help="Directory for ledger files and outputs")
    parser.add_argument(
        "--target-hosts",
        nargs="+",
        default=list(DEFAULT_TARGET_HOSTS),
        help="Hostnames whose pages should be scraped",
    )
    parser.add_argument("-c", "--concurrency", type=int, default=5, help="URLs fetched concurrently per batch")
    parser.add_argument("--delay", type=float, default=2.0, help="Seconds to wait between batches")
    parser.add_argument("--timeout", type=float, default=30.0, help="Per-request timeout in seconds")
    parser.add_argument("--max-retries", type=int, default=3, help="Retries for target URLs")
    parser.add_argument("--max-retries-non-match", type=int, default=1, help="Retries for non-matching URLs")
    parser.add_argument(
        "--retry-non-matches",
        action="store_true",
        help="Fetch non-matching URLs with the reduced retry budget instead of skipping them",
    )
    parser.add_argument("--retry-delay", type=float, default=1.0, help="Base delay of the linear retry backoff")
    parser.add_argument("--save-interval", type=int, default=5, help="Save records every N processed URLs")
    parser.add_argument("--export-interval", type=int, default=50, help="Regenerate the xlsx every N records")
    parser.add_argument("--price-discount", type=float, default=5.0, help="Amount taken off the listed price")
    parser.add_argument("--set-price-discount", type=float, default=20.0, help="Amount taken off the set price")
    parser.add_argument("--sitemap-depth", type=int, default=5, help="Maximum nesting of sitemap indexes")
    parser.add_argument("--user-agent", help="Override the browser User-Agent header")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set the logging level",
    )
    return parser


def main(argv=None):
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    logging.getLogger().setLevel(log_level)

    try:
        config = ScraperConfig.from_args(args)
    except ValueError as e:
        parser.error(str(e))

    try:
        asyncio.run(run_scraper(config))
    except KeyboardInterrupt:
        logger.info("Scraper interrupted by user.")
    except Exception as e:
        logger.exception(f"An unexpected critical error occurred in main execution: {e}")


if __name__ == "__main__":
    main()
