# tyre_scraper/errors.py


class ScraperError(Exception):
    """Base class for every error raised by the scraper."""


class NetworkError(ScraperError):
    """Timeout, connection failure or non-2xx response for a URL."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{reason} ({url})")
        self.url = url
        self.reason = reason


class ExtractionIncomplete(ScraperError):
    """A mandatory field was still empty after every selector fallback."""

    def __init__(self, url: str, missing):
        super().__init__(f"Essential data ({', '.join(missing)}) not found on page {url}")
        self.url = url
        self.missing = list(missing)


class ParseError(ScraperError):
    """Malformed input file, unsupported extension or malformed sitemap."""


class PersistenceError(ScraperError):
    """Read or write failure on a ledger or record store file."""
