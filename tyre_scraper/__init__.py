# tyre_scraper/__init__.py
"""Batch scraper for tyre product-detail pages."""

__version__ = "1.0.0"
