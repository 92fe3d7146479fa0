"""Pytest configuration and shared fixtures."""

import httpx
import pytest

from tyre_scraper.config import ScraperConfig
from tyre_scraper.fetcher import build_client


PRODUCT_PAGE = """
<html>
<head><title>Michelin Pilot Sport 4</title></head>
<body>
  <h1 data-ui-id="page-title-wrapper">Michelin Pilot Sport 4 <span class="badge">New</span></h1>
  <div class="pro_size_detail"><span class="size_no">205/55R16</span><span class="sku">MIC-2055516</span></div>
  <span id="product-price-123"><span class="price">AED 450.00</span></span>
  <div class="set_price"><span class="price">AED 1,800.00</span></div>
  <div class="serv_desc">Serv. Desc: 91W</div>
  <div class="menufacture_country">Country: France</div>
  <span class="utqg_val">300&nbsp;</span><span class="utqg_val">AA</span>
  <div title="Year of manufacture">Year: 2024</div>
  <div class="sidewall"><span>Sidewall Style:</span> Black</div>
  <div class="detail_descrption">
    <h2 class="title">About this tyre</h2>
    Great grip in wet conditions.
  </div>
  <div class="driverreviews-widget_rating-value">4.6</div>
  <div class="brand"><img class="img-responsive" src="/logos/michelin.png"></div>
  <div class="product_thumbnail_container"><img class="img-responsive" src="/tyres/ps4.jpg"></div>
  <div class="offer_block_inner"><span class="large_text">Buy 3 get 1</span><p class="offer_desc">Limited time</p></div>
  <span class="tire_width">205</span><span class="tire_aspect_ratio">55</span>
  <img class="v_type" src="/icons/car.png">
  <div class="product_detail_right">
    <div class="detail_left"><ul><li><img title="Run Flat" src="/icons/runflat.png"></li></ul></div>
    <table>
      <tr><td>Load Index</td><td>91</td></tr>
      <tr><td>Speed Rating</td><td>W</td></tr>
    </table>
  </div>
</body>
</html>
"""

FALLBACK_PAGE = """
<html><body>
  <h1 class="product-name">Bridgestone Turanza T005</h1>
  <div class="tire-size">225/45 R17</div>
  <div class="price-final">AED 600</div>
</body></html>
"""

INCOMPLETE_PAGE = """
<html><body><h1>Summer Sale</h1><p>No size on this page.</p></body></html>
"""


@pytest.fixture
def product_page():
    return PRODUCT_PAGE


@pytest.fixture
def fallback_page():
    return FALLBACK_PAGE


@pytest.fixture
def incomplete_page():
    return INCOMPLETE_PAGE


@pytest.fixture
def make_config(tmp_path):
    """Config writing into tmp_path with no waiting between batches or retries."""

    def _make(**overrides):
        settings = dict(
            data_dir=tmp_path / "data",
            target_hosts=("example.com",),
            sitemap_url="https://example.com/sitemap.xml",
            batch_delay=0,
            retry_base_delay=0,
            request_timeout=5.0,
        )
        settings.update(overrides)
        return ScraperConfig(**settings)

    return _make


@pytest.fixture
def make_client():
    """Builds a scraper client whose requests are answered by handler."""

    def _make(config, handler):
        return build_client(config, transport=httpx.MockTransport(handler))

    return _make
