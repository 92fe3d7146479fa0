import asyncio
import gzip

import httpx
import pandas as pd
import pytest

from tyre_scraper.errors import NetworkError, ParseError
from tyre_scraper.sources import fetch_sitemap_urls, load_urls_from_file, parse_sitemap

URLSET = b"""<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url><loc>https://example.com/tyre/1</loc></url>
  <url><loc> https://example.com/tyre/2 </loc></url>
  <url><loc>https://example.com/tyre/1</loc></url>
</urlset>
"""

SITEMAP_INDEX = b"""<?xml version="1.0" encoding="UTF-8"?>
<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <sitemap><loc>https://example.com/sitemap-tyres.xml</loc></sitemap>
  <sitemap><loc>https://example.com/sitemap-more.xml.gz</loc></sitemap>
</sitemapindex>
"""


def test_load_urls_from_csv_matches_column_case_insensitively(tmp_path):
    path = tmp_path / "urls.csv"
    pd.DataFrame(
        {
            "Product URL": [
                "https://example.com/tyre/1",
                "ftp://example.com/file",
                None,
                " https://example.com/tyre/2 ",
                "https://example.com/tyre/1",
            ]
        }
    ).to_csv(path, index=False)

    urls = load_urls_from_file(path, "product url")

    assert urls == ["https://example.com/tyre/1", "https://example.com/tyre/2"]


def test_load_urls_from_excel(tmp_path):
    path = tmp_path / "urls.xlsx"
    pd.DataFrame({"URL": ["https://example.com/tyre/9"], "Name": ["x"]}).to_excel(path, index=False)

    assert load_urls_from_file(path, "url") == ["https://example.com/tyre/9"]


def test_load_urls_unsupported_extension(tmp_path):
    path = tmp_path / "urls.txt"
    path.write_text("https://example.com/tyre/1\n")

    with pytest.raises(ParseError):
        load_urls_from_file(path, "url")


def test_load_urls_missing_column(tmp_path):
    path = tmp_path / "urls.csv"
    path.write_text("link\nhttps://example.com/tyre/1\n")

    with pytest.raises(ParseError, match="Column 'url' not found"):
        load_urls_from_file(path, "url")


def test_load_urls_missing_file(tmp_path):
    with pytest.raises(ParseError):
        load_urls_from_file(tmp_path / "nope.csv", "url")


def test_parse_sitemap_urlset():
    urls, nested = parse_sitemap(URLSET, "https://example.com/sitemap.xml")

    assert urls == ["https://example.com/tyre/1", "https://example.com/tyre/2", "https://example.com/tyre/1"]
    assert nested == []


def test_parse_sitemap_without_namespace():
    urls, _ = parse_sitemap(b"<urlset><url><loc>https://example.com/a</loc></url></urlset>", "s")
    assert urls == ["https://example.com/a"]


@pytest.mark.parametrize("content", [b"<urlset><url>", b"<html><body>hi</body></html>", b"   "])
def test_parse_sitemap_rejects_bad_documents(content):
    with pytest.raises(ParseError):
        parse_sitemap(content, "https://example.com/sitemap.xml")


def _run_fetch(make_config, make_client, handler, **kwargs):
    config = make_config()

    async def run():
        async with make_client(config, handler) as client:
            return await fetch_sitemap_urls(client, config.sitemap_url, config.request_timeout, **kwargs)

    return asyncio.run(run())


def test_fetch_sitemap_follows_index(make_config, make_client):
    more = b'<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"><url><loc>https://example.com/tyre/3</loc></url></urlset>'
    responses = {
        "/sitemap.xml": SITEMAP_INDEX,
        "/sitemap-tyres.xml": URLSET,
        "/sitemap-more.xml.gz": gzip.compress(more),
    }

    def handler(request):
        return httpx.Response(200, content=responses[request.url.path])

    urls = _run_fetch(make_config, make_client, handler)

    assert urls == ["https://example.com/tyre/1", "https://example.com/tyre/2", "https://example.com/tyre/3"]


def test_fetch_sitemap_respects_max_depth(make_config, make_client):
    def handler(request):
        return httpx.Response(200, content=SITEMAP_INDEX)

    with pytest.raises(ParseError, match="No URLs found"):
        _run_fetch(make_config, make_client, handler, max_depth=0)


def test_fetch_sitemap_http_error(make_config, make_client):
    def handler(request):
        return httpx.Response(503)

    with pytest.raises(NetworkError):
        _run_fetch(make_config, make_client, handler)


def test_load_urls_rejects_legacy_xls(tmp_path):
    path = tmp_path / "urls.xls"
    path.write_bytes(b"\xd0\xcf\x11\xe0")

    with pytest.raises(ParseError, match="Unsupported input file type '.xls'"):
        load_urls_from_file(path, "url")
