import asyncio
import json
import subprocess
import sys

import httpx

from tyre_scraper.main import RunState, build_arg_parser, run_scraper
from tyre_scraper.config import ScraperConfig

SITEMAP = """<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url><loc>https://example.com/tyre/1</loc></url>
  <url><loc>https://example.com/tyre/2</loc></url>
  <url><loc>https://example.com/tyre/broken</loc></url>
  <url><loc>https://blog.example.org/post</loc></url>
</urlset>
"""


def _site_handler(product_page, requested):
    def handler(request):
        requested.append(str(request.url))
        if request.url.path == "/sitemap.xml":
            return httpx.Response(200, text=SITEMAP)
        if request.url.path.startswith("/tyre/") and request.url.path != "/tyre/broken":
            return httpx.Response(200, text=product_page)
        return httpx.Response(500)

    return handler


def _run(config, make_client, handler):
    async def run():
        async with make_client(config, handler) as client:
            return await run_scraper(config, client=client)

    return asyncio.run(run())


def test_full_run_writes_ledger_store_and_export(make_config, make_client, product_page):
    config = make_config(max_retries=1)
    requested = []

    summary = _run(config, make_client, _site_handler(product_page, requested))

    assert summary.error is None
    assert summary.state is RunState.DONE
    assert summary.total_urls == 4
    assert summary.pending_urls == 4
    assert summary.new_records == 2
    assert summary.total_records == 2
    assert (summary.succeeded, summary.failed, summary.non_matching) == (2, 1, 1)

    assert json.loads(config.success_file.read_text()) == ["https://example.com/tyre/1", "https://example.com/tyre/2"]
    assert json.loads(config.failed_file.read_text()) == ["https://example.com/tyre/broken"]
    assert json.loads(config.non_match_file.read_text()) == ["https://blog.example.org/post"]
    stored = json.loads(config.json_output_file.read_text())
    assert sorted(item["url"] for item in stored) == ["https://example.com/tyre/1", "https://example.com/tyre/2"]
    assert config.excel_output_file.exists()


def test_second_run_does_not_refetch_ledgered_urls(make_config, make_client, product_page):
    config = make_config(max_retries=0)
    _run(config, make_client, _site_handler(product_page, []))

    requested = []
    summary = _run(config, make_client, _site_handler(product_page, requested))

    assert requested == ["https://example.com/sitemap.xml"]
    assert summary.pending_urls == 0
    assert summary.new_records == 0
    assert summary.total_records == 2


def test_run_from_csv_input(make_config, make_client, product_page, tmp_path):
    input_file = tmp_path / "urls.csv"
    input_file.write_text("URL\nhttps://example.com/tyre/7\n")
    config = make_config(input_file=input_file)

    summary = _run(config, make_client, _site_handler(product_page, []))

    assert summary.new_records == 1
    assert json.loads(config.success_file.read_text()) == ["https://example.com/tyre/7"]


def test_fatal_source_error_is_logged_not_raised(make_config, make_client, caplog):
    config = make_config()

    def handler(request):
        return httpx.Response(200, text="<html>not a sitemap</html>")

    summary = _run(config, make_client, handler)

    assert summary.error is not None
    assert summary.new_records == 0
    assert summary.state is RunState.DONE
    assert "Fatal scraper error during loading_urls" in caplog.text
    assert json.loads(config.success_file.read_text()) == []


def test_config_from_args(tmp_path):
    args = build_arg_parser().parse_args(
        ["-i", "urls.xlsx", "--column", "Link", "-d", str(tmp_path), "-c", "3", "--retry-non-matches"]
    )
    config = ScraperConfig.from_args(args)

    assert config.input_file.name == "urls.xlsx"
    assert config.url_column == "Link"
    assert config.batch_size == 3
    assert config.retry_non_matches is True
    assert config.success_file == tmp_path / "success.json"


def test_cli_help():
    result = subprocess.run(
        [sys.executable, "-m", "tyre_scraper", "--help"],
        capture_output=True,
        text=True,
        timeout=30,
    )
    assert result.returncode == 0
    assert "sitemap" in result.stdout.lower()


def test_control_character_in_page_does_not_stop_the_run(make_config, make_client, product_page):
    config = make_config(batch_size=1, export_interval=1)
    page = product_page.replace("Michelin Pilot Sport 4 <span", "Michelin \x0c Pilot Sport 4 <span")
    urls = [f"https://example.com/tyre/{i}" for i in range(4)]
    sitemap = "<urlset>" + "".join(f"<url><loc>{u}</loc></url>" for u in urls) + "</urlset>"
    requested = []

    def handler(request):
        requested.append(str(request.url))
        if request.url.path == "/sitemap.xml":
            return httpx.Response(200, text=sitemap)
        return httpx.Response(200, text=page)

    summary = _run(config, make_client, handler)

    assert summary.error is None
    assert requested[1:] == urls
    assert summary.new_records == 4
    assert json.loads(config.success_file.read_text()) == urls
    assert config.excel_output_file.exists()
