"""
Tests for the crawl command line entry point.
"""

import asyncio
import json

import pytest

from scrapers import cli
from scrapers.aggregator import PROPERTIES_FILENAME
from scrapers.base import BrowserSessionError
from scrapers.controller import CrawlController
from scrapers.sinks import StorageSink

BASE = "https://www.idealista.com/venta-viviendas/madrid-madrid/"


class TestUrlValidation:
    """Test the listing URL check."""

    @pytest.mark.parametrize("url", [
        "https://www.idealista.com/venta-viviendas/madrid/",
        "HTTP://www.idealista.com/",
        "  https://www.idealista.com/  ",
    ])
    def test_valid(self, url):
        assert cli.is_valid_listing_url(url) is True

    @pytest.mark.parametrize("url", ["", "www.idealista.com", "ftp://idealista.com", None])
    def test_invalid(self, url):
        assert cli.is_valid_listing_url(url) is False


class TestMain:
    """Test exit codes."""

    def test_invalid_url_exits_2_without_crawling(self, monkeypatch):
        calls = []

        async def fake_run(url, args):
            calls.append(url)
            return 0

        monkeypatch.setattr(cli, "run_crawl", fake_run)

        assert cli.main(["idealista.com/venta"]) == cli.EXIT_INVALID_URL
        assert calls == []

    def test_prompts_for_url(self, monkeypatch):
        calls = []

        async def fake_run(url, args):
            calls.append(url)
            return 0

        monkeypatch.setattr(cli, "run_crawl", fake_run)
        monkeypatch.setattr("builtins.input", lambda prompt: " https://www.idealista.com/venta-viviendas/ ")

        assert cli.main([]) == cli.EXIT_OK
        assert calls == ["https://www.idealista.com/venta-viviendas/"]

    def test_browser_failure_exits_1(self, monkeypatch):
        async def failing_start(self):
            raise BrowserSessionError("Chrome not reachable")

        monkeypatch.setattr(cli.BrowserSession, "start", failing_start)

        assert cli.main(["https://www.idealista.com/", "--no-store"]) == cli.EXIT_FATAL


class SignallingSink(StorageSink):
    """Sink that delivers signals to the crawl while saving chosen items."""

    name = 'signalling'

    def __init__(self, signals_at):
        self.signals_at = signals_at
        self.handler = None
        self.saved = []
        self.closed = False

    async def save(self, record):
        for _ in range(self.signals_at.get(record.url, 0)):
            self.handler("SIGINT")
        # Yield to the loop so a pending cancellation is delivered here
        await asyncio.sleep(0)
        self.saved.append(record.url)
        return True

    async def close(self):
        self.closed = True


class TestSignals:
    """Test stopping a crawl with SIGINT/SIGTERM."""

    @pytest.fixture
    def site(self, fake_site):
        cards = [
            fake_site.card(title="Piso en venta en Centro, Madrid", href=f"/inmueble/{n}/",
                           price="100.000 €", details=("2 hab.",))
            for n in (1, 2, 3)
        ]
        fake_site.listing(BASE, cards)
        for n in (1, 2, 3):
            fake_site.detail(f"https://www.idealista.com/inmueble/{n}/", description="Piso.")
        return fake_site

    def run_with_signals(self, monkeypatch, session, sink, no_pacing, tmp_path):
        controller = CrawlController(session, sinks=[sink], pacing=no_pacing,
                                     listing_timeout=0.1, cookie_timeout=0.1, results_dir=tmp_path)

        def capture_handler(controller, task):
            sink.handler = cli.make_signal_handler(controller, task)

        monkeypatch.setattr(cli, "install_signal_handlers", capture_handler)
        return asyncio.run(cli.crawl(controller, BASE))

    def test_first_signal_stops_after_current_item(self, monkeypatch, site, no_pacing, tmp_path):
        session = site.session()
        sink = SignallingSink({"https://www.idealista.com/inmueble/1/": 1})

        exit_code, report = self.run_with_signals(monkeypatch, session, sink, no_pacing, tmp_path)

        assert exit_code == cli.EXIT_OK
        assert [r.url for r in report.records] == ["https://www.idealista.com/inmueble/1/"]
        assert session.closed and sink.closed

    def test_second_signal_cancels_but_shuts_down(self, monkeypatch, site, no_pacing, tmp_path):
        """Cancelling mid-item still closes everything and persists finished items."""
        session = site.session()
        sink = SignallingSink({"https://www.idealista.com/inmueble/2/": 2})

        exit_code, report = self.run_with_signals(monkeypatch, session, sink, no_pacing, tmp_path)

        assert exit_code == cli.EXIT_FATAL
        assert report is None
        assert session.closed
        assert sink.closed
        assert sink.saved == ["https://www.idealista.com/inmueble/1/"]
        properties = json.loads((tmp_path / PROPERTIES_FILENAME).read_text(encoding="utf-8"))
        assert [p["url"] for p in properties] == ["https://www.idealista.com/inmueble/1/"]
