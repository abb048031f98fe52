#!/usr/bin/env python3
"""
Run one Idealista crawl from the command line.

Usage:
    cd backend
    python -m scrapers.cli [listing_url]

Examples:
    python -m scrapers.cli https://www.idealista.com/venta-viviendas/madrid-madrid/
    python -m scrapers.cli --headless --cdp-url http://127.0.0.1:9222

Without a URL argument the listing URL is asked for interactively.
Exit codes: 0 finished, 1 fatal crawl error, 2 invalid URL.
"""

import argparse
import asyncio
import logging
import re
import signal
import sys
from typing import Optional, Sequence, Tuple

from api.config import settings
from api.graph_store import GraphStore
from api.logging_config import configure_logging
from api.vector_store import VectorStore
from .base import Colors, CrawlFatalError, CrawlReport
from .controller import CrawlController
from .crawlers.browser import BrowserSession
from .sinks import GraphSink, VectorSink

logger = logging.getLogger('scraper.cli')

URL_PATTERN = re.compile(r'^https?://', re.IGNORECASE)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_INVALID_URL = 2


def is_valid_listing_url(url: str) -> bool:
    return bool(URL_PATTERN.match((url or '').strip()))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Crawl an Idealista search and store every property found')
    parser.add_argument('url', nargs='?', help='Listing (search results) URL to start from')
    parser.add_argument('--headless', action='store_true', default=None, help='Run the browser headless')
    parser.add_argument('--cdp-url', help='Attach to a running Chrome instead of launching one')
    parser.add_argument('--no-store', action='store_true', help='Only write the JSON results, skip the stores')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    return parser


def make_signal_handler(controller: CrawlController, task: asyncio.Task):
    """
    First SIGINT/SIGTERM asks the controller to stop after the current item;
    a second one cancels the crawl outright. Either way the controller's
    shutdown closes the browser and stores and writes the results.
    """
    def handle_signal(signame: str):
        if controller.stop_requested:
            logger.warning(f"{signame} received again - cancelling crawl")
            task.cancel()
            return
        logger.warning(f"{signame} received - stopping after the current property (repeat to abort)")
        controller.request_stop()

    return handle_signal


def install_signal_handlers(controller: CrawlController, task: asyncio.Task):
    loop = asyncio.get_running_loop()
    handle_signal = make_signal_handler(controller, task)

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, handle_signal, sig.name)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handler support
            pass


async def crawl(controller: CrawlController, url: str) -> Tuple[int, Optional[CrawlReport]]:
    """Run the controller as a signal-interruptible task."""
    task = asyncio.ensure_future(controller.run(url))
    install_signal_handlers(controller, task)

    try:
        report = await task
    except CrawlFatalError as e:
        logger.error(f"{Colors.red('Fatal')}: {e}")
        return EXIT_FATAL, None
    except asyncio.CancelledError:
        logger.warning("Crawl cancelled")
        return EXIT_FATAL, None
    return EXIT_OK, report


async def run_crawl(url: str, args: argparse.Namespace) -> int:
    browser = BrowserSession.from_settings(settings)
    if args.headless:
        browser.headless = True
    if args.cdp_url:
        browser.cdp_url = args.cdp_url

    sinks = []
    if not args.no_store:
        sinks = [
            GraphSink(GraphStore.from_settings(settings)),
            VectorSink(VectorStore.from_settings(settings)),
        ]

    try:
        await browser.start()
    except CrawlFatalError as e:
        logger.error(f"{Colors.red('Fatal')}: {e}")
        return EXIT_FATAL

    controller = CrawlController.from_settings(browser, sinks, settings)
    exit_code, report = await crawl(controller, url)
    if report is None:
        return exit_code

    stats = report.statistics
    logger.info(f"\n{'=' * 60}")
    logger.info(f"{Colors.bold('Properties')}: {stats.total} ({stats.with_price} with price)")
    if stats.average_price is not None:
        logger.info(f"{Colors.bold('Average price')}: {stats.average_price:,} €")
    for city, count in sorted(stats.by_city.items(), key=lambda item: -item[1]):
        logger.info(f"   {city or '(no city)'}: {count}")
    if stats.total:
        logger.info(f"Results written to {settings.results_dir}")
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        settings.log_level = 'DEBUG'
    configure_logging(settings)

    url = args.url
    if url is None:
        try:
            url = input('Idealista listing URL: ')
        except EOFError:
            url = ''
    url = url.strip()

    if not is_valid_listing_url(url):
        logger.error(f"Invalid URL '{url}': it must start with http:// or https://")
        return EXIT_INVALID_URL

    return asyncio.run(run_crawl(url, args))


if __name__ == '__main__':
    sys.exit(main())
