"""
Crawl controller - drives one crawl from the base listing URL to termination.

State machine:
    IDLE -> LISTING_LOADED -> BATCH_COLLECTED -> ITEM_PROCESSING
         -> RETURNED_TO_LISTING -> ADVANCING -> BATCH_COLLECTED ...
                                -> TERMINATED

TERMINATED is reached on an empty batch, on a missing next-page control,
on a stop request or on a fatal error. Entering it always closes the
browser session and the sinks and finalizes the accumulated records.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from .aggregator import ResultAggregator
from .base import (
    Address,
    BatchOutcome,
    Colors,
    CrawlFatalError,
    CrawlReport,
    CrawlSession,
    CrawlState,
    DetailFields,
    ElementWaitTimeout,
    ItemFailure,
    ListingNotLoadedError,
    ListingSummary,
    PropertyRecord,
)
from .config import SiteConfig, get_site_config
from .crawlers.pacing import Pacing
from .navigator import PaginationNavigator
from .sinks import StorageSink
from .sites.idealista import DetailExtractor
from .utils.extractors import has_garage
from .utils.normalizers import parse_address


def build_record(summary: ListingSummary, details: DetailFields, address: Address) -> PropertyRecord:
    """Assemble the record for one detail-page visit."""
    return PropertyRecord(
        url=summary.url,
        title=summary.title,
        street=address.street,
        neighborhood=address.neighborhood,
        city=address.city,
        price_amount=summary.price_amount,
        rooms=summary.rooms,
        area_sqm=summary.area_sqm,
        extras=summary.extras,
        garage=has_garage(summary.extras),
        detailed_description=details.detailed_description,
        features=details.features,
        energy_rating=details.energy_rating,
    )


class CrawlController:
    """
    Orchestrates pagination, detail extraction and record forwarding.

    Usage:
        session = await BrowserSession.from_settings(settings).start()
        controller = CrawlController(session, sinks=[GraphSink(graph), VectorSink(vectors)],
                                     results_dir=settings.results_dir)
        report = await controller.run("https://www.idealista.com/venta-viviendas/madrid/")

    The session is owned by the controller from here on: it is closed when
    the crawl terminates.
    """

    def __init__(
        self,
        session,
        sinks: Sequence[StorageSink] = (),
        aggregator: Optional[ResultAggregator] = None,
        config: Optional[SiteConfig] = None,
        pacing: Optional[Pacing] = None,
        listing_timeout: float = 15.0,
        cookie_timeout: float = 5.0,
        results_dir: Optional[Union[str, Path]] = None,
    ):
        self.session = session
        self.sinks: List[StorageSink] = list(sinks)
        self.aggregator = aggregator or ResultAggregator()
        self.config = config or get_site_config('idealista')
        self.selectors = self.config.selectors
        self.pacing = pacing or Pacing()
        self.cookie_timeout = cookie_timeout
        self.results_dir = results_dir
        self.logger = logging.getLogger(f"scraper.{self.config.short_name}")

        self.navigator = PaginationNavigator(
            session,
            self.config,
            pacing=self.pacing,
            listing_timeout=listing_timeout,
            logger=self.logger,
        )
        self.detail_extractor = DetailExtractor(session, self.config, self.logger)

        self.state = CrawlState.IDLE
        self.crawl: Optional[CrawlSession] = None
        self.report: Optional[CrawlReport] = None
        self._stop_requested = False

    @classmethod
    def from_settings(cls, session, sinks: Sequence[StorageSink], settings, config: Optional[SiteConfig] = None):
        return cls(
            session,
            sinks=sinks,
            config=config,
            pacing=Pacing.from_settings(settings),
            listing_timeout=settings.listing_wait_timeout,
            cookie_timeout=settings.cookie_wait_timeout,
            results_dir=settings.results_dir,
        )

    def request_stop(self):
        """Stop after the item in flight; the crawl then shuts down normally."""
        if not self._stop_requested:
            self.logger.warning("Stop requested - finishing current item before shutting down")
        self._stop_requested = True

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def _transition(self, state: CrawlState):
        self.logger.debug(f"{self.state.value} -> {state.value}")
        self.state = state

    async def run(self, base_url: str) -> CrawlReport:
        """
        Crawl every listing page reachable from base_url.

        Raises:
            CrawlFatalError: If the listing grid never loads; the session and
                sinks are closed and the partial results persisted first
        """
        self.crawl = CrawlSession(base_url=base_url)
        self.logger.info(f"Starting crawl of {self.config.name}: {base_url}")

        try:
            await self._open_sinks()
            await self._open_listing(base_url)

            while not self._stop_requested:
                await self.navigator.human_scroll()
                batch = await self.navigator.collect_batch()
                self.crawl.current_listing_url = self.navigator.current_page_url
                self.crawl.page_index = self.navigator.page_index
                self.crawl.visited_pages.append(self.navigator.current_page_url)

                self.logger.info(
                    f"\n{Colors.cyan('❯❯❯')} {Colors.bold(f'Page {self.crawl.page_index}')}: "
                    f"{len(batch)} item(s) {Colors.gray(f'({self.crawl.current_listing_url})')}"
                )
                if not batch:
                    self.logger.info("No items on this page - end of results")
                    break
                self._transition(CrawlState.BATCH_COLLECTED)

                outcome = await self.process_batch(batch)
                self.crawl.record_batch(outcome)
                self.logger.info(
                    f"{Colors.bold('Progress')}: page {self.crawl.page_index} done "
                    f"({Colors.green(f'{len(outcome.successes)} saved')}, "
                    f"{Colors.red(f'{len(outcome.failures)} errors')})"
                )
                if self._stop_requested:
                    break

                await self.navigator.return_to_listing()
                self._transition(CrawlState.RETURNED_TO_LISTING)

                self._transition(CrawlState.ADVANCING)
                if not await self.navigator.advance():
                    self.logger.info("No next page - last page reached")
                    break
        finally:
            self.report = await self._shutdown()

        return self.report

    async def _open_sinks(self):
        for sink in self.sinks:
            try:
                await sink.open()
            except Exception as e:
                self.logger.warning(f"Could not open {sink.name} store, each save will try to reconnect once: {e}")

    async def _open_listing(self, base_url: str):
        self.logger.info(f"📍 Opening {base_url}")
        try:
            await self.session.goto(base_url)
        except CrawlFatalError:
            raise
        except Exception as e:
            raise ListingNotLoadedError(f"Could not open {base_url}: {e}") from e

        await self.dismiss_cookie_consent()
        await self.navigator.confirm_loaded()
        self._transition(CrawlState.LISTING_LOADED)

    async def dismiss_cookie_consent(self) -> bool:
        """Accept the cookie banner if one shows up. Its absence is not an error."""
        try:
            button = await self.session.wait_for(self.selectors['cookie_accept'], self.cookie_timeout)
        except ElementWaitTimeout:
            self.logger.debug("No cookie consent banner")
            return False

        try:
            await self.session.scroll_into_view(button)
            await self.pacing.pause(0.3, 0.5)
            await self.session.click(button)
        except Exception as e:
            self.logger.debug(f"Could not dismiss cookie banner: {e}")
            return False

        self.logger.info("Cookie consent accepted")
        return True

    async def process_batch(self, batch: Sequence[ListingSummary]) -> BatchOutcome:
        """
        Visit every item of a batch in order.

        A failing item is recorded in the outcome and the loop moves on;
        no item failure aborts the batch.
        """
        self._transition(CrawlState.ITEM_PROCESSING)
        outcome = BatchOutcome()

        for idx, summary in enumerate(batch, 1):
            if self._stop_requested:
                self.logger.warning(f"Skipping remaining {len(batch) - idx + 1} item(s) after stop request")
                break

            self.logger.info(
                f"{Colors.bold(f'[{idx}/{len(batch)}]')} {summary.title or '(untitled)'} "
                f"{Colors.gray(f'({summary.url})')}"
            )
            try:
                record = await self.process_item(summary)
            except Exception as e:
                outcome.failures.append(ItemFailure(url=summary.url, error=str(e)))
                self.logger.error(f"   {Colors.red('[ERR]')} {summary.url}: {e}")
                continue

            saved = await self.forward(record)
            self.aggregator.accumulate(record)
            outcome.successes.append(record)

            stored_in = [name for name, ok in saved.items() if ok]
            self.logger.info(
                f"   {Colors.green('[OK]')} {record.city or 'unknown city'} | "
                f"{record.price_amount if record.price_amount is not None else '-'} € | "
                f"stored in: {', '.join(stored_in) or 'none'}"
            )

        return outcome

    async def process_item(self, summary: ListingSummary) -> PropertyRecord:
        """Visit one detail page and build its record."""
        await self.session.goto(summary.url)
        await self.pacing.settle()
        details = await self.detail_extractor.extract()
        address = parse_address(summary.title)
        return build_record(summary, details, address)

    async def forward(self, record: PropertyRecord) -> Dict[str, bool]:
        """Hand the record to every sink independently."""
        results = {}
        for sink in self.sinks:
            try:
                saved = await sink.save(record)
            except Exception as e:
                self.logger.warning(f"   {Colors.yellow('[WARN]')} {sink.name} store raised for {record.url}: {e}")
                saved = False
            else:
                if not saved:
                    self.logger.warning(f"   {Colors.yellow('[WARN]')} {sink.name} store rejected {record.url}")
            results[sink.name] = saved
        return results

    async def _shutdown(self) -> CrawlReport:
        self._transition(CrawlState.TERMINATED)

        try:
            await self.session.close()
        except Exception as e:
            self.logger.warning(f"Error closing browser session: {e}")

        for sink in self.sinks:
            try:
                await sink.close()
            except Exception as e:
                self.logger.warning(f"Error closing {sink.name} store: {e}")

        report = self.aggregator.finalize()
        if self.results_dir is not None:
            try:
                self.aggregator.persist(report, self.results_dir)
            except OSError as e:
                self.logger.error(f"Could not write results to {self.results_dir}: {e}")

        duration = self.crawl.duration_seconds if self.crawl else 0.0
        succeeded = self.crawl.succeeded if self.crawl else 0
        failed = self.crawl.failed if self.crawl else 0
        self.logger.info(
            f"✅ Crawl finished in {duration:.1f}s: {report.statistics.total} properties, "
            f"{succeeded} saved, {failed} errors"
        )
        return report
