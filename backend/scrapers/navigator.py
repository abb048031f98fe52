"""
Pagination over listing pages.

The navigator keeps the crawl position: the URL of the listing page whose
batch is being processed and its index. Each detail visit navigates away
from the grid, so the listing URL is saved when the batch is collected and
the navigator returns to that exact page afterwards (never to page 1).
"""

import logging
from typing import List, Optional

from .base import ElementWaitTimeout, ListingNotLoadedError, ListingSummary
from .config import SiteConfig
from .crawlers.pacing import Pacing
from .sites.idealista import ListingSummaryExtractor
from .sites.reader import ElementReader


class PaginationNavigator:
    """
    Tracks and advances the listing-page position.

    Usage:
        navigator = PaginationNavigator(session, config, pacing)
        await navigator.confirm_loaded()
        batch = await navigator.collect_batch()
        ...visit details...
        await navigator.return_to_listing()
        has_next = await navigator.advance()
    """

    def __init__(
        self,
        session,
        config: SiteConfig,
        pacing: Optional[Pacing] = None,
        listing_timeout: float = 15.0,
        logger: Optional[logging.Logger] = None,
    ):
        self.session = session
        self.config = config
        self.selectors = config.selectors
        self.pacing = pacing or Pacing()
        self.listing_timeout = listing_timeout
        self.logger = logger or logging.getLogger(__name__)
        self.reader = ElementReader(session, self.logger)
        self.summary_extractor = ListingSummaryExtractor(session, config, self.logger)
        self.current_page_url: Optional[str] = None
        self.page_index = 1

    async def confirm_loaded(self, timeout: Optional[float] = None):
        """
        Wait for the listing grid marker.

        Raises:
            ListingNotLoadedError: If the grid does not appear in time
        """
        timeout = self.listing_timeout if timeout is None else timeout
        try:
            await self.session.wait_for(self.selectors['listing_grid'], timeout)
        except ElementWaitTimeout as e:
            url = await self._safe_current_url()
            raise ListingNotLoadedError(f"Listing grid did not load at {url}: {e}") from e

    async def human_scroll(self):
        """Scroll down the page a few times with human-like pauses."""
        for _ in range(self.pacing.randint(3, 6)):
            try:
                await self.session.evaluate(
                    "(dy) => window.scrollBy(0, dy)",
                    self.pacing.randint(500, 900),
                )
            except Exception as e:
                self.logger.debug(f"Scroll failed: {e}")
                return
            await self.pacing.pause(0.7, 1.6)

    async def _cards(self) -> List:
        return await self.reader.find_all(self.selectors['item_card'])

    async def collect_item_urls(self) -> List[str]:
        """Absolute URLs of every item on the current page, in source order."""
        batch = await self.collect_batch()
        return [summary.url for summary in batch]

    async def collect_batch(self) -> List[ListingSummary]:
        """
        Read every card on the current listing page and save the page URL.

        Cards without a resolvable link are dropped. An empty batch means
        the results are exhausted.
        """
        self.current_page_url = await self.session.current_url()

        batch = []
        for card in await self._cards():
            summary = await self.summary_extractor.extract(card, self.current_page_url)
            if not summary.url:
                self.logger.warning(f"Skipping card without link: {summary.title or '(untitled)'}")
                continue
            batch.append(summary)
        return batch

    async def return_to_listing(self):
        """Navigate back to the saved listing page and wait for its grid."""
        if not self.current_page_url:
            raise ListingNotLoadedError("No listing page has been saved yet")
        await self.session.goto(self.current_page_url)
        await self.confirm_loaded()

    async def advance(self) -> bool:
        """
        Move to the next listing page.

        Returns:
            False when there is no enabled next-page control (end of results),
            or when clicking it leaves the browser on the same page
        """
        next_link = await self.reader.find(self.selectors['next_page'])
        if not next_link:
            return False

        previous_url = await self.session.current_url()
        await self.session.scroll_into_view(next_link.value)
        await self.pacing.pause()
        await self.session.click(next_link.value)
        await self.pacing.pause()

        new_url = await self.session.current_url()
        if new_url == previous_url:
            self.logger.warning(f"Next-page control did not leave {previous_url}, treating it as the last page")
            return False

        self.page_index += 1
        self.current_page_url = new_url
        return True

    async def _safe_current_url(self) -> str:
        try:
            return await self.session.current_url()
        except Exception:
            return self.current_page_url or '(unknown)'
