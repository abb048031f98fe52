"""
Browser session for script-rendered listing sites.

Uses Playwright with stealth settings to drive a single page. The crawl
controller owns one session and uses it strictly sequentially. Element
handles returned by the lookups are only ever passed back into the
session's own read/click helpers.
"""

import asyncio
from typing import Any, List, Optional
from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    ElementHandle,
    Page,
    TimeoutError as PlaywrightTimeoutError,
)
import logging

from ..base import BrowserSessionError, CrawlError, ElementWaitTimeout

logger = logging.getLogger(__name__)


STEALTH_INIT_SCRIPT = """
    Object.defineProperty(navigator, 'webdriver', {
        get: () => undefined
    });

    // Override plugins
    Object.defineProperty(navigator, 'plugins', {
        get: () => [1, 2, 3, 4, 5]
    });

    // Override languages
    Object.defineProperty(navigator, 'languages', {
        get: () => ['es-ES', 'es']
    });
"""


class BrowserSession:
    """
    Playwright-backed browser session.

    Features:
    - Launches Chromium, or attaches to a running Chrome over CDP
    - Realistic viewport, user agent and locale
    - Bounded element waits that raise ElementWaitTimeout
    """

    def __init__(
        self,
        headless: bool = False,
        cdp_url: Optional[str] = None,
        navigation_timeout: float = 30.0,
        locale: str = 'es-ES',
        timezone_id: str = 'Europe/Madrid',
    ):
        """
        Initialize the browser session.

        Args:
            headless: Run a launched browser in headless mode
            cdp_url: Attach to an already running Chrome (e.g. http://127.0.0.1:9222)
            navigation_timeout: Page navigation timeout in seconds
            locale: Browser locale for a launched context
            timezone_id: Browser timezone for a launched context
        """
        self.headless = headless
        self.cdp_url = cdp_url
        self.navigation_timeout = navigation_timeout
        self.locale = locale
        self.timezone_id = timezone_id
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    @classmethod
    def from_settings(cls, settings) -> 'BrowserSession':
        return cls(
            headless=settings.browser_headless,
            cdp_url=settings.browser_cdp_url,
            navigation_timeout=settings.navigation_timeout,
        )

    @property
    def page(self) -> Page:
        if self._page is None:
            raise BrowserSessionError("Browser session is not started")
        return self._page

    async def start(self) -> 'BrowserSession':
        """
        Start Playwright and open the page used for the whole crawl.

        Raises:
            BrowserSessionError: If the browser cannot be launched or attached
        """
        if self._page is not None:
            return self

        try:
            self._playwright = await async_playwright().start()

            if self.cdp_url:
                logger.info(f"Attaching to running browser at {self.cdp_url}")
                self._browser = await self._playwright.chromium.connect_over_cdp(self.cdp_url)
                if self._browser.contexts:
                    self._context = self._browser.contexts[0]
                else:
                    self._context = await self._browser.new_context()
            else:
                logger.debug("Launching Chromium browser...")
                self._browser = await self._playwright.chromium.launch(
                    headless=self.headless,
                    args=[
                        '--disable-blink-features=AutomationControlled',
                        '--disable-dev-shm-usage',
                        '--no-sandbox',
                        '--start-maximized',
                    ],
                    handle_sigint=False,
                    handle_sigterm=False,
                    handle_sighup=False,
                )
                self._context = await self._browser.new_context(
                    viewport={'width': 1920, 'height': 1080},
                    user_agent='Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
                    locale=self.locale,
                    timezone_id=self.timezone_id,
                    extra_http_headers={
                        'Accept-Language': 'es-ES,es;q=0.9,en;q=0.8',
                        'DNT': '1',
                        'Upgrade-Insecure-Requests': '1',
                    },
                )
                await self._context.add_init_script(STEALTH_INIT_SCRIPT)

            if self._context.pages:
                self._page = self._context.pages[0]
            else:
                self._page = await self._context.new_page()
            self._page.set_default_navigation_timeout(self.navigation_timeout * 1000)
            logger.debug("Browser session ready")
            return self

        except Exception as e:
            logger.error(f"Failed to start browser session: {e}")
            await self._cleanup()
            raise BrowserSessionError(f"Could not establish browser session: {e}") from e

    async def goto(self, url: str):
        """Navigate the page to a URL."""
        response = await self.page.goto(
            url,
            wait_until='domcontentloaded',
            timeout=self.navigation_timeout * 1000,
        )
        if response is not None and response.status >= 400:
            raise CrawlError(f"HTTP {response.status} for {url}")

    async def current_url(self) -> str:
        return self.page.url

    async def wait_for(self, selector: str, timeout: float) -> ElementHandle:
        """
        Wait until an element matching the selector is attached.

        Raises:
            ElementWaitTimeout: If nothing matches within the timeout (seconds)
        """
        try:
            return await self.page.wait_for_selector(
                selector,
                state='attached',
                timeout=timeout * 1000,
            )
        except PlaywrightTimeoutError as e:
            raise ElementWaitTimeout(selector, timeout) from e

    async def query(self, selector: str, root: Optional[ElementHandle] = None) -> Optional[ElementHandle]:
        target = root if root is not None else self.page
        return await target.query_selector(selector)

    async def query_all(self, selector: str, root: Optional[ElementHandle] = None) -> List[ElementHandle]:
        target = root if root is not None else self.page
        return await target.query_selector_all(selector)

    async def text(self, element: ElementHandle) -> str:
        return await element.inner_text()

    async def attribute(self, element: ElementHandle, name: str) -> Optional[str]:
        return await element.get_attribute(name)

    async def inner_html(self, element: ElementHandle) -> str:
        return await element.inner_html()

    async def scroll_into_view(self, element: ElementHandle):
        await element.scroll_into_view_if_needed()

    async def click(self, element: ElementHandle):
        await element.click()
        try:
            await self.page.wait_for_load_state('domcontentloaded')
        except PlaywrightTimeoutError:
            logger.debug("Page did not reach domcontentloaded after click")

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self.page.evaluate(script, arg)

    async def _cleanup(self):
        """Clean up browser resources with timeouts to prevent hanging."""
        cleanup_timeout = 2.0

        if self._context and not self.cdp_url:
            try:
                await asyncio.wait_for(self._context.close(), timeout=cleanup_timeout)
            except asyncio.TimeoutError:
                logger.warning("Context close timed out, forcing cleanup")
            except Exception as e:
                logger.warning(f"Error closing context: {e}")
        self._context = None
        self._page = None

        if self._browser:
            try:
                await asyncio.wait_for(self._browser.close(), timeout=cleanup_timeout)
            except asyncio.TimeoutError:
                logger.warning("Browser close timed out, forcing cleanup")
            except Exception as e:
                logger.warning(f"Error closing browser: {e}")
            self._browser = None

        if self._playwright:
            try:
                await asyncio.wait_for(self._playwright.stop(), timeout=cleanup_timeout)
            except asyncio.TimeoutError:
                logger.warning("Playwright stop timed out, forcing cleanup")
            except Exception as e:
                logger.warning(f"Error stopping playwright: {e}")
            self._playwright = None

    async def close(self):
        """Close the browser and cleanup resources."""
        await self._cleanup()
        logger.info("Browser session closed")

    async def __aenter__(self):
        return await self.start()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self._cleanup()
