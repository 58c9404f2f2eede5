"""
Browser session lifecycle.

BrowserSessionManager owns exactly one Playwright browser, context and
page. start() acquires them, close() releases them. close() never raises
and is bounded by a timeout. Once closed, every use of the page fails
fast with PageNotAvailable.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import async_playwright, Browser, BrowserContext, Page, Playwright

from .config import AutomationConfig
from .errors import PageNotAvailable
from .logging_utils import get_logger, log_step, log_warning


USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)

EXTRA_HTTP_HEADERS = {
    'Accept-Language': 'en-US,en;q=0.9',
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
    'Upgrade-Insecure-Requests': '1',
}

# Hides the webdriver flag that SSO pages use to reject automated browsers
STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => false });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
"""


class BrowserSessionManager:
    """
    Owns one browser + page for one engine instance.

    Page interactions from different batches are serialized through
    exclusive(). Lifecycle calls use their own lock so close() is never
    stuck behind a running batch.
    """

    def __init__(self, config: Optional[AutomationConfig] = None):
        """
        Initialize the session manager.

        Args:
            config: Automation configuration (defaults are used if None)
        """
        self.config = config or AutomationConfig()
        self.logger = get_logger()
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None
        self._closed = False
        self._lifecycle_lock = asyncio.Lock()
        self._interaction_lock = asyncio.Lock()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @property
    def is_active(self) -> bool:
        """Whether a live page is available."""
        return self.page is not None and not self._closed and not self.page.is_closed()

    @property
    def is_closed(self) -> bool:
        """Whether close() has been called since the last start()."""
        return self._closed

    async def start(self):
        """
        Start Playwright and launch the browser.

        Calling start() on a live session is a no-op, so a second call
        never leaks another browser.
        """
        async with self._lifecycle_lock:
            if self.is_active:
                self.logger.debug("Browser session already started")
                return

            if self.playwright or self.browser or self.context or self.page:
                self.logger.debug("Releasing unusable browser before relaunch")
                await self._release()

            log_step("Starting browser...", self.logger)

            try:
                self.playwright = await async_playwright().start()
                launch_options = {'headless': self.config.headless}
                if self.config.browser_channel:
                    launch_options['channel'] = self.config.browser_channel
                self.browser = await self.playwright.chromium.launch(**launch_options)

                self.context = await self.browser.new_context(
                    viewport={
                        'width': self.config.viewport_width,
                        'height': self.config.viewport_height,
                    },
                    ignore_https_errors=True,
                    user_agent=USER_AGENT,
                    extra_http_headers=EXTRA_HTTP_HEADERS,
                )
                self.context.set_default_timeout(self.config.global_timeout_ms)
                self.context.set_default_navigation_timeout(self.config.global_timeout_ms)
                await self.context.add_init_script(STEALTH_SCRIPT)

                self.page = await self.context.new_page()
            except BaseException:
                # Release whatever was acquired before the failure
                await self._release()
                raise

            self._closed = False
            self.logger.debug(f"Browser launched (headless={self.config.headless})")

    async def close(self):
        """
        Close the page, context, browser and Playwright.

        Safe to call any number of times, including before start().
        Each resource is given config.close_timeout seconds; failures
        are logged, never raised.
        """
        async with self._lifecycle_lock:
            was_open = self.page is not None or self.browser is not None
            self._closed = True
            await self._release()
            if was_open:
                self.logger.debug("Browser closed")

    async def _release(self):
        page, context, browser, playwright = self.page, self.context, self.browser, self.playwright
        self.page = None
        self.context = None
        self.browser = None
        self.playwright = None

        for name, closer in (
            ('page', page.close if page else None),
            ('context', context.close if context else None),
            ('browser', browser.close if browser else None),
            ('playwright', playwright.stop if playwright else None),
        ):
            if closer is None:
                continue
            try:
                await asyncio.wait_for(closer(), timeout=self.config.close_timeout)
            except asyncio.TimeoutError:
                log_warning(f"Timed out closing {name}", self.logger)
            except Exception as e:
                log_warning(f"Could not close {name}: {e}", self.logger)

    def require_page(self) -> Page:
        """
        Get the live page.

        Returns:
            Playwright page

        Raises:
            PageNotAvailable: If the session is not started or already closed
        """
        page = self.page
        if self._closed or page is None or page.is_closed():
            raise PageNotAvailable()
        return page

    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator['BrowserSessionManager']:
        """
        Hold the page for one batch.

        Batches sharing this session run one after another so their
        fills and clicks never interleave.
        """
        async with self._interaction_lock:
            yield self
