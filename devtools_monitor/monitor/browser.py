"""Browser launcher for attaching DevTools sessions to fresh pages.

This module provides a small BrowserLauncher around Playwright that starts
a browser, opens a page and tears both down again. It is what the CLI uses
to get a page to monitor; library callers usually bring their own page.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from playwright.async_api import Browser, Page, Playwright, async_playwright

logger = logging.getLogger(__name__)


class BrowserEngineType:
    """Supported browser engine types."""
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


class BrowserConfig:
    """Configuration for browser launch and page context."""

    def __init__(
        self,
        engine: str = BrowserEngineType.CHROMIUM,
        headless: bool = True,
        slow_mo: int = 0,
        viewport: Optional[Dict[str, int]] = None,
        user_agent: Optional[str] = None,
        ignore_https_errors: bool = False,
        **kwargs
    ):
        """Initialize browser configuration.

        Args:
            engine: Browser engine to use (chromium, firefox, webkit)
            headless: Run browser in headless mode
            slow_mo: Slow down operations by specified milliseconds
            viewport: Viewport size dict with 'width' and 'height'
            user_agent: Custom User-Agent string
            ignore_https_errors: Ignore SSL/TLS certificate errors
        """
        self.engine = engine
        self.headless = headless
        self.slow_mo = slow_mo
        self.viewport = viewport or {'width': 1366, 'height': 768}
        self.user_agent = user_agent
        self.ignore_https_errors = ignore_https_errors
        self.extra_options = kwargs

    def to_browser_options(self) -> Dict[str, Any]:
        """Convert to Playwright browser launch options."""
        options = {
            'headless': self.headless,
            'slow_mo': self.slow_mo,
        }
        options.update(self.extra_options)
        return options

    def to_context_options(self) -> Dict[str, Any]:
        """Convert to Playwright browser context options."""
        options: Dict[str, Any] = {'viewport': self.viewport}
        if self.user_agent:
            options['user_agent'] = self.user_agent
        if self.ignore_https_errors:
            options['ignore_https_errors'] = True
        return options


class BrowserLauncher:
    """Starts Playwright and a browser, hands out pages."""

    def __init__(self, config: Optional[BrowserConfig] = None):
        self.config = config or BrowserConfig()
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None

    async def start(self) -> None:
        """Start Playwright and launch browser."""
        if self.playwright is not None:
            logger.warning("Browser launcher already started")
            return

        logger.info(f"Starting browser with engine: {self.config.engine}")
        try:
            self.playwright = await async_playwright().start()

            if self.config.engine == BrowserEngineType.FIREFOX:
                browser_type = self.playwright.firefox
            elif self.config.engine == BrowserEngineType.WEBKIT:
                browser_type = self.playwright.webkit
            else:
                browser_type = self.playwright.chromium

            self.browser = await browser_type.launch(**self.config.to_browser_options())
            logger.info(f"Browser launched successfully (headless={self.config.headless})")

        except Exception as e:
            logger.error(f"Failed to start browser: {e}")
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop browser and cleanup resources."""
        try:
            if self.browser:
                await self.browser.close()
                self.browser = None

            if self.playwright:
                await self.playwright.stop()
                self.playwright = None

            logger.info("Browser stopped")

        except Exception as e:
            logger.error(f"Error stopping browser: {e}")

    @asynccontextmanager
    async def page(self) -> AsyncGenerator[Page, None]:
        """Context manager for a page in its own browser context.

        Yields:
            Page that is closed together with its context on exit
        """
        if not self.browser:
            raise RuntimeError("Browser launcher not started. Call start() first.")

        context = await self.browser.new_context(**self.config.to_context_options())
        try:
            yield await context.new_page()
        finally:
            try:
                await context.close()
            except Exception as e:
                logger.warning(f"Error closing browser context: {e}")

    async def __aenter__(self) -> "BrowserLauncher":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
