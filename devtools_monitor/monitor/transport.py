"""Session transport abstraction over the browser remote-debugging protocol.

This module defines the CDPTransport interface the monitor components talk
to, and PlaywrightCDPTransport which adapts a Playwright CDPSession to it.
Commands and events are addressed by their protocol names
('Network.enable', 'Network.requestWillBeSent'), so nothing here is tied
to a specific protocol revision.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from playwright.async_api import CDPSession, Page, Error as PlaywrightError

from .exceptions import DevToolsNotSupportedError

logger = logging.getLogger(__name__)

EventHandler = Callable[[Dict[str, Any]], Any]


class CDPTransport(ABC):
    """Interface of an attached protocol session."""

    @abstractmethod
    async def send(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Send a protocol command and return its result payload."""

    @abstractmethod
    def on(self, event: str, handler: EventHandler) -> None:
        """Subscribe a handler to a protocol event."""

    @abstractmethod
    def remove_listener(self, event: str, handler: EventHandler) -> None:
        """Unsubscribe a previously registered handler."""

    @abstractmethod
    async def detach(self) -> None:
        """Release the underlying session."""


class PlaywrightCDPTransport(CDPTransport):
    """CDPTransport backed by a Playwright CDPSession."""

    def __init__(self, session: CDPSession):
        """Wrap an existing Playwright CDP session.

        Args:
            session: CDP session created by BrowserContext.new_cdp_session
        """
        self.session = session

    @classmethod
    async def attach(cls, page: Page) -> "PlaywrightCDPTransport":
        """Create a protocol session for a page.

        Args:
            page: Playwright page to attach to

        Returns:
            Transport attached to the page

        Raises:
            DevToolsNotSupportedError: If the page's browser has no CDP support
        """
        browser_name = None
        try:
            browser = page.context.browser
            if browser is not None:
                browser_name = browser.browser_type.name
        except Exception as e:
            logger.debug(f"Could not determine browser type: {e}")

        if browser_name and browser_name != "chromium":
            raise DevToolsNotSupportedError(
                f"DevTools protocol sessions require Chromium, got {browser_name}",
                browser=browser_name
            )

        try:
            session = await page.context.new_cdp_session(page)
        except PlaywrightError as e:
            raise DevToolsNotSupportedError(
                f"Failed to create DevTools session: {e}",
                browser=browser_name
            ) from e

        logger.debug("CDP session attached to page")
        return cls(session)

    async def send(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        result = await self.session.send(method, params or {})
        return result or {}

    def on(self, event: str, handler: EventHandler) -> None:
        self.session.on(event, handler)

    def remove_listener(self, event: str, handler: EventHandler) -> None:
        self.session.remove_listener(event, handler)

    async def detach(self) -> None:
        await self.session.detach()

    def __repr__(self) -> str:
        return f"PlaywrightCDPTransport(session={self.session!r})"
