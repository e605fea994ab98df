"""URL blocking and pass-through request interception.

Blocking is enforced by the browser: the controller only sends the
current block-list, and each call replaces the previous list. Interception
runs in auto-continue mode: every paused request is logged and resumed
unmodified straight away. A failing continue command is logged and
counted, it never stalls later requests.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from ..models.session import Domain
from .dispatcher import EventDispatcher
from .domains import DomainActivator
from .exceptions import InterventionError
from .metrics import Counter, MetricsAggregator
from .transport import CDPTransport

logger = logging.getLogger(__name__)

REQUEST_PAUSED_EVENT = "Fetch.requestPaused"


class InterventionController:
    """Sends block-lists and resumes intercepted requests."""

    def __init__(
        self,
        transport: CDPTransport,
        dispatcher: EventDispatcher,
        activator: DomainActivator,
        metrics: MetricsAggregator,
    ):
        self.transport = transport
        self.dispatcher = dispatcher
        self.activator = activator
        self.metrics = metrics
        self._blocked_urls: List[str] = []
        self._patterns: List[str] = []
        self._subscribed = False

    @property
    def blocked_urls(self) -> List[str]:
        return list(self._blocked_urls)

    @property
    def interception_patterns(self) -> List[str]:
        return list(self._patterns)

    @property
    def interception_enabled(self) -> bool:
        return self.activator.is_enabled(Domain.FETCH)

    async def block_urls(self, patterns: Iterable[str]) -> bool:
        """Replace the browser's URL block-list.

        Args:
            patterns: URL glob patterns ('*.png', '*://ads.example/*')

        Returns:
            True if the browser accepted the list
        """
        urls = [p for p in patterns if p]
        if not self.activator.is_enabled(Domain.NETWORK):
            logger.debug("Network domain is not enabled; block-list may not take effect")

        try:
            await self.transport.send("Network.setBlockedURLs", {"urls": urls})
        except Exception as e:
            self._record_failure(InterventionError("Network.setBlockedURLs", str(e)))
            return False

        self._blocked_urls = urls
        if urls:
            logger.info(f"Blocked URLs via CDP: {urls}")
        else:
            logger.info("URL block-list cleared")
        return True

    async def unblock_urls(self) -> bool:
        """Clear the block-list."""
        return await self.block_urls([])

    async def enable_interception(self, patterns: Optional[Iterable[str]] = None) -> bool:
        """Start pausing requests and resuming them unmodified.

        Calling it again while interception is on with different patterns
        re-sends Fetch.enable, which replaces the browser's pattern list.

        Args:
            patterns: URL patterns to intercept, defaults to every request

        Returns:
            True if interception is active with the requested patterns
        """
        url_patterns = [p for p in (patterns or []) if p]
        options: Dict[str, Any] = {}
        if url_patterns:
            options["patterns"] = [{"urlPattern": p} for p in url_patterns]

        if self.interception_enabled:
            if url_patterns == self._patterns:
                return True
            try:
                await self.transport.send("Fetch.enable", options)
            except Exception as e:
                self._record_failure(InterventionError("Fetch.enable", str(e)))
                return False
            self._patterns = url_patterns
            logger.info(f"Fetch interception patterns updated: {url_patterns or 'all requests'}")
            return True

        if not self._subscribed:
            self.dispatcher.subscribe(REQUEST_PAUSED_EVENT, self.on_request_paused)
            self._subscribed = True

        enabled = await self.activator.enable(Domain.FETCH, options)
        if enabled:
            self._patterns = url_patterns
            logger.info("Fetch interception enabled (auto-continue)")
        return enabled

    async def disable_interception(self) -> bool:
        if not self.interception_enabled:
            return True
        return await self.activator.disable(Domain.FETCH)

    async def on_request_paused(self, params: Dict[str, Any]) -> None:
        """Fetch.requestPaused: log the request and continue it unmodified."""
        request_id = params.get("requestId")
        url = (params.get("request") or {}).get("url", "")
        self.metrics.increment(Counter.INTERCEPTED_REQUESTS)
        logger.info(f"[CDP][Fetch] Intercepted request {request_id} -> {url}")

        if not request_id:
            self._record_failure(InterventionError("Fetch.continueRequest", "event has no requestId"))
            return

        try:
            await self.transport.send("Fetch.continueRequest", {"requestId": request_id})
        except Exception as e:
            self._record_failure(InterventionError("Fetch.continueRequest", f"{url}: {e}"))

    def _record_failure(self, error: InterventionError) -> None:
        self.metrics.increment(Counter.INTERVENTION_FAILURES)
        logger.error(f"[CDP] {error.message}")

    def __repr__(self) -> str:
        return (
            f"InterventionController(blocked={len(self._blocked_urls)}, "
            f"interception={self.interception_enabled})"
        )
