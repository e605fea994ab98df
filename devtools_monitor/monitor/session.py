"""DevTools session lifecycle management.

This module provides the DevToolsSession facade that attaches to a browser
page, activates protocol domains, exposes filtering and intervention
controls, and reports aggregate status. Apart from open() raising
DevToolsNotSupportedError, no operation raises: failures are logged and
surface as False results, report entries or counters.
"""

import asyncio
import logging
import threading
import time
import uuid
from typing import Any, Callable, Dict, Iterable, Optional, Union

from playwright.async_api import Page

from ..models.session import (
    Domain,
    DomainActivationReport,
    MetricsSnapshot,
    SessionState,
    SessionStatus,
)
from .config import DevToolsConfig
from .correlation import CorrelationTable
from .dispatcher import EventDispatcher
from .domains import DomainActivator
from .exceptions import DevToolsError
from .filters import UrlFilter
from .intervention import InterventionController
from .metrics import MetricsAggregator
from .transport import CDPTransport, PlaywrightCDPTransport

logger = logging.getLogger(__name__)


class DevToolsSession:
    """One protocol session: domains, event state and interventions."""

    def __init__(
        self,
        config: Optional[DevToolsConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize an unopened session.

        Args:
            config: Monitor configuration, defaults to DevToolsConfig()
            clock: Monotonic clock in seconds used for request durations
        """
        self.config = config or DevToolsConfig()
        self.session_id = uuid.uuid4().hex[:12]
        self.state = SessionState.UNINITIALIZED
        self.browser_version: Optional[str] = None

        self._clock = clock
        self._state_lock = threading.Lock()

        # Metrics and filter exist before open() so status() and snapshot()
        # are always readable
        self.metrics = MetricsAggregator(self.config.recent_events_limit)
        self.correlation = CorrelationTable(self.config.correlation_ttl_seconds, clock)
        self.url_filter = UrlFilter(self.config.filter_urls, self.config.exclude_static_resources)

        self.transport: Optional[CDPTransport] = None
        self.dispatcher: Optional[EventDispatcher] = None
        self.activator: Optional[DomainActivator] = None
        self.intervention: Optional[InterventionController] = None

    @property
    def is_active(self) -> bool:
        return self.state == SessionState.ACTIVE

    async def open(self, target: Union[Page, CDPTransport]) -> "DevToolsSession":
        """Attach to a page (or an existing transport) and go Active.

        No domain is enabled yet; use enable(), enable_all() or
        start_monitoring().

        Args:
            target: Playwright page to attach to, or an attached CDPTransport

        Returns:
            This session

        Raises:
            DevToolsNotSupportedError: If the browser has no protocol session
            DevToolsError: If the session was already closed
        """
        with self._state_lock:
            if self.state == SessionState.ACTIVE:
                logger.warning(f"DevTools session {self.session_id} is already open")
                return self
            if self.state == SessionState.CLOSED:
                raise DevToolsError(
                    f"DevTools session {self.session_id} is closed and cannot be reopened",
                    error_code="session_closed"
                )

        logger.info(f"Initializing DevTools session {self.session_id}")
        if isinstance(target, CDPTransport):
            transport = target
        else:
            transport = await PlaywrightCDPTransport.attach(target)

        self.transport = transport
        self.dispatcher = EventDispatcher(
            transport,
            self.metrics,
            self.correlation,
            self.url_filter,
            clock=self._clock,
        )
        self.activator = DomainActivator(transport, self.dispatcher)
        self.dispatcher.set_domain_gate(self.activator.is_enabled)
        self.intervention = InterventionController(
            transport, self.dispatcher, self.activator, self.metrics
        )

        with self._state_lock:
            self.state = SessionState.ACTIVE

        if self.config.probe_browser_version:
            await self._probe_browser_version()

        logger.info(f"DevTools session {self.session_id} created successfully")
        return self

    async def _probe_browser_version(self) -> None:
        try:
            result = await self.transport.send("Browser.getVersion")
        except Exception as e:
            logger.warning(f"Could not detect browser version: {e}")
            return
        self.browser_version = result.get("product")
        logger.info(f"Browser version detected: {self.browser_version}")

    def _require_active(self, operation: str) -> bool:
        if self.state != SessionState.ACTIVE:
            logger.warning(f"DevTools session not active ({self.state.value}), cannot {operation}")
            return False
        return True

    # ------------------------------------------------------------------
    # Domains
    # ------------------------------------------------------------------

    async def enable(self, domain: Domain, options: Optional[Dict[str, Any]] = None) -> bool:
        """Enable one domain. Fetch is routed through enable_interception()
        with the configured interception patterns."""
        if not self._require_active(f"enable {domain.value}"):
            return False
        if domain == Domain.FETCH:
            return await self.enable_interception(self.config.interception_patterns)
        return await self.activator.enable(domain, options)

    async def enable_all(
        self,
        domains: Optional[Iterable[Domain]] = None,
        options: Optional[Dict[Domain, Dict[str, Any]]] = None,
    ) -> DomainActivationReport:
        """Enable several domains and report each outcome.

        Always returns a full report, even when the session is not active
        or every domain fails.

        Args:
            domains: Domains to enable, defaults to the configured domains
            options: Optional enable parameters per domain
        """
        requested = list(domains) if domains is not None else list(self.config.domains)

        if not self._require_active("enable domains"):
            return DomainActivationReport(
                results={domain: False for domain in requested},
                errors={domain: "session not active" for domain in requested},
            )

        monitoring = [d for d in requested if d != Domain.FETCH]
        report = await self.activator.enable_all(monitoring, options)
        if Domain.FETCH in requested:
            report.results[Domain.FETCH] = await self.enable_interception(
                self.config.interception_patterns
            )
            if not report.results[Domain.FETCH]:
                report.errors[Domain.FETCH] = "interception could not be enabled"
        return report

    async def disable(self, domain: Domain) -> bool:
        if not self._require_active(f"disable {domain.value}"):
            return False
        return await self.activator.disable(domain)

    async def start_monitoring(self) -> DomainActivationReport:
        """Apply the configuration: domains, block-list and interception."""
        report = await self.enable_all(self.config.domains)
        if self.config.block_urls:
            await self.block_urls(self.config.block_urls)
        if self.config.enable_interception:
            report.results[Domain.FETCH] = await self.enable_interception(
                self.config.interception_patterns
            )
        return report

    # ------------------------------------------------------------------
    # Filtering and intervention
    # ------------------------------------------------------------------

    def set_filter(self, urls: Optional[Iterable[str]]) -> None:
        """Restrict detailed logs to URLs containing one of the substrings.

        Allowed at any time, including before open(). Counters are unaffected.
        """
        self.url_filter.set_urls(urls)

    async def block_urls(self, patterns: Iterable[str]) -> bool:
        """Replace the browser's URL block-list."""
        if not self._require_active("block URLs"):
            return False
        return await self.intervention.block_urls(patterns)

    async def unblock_urls(self) -> bool:
        if not self._require_active("unblock URLs"):
            return False
        return await self.intervention.unblock_urls()

    async def enable_interception(self, patterns: Optional[Iterable[str]] = None) -> bool:
        """Pause matching requests and continue them unmodified."""
        if not self._require_active("enable interception"):
            return False
        return await self.intervention.enable_interception(patterns)

    async def disable_interception(self) -> bool:
        if not self._require_active("disable interception"):
            return False
        return await self.intervention.disable_interception()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_performance_metrics(self) -> Dict[str, float]:
        """Fetch the browser's performance counters (Performance.getMetrics).

        Returns:
            Metric name to value, empty when unavailable
        """
        if not self._require_active("read performance metrics"):
            return {}
        if not self.activator.is_enabled(Domain.PERFORMANCE):
            logger.warning("Performance domain is not enabled")
            return {}

        try:
            result = await self.transport.send("Performance.getMetrics")
        except Exception as e:
            logger.error(f"Failed to get performance metrics: {e}")
            return {}

        return {
            metric["name"]: metric["value"]
            for metric in result.get("metrics", [])
            if "name" in metric and "value" in metric
        }

    async def wait_for_network_idle(
        self,
        idle_ms: int = 500,
        timeout_ms: int = 30000,
        poll_interval_ms: int = 50,
    ) -> bool:
        """Wait until no request has been in flight for idle_ms.

        Returns:
            True once the network is idle, False on timeout or if the
            session is not active
        """
        if not self._require_active("wait for network idle"):
            return False

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000
        idle_since: Optional[float] = None

        while self.is_active:
            now = loop.time()
            if len(self.correlation) == 0:
                if idle_since is None:
                    idle_since = now
                if (now - idle_since) * 1000 >= idle_ms:
                    logger.info("Network is idle")
                    return True
            else:
                idle_since = None

            if now >= deadline:
                logger.warning(
                    f"Network not idle after {timeout_ms}ms ({len(self.correlation)} in flight)"
                )
                return False
            await asyncio.sleep(poll_interval_ms / 1000)

        return False

    def snapshot(self) -> MetricsSnapshot:
        """Point-in-time metrics, readable in any state."""
        return self.metrics.snapshot()

    def status(self) -> SessionStatus:
        """Read-only session status, safe to call in any state."""
        domains = self.activator.enabled if self.activator is not None else set()
        return SessionStatus(
            session_id=self.session_id,
            initialized=self.state == SessionState.ACTIVE,
            state=self.state,
            domains_enabled=sorted(domains, key=lambda d: d.value),
            interception_enabled=Domain.FETCH in domains,
            blocked_urls=self.intervention.blocked_urls if self.intervention else [],
            filter_urls=self.url_filter.urls,
            browser_version=self.browser_version,
            metrics=self.snapshot(),
        )

    def summary(self) -> str:
        """Human readable multi-line status report."""
        status = self.status()
        metrics = status.metrics
        enabled = set(status.domains_enabled)

        def flag(domain: Domain) -> str:
            return "on" if domain in enabled else "off"

        lines = [
            "=== Chrome DevTools Protocol Summary ===",
            f"Session: {status.session_id} ({status.state.value})",
            f"Browser: {status.browser_version or 'unknown'}",
            f"Network Monitoring: {flag(Domain.NETWORK)} "
            f"(Requests: {metrics.total_requests}, Responses: {metrics.total_responses}, "
            f"Pending: {metrics.pending_requests}, Errors: {metrics.network_errors})",
            f"Console Monitoring: {flag(Domain.LOG)} "
            f"(Logs: {metrics.console_log_count}, Errors: {metrics.error_level_count})",
            f"Runtime Monitoring: {flag(Domain.RUNTIME)} (JS Errors: {metrics.js_error_count})",
            f"Security Monitoring: {flag(Domain.SECURITY)} (Events: {metrics.security_event_count})",
            f"Performance Monitoring: {flag(Domain.PERFORMANCE)}",
            f"Page Monitoring: {flag(Domain.PAGE)} (Events: {metrics.page_event_count})",
            f"DOM Monitoring: {flag(Domain.DOM)}",
            f"Interception: {flag(Domain.FETCH)} (Intercepted: {metrics.intercepted_requests})",
        ]
        if status.blocked_urls:
            lines.append(f"Blocked URLs: {', '.join(status.blocked_urls)}")
        if status.filter_urls:
            lines.append(f"Filter: {', '.join(status.filter_urls)}")
        if metrics.correlation_misses or metrics.orphaned_requests:
            lines.append(
                f"Unmatched: {metrics.correlation_misses} terminal events without a start, "
                f"{metrics.orphaned_requests} orphaned requests"
            )
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Tear the session down. Idempotent and never raises.

        Safe before open() and concurrently with event delivery: events
        arriving after this point are dropped.
        """
        with self._state_lock:
            previous = self.state
            self.state = SessionState.CLOSED

        if previous != SessionState.ACTIVE:
            logger.debug(f"DevTools session {self.session_id} close skipped ({previous.value})")
            return

        if self.dispatcher is not None:
            try:
                await self.dispatcher.close()
            except Exception as e:
                logger.error(f"Failed to stop event dispatch: {e}")
            orphaned = self.dispatcher.finalize_orphans()
            if orphaned:
                logger.warning(f"{orphaned} requests never completed before close")

        if self.activator is not None:
            self.activator.reset()

        if self.transport is not None:
            try:
                await self.transport.detach()
                logger.info(f"DevTools session {self.session_id} closed")
            except Exception as e:
                logger.error(f"Failed to close DevTools session: {e}")
        self.transport = None

    async def __aenter__(self) -> "DevToolsSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"DevToolsSession(id={self.session_id}, state={self.state.value})"
