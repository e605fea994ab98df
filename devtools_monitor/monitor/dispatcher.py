"""Protocol event dispatch and the built-in per-domain event handlers.

The EventDispatcher owns one transport listener per event type and fans
each delivered event out to the handlers subscribed to it. Handler
failures are isolated: they are logged with the event type, counted, and
the remaining handlers still run. Events of domains that are not enabled
(except Fetch.requestPaused) and events arriving after close() are dropped.

The built-in handlers turn Network, Log, Runtime, Security and Page events
into CorrelationTable and MetricsAggregator updates.
"""

import asyncio
import logging
import threading
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from ..models.session import (
    CompletedRequest,
    ConsoleLevel,
    Domain,
    InFlightRequest,
    RequestOutcome,
)
from .classifier import classify
from .correlation import CorrelationTable
from .exceptions import EventHandlerError
from .filters import UrlFilter
from .metrics import Counter, EventLog, MetricsAggregator
from .transport import CDPTransport, EventHandler

logger = logging.getLogger(__name__)

# Minimum seconds between two TTL sweeps of the correlation table
DEFAULT_REAP_INTERVAL = 5.0

MAX_SUMMARY_LENGTH = 500

# A paused request stays paused until it is continued. These events can
# arrive before the Fetch.enable ack or after Fetch.disable, so they bypass
# the domain gate.
UNGATED_EVENTS = frozenset({"Fetch.requestPaused"})


def _truncate(text: Optional[str], limit: int = MAX_SUMMARY_LENGTH) -> str:
    text = text or ""
    return text if len(text) <= limit else text[:limit] + "..."


class EventDispatcher:
    """Fans protocol events out to subscribed handlers."""

    def __init__(
        self,
        transport: CDPTransport,
        metrics: MetricsAggregator,
        correlation: CorrelationTable,
        url_filter: UrlFilter,
        is_domain_enabled: Optional[Callable[[Domain], bool]] = None,
        clock: Callable[[], float] = time.monotonic,
        reap_interval: float = DEFAULT_REAP_INTERVAL,
    ):
        """Initialize event dispatcher.

        Args:
            transport: Attached protocol session
            metrics: Session metrics aggregator
            correlation: Session correlation table
            url_filter: Selective filter for detailed logs
            is_domain_enabled: Gate consulted before delivering an event;
                None delivers events of every domain
            clock: Monotonic clock in seconds, used for request durations
            reap_interval: Minimum seconds between orphan sweeps
        """
        self.transport = transport
        self.metrics = metrics
        self.correlation = correlation
        self.url_filter = url_filter
        self._is_domain_enabled = is_domain_enabled
        self._clock = clock
        self._reap_interval = reap_interval
        self._last_reap = clock()

        self._lock = threading.Lock()
        self._handlers: Dict[str, List[Callable[[Dict[str, Any]], Any]]] = {}
        self._listeners: Dict[str, EventHandler] = {}
        self._registered_domains: Set[Domain] = set()
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    # ------------------------------------------------------------------
    # Subscription management
    # ------------------------------------------------------------------

    def subscribe(self, event: str, handler: Callable[[Dict[str, Any]], Any]) -> None:
        """Subscribe a handler to a protocol event.

        Handlers receive the event params dict. A handler may be a
        coroutine function, its coroutine is scheduled on the running loop.

        Args:
            event: Protocol event name, e.g. 'Network.responseReceived'
            handler: Callable invoked for every delivered event
        """
        with self._lock:
            if self._closed:
                logger.warning(f"Ignoring subscription to {event} on a closed dispatcher")
                return
            handlers = self._handlers.setdefault(event, [])
            handlers.append(handler)
            needs_listener = event not in self._listeners
            if needs_listener:
                listener = self._make_listener(event)
                self._listeners[event] = listener

        if needs_listener:
            self.transport.on(event, listener)
            logger.debug(f"Listening for {event}")

    def unsubscribe(self, event: str, handler: Callable[[Dict[str, Any]], Any]) -> None:
        """Remove a handler. The transport listener stays registered."""
        with self._lock:
            handlers = self._handlers.get(event)
            if handlers and handler in handlers:
                handlers.remove(handler)

    def set_domain_gate(self, is_domain_enabled: Optional[Callable[[Domain], bool]]) -> None:
        """Set the check that decides whether a domain's events are delivered."""
        self._is_domain_enabled = is_domain_enabled

    def handler_count(self, event: str) -> int:
        with self._lock:
            return len(self._handlers.get(event, []))

    def _make_listener(self, event: str) -> EventHandler:
        def listener(params: Dict[str, Any]) -> None:
            self.dispatch(event, params)
        return listener

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def dispatch(self, event: str, params: Optional[Dict[str, Any]]) -> None:
        """Deliver one event to its handlers in subscription order."""
        if self._closed:
            self.metrics.increment(Counter.DROPPED_EVENTS)
            logger.debug(f"Dropped {event} delivered after close")
            return

        domain = Domain.from_event(event)
        if event not in UNGATED_EVENTS and domain is not None \
                and self._is_domain_enabled is not None \
                and not self._is_domain_enabled(domain):
            self.metrics.increment(Counter.DROPPED_EVENTS)
            logger.debug(f"Dropped {event}: {domain.value} domain is not enabled")
            return

        with self._lock:
            handlers = list(self._handlers.get(event, []))

        params = params or {}
        for handler in handlers:
            try:
                result = handler(params)
                if asyncio.iscoroutine(result):
                    self._spawn(event, result)
            except Exception as e:
                self._record_handler_failure(event, e)

    def _spawn(self, event: str, coro: Awaitable[Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            self._record_handler_failure(event, RuntimeError("no running event loop for async handler"))
            return

        task = loop.create_task(coro)
        self._tasks.add(task)

        def _done(finished: asyncio.Task) -> None:
            self._tasks.discard(finished)
            if finished.cancelled():
                return
            error = finished.exception()
            if error is not None:
                self._record_handler_failure(event, error)

        task.add_done_callback(_done)

    def _record_handler_failure(self, event: str, error: BaseException) -> None:
        self.metrics.increment(Counter.HANDLER_FAILURES)
        failure = EventHandlerError(event, str(error))
        logger.error(failure.message, exc_info=error)

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Built-in domain handlers
    # ------------------------------------------------------------------

    def register_domain_handlers(self, domain: Domain) -> None:
        """Subscribe the built-in handlers of a domain, once per domain."""
        with self._lock:
            if domain in self._registered_domains:
                return
            self._registered_domains.add(domain)

        for event, handler in self._domain_handlers().get(domain, []):
            self.subscribe(event, handler)

    def _domain_handlers(self) -> Dict[Domain, List[tuple]]:
        return {
            Domain.NETWORK: [
                ("Network.requestWillBeSent", self.on_request_sent),
                ("Network.responseReceived", self.on_response_received),
                ("Network.loadingFailed", self.on_loading_failed),
            ],
            Domain.LOG: [
                ("Log.entryAdded", self.on_log_entry),
                ("Console.messageAdded", self.on_console_message),
            ],
            Domain.RUNTIME: [
                ("Runtime.exceptionThrown", self.on_exception_thrown),
                ("Runtime.consoleAPICalled", self.on_console_api_called),
            ],
            Domain.SECURITY: [
                ("Security.securityStateChanged", self.on_security_state_changed),
                ("Security.visibleSecurityStateChanged", self.on_security_state_changed),
            ],
            Domain.PAGE: [
                ("Page.loadEventFired", self.on_load_event),
                ("Page.domContentEventFired", self.on_dom_content_event),
            ],
        }

    def on_request_sent(self, params: Dict[str, Any]) -> None:
        """Network.requestWillBeSent: start correlation and count the request."""
        request_id = str(params.get("requestId", ""))
        request = params.get("request") or {}
        url = request.get("url", "")
        method = request.get("method", "GET")
        resource_type = classify(url)

        entry = InFlightRequest(
            request_id=request_id,
            url=url,
            method=method,
            resource_type=resource_type,
            started_at=self._clock(),
        )
        if self.correlation.record_start(request_id, entry):
            self.metrics.adjust_pending(1)
        total = self.metrics.increment(Counter.TOTAL_REQUESTS)

        if self.url_filter.should_log(url):
            summary = f"{entry.method} {url} ({resource_type.value})"
            self.metrics.add_event(EventLog.NETWORK, summary)
            logger.info(f"[CDP][Network] Request #{total} {request_id}: {summary}")

        self._maybe_reap()

    def on_response_received(self, params: Dict[str, Any]) -> None:
        """Network.responseReceived: close correlation and count the response."""
        request_id = str(params.get("requestId", ""))
        response = params.get("response") or {}
        status = response.get("status")
        status_code = int(status) if status is not None else None
        status_text = response.get("statusText")

        entry = self.correlation.take_if_present(request_id)
        url = response.get("url") or (entry.url if entry else None)

        if entry is not None:
            self.metrics.adjust_pending(-1)
            duration_ms = (self._clock() - entry.started_at) * 1000
            completed = CompletedRequest(
                request_id=request_id,
                url=url,
                method=entry.method,
                resource_type=entry.resource_type,
                status_code=status_code,
                status_text=status_text,
                duration_ms=duration_ms,
                outcome=RequestOutcome.MATCHED,
            )
        else:
            self.metrics.increment(Counter.CORRELATION_MISSES)
            completed = CompletedRequest(
                request_id=request_id,
                url=url,
                resource_type=classify(url),
                status_code=status_code,
                status_text=status_text,
                outcome=RequestOutcome.CORRELATION_MISS,
            )

        self.metrics.increment(Counter.TOTAL_RESPONSES)
        self.metrics.record_completed(completed)

        if not self.url_filter.should_log(url):
            return

        if completed.duration_ms is not None:
            summary = f"Response {status_code} {url} ({completed.duration_ms:.0f}ms)"
        else:
            summary = f"Response {status_code} {url}"
        self.metrics.add_event(EventLog.NETWORK, summary)

        if status_code is not None and status_code >= 400:
            logger.warning(f"[CDP][Network] {summary} [{request_id}]")
        else:
            logger.info(f"[CDP][Network] {summary} [{request_id}]")

    def on_loading_failed(self, params: Dict[str, Any]) -> None:
        """Network.loadingFailed: close correlation and count the error. Never filtered."""
        request_id = str(params.get("requestId", ""))
        error_text = params.get("errorText") or "Unknown error"
        if params.get("blockedReason"):
            error_text = f"{error_text} (blocked: {params['blockedReason']})"
        elif params.get("canceled"):
            error_text = f"{error_text} (canceled)"

        entry = self.correlation.take_if_present(request_id)
        if entry is not None:
            self.metrics.adjust_pending(-1)
            duration_ms = (self._clock() - entry.started_at) * 1000
            url = entry.url
        else:
            self.metrics.increment(Counter.CORRELATION_MISSES)
            duration_ms = None
            url = None

        self.metrics.increment(Counter.NETWORK_ERRORS)
        self.metrics.record_completed(CompletedRequest(
            request_id=request_id,
            url=url,
            method=entry.method if entry else None,
            resource_type=entry.resource_type if entry else classify(url),
            error_text=error_text,
            duration_ms=duration_ms,
            outcome=RequestOutcome.FAILED,
        ))

        summary = f"Failed {url or request_id}: {error_text}"
        self.metrics.add_event(EventLog.NETWORK, summary)
        self.metrics.add_event(EventLog.ERRORS, f"Network: {summary}")
        logger.error(f"[CDP][Network] {summary} [{request_id}]")

    def on_log_entry(self, params: Dict[str, Any]) -> None:
        """Log.entryAdded"""
        self._record_console_entry(params.get("entry") or {})

    def on_console_message(self, params: Dict[str, Any]) -> None:
        """Console.messageAdded"""
        self._record_console_entry(params.get("message") or {})

    def _record_console_entry(self, entry: Dict[str, Any]) -> None:
        level = ConsoleLevel.normalize(entry.get("level"))
        source = entry.get("source", "other")
        text = _truncate(entry.get("text"))

        self.metrics.record_console(level, f"[{level.value.upper()}] {text} (Source: {source})")

        if level == ConsoleLevel.ERROR:
            logger.error(f"[CDP][Console][{source}] {text}")
        elif level == ConsoleLevel.WARNING:
            logger.warning(f"[CDP][Console][{source}] {text}")
        elif level in (ConsoleLevel.INFO, ConsoleLevel.LOG):
            logger.info(f"[CDP][Console][{source}] {text}")
        else:
            logger.debug(f"[CDP][Console][{level.value}][{source}] {text}")

    def on_exception_thrown(self, params: Dict[str, Any]) -> None:
        """Runtime.exceptionThrown: count the JS error and keep a stack summary."""
        details = params.get("exceptionDetails") or {}
        exception = details.get("exception") or {}
        description = exception.get("description") or ""
        message = description.splitlines()[0] if description else details.get("text", "Uncaught exception")

        frames = (details.get("stackTrace") or {}).get("callFrames") or []
        if frames:
            stack = " <- ".join(
                f"{frame.get('functionName') or '<anonymous>'} "
                f"({frame.get('url', '')}:{frame.get('lineNumber', 0) + 1}:{frame.get('columnNumber', 0) + 1})"
                for frame in frames[:5]
            )
        elif details.get("url"):
            stack = f"{details['url']}:{details.get('lineNumber', 0) + 1}"
        else:
            stack = "unavailable"

        count = self.metrics.increment(Counter.JS_ERRORS)
        self.metrics.add_event(EventLog.ERRORS, _truncate(f"JS Error: {message}\nStack: {stack}"))
        logger.error(f"[CDP][Runtime] JavaScript exception #{count}: {_truncate(message)}")

    def on_console_api_called(self, params: Dict[str, Any]) -> None:
        """Runtime.consoleAPICalled, logged only so entries are not counted twice."""
        call_type = params.get("type", "log")
        args = params.get("args") or []
        values = [
            str(arg.get("value", arg.get("description", arg.get("type", ""))))
            for arg in args
        ]
        logger.debug(f"[CDP][Runtime] console.{call_type}: {_truncate(' '.join(values))}")

    def on_security_state_changed(self, params: Dict[str, Any]) -> None:
        """Security.securityStateChanged / visibleSecurityStateChanged"""
        state = params.get("securityState")
        if state is None:
            state = (params.get("visibleSecurityState") or {}).get("securityState", "unknown")
        summary = f"Security state changed: {state}"
        if params.get("summary"):
            summary = f"{summary} ({params['summary']})"

        self.metrics.increment(Counter.SECURITY_EVENTS)
        self.metrics.add_event(EventLog.SECURITY, summary)
        logger.info(f"[CDP][Security] {summary}")

    def on_load_event(self, params: Dict[str, Any]) -> None:
        """Page.loadEventFired"""
        self._record_page_event("load_event", "Page load event fired")

    def on_dom_content_event(self, params: Dict[str, Any]) -> None:
        """Page.domContentEventFired"""
        self._record_page_event("dom_content_loaded", "DOM content loaded")

    def _record_page_event(self, name: str, summary: str) -> None:
        self.metrics.mark_lifecycle(name)
        self.metrics.increment(Counter.PAGE_EVENTS)
        self.metrics.add_event(EventLog.PAGE, summary)
        logger.info(f"[CDP][Page] {summary}")

    # ------------------------------------------------------------------
    # Orphaned requests
    # ------------------------------------------------------------------

    def _maybe_reap(self) -> None:
        now = self._clock()
        if now - self._last_reap < self._reap_interval:
            return
        self._last_reap = now
        self.reap_orphans()

    def reap_orphans(self) -> int:
        """Evict in-flight entries older than the correlation TTL.

        Returns:
            Number of evicted entries
        """
        evicted = self.correlation.evict_expired()
        self._record_orphans(evicted, "exceeded correlation TTL")
        return len(evicted)

    def finalize_orphans(self) -> int:
        """Drain every in-flight entry, recording each one as orphaned.

        Returns:
            Number of orphaned entries
        """
        remaining = self.correlation.drain()
        self._record_orphans(remaining, "session closed before a terminal event")
        return len(remaining)

    def _record_orphans(self, entries: List[InFlightRequest], reason: str) -> None:
        for entry in entries:
            self.metrics.adjust_pending(-1)
            self.metrics.increment(Counter.ORPHANED_REQUESTS)
            self.metrics.record_completed(CompletedRequest(
                request_id=entry.request_id,
                url=entry.url,
                method=entry.method,
                resource_type=entry.resource_type,
                outcome=RequestOutcome.ORPHANED,
            ))
            logger.warning(
                f"[CDP][Network] Orphaned request {entry.request_id}: "
                f"{entry.method} {entry.url} ({reason})"
            )

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def close(self, timeout: float = 1.0) -> None:
        """Stop delivery, detach transport listeners and settle handler tasks."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            listeners = list(self._listeners.items())
            self._listeners.clear()
            self._handlers.clear()
            self._registered_domains.clear()

        for event, listener in listeners:
            try:
                self.transport.remove_listener(event, listener)
            except Exception as e:
                logger.debug(f"Failed to remove listener for {event}: {e}")

        tasks = list(self._tasks)
        if tasks:
            done, pending = await asyncio.wait(tasks, timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                logger.debug(f"Cancelled {len(pending)} unfinished handler tasks")

        logger.debug("Event dispatcher closed")

    def __repr__(self) -> str:
        with self._lock:
            events = len(self._listeners)
        return f"EventDispatcher(events={events}, closed={self._closed}, tasks={len(self._tasks)})"
