"""Thread-safe counters and bounded event logs for a DevTools session.

The MetricsAggregator is written to from the event delivery path and read
from caller threads through snapshot(). Every counter update happens under
one lock so increments are never lost; snapshots copy state under the same
lock. Recent-event lists are ring buffers capped at recent_events_limit,
the oldest entry is evicted first.
"""

import logging
import threading
from collections import defaultdict, deque
from datetime import datetime
from enum import Enum
from typing import Deque, Dict, List, Optional

from ..models.session import CompletedRequest, ConsoleLevel, MetricsSnapshot

logger = logging.getLogger(__name__)

DEFAULT_RECENT_EVENTS_LIMIT = 1000


class Counter(str, Enum):
    """Counters tracked per session."""
    TOTAL_REQUESTS = "total_requests"
    TOTAL_RESPONSES = "total_responses"
    PENDING_REQUESTS = "pending_requests"
    NETWORK_ERRORS = "network_errors"
    CONSOLE_LOGS = "console_log_count"
    JS_ERRORS = "js_error_count"
    SECURITY_EVENTS = "security_event_count"
    PAGE_EVENTS = "page_event_count"
    CORRELATION_MISSES = "correlation_misses"
    ORPHANED_REQUESTS = "orphaned_requests"
    INTERCEPTED_REQUESTS = "intercepted_requests"
    INTERVENTION_FAILURES = "intervention_failures"
    HANDLER_FAILURES = "handler_failures"
    DROPPED_EVENTS = "dropped_events"


class EventLog(str, Enum):
    """Bounded human readable event lists kept for reporting."""
    NETWORK = "recent_network"
    CONSOLE = "recent_console"
    ERRORS = "recent_errors"
    SECURITY = "recent_security"
    PAGE = "recent_page_events"


class MetricsAggregator:
    """Per-session counters, per-level console counts and recent events."""

    def __init__(self, recent_events_limit: int = DEFAULT_RECENT_EVENTS_LIMIT):
        """Initialize metrics aggregator.

        Args:
            recent_events_limit: Maximum entries kept in each recent-event list
        """
        if recent_events_limit <= 0:
            raise ValueError("recent_events_limit must be positive")

        self.recent_events_limit = recent_events_limit
        self._lock = threading.RLock()
        self._counters: Dict[Counter, int] = defaultdict(int)
        self._console_levels: Dict[str, int] = defaultdict(int)
        self._events: Dict[EventLog, Deque[str]] = {
            log: deque(maxlen=recent_events_limit) for log in EventLog
        }
        self._completed: Deque[CompletedRequest] = deque(maxlen=recent_events_limit)
        self._lifecycle: Dict[str, datetime] = {}

    def increment(self, counter: Counter, value: int = 1) -> int:
        """Increase a counter.

        Args:
            counter: Counter to increase
            value: Non-negative amount

        Returns:
            New counter value
        """
        if value < 0:
            raise ValueError("Counters can only be incremented by non-negative values")
        with self._lock:
            self._counters[counter] += value
            return self._counters[counter]

    def adjust_pending(self, delta: int) -> int:
        """Move the pending gauge up or down, never below zero.

        Returns:
            New pending value
        """
        with self._lock:
            current = self._counters[Counter.PENDING_REQUESTS] + delta
            if current < 0:
                logger.debug(f"Pending count clamped at zero (delta={delta})")
                current = 0
            self._counters[Counter.PENDING_REQUESTS] = current
            return current

    def get(self, counter: Counter) -> int:
        with self._lock:
            return self._counters[counter]

    def record_console(self, level: ConsoleLevel, summary: str) -> None:
        """Count a console entry overall and per severity, and keep its summary."""
        with self._lock:
            self._counters[Counter.CONSOLE_LOGS] += 1
            self._console_levels[level.value] += 1
            self._events[EventLog.CONSOLE].append(summary)

    def add_event(self, log: EventLog, summary: str) -> None:
        """Append a summary line to a bounded recent-event list."""
        with self._lock:
            self._events[log].append(summary)

    def record_completed(self, completed: CompletedRequest) -> None:
        """Keep a terminal request record for reporting."""
        with self._lock:
            self._completed.append(completed)

    def mark_lifecycle(self, name: str, timestamp: Optional[datetime] = None) -> None:
        """Store the last time a page lifecycle event was seen."""
        with self._lock:
            self._lifecycle[name] = timestamp or datetime.utcnow()

    def recent(self, log: EventLog) -> List[str]:
        with self._lock:
            return list(self._events[log])

    def snapshot(self) -> MetricsSnapshot:
        """Copy current state into a MetricsSnapshot."""
        with self._lock:
            counters = {counter.value: self._counters[counter] for counter in Counter}
            events = {log.value: list(self._events[log]) for log in EventLog}
            return MetricsSnapshot(
                **counters,
                **events,
                console_by_level=dict(self._console_levels),
                lifecycle=dict(self._lifecycle),
                completed_requests=[item.model_copy() for item in self._completed],
            )

    def __repr__(self) -> str:
        with self._lock:
            return (
                f"MetricsAggregator(requests={self._counters[Counter.TOTAL_REQUESTS]}, "
                f"responses={self._counters[Counter.TOTAL_RESPONSES]}, "
                f"pending={self._counters[Counter.PENDING_REQUESTS]}, "
                f"console={self._counters[Counter.CONSOLE_LOGS]})"
            )
