"""In-flight request correlation keyed by protocol request id.

The CorrelationTable pairs 'request sent' events with their terminal
'response received' / 'loading failed' events. Inserts and takes happen
on the event delivery path while status readers may inspect the table at
any time, so every operation runs under a single lock.
"""

import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from ..models.session import InFlightRequest

logger = logging.getLogger(__name__)


class CorrelationTable:
    """Thread-safe request id -> InFlightRequest store with TTL eviction."""

    def __init__(
        self,
        ttl_seconds: Optional[float] = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize correlation table.

        Args:
            ttl_seconds: Age after which an unmatched entry is considered
                orphaned and evicted. None disables eviction.
            clock: Monotonic clock used for ages, in seconds
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, InFlightRequest] = {}

    def record_start(self, request_id: str, meta: InFlightRequest) -> bool:
        """Record the start of a request.

        A second start for an id that is still in flight (a redirect hop)
        replaces the stored entry, so an id is present at most once.

        Args:
            request_id: Protocol request id
            meta: Request metadata captured at 'request sent'

        Returns:
            True if the id was not already in flight
        """
        with self._lock:
            is_new = request_id not in self._entries
            self._entries[request_id] = meta
        if not is_new:
            logger.debug(f"Replaced in-flight entry for request {request_id}")
        return is_new

    def take_if_present(self, request_id: str) -> Optional[InFlightRequest]:
        """Remove and return the entry for a request id.

        Exactly-once: concurrent takers for the same id get the entry at
        most once between them.

        Args:
            request_id: Protocol request id

        Returns:
            The stored entry, or None if the id is unknown or already taken
        """
        with self._lock:
            return self._entries.pop(request_id, None)

    def peek(self, request_id: str) -> Optional[InFlightRequest]:
        """Return the entry for a request id without consuming it."""
        with self._lock:
            return self._entries.get(request_id)

    def evict_expired(self) -> List[InFlightRequest]:
        """Remove entries older than the TTL.

        Returns:
            Evicted entries, oldest first
        """
        if self.ttl_seconds is None:
            return []

        cutoff = self._clock() - self.ttl_seconds
        with self._lock:
            expired = [
                request_id for request_id, entry in self._entries.items()
                if entry.started_at <= cutoff
            ]
            evicted = [self._entries.pop(request_id) for request_id in expired]

        evicted.sort(key=lambda entry: entry.started_at)
        return evicted

    def drain(self) -> List[InFlightRequest]:
        """Remove and return every remaining entry, oldest first."""
        with self._lock:
            remaining = list(self._entries.values())
            self._entries.clear()
        remaining.sort(key=lambda entry: entry.started_at)
        return remaining

    def snapshot(self) -> List[InFlightRequest]:
        """Copy of the current in-flight entries."""
        with self._lock:
            return list(self._entries.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, request_id: object) -> bool:
        with self._lock:
            return request_id in self._entries

    def __repr__(self) -> str:
        return f"CorrelationTable(in_flight={len(self)}, ttl_seconds={self.ttl_seconds})"
