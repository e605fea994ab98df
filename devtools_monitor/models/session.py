"""Pydantic models for DevTools protocol session state and metrics.

This module defines the data models shared by the session monitor
components, including the protocol domains, resource classification,
in-flight request bookkeeping and the point-in-time metrics snapshot.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Any
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator


class Domain(str, Enum):
    """Protocol domains the monitor knows how to activate."""
    NETWORK = "Network"
    LOG = "Log"
    RUNTIME = "Runtime"
    PERFORMANCE = "Performance"
    SECURITY = "Security"
    PAGE = "Page"
    DOM = "DOM"
    FETCH = "Fetch"

    @classmethod
    def from_event(cls, event: str) -> Optional["Domain"]:
        """Resolve the owning domain of a protocol event name.

        Args:
            event: Event name such as 'Network.requestWillBeSent'

        Returns:
            Owning Domain, or None for events outside the known domains
        """
        prefix = event.split(".", 1)[0]
        if prefix == "Console":
            return cls.LOG
        try:
            return cls(prefix)
        except ValueError:
            return None

    @classmethod
    def parse(cls, value: str) -> "Domain":
        """Parse a domain from a case-insensitive name ('network', 'Console')."""
        lowered = value.strip().lower()
        if lowered == "console":
            return cls.LOG
        for domain in cls:
            if domain.value.lower() == lowered:
                return domain
        raise ValueError(f"Unknown protocol domain: {value}")


class ResourceType(str, Enum):
    """Coarse content category of a network fetch."""
    SCRIPT = "script"
    STYLESHEET = "stylesheet"
    IMAGE = "image"
    FONT = "font"
    MEDIA = "media"
    DATA = "data"
    DOCUMENT = "document"
    UNKNOWN = "unknown"


class ConsoleLevel(str, Enum):
    """Console/log entry severity levels."""
    VERBOSE = "verbose"
    DEBUG = "debug"
    INFO = "info"
    LOG = "log"
    WARNING = "warning"
    ERROR = "error"

    @classmethod
    def normalize(cls, value: Optional[str]) -> "ConsoleLevel":
        """Map the protocol's level spellings onto ConsoleLevel."""
        if not value:
            return cls.LOG
        lowered = str(value).lower()
        if lowered == "warn":
            return cls.WARNING
        try:
            return cls(lowered)
        except ValueError:
            return cls.LOG


class SessionState(str, Enum):
    """Lifecycle state of a protocol session."""
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    CLOSED = "closed"


class RequestOutcome(str, Enum):
    """How a terminal network event was resolved."""
    MATCHED = "matched"
    CORRELATION_MISS = "correlation_miss"
    FAILED = "failed"
    ORPHANED = "orphaned"


class InFlightRequest(BaseModel):
    """A request seen in 'request sent' and awaiting its terminal event."""

    request_id: str = Field(description="Browser assigned request identifier")
    url: str = Field(description="Target URL")
    method: str = Field(default="GET", description="HTTP method")
    resource_type: ResourceType = Field(
        default=ResourceType.UNKNOWN,
        description="Classified resource type"
    )
    started_at: float = Field(description="Monotonic start time in seconds")
    wall_time: datetime = Field(
        default_factory=datetime.utcnow,
        description="Wall clock time the request was seen"
    )

    @field_validator('method')
    @classmethod
    def normalize_method(cls, v):
        return (v or "GET").upper()


class CompletedRequest(BaseModel):
    """A terminal network event, correlated with its start when possible."""

    request_id: str = Field(description="Browser assigned request identifier")
    url: Optional[str] = Field(default=None, description="Request URL")
    method: Optional[str] = Field(default=None, description="HTTP method")
    resource_type: ResourceType = Field(default=ResourceType.UNKNOWN)
    status_code: Optional[int] = Field(default=None, description="HTTP status code")
    status_text: Optional[str] = Field(default=None, description="HTTP status text")
    error_text: Optional[str] = Field(default=None, description="Failure reason")
    duration_ms: Optional[float] = Field(
        default=None,
        description="Time between request sent and terminal event, None on a miss"
    )
    outcome: RequestOutcome = Field(default=RequestOutcome.MATCHED)

    @property
    def host(self) -> str:
        """Extract host from URL."""
        return urlparse(self.url).netloc if self.url else ""

    @property
    def is_successful(self) -> bool:
        """Check if the request completed with a 2xx/3xx status."""
        return (
            self.outcome == RequestOutcome.MATCHED and
            self.status_code is not None and
            200 <= self.status_code < 400
        )


class MetricsSnapshot(BaseModel):
    """Point-in-time view of the session's counters and recent events."""

    total_requests: int = 0
    total_responses: int = 0
    pending_requests: int = 0
    network_errors: int = 0
    console_log_count: int = 0
    console_by_level: Dict[str, int] = Field(default_factory=dict)
    js_error_count: int = 0
    security_event_count: int = 0
    page_event_count: int = 0
    correlation_misses: int = 0
    orphaned_requests: int = 0
    intercepted_requests: int = 0
    intervention_failures: int = 0
    handler_failures: int = 0
    dropped_events: int = 0

    lifecycle: Dict[str, datetime] = Field(
        default_factory=dict,
        description="Last known page lifecycle timestamps"
    )
    completed_requests: List[CompletedRequest] = Field(default_factory=list)
    recent_network: List[str] = Field(default_factory=list)
    recent_console: List[str] = Field(default_factory=list)
    recent_errors: List[str] = Field(default_factory=list)
    recent_security: List[str] = Field(default_factory=list)
    recent_page_events: List[str] = Field(default_factory=list)

    captured_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def error_level_count(self) -> int:
        """Number of console entries logged at ERROR level."""
        return self.console_by_level.get(ConsoleLevel.ERROR.value, 0)

    @property
    def warning_level_count(self) -> int:
        """Number of console entries logged at WARNING level."""
        return self.console_by_level.get(ConsoleLevel.WARNING.value, 0)

    def to_report(self) -> Dict[str, Any]:
        """Plain dict suitable for JSON export or report templating."""
        data = self.model_dump(mode="json")
        data["error_level_count"] = self.error_level_count
        return data


class DomainActivationReport(BaseModel):
    """Per-domain outcome of an activation pass."""

    results: Dict[Domain, bool] = Field(default_factory=dict)
    errors: Dict[Domain, str] = Field(default_factory=dict)

    @property
    def enabled(self) -> List[Domain]:
        return [domain for domain, ok in self.results.items() if ok]

    @property
    def failed(self) -> List[Domain]:
        return [domain for domain, ok in self.results.items() if not ok]

    @property
    def all_enabled(self) -> bool:
        return bool(self.results) and all(self.results.values())

    def __getitem__(self, domain: Domain) -> bool:
        return self.results.get(domain, False)


class SessionStatus(BaseModel):
    """Read-only status of a session manager."""

    session_id: str
    initialized: bool = False
    state: SessionState = SessionState.UNINITIALIZED
    domains_enabled: List[Domain] = Field(default_factory=list)
    interception_enabled: bool = False
    blocked_urls: List[str] = Field(default_factory=list)
    filter_urls: List[str] = Field(default_factory=list)
    browser_version: Optional[str] = None
    metrics: MetricsSnapshot = Field(default_factory=MetricsSnapshot)
