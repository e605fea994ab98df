"""DevTools session data models package."""

from .session import (
    Domain,
    ResourceType,
    ConsoleLevel,
    SessionState,
    RequestOutcome,
    InFlightRequest,
    CompletedRequest,
    MetricsSnapshot,
    DomainActivationReport,
    SessionStatus,
)

__all__ = [
    # Enums
    'Domain',
    'ResourceType',
    'ConsoleLevel',
    'SessionState',
    'RequestOutcome',

    # Models
    'InFlightRequest',
    'CompletedRequest',
    'MetricsSnapshot',
    'DomainActivationReport',
    'SessionStatus',
]
