"""DevTools Monitor - browser remote-debugging protocol session manager.

Attaches to a running Chromium page, activates protocol domains and keeps
correlated, thread-safe request, console, error and security state for
tests and automation runs.
"""

__version__ = "1.0.0"

from .models import (
    Domain,
    ResourceType,
    ConsoleLevel,
    SessionState,
    MetricsSnapshot,
    SessionStatus,
    DomainActivationReport,
)
from .monitor import (
    DevToolsSession,
    DevToolsConfig,
    DevToolsError,
    DevToolsNotSupportedError,
    ConfigurationError,
)

__all__ = [
    "__version__",
    "DevToolsSession",
    "DevToolsConfig",
    "Domain",
    "ResourceType",
    "ConsoleLevel",
    "SessionState",
    "MetricsSnapshot",
    "SessionStatus",
    "DomainActivationReport",
    "DevToolsError",
    "DevToolsNotSupportedError",
    "ConfigurationError",
]
