"""DevTools session monitor exceptions.

Only DevToolsNotSupportedError (raised by DevToolsSession.open) and
ConfigurationError (raised by configuration loading) are allowed to reach
callers. The remaining types are never raised: components build them at
the point of failure to carry a uniform message, error code and details
into the log line, and record the failure as a report entry or counter.
"""

from typing import Optional


class DevToolsError(Exception):
    """Base DevTools monitor error."""

    def __init__(
        self,
        message: str = "DevTools operation failed",
        error_code: str = "devtools_error",
        details: Optional[dict] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class DevToolsNotSupportedError(DevToolsError):
    """Raised when the browser does not expose a protocol session."""

    def __init__(
        self,
        message: str = "DevTools protocol is not supported by this browser",
        browser: Optional[str] = None
    ):
        super().__init__(
            message=message,
            error_code="not_supported",
            details={"browser": browser} if browser else {}
        )


class DomainActivationError(DevToolsError):
    """Raised when a single domain's enable command fails."""

    def __init__(self, domain: str, reason: str):
        super().__init__(
            message=f"Failed to enable {domain} domain: {reason}",
            error_code="domain_activation_failed",
            details={"domain": domain, "reason": reason}
        )


class EventHandlerError(DevToolsError):
    """Raised when a subscribed handler fails while processing an event."""

    def __init__(self, event: str, reason: str):
        super().__init__(
            message=f"Handler for {event} failed: {reason}",
            error_code="event_handler_failed",
            details={"event": event, "reason": reason}
        )


class InterventionError(DevToolsError):
    """Raised when a block or continue command fails."""

    def __init__(self, command: str, reason: str):
        super().__init__(
            message=f"{command} failed: {reason}",
            error_code="intervention_failed",
            details={"command": command, "reason": reason}
        )


class ConfigurationError(DevToolsError):
    """Raised when a monitor configuration cannot be loaded or validated."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="configuration_error",
            details={"path": path} if path else {}
        )
