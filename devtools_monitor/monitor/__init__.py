"""DevTools protocol session monitor.

This package attaches to a Chromium page over the remote-debugging
protocol and turns its multiplexed event stream into thread-safe state:
request/response correlation, counters, and bounded recent-event logs.

Main Components:
- Resource Classifier: URL to resource type heuristics
- Correlation Table: in-flight request bookkeeping
- Metrics Aggregator: counters and bounded event logs
- Selective Filter: allow-list for detailed logging
- Domain Activator: independent per-domain enable/disable
- Event Dispatcher: per-event handler fan-out with failure isolation
- Intervention Controller: URL blocking and auto-continue interception
- DevToolsSession: lifecycle facade over all of the above

Usage:
    from devtools_monitor.monitor import DevToolsSession

    async with DevToolsSession() as session:
        await session.open(page)
        await session.enable_all()
        await page.goto("https://example.com")
        print(session.summary())
"""

__all__ = [
    # Main components
    "DevToolsSession",
    "DevToolsConfig",
    "DevToolsConfigManager",
    "load_config",

    # Building blocks
    "CDPTransport",
    "PlaywrightCDPTransport",
    "CorrelationTable",
    "MetricsAggregator",
    "Counter",
    "EventLog",
    "UrlFilter",
    "DomainActivator",
    "EventDispatcher",
    "InterventionController",
    "BrowserConfig",
    "BrowserLauncher",
    "classify",
    "is_static_resource",

    # Errors
    "DevToolsError",
    "DevToolsNotSupportedError",
    "DomainActivationError",
    "EventHandlerError",
    "InterventionError",
    "ConfigurationError",
]

from .exceptions import (
    DevToolsError,
    DevToolsNotSupportedError,
    DomainActivationError,
    EventHandlerError,
    InterventionError,
    ConfigurationError,
)
from .transport import CDPTransport, PlaywrightCDPTransport
from .classifier import classify, is_static_resource
from .correlation import CorrelationTable
from .metrics import MetricsAggregator, Counter, EventLog
from .filters import UrlFilter
from .dispatcher import EventDispatcher
from .domains import DomainActivator
from .intervention import InterventionController
from .config import DevToolsConfig, DevToolsConfigManager, load_config
from .session import DevToolsSession
from .browser import BrowserConfig, BrowserLauncher
