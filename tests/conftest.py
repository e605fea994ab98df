"""Shared test fixtures and configuration for DevTools Monitor tests."""

import sys
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from devtools_monitor.monitor.config import DevToolsConfig
from devtools_monitor.monitor.session import DevToolsSession
from devtools_monitor.monitor.transport import CDPTransport


class FakeTransport(CDPTransport):
    """Scripted protocol session.

    Records every command, fails the ones listed in fail_methods and lets
    tests push events with emit().
    """

    def __init__(self, responses: Optional[Dict[str, Dict[str, Any]]] = None, fail_methods=None):
        self.sent: List[Tuple[str, Dict[str, Any]]] = []
        self.responses = dict(responses or {})
        self.fail_methods = set(fail_methods or [])
        self.listeners = defaultdict(list)
        self.detached = False

    async def send(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        self.sent.append((method, params or {}))
        if method in self.fail_methods:
            raise RuntimeError(f"'{method}' wasn't found")
        return dict(self.responses.get(method, {}))

    def on(self, event, handler) -> None:
        self.listeners[event].append(handler)

    def remove_listener(self, event, handler) -> None:
        if handler in self.listeners[event]:
            self.listeners[event].remove(handler)

    async def detach(self) -> None:
        self.detached = True

    def emit(self, event: str, params: Optional[Dict[str, Any]] = None) -> None:
        for handler in list(self.listeners[event]):
            handler(params or {})

    @property
    def methods(self) -> List[str]:
        return [method for method, _ in self.sent]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def fake_transport():
    """Protocol transport that accepts every command."""
    return FakeTransport(responses={
        "Browser.getVersion": {"product": "HeadlessChrome/120.0.6099.28"},
    })


@pytest.fixture
def clock():
    """Controllable monotonic clock."""
    return FakeClock()


@pytest.fixture
def test_config():
    """Monitor configuration for tests."""
    return DevToolsConfig(environment="test")


@pytest.fixture
async def session(test_config, fake_transport, clock):
    """Open DevTools session on a fake transport, closed after the test."""
    devtools = DevToolsSession(test_config, clock=clock)
    await devtools.open(fake_transport)
    yield devtools
    await devtools.close()


def request_sent(request_id: str, url: str, method: str = "GET") -> Dict[str, Any]:
    """Network.requestWillBeSent params."""
    return {"requestId": request_id, "request": {"url": url, "method": method}}


def response_received(request_id: str, url: str, status: int = 200) -> Dict[str, Any]:
    """Network.responseReceived params."""
    return {
        "requestId": request_id,
        "response": {"url": url, "status": status, "statusText": "OK" if status < 400 else "Error"},
    }
