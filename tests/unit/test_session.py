"""Unit tests for DevToolsSession lifecycle management."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

from conftest import FakeTransport
from devtools_monitor.models.session import Domain, SessionState
from devtools_monitor.monitor.config import DevToolsConfig
from devtools_monitor.monitor.exceptions import DevToolsError, DevToolsNotSupportedError
from devtools_monitor.monitor.session import DevToolsSession


def mock_page(browser_name: str = "chromium"):
    """Mock Playwright page with a CDP capable context."""
    page = MagicMock()
    page.context.browser.browser_type.name = browser_name
    page.context.new_cdp_session = AsyncMock()
    return page


class TestSessionLifecycle:
    """Tests for open/close and state handling."""

    def test_status_before_open(self):
        """Test status is readable before the session is opened."""
        session = DevToolsSession()
        status = session.status()

        assert status.initialized is False
        assert status.state == SessionState.UNINITIALIZED
        assert status.domains_enabled == []
        assert status.metrics.total_requests == 0

    @pytest.mark.asyncio
    async def test_open_sets_active(self, fake_transport):
        session = DevToolsSession(DevToolsConfig(environment="test"))
        await session.open(fake_transport)

        assert session.is_active
        assert session.status().initialized
        assert session.browser_version == "HeadlessChrome/120.0.6099.28"
        assert fake_transport.methods == ["Browser.getVersion"]
        await session.close()

    @pytest.mark.asyncio
    async def test_open_without_version_probe(self, fake_transport):
        session = DevToolsSession(DevToolsConfig(probe_browser_version=False))
        await session.open(fake_transport)
        assert fake_transport.sent == []
        await session.close()

    @pytest.mark.asyncio
    async def test_version_probe_failure_is_not_fatal(self, fake_transport):
        fake_transport.fail_methods.add("Browser.getVersion")
        session = DevToolsSession()
        await session.open(fake_transport)
        assert session.is_active
        assert session.browser_version is None
        await session.close()

    @pytest.mark.asyncio
    async def test_open_attaches_to_page(self):
        """Test opening on a page creates a CDP session for it."""
        page = mock_page()
        cdp = MagicMock()
        cdp.send = AsyncMock(return_value={"product": "Chrome/120"})
        cdp.detach = AsyncMock()
        page.context.new_cdp_session.return_value = cdp

        session = DevToolsSession()
        await session.open(page)

        page.context.new_cdp_session.assert_awaited_once_with(page)
        assert session.browser_version == "Chrome/120"
        await session.close()
        cdp.detach.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_open_non_chromium_not_supported(self):
        """Test a browser without the protocol raises DevToolsNotSupportedError."""
        session = DevToolsSession()
        with pytest.raises(DevToolsNotSupportedError) as exc_info:
            await session.open(mock_page("firefox"))

        assert exc_info.value.details["browser"] == "firefox"
        assert session.state == SessionState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_open_cdp_session_failure_not_supported(self):
        page = mock_page()
        page.context.new_cdp_session.side_effect = PlaywrightError("Target closed")

        with pytest.raises(DevToolsNotSupportedError):
            await DevToolsSession().open(page)

    @pytest.mark.asyncio
    async def test_open_twice_is_noop(self, session, fake_transport):
        await session.open(fake_transport)
        assert fake_transport.methods.count("Browser.getVersion") == 1

    @pytest.mark.asyncio
    async def test_close_before_open(self):
        """Test close() before open() is a safe no-op."""
        session = DevToolsSession()
        await session.close()
        assert session.state == SessionState.CLOSED

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, session, fake_transport):
        await session.close()
        await session.close()

        assert session.state == SessionState.CLOSED
        assert fake_transport.detached
        assert session.status().initialized is False

    @pytest.mark.asyncio
    async def test_detach_failure_swallowed(self, session, fake_transport):
        fake_transport.detach = AsyncMock(side_effect=RuntimeError("already detached"))
        await session.close()
        assert session.state == SessionState.CLOSED

    @pytest.mark.asyncio
    async def test_reopen_closed_session_raises(self, session, fake_transport):
        await session.close()
        with pytest.raises(DevToolsError):
            await session.open(fake_transport)

    @pytest.mark.asyncio
    async def test_async_context_manager(self, fake_transport):
        async with DevToolsSession() as session:
            await session.open(fake_transport)
            assert session.is_active
        assert session.state == SessionState.CLOSED
        assert fake_transport.detached


class TestSessionOperations:
    """Tests for domain, filter and intervention operations on a session."""

    @pytest.mark.asyncio
    async def test_operations_before_open_are_noops(self, fake_transport):
        session = DevToolsSession()

        assert await session.enable(Domain.NETWORK) is False
        assert await session.block_urls(["*.png"]) is False
        assert await session.enable_interception() is False
        assert await session.get_performance_metrics() == {}
        assert await session.wait_for_network_idle() is False

        report = await session.enable_all()
        assert not any(report.results.values())
        assert set(report.results) == set(session.config.domains)

    @pytest.mark.asyncio
    async def test_enable_all_uses_configured_domains(self, fake_transport):
        config = DevToolsConfig(domains=["network", "console"], probe_browser_version=False)
        async with DevToolsSession(config) as session:
            await session.open(fake_transport)
            report = await session.enable_all()

        assert report.all_enabled
        assert fake_transport.methods == ["Network.enable", "Log.enable", "Console.enable"]

    @pytest.mark.asyncio
    async def test_enable_fetch_routes_to_interception(self, session, fake_transport):
        assert await session.enable(Domain.FETCH)
        assert session.status().interception_enabled
        assert fake_transport.listeners["Fetch.requestPaused"]

    @pytest.mark.asyncio
    async def test_set_filter_before_open(self, fake_transport):
        session = DevToolsSession()
        session.set_filter(["example.com"])
        await session.open(fake_transport)
        assert session.status().filter_urls == ["example.com"]
        await session.close()

    @pytest.mark.asyncio
    async def test_status_reports_interventions(self, session):
        await session.enable(Domain.NETWORK)
        await session.block_urls(["*.png"])

        status = session.status()
        assert status.domains_enabled == [Domain.NETWORK]
        assert status.blocked_urls == ["*.png"]
        assert status.interception_enabled is False

    @pytest.mark.asyncio
    async def test_disable_domain(self, session, fake_transport):
        await session.enable(Domain.SECURITY)
        assert await session.disable(Domain.SECURITY)

        fake_transport.emit("Security.securityStateChanged", {"securityState": "secure"})
        assert session.snapshot().security_event_count == 0

    @pytest.mark.asyncio
    async def test_performance_metrics(self, session, fake_transport):
        fake_transport.responses["Performance.getMetrics"] = {
            "metrics": [{"name": "JSHeapUsedSize", "value": 1024.0}, {"name": "Nodes", "value": 12}]
        }
        assert await session.get_performance_metrics() == {}

        await session.enable(Domain.PERFORMANCE)
        assert await session.get_performance_metrics() == {"JSHeapUsedSize": 1024.0, "Nodes": 12}

    @pytest.mark.asyncio
    async def test_wait_for_network_idle(self, session, fake_transport):
        await session.enable(Domain.NETWORK)
        assert await session.wait_for_network_idle(idle_ms=10, timeout_ms=500, poll_interval_ms=5)

    @pytest.mark.asyncio
    async def test_wait_for_network_idle_timeout(self, session, fake_transport):
        await session.enable(Domain.NETWORK)
        fake_transport.emit("Network.requestWillBeSent", {"requestId": "1", "request": {"url": "https://a.test/"}})
        assert await session.wait_for_network_idle(idle_ms=10, timeout_ms=50, poll_interval_ms=5) is False

    @pytest.mark.asyncio
    async def test_close_finalizes_in_flight_requests(self, session, fake_transport):
        await session.enable(Domain.NETWORK)
        fake_transport.emit("Network.requestWillBeSent", {"requestId": "1", "request": {"url": "https://a.test/"}})

        await session.close()
        snapshot = session.snapshot()
        assert snapshot.orphaned_requests == 1
        assert snapshot.pending_requests == 0

    @pytest.mark.asyncio
    async def test_start_monitoring_applies_config(self, fake_transport):
        config = DevToolsConfig(
            domains=["Network"],
            block_urls=["*.gif"],
            enable_interception=True,
            interception_patterns=["*.js"],
            probe_browser_version=False,
        )
        async with DevToolsSession(config) as session:
            await session.open(fake_transport)
            report = await session.start_monitoring()

        assert report[Domain.NETWORK]
        assert report[Domain.FETCH]
        assert ("Network.setBlockedURLs", {"urls": ["*.gif"]}) in fake_transport.sent
        assert ("Fetch.enable", {"patterns": [{"urlPattern": "*.js"}]}) in fake_transport.sent

    @pytest.mark.asyncio
    async def test_fetch_in_domains_uses_configured_patterns(self, fake_transport):
        """Test Fetch listed in domains is enabled once with the configured patterns."""
        config = DevToolsConfig(
            domains=["Network", "Fetch"],
            enable_interception=True,
            interception_patterns=["*.js"],
            probe_browser_version=False,
        )
        async with DevToolsSession(config) as session:
            await session.open(fake_transport)
            report = await session.start_monitoring()

        assert report[Domain.FETCH]
        fetch_enables = [params for method, params in fake_transport.sent if method == "Fetch.enable"]
        assert fetch_enables == [{"patterns": [{"urlPattern": "*.js"}]}]

    @pytest.mark.asyncio
    async def test_console_api_errors_counted_through_console_domain(self, session, fake_transport):
        await session.enable(Domain.LOG)
        assert "Console.enable" in fake_transport.methods

        fake_transport.emit("Console.messageAdded", {"message": {"level": "error", "source": "console-api", "text": "boom"}})
        snapshot = session.snapshot()
        assert snapshot.console_log_count == 1
        assert snapshot.error_level_count == 1

    @pytest.mark.asyncio
    async def test_summary(self, session):
        await session.enable(Domain.NETWORK)
        summary = session.summary()

        assert summary.startswith("=== Chrome DevTools Protocol Summary ===")
        assert "Network Monitoring: on" in summary
        assert "Security Monitoring: off" in summary
