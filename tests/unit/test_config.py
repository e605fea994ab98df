"""Unit tests for monitor configuration loading."""

import pytest
from pydantic import ValidationError

from devtools_monitor.models.session import Domain
from devtools_monitor.monitor.config import (
    ENVIRONMENT_VARIABLE,
    DevToolsConfig,
    DevToolsConfigManager,
    load_config,
)
from devtools_monitor.monitor.domains import MONITORING_DOMAINS
from devtools_monitor.monitor.exceptions import ConfigurationError


CONFIG_YAML = """
environment: production
domains: [network, console, Security]
filter_urls: [example.com]
block_urls: ["*.png"]
recent_events_limit: 500
environments:
  staging:
    filter_urls: [staging.example.com]
    recent_events_limit: 50
"""


class TestDevToolsConfig:
    """Tests for DevToolsConfig validation."""

    def test_defaults(self):
        config = DevToolsConfig()
        assert config.environment == "production"
        assert config.domains == list(MONITORING_DOMAINS)
        assert config.filter_urls == []
        assert config.recent_events_limit == 1000
        assert config.correlation_ttl_seconds == 300.0
        assert config.enable_interception is False

    def test_domain_names_parsed(self):
        config = DevToolsConfig(domains=["network", "Console", "DOM"])
        assert config.domains == [Domain.NETWORK, Domain.LOG, Domain.DOM]

    def test_unknown_domain_rejected(self):
        with pytest.raises(ValidationError):
            DevToolsConfig(domains=["Bluetooth"])

    def test_invalid_environment(self):
        with pytest.raises(ValidationError):
            DevToolsConfig(environment="qa")

    def test_invalid_limits(self):
        with pytest.raises(ValidationError):
            DevToolsConfig(recent_events_limit=0)
        with pytest.raises(ValidationError):
            DevToolsConfig(correlation_ttl_seconds=-1)

    def test_resolved_applies_environment_overrides(self):
        config = DevToolsConfig(
            environment="staging",
            recent_events_limit=500,
            environments={"staging": {"recent_events_limit": 50}},
        )
        resolved = config.resolved()
        assert resolved.recent_events_limit == 50
        assert resolved.environment == "staging"


class TestDevToolsConfigManager:
    """Tests for YAML loading."""

    @pytest.fixture
    def config_file(self, tmp_path):
        path = tmp_path / "devtools.yaml"
        path.write_text(CONFIG_YAML)
        return path

    def test_load_yaml(self, config_file, monkeypatch):
        monkeypatch.delenv(ENVIRONMENT_VARIABLE, raising=False)
        config = DevToolsConfigManager(config_file).load_config()

        assert config.domains == [Domain.NETWORK, Domain.LOG, Domain.SECURITY]
        assert config.filter_urls == ["example.com"]
        assert config.block_urls == ["*.png"]
        assert config.recent_events_limit == 500

    def test_environment_override(self, config_file, monkeypatch):
        """Test the environment variable selects the override block."""
        monkeypatch.setenv(ENVIRONMENT_VARIABLE, "staging")
        config = DevToolsConfigManager(config_file).load_config()

        assert config.environment == "staging"
        assert config.filter_urls == ["staging.example.com"]
        assert config.recent_events_limit == 50

    def test_cached_until_forced(self, config_file, monkeypatch):
        monkeypatch.delenv(ENVIRONMENT_VARIABLE, raising=False)
        manager = DevToolsConfigManager(config_file)
        first = manager.load_config()
        config_file.write_text("recent_events_limit: 10\n")

        assert manager.load_config() is first
        assert manager.load_config(force_reload=True).recent_events_limit == 10

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            DevToolsConfigManager(tmp_path / "missing.yaml").load_config()
        assert exc_info.value.error_code == "configuration_error"

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("domains: [network\n")
        with pytest.raises(ConfigurationError):
            DevToolsConfigManager(path).load_config()

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- network\n- page\n")
        with pytest.raises(ConfigurationError):
            DevToolsConfigManager(path).load_config()

    def test_validation_error(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("recent_events_limit: -5\n")
        with pytest.raises(ConfigurationError):
            DevToolsConfigManager(path).load_config()

    def test_empty_file_gives_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv(ENVIRONMENT_VARIABLE, raising=False)
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert DevToolsConfigManager(path).load_config() == DevToolsConfig()


class TestLoadConfig:
    """Tests for the load_config() helper."""

    def test_defaults_without_path(self):
        assert load_config() == DevToolsConfig()

    def test_loads_bundled_example(self, monkeypatch):
        monkeypatch.delenv(ENVIRONMENT_VARIABLE, raising=False)
        config = DevToolsConfigManager().load_config()
        assert config.domains == list(MONITORING_DOMAINS)
