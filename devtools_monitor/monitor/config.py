"""Configuration system for DevTools session monitoring.

This module provides configuration management for monitor settings,
including YAML loading, validation, and environment-specific overrides.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..models.session import Domain
from .domains import MONITORING_DOMAINS
from .exceptions import ConfigurationError

ENVIRONMENT_VARIABLE = "DEVTOOLS_MONITOR_ENV"


class DevToolsConfig(BaseModel):
    """Settings for one DevTools monitoring session."""

    environment: str = Field(default="production", description="Environment name")
    domains: List[Domain] = Field(
        default_factory=lambda: list(MONITORING_DOMAINS),
        description="Domains enabled by enable_all()"
    )
    filter_urls: List[str] = Field(
        default_factory=list,
        description="URL substrings allowed into detailed logs (empty = all)"
    )
    exclude_static_resources: bool = Field(
        default=False,
        description="Suppress static assets from detailed network logs"
    )
    block_urls: List[str] = Field(
        default_factory=list,
        description="URL patterns the browser should block"
    )
    enable_interception: bool = Field(
        default=False,
        description="Pause and auto-continue requests through the Fetch domain"
    )
    interception_patterns: List[str] = Field(
        default_factory=list,
        description="URL patterns to intercept (empty = all)"
    )
    recent_events_limit: int = Field(
        default=1000,
        description="Maximum entries kept per recent-event list"
    )
    correlation_ttl_seconds: Optional[float] = Field(
        default=300.0,
        description="Age after which unmatched requests are evicted as orphaned"
    )
    probe_browser_version: bool = Field(
        default=True,
        description="Query Browser.getVersion when the session opens"
    )
    environments: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        description="Environment-specific overrides"
    )

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v):
        valid_environments = {'production', 'staging', 'development', 'test'}
        if v not in valid_environments:
            raise ValueError(f"Environment must be one of: {valid_environments}")
        return v

    @field_validator('domains', mode='before')
    @classmethod
    def parse_domains(cls, v):
        if v is None:
            return list(MONITORING_DOMAINS)
        return [Domain.parse(d) if isinstance(d, str) else d for d in v]

    @field_validator('recent_events_limit')
    @classmethod
    def validate_recent_events_limit(cls, v):
        if v <= 0:
            raise ValueError("recent_events_limit must be positive")
        return v

    @field_validator('correlation_ttl_seconds')
    @classmethod
    def validate_ttl(cls, v):
        if v is not None and v <= 0:
            raise ValueError("correlation_ttl_seconds must be positive or null")
        return v

    def resolved(self) -> "DevToolsConfig":
        """Return a copy with the current environment's overrides applied."""
        overrides = self.environments.get(self.environment)
        if not overrides:
            return self

        data = self.model_dump()
        data.update(overrides)
        data['environments'] = {}
        return DevToolsConfig(**data)


class DevToolsConfigManager:
    """Manager for monitor configuration loading and caching."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to monitor config YAML file. Defaults to config/devtools.yaml
        """
        if config_path is None:
            project_root = Path(__file__).parent.parent.parent
            config_path = project_root / "config" / "devtools.yaml"

        self.config_path = Path(config_path)
        self._config: Optional[DevToolsConfig] = None
        self._loaded_env: Optional[str] = None

    def load_config(self, force_reload: bool = False) -> DevToolsConfig:
        """Load configuration from YAML file.

        Args:
            force_reload: Force reload even if already cached

        Returns:
            Loaded, validated configuration with environment overrides applied

        Raises:
            ConfigurationError: If the file is missing, not valid YAML, or
                fails validation
        """
        current_env = os.environ.get(ENVIRONMENT_VARIABLE, 'production')

        if self._config is not None and not force_reload and current_env == self._loaded_env:
            return self._config

        if not self.config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {self.config_path}",
                path=str(self.config_path)
            )

        try:
            with open(self.config_path, 'r') as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}", path=str(self.config_path))

        if not isinstance(config_data, dict):
            raise ConfigurationError(
                f"Configuration in {self.config_path} must be a mapping",
                path=str(self.config_path)
            )

        # Override environment from env var if set
        if current_env != 'production':
            config_data['environment'] = current_env

        try:
            self._config = DevToolsConfig(**config_data).resolved()
        except (ValidationError, ValueError) as e:
            raise ConfigurationError(f"Configuration validation failed: {e}", path=str(self.config_path))

        self._loaded_env = current_env
        return self._config

    @property
    def config(self) -> DevToolsConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            return self.load_config()
        return self._config

    @property
    def environment(self) -> str:
        return self.config.environment


def load_config(config_path: Optional[Union[str, Path]] = None) -> DevToolsConfig:
    """Load a DevToolsConfig from YAML, or the defaults when no path is given."""
    if config_path is None:
        return DevToolsConfig()
    return DevToolsConfigManager(config_path).load_config()
