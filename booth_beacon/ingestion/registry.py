"""
Source Registry Module
======================

Manages crawl source configurations loaded from YAML files. Sources define
which operator and directory pages are crawled, how they are fetched, and
in what order.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from booth_beacon.core.enums import FetchMode, GeocodeConfidence
from booth_beacon.core.errors import ConfigurationError
from booth_beacon.ingestion.retry import RetryPolicy
from booth_beacon.services.ai.client import API_KEY_ENV_VARS, AIProvider


@dataclass
class RetryConfig:
    """Retry policies for each external collaborator."""

    fetch: RetryPolicy = field(default_factory=lambda: RetryPolicy(3, 5.0))
    llm: RetryPolicy = field(default_factory=lambda: RetryPolicy(2, 5.0))
    geocode: RetryPolicy = field(default_factory=lambda: RetryPolicy(3, 2.0))

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> RetryConfig:
        """Create from dictionary, using defaults for missing values."""
        defaults = cls()
        if data is None:
            return defaults
        return cls(
            fetch=RetryPolicy.from_dict(data.get("fetch"), defaults.fetch),
            llm=RetryPolicy.from_dict(data.get("llm"), defaults.llm),
            geocode=RetryPolicy.from_dict(data.get("geocode"), defaults.geocode),
        )


@dataclass
class AlertingConfig:
    """Drop detection and alert delivery settings."""

    drop_threshold: float = 0.8
    webhook_url: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> AlertingConfig:
        """Create from dictionary."""
        if data is None:
            return cls()
        threshold = float(data.get("drop_threshold", 0.8))
        if not 0.0 < threshold <= 1.0:
            raise ConfigurationError(f"alerting.drop_threshold must be in (0, 1], got {threshold}")
        return cls(
            drop_threshold=threshold,
            webhook_url=data.get("webhook_url", "") or "",
        )


@dataclass
class GeocodingConfig:
    """Geocoding enrichment settings."""

    user_agent: str = "BoothBeacon/1.0"
    min_confidence: GeocodeConfidence = GeocodeConfidence.MEDIUM
    batch_limit: int = 50
    min_interval_seconds: float = 1.0

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> GeocodingConfig:
        """Create from dictionary."""
        if data is None:
            return cls()
        return cls(
            user_agent=data.get("user_agent", "BoothBeacon/1.0"),
            min_confidence=GeocodeConfidence(data.get("min_confidence", "medium")),
            batch_limit=int(data.get("batch_limit", 50)),
            min_interval_seconds=float(data.get("min_interval_seconds", 1.0)),
        )


@dataclass
class SourceConfig:
    """Configuration for a single crawl source."""

    name: str
    url: str
    mode: FetchMode = FetchMode.SCRAPE
    enabled: bool = True
    priority: int = 50
    description: str = ""
    include_paths: list[str] = field(default_factory=list)
    exclude_paths: list[str] = field(default_factory=list)
    page_limit: int = 50

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SourceConfig:
        """Create from dictionary."""
        try:
            name = data["name"]
            url = data["url"]
        except KeyError as e:
            raise ConfigurationError(f"Source entry missing required key {e}: {data}") from e
        try:
            mode = FetchMode(data.get("mode", "scrape"))
        except ValueError as e:
            raise ConfigurationError(f"Source '{name}' has invalid mode: {data.get('mode')}") from e

        return cls(
            name=name,
            url=url,
            mode=mode,
            enabled=data.get("enabled", True),
            priority=int(data.get("priority", 50)),
            description=data.get("description", ""),
            include_paths=data.get("include_paths", []),
            exclude_paths=data.get("exclude_paths", []),
            page_limit=int(data.get("page_limit", 50)),
        )


@dataclass
class GlobalConfig:
    """Global configuration settings."""

    inter_source_delay_seconds: float = 2.0
    request_timeout: int = 60
    llm_content_budget: int = 50_000
    retry: RetryConfig = field(default_factory=RetryConfig)
    alerting: AlertingConfig = field(default_factory=AlertingConfig)
    geocoding: GeocodingConfig = field(default_factory=GeocodingConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> GlobalConfig:
        """Create from dictionary."""
        if data is None:
            return cls()
        return cls(
            inter_source_delay_seconds=float(data.get("inter_source_delay_seconds", 2.0)),
            request_timeout=int(data.get("request_timeout", 60)),
            llm_content_budget=int(data.get("llm_content_budget", 50_000)),
            retry=RetryConfig.from_dict(data.get("retry")),
            alerting=AlertingConfig.from_dict(data.get("alerting")),
            geocoding=GeocodingConfig.from_dict(data.get("geocoding")),
        )


class SourceRegistry:
    """
    Registry for managing crawl source configurations.

    Loads source definitions from a YAML file and provides methods
    to query and manage them.
    """

    def __init__(self) -> None:
        self._sources: dict[str, SourceConfig] = {}
        self._global_config: GlobalConfig = GlobalConfig()
        self._config_path: Path | None = None

    @property
    def global_config(self) -> GlobalConfig:
        """Get global configuration."""
        return self._global_config

    @property
    def config_path(self) -> Path | None:
        return self._config_path

    def load_config(self, config_path: Path | str) -> None:
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to the sources.yaml file
        """
        config_path = Path(config_path).expanduser().resolve()
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        self._config_path = config_path
        self._global_config = GlobalConfig.from_dict(data.get("global"))

        self._sources.clear()
        for source_data in data.get("sources", []):
            source = SourceConfig.from_dict(source_data)
            if source.name in self._sources:
                raise ConfigurationError(f"Duplicate source name: {source.name}")
            self._sources[source.name] = source

    def add_source(self, source: SourceConfig) -> None:
        """Register a source directly (useful for testing)."""
        self._sources[source.name] = source

    def get_source(self, name: str) -> SourceConfig | None:
        """
        Get a source configuration by name.

        Args:
            name: Source name

        Returns:
            SourceConfig if found, None otherwise
        """
        return self._sources.get(name)

    def list_sources(self) -> list[SourceConfig]:
        """
        Get all registered sources.

        Returns:
            List of all source configurations
        """
        return list(self._sources.values())

    def list_enabled_sources(self) -> list[SourceConfig]:
        """
        Get enabled sources in crawl order.

        Returns:
            Enabled sources by descending priority; equal priorities keep file order
        """
        enabled = [s for s in self._sources.values() if s.enabled]
        return sorted(enabled, key=lambda s: -s.priority)


def check_credentials(require_llm: bool = True) -> None:
    """
    Verify that required service credentials are present.

    Args:
        require_llm: Also require the key for the configured AI provider

    Raises:
        ConfigurationError: If a required credential is missing
    """
    missing = []
    if not os.environ.get("FIRECRAWL_API_KEY"):
        missing.append("FIRECRAWL_API_KEY")

    if require_llm:
        provider_name = os.environ.get("AI_PROVIDER", AIProvider.ANTHROPIC.value).lower()
        try:
            provider = AIProvider(provider_name)
        except ValueError:
            raise ConfigurationError(f"Unsupported AI_PROVIDER: {provider_name}")
        env_var = API_KEY_ENV_VARS[provider]
        if not os.environ.get(env_var):
            missing.append(env_var)

    if missing:
        raise ConfigurationError(f"Missing required credentials: {', '.join(missing)}")


# Global registry instance
_default_registry: SourceRegistry | None = None


def get_default_registry() -> SourceRegistry:
    """
    Get the default source registry instance.

    Loads configuration from the path specified in SOURCES_CONFIG_PATH
    environment variable, or falls back to config/sources.yaml.

    Returns:
        The global SourceRegistry instance
    """
    global _default_registry

    if _default_registry is None:
        _default_registry = SourceRegistry()

        config_path = os.environ.get("SOURCES_CONFIG_PATH")
        if config_path:
            path = Path(config_path)
        else:
            # Default to config/sources.yaml relative to project root
            module_dir = Path(__file__).parent
            project_root = module_dir.parent.parent
            path = project_root / "config" / "sources.yaml"

        if path.exists():
            _default_registry.load_config(path)

    return _default_registry


def reset_default_registry() -> None:
    """Reset the default registry (useful for testing)."""
    global _default_registry
    _default_registry = None
