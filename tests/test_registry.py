"""Tests for the source registry and configuration loading."""

from pathlib import Path

import pytest
import yaml

from booth_beacon.core.enums import FetchMode, GeocodeConfidence
from booth_beacon.core.errors import ConfigurationError
from booth_beacon.ingestion.registry import (
    AlertingConfig,
    GlobalConfig,
    SourceConfig,
    SourceRegistry,
    check_credentials,
    get_default_registry,
    reset_default_registry,
)
from booth_beacon.ingestion.retry import RetryPolicy

SAMPLE_CONFIG = {
    "global": {
        "inter_source_delay_seconds": 0.5,
        "request_timeout": 30,
        "llm_content_budget": 20000,
        "retry": {
            "fetch": {"max_attempts": 5, "backoff_seconds": 1.0},
            "llm": {"max_attempts": 1},
        },
        "alerting": {"drop_threshold": 0.5, "webhook_url": "https://hooks.example.com/x"},
        "geocoding": {"min_confidence": "high", "batch_limit": 10},
    },
    "sources": [
        {
            "name": "low",
            "url": "https://low.example.com/",
            "priority": 10,
        },
        {
            "name": "directory",
            "url": "https://www.photobooth.net/locations/",
            "mode": "crawl",
            "priority": 70,
            "include_paths": ["/locations/*"],
            "page_limit": 100,
        },
        {
            "name": "disabled",
            "url": "https://off.example.com/",
            "enabled": False,
            "priority": 99,
        },
        {
            "name": "also-low",
            "url": "https://also-low.example.com/",
            "priority": 10,
        },
    ],
}


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Write the sample config to a temporary file."""
    path = tmp_path / "sources.yaml"
    path.write_text(yaml.safe_dump(SAMPLE_CONFIG))
    return path


class TestSourceRegistry:
    """Tests for SourceRegistry."""

    def test_load_config(self, config_file: Path) -> None:
        registry = SourceRegistry()
        registry.load_config(config_file)

        assert len(registry.list_sources()) == 4
        assert registry.config_path == config_file.resolve()

        directory = registry.get_source("directory")
        assert directory.mode == FetchMode.CRAWL
        assert directory.include_paths == ["/locations/*"]
        assert directory.page_limit == 100

    def test_global_config(self, config_file: Path) -> None:
        registry = SourceRegistry()
        registry.load_config(config_file)
        config = registry.global_config

        assert config.inter_source_delay_seconds == 0.5
        assert config.request_timeout == 30
        assert config.llm_content_budget == 20000
        assert config.retry.fetch == RetryPolicy(5, 1.0)
        assert config.retry.llm == RetryPolicy(1, 5.0)
        assert config.retry.geocode == RetryPolicy(3, 2.0)
        assert config.alerting.drop_threshold == 0.5
        assert config.geocoding.min_confidence == GeocodeConfidence.HIGH
        assert config.geocoding.batch_limit == 10

    def test_enabled_sources_by_priority(self, config_file: Path) -> None:
        """Enabled sources come out by descending priority, ties in file order."""
        registry = SourceRegistry()
        registry.load_config(config_file)

        names = [s.name for s in registry.list_enabled_sources()]
        assert names == ["directory", "low", "also-low"]

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            SourceRegistry().load_config(tmp_path / "nope.yaml")

    def test_duplicate_names(self, tmp_path: Path) -> None:
        path = tmp_path / "dup.yaml"
        path.write_text(yaml.safe_dump({
            "sources": [
                {"name": "a", "url": "https://a.example.com/"},
                {"name": "a", "url": "https://b.example.com/"},
            ]
        }))
        with pytest.raises(ConfigurationError):
            SourceRegistry().load_config(path)

    def test_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        registry = SourceRegistry()
        registry.load_config(path)

        assert registry.list_sources() == []
        assert registry.global_config == GlobalConfig()

    def test_shipped_config_loads(self) -> None:
        """The repository's config/sources.yaml is valid."""
        path = Path(__file__).resolve().parents[1] / "config" / "sources.yaml"
        registry = SourceRegistry()
        registry.load_config(path)
        assert registry.list_enabled_sources()


class TestSourceConfig:
    """Tests for SourceConfig parsing."""

    def test_defaults(self) -> None:
        source = SourceConfig.from_dict({"name": "x", "url": "https://x.example.com/"})
        assert source.mode == FetchMode.SCRAPE
        assert source.enabled is True
        assert source.priority == 50

    def test_missing_url(self) -> None:
        with pytest.raises(ConfigurationError):
            SourceConfig.from_dict({"name": "x"})

    def test_invalid_mode(self) -> None:
        with pytest.raises(ConfigurationError):
            SourceConfig.from_dict({"name": "x", "url": "https://x.example.com/", "mode": "spider"})

    def test_invalid_drop_threshold(self) -> None:
        with pytest.raises(ConfigurationError):
            AlertingConfig.from_dict({"drop_threshold": 1.5})


class TestDefaultRegistry:
    """Tests for the process-wide registry."""

    def test_env_path(self, config_file: Path, monkeypatch) -> None:
        monkeypatch.setenv("SOURCES_CONFIG_PATH", str(config_file))
        reset_default_registry()
        try:
            registry = get_default_registry()
            assert registry.get_source("directory") is not None
            assert get_default_registry() is registry
        finally:
            reset_default_registry()


class TestCheckCredentials:
    """Tests for the startup credential check."""

    def test_all_present(self, monkeypatch) -> None:
        monkeypatch.setenv("FIRECRAWL_API_KEY", "fc-test")
        monkeypatch.setenv("AI_PROVIDER", "anthropic")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        check_credentials()

    def test_missing_firecrawl(self, monkeypatch) -> None:
        monkeypatch.delenv("FIRECRAWL_API_KEY", raising=False)
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        monkeypatch.delenv("AI_PROVIDER", raising=False)
        with pytest.raises(ConfigurationError, match="FIRECRAWL_API_KEY"):
            check_credentials()

    def test_missing_provider_key(self, monkeypatch) -> None:
        monkeypatch.setenv("FIRECRAWL_API_KEY", "fc-test")
        monkeypatch.setenv("AI_PROVIDER", "openai")
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            check_credentials()

    def test_llm_key_optional(self, monkeypatch) -> None:
        monkeypatch.setenv("FIRECRAWL_API_KEY", "fc-test")
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        monkeypatch.delenv("AI_PROVIDER", raising=False)
        check_credentials(require_llm=False)

    def test_unsupported_provider(self, monkeypatch) -> None:
        monkeypatch.setenv("FIRECRAWL_API_KEY", "fc-test")
        monkeypatch.setenv("AI_PROVIDER", "llama")
        with pytest.raises(ConfigurationError):
            check_credentials()
