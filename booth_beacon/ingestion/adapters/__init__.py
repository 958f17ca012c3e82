"""
Adapter Registry Module
=======================

Maps source hostnames to source-specific adapters.

The registry is immutable: it is built once at startup and injected into
the orchestrator. ``with_adapter`` returns a new registry rather than
mutating the existing one.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping
from urllib.parse import urlparse

from booth_beacon.ingestion.adapters.base import (
    BaseAdapter,
    CandidateRecord,
    LineListAdapter,
    clean_markup,
    listing_lines,
    split_listing,
)
from booth_beacon.ingestion.adapters.operators import (
    AutofotoAdapter,
    ClassicPhotoboothAdapter,
    MetroAutophotoAdapter,
    PhotomaticaAdapter,
)


def normalize_hostname(source_url: str) -> str | None:
    """
    Extract the lower-cased hostname of a URL with one leading ``www.`` removed.

    Args:
        source_url: Absolute URL

    Returns:
        Hostname, or None if the URL has none
    """
    hostname = urlparse(source_url).hostname
    if not hostname:
        return None
    if hostname.startswith("www."):
        hostname = hostname[len("www."):]
    return hostname


class AdapterRegistry:
    """Immutable hostname -> adapter lookup."""

    def __init__(self, adapters: Mapping[str, BaseAdapter] | Iterable[BaseAdapter] = ()) -> None:
        if isinstance(adapters, Mapping):
            mapping = {host.lower(): adapter for host, adapter in adapters.items()}
        else:
            mapping = {adapter.HOSTNAME: adapter for adapter in adapters}
        self._adapters: Mapping[str, BaseAdapter] = MappingProxyType(mapping)

    def get_adapter(self, source_url: str) -> BaseAdapter | None:
        """
        Get the adapter registered for a URL's hostname.

        Matching is exact after stripping ``www.``; subdomains and partial
        matches do not count.

        Args:
            source_url: URL of the page being processed

        Returns:
            Adapter instance, or None if no adapter is registered
        """
        hostname = normalize_hostname(source_url)
        if hostname is None:
            return None
        return self._adapters.get(hostname)

    def with_adapter(self, adapter: BaseAdapter, hostname: str | None = None) -> AdapterRegistry:
        """Return a new registry that also contains ``adapter``."""
        mapping = dict(self._adapters)
        mapping[(hostname or adapter.HOSTNAME).lower()] = adapter
        return AdapterRegistry(mapping)

    def list_adapters(self) -> list[str]:
        """List registered hostnames."""
        return sorted(self._adapters)

    def get_adapter_info(self, hostname: str) -> dict[str, str] | None:
        """Get information about the adapter for a hostname."""
        adapter = self._adapters.get(hostname.lower())
        if adapter is None:
            return None
        return adapter.get_info()

    def __len__(self) -> int:
        return len(self._adapters)

    def __contains__(self, hostname: object) -> bool:
        return hostname in self._adapters


def default_adapter_registry() -> AdapterRegistry:
    """Build a registry holding every shipped adapter."""
    return AdapterRegistry([
        AutofotoAdapter(),
        PhotomaticaAdapter(),
        MetroAutophotoAdapter(),
        ClassicPhotoboothAdapter(),
    ])


__all__ = [
    # Registry
    "AdapterRegistry",
    "default_adapter_registry",
    "normalize_hostname",
    # Base classes
    "BaseAdapter",
    "CandidateRecord",
    "LineListAdapter",
    "clean_markup",
    "listing_lines",
    "split_listing",
    # Concrete adapters
    "AutofotoAdapter",
    "ClassicPhotoboothAdapter",
    "MetroAutophotoAdapter",
    "PhotomaticaAdapter",
]
