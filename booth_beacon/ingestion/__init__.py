"""
Booth Beacon Ingestion Framework
================================

This package provides the pipeline that turns third-party web pages into
canonical booth records.

Pipeline Stages:
1. Fetch - Firecrawl scrapes a page or crawls a site into markdown
2. Extract - A hostname adapter parses the markdown, or the LLM fallback does
3. Normalize - Clean fields, infer country and booth type, build the match key
4. Reconcile - Insert new booths or merge into existing ones
5. Record - Persist the run outcome and alert on drops or failures

Geocoding enrichment runs separately and is the only writer of coordinates
on existing booths.
"""

from booth_beacon.ingestion.registry import (
    SourceRegistry,
    SourceConfig,
    GlobalConfig,
    check_credentials,
    get_default_registry,
)
from booth_beacon.ingestion.retry import (
    RetryPolicy,
    retry_async,
)
from booth_beacon.ingestion.adapters import (
    AdapterRegistry,
    BaseAdapter,
    CandidateRecord,
    default_adapter_registry,
)
from booth_beacon.ingestion.fetcher import (
    FirecrawlClient,
    FetchResult,
    FetchedPage,
)
from booth_beacon.ingestion.extractor import (
    FallbackExtractor,
    ExtractedBooth,
    coerce_booths,
)
from booth_beacon.ingestion.normalizer import (
    Normalizer,
    NormalizedRecord,
    Rejected,
    normalized_key,
)
from booth_beacon.ingestion.reconciler import (
    BoothStore,
    ReconciliationEngine,
    ReconciliationResult,
    Inserted,
    Merged,
    Skipped,
)
from booth_beacon.ingestion.metrics import (
    Alert,
    MetricsSink,
    SourceRunOutcome,
    WebhookNotifier,
)
from booth_beacon.ingestion.geocoding import (
    NominatimGeocoder,
    GeocodeResult,
    enrich_missing_coordinates,
)
from booth_beacon.ingestion.orchestrator import (
    Orchestrator,
    CrawlSummary,
    build_orchestrator,
)
from booth_beacon.ingestion.jobs import (
    crawl_sources,
    enqueue_crawl,
    get_job_status,
    JobResult,
    JobStatus,
)

__all__ = [
    # Registry
    "SourceRegistry",
    "SourceConfig",
    "GlobalConfig",
    "check_credentials",
    "get_default_registry",
    # Retry
    "RetryPolicy",
    "retry_async",
    # Adapters
    "AdapterRegistry",
    "BaseAdapter",
    "CandidateRecord",
    "default_adapter_registry",
    # Fetcher
    "FirecrawlClient",
    "FetchResult",
    "FetchedPage",
    # Extractor
    "FallbackExtractor",
    "ExtractedBooth",
    "coerce_booths",
    # Normalizer
    "Normalizer",
    "NormalizedRecord",
    "Rejected",
    "normalized_key",
    # Reconciliation
    "BoothStore",
    "ReconciliationEngine",
    "ReconciliationResult",
    "Inserted",
    "Merged",
    "Skipped",
    # Metrics
    "Alert",
    "MetricsSink",
    "SourceRunOutcome",
    "WebhookNotifier",
    # Geocoding
    "NominatimGeocoder",
    "GeocodeResult",
    "enrich_missing_coordinates",
    # Orchestrator
    "Orchestrator",
    "CrawlSummary",
    "build_orchestrator",
    # Jobs
    "crawl_sources",
    "enqueue_crawl",
    "get_job_status",
    "JobResult",
    "JobStatus",
]
