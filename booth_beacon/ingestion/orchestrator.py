"""
Crawl Orchestrator Module
=========================

Runs configured sources one at a time through the ingestion pipeline:

1. Fetch page markdown from the content-fetch service
2. Extract candidates with the source's adapter, or the LLM fallback
3. Normalize candidates (rejections are counted, not raised)
4. Reconcile the batch into the booth store
5. Check the run against the previous one and record it

A failing source is recorded as failed and the loop moves on. Only a
configuration error stops a run.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from booth_beacon.core.enums import ExtractionMethod, RunStatus
from booth_beacon.core.errors import ConfigurationError, StoreError
from booth_beacon.db.repositories import BoothRepository, CrawlRunRepository
from booth_beacon.ingestion.adapters import AdapterRegistry, CandidateRecord, default_adapter_registry
from booth_beacon.ingestion.extractor import FallbackExtractor
from booth_beacon.ingestion.fetcher import FetchResult, FirecrawlClient
from booth_beacon.ingestion.metrics import Alert, MetricsSink, SourceRunOutcome, WebhookNotifier
from booth_beacon.ingestion.normalizer import NormalizedRecord, Normalizer, Rejected
from booth_beacon.ingestion.reconciler import ReconciliationEngine
from booth_beacon.ingestion.registry import SourceConfig, SourceRegistry, get_default_registry
from booth_beacon.services.ai.client import AIClient, get_ai_client_from_env

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class CrawlSummary:
    """Aggregate result of one orchestrator run."""

    started_at: datetime = field(default_factory=_utc_now)
    completed_at: datetime | None = None
    dry_run: bool = False
    outcomes: list[SourceRunOutcome] = field(default_factory=list)
    alerts: list[Alert] = field(default_factory=list)

    def _total(self, name: str) -> int:
        return sum(getattr(o, name) for o in self.outcomes)

    @property
    def total_candidates(self) -> int:
        return self._total("total_candidates")

    @property
    def inserted(self) -> int:
        return self._total("inserted")

    @property
    def merged(self) -> int:
        return self._total("merged")

    @property
    def changed(self) -> int:
        return self._total("changed")

    @property
    def rejected(self) -> int:
        return self._total("rejected")

    @property
    def skipped(self) -> int:
        return self._total("skipped")

    @property
    def errored(self) -> int:
        return self._total("errored")

    @property
    def failed_sources(self) -> list[str]:
        return [o.source_name for o in self.outcomes if o.failed]

    def top_performers(self, n: int = 5) -> list[SourceRunOutcome]:
        """Successful sources with the most new or changed booths."""
        successful = [o for o in self.outcomes if not o.failed]
        return sorted(successful, key=lambda o: o.inserted + o.changed, reverse=True)[:n]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "dry_run": self.dry_run,
            "sources": len(self.outcomes),
            "total_candidates": self.total_candidates,
            "inserted": self.inserted,
            "merged": self.merged,
            "changed": self.changed,
            "rejected": self.rejected,
            "skipped": self.skipped,
            "errored": self.errored,
            "failed_sources": self.failed_sources,
            "alerts": [alert.to_payload()["text"] for alert in self.alerts],
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


class Orchestrator:
    """
    Sequential crawl loop over configured sources.

    All collaborators are injected. ``inter_source_delay`` seconds pass
    between consecutive sources, not after the last one.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        fetcher: FirecrawlClient,
        adapters: AdapterRegistry,
        extractor: FallbackExtractor | None,
        normalizer: Normalizer,
        engine: ReconciliationEngine,
        metrics: MetricsSink,
        inter_source_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.registry = registry
        self.fetcher = fetcher
        self.adapters = adapters
        self.extractor = extractor
        self.normalizer = normalizer
        self.engine = engine
        self.metrics = metrics
        self.inter_source_delay = inter_source_delay
        self._sleep = sleep

    def select_sources(self, source_names: Iterable[str] | None = None) -> list[SourceConfig]:
        """
        Resolve the sources for a run.

        Without names, every enabled source by descending priority. Named
        sources run in the given order even when disabled.

        Raises:
            ConfigurationError: If a named source is not configured
        """
        if not source_names:
            return self.registry.list_enabled_sources()

        sources = []
        unknown = []
        for name in source_names:
            source = self.registry.get_source(name)
            if source is None:
                unknown.append(name)
            else:
                sources.append(source)
        if unknown:
            raise ConfigurationError(f"Unknown source(s): {', '.join(unknown)}")
        return sources

    async def run(
        self,
        source_names: Iterable[str] | None = None,
        dry_run: bool = False,
    ) -> CrawlSummary:
        """
        Crawl sources sequentially.

        Args:
            source_names: Optional subset of source names
            dry_run: Compute outcomes without writing booths, runs or alerts

        Returns:
            CrawlSummary with one outcome per source
        """
        sources = self.select_sources(source_names)
        summary = CrawlSummary(dry_run=dry_run)
        logger.info(f"Starting crawl of {len(sources)} source(s)" + (" [dry run]" if dry_run else ""))

        for index, source in enumerate(sources):
            if index > 0 and self.inter_source_delay > 0:
                await self._sleep(self.inter_source_delay)

            outcome = await self.run_source(source, dry_run=dry_run)
            summary.outcomes.append(outcome)

            alert = self._check_and_record(source, outcome, dry_run)
            if alert is not None:
                summary.alerts.append(alert)
                if not dry_run:
                    await self.metrics.notify(alert)

        summary.completed_at = _utc_now()
        logger.info(
            f"Crawl finished: {summary.total_candidates} found, {summary.inserted} added, "
            f"{summary.changed} updated, {summary.rejected + summary.skipped} skipped, "
            f"{summary.errored} errored, {len(summary.failed_sources)} failed source(s)"
        )
        return summary

    def _check_and_record(
        self,
        source: SourceConfig,
        outcome: SourceRunOutcome,
        dry_run: bool,
    ) -> Alert | None:
        try:
            alert = self.metrics.check_for_anomaly(source.name, outcome)
            if not dry_run:
                self.metrics.record(outcome)
        except (StoreError, SQLAlchemyError) as e:
            logger.error(f"Failed to record run for '{source.name}': {e}")
            return None
        if alert is not None:
            logger.warning(alert.message)
        return alert

    async def run_source(self, source: SourceConfig, dry_run: bool = False) -> SourceRunOutcome:
        """
        Run the pipeline for one source.

        Any failure marks the outcome failed instead of propagating.
        """
        outcome = SourceRunOutcome(source_name=source.name, source_url=source.url)
        started = time.monotonic()
        logger.info(f"Crawling '{source.name}' ({source.mode.value}) {source.url}")

        try:
            fetch_result = await self.fetcher.fetch(source)
            if not fetch_result.success:
                outcome.status = RunStatus.FAILED
                outcome.error = f"fetch failed: {fetch_result.error}"
                return outcome

            candidates, method = await self.extract(source, fetch_result)
            outcome.extraction_method = method
            outcome.total_candidates = len(candidates)

            batch: list[NormalizedRecord] = []
            for candidate in candidates:
                normalized = self.normalizer.normalize(candidate)
                if isinstance(normalized, Rejected):
                    outcome.rejected += 1
                else:
                    batch.append(normalized)

            result = self.engine.reconcile(batch, dry_run=dry_run)
            outcome.inserted = result.inserted
            outcome.merged = result.merged
            outcome.changed = result.changed
            outcome.skipped = result.skipped - result.errored
            outcome.errored = result.errored

        except ConfigurationError:
            raise
        except Exception as e:
            logger.exception(f"Source '{source.name}' failed")
            outcome.status = RunStatus.FAILED
            outcome.error = str(e) or type(e).__name__

        finally:
            outcome.completed_at = _utc_now()
            outcome.elapsed_seconds = round(time.monotonic() - started, 3)

        logger.info(
            f"'{source.name}': {outcome.total_candidates} candidates via "
            f"{outcome.extraction_method.value}, {outcome.inserted} inserted, "
            f"{outcome.merged} merged, {outcome.rejected} rejected"
        )
        return outcome

    async def extract(
        self,
        source: SourceConfig,
        fetch_result: FetchResult,
    ) -> tuple[list[CandidateRecord], ExtractionMethod]:
        """
        Extract candidates from fetched content.

        The hostname adapter runs per page. When there is no adapter, or it
        finds nothing, the LLM fallback runs once over all pages.
        """
        adapter = self.adapters.get_adapter(source.url)
        if adapter is not None:
            candidates: list[CandidateRecord] = []
            try:
                for page in fetch_result.pages:
                    candidates.extend(adapter.extract(page.markdown, page.url, source.name))
            except Exception as e:
                logger.warning(f"Adapter {adapter.ADAPTER_NAME} failed on '{source.name}': {e}")
                candidates = []
            if candidates:
                return candidates, ExtractionMethod.ADAPTER
            logger.info(f"Adapter {adapter.ADAPTER_NAME} found nothing on '{source.name}'")

        if self.extractor is None:
            return [], ExtractionMethod.NONE

        candidates = await self.extractor.extract(fetch_result.markdown, source.url, source.name)
        return candidates, ExtractionMethod.FALLBACK


def build_orchestrator(
    session: Session,
    registry: SourceRegistry | None = None,
    ai_client: AIClient | None = None,
    fetcher: FirecrawlClient | None = None,
    notifier: WebhookNotifier | None = None,
) -> Orchestrator:
    """
    Wire an orchestrator from configuration and environment.

    Args:
        session: Database session for booths and run history
        registry: Source registry; defaults to the global registry
        ai_client: LLM client; defaults to the one named by AI_PROVIDER
        fetcher: Content-fetch client; defaults to Firecrawl with FIRECRAWL_API_KEY
        notifier: Alert notifier; defaults to ALERT_WEBHOOK_URL

    Raises:
        ConfigurationError: If a required credential is missing
    """
    registry = registry or get_default_registry()
    config = registry.global_config

    fetcher = fetcher or FirecrawlClient(
        timeout=config.request_timeout,
        retry_policy=config.retry.fetch,
    )
    extractor = FallbackExtractor(
        ai_client or get_ai_client_from_env(),
        content_budget=config.llm_content_budget,
        retry_policy=config.retry.llm,
    )
    metrics = MetricsSink(
        CrawlRunRepository(session),
        notifier or WebhookNotifier(config.alerting.webhook_url or None),
        drop_threshold=config.alerting.drop_threshold,
    )
    return Orchestrator(
        registry=registry,
        fetcher=fetcher,
        adapters=default_adapter_registry(),
        extractor=extractor,
        normalizer=Normalizer(),
        engine=ReconciliationEngine(BoothRepository(session)),
        metrics=metrics,
        inter_source_delay=config.inter_source_delay_seconds,
    )
