"""
Metrics and Alerting Module
===========================

Records per-source run outcomes and raises alerts when a source's output
drops sharply, goes to zero, or the source fails outright.

Alert delivery is best-effort: a failed webhook never affects the crawl.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import httpx

from booth_beacon.core.enums import AlertKind, ExtractionMethod, RunStatus

if TYPE_CHECKING:
    from booth_beacon.db.repositories import CrawlRunRepository

logger = logging.getLogger(__name__)

DEFAULT_DROP_THRESHOLD = 0.8


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class SourceRunOutcome:
    """Outcome of one orchestrator pass over one source."""

    source_name: str
    source_url: str = ""
    started_at: datetime = field(default_factory=_utc_now)
    completed_at: datetime | None = None
    status: RunStatus = RunStatus.SUCCESS
    extraction_method: ExtractionMethod = ExtractionMethod.NONE
    total_candidates: int = 0
    inserted: int = 0
    merged: int = 0
    changed: int = 0
    rejected: int = 0
    skipped: int = 0
    errored: int = 0
    elapsed_seconds: float = 0.0
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.status == RunStatus.FAILED

    def operator_counts(self) -> dict[str, int]:
        """Counts in the form operators read them."""
        return {
            "found": self.total_candidates,
            "added": self.inserted,
            "updated": self.changed,
            "skipped": self.skipped + self.rejected,
            "errored": self.errored,
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "source_name": self.source_name,
            "source_url": self.source_url,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "status": self.status.value,
            "extraction_method": self.extraction_method.value,
            "total_candidates": self.total_candidates,
            "inserted": self.inserted,
            "merged": self.merged,
            "changed": self.changed,
            "rejected": self.rejected,
            "skipped": self.skipped,
            "errored": self.errored,
            "elapsed_seconds": self.elapsed_seconds,
            "error": self.error,
        }


@dataclass
class Alert:
    """An anomaly surfaced for human review."""

    kind: AlertKind
    source_name: str
    current: int
    previous: int | None = None
    error: str | None = None

    @property
    def message(self) -> str:
        if self.kind == AlertKind.ZERO_RESULTS:
            return (
                f"Source '{self.source_name}' returned 0 candidates "
                f"(previous run: {self.previous})"
            )
        if self.kind == AlertKind.RUN_OVER_RUN_DROP:
            return (
                f"Source '{self.source_name}' dropped from {self.previous} "
                f"to {self.current} candidates"
            )
        return f"Source '{self.source_name}' failed: {self.error or 'unknown error'}"

    def to_payload(self) -> dict[str, Any]:
        """Build the webhook payload."""
        fields = [
            {"title": "Source", "value": self.source_name, "short": True},
            {"title": "Current", "value": str(self.current), "short": True},
        ]
        if self.previous is not None:
            fields.append({"title": "Previous", "value": str(self.previous), "short": True})
        if self.error:
            fields.append({"title": "Error", "value": self.error, "short": False})

        return {
            "text": f"[Booth Beacon] {self.message}",
            "attachments": [
                {
                    "color": "danger" if self.kind == AlertKind.SOURCE_FAILURE else "warning",
                    "title": self.kind.value,
                    "fields": fields,
                }
            ],
        }


class WebhookNotifier:
    """
    Delivers alerts to a webhook.

    Uses ALERT_WEBHOOK_URL when no URL is given. Without a URL, alerts are
    only logged.
    """

    def __init__(
        self,
        webhook_url: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.webhook_url = webhook_url or os.environ.get("ALERT_WEBHOOK_URL") or None
        self.timeout = timeout
        self._transport = transport

    async def send(self, alert: Alert) -> bool:
        """
        Deliver an alert.

        Args:
            alert: Alert to deliver

        Returns:
            True if the webhook accepted the payload
        """
        if not self.webhook_url:
            logger.warning(f"Alert (no webhook configured): {alert.message}")
            return False

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.webhook_url, json=alert.to_payload())
                response.raise_for_status()
        except Exception as e:
            logger.warning(f"Failed to deliver alert for '{alert.source_name}': {e}")
            return False

        logger.info(f"Delivered {alert.kind.value} alert for '{alert.source_name}'")
        return True


class MetricsSink:
    """
    Persists run outcomes and detects anomalies.

    ``check_for_anomaly`` compares against the latest successful run already
    recorded, so call it before ``record`` for the current run.
    """

    def __init__(
        self,
        repository: CrawlRunRepository,
        notifier: WebhookNotifier | None = None,
        drop_threshold: float = DEFAULT_DROP_THRESHOLD,
    ) -> None:
        self.repository = repository
        self.notifier = notifier
        self.drop_threshold = drop_threshold

    def record(self, outcome: SourceRunOutcome) -> None:
        """Persist one run outcome."""
        self.repository.create(outcome)
        self.repository.commit()
        counts = outcome.operator_counts()
        logger.info(
            f"Recorded run for '{outcome.source_name}' ({outcome.status.value}): "
            + ", ".join(f"{k}={v}" for k, v in counts.items())
        )

    def previous_total(self, source_name: str) -> int | None:
        """Total candidates of the latest successful recorded run, if any."""
        previous = self.repository.get_latest_successful(source_name)
        return previous.total_candidates if previous is not None else None

    def check_for_anomaly(self, source_name: str, outcome: SourceRunOutcome) -> Alert | None:
        """
        Check a run against the source's previous run.

        Args:
            source_name: Source identifier
            outcome: Current run outcome

        Returns:
            Alert, or None if the run looks normal
        """
        if outcome.failed:
            return Alert(
                kind=AlertKind.SOURCE_FAILURE,
                source_name=source_name,
                current=outcome.total_candidates,
                previous=self.previous_total(source_name),
                error=outcome.error,
            )
        return detect_drop(
            source_name,
            outcome.total_candidates,
            self.previous_total(source_name),
            self.drop_threshold,
        )

    async def notify(self, alert: Alert) -> bool:
        """Deliver an alert if a notifier is configured."""
        if self.notifier is None:
            logger.warning(f"Alert: {alert.message}")
            return False
        return await self.notifier.send(alert)


def detect_drop(
    source_name: str,
    current: int,
    previous: int | None,
    threshold: float = DEFAULT_DROP_THRESHOLD,
) -> Alert | None:
    """
    Apply the drop detection policy.

    Zero results after a non-zero run always alert. Otherwise a run below
    ``threshold`` times the previous total alerts.
    """
    if not previous or previous <= 0:
        return None
    if current == 0:
        return Alert(AlertKind.ZERO_RESULTS, source_name, current=0, previous=previous)
    if current < threshold * previous:
        return Alert(AlertKind.RUN_OVER_RUN_DROP, source_name, current=current, previous=previous)
    return None
