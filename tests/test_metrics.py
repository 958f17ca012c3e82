"""Tests for run metrics and alerting."""

import json
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from booth_beacon.core.enums import AlertKind, RunStatus
from booth_beacon.db.repositories import CrawlRunRepository
from booth_beacon.ingestion.metrics import (
    Alert,
    MetricsSink,
    SourceRunOutcome,
    WebhookNotifier,
    detect_drop,
)

BASE_TIME = datetime(2025, 10, 1, 6, 0, tzinfo=UTC)


def _outcome(total: int, hours: int = 0, status: RunStatus = RunStatus.SUCCESS, **kwargs) -> SourceRunOutcome:
    return SourceRunOutcome(
        source_name="autofoto",
        source_url="https://autofoto.org/locations",
        started_at=BASE_TIME + timedelta(hours=hours),
        status=status,
        total_candidates=total,
        **kwargs,
    )


class TestDetectDrop:
    """Tests for the drop detection policy."""

    def test_sharp_drop_alerts(self) -> None:
        """3 candidates after 50 is a run-over-run drop."""
        alert = detect_drop("autofoto", current=3, previous=50, threshold=0.8)
        assert alert is not None
        assert alert.kind == AlertKind.RUN_OVER_RUN_DROP
        assert alert.previous == 50
        assert alert.current == 3

    def test_zero_after_nonzero_alerts(self) -> None:
        alert = detect_drop("autofoto", current=0, previous=12)
        assert alert is not None
        assert alert.kind == AlertKind.ZERO_RESULTS

    def test_small_drop_is_normal(self) -> None:
        assert detect_drop("autofoto", current=45, previous=50, threshold=0.8) is None

    def test_exact_threshold_is_normal(self) -> None:
        assert detect_drop("autofoto", current=40, previous=50, threshold=0.8) is None

    def test_no_previous_run(self) -> None:
        assert detect_drop("autofoto", current=0, previous=None) is None
        assert detect_drop("autofoto", current=0, previous=0) is None


class TestMetricsSink:
    """Tests for MetricsSink against a temporary database."""

    @pytest.fixture
    def sink(self, session) -> MetricsSink:
        return MetricsSink(CrawlRunRepository(session), drop_threshold=0.8)

    def test_record_persists_run(self, sink: MetricsSink, session) -> None:
        sink.record(_outcome(10, inserted=4, changed=2, rejected=1))

        runs = CrawlRunRepository(session).list_recent("autofoto")
        assert len(runs) == 1
        assert runs[0].total_candidates == 10
        assert runs[0].inserted == 4
        assert runs[0].changed == 2
        assert runs[0].status == "success"

    def test_first_run_has_no_alert(self, sink: MetricsSink) -> None:
        assert sink.check_for_anomaly("autofoto", _outcome(5)) is None

    def test_drop_against_previous_run(self, sink: MetricsSink) -> None:
        sink.record(_outcome(50))
        alert = sink.check_for_anomaly("autofoto", _outcome(3, hours=1))

        assert alert is not None
        assert alert.kind == AlertKind.RUN_OVER_RUN_DROP
        assert (alert.previous, alert.current) == (50, 3)

    def test_zero_results(self, sink: MetricsSink) -> None:
        sink.record(_outcome(20))
        alert = sink.check_for_anomaly("autofoto", _outcome(0, hours=1))
        assert alert.kind == AlertKind.ZERO_RESULTS

    def test_baseline_is_latest_successful_run(self, sink: MetricsSink) -> None:
        """Failed runs are skipped when choosing the comparison run."""
        sink.record(_outcome(50))
        sink.record(_outcome(0, hours=1, status=RunStatus.FAILED, error="timeout"))

        assert sink.previous_total("autofoto") == 50
        assert sink.check_for_anomaly("autofoto", _outcome(48, hours=2)) is None

    def test_baseline_uses_newest_run(self, sink: MetricsSink) -> None:
        sink.record(_outcome(50))
        sink.record(_outcome(4, hours=1))
        assert sink.previous_total("autofoto") == 4

    def test_failure_alert(self, sink: MetricsSink) -> None:
        sink.record(_outcome(30))
        alert = sink.check_for_anomaly(
            "autofoto", _outcome(0, hours=1, status=RunStatus.FAILED, error="fetch failed: 503")
        )

        assert alert.kind == AlertKind.SOURCE_FAILURE
        assert alert.previous == 30
        assert "503" in alert.message

    def test_sources_are_independent(self, sink: MetricsSink) -> None:
        sink.record(_outcome(50))
        other = SourceRunOutcome(source_name="photomatica", total_candidates=1)
        assert sink.check_for_anomaly("photomatica", other) is None

    @pytest.mark.asyncio
    async def test_notify_without_notifier(self, sink: MetricsSink) -> None:
        alert = Alert(AlertKind.ZERO_RESULTS, "autofoto", current=0, previous=5)
        assert await sink.notify(alert) is False


class TestSourceRunOutcome:
    """Tests for the outcome record."""

    def test_operator_counts(self) -> None:
        outcome = _outcome(10, inserted=3, merged=5, changed=2, rejected=1, skipped=1, errored=1)
        assert outcome.operator_counts() == {
            "found": 10,
            "added": 3,
            "updated": 2,
            "skipped": 2,
            "errored": 1,
        }

    def test_to_dict(self) -> None:
        data = _outcome(10).to_dict()
        assert data["status"] == "success"
        assert data["extraction_method"] == "none"
        assert data["started_at"] == BASE_TIME.isoformat()


class TestAlertPayload:
    """Tests for alert formatting."""

    def test_drop_payload(self) -> None:
        payload = Alert(AlertKind.RUN_OVER_RUN_DROP, "autofoto", current=3, previous=50).to_payload()

        assert payload["text"].startswith("[Booth Beacon]")
        assert "50" in payload["text"] and "3" in payload["text"]
        attachment = payload["attachments"][0]
        assert attachment["color"] == "warning"
        assert attachment["title"] == "run_over_run_drop"
        assert {"title": "Previous", "value": "50", "short": True} in attachment["fields"]

    def test_failure_payload(self) -> None:
        payload = Alert(AlertKind.SOURCE_FAILURE, "autofoto", current=0, error="boom").to_payload()
        attachment = payload["attachments"][0]
        assert attachment["color"] == "danger"
        assert any(f["title"] == "Error" and f["value"] == "boom" for f in attachment["fields"])


class TestWebhookNotifier:
    """Tests for webhook delivery."""

    @pytest.fixture
    def alert(self) -> Alert:
        return Alert(AlertKind.ZERO_RESULTS, "autofoto", current=0, previous=12)

    @pytest.mark.asyncio
    async def test_posts_payload(self, alert: Alert) -> None:
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, text="ok")

        notifier = WebhookNotifier(
            "https://hooks.example.com/alerts", transport=httpx.MockTransport(handler)
        )

        assert await notifier.send(alert) is True
        assert len(requests) == 1
        assert requests[0].method == "POST"
        assert json.loads(requests[0].content) == alert.to_payload()

    @pytest.mark.asyncio
    async def test_webhook_error_is_swallowed(self, alert: Alert) -> None:
        notifier = WebhookNotifier(
            "https://hooks.example.com/alerts",
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )
        assert await notifier.send(alert) is False

    @pytest.mark.asyncio
    async def test_connection_error_is_swallowed(self, alert: Alert) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        notifier = WebhookNotifier(
            "https://hooks.example.com/alerts", transport=httpx.MockTransport(handler)
        )
        assert await notifier.send(alert) is False

    @pytest.mark.asyncio
    async def test_no_url_configured(self, alert: Alert, monkeypatch) -> None:
        monkeypatch.delenv("ALERT_WEBHOOK_URL", raising=False)
        notifier = WebhookNotifier()
        assert notifier.webhook_url is None
        assert await notifier.send(alert) is False

    def test_url_from_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("ALERT_WEBHOOK_URL", "https://hooks.example.com/env")
        assert WebhookNotifier().webhook_url == "https://hooks.example.com/env"
