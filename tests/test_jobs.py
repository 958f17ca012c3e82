"""Tests for background crawl jobs."""

from contextlib import contextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.orm import sessionmaker

import booth_beacon.ingestion.jobs as jobs
from booth_beacon.core.errors import ConfigurationError
from booth_beacon.ingestion.jobs import JobResult, JobStatus, crawl_sources, crawl_sources_sync
from booth_beacon.ingestion.orchestrator import CrawlSummary


class TestJobResult:
    """Tests for JobResult serialization."""

    def test_to_dict(self) -> None:
        result = JobResult(job_id="abc", source_names=["autofoto"], status=JobStatus.PENDING)
        data = result.to_dict()

        assert data["job_id"] == "abc"
        assert data["status"] == "pending"
        assert data["started_at"] is None
        assert data["errors"] == []


class TestCrawlSources:
    """Tests for the crawl task."""

    @pytest.mark.asyncio
    async def test_missing_credentials_fail_the_job(self, monkeypatch) -> None:
        def fail() -> None:
            raise ConfigurationError("Missing required credentials: FIRECRAWL_API_KEY")

        monkeypatch.setattr(jobs, "check_credentials", fail)

        result = await crawl_sources({"job_id": "job-1"}, ["autofoto"])

        assert result["job_id"] == "job-1"
        assert result["status"] == "failed"
        assert "FIRECRAWL_API_KEY" in result["errors"][0]
        assert result["duration_seconds"] is not None

    @pytest.mark.asyncio
    async def test_successful_run(self, monkeypatch, db_engine) -> None:
        factory = sessionmaker(bind=db_engine)

        @contextmanager
        def fake_session():
            session = factory()
            try:
                yield session
            finally:
                session.close()

        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(return_value=CrawlSummary(dry_run=True))

        monkeypatch.setattr(jobs, "check_credentials", lambda: None)
        monkeypatch.setattr(jobs, "get_session", fake_session)
        monkeypatch.setattr(jobs, "build_orchestrator", lambda session: orchestrator)

        result = await crawl_sources_sync(["autofoto"], dry_run=True)

        assert result["status"] == "completed"
        assert result["dry_run"] is True
        assert result["summary"]["dry_run"] is True
        orchestrator.run.assert_awaited_once_with(["autofoto"], dry_run=True)


class TestEnqueueCrawl:
    """Tests for queueing crawl jobs."""

    @pytest.mark.asyncio
    async def test_returns_job_id(self, monkeypatch) -> None:
        redis = MagicMock()
        redis.enqueue_job = AsyncMock(return_value=MagicMock(job_id="job-9"))
        redis.close = AsyncMock()
        monkeypatch.setattr(jobs, "create_pool", AsyncMock(return_value=redis))

        assert await jobs.enqueue_crawl(["autofoto"], dry_run=True) == "job-9"
        redis.enqueue_job.assert_awaited_once_with("crawl_sources", ["autofoto"], True)
        redis.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_connection_closed_when_enqueue_fails(self, monkeypatch) -> None:
        redis = MagicMock()
        redis.enqueue_job = AsyncMock(side_effect=ConnectionError("redis went away"))
        redis.close = AsyncMock()
        monkeypatch.setattr(jobs, "create_pool", AsyncMock(return_value=redis))

        with pytest.raises(ConnectionError):
            await jobs.enqueue_crawl(None)
        redis.close.assert_awaited_once()
