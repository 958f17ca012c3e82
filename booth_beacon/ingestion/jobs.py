"""
Background Jobs Module
======================

Defines arq tasks for running crawls in a worker process.
Uses Redis as the job queue backend.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from arq import create_pool
from arq.connections import RedisSettings
from arq.jobs import Job
from arq.jobs import JobStatus as ArqJobStatus

from booth_beacon.core.errors import ConfigurationError
from booth_beacon.db.engine import get_session
from booth_beacon.ingestion.orchestrator import build_orchestrator
from booth_beacon.ingestion.registry import check_credentials

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    """Status of a crawl job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class JobResult:
    """Result of a crawl job."""

    job_id: str
    source_names: list[str]
    status: JobStatus
    dry_run: bool = False
    started_at: datetime | None = None
    completed_at: datetime | None = None
    summary: dict[str, Any] | None = None
    errors: list[str] = field(default_factory=list)
    duration_seconds: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "job_id": self.job_id,
            "source_names": self.source_names,
            "status": self.status.value,
            "dry_run": self.dry_run,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "summary": self.summary,
            "errors": self.errors,
            "duration_seconds": self.duration_seconds,
        }


def get_redis_settings() -> RedisSettings:
    """Get Redis connection settings from environment."""
    return RedisSettings(
        host=os.environ.get("REDIS_HOST", "localhost"),
        port=int(os.environ.get("REDIS_PORT", "6379")),
        database=int(os.environ.get("REDIS_DB", "0")),
    )


async def crawl_sources(
    ctx: dict[str, Any],
    source_names: list[str] | None = None,
    dry_run: bool = False,
) -> dict[str, Any]:
    """
    Crawl task.

    Checks credentials, wires an orchestrator against a fresh database
    session, and runs the requested sources (all enabled sources when
    none are named).

    Args:
        ctx: arq context (contains Redis connection)
        source_names: Optional subset of source names
        dry_run: Compute outcomes without writing

    Returns:
        JobResult as dictionary
    """
    result = JobResult(
        job_id=ctx.get("job_id", str(uuid4())),
        source_names=list(source_names or []),
        status=JobStatus.RUNNING,
        dry_run=dry_run,
        started_at=datetime.now(UTC),
    )

    try:
        check_credentials()
        with get_session() as session:
            orchestrator = build_orchestrator(session)
            summary = await orchestrator.run(source_names, dry_run=dry_run)
        result.summary = summary.to_dict()
        result.status = JobStatus.COMPLETED

    except ConfigurationError as e:
        logger.error(f"Crawl job halted by configuration error: {e}")
        result.status = JobStatus.FAILED
        result.errors.append(str(e))

    except Exception as e:
        logger.exception(f"Crawl job failed: {e}")
        result.status = JobStatus.FAILED
        result.errors.append(str(e))

    finally:
        result.completed_at = datetime.now(UTC)
        if result.started_at and result.completed_at:
            result.duration_seconds = (result.completed_at - result.started_at).total_seconds()

    return result.to_dict()


async def crawl_sources_sync(
    source_names: list[str] | None = None,
    dry_run: bool = False,
) -> dict[str, Any]:
    """
    Run a crawl in-process (without arq).

    Useful for CLI commands with --sync flag.
    """
    ctx: dict[str, Any] = {"job_id": str(uuid4())}
    return await crawl_sources(ctx, source_names, dry_run)


async def enqueue_crawl(
    source_names: list[str] | None = None,
    dry_run: bool = False,
) -> str:
    """
    Enqueue a crawl job for async processing.

    Args:
        source_names: Optional subset of source names
        dry_run: Compute outcomes without writing

    Returns:
        Job ID
    """
    redis = await create_pool(get_redis_settings())
    try:
        job = await redis.enqueue_job("crawl_sources", source_names, dry_run)
    finally:
        await redis.close()
    if job is None:
        raise RuntimeError("Crawl job was not enqueued")
    return job.job_id


async def get_job_status(job_id: str) -> dict[str, Any] | None:
    """
    Get the status of a crawl job.

    Args:
        job_id: Job ID to look up

    Returns:
        Job info dict, or None if not found
    """
    redis = await create_pool(get_redis_settings())
    try:
        job = Job(job_id, redis)
        status = await job.status()
        if status == ArqJobStatus.not_found:
            return None
        result = await job.result_info() if status == ArqJobStatus.complete else None
    finally:
        await redis.close()

    return {
        "job_id": job_id,
        "status": status.value,
        "result": result.result if result else None,
    }


class WorkerSettings:
    """arq worker settings."""

    functions = [crawl_sources]
    redis_settings = get_redis_settings()
    max_jobs = 1  # one crawl at a time
    job_timeout = 6 * 3600
    keep_result = 86400  # 24 hours
