"""SQLAlchemy ORM models for the Booth Beacon database.

- BoothDB: canonical booth rows, one per venue
- CrawlRunDB: per-source run outcomes used for drop detection
"""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import DateTime, Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


def _generate_uuid() -> str:
    """Generate a UUID string."""
    return str(uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class BoothDB(Base):
    """
    Database model for canonical booths.

    Provenance is stored as JSON arrays used as ordered sets. Matching
    against incoming candidates goes through ``normalized_key``.
    """

    __tablename__ = "booths"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    normalized_key: Mapped[str] = mapped_column(
        String(512), nullable=False, unique=True, index=True
    )
    slug: Mapped[str] = mapped_column(String(60), default="", index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(Text, default="")
    city: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    state: Mapped[str] = mapped_column(String(100), default="")
    country: Mapped[str] = mapped_column(String(100), default="Unknown", index=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    description: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(20), default="unknown", index=True)
    booth_type: Mapped[str] = mapped_column(String(20), default="analog")
    source_names_json: Mapped[str] = mapped_column(Text, default="[]")  # JSON array
    source_urls_json: Mapped[str] = mapped_column(Text, default="[]")  # JSON array
    geocode_confidence: Mapped[str | None] = mapped_column(String(10), nullable=True)
    geocode_provider: Mapped[str | None] = mapped_column(String(50), nullable=True)
    geocoded_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)

    def __repr__(self) -> str:
        return f"<BoothDB(id={self.id}, name='{self.name}', city='{self.city}')>"


class CrawlRunDB(Base):
    """
    Database model for per-source crawl run outcomes.

    One row per orchestrator pass over one source.
    """

    __tablename__ = "crawl_runs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    source_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    source_url: Mapped[str] = mapped_column(String(1000), default="")
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    extraction_method: Mapped[str] = mapped_column(String(20), default="none")
    total_candidates: Mapped[int] = mapped_column(Integer, default=0)
    inserted: Mapped[int] = mapped_column(Integer, default=0)
    merged: Mapped[int] = mapped_column(Integer, default=0)
    changed: Mapped[int] = mapped_column(Integer, default=0)
    rejected: Mapped[int] = mapped_column(Integer, default=0)
    skipped: Mapped[int] = mapped_column(Integer, default=0)
    errored: Mapped[int] = mapped_column(Integer, default=0)
    elapsed_seconds: Mapped[float] = mapped_column(Float, default=0.0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, index=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<CrawlRunDB(source='{self.source_name}', status={self.status}, "
            f"total={self.total_candidates})>"
        )
