"""Repository classes for booth and crawl run database operations."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from booth_beacon.core.enums import BoothStatus, BoothType, GeocodeConfidence, RunStatus
from booth_beacon.core.errors import StoreError
from booth_beacon.core.schema import StoredBooth
from booth_beacon.db.models import BoothDB, CrawlRunDB

if TYPE_CHECKING:
    from booth_beacon.ingestion.metrics import SourceRunOutcome


def _utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


class BoothRepository:
    """
    Repository for canonical booth rows.

    Implements the ``BoothStore`` protocol used by the reconciliation
    engine. Database failures surface as ``StoreError``.
    """

    def __init__(self, session: Session):
        self.session = session

    def get_by_key(self, normalized_key: str) -> StoredBooth | None:
        """Get the booth stored under a normalized key."""
        stmt = select(BoothDB).where(BoothDB.normalized_key == normalized_key)
        try:
            db_item = self.session.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreError(f"Lookup failed for key '{normalized_key}': {e}") from e
        return self._to_domain(db_item) if db_item else None

    def get_by_id(self, booth_id: UUID | str) -> StoredBooth | None:
        """Get a booth by ID."""
        stmt = select(BoothDB).where(BoothDB.id == str(booth_id))
        db_item = self.session.execute(stmt).scalar_one_or_none()
        return self._to_domain(db_item) if db_item else None

    def insert(self, booth: StoredBooth) -> StoredBooth:
        """Insert a new booth."""
        db_item = BoothDB(id=str(booth.id))
        self._apply(db_item, booth)
        db_item.created_at = booth.created_at
        try:
            self.session.add(db_item)
            self.session.flush()
        except SQLAlchemyError as e:
            raise StoreError(f"Insert failed for '{booth.name}': {e}") from e
        return self._to_domain(db_item)

    def update(self, booth: StoredBooth) -> StoredBooth:
        """Update an existing booth. The id and created_at are never changed."""
        try:
            db_item = self.session.get(BoothDB, str(booth.id))
            if db_item is None:
                raise StoreError(f"Booth with id {booth.id} not found")
            self._apply(db_item, booth)
            self.session.flush()
        except SQLAlchemyError as e:
            raise StoreError(f"Update failed for '{booth.name}': {e}") from e
        return self._to_domain(db_item)

    def list_missing_coordinates(self, limit: int = 100) -> list[StoredBooth]:
        """List booths that have no coordinates yet, oldest first."""
        stmt = (
            select(BoothDB)
            .where((BoothDB.latitude.is_(None)) | (BoothDB.longitude.is_(None)))
            .order_by(BoothDB.created_at)
            .limit(limit)
        )
        result = self.session.execute(stmt).scalars().all()
        return [self._to_domain(b) for b in result]

    def set_coordinates(
        self,
        booth_id: UUID | str,
        latitude: float,
        longitude: float,
        confidence: GeocodeConfidence,
        provider: str,
    ) -> StoredBooth:
        """
        Write geocoded coordinates for a booth.

        Only the geocoding enrichment pass calls this; reconciliation never
        changes coordinates once they are set.
        """
        try:
            db_item = self.session.get(BoothDB, str(booth_id))
            if db_item is None:
                raise StoreError(f"Booth with id {booth_id} not found")
            now = _utc_now()
            db_item.latitude = latitude
            db_item.longitude = longitude
            db_item.geocode_confidence = confidence.value
            db_item.geocode_provider = provider
            db_item.geocoded_at = now
            db_item.updated_at = now
            self.session.flush()
        except SQLAlchemyError as e:
            raise StoreError(f"Coordinate update failed for {booth_id}: {e}") from e
        return self._to_domain(db_item)

    def list_all(self, limit: int = 100, offset: int = 0) -> list[StoredBooth]:
        """List booths with pagination."""
        stmt = select(BoothDB).order_by(BoothDB.created_at).limit(limit).offset(offset)
        result = self.session.execute(stmt).scalars().all()
        return [self._to_domain(b) for b in result]

    def count(self) -> int:
        """Get total count of booths."""
        stmt = select(func.count()).select_from(BoothDB)
        return self.session.execute(stmt).scalar() or 0

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError(f"Commit failed: {e}") from e

    def rollback(self) -> None:
        self.session.rollback()

    @staticmethod
    def _apply(db_item: BoothDB, booth: StoredBooth) -> None:
        db_item.normalized_key = booth.normalized_key
        db_item.slug = booth.slug
        db_item.name = booth.name
        db_item.address = booth.address
        db_item.city = booth.city
        db_item.state = booth.state
        db_item.country = booth.country
        db_item.latitude = booth.latitude
        db_item.longitude = booth.longitude
        db_item.description = booth.description
        db_item.status = booth.status.value
        db_item.booth_type = booth.booth_type.value
        db_item.source_names_json = json.dumps(booth.source_names)
        db_item.source_urls_json = json.dumps(booth.source_urls)
        db_item.geocode_confidence = (
            booth.geocode_confidence.value if booth.geocode_confidence else None
        )
        db_item.geocode_provider = booth.geocode_provider
        db_item.geocoded_at = booth.geocoded_at
        db_item.updated_at = booth.updated_at

    @staticmethod
    def _to_domain(db_item: BoothDB) -> StoredBooth:
        """Convert database model to domain model."""
        return StoredBooth(
            id=UUID(db_item.id),
            normalized_key=db_item.normalized_key,
            slug=db_item.slug or "",
            name=db_item.name,
            address=db_item.address or "",
            city=db_item.city,
            state=db_item.state or "",
            country=db_item.country or "Unknown",
            latitude=db_item.latitude,
            longitude=db_item.longitude,
            description=db_item.description or "",
            status=BoothStatus.coerce(db_item.status),
            booth_type=BoothType.coerce(db_item.booth_type) or BoothType.UNKNOWN,
            source_names=json.loads(db_item.source_names_json or "[]"),
            source_urls=json.loads(db_item.source_urls_json or "[]"),
            geocode_confidence=(
                GeocodeConfidence(db_item.geocode_confidence)
                if db_item.geocode_confidence
                else None
            ),
            geocode_provider=db_item.geocode_provider,
            geocoded_at=db_item.geocoded_at,
            created_at=db_item.created_at,
            updated_at=db_item.updated_at,
        )


class CrawlRunRepository:
    """Repository for per-source crawl run outcomes."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, outcome: SourceRunOutcome) -> CrawlRunDB:
        """Persist one source run outcome."""
        db_item = CrawlRunDB(
            source_name=outcome.source_name,
            source_url=outcome.source_url,
            status=outcome.status.value,
            extraction_method=outcome.extraction_method.value,
            total_candidates=outcome.total_candidates,
            inserted=outcome.inserted,
            merged=outcome.merged,
            changed=outcome.changed,
            rejected=outcome.rejected,
            skipped=outcome.skipped,
            errored=outcome.errored,
            elapsed_seconds=outcome.elapsed_seconds,
            error_message=outcome.error,
            started_at=outcome.started_at,
            completed_at=outcome.completed_at,
        )
        self.session.add(db_item)
        self.session.flush()
        return db_item

    def get_latest_successful(self, source_name: str) -> CrawlRunDB | None:
        """Get the most recent successful run for a source."""
        stmt = (
            select(CrawlRunDB)
            .where(CrawlRunDB.source_name == source_name)
            .where(CrawlRunDB.status == RunStatus.SUCCESS.value)
            .order_by(CrawlRunDB.started_at.desc())
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def list_recent(self, source_name: str | None = None, limit: int = 20) -> list[CrawlRunDB]:
        """List recent runs, newest first, optionally for one source."""
        stmt = select(CrawlRunDB).order_by(CrawlRunDB.started_at.desc()).limit(limit)
        if source_name:
            stmt = stmt.where(CrawlRunDB.source_name == source_name)
        return list(self.session.execute(stmt).scalars().all())

    def commit(self) -> None:
        self.session.commit()
