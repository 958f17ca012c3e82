"""Pydantic v2 domain models for canonical booth records.

These models are what the reconciliation engine and the geocoding pass
work with. The SQLAlchemy models in ``booth_beacon.db.models`` are the
persisted form; repositories convert between the two.
"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator

from booth_beacon.core.enums import BoothStatus, BoothType, GeocodeConfidence


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


class StoredBooth(BaseModel):
    """
    Canonical booth entity, one per real-world venue.

    ``source_names`` and ``source_urls`` are ordered sets: they only ever
    grow, and each value appears once.
    """

    id: UUID = Field(default_factory=uuid4)
    normalized_key: str
    slug: str = ""
    name: str
    address: str = ""
    city: str
    state: str = ""
    country: str = "Unknown"
    latitude: float | None = None
    longitude: float | None = None
    description: str = ""
    status: BoothStatus = BoothStatus.UNKNOWN
    booth_type: BoothType = BoothType.ANALOG
    source_names: list[str] = Field(default_factory=list)
    source_urls: list[str] = Field(default_factory=list)
    geocode_confidence: GeocodeConfidence | None = None
    geocode_provider: str | None = None
    geocoded_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    @field_validator("name", "city", "normalized_key")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("value cannot be empty")
        return v.strip()

    @field_validator("source_names", "source_urls")
    @classmethod
    def unique_in_order(cls, v: list[str]) -> list[str]:
        return union_ordered(v)

    @property
    def has_coordinates(self) -> bool:
        """True when both latitude and longitude are set."""
        return self.latitude is not None and self.longitude is not None


def union_ordered(*groups: list[str] | tuple[str, ...] | set[str]) -> list[str]:
    """
    Union several string collections, keeping first-seen order.

    Empty strings are dropped.

    Args:
        groups: Collections to merge

    Returns:
        Deduplicated list
    """
    seen: dict[str, None] = {}
    for group in groups:
        for value in group:
            if value and value not in seen:
                seen[value] = None
    return list(seen)
