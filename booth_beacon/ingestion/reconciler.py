"""
Reconciliation Engine Module
============================

Decides, for each normalized record in a batch, whether it describes a
new venue (insert) or a known one (merge), and computes the merged field
set and provenance.

Pipeline per batch:
1. Group records by normalized key and fold each group into one
   representative
2. Look up each representative in the store by exact key
3. Insert a new booth, or merge into the existing one under the field
   policy below

Merge field policy:
- address, description, state: last non-empty value wins; an empty
  incoming value never clears a stored one
- status: replaced only by a specific (non-unknown) incoming status
- booth_type: replaced only while the stored value is unknown
- latitude/longitude: set only while the stored pair is empty; never
  changed afterwards
- source_names/source_urls: union, never shrink
- updated_at: always touched
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol, Union
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from booth_beacon.core.enums import BoothStatus, BoothType
from booth_beacon.core.errors import StoreError
from booth_beacon.core.schema import StoredBooth, union_ordered
from booth_beacon.ingestion.normalizer import NormalizedRecord, make_slug

logger = logging.getLogger(__name__)

STORE_ERROR = "store_error"

# Scalar fields that follow last-non-empty-wins
_DESCRIPTIVE_FIELDS = ("address", "description", "state")


def utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


class BoothStore(Protocol):
    """Persistence operations the engine depends on."""

    def get_by_key(self, normalized_key: str) -> StoredBooth | None: ...

    def insert(self, booth: StoredBooth) -> StoredBooth: ...

    def update(self, booth: StoredBooth) -> StoredBooth: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@dataclass(frozen=True)
class Inserted:
    """A new booth was created."""

    booth_id: UUID


@dataclass(frozen=True)
class Merged:
    """The record was merged into an existing booth."""

    booth_id: UUID
    changed_fields: tuple[str, ...] = ()


@dataclass(frozen=True)
class Skipped:
    """The record was not applied to the store."""

    reason: str


Outcome = Union[Inserted, Merged, Skipped]


@dataclass
class BatchGroup:
    """Records of one batch that share a normalized key."""

    key: str
    indices: list[int]
    record: NormalizedRecord
    source_names: list[str]
    source_urls: list[str]


@dataclass
class ReconciliationResult:
    """
    Per-record outcomes of one reconcile call.

    ``outcomes[i]`` belongs to ``batch[i]``; records folded into the same
    group share that group's outcome.
    """

    outcomes: list[Outcome] = field(default_factory=list)
    dry_run: bool = False

    @property
    def inserted(self) -> int:
        """Number of distinct booths created."""
        return len({o.booth_id for o in self.outcomes if isinstance(o, Inserted)})

    @property
    def merged(self) -> int:
        """Number of distinct existing booths matched."""
        return len({o.booth_id for o in self.outcomes if isinstance(o, Merged)})

    @property
    def changed(self) -> int:
        """Number of distinct existing booths whose fields actually changed."""
        return len({
            o.booth_id for o in self.outcomes if isinstance(o, Merged) and o.changed_fields
        })

    @property
    def skipped(self) -> int:
        """Number of records that were not applied."""
        return sum(1 for o in self.outcomes if isinstance(o, Skipped))

    @property
    def errored(self) -> int:
        """Number of records skipped because of a store failure."""
        return sum(1 for o in self.outcomes if isinstance(o, Skipped) and o.reason == STORE_ERROR)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "records": len(self.outcomes),
            "inserted": self.inserted,
            "merged": self.merged,
            "changed": self.changed,
            "skipped": self.skipped,
            "errored": self.errored,
            "dry_run": self.dry_run,
        }


def group_batch(batch: Sequence[NormalizedRecord]) -> list[BatchGroup]:
    """
    Group a batch by normalized key and fold each group into one record.

    The representative is the record with the most non-empty optional
    fields; ties go to the earlier record. Remaining gaps are filled from
    the other records in batch order. A specific status beats unknown, and
    between specific statuses the later record wins.

    Args:
        batch: Normalized records in adapter output order

    Returns:
        One group per distinct key, in order of first appearance
    """
    by_key: dict[str, list[int]] = {}
    for index, record in enumerate(batch):
        by_key.setdefault(record.key, []).append(index)

    groups = []
    for key, indices in by_key.items():
        members = [batch[i] for i in indices]
        base = members[0]
        for member in members[1:]:
            if member.filled_field_count() > base.filled_field_count():
                base = member

        values: dict[str, Any] = {}
        for name in _DESCRIPTIVE_FIELDS:
            values[name] = getattr(base, name) or next(
                (getattr(m, name) for m in members if getattr(m, name)), ""
            )

        latitude, longitude = base.latitude, base.longitude
        if not base.has_coordinates:
            donor = next((m for m in members if m.has_coordinates), None)
            if donor is not None:
                latitude, longitude = donor.latitude, donor.longitude

        status = BoothStatus.UNKNOWN
        for member in members:
            if member.status != BoothStatus.UNKNOWN:
                status = member.status

        record = NormalizedRecord(
            key=key,
            name=base.name,
            city=base.city,
            country=base.country,
            booth_type=base.booth_type,
            latitude=latitude,
            longitude=longitude,
            status=status,
            source_name=base.source_name,
            source_url=base.source_url,
            **values,
        )
        groups.append(BatchGroup(
            key=key,
            indices=indices,
            record=record,
            source_names=union_ordered([m.source_name for m in members]),
            source_urls=union_ordered([m.source_url for m in members]),
        ))
    return groups


class ReconciliationEngine:
    """
    Applies normalized batches to a booth store.

    Matching is exact on the normalized key. Store failures are isolated
    to the group that hit them and reported as ``Skipped("store_error")``.
    """

    def __init__(
        self,
        store: BoothStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.clock = clock

    def reconcile(
        self,
        batch: Sequence[NormalizedRecord],
        dry_run: bool = False,
    ) -> ReconciliationResult:
        """
        Reconcile a batch against the store.

        Args:
            batch: Normalized records
            dry_run: Compute outcomes without writing to the store

        Returns:
            ReconciliationResult with one outcome per input record
        """
        outcomes: list[Outcome | None] = [None] * len(batch)

        for group in group_batch(batch):
            outcome = self._apply_group(group, dry_run)
            for index in group.indices:
                outcomes[index] = outcome

        result = ReconciliationResult(
            outcomes=[o for o in outcomes if o is not None],
            dry_run=dry_run,
        )
        logger.info(
            f"Reconciled {len(batch)} records: {result.inserted} inserted, "
            f"{result.merged} merged ({result.changed} changed), {result.skipped} skipped"
            + (" [dry run]" if dry_run else "")
        )
        return result

    def _apply_group(self, group: BatchGroup, dry_run: bool) -> Outcome:
        try:
            existing = self.store.get_by_key(group.key)
            if existing is None:
                booth = self.build_booth(group)
                if not dry_run:
                    booth = self.store.insert(booth)
                    self.store.commit()
                return Inserted(booth.id)

            merged, changed = self.merge(existing, group)
            if not dry_run:
                self.store.update(merged)
                self.store.commit()
            return Merged(existing.id, changed)

        except (StoreError, SQLAlchemyError) as e:
            logger.warning(f"Store error for '{group.record.name}' ({group.key}): {e}")
            if not dry_run:
                self.store.rollback()
            return Skipped(STORE_ERROR)

    def build_booth(self, group: BatchGroup) -> StoredBooth:
        """Create a new booth from a group representative."""
        record = group.record
        now = self.clock()
        return StoredBooth(
            normalized_key=group.key,
            slug=make_slug(record.name, record.city),
            name=record.name,
            address=record.address,
            city=record.city,
            state=record.state,
            country=record.country,
            latitude=record.latitude,
            longitude=record.longitude,
            description=record.description,
            status=record.status,
            booth_type=record.booth_type,
            source_names=group.source_names,
            source_urls=group.source_urls,
            created_at=now,
            updated_at=now,
        )

    def merge(self, existing: StoredBooth, group: BatchGroup) -> tuple[StoredBooth, tuple[str, ...]]:
        """
        Merge a group representative into an existing booth.

        Args:
            existing: Stored booth with the same key
            group: Incoming batch group

        Returns:
            Tuple of (merged booth, names of fields whose value changed)
        """
        record = group.record
        changes: dict[str, Any] = {}

        for name in _DESCRIPTIVE_FIELDS:
            incoming = getattr(record, name)
            if incoming and incoming != getattr(existing, name):
                changes[name] = incoming

        if record.status != BoothStatus.UNKNOWN and record.status != existing.status:
            changes["status"] = record.status

        if (
            existing.booth_type == BoothType.UNKNOWN
            and record.booth_type != BoothType.UNKNOWN
        ):
            changes["booth_type"] = record.booth_type

        if (
            existing.latitude is None
            and existing.longitude is None
            and record.has_coordinates
        ):
            changes["latitude"] = record.latitude
            changes["longitude"] = record.longitude

        source_names = union_ordered(existing.source_names, group.source_names)
        if source_names != existing.source_names:
            changes["source_names"] = source_names
        source_urls = union_ordered(existing.source_urls, group.source_urls)
        if source_urls != existing.source_urls:
            changes["source_urls"] = source_urls

        changed = tuple(changes)
        changes["updated_at"] = self.clock()
        return existing.model_copy(update=changes), changed
