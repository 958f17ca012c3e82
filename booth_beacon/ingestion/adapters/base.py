"""
Adapter Base Module
===================

Defines the candidate record shape and the abstract base class for
source-specific adapters.

Adapters are pure parsers: they turn page markdown returned by the
content-fetch service into candidate records. They never perform network
or database I/O.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any

from booth_beacon.core.enums import BoothStatus, BoothType
from booth_beacon.ingestion.gazetteer import infer_country, infer_booth_type


@dataclass
class CandidateRecord:
    """
    One booth mention extracted from a single page, before normalization.

    ``booth_type`` of None means the page did not say; the normalizer
    infers it from the description and name.
    """

    name: str
    city: str = ""
    address: str = ""
    state: str = ""
    country: str = ""
    latitude: float | None = None
    longitude: float | None = None
    description: str = ""
    status: BoothStatus = BoothStatus.UNKNOWN
    booth_type: BoothType | None = None
    source_name: str = ""
    source_url: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = asdict(self)
        data["status"] = self.status.value
        data["booth_type"] = self.booth_type.value if self.booth_type else None
        return data


class BaseAdapter(ABC):
    """
    Abstract base class for source-specific adapters.

    Subclasses must implement:
    - parse: Turn page markdown into candidate records
    """

    # Adapter identification (override in subclasses)
    ADAPTER_NAME: str = "base"
    ADAPTER_VERSION: str = "1.0.0"
    HOSTNAME: str = ""

    def extract(
        self,
        content: str,
        source_url: str,
        source_name: str | None = None,
    ) -> list[CandidateRecord]:
        """
        Extract candidate records from page content.

        Args:
            content: Page markdown
            source_url: URL the content was fetched from
            source_name: Configured source name; defaults to the adapter name

        Returns:
            Candidate records in page order (possibly empty)
        """
        if not content:
            return []
        records = self.parse(content)
        name = source_name or self.ADAPTER_NAME
        for record in records:
            record.source_name = name
            record.source_url = source_url
        return records

    @abstractmethod
    def parse(self, content: str) -> list[CandidateRecord]:
        """
        Parse page markdown into candidate records.

        Args:
            content: Page markdown

        Returns:
            Candidate records without provenance set
        """
        pass

    def get_info(self) -> dict[str, str]:
        """Get adapter information."""
        return {
            "name": self.ADAPTER_NAME,
            "version": self.ADAPTER_VERSION,
            "hostname": self.HOSTNAME,
            "class": self.__class__.__name__,
        }


_BULLET = re.compile(r"^[-*•]\s*")
_FIELD_SEPARATOR = re.compile(r" - | – | — | \| ")
_TABLE_RULE = re.compile(r"^\|?[\s:|-]+\|?$")
_MARKDOWN_LINK = re.compile(r"\[([^\]]*)\]\([^)]*\)")
_EMPHASIS = re.compile(r"(\*\*|__|\*|_)(?=\S)(.+?)(?<=\S)\1")


def listing_lines(markdown: str) -> list[str]:
    """
    Select the lines of a page that look like venue listings.

    Bullet lines and table rows qualify; table rule rows do not.

    Args:
        markdown: Page markdown

    Returns:
        Stripped candidate lines in page order
    """
    lines = []
    for raw in markdown.splitlines():
        line = raw.strip()
        if not line or _TABLE_RULE.match(line):
            continue
        if _BULLET.match(line) or "|" in line:
            lines.append(line)
    return lines


def clean_markup(text: str) -> str:
    """Replace markdown links with their text and drop emphasis markers."""
    text = _MARKDOWN_LINK.sub(r"\1", text)
    return _EMPHASIS.sub(r"\2", text)


def split_listing(line: str) -> list[str]:
    """
    Split a bullet or table line into its non-empty parts.

    Parts are separated by spaced hyphens, en and em dashes, or pipes.
    """
    line = _BULLET.sub("", clean_markup(line)).replace("|", " | ")
    return [part.strip() for part in _FIELD_SEPARATOR.split(line) if part.strip()]


class LineListAdapter(BaseAdapter):
    """
    Adapter for operator pages that list venues one per line.

    Each line reads ``name - address - city`` (or the table equivalent).
    The city is the third part when present, else the second, cut at the
    first comma. Subclasses set the fallback country and may post-process
    records in ``finalize``.
    """

    FALLBACK_COUNTRY: str = ""
    DEFAULT_NAME: str = "Photo Booth"
    DEFAULT_STATUS: BoothStatus = BoothStatus.ACTIVE

    # Rows whose first cell is one of these are table headers
    HEADER_NAMES: frozenset[str] = frozenset({"name", "venue", "location", "booth"})

    def parse(self, content: str) -> list[CandidateRecord]:
        records = []
        for line in listing_lines(content):
            parts = split_listing(line)
            if len(parts) < 2 or parts[0].lower() in self.HEADER_NAMES:
                continue
            record = self.parse_parts(parts, line)
            if record is not None:
                records.append(self.finalize(record))
        return records

    def parse_parts(self, parts: list[str], line: str) -> CandidateRecord | None:
        """Build a record from the split parts of one listing line."""
        name = parts[0] or self.DEFAULT_NAME
        city_part = parts[2] if len(parts) > 2 else parts[1]
        city = city_part.split(",")[0].strip()
        description = " - ".join(parts)
        return CandidateRecord(
            name=name,
            address=", ".join(parts[1:]),
            city=city,
            country=infer_country(city, fallback=self.FALLBACK_COUNTRY) or "",
            description=description,
            status=self.DEFAULT_STATUS,
            booth_type=infer_booth_type(description),
        )

    def finalize(self, record: CandidateRecord) -> CandidateRecord:
        """Adjust a parsed record; the default returns it unchanged."""
        return record
