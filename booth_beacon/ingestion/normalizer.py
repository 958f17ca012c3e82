"""
Record Normalizer Module
========================

Cleans and standardizes candidate records before reconciliation:
whitespace and HTML entity cleanup, country inference, booth type
inference, coordinate validation, and the normalized matching key.
"""

from __future__ import annotations

import html
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Mapping

from booth_beacon.core.enums import BoothStatus, BoothType
from booth_beacon.ingestion.adapters.base import CandidateRecord
from booth_beacon.ingestion.gazetteer import (
    ANALOG_KEYWORDS,
    CITY_COUNTRY,
    COUNTRY_ALIASES,
    DIGITAL_KEYWORDS,
    UNKNOWN_COUNTRY,
    canonical_country,
    infer_booth_type,
    infer_country,
)

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
# Underscore counts as a word character in Python regexes
_NON_WORD = re.compile(r"[^\w\s]|_")


def fold(value: str | None) -> str:
    """
    Fold a string for key comparison.

    Lower-cases, removes every character that is neither a word character
    nor whitespace, and collapses whitespace. Accented letters are kept
    as they are.
    """
    if not value:
        return ""
    folded = _NON_WORD.sub("", value.lower())
    return _WHITESPACE.sub(" ", folded).strip()


def normalized_key(name: str | None, city: str | None, country: str | None) -> str:
    """
    Build the matching key for a venue.

    Args:
        name: Venue name
        city: City name
        country: Country name

    Returns:
        ``fold(name)|fold(city)|fold(country)``
    """
    return f"{fold(name)}|{fold(city)}|{fold(country)}"


def make_slug(name: str, city: str, max_length: int = 60) -> str:
    """
    Build a URL slug from a venue name and city.

    Args:
        name: Venue name
        city: City name
        max_length: Maximum slug length

    Returns:
        Lower-case slug with runs of non-alphanumerics collapsed to ``-``
    """
    slug = re.sub(r"[^a-z0-9]+", "-", f"{name}-{city}".lower()).strip("-")
    return slug[:max_length].rstrip("-")


@dataclass
class NormalizedRecord:
    """
    Cleaned candidate record ready for reconciliation.

    ``country`` and ``booth_type`` are always set. Coordinates are either
    both present and in range, or both None.
    """

    key: str
    name: str
    city: str
    country: str
    booth_type: BoothType
    address: str = ""
    state: str = ""
    latitude: float | None = None
    longitude: float | None = None
    description: str = ""
    status: BoothStatus = BoothStatus.UNKNOWN
    source_name: str = ""
    source_url: str = ""

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def filled_field_count(self) -> int:
        """Count non-empty optional fields; the coordinate pair counts once."""
        return sum([
            bool(self.address),
            self.has_coordinates,
            bool(self.description),
            bool(self.state),
        ])


@dataclass
class Rejected:
    """A candidate that cannot reach reconciliation."""

    reason: str
    candidate: CandidateRecord


class Normalizer:
    """
    Normalizes candidate records into canonical form.

    Handles:
    - Whitespace collapse and HTML entity decoding (e.g., "&eacute;" -> "é")
    - Country aliases (e.g., "usa" -> "United States")
    - Country inference from city, falling back to "Unknown"
    - Booth type inference from description and name, defaulting to analog
    - Coordinate validation
    - Rejection of records without a name or city

    Lookup tables and keyword sets are immutable and injectable.
    """

    def __init__(
        self,
        city_country: Mapping[str, str] = CITY_COUNTRY,
        country_aliases: Mapping[str, str] = COUNTRY_ALIASES,
        analog_keywords: frozenset[str] = ANALOG_KEYWORDS,
        digital_keywords: frozenset[str] = DIGITAL_KEYWORDS,
        default_booth_type: BoothType = BoothType.ANALOG,
    ) -> None:
        self.city_country = city_country
        self.country_aliases = country_aliases
        self.analog_keywords = analog_keywords
        self.digital_keywords = digital_keywords
        self.default_booth_type = default_booth_type

    def normalize(self, candidate: CandidateRecord) -> NormalizedRecord | Rejected:
        """
        Normalize one candidate record.

        Args:
            candidate: Raw candidate from an adapter or the fallback extractor

        Returns:
            NormalizedRecord, or Rejected when name or city has nothing to match on
        """
        name = self.clean_string(candidate.name)
        # A name of only punctuation would fold to an empty key segment
        if not fold(name):
            logger.debug(f"Rejected candidate from {candidate.source_url}: missing name")
            return Rejected(reason="missing_name", candidate=candidate)

        city = self.clean_string(candidate.city)
        if not fold(city):
            logger.debug(f"Rejected '{name}' from {candidate.source_url}: missing city")
            return Rejected(reason="missing_city", candidate=candidate)

        description = self.clean_string(candidate.description)
        country = self.normalize_country(candidate.country, city)
        latitude, longitude = self.parse_coordinates(candidate.latitude, candidate.longitude)

        return NormalizedRecord(
            key=normalized_key(name, city, country),
            name=name,
            city=city,
            country=country,
            booth_type=self.resolve_booth_type(candidate.booth_type, description, name),
            address=self.clean_string(candidate.address),
            state=self.clean_string(candidate.state),
            latitude=latitude,
            longitude=longitude,
            description=description,
            status=BoothStatus.coerce(candidate.status),
            source_name=self.clean_string(candidate.source_name),
            source_url=(candidate.source_url or "").strip(),
        )

    @staticmethod
    def clean_string(value: Any) -> str:
        """Decode HTML entities, trim, and collapse whitespace."""
        if value is None:
            return ""
        s = html.unescape(str(value))
        return _WHITESPACE.sub(" ", s).strip()

    def normalize_country(self, country: str | None, city: str) -> str:
        """
        Resolve the stored country name.

        An explicit country is mapped through the alias table. An absent one
        is inferred from the city, else set to "Unknown".
        """
        cleaned = self.clean_string(country)
        if cleaned and fold(cleaned) != fold(UNKNOWN_COUNTRY):
            return canonical_country(cleaned, self.country_aliases) or cleaned
        return infer_country(city, fallback=UNKNOWN_COUNTRY, table=self.city_country) or UNKNOWN_COUNTRY

    def resolve_booth_type(
        self,
        booth_type: BoothType | str | None,
        description: str,
        name: str,
    ) -> BoothType:
        """Use the stated booth type, else infer it from description then name."""
        stated = BoothType.coerce(booth_type)
        if stated is not None and stated != BoothType.UNKNOWN:
            return stated
        for text in (description, name):
            inferred = infer_booth_type(text, self.analog_keywords, self.digital_keywords)
            if inferred is not None:
                return inferred
        return self.default_booth_type

    @staticmethod
    def parse_coordinates(latitude: Any, longitude: Any) -> tuple[float | None, float | None]:
        """
        Validate a coordinate pair.

        Returns:
            ``(lat, lng)`` when both are numeric and in range, else ``(None, None)``
        """
        lat = _to_float(latitude)
        lng = _to_float(longitude)
        if lat is None or lng is None:
            return None, None
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
            return None, None
        return lat, lng


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number
