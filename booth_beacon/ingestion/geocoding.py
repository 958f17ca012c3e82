"""
Geocoding Enrichment Module
===========================

Looks up coordinates for booths that have none, using OpenStreetMap
Nominatim, and scores each hit before accepting it.

Match score (0-100):
- name similarity (Levenshtein) x 40
- city named in the result: 30
- result is not a road/intersection: 20
- result has street-level address components: 10

Scores of 80+ are high confidence, 60+ medium, 40+ low; anything lower is
no match. This pass is the only writer of coordinates on existing booths.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from booth_beacon.core.enums import GeocodeConfidence
from booth_beacon.core.errors import StoreError
from booth_beacon.core.schema import StoredBooth
from booth_beacon.ingestion.retry import RetryPolicy, retry_async

if TYPE_CHECKING:
    from booth_beacon.db.repositories import BoothRepository

logger = logging.getLogger(__name__)

NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"
DEFAULT_USER_AGENT = "BoothBeacon/1.0"
PROVIDER_NAME = "nominatim"

# Nominatim result classes/types that point at a road rather than a venue
_ROAD_TYPES = frozenset({"highway", "intersection", "crossing", "traffic_signals"})


@dataclass
class GeocodeResult:
    """A scored geocoding hit."""

    latitude: float
    longitude: float
    confidence: GeocodeConfidence
    match_score: float
    display_name: str = ""


def levenshtein_distance(s1: str, s2: str) -> int:
    """
    Calculate the Levenshtein distance between two strings.

    Args:
        s1: First string
        s2: Second string

    Returns:
        Edit distance
    """
    if len(s1) < len(s2):
        s1, s2 = s2, s1

    if len(s2) == 0:
        return len(s1)

    previous_row = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1):
        current_row = [i + 1]
        for j, c2 in enumerate(s2):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (c1 != c2)
            current_row.append(min(insertions, deletions, substitutions))
        previous_row = current_row

    return previous_row[-1]


def string_similarity(s1: str, s2: str) -> float:
    """
    Similarity between 0.0 and 1.0.

    When one string contains the other, the score is the length ratio.
    """
    s1 = s1.lower().strip()
    s2 = s2.lower().strip()

    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0
    if s1 in s2 or s2 in s1:
        return min(len(s1), len(s2)) / max(len(s1), len(s2))

    distance = levenshtein_distance(s1, s2)
    return 1.0 - (distance / max(len(s1), len(s2)))


def confidence_for_score(score: float) -> GeocodeConfidence | None:
    """Map a match score onto a confidence level, or None below 40."""
    if score >= 80:
        return GeocodeConfidence.HIGH
    if score >= 60:
        return GeocodeConfidence.MEDIUM
    if score >= 40:
        return GeocodeConfidence.LOW
    return None


def score_result(name: str, city: str, result: dict[str, Any]) -> float:
    """
    Score a Nominatim result against a booth's name and city.

    Args:
        name: Booth name
        city: Booth city
        result: One Nominatim ``jsonv2`` result with address details

    Returns:
        Match score between 0 and 100
    """
    display_name = (result.get("display_name") or "").lower()
    result_name = result.get("name") or display_name.split(",")[0]
    address = result.get("address") or {}

    score = string_similarity(name, result_name) * 40
    if city and city.lower() in display_name:
        score += 30
    place_kinds = {result.get("type"), result.get("category"), result.get("class")}
    if not place_kinds & _ROAD_TYPES:
        score += 20
    if address.get("road") or address.get("house_number"):
        score += 10
    return round(score, 1)


class NominatimGeocoder:
    """
    Async Nominatim client.

    Requests are spaced at least ``min_interval`` seconds apart, as the
    public Nominatim usage policy requires.
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        base_url: str = NOMINATIM_URL,
        timeout: float = 15.0,
        min_interval: float = 1.0,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.user_agent = user_agent
        self.base_url = base_url
        self.timeout = timeout
        self.min_interval = min_interval
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=3, backoff_seconds=2.0)
        self._transport = transport
        self._sleep = sleep
        self._last_request: float | None = None

    async def _search(self, client: httpx.AsyncClient, query: str) -> list[dict[str, Any]]:
        if self._last_request is not None:
            wait = self.min_interval - (time.monotonic() - self._last_request)
            if wait > 0:
                await self._sleep(wait)

        async def attempt() -> list[dict[str, Any]]:
            self._last_request = time.monotonic()
            response = await client.get(
                self.base_url,
                params={"q": query, "format": "jsonv2", "addressdetails": 1, "limit": 5},
            )
            response.raise_for_status()
            data = response.json()
            return data if isinstance(data, list) else []

        return await retry_async(
            attempt,
            self.retry_policy,
            retry_on=(httpx.TransportError, httpx.HTTPStatusError),
            label=f"Nominatim search '{query}'",
            sleep=self._sleep,
        )

    async def geocode(
        self,
        name: str,
        address: str = "",
        city: str = "",
        state: str = "",
        country: str = "",
    ) -> GeocodeResult | None:
        """
        Find the best-scoring location for a venue.

        Tries the full venue query first, then the address alone.

        Args:
            name: Venue name
            address: Street address or descriptive fragment
            city: City
            state: State or region
            country: Country

        Returns:
            GeocodeResult, or None if nothing scores as a match
        """
        place = [p for p in (city, state, country) if p and p != "Unknown"]
        queries = [", ".join([name, address, *place] if address else [name, *place])]
        if address:
            queries.append(", ".join([address, *place]))

        best: GeocodeResult | None = None
        async with httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"User-Agent": self.user_agent},
        ) as client:
            for query in queries:
                for hit in await self._search(client, query):
                    try:
                        latitude = float(hit["lat"])
                        longitude = float(hit["lon"])
                    except (KeyError, TypeError, ValueError):
                        continue
                    score = score_result(name, city, hit)
                    confidence = confidence_for_score(score)
                    if confidence is None:
                        continue
                    if best is None or score > best.match_score:
                        best = GeocodeResult(
                            latitude=latitude,
                            longitude=longitude,
                            confidence=confidence,
                            match_score=score,
                            display_name=hit.get("display_name", ""),
                        )
                if best is not None and best.confidence == GeocodeConfidence.HIGH:
                    break
        return best

    async def geocode_booth(self, booth: StoredBooth) -> GeocodeResult | None:
        return await self.geocode(booth.name, booth.address, booth.city, booth.state, booth.country)


@dataclass
class EnrichmentSummary:
    """Counts from one geocoding enrichment pass."""

    examined: int = 0
    geocoded: int = 0
    below_threshold: int = 0
    no_match: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "examined": self.examined,
            "geocoded": self.geocoded,
            "below_threshold": self.below_threshold,
            "no_match": self.no_match,
            "errors": self.errors,
        }


async def enrich_missing_coordinates(
    repository: BoothRepository,
    geocoder: NominatimGeocoder,
    limit: int = 50,
    min_confidence: GeocodeConfidence = GeocodeConfidence.MEDIUM,
) -> EnrichmentSummary:
    """
    Geocode booths that have no coordinates.

    Only results at or above ``min_confidence`` are written. A failure on
    one booth does not stop the pass.

    Args:
        repository: Booth repository
        geocoder: Geocoder to query
        limit: Maximum booths to examine
        min_confidence: Lowest confidence that is written

    Returns:
        EnrichmentSummary
    """
    summary = EnrichmentSummary()
    for booth in repository.list_missing_coordinates(limit=limit):
        summary.examined += 1
        try:
            result = await geocoder.geocode_booth(booth)
        except httpx.HTTPError as e:
            logger.warning(f"Geocoding failed for '{booth.name}': {e}")
            summary.errors.append(f"{booth.name}: {e}")
            continue

        if result is None:
            summary.no_match += 1
            logger.info(f"No geocode match for '{booth.name}' ({booth.city})")
            continue
        if result.confidence.rank < min_confidence.rank:
            summary.below_threshold += 1
            logger.info(
                f"Skipped {result.confidence.value} geocode for '{booth.name}' "
                f"(score {result.match_score})"
            )
            continue

        try:
            repository.set_coordinates(
                booth.id,
                result.latitude,
                result.longitude,
                result.confidence,
                PROVIDER_NAME,
            )
            repository.commit()
        except StoreError as e:
            repository.rollback()
            summary.errors.append(f"{booth.name}: {e}")
            continue
        summary.geocoded += 1
        logger.info(
            f"Geocoded '{booth.name}' -> ({result.latitude}, {result.longitude}) "
            f"{result.confidence.value}"
        )

    return summary
