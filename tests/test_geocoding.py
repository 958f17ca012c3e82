"""Tests for geocoding enrichment."""

import httpx
import pytest

from booth_beacon.core.enums import GeocodeConfidence
from booth_beacon.core.schema import StoredBooth
from booth_beacon.db.repositories import BoothRepository
from booth_beacon.ingestion.geocoding import (
    NominatimGeocoder,
    confidence_for_score,
    enrich_missing_coordinates,
    levenshtein_distance,
    score_result,
    string_similarity,
)
from booth_beacon.ingestion.retry import RetryPolicy

VENUE_HIT = {
    "lat": "52.5321",
    "lon": "13.4105",
    "name": "Photoautomat",
    "display_name": "Photoautomat, Kastanienallee, Prenzlauer Berg, Berlin, Germany",
    "category": "amenity",
    "type": "photo_booth",
    "address": {"road": "Kastanienallee", "house_number": "27", "city": "Berlin"},
}

ROAD_HIT = {
    "lat": "52.0",
    "lon": "13.0",
    "name": "Kastanienallee",
    "display_name": "Kastanienallee, Somewhere, Brandenburg, Germany",
    "category": "highway",
    "type": "residential",
    "address": {},
}


async def no_sleep(seconds: float) -> None:
    return None


def _geocoder(handler) -> NominatimGeocoder:
    return NominatimGeocoder(
        transport=httpx.MockTransport(handler),
        retry_policy=RetryPolicy(2, 0.0),
        sleep=no_sleep,
        min_interval=0.0,
    )


class TestStringSimilarity:
    """Tests for the similarity helpers."""

    def test_levenshtein(self) -> None:
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3

    def test_identical(self) -> None:
        assert string_similarity("Photoautomat", "photoautomat ") == 1.0

    def test_containment_uses_length_ratio(self) -> None:
        assert string_similarity("bar", "bar kick") == pytest.approx(3 / 8)

    def test_empty(self) -> None:
        assert string_similarity("", "x") == 0.0


class TestScoring:
    """Tests for result scoring and confidence."""

    def test_confidence_thresholds(self) -> None:
        assert confidence_for_score(80) == GeocodeConfidence.HIGH
        assert confidence_for_score(79.9) == GeocodeConfidence.MEDIUM
        assert confidence_for_score(60) == GeocodeConfidence.MEDIUM
        assert confidence_for_score(40) == GeocodeConfidence.LOW
        assert confidence_for_score(39.9) is None

    def test_exact_venue_scores_full_marks(self) -> None:
        assert score_result("Photoautomat", "Berlin", VENUE_HIT) == 100.0

    def test_road_scores_low(self) -> None:
        # Name partly similar, no city, a road, no street components
        score = score_result("Photoautomat", "Berlin", ROAD_HIT)
        assert score < 40


class TestNominatimGeocoder:
    """Tests for NominatimGeocoder."""

    @pytest.mark.asyncio
    async def test_geocode_best_hit(self) -> None:
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=[ROAD_HIT, VENUE_HIT])

        result = await _geocoder(handler).geocode(
            "Photoautomat", "Kastanienallee 27", "Berlin", country="Germany"
        )

        assert result is not None
        assert result.latitude == pytest.approx(52.5321)
        assert result.confidence == GeocodeConfidence.HIGH
        # A high-confidence hit on the first query stops the search
        assert len(requests) == 1
        params = requests[0].url.params
        assert params["q"] == "Photoautomat, Kastanienallee 27, Berlin, Germany"
        assert params["format"] == "jsonv2"
        assert requests[0].headers["User-Agent"] == "BoothBeacon/1.0"

    @pytest.mark.asyncio
    async def test_falls_back_to_address_query(self) -> None:
        queries = []

        def handler(request: httpx.Request) -> httpx.Response:
            queries.append(request.url.params["q"])
            if len(queries) == 1:
                return httpx.Response(200, json=[])
            return httpx.Response(200, json=[VENUE_HIT])

        result = await _geocoder(handler).geocode("Photoautomat", "Kastanienallee 27", "Berlin")

        assert result is not None
        assert queries == [
            "Photoautomat, Kastanienallee 27, Berlin",
            "Kastanienallee 27, Berlin",
        ]

    @pytest.mark.asyncio
    async def test_unknown_country_is_left_out(self) -> None:
        queries = []

        def handler(request: httpx.Request) -> httpx.Response:
            queries.append(request.url.params["q"])
            return httpx.Response(200, json=[])

        result = await _geocoder(handler).geocode("Bar", city="Atlantis", country="Unknown")

        assert result is None
        assert queries == ["Bar, Atlantis"]

    @pytest.mark.asyncio
    async def test_server_error_raises_after_retries(self) -> None:
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            return httpx.Response(503)

        with pytest.raises(httpx.HTTPStatusError):
            await _geocoder(handler).geocode("Bar", city="Berlin")
        assert calls["count"] == 2


class TestEnrichMissingCoordinates:
    """Tests for the enrichment pass against a temporary database."""

    def _add(self, repository: BoothRepository, name: str, **kwargs) -> StoredBooth:
        booth = repository.insert(StoredBooth(
            normalized_key=f"{name.lower()}|berlin|germany",
            name=name,
            city="Berlin",
            country="Germany",
            **kwargs,
        ))
        repository.commit()
        return booth

    @pytest.mark.asyncio
    async def test_writes_confident_matches_only(self, session) -> None:
        repository = BoothRepository(session)
        good = self._add(repository, "Photoautomat", address="Kastanienallee 27")
        weak = self._add(repository, "Nowhere Bar")
        placed = self._add(repository, "Placed", latitude=1.0, longitude=2.0)

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params["q"].startswith("Photoautomat"):
                return httpx.Response(200, json=[VENUE_HIT])
            return httpx.Response(200, json=[])

        summary = await enrich_missing_coordinates(repository, _geocoder(handler), limit=10)

        assert summary.examined == 2
        assert summary.geocoded == 1
        assert summary.no_match == 1

        updated = repository.get_by_id(good.id)
        assert updated.latitude == pytest.approx(52.5321)
        assert updated.geocode_confidence == GeocodeConfidence.HIGH
        assert updated.geocode_provider == "nominatim"
        assert repository.get_by_id(weak.id).latitude is None
        assert repository.get_by_id(placed.id).latitude == 1.0

    @pytest.mark.asyncio
    async def test_below_threshold_is_not_written(self, session) -> None:
        repository = BoothRepository(session)
        booth = self._add(repository, "Photoautomat")
        # Right name and a venue, but not in the booth's city
        hit = dict(VENUE_HIT, display_name="Photoautomat, Leipzig, Germany", address={})

        summary = await enrich_missing_coordinates(
            repository,
            _geocoder(lambda request: httpx.Response(200, json=[hit])),
            min_confidence=GeocodeConfidence.HIGH,
        )

        assert summary.below_threshold == 1
        assert repository.get_by_id(booth.id).latitude is None

    @pytest.mark.asyncio
    async def test_http_failure_is_recorded(self, session) -> None:
        repository = BoothRepository(session)
        self._add(repository, "Photoautomat")

        summary = await enrich_missing_coordinates(
            repository, _geocoder(lambda request: httpx.Response(500))
        )

        assert summary.geocoded == 0
        assert len(summary.errors) == 1
