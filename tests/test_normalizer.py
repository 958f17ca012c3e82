"""Tests for the record normalizer."""

import pytest

from booth_beacon.core.enums import BoothStatus, BoothType
from booth_beacon.ingestion.adapters.base import CandidateRecord
from booth_beacon.ingestion.normalizer import (
    NormalizedRecord,
    Normalizer,
    Rejected,
    fold,
    make_slug,
    normalized_key,
)


class TestNormalizedKey:
    """Tests for key folding."""

    def test_key_is_deterministic(self) -> None:
        """The same inputs always produce the same key."""
        first = normalized_key("Joe's Pub", "New York", "United States")
        second = normalized_key("Joe's Pub", "New York", "United States")
        assert first == second

    def test_punctuation_and_case_are_folded(self) -> None:
        """Punctuation is removed and case ignored."""
        assert normalized_key("The Bar!", "NYC", "USA") == "the bar|nyc|usa"
        assert normalized_key("THE BAR", "nyc", "usa") == "the bar|nyc|usa"

    def test_whitespace_is_collapsed(self) -> None:
        """Runs of whitespace become one space."""
        assert fold("  Joe's   Pub \n") == "joes pub"

    def test_underscore_is_removed(self) -> None:
        """Underscores are not treated as word characters."""
        assert fold("photo_booth") == "photobooth"

    def test_accents_are_not_folded(self) -> None:
        """Accented and unaccented spellings produce different keys."""
        assert normalized_key("Café", "Paris", "France") != normalized_key("Cafe", "Paris", "France")

    def test_empty_parts(self) -> None:
        """Missing parts fold to empty strings."""
        assert normalized_key(None, "", None) == "||"


class TestMakeSlug:
    """Tests for slug generation."""

    def test_basic_slug(self) -> None:
        assert make_slug("Joe's Pub", "New York") == "joe-s-pub-new-york"

    def test_slug_is_truncated(self) -> None:
        slug = make_slug("A Very Long Venue Name " * 5, "Somewhere", max_length=20)
        assert len(slug) <= 20
        assert not slug.endswith("-")


class TestNormalizer:
    """Tests for Normalizer.normalize."""

    @pytest.fixture
    def normalizer(self) -> Normalizer:
        return Normalizer()

    def test_normalize_valid_candidate(self, normalizer: Normalizer) -> None:
        """A complete candidate becomes a NormalizedRecord."""
        candidate = CandidateRecord(
            name="  Joe's   Pub ",
            city="New York",
            address="425 Lafayette St",
            country="USA",
            description="Vintage chemical booth by the bar",
            status=BoothStatus.ACTIVE,
            source_name="photomatica",
            source_url="https://photomatica.com/locations",
        )

        result = normalizer.normalize(candidate)

        assert isinstance(result, NormalizedRecord)
        assert result.name == "Joe's Pub"
        assert result.country == "United States"
        assert result.booth_type == BoothType.ANALOG
        assert result.status == BoothStatus.ACTIVE
        assert result.key == "joes pub|new york|united states"
        assert result.source_name == "photomatica"

    def test_reject_missing_name(self, normalizer: Normalizer) -> None:
        """A blank name is rejected."""
        result = normalizer.normalize(CandidateRecord(name="   ", city="Berlin"))
        assert isinstance(result, Rejected)
        assert result.reason == "missing_name"

    def test_reject_missing_city(self, normalizer: Normalizer) -> None:
        """A blank city is rejected."""
        result = normalizer.normalize(CandidateRecord(name="Photoautomat", city=""))
        assert isinstance(result, Rejected)
        assert result.reason == "missing_city"

    @pytest.mark.parametrize("name", ["***", "--!", "_"])
    def test_reject_punctuation_only_name(self, normalizer: Normalizer, name: str) -> None:
        """Names with nothing left after folding never share an empty key segment."""
        result = normalizer.normalize(CandidateRecord(name=name, city="London"))
        assert isinstance(result, Rejected)
        assert result.reason == "missing_name"

    def test_reject_punctuation_only_city(self, normalizer: Normalizer) -> None:
        result = normalizer.normalize(CandidateRecord(name="Photoautomat", city="..."))
        assert isinstance(result, Rejected)
        assert result.reason == "missing_city"

    def test_html_entities_are_decoded(self, normalizer: Normalizer) -> None:
        result = normalizer.normalize(CandidateRecord(name="Caf&eacute; Bar", city="Paris"))
        assert isinstance(result, NormalizedRecord)
        assert result.name == "Café Bar"

    def test_country_inferred_from_city(self, normalizer: Normalizer) -> None:
        """A missing country is inferred from the city table."""
        result = normalizer.normalize(CandidateRecord(name="Photoautomat", city="Berlin"))
        assert result.country == "Germany"

    def test_explicit_unknown_country_is_inferred(self, normalizer: Normalizer) -> None:
        result = normalizer.normalize(
            CandidateRecord(name="Some Bar", city="London", country="Unknown")
        )
        assert result.country == "United Kingdom"

    def test_unknown_city_gets_unknown_country(self, normalizer: Normalizer) -> None:
        result = normalizer.normalize(CandidateRecord(name="Some Bar", city="Atlantis"))
        assert result.country == "Unknown"

    def test_country_aliases_share_a_key(self, normalizer: Normalizer) -> None:
        """USA and United States normalize to the same key."""
        a = normalizer.normalize(CandidateRecord(name="Bar", city="Austin", country="USA"))
        b = normalizer.normalize(CandidateRecord(name="Bar", city="Austin", country="United States"))
        assert a.key == b.key

    def test_booth_type_from_description(self, normalizer: Normalizer) -> None:
        result = normalizer.normalize(
            CandidateRecord(name="Mall Booth", city="Tokyo", description="Digital touchscreen booth")
        )
        assert result.booth_type == BoothType.DIGITAL

    def test_booth_type_defaults_to_analog(self, normalizer: Normalizer) -> None:
        result = normalizer.normalize(CandidateRecord(name="Corner Shop", city="Oslo"))
        assert result.booth_type == BoothType.ANALOG

    def test_stated_booth_type_is_kept(self, normalizer: Normalizer) -> None:
        result = normalizer.normalize(
            CandidateRecord(
                name="Bar",
                city="Oslo",
                description="digital booth",
                booth_type=BoothType.INSTANT,
            )
        )
        assert result.booth_type == BoothType.INSTANT

    def test_custom_default_booth_type(self) -> None:
        normalizer = Normalizer(default_booth_type=BoothType.UNKNOWN)
        result = normalizer.normalize(CandidateRecord(name="Corner Shop", city="Oslo"))
        assert result.booth_type == BoothType.UNKNOWN

    def test_status_is_coerced(self, normalizer: Normalizer) -> None:
        result = normalizer.normalize(
            CandidateRecord(name="Bar", city="Oslo", status="closed")  # type: ignore[arg-type]
        )
        assert result.status == BoothStatus.INACTIVE


class TestParseCoordinates:
    """Tests for coordinate validation."""

    def test_valid_strings(self) -> None:
        assert Normalizer.parse_coordinates("40.7", "-73.9") == (40.7, -73.9)

    def test_out_of_range(self) -> None:
        assert Normalizer.parse_coordinates(95.0, 10.0) == (None, None)
        assert Normalizer.parse_coordinates(10.0, 181.0) == (None, None)

    def test_half_pair_is_dropped(self) -> None:
        """A latitude without a longitude is discarded."""
        assert Normalizer.parse_coordinates(40.0, None) == (None, None)

    def test_non_numeric(self) -> None:
        assert Normalizer.parse_coordinates("north", "west") == (None, None)
        assert Normalizer.parse_coordinates(True, 1.0) == (None, None)
        assert Normalizer.parse_coordinates(float("nan"), 1.0) == (None, None)

    def test_record_coordinates(self) -> None:
        result = Normalizer().normalize(
            CandidateRecord(name="Bar", city="Oslo", latitude=59.91, longitude=10.75)
        )
        assert result.has_coordinates
        assert result.filled_field_count() == 1
