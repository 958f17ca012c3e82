"""
Static Lookup Tables
====================

Immutable reference data shared by the adapters and the normalizer:
city to country inference, country aliases, and the keyword sets used to
infer a booth's machine type from free text.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from booth_beacon.core.enums import BoothType

UNKNOWN_COUNTRY = "Unknown"

# Keys are lower-case city names
CITY_COUNTRY: Mapping[str, str] = MappingProxyType({
    # United States
    "new york": "United States",
    "new york city": "United States",
    "nyc": "United States",
    "brooklyn": "United States",
    "manhattan": "United States",
    "queens": "United States",
    "los angeles": "United States",
    "san francisco": "United States",
    "oakland": "United States",
    "chicago": "United States",
    "seattle": "United States",
    "portland": "United States",
    "austin": "United States",
    "boston": "United States",
    "philadelphia": "United States",
    "miami": "United States",
    "denver": "United States",
    "atlanta": "United States",
    "new orleans": "United States",
    "nashville": "United States",
    "detroit": "United States",
    "minneapolis": "United States",
    "washington": "United States",
    # United Kingdom
    "london": "United Kingdom",
    "manchester": "United Kingdom",
    "brighton": "United Kingdom",
    "birmingham": "United Kingdom",
    "glasgow": "United Kingdom",
    "edinburgh": "United Kingdom",
    "bristol": "United Kingdom",
    "liverpool": "United Kingdom",
    "leeds": "United Kingdom",
    # Germany
    "berlin": "Germany",
    "munich": "Germany",
    "münchen": "Germany",
    "hamburg": "Germany",
    "cologne": "Germany",
    "köln": "Germany",
    "frankfurt": "Germany",
    "leipzig": "Germany",
    "dresden": "Germany",
    # France
    "paris": "France",
    "lyon": "France",
    "marseille": "France",
    "toulouse": "France",
    # Spain
    "barcelona": "Spain",
    "madrid": "Spain",
    "valencia": "Spain",
    # Italy
    "rome": "Italy",
    "florence": "Italy",
    "firenze": "Italy",
    "venice": "Italy",
    "milan": "Italy",
    # Sweden
    "stockholm": "Sweden",
    "malmö": "Sweden",
    "malmo": "Sweden",
    "gothenburg": "Sweden",
    "göteborg": "Sweden",
    "goteborg": "Sweden",
    # Australia
    "sydney": "Australia",
    "melbourne": "Australia",
    "brisbane": "Australia",
    "perth": "Australia",
    "adelaide": "Australia",
    # Canada
    "toronto": "Canada",
    "vancouver": "Canada",
    "montreal": "Canada",
    "calgary": "Canada",
    # Elsewhere
    "tokyo": "Japan",
    "singapore": "Singapore",
    "hong kong": "Hong Kong",
    "amsterdam": "Netherlands",
    "vienna": "Austria",
    "wien": "Austria",
    "prague": "Czech Republic",
    "dublin": "Ireland",
    "brussels": "Belgium",
    "zurich": "Switzerland",
    "copenhagen": "Denmark",
    "oslo": "Norway",
    "helsinki": "Finland",
    "lisbon": "Portugal",
    "budapest": "Hungary",
    "warsaw": "Poland",
})

# Keys are lower-case; values are the standard names stored on booths
COUNTRY_ALIASES: Mapping[str, str] = MappingProxyType({
    "usa": "United States",
    "us": "United States",
    "u.s.": "United States",
    "u.s.a.": "United States",
    "america": "United States",
    "united states of america": "United States",
    "estados unidos": "United States",
    "uk": "United Kingdom",
    "u.k.": "United Kingdom",
    "great britain": "United Kingdom",
    "britain": "United Kingdom",
    "england": "United Kingdom",
    "scotland": "United Kingdom",
    "wales": "United Kingdom",
    "northern ireland": "United Kingdom",
    "deutschland": "Germany",
    "holland": "Netherlands",
    "the netherlands": "Netherlands",
    "czechia": "Czech Republic",
    "österreich": "Austria",
    "españa": "Spain",
    "italia": "Italy",
    "sverige": "Sweden",
})

# Matched as substrings of lower-cased text; the analog set is checked first
ANALOG_KEYWORDS: frozenset[str] = frozenset({
    "analog",
    "analogue",
    "chemical",
    "film",
    "silver gelatin",
    "dip & dunk",
    "dip and dunk",
    "developer",
    "paper roll",
    "film booth",
    "vintage",
    "black and white",
    "b&w",
})

DIGITAL_KEYWORDS: frozenset[str] = frozenset({
    "digital",
    "dslr",
    "instant print",
    "color printer",
    "colour printer",
    "touchscreen",
    "ipad",
})


def infer_country(
    city: str | None,
    fallback: str | None = None,
    table: Mapping[str, str] = CITY_COUNTRY,
) -> str | None:
    """
    Infer a country from a city name.

    Args:
        city: City name, any casing
        fallback: Value returned when the city is not in the table
        table: City lookup table

    Returns:
        Country name, or the fallback
    """
    if city:
        country = table.get(city.strip().lower())
        if country:
            return country
    return fallback


def canonical_country(
    country: str | None,
    aliases: Mapping[str, str] = COUNTRY_ALIASES,
) -> str | None:
    """Map a country alias ("USA", "uk") to its standard name; other values pass through."""
    if not country:
        return None
    return aliases.get(country.strip().lower(), country.strip())


def infer_booth_type(
    text: str | None,
    analog_keywords: frozenset[str] = ANALOG_KEYWORDS,
    digital_keywords: frozenset[str] = DIGITAL_KEYWORDS,
) -> BoothType | None:
    """
    Infer the machine type from free text.

    Args:
        text: Description, name or raw listing line
        analog_keywords: Keywords that indicate an analog booth
        digital_keywords: Keywords that indicate a digital booth

    Returns:
        BoothType.ANALOG or BoothType.DIGITAL, or None when no keyword matches
    """
    if not text:
        return None
    lower = text.lower()
    if any(keyword in lower for keyword in analog_keywords):
        return BoothType.ANALOG
    if any(keyword in lower for keyword in digital_keywords):
        return BoothType.DIGITAL
    return None
