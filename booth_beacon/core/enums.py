"""Enums for booth records and crawl runs."""

from enum import Enum


class BoothStatus(str, Enum):
    """Operational status of a booth."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    UNKNOWN = "unknown"

    @classmethod
    def coerce(cls, value: "str | BoothStatus | None") -> "BoothStatus":
        """
        Map a raw status string from a source onto a BoothStatus.

        Sources describe status loosely ("closed", "Removed", "operational").
        Anything unrecognised becomes UNKNOWN.
        """
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.UNKNOWN
        return _STATUS_ALIASES.get(str(value).strip().lower(), cls.UNKNOWN)


_STATUS_ALIASES: dict[str, BoothStatus] = {
    "active": BoothStatus.ACTIVE,
    "operational": BoothStatus.ACTIVE,
    "open": BoothStatus.ACTIVE,
    "working": BoothStatus.ACTIVE,
    "inactive": BoothStatus.INACTIVE,
    "closed": BoothStatus.INACTIVE,
    "removed": BoothStatus.INACTIVE,
    "broken": BoothStatus.INACTIVE,
    "out of order": BoothStatus.INACTIVE,
    "unknown": BoothStatus.UNKNOWN,
}


class BoothType(str, Enum):
    """Kind of photo booth machine."""

    ANALOG = "analog"
    DIGITAL = "digital"
    CHEMICAL = "chemical"
    INSTANT = "instant"
    UNKNOWN = "unknown"

    @classmethod
    def coerce(cls, value: "str | BoothType | None") -> "BoothType | None":
        """Return the matching BoothType, or None when the value is absent or unrecognised."""
        if isinstance(value, cls):
            return value
        if value is None:
            return None
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class FetchMode(str, Enum):
    """How the content-fetch service retrieves a source."""

    SCRAPE = "scrape"  # Single page
    CRAWL = "crawl"  # Multi-page with include/exclude globs


class ExtractionMethod(str, Enum):
    """Which extractor produced a source's candidates."""

    ADAPTER = "adapter"
    FALLBACK = "fallback"
    NONE = "none"


class RunStatus(str, Enum):
    """Outcome of one orchestrator pass over one source."""

    SUCCESS = "success"
    FAILED = "failed"


class AlertKind(str, Enum):
    """Anomaly categories raised by the metrics sink."""

    RUN_OVER_RUN_DROP = "run_over_run_drop"
    ZERO_RESULTS = "zero_results"
    SOURCE_FAILURE = "source_failure"


class GeocodeConfidence(str, Enum):
    """Confidence assigned to a geocoding match."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"low": 0, "medium": 1, "high": 2}[self.value]
