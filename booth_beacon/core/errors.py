"""Exception hierarchy for Booth Beacon."""


class BoothBeaconError(Exception):
    """Base class for all Booth Beacon errors."""


class ConfigurationError(BoothBeaconError):
    """Raised at startup when configuration or credentials are missing or invalid.

    This is the only error that is allowed to halt a whole crawl run.
    """


class StoreError(BoothBeaconError):
    """Raised when a booth store lookup or write fails."""


class FetchError(BoothBeaconError):
    """Raised when the content-fetch service cannot return content for a source."""


class ExtractionError(BoothBeaconError):
    """Raised when an LLM provider call fails outright."""
