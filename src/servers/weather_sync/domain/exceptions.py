"""Weather sync domain errors.

Single-location operations raise these to their caller. Batch operations
catch them per location and keep going.
"""

from typing import Optional


class WeatherSyncError(Exception):
    """Base exception for all weather sync errors."""


class LocationNotFound(WeatherSyncError):
    """Raised when a location id is not in the registry."""

    def __init__(self, location_id: str):
        self.location_id = location_id
        super().__init__(f"Location not found with id: {location_id}")


class InvalidLocation(WeatherSyncError):
    """Raised when a location is registered with out-of-range coordinates."""


class NoDataFound(WeatherSyncError):
    """Raised when no observation has been stored for a location yet."""

    def __init__(self, location_id: str):
        self.location_id = location_id
        super().__init__(f"No weather data found for location {location_id}")


class SyncFailed(WeatherSyncError):
    """Raised when a provider call fails or returns an unusable payload.

    The underlying error is kept on ``cause`` and chained as ``__cause__``.
    """

    def __init__(self, location_id: str, cause: Optional[BaseException] = None):
        self.location_id = location_id
        self.cause = cause
        message = f"Failed to sync weather data for location {location_id}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class ProviderError(WeatherSyncError):
    """Raised when a weather provider request fails."""


class MalformedPayload(ProviderError):
    """Raised when a provider response lacks a required block."""


class ConfigError(WeatherSyncError):
    """Raised when configuration is invalid or incomplete."""
