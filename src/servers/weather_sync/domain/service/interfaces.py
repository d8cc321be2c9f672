from abc import ABC, abstractmethod

from servers.weather_sync.domain.models import CurrentConditions, Forecast


class WeatherProvider(ABC):
    """Abstract interface for the external weather provider.

    Implementations handle the HTTP conversation and return domain value
    objects. Any failure (network error, timeout, bad status, malformed
    body) is raised as ProviderError.
    """

    @abstractmethod
    async def get_current_conditions(
        self, latitude: float, longitude: float, units: str = "metric"
    ) -> CurrentConditions:
        """Retrieve current conditions for geographic coordinates.

        Args:
            latitude: Latitude in decimal degrees, range [-90, 90]
            longitude: Longitude in decimal degrees, range [-180, 180]
            units: Provider unit system, always "metric" for the sync core

        Returns:
            CurrentConditions parsed from the provider response
        """
        pass

    @abstractmethod
    async def get_forecast(
        self, latitude: float, longitude: float, units: str = "metric"
    ) -> Forecast:
        """Retrieve the multi-day forecast for geographic coordinates.

        Args:
            latitude: Latitude in decimal degrees, range [-90, 90]
            longitude: Longitude in decimal degrees, range [-180, 180]
            units: Provider unit system

        Returns:
            Forecast aggregate with periods and metadata
        """
        pass
