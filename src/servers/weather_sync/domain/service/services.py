import datetime
import logging
from typing import Any, Dict

from servers.weather_sync.domain.exceptions import MalformedPayload
from servers.weather_sync.domain.models import CurrentConditions, Forecast
from servers.weather_sync.domain.service.interfaces import WeatherProvider
from servers.weather_sync.infrastructure.adaptors import make_request
from servers.weather_sync.infrastructure.config import WeatherApiConfig

logger = logging.getLogger(__name__)


class OpenWeatherMapService(WeatherProvider):
    """OpenWeatherMap implementation of WeatherProvider.

    Uses the 2.5 API endpoints:
    1. GET /weather?lat=..&lon=.. for current conditions
    2. GET /forecast?lat=..&lon=.. for the 5-day / 3-hour forecast

    Args:
        config: API key, base URL and timeout
        make_http_request: HTTP client function for dependency injection
    """

    def __init__(self, config: WeatherApiConfig, make_http_request=make_request):
        self.config = config
        self.get = make_http_request
        self.headers = {
            "User-Agent": "weather-sync/1.0",
            "Accept": "application/json",
        }

    async def get_current_conditions(
        self, latitude: float, longitude: float, units: str = "metric"
    ) -> CurrentConditions:
        """Get current conditions for a location.

        Args:
            latitude: Latitude of the location
            longitude: Longitude of the location
            units: Provider unit system
        """
        data = await self._fetch("weather", latitude, longitude, units)
        return CurrentConditions.from_dict(data)

    async def get_forecast(
        self, latitude: float, longitude: float, units: str = "metric"
    ) -> Forecast:
        """Get the 5-day forecast for a location.

        Args:
            latitude: Latitude of the location
            longitude: Longitude of the location
            units: Provider unit system
        """
        request_time = datetime.datetime.now()
        data = await self._fetch("forecast", latitude, longitude, units)

        if not isinstance(data.get("list"), list):
            raise MalformedPayload("Forecast response is missing the 'list' array")

        forecast = Forecast.from_dict(data, latitude=latitude, longitude=longitude)
        forecast.retrieved_at = request_time
        return forecast

    async def _fetch(
        self, endpoint: str, latitude: float, longitude: float, units: str
    ) -> Dict[str, Any]:
        url = f"{self.config.base_url}/{endpoint}"
        params = {
            "lat": latitude,
            "lon": longitude,
            "appid": self.config.api_key,
            "units": units,
        }
        logger.debug("Fetching %s for %.4f, %.4f", endpoint, latitude, longitude)
        data = await self.get(
            url,
            params=params,
            headers=self.headers,
            timeout=self.config.request_timeout,
        )

        if not isinstance(data, dict):
            raise MalformedPayload(
                f"Unexpected {endpoint} payload type {type(data).__name__}"
            )
        return data
