"""Shared fakes and fixtures for weather sync tests."""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest

from servers.weather_sync.domain.exceptions import ProviderError
from servers.weather_sync.domain.models import CurrentConditions, Forecast
from servers.weather_sync.domain.repository.repositories import (
    JsonFileLocationRegistry,
    JsonFileObservationStore,
)
from servers.weather_sync.domain.service.interfaces import WeatherProvider
from servers.weather_sync.domain.service.retention import RetentionManager
from servers.weather_sync.domain.service.synchronization import WeatherSyncService


def run(coro):
    return asyncio.run(coro)


def current_payload(**overrides: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "coord": {"lon": 13.405, "lat": 52.52},
        "weather": [
            {"id": 803, "main": "Clouds", "description": "broken clouds", "icon": "04d"},
            {"id": 701, "main": "Mist", "description": "mist", "icon": "50d"},
        ],
        "main": {
            "temp": 15.5,
            "feels_like": 14.9,
            "temp_min": 14.0,
            "temp_max": 17.0,
            "pressure": 1013,
            "humidity": 65,
        },
        "visibility": 10000,
        "wind": {"speed": 5.2, "deg": 230, "gust": 8.1},
        "dt": 1700000000,
        "name": "Berlin",
        "cod": 200,
    }
    payload.update(overrides)
    return payload


def forecast_payload() -> Dict[str, Any]:
    return {
        "cod": "200",
        "cnt": 2,
        "list": [
            {
                "dt": 1700006400,
                "main": {"temp": 12.1, "feels_like": 11.0, "pressure": 1012, "humidity": 70},
                "weather": [{"main": "Rain", "description": "light rain", "icon": "10d"}],
                "wind": {"speed": 4.0, "deg": 200},
                "pop": 0.35,
            },
            {
                "dt": 1700017200,
                "main": {"temp": 10.4, "pressure": 1011, "humidity": 75},
                "weather": [],
                "wind": {"speed": 3.1, "deg": 190},
            },
        ],
        "city": {"name": "Berlin", "country": "DE", "coord": {"lat": 52.52, "lon": 13.405}},
    }


class FakeWeatherProvider(WeatherProvider):
    """Provider double keyed by coordinates.

    A coordinate pair listed in ``failures`` raises instead of answering.
    """

    def __init__(self, payload: Optional[Dict[str, Any]] = None):
        self.payload = payload or current_payload()
        self.failures: Dict[Tuple[float, float], Exception] = {}
        self.calls: List[Tuple[str, float, float, str]] = []

    def fail_for(self, latitude: float, longitude: float, error: Optional[Exception] = None):
        self.failures[(latitude, longitude)] = error or ProviderError("provider down")

    async def get_current_conditions(self, latitude, longitude, units="metric"):
        self.calls.append(("current", latitude, longitude, units))
        if (latitude, longitude) in self.failures:
            raise self.failures[(latitude, longitude)]
        return CurrentConditions.from_dict(self.payload)

    async def get_forecast(self, latitude, longitude, units="metric"):
        self.calls.append(("forecast", latitude, longitude, units))
        if (latitude, longitude) in self.failures:
            raise self.failures[(latitude, longitude)]
        return Forecast.from_dict(forecast_payload(), latitude=latitude, longitude=longitude)


@pytest.fixture
def registry(tmp_path) -> JsonFileLocationRegistry:
    return JsonFileLocationRegistry(str(tmp_path / "locations.json"))


@pytest.fixture
def store(tmp_path) -> JsonFileObservationStore:
    return JsonFileObservationStore(str(tmp_path / "observations.json"))


@pytest.fixture
def provider() -> FakeWeatherProvider:
    return FakeWeatherProvider()


@pytest.fixture
def sync_service(provider, registry, store) -> WeatherSyncService:
    return WeatherSyncService(provider, registry, store)


@pytest.fixture
def retention_manager(registry, store) -> RetentionManager:
    return RetentionManager(registry, store)
