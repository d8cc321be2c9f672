"""Tests for syncing locations and reading stored weather."""

import asyncio
import datetime

import pytest

from conftest import FakeWeatherProvider, current_payload, run
from servers.weather_sync.domain.exceptions import (
    LocationNotFound,
    MalformedPayload,
    NoDataFound,
    ProviderError,
    SyncFailed,
)
from servers.weather_sync.domain.models import Observation
from servers.weather_sync.domain.repository.repositories import JsonFileLocationRegistry
from servers.weather_sync.domain.service.synchronization import WeatherSyncService


def _add(registry, name="Berlin", latitude=52.52, longitude=13.405):
    return run(registry.add_location(name, latitude, longitude, "de"))


def test_current_weather_without_observations_raises_no_data_found(sync_service, registry) -> None:
    location = _add(registry)

    with pytest.raises(NoDataFound) as excinfo:
        run(sync_service.get_current_weather(location.id))

    assert excinfo.value.location_id == location.id


def test_sync_one_stores_main_block_and_stamps_last_sync(sync_service, registry, provider) -> None:
    location = _add(registry)
    issued_at = datetime.datetime.now()

    observation = run(sync_service.sync_one(location.id))
    current = run(sync_service.get_current_weather(location.id))

    assert current == observation
    assert current.temperature == 15.5
    assert current.humidity == 65
    assert current.pressure == 1013
    assert current.id is not None
    assert provider.calls == [("current", 52.52, 13.405, "metric")]

    synced = run(registry.get_location(location.id))
    assert synced.last_synced_at is not None
    assert synced.last_synced_at >= issued_at


def test_sync_one_maps_optional_fields(sync_service, registry) -> None:
    location = _add(registry)

    observation = run(sync_service.sync_one(location.id))

    assert observation.wind_speed == 5.2
    assert observation.wind_direction == 230
    assert observation.visibility == 10000
    assert observation.condition_summary == "Clouds"
    assert observation.condition_description == "broken clouds"
    assert observation.condition_icon == "04d"
    assert observation.data_timestamp == datetime.datetime.fromtimestamp(1700000000)


def test_sync_one_unknown_location_raises_without_writes(sync_service, store, provider) -> None:
    with pytest.raises(LocationNotFound):
        run(sync_service.sync_one("missing"))

    assert provider.calls == []
    assert run(store.count_for("missing")) == 0
    assert store.collections == {}


def test_sync_one_provider_failure_raises_sync_failed_without_side_effects(
    sync_service, registry, store, provider
) -> None:
    location = _add(registry)
    cause = ProviderError("HTTP 503")
    provider.fail_for(52.52, 13.405, cause)

    with pytest.raises(SyncFailed) as excinfo:
        run(sync_service.sync_one(location.id))

    assert excinfo.value.cause is cause
    assert excinfo.value.__cause__ is cause
    assert run(store.count_for(location.id)) == 0
    assert run(registry.get_location(location.id)).last_synced_at is None


def test_sync_one_missing_main_block_is_sync_failed(registry, store) -> None:
    payload = current_payload()
    del payload["main"]
    service = WeatherSyncService(FakeWeatherProvider(payload), registry, store)
    location = _add(registry)

    with pytest.raises(SyncFailed) as excinfo:
        run(service.sync_one(location.id))

    assert isinstance(excinfo.value.cause, MalformedPayload)
    assert run(store.count_for(location.id)) == 0
    assert run(registry.get_location(location.id)).last_synced_at is None


def test_sync_all_isolates_one_failing_location(sync_service, registry, store, provider) -> None:
    berlin = _add(registry, "Berlin", 52.52, 13.405)
    paris = _add(registry, "Paris", 48.8566, 2.3522)
    oslo = _add(registry, "Oslo", 59.9139, 10.7522)
    provider.fail_for(48.8566, 2.3522)

    report = run(sync_service.sync_all())

    assert report.succeeded == [berlin.id, oslo.id]
    assert report.failed == [paris.id]
    assert "provider down" in report.outcomes[1].error
    assert run(store.count_for(berlin.id)) == 1
    assert run(store.count_for(paris.id)) == 0
    assert run(store.count_for(oslo.id)) == 1
    assert run(registry.get_location(berlin.id)).last_synced_at is not None
    assert run(registry.get_location(paris.id)).last_synced_at is None
    assert run(registry.get_location(oslo.id)).last_synced_at is not None


def test_sync_all_processes_locations_in_registry_order(sync_service, registry, provider) -> None:
    _add(registry, "Berlin", 52.52, 13.405)
    _add(registry, "Paris", 48.8566, 2.3522)

    run(sync_service.sync_all())

    assert [call[1] for call in provider.calls] == [52.52, 48.8566]


def test_sync_all_with_no_locations_returns_empty_report(sync_service) -> None:
    report = run(sync_service.sync_all())

    assert report.outcomes == []
    assert report.to_display_string() == "Synced 0 of 0 location(s)"


def test_concurrent_sync_all_keeps_failure_isolation(registry, store, provider) -> None:
    service = WeatherSyncService(provider, registry, store, max_concurrency=3)
    locations = [
        _add(registry, f"Place {i}", 10.0 + i, 20.0 + i) for i in range(5)
    ]
    provider.fail_for(12.0, 22.0)

    report = run(service.sync_all())

    assert [o.location_id for o in report.outcomes] == [loc.id for loc in locations]
    assert report.failed == [locations[2].id]
    assert len(report.succeeded) == 4


def test_sync_one_serializes_calls_for_the_same_location(registry, store) -> None:
    class SlowProvider(FakeWeatherProvider):
        def __init__(self):
            super().__init__()
            self.active = 0
            self.max_active = 0

        async def get_current_conditions(self, latitude, longitude, units="metric"):
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            await asyncio.sleep(0.01)
            self.active -= 1
            return await super().get_current_conditions(latitude, longitude, units)

    slow = SlowProvider()
    service = WeatherSyncService(slow, registry, store)
    location = _add(registry)

    async def sync_twice():
        return await asyncio.gather(
            service.sync_one(location.id), service.sync_one(location.id)
        )

    first, second = run(sync_twice())

    assert slow.max_active == 1
    assert first.id != second.id
    assert run(store.count_for(location.id)) == 2
    latest = run(service.get_current_weather(location.id))
    assert latest.record_timestamp == max(first.record_timestamp, second.record_timestamp)


def test_rejects_non_positive_concurrency(provider, registry, store) -> None:
    with pytest.raises(ValueError):
        WeatherSyncService(provider, registry, store, max_concurrency=0)


def test_get_forecast_is_passthrough(sync_service, registry, store, provider) -> None:
    location = _add(registry)

    forecast = run(sync_service.get_forecast(location.id))

    assert len(forecast.periods) == 2
    assert forecast.city_name == "Berlin"
    assert provider.calls == [("forecast", 52.52, 13.405, "metric")]
    assert run(store.count_for(location.id)) == 0
    assert run(registry.get_location(location.id)).last_synced_at is None


def test_get_forecast_unknown_location_raises(sync_service) -> None:
    with pytest.raises(LocationNotFound):
        run(sync_service.get_forecast("42"))


def test_get_forecast_wraps_provider_failure(sync_service, registry, provider) -> None:
    location = _add(registry)
    provider.fail_for(52.52, 13.405)

    with pytest.raises(SyncFailed):
        run(sync_service.get_forecast(location.id))


def test_history_since_is_ordered_subset_of_history(sync_service, registry, store) -> None:
    location = _add(registry)
    now = datetime.datetime.now()
    for hours_ago in (1, 30, 5, 48, 12):
        run(
            store.insert(
                Observation(
                    location_id=location.id,
                    temperature=float(hours_ago),
                    humidity=50,
                    pressure=1000.0,
                    record_timestamp=now - datetime.timedelta(hours=hours_ago),
                )
            )
        )
    cutoff = now - datetime.timedelta(hours=12)

    history = run(sync_service.get_weather_history(location.id))
    since = run(sync_service.get_weather_history_since(location.id, cutoff))

    assert [o.temperature for o in history] == [1.0, 5.0, 12.0, 30.0, 48.0]
    assert since == [o for o in history if o.record_timestamp >= cutoff]
    assert [o.temperature for o in since] == [1.0, 5.0, 12.0]


def test_sync_one_non_numeric_main_block_stores_nothing(registry, store) -> None:
    payload = current_payload(main={"temp": "warm", "humidity": "wet", "pressure": [1]})
    service = WeatherSyncService(FakeWeatherProvider(payload), registry, store)
    location = _add(registry)

    with pytest.raises(SyncFailed) as excinfo:
        run(service.sync_one(location.id))

    assert isinstance(excinfo.value.cause, MalformedPayload)
    assert run(store.count_for(location.id)) == 0
    assert run(registry.get_location(location.id)).last_synced_at is None


def test_sync_one_location_removed_during_fetch_stores_nothing(registry, store) -> None:
    class RemovingProvider(FakeWeatherProvider):
        async def get_current_conditions(self, latitude, longitude, units="metric"):
            await registry.remove_location("1")
            return await super().get_current_conditions(latitude, longitude, units)

    service = WeatherSyncService(RemovingProvider(), registry, store)
    location = _add(registry)

    with pytest.raises(SyncFailed) as excinfo:
        run(service.sync_one(location.id))

    assert isinstance(excinfo.value.cause, LocationNotFound)
    assert run(store.count_for(location.id)) == 0
    assert run(store.location_ids()) == []


def test_sync_one_undoes_insert_when_mark_synced_fails(tmp_path, store, provider) -> None:
    class VanishingRegistry(JsonFileLocationRegistry):
        async def mark_synced(self, location_id, when):
            raise LocationNotFound(location_id)

    registry = VanishingRegistry(str(tmp_path / "vanishing.json"))
    service = WeatherSyncService(provider, registry, store)
    location = _add(registry)

    with pytest.raises(SyncFailed) as excinfo:
        run(service.sync_one(location.id))

    assert isinstance(excinfo.value.cause, LocationNotFound)
    assert run(store.count_for(location.id)) == 0


def test_locks_are_released_after_sync(sync_service, registry) -> None:
    location = _add(registry)

    run(sync_service.sync_one(location.id))

    assert location.id not in sync_service._locks
