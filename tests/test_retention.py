"""Tests for the 30-day retention cleanup."""

import datetime

from conftest import run
from servers.weather_sync.domain.models import Observation
from servers.weather_sync.domain.repository.repositories import JsonFileObservationStore
from servers.weather_sync.domain.service.retention import RETENTION_DAYS, RetentionManager


def _observation(location_id: str, recorded: datetime.datetime, temperature: float = 10.0):
    return Observation(
        location_id=location_id,
        temperature=temperature,
        humidity=60,
        pressure=1010.0,
        record_timestamp=recorded,
    )


def test_cleanup_removes_only_observations_past_the_horizon(retention_manager, registry, store) -> None:
    location = run(registry.add_location("Berlin", 52.52, 13.405))
    now = datetime.datetime.now()
    run(store.insert(_observation(location.id, now - datetime.timedelta(days=35), 1.0)))
    recent = run(store.insert(_observation(location.id, now - datetime.timedelta(days=5), 2.0)))

    report = run(retention_manager.cleanup_old_data(now=now))

    assert report.deleted == {location.id: 1}
    assert report.total_deleted == 1
    assert run(store.history_for(location.id)) == [recent]

    again = run(retention_manager.cleanup_old_data(now=now))

    assert again.deleted == {location.id: 0}
    assert run(store.history_for(location.id)) == [recent]


def test_cleanup_cutoff_is_thirty_days_and_keeps_boundary(retention_manager, registry, store) -> None:
    location = run(registry.add_location("Oslo", 59.9139, 10.7522))
    now = datetime.datetime(2026, 10, 19, 12, 0, 0)
    cutoff = now - datetime.timedelta(days=RETENTION_DAYS)
    at_cutoff = run(store.insert(_observation(location.id, cutoff)))
    run(store.insert(_observation(location.id, cutoff - datetime.timedelta(microseconds=1))))

    report = run(retention_manager.cleanup_old_data(now=now))

    assert report.cutoff == datetime.datetime(2026, 9, 19, 12, 0, 0)
    assert run(store.history_for(location.id)) == [at_cutoff]


def test_cleanup_keeps_every_recent_observation_regardless_of_count(
    retention_manager, registry, store
) -> None:
    location = run(registry.add_location("Paris", 48.8566, 2.3522))
    now = datetime.datetime.now()
    for minutes in range(50):
        run(store.insert(_observation(location.id, now - datetime.timedelta(minutes=minutes))))

    run(retention_manager.cleanup_old_data(now=now))

    assert run(store.count_for(location.id)) == 50


def test_cleanup_continues_after_a_location_fails(tmp_path, registry) -> None:
    class FailingStore(JsonFileObservationStore):
        async def delete_before(self, location_id, cutoff):
            if location_id == "1":
                raise OSError("disk full")
            return await super().delete_before(location_id, cutoff)

    store = FailingStore(str(tmp_path / "observations.json"))
    manager = RetentionManager(registry, store)
    first = run(registry.add_location("Berlin", 52.52, 13.405))
    second = run(registry.add_location("Paris", 48.8566, 2.3522))
    now = datetime.datetime.now()
    run(store.insert(_observation(second.id, now - datetime.timedelta(days=40))))

    report = run(manager.cleanup_old_data(now=now))

    assert report.failed == [first.id]
    assert report.deleted == {second.id: 1}
    assert "Cleanup failed for: 1" in report.to_display_string()


def test_cleanup_ages_out_observations_of_unregistered_locations(
    retention_manager, registry, store
) -> None:
    location = run(registry.add_location("Berlin", 52.52, 13.405))
    now = datetime.datetime.now()
    run(store.insert(_observation("orphan", now - datetime.timedelta(days=90))))
    recent = run(store.insert(_observation("orphan", now - datetime.timedelta(days=1))))

    report = run(retention_manager.cleanup_old_data(now=now))

    assert list(report.deleted) == [location.id, "orphan"]
    assert report.deleted["orphan"] == 1
    assert run(store.history_for("orphan")) == [recent]
