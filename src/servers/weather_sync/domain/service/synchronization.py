import asyncio
import datetime
import logging
import weakref
from typing import List

from servers.weather_sync.domain.exceptions import (
    LocationNotFound,
    NoDataFound,
    SyncFailed,
)
from servers.weather_sync.domain.models import (
    Forecast,
    Location,
    Observation,
    SyncOutcome,
    SyncReport,
)
from servers.weather_sync.domain.repository.interfaces import (
    LocationRegistry,
    ObservationStore,
)
from servers.weather_sync.domain.service.interfaces import WeatherProvider
from servers.weather_sync.domain.service.mapping import to_observation

logger = logging.getLogger(__name__)


class WeatherSyncService:
    """Fetches current conditions for registered locations and stores them.

    Orchestrates the weather provider, the location registry and the
    observation store. A successful sync of one location performs exactly
    one observation insert followed by one last-synced update; a failed
    sync performs neither.

    Syncs of the same location are serialized with a per-location lock.
    Batch syncs run locations one at a time in registry order unless
    ``max_concurrency`` allows more.

    Args:
        provider: Weather provider client
        location_registry: Source of locations and last-synced stamps
        observation_store: Observation persistence
        units: Provider unit system
        max_concurrency: Locations synced in parallel by ``sync_all``
    """

    def __init__(
        self,
        provider: WeatherProvider,
        location_registry: LocationRegistry,
        observation_store: ObservationStore,
        units: str = "metric",
        max_concurrency: int = 1,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

        self.provider = provider
        self.location_registry = location_registry
        self.observation_store = observation_store
        self.units = units
        self.max_concurrency = max_concurrency
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    async def sync_one(self, location_id: str) -> Observation:
        """Fetch, map and store current conditions for one location.

        Args:
            location_id: Location to sync

        Returns:
            The stored Observation

        Raises:
            LocationNotFound: If the location is not registered
            SyncFailed: If the provider call fails, its payload is unusable
                or the location is removed before the result is stored
        """
        location = await self._require_location(location_id)

        lock = self._lock_for(location.id)
        async with lock:
            try:
                conditions = await self.provider.get_current_conditions(
                    location.latitude, location.longitude, units=self.units
                )
                observation = to_observation(location.id, conditions)
            except Exception as exc:
                raise SyncFailed(location.id, exc) from exc

            # Removed while the provider call was in flight
            if await self.location_registry.get_location(location.id) is None:
                removed = LocationNotFound(location.id)
                raise SyncFailed(location.id, removed) from removed

            observation = await self.observation_store.insert(observation)
            try:
                await self.location_registry.mark_synced(
                    location.id, datetime.datetime.now()
                )
            except Exception as exc:
                await self.observation_store.delete(location.id, observation.id)
                if isinstance(exc, LocationNotFound):
                    raise SyncFailed(location.id, exc) from exc
                raise

        logger.info(
            "Synced location %s (%s): %.1f°C",
            location.id,
            location.name,
            observation.temperature,
        )
        return observation

    async def sync_all(self) -> SyncReport:
        """Sync every registered location.

        A failure for one location is logged and recorded in the report;
        it never aborts the batch and this method never raises for it.

        Returns:
            SyncReport with one outcome per location, in registry order
        """
        report = SyncReport()
        locations = await self.location_registry.list_locations()
        logger.info("Starting weather sync for %d location(s)", len(locations))

        if self.max_concurrency == 1:
            for location in locations:
                report.outcomes.append(await self._sync_isolated(location))
        else:
            semaphore = asyncio.Semaphore(self.max_concurrency)

            async def bounded(location: Location) -> SyncOutcome:
                async with semaphore:
                    return await self._sync_isolated(location)

            report.outcomes.extend(
                await asyncio.gather(*(bounded(location) for location in locations))
            )

        logger.info(
            "Completed weather sync: %d succeeded, %d failed",
            len(report.succeeded),
            len(report.failed),
        )
        return report

    async def get_current_weather(self, location_id: str) -> Observation:
        """Get the most recently recorded observation for a location.

        Raises:
            NoDataFound: If nothing has been stored for the location
        """
        observation = await self.observation_store.latest_for(location_id)
        if observation is None:
            raise NoDataFound(location_id)
        return observation

    async def get_forecast(self, location_id: str) -> Forecast:
        """Fetch the provider forecast for a location without storing it.

        Raises:
            LocationNotFound: If the location is not registered
            SyncFailed: If the provider call fails
        """
        location = await self._require_location(location_id)
        try:
            return await self.provider.get_forecast(
                location.latitude, location.longitude, units=self.units
            )
        except Exception as exc:
            raise SyncFailed(location.id, exc) from exc

    async def get_weather_history(self, location_id: str) -> List[Observation]:
        return await self.observation_store.history_for(location_id)

    async def get_weather_history_since(
        self, location_id: str, cutoff: datetime.datetime
    ) -> List[Observation]:
        return await self.observation_store.history_since(location_id, cutoff)

    async def _require_location(self, location_id: str) -> Location:
        location = await self.location_registry.get_location(location_id)
        if location is None:
            raise LocationNotFound(location_id)
        return location

    def _lock_for(self, location_id: str) -> asyncio.Lock:
        # Entries drop out once no sync holds the lock
        lock = self._locks.get(location_id)
        if lock is None:
            lock = self._locks[location_id] = asyncio.Lock()
        return lock

    async def _sync_isolated(self, location: Location) -> SyncOutcome:
        try:
            observation = await self.sync_one(location.id)
        except Exception as exc:
            logger.warning("Failed to sync weather for location %s: %s", location.id, exc)
            return SyncOutcome(location_id=location.id, succeeded=False, error=str(exc))
        return SyncOutcome(
            location_id=location.id, succeeded=True, observation_id=observation.id
        )
