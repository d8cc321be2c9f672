import datetime
import logging
from typing import Optional

from servers.weather_sync.domain.models import CleanupReport
from servers.weather_sync.domain.repository.interfaces import (
    LocationRegistry,
    ObservationStore,
)

logger = logging.getLogger(__name__)

RETENTION_DAYS = 30


class RetentionManager:
    """Ages out observations older than the retention horizon.

    Registered locations are cleaned in registry order, followed by any
    location ids that still have observations but are no longer registered.
    A failure while cleaning one location is logged and recorded in the
    report, and the remaining locations are still cleaned.

    Args:
        location_registry: Source of the locations to clean
        observation_store: Observation persistence
    """

    retention = datetime.timedelta(days=RETENTION_DAYS)

    def __init__(
        self, location_registry: LocationRegistry, observation_store: ObservationStore
    ):
        self.location_registry = location_registry
        self.observation_store = observation_store

    async def cleanup_old_data(
        self, now: Optional[datetime.datetime] = None
    ) -> CleanupReport:
        """Delete observations recorded strictly before now minus 30 days.

        Running it again without new data deletes nothing.

        Args:
            now: Reference time, defaults to the current time

        Returns:
            CleanupReport with the cutoff and per-location deleted counts
        """
        cutoff = (now or datetime.datetime.now()) - self.retention
        report = CleanupReport(cutoff=cutoff)

        location_ids = [
            location.id for location in await self.location_registry.list_locations()
        ]
        orphans = [
            location_id
            for location_id in await self.observation_store.location_ids()
            if location_id not in location_ids
        ]
        if orphans:
            logger.info(
                "Found observations for %d unregistered location(s): %s",
                len(orphans),
                ", ".join(orphans),
            )

        for location_id in location_ids + orphans:
            try:
                deleted = await self.observation_store.delete_before(
                    location_id, cutoff
                )
            except Exception as exc:
                logger.error(
                    "Failed to clean up weather data for location %s: %s",
                    location_id,
                    exc,
                )
                report.failed.append(location_id)
                continue

            report.deleted[location_id] = deleted
            if deleted:
                logger.info(
                    "Deleted %d old observation(s) for location %s",
                    deleted,
                    location_id,
                )

        return report
