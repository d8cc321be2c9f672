from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from servers.weather_sync.domain.models import Location, Observation


class LocationRegistry(ABC):
    """Repository for registered locations.

    The sync core only needs lookup by id, listing and the last-synced
    stamp. Registration and removal are here so the service can be driven
    end to end.
    """

    @abstractmethod
    async def get_location(self, location_id: str) -> Optional[Location]:
        """Find a location by id.

        Returns:
            The Location, or None if no location has this id
        """
        pass

    @abstractmethod
    async def list_locations(self) -> List[Location]:
        """List every registered location in registration order"""
        pass

    @abstractmethod
    async def mark_synced(self, location_id: str, when: datetime) -> None:
        """Stamp the location's last successful sync time.

        Args:
            location_id: Location to update
            when: Time of the sync

        Raises:
            LocationNotFound: If the location does not exist
        """
        pass

    @abstractmethod
    async def add_location(
        self,
        name: str,
        latitude: float,
        longitude: float,
        country_code: Optional[str] = None,
    ) -> Location:
        """Register a new location.

        Args:
            name: Display name
            latitude: Latitude in decimal degrees, range [-90, 90]
            longitude: Longitude in decimal degrees, range [-180, 180]
            country_code: Optional two-letter country code

        Returns:
            The created Location with its assigned id
        """
        pass

    @abstractmethod
    async def remove_location(self, location_id: str) -> bool:
        """Remove a location.

        Returns:
            True if a location was removed, False if it did not exist
        """
        pass


class ObservationStore(ABC):
    """Repository for Observation persistence.

    Every query orders observations by record timestamp, newest first.
    """

    @abstractmethod
    async def insert(self, observation: Observation) -> Observation:
        """Persist a new observation.

        Returns:
            The stored Observation with its assigned id
        """
        pass

    @abstractmethod
    async def latest_for(self, location_id: str) -> Optional[Observation]:
        """Get the observation with the greatest record timestamp"""
        pass

    @abstractmethod
    async def history_for(self, location_id: str) -> List[Observation]:
        """Get all observations for a location, newest first"""
        pass

    @abstractmethod
    async def history_since(
        self, location_id: str, cutoff: datetime
    ) -> List[Observation]:
        """Get observations recorded at or after cutoff, newest first"""
        pass

    @abstractmethod
    async def delete_before(self, location_id: str, cutoff: datetime) -> int:
        """Delete observations recorded strictly before cutoff.

        Returns:
            Number of observations deleted
        """
        pass

    @abstractmethod
    async def delete(self, location_id: str, observation_id: str) -> bool:
        """Delete one observation.

        Returns:
            True if an observation was deleted, False if it did not exist
        """
        pass

    @abstractmethod
    async def location_ids(self) -> List[str]:
        """List every location id that has stored observations"""
        pass

    @abstractmethod
    async def delete_all_for(self, location_id: str) -> int:
        """Delete every observation for a location.

        Returns:
            Number of observations deleted
        """
        pass

    @abstractmethod
    async def count_for(self, location_id: str) -> int:
        """Count stored observations for a location"""
        pass
