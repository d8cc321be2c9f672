import dataclasses
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from servers.weather_sync.domain.exceptions import InvalidLocation, LocationNotFound
from servers.weather_sync.domain.models import Location, Observation
from servers.weather_sync.domain.repository.interfaces import (
    LocationRegistry,
    ObservationStore,
)
from servers.weather_sync.infrastructure.repositories import (
    JsonFileRepository,
    TimestampedCollectionRepository,
)


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class JsonFileLocationRegistry(JsonFileRepository, LocationRegistry):
    """File-based location registry using JSON persistence.

    Locations get sequential string ids ("1", "2", ...) in registration
    order. Ids of removed locations are not reused.

    Args:
        file_path: Path to JSON storage file (created if doesn't exist)

    File Format:
        JSON object with the next id and a list of location objects.
        Example: {"next_id": 3, "locations": [location1, location2]}
    """

    def __init__(self, file_path: str = "locations.json"):
        """Initialize repository"""
        self.locations: Dict[str, Location] = {}
        self.next_id = 1
        super().__init__(file_path)

    async def get_location(self, location_id: str) -> Optional[Location]:
        return self.locations.get(str(location_id))

    async def list_locations(self) -> List[Location]:
        return list(self.locations.values())

    async def mark_synced(self, location_id: str, when: datetime) -> None:
        location = self.locations.get(str(location_id))
        if location is None:
            raise LocationNotFound(location_id)

        location.last_synced_at = when
        self._save_to_file(self._serialize_data())

    async def add_location(
        self,
        name: str,
        latitude: float,
        longitude: float,
        country_code: Optional[str] = None,
    ) -> Location:
        """Register a new location"""
        if not -90 <= latitude <= 90:
            raise InvalidLocation(
                f"Invalid latitude {latitude}; expected between -90 and 90"
            )
        if not -180 <= longitude <= 180:
            raise InvalidLocation(
                f"Invalid longitude {longitude}; expected between -180 and 180"
            )

        location = Location(
            id=str(self.next_id),
            name=name,
            latitude=latitude,
            longitude=longitude,
            country_code=country_code.upper() if country_code else None,
        )
        self.locations[location.id] = location
        self.next_id += 1
        self._save_to_file(self._serialize_data())

        return location

    async def remove_location(self, location_id: str) -> bool:
        if self.locations.pop(str(location_id), None) is None:
            return False

        self._save_to_file(self._serialize_data())
        return True

    def _serialize_data(self) -> Dict[str, Any]:
        """Convert locations to a serializable dictionary"""
        return {
            "next_id": self.next_id,
            "locations": [
                self._serialize_location(location)
                for location in self.locations.values()
            ],
        }

    def _deserialize_data(self, data: Dict[str, Any]) -> None:
        """Load locations from a serialized dictionary"""
        for item in data.get("locations", []):
            location = self._deserialize_location(item)
            self.locations[location.id] = location
        self.next_id = data.get("next_id", len(self.locations) + 1)

    def _serialize_location(self, location: Location) -> dict:
        return {
            "id": location.id,
            "name": location.name,
            "latitude": location.latitude,
            "longitude": location.longitude,
            "country_code": location.country_code,
            "created_at": _format_datetime(location.created_at),
            "last_synced_at": _format_datetime(location.last_synced_at),
        }

    def _deserialize_location(self, data: dict) -> Location:
        return Location(
            id=data["id"],
            name=data["name"],
            latitude=data["latitude"],
            longitude=data["longitude"],
            country_code=data.get("country_code"),
            created_at=_parse_datetime(data.get("created_at")) or datetime.now(),
            last_synced_at=_parse_datetime(data.get("last_synced_at")),
        )


class JsonFileObservationStore(
    TimestampedCollectionRepository[Observation, str], ObservationStore
):
    """File-based observation store using JSON persistence.

    Observations are grouped per location id and ordered by record
    timestamp, newest first. Retention is handled by explicit
    ``delete_before`` calls, so no per-location cap is applied by default.

    Args:
        file_path: Path to JSON storage file (created if doesn't exist)
        max_observations_per_location: Optional hard cap per location

    File Format:
        JSON object with location ids mapping to arrays of observations.
        Example: {"1": [observation1, observation2, ...]}
    """

    def __init__(
        self,
        file_path: str = "observations.json",
        max_observations_per_location: Optional[int] = None,
    ):
        """Initialize repository"""
        super().__init__(file_path, max_observations_per_location)

    async def insert(self, observation: Observation) -> Observation:
        """Persist an observation, assigning an id if it has none"""
        if observation.id is None:
            observation = dataclasses.replace(observation, id=uuid.uuid4().hex)
        return await self.save_item(observation.location_id, observation)

    async def latest_for(self, location_id: str) -> Optional[Observation]:
        return await self.get_most_recent_item(str(location_id))

    async def history_for(self, location_id: str) -> List[Observation]:
        return await self.find_items(str(location_id))

    async def history_since(
        self, location_id: str, cutoff: datetime
    ) -> List[Observation]:
        return await self.find_items(str(location_id), since=cutoff)

    async def delete_before(self, location_id: str, cutoff: datetime) -> int:
        return await self.delete_items_before(str(location_id), cutoff)

    async def delete(self, location_id: str, observation_id: str) -> bool:
        items = self.collections.get(str(location_id), [])
        kept = [item for item in items if item.id != observation_id]
        if len(kept) == len(items):
            return False

        if kept:
            self.collections[str(location_id)] = kept
        else:
            del self.collections[str(location_id)]
        self._save_to_file(self._serialize_data())
        return True

    async def location_ids(self) -> List[str]:
        return list(self.collections)

    async def delete_all_for(self, location_id: str) -> int:
        items = self.collections.pop(str(location_id), [])
        if items:
            self._save_to_file(self._serialize_data())
        return len(items)

    async def count_for(self, location_id: str) -> int:
        return await self.count_items(str(location_id))

    def _timestamp(self, observation: Observation) -> datetime:
        return observation.record_timestamp

    def _serialize_item(self, observation: Observation) -> Dict[str, Any]:
        """Convert an Observation to a serializable dictionary"""
        return {
            "id": observation.id,
            "location_id": observation.location_id,
            "temperature": observation.temperature,
            "humidity": observation.humidity,
            "pressure": observation.pressure,
            "wind_speed": observation.wind_speed,
            "wind_direction": observation.wind_direction,
            "visibility": observation.visibility,
            "condition_summary": observation.condition_summary,
            "condition_description": observation.condition_description,
            "condition_icon": observation.condition_icon,
            "data_timestamp": _format_datetime(observation.data_timestamp),
            "record_timestamp": observation.record_timestamp.isoformat(),
        }

    def _deserialize_item(self, data: Dict[str, Any]) -> Observation:
        """Create an Observation from a dictionary"""
        return Observation(
            id=data.get("id"),
            location_id=data["location_id"],
            temperature=data["temperature"],
            humidity=data["humidity"],
            pressure=data["pressure"],
            wind_speed=data.get("wind_speed"),
            wind_direction=data.get("wind_direction"),
            visibility=data.get("visibility"),
            condition_summary=data.get("condition_summary"),
            condition_description=data.get("condition_description"),
            condition_icon=data.get("condition_icon"),
            data_timestamp=_parse_datetime(data.get("data_timestamp")),
            record_timestamp=datetime.fromisoformat(data["record_timestamp"]),
        )

    def _deserialize_key(self, key_str: str) -> str:
        """Keys are already strings"""
        return key_str
