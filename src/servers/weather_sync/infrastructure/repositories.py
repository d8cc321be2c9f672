import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)


class JsonFileRepository(ABC):
    """Abstract base class for JSON file-based repositories"""

    def __init__(self, file_path: str):
        """Initialize repository and load existing data

        Args:
            file_path: Path to the JSON file for persistence
        """
        self.file_path = Path(file_path)
        data = self._load_from_file()
        self._deserialize_data(data)

    def _save_to_file(self, serializable_data: Dict[str, Any]) -> None:
        """Save data to JSON file

        Args:
            serializable_data: Dictionary of serialized data to save
        """
        self.file_path.parent.mkdir(parents=True, exist_ok=True)

        # Write then rename so a crash mid-write keeps the previous file
        tmp_path = self.file_path.with_suffix(self.file_path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(serializable_data, f, indent=2)
        tmp_path.replace(self.file_path)

    def _load_from_file(self) -> Dict[str, Any]:
        """Load data from JSON file if it exists

        Returns:
            Dictionary of loaded data or empty dict if file doesn't exist
        """
        if not self.file_path.exists():
            return {}

        try:
            with open(self.file_path, "r") as f:
                return json.load(f)

        except (json.JSONDecodeError, IOError) as e:
            logger.error("Error loading data from %s: %s", self.file_path, e)
            return {}

    @abstractmethod
    def _serialize_data(self) -> Dict[str, Any]:
        """Convert in-memory data to serializable dictionary

        Returns:
            Dictionary representation of the data
        """
        pass

    @abstractmethod
    def _deserialize_data(self, data: Dict[str, Any]) -> None:
        """Load data from serialized dictionary into memory

        Args:
            data: Serialized data to load
        """
        pass


T = TypeVar("T")  # For domain objects (Observation)
K = TypeVar("K")  # For key types (location id)


class TimestampedCollectionRepository(JsonFileRepository, Generic[T, K]):
    """Generic repository for timestamped domain objects grouped by key.

    Each key holds a list ordered newest first by the timestamp returned
    from ``_timestamp``. Items sharing a timestamp keep the most recently
    saved one first.

    Type Parameters:
        T: Domain object type
        K: Key type for grouping objects (str for location ids)

    Args:
        file_path: JSON file path for persistence
        max_items_per_key: Maximum objects to retain per key, None for no cap
    """

    def __init__(self, file_path: str, max_items_per_key: Optional[int] = None):
        """Initialize repository"""
        self.collections: Dict[K, List[T]] = {}
        self.max_items_per_key = max_items_per_key
        super().__init__(file_path)

    async def find_items(
        self,
        key: K,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[T]:
        """Find items for a key, newest first.

        Args:
            key: Grouping key (e.g., location identifier)
            since: Only return items with timestamp >= since
            limit: Maximum items to return (None for no limit)

        Returns:
            List of items matching criteria, ordered newest to oldest
        """
        items = self.collections.get(key, [])

        if since is not None:
            items = [item for item in items if self._timestamp(item) >= since]
        else:
            items = list(items)

        if limit is not None and limit > 0:
            items = items[:limit]

        return items

    async def save_item(self, key: K, item: T) -> T:
        """Save an item under the given key"""
        items = self.collections.setdefault(key, [])

        # Insert first, then a stable sort keeps it ahead of equal timestamps
        items.insert(0, item)
        items.sort(key=self._timestamp, reverse=True)

        if self.max_items_per_key is not None:
            del items[self.max_items_per_key :]

        self._save_to_file(self._serialize_data())

        return item

    async def get_most_recent_item(self, key: K) -> Optional[T]:
        """Get the most recent item for a key"""
        items = self.collections.get(key)
        if not items:
            return None

        return items[0]

    async def delete_items_before(self, key: K, cutoff: datetime) -> int:
        """Delete items with timestamp strictly before cutoff.

        Returns:
            Number of items deleted
        """
        items = self.collections.get(key)
        if not items:
            return 0

        kept = [item for item in items if self._timestamp(item) >= cutoff]
        deleted = len(items) - len(kept)
        if deleted:
            self.collections[key] = kept
            self._save_to_file(self._serialize_data())

        return deleted

    async def count_items(self, key: K) -> int:
        return len(self.collections.get(key, []))

    def _serialize_data(self) -> Dict[str, Any]:
        """Convert in-memory collections to serializable dictionary"""
        return {
            str(key): [self._serialize_item(item) for item in items]
            for key, items in self.collections.items()
        }

    def _deserialize_data(self, data: Dict[str, Any]) -> None:
        """Load data from serialized dictionary into memory"""
        for key_str, items_data in data.items():
            key = self._deserialize_key(key_str)
            items = [self._deserialize_item(item) for item in items_data]
            items.sort(key=self._timestamp, reverse=True)
            self.collections[key] = items

    @abstractmethod
    def _timestamp(self, item: T) -> datetime:
        """Extract the ordering timestamp from an item"""
        pass

    @abstractmethod
    def _serialize_item(self, item: T) -> Dict[str, Any]:
        """Convert an item to a serializable dictionary"""
        pass

    @abstractmethod
    def _deserialize_item(self, data: Dict[str, Any]) -> T:
        """Create an item from a dictionary"""
        pass

    @abstractmethod
    def _deserialize_key(self, key_str: str) -> K:
        """Convert a string key back to the appropriate type"""
        pass
