#!/usr/bin/env python3
"""
Collection History - most-recently-saved search selections

Bounded list, newest first. Saving a sixth collection drops the oldest.
The whole history lives in one JSON blob under a single settings key.
"""
import json
import logging
from collections import deque
from typing import Iterable, List, Optional

from arena_slides.core.datashapes import Collection, Record, utc_now_iso
from arena_slides.settings.repository import SettingsRepository

logger = logging.getLogger(__name__)

KEY_COLLECTION_HISTORY = "collection_history"
DEFAULT_MAX_COLLECTIONS = 5


class CollectionHistory:
    """
    LIFO history of saved collections.
    history[0] is always the most recently saved collection.
    """

    def __init__(self, repository: SettingsRepository, max_size: int = DEFAULT_MAX_COLLECTIONS):
        self.repository = repository
        # Never more than five, whatever the config says
        self.max_size = max(1, min(max_size, DEFAULT_MAX_COLLECTIONS))

    def _load(self) -> List[Collection]:
        blob = self.repository.get(KEY_COLLECTION_HISTORY, "")
        if not blob:
            return []
        try:
            data = json.loads(blob)
        except ValueError:
            logger.warning("Collection history is not valid JSON, treating as empty")
            return []
        if not isinstance(data, list):
            return []
        return [Collection.from_dict(entry) for entry in data if isinstance(entry, dict)]

    def _store(self, collections: Iterable[Collection]) -> None:
        self.repository.set(
            KEY_COLLECTION_HISTORY,
            json.dumps([collection.to_dict() for collection in collections]),
        )

    def save_collection(self, name: str, records: List[Record], timestamp: Optional[str] = None) -> Collection:
        """
        Add a collection at the front of the history.
        Returns the collection that was stored.
        """
        collection = Collection(
            name=name.strip() or "Untitled collection",
            timestamp=timestamp or utc_now_iso(),
            items=[record.to_history_entry() for record in records],
        )

        # deque(maxlen) drops from the right when we appendleft past capacity
        history = deque(self._load(), maxlen=self.max_size)
        history.appendleft(collection)
        self._store(history)

        logger.info(f"Saved collection '{collection.name}' with {len(collection.items)} records")
        return collection

    def list_collections(self) -> List[Collection]:
        return self._load()[: self.max_size]

    def get_collection(self, name: str) -> Optional[Collection]:
        """Newest collection with this name, if any."""
        for collection in self._load():
            if collection.name == name:
                return collection
        return None

    def delete_collection(self, name: str) -> bool:
        history = self._load()
        remaining = [collection for collection in history if collection.name != name]
        if len(remaining) == len(history):
            return False
        self._store(remaining)
        return True

    def clear(self) -> int:
        """Clear all collections. Returns number of collections cleared."""
        cleared_count = len(self._load())
        self.repository.delete(KEY_COLLECTION_HISTORY)
        return cleared_count
