"""Key-value backends underneath the session store.

Each backend maps a string key to a serialized string value, mirroring the
browser ``localStorage`` contract the chat state was designed around.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

from pymongo import MongoClient
from pymongo.collection import Collection

logger = logging.getLogger(__name__)

COLLECTION_NAME = "key_value_state"


class KeyValueBackend(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryBackend:
    """Process-local backend, used by tests and throwaway runs."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class FileBackend:
    """All keys in one JSON object on disk, replaced atomically on write."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable state file %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, items: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(items, f)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get_item(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        items = self._read_all()
        items[key] = value
        self._write_all(items)

    def remove_item(self, key: str) -> None:
        items = self._read_all()
        if items.pop(key, None) is not None:
            self._write_all(items)


class MongoBackend:
    """One MongoDB document per key: ``{key, value, updated_at}``.

    Uses **pymongo** (synchronous), like the rest of the store.
    """

    def __init__(
        self,
        connection_string: str,
        database_name: str,
        collection_name: str = COLLECTION_NAME,
    ) -> None:
        self._client = MongoClient(connection_string)
        self._collection: Collection = self._client[database_name][collection_name]
        self._collection.create_index("key", unique=True)

    @classmethod
    def from_collection(cls, collection: Collection) -> "MongoBackend":
        backend = cls.__new__(cls)
        backend._client = None
        backend._collection = collection
        return backend

    def get_item(self, key: str) -> Optional[str]:
        doc = self._collection.find_one({"key": key}, {"_id": 0, "value": 1})
        if not doc:
            return None
        return doc.get("value")

    def set_item(self, key: str, value: str) -> None:
        self._collection.update_one(
            {"key": key},
            {
                "$set": {
                    "value": value,
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                }
            },
            upsert=True,
        )

    def remove_item(self, key: str) -> None:
        self._collection.delete_one({"key": key})

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
