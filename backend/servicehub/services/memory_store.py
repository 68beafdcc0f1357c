import copy
import re
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

from servicehub.services.errors import ConflictError
from servicehub.services.storage import COLLECTIONS, UNIQUE_FIELDS, Document, StorageGateway

_ID_PATTERN = re.compile(r"^[0-9a-f]{24}$")
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _created_key(document: Document) -> datetime:
    value = document.get("createdAt")
    return value if isinstance(value, datetime) else _EPOCH


class MemoryGateway(StorageGateway):
    """Non-persistent fallback store; everything is lost on restart."""

    backend_name = "memory"

    def __init__(self) -> None:
        self._lock = Lock()
        self._collections: Dict[str, Dict[str, Document]] = {name: {} for name in COLLECTIONS}

    def _table(self, collection: str) -> Dict[str, Document]:
        return self._collections.setdefault(collection, {})

    def _assert_unique(self, collection: str, document: Document, skip_id: Optional[str] = None) -> None:
        for field in UNIQUE_FIELDS.get(collection, ()):
            value = document.get(field)
            if value is None:
                continue
            for record_id, existing in self._table(collection).items():
                if record_id != skip_id and existing.get(field) == value:
                    raise ConflictError(f"Duplicate value for {field}")

    def is_valid_id(self, record_id: str) -> bool:
        return bool(_ID_PATTERN.match(record_id or ""))

    def insert_one(self, collection: str, document: Document) -> str:
        record_id = uuid4().hex[:24]
        stored = copy.deepcopy(document)
        stored["_id"] = record_id
        stored["version"] = 1
        with self._lock:
            self._assert_unique(collection, stored)
            self._table(collection)[record_id] = stored
        return record_id

    def find_by_id(self, collection: str, record_id: str) -> Optional[Document]:
        with self._lock:
            found = self._table(collection).get(record_id)
            return copy.deepcopy(found) if found is not None else None

    def find(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        *,
        newest_first: bool = True,
        limit: Optional[int] = None,
    ) -> List[Document]:
        filters = filters or {}
        with self._lock:
            rows = [
                copy.deepcopy(doc)
                for doc in self._table(collection).values()
                if all(doc.get(key) == value for key, value in filters.items())
            ]
        if newest_first:
            # Insertion order breaks createdAt ties so later inserts still come first.
            ranked = sorted(enumerate(rows), key=lambda pair: (_created_key(pair[1]), pair[0]), reverse=True)
            rows = [doc for _, doc in ranked]
        return rows[:limit] if limit is not None else rows

    def update_by_id(
        self,
        collection: str,
        record_id: str,
        fields: Dict[str, Any],
        *,
        expected_version: Optional[int] = None,
    ) -> Optional[Document]:
        with self._lock:
            current = self._table(collection).get(record_id)
            if current is None:
                return None
            if expected_version is not None and current.get("version") != expected_version:
                return None
            merged = {**current, **copy.deepcopy(fields)}
            merged["_id"] = record_id
            merged["version"] = int(current.get("version", 0)) + 1
            self._assert_unique(collection, merged, skip_id=record_id)
            self._table(collection)[record_id] = merged
            return copy.deepcopy(merged)

    def delete_by_id(self, collection: str, record_id: str, *, expected_version: Optional[int] = None) -> bool:
        with self._lock:
            current = self._table(collection).get(record_id)
            if current is None:
                return False
            if expected_version is not None and current.get("version") != expected_version:
                return False
            del self._table(collection)[record_id]
            return True

    def upsert_one(
        self,
        collection: str,
        filters: Dict[str, Any],
        fields: Dict[str, Any],
        *,
        on_insert: Optional[Dict[str, Any]] = None,
    ) -> Document:
        with self._lock:
            table = self._table(collection)
            for record_id, existing in table.items():
                if all(existing.get(key) == value for key, value in filters.items()):
                    merged = {**existing, **copy.deepcopy(fields)}
                    merged["version"] = int(existing.get("version", 0)) + 1
                    self._assert_unique(collection, merged, skip_id=record_id)
                    table[record_id] = merged
                    return copy.deepcopy(merged)

            record_id = uuid4().hex[:24]
            created = {**copy.deepcopy(on_insert or {}), **copy.deepcopy(filters), **copy.deepcopy(fields)}
            created["_id"] = record_id
            created["version"] = 1
            self._assert_unique(collection, created)
            table[record_id] = created
            return copy.deepcopy(created)

    def search(self, collection: str, fields: Iterable[str], text: str) -> List[Document]:
        needle = text.lower()
        names = list(fields)
        with self._lock:
            return [
                copy.deepcopy(doc)
                for doc in self._table(collection).values()
                if any(needle in str(doc.get(name) or "").lower() for name in names)
            ]

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._table(collection))
