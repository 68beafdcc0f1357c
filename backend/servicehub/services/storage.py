"""Storage gateway shared by the catalog, booking, review and identity stores.

Two backends implement the same contract: ``MongoGateway`` (durable document
store) and ``MemoryGateway`` (process-local fallback). ``select_gateway`` picks
one at application startup; the choice is never re-evaluated per request.

Documents are plain dicts keyed by their wire field names with a string
``_id``. Every stored document carries a ``version`` counter that starts at 1
and is bumped by each update, so callers can make check-then-mutate sequences
conditional on the version they read.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

SERVICES = "services"
BOOKINGS = "bookings"
USERS = "users"
REVIEWS = "reviews"
COLLECTIONS = (SERVICES, BOOKINGS, USERS, REVIEWS)

# Fields that must be unique within a collection, enforced by both backends.
UNIQUE_FIELDS: Dict[str, tuple[str, ...]] = {USERS: ("uid", "email")}

Document = Dict[str, Any]


class StorageGateway(ABC):
    backend_name = "abstract"

    @abstractmethod
    def is_valid_id(self, record_id: str) -> bool: ...

    @abstractmethod
    def insert_one(self, collection: str, document: Document) -> str:
        """Store a copy of ``document`` and return its generated identifier."""

    @abstractmethod
    def find_by_id(self, collection: str, record_id: str) -> Optional[Document]: ...

    @abstractmethod
    def find(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        *,
        newest_first: bool = True,
        limit: Optional[int] = None,
    ) -> List[Document]:
        """Equality-filtered lookup, optionally sorted by ``createdAt`` descending."""

    def find_all(self, collection: str, *, newest_first: bool = True, limit: Optional[int] = None) -> List[Document]:
        return self.find(collection, None, newest_first=newest_first, limit=limit)

    @abstractmethod
    def update_by_id(
        self,
        collection: str,
        record_id: str,
        fields: Dict[str, Any],
        *,
        expected_version: Optional[int] = None,
    ) -> Optional[Document]:
        """Merge ``fields`` into the record and return the updated document.

        Returns ``None`` when the record is missing or, if ``expected_version``
        is given, when the stored version no longer matches.
        """

    @abstractmethod
    def delete_by_id(self, collection: str, record_id: str, *, expected_version: Optional[int] = None) -> bool: ...

    @abstractmethod
    def upsert_one(
        self,
        collection: str,
        filters: Dict[str, Any],
        fields: Dict[str, Any],
        *,
        on_insert: Optional[Dict[str, Any]] = None,
    ) -> Document:
        """Update the record matching ``filters`` or insert a new one."""

    @abstractmethod
    def search(self, collection: str, fields: Iterable[str], text: str) -> List[Document]:
        """Case-insensitive literal substring match of ``text`` against any of ``fields``."""

    @abstractmethod
    def count(self, collection: str) -> int: ...

    def ping(self) -> None:
        return None

    def close(self) -> None:
        return None


def _read_timeout_ms() -> int:
    raw = os.getenv("MONGODB_TIMEOUT_MS", "2000")
    try:
        value = int(raw)
    except ValueError:
        return 2000
    return value if value > 0 else 2000


def select_gateway() -> StorageGateway:
    """Choose the storage backend once, at process start.

    ``STORAGE_BACKEND=memory`` skips MongoDB entirely, ``mongo`` makes an
    unreachable server fatal, and the default ``auto`` falls back to the
    in-memory store when the startup ping fails.
    """
    from servicehub.services.memory_store import MemoryGateway

    mode = os.getenv("STORAGE_BACKEND", "auto").strip().lower()
    if mode == "memory":
        logger.info("Storage backend: in-memory (STORAGE_BACKEND=memory)")
        return MemoryGateway()

    from pymongo import MongoClient
    from pymongo.errors import PyMongoError

    from servicehub.services.mongo_store import MongoGateway

    uri = os.getenv("MONGODB_URI", "mongodb://localhost:27017/servicehub_pro")
    db_name = os.getenv("MONGODB_DB", "").strip() or None
    client = None
    try:
        client = MongoClient(uri, serverSelectionTimeoutMS=_read_timeout_ms(), tz_aware=True)
        gateway = MongoGateway(client, db_name=db_name)
        gateway.ping()
        gateway.ensure_indexes()
    except PyMongoError as exc:
        if client is not None:
            client.close()
        if mode == "mongo":
            raise
        logger.warning("MongoDB unavailable (%s); falling back to in-memory storage", exc)
        return MemoryGateway()
    logger.info("Storage backend: MongoDB database %s", gateway.database_name)
    return gateway
