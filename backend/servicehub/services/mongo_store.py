import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError

from servicehub.services.errors import ConflictError
from servicehub.services.storage import BOOKINGS, REVIEWS, SERVICES, USERS, Document, StorageGateway

logger = logging.getLogger(__name__)


def _out(document: Optional[Document]) -> Optional[Document]:
    if document is None:
        return None
    document["_id"] = str(document["_id"])
    return document


class MongoGateway(StorageGateway):
    backend_name = "mongodb"

    def __init__(self, client: MongoClient, db_name: Optional[str] = None) -> None:
        self._client = client
        if db_name:
            self._db = client[db_name]
        else:
            self._db = client.get_default_database(default="servicehub_pro")

    @property
    def database_name(self) -> str:
        return self._db.name

    def ping(self) -> None:
        self._client.admin.command("ping")

    def close(self) -> None:
        self._client.close()

    def ensure_indexes(self) -> None:
        self._db[SERVICES].create_index([("providerEmail", ASCENDING)])
        self._db[SERVICES].create_index([("serviceArea", ASCENDING)])
        self._db[BOOKINGS].create_index([("userEmail", ASCENDING)])
        self._db[BOOKINGS].create_index([("providerEmail", ASCENDING)])
        self._db[BOOKINGS].create_index([("status", ASCENDING)])
        self._db[BOOKINGS].create_index([("serviceId", ASCENDING)])
        self._db[USERS].create_index([("email", ASCENDING)], unique=True)
        self._db[USERS].create_index([("uid", ASCENDING)], unique=True)
        self._db[REVIEWS].create_index([("serviceId", ASCENDING)])
        self._db[REVIEWS].create_index([("customerEmail", ASCENDING)])
        logger.info("MongoDB indexes ensured")

    def is_valid_id(self, record_id: str) -> bool:
        return ObjectId.is_valid(record_id)

    def _id_query(self, record_id: str, expected_version: Optional[int] = None) -> Optional[Dict[str, Any]]:
        if not ObjectId.is_valid(record_id):
            return None
        query: Dict[str, Any] = {"_id": ObjectId(record_id)}
        if expected_version is not None:
            query["version"] = expected_version
        return query

    def insert_one(self, collection: str, document: Document) -> str:
        stored = {key: value for key, value in document.items() if key != "_id"}
        stored["version"] = 1
        try:
            result = self._db[collection].insert_one(stored)
        except DuplicateKeyError as exc:
            raise ConflictError("Duplicate record") from exc
        return str(result.inserted_id)

    def find_by_id(self, collection: str, record_id: str) -> Optional[Document]:
        query = self._id_query(record_id)
        if query is None:
            return None
        return _out(self._db[collection].find_one(query))

    def find(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        *,
        newest_first: bool = True,
        limit: Optional[int] = None,
    ) -> List[Document]:
        cursor = self._db[collection].find(filters or {})
        if newest_first:
            cursor = cursor.sort("createdAt", DESCENDING)
        if limit is not None:
            cursor = cursor.limit(limit)
        return [_out(doc) for doc in cursor]

    def update_by_id(
        self,
        collection: str,
        record_id: str,
        fields: Dict[str, Any],
        *,
        expected_version: Optional[int] = None,
    ) -> Optional[Document]:
        query = self._id_query(record_id, expected_version)
        if query is None:
            return None
        changes = {key: value for key, value in fields.items() if key not in {"_id", "version"}}
        try:
            updated = self._db[collection].find_one_and_update(
                query,
                {"$set": changes, "$inc": {"version": 1}},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as exc:
            raise ConflictError("Duplicate record") from exc
        return _out(updated)

    def delete_by_id(self, collection: str, record_id: str, *, expected_version: Optional[int] = None) -> bool:
        query = self._id_query(record_id, expected_version)
        if query is None:
            return False
        return self._db[collection].delete_one(query).deleted_count == 1

    def upsert_one(
        self,
        collection: str,
        filters: Dict[str, Any],
        fields: Dict[str, Any],
        *,
        on_insert: Optional[Dict[str, Any]] = None,
    ) -> Document:
        update: Dict[str, Any] = {"$set": dict(fields), "$inc": {"version": 1}}
        insert_only = {key: value for key, value in (on_insert or {}).items() if key not in fields}
        if insert_only:
            update["$setOnInsert"] = insert_only
        try:
            document = self._db[collection].find_one_and_update(
                filters,
                update,
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as exc:
            raise ConflictError("Duplicate record") from exc
        return _out(document)

    def search(self, collection: str, fields: Iterable[str], text: str) -> List[Document]:
        pattern = re.escape(text)
        query = {"$or": [{name: {"$regex": pattern, "$options": "i"}} for name in fields]}
        return [_out(doc) for doc in self._db[collection].find(query)]

    def count(self, collection: str) -> int:
        return self._db[collection].count_documents({})
