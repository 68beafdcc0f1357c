from datetime import datetime, timedelta, timezone

import pytest

from servicehub.services.errors import ConflictError
from servicehub.services.memory_store import MemoryGateway
from servicehub.services.storage import SERVICES, USERS


def _mongo_gateway():
    mongomock = pytest.importorskip("mongomock")
    from servicehub.services.mongo_store import MongoGateway

    gateway = MongoGateway(mongomock.MongoClient(tz_aware=True), db_name="servicehub_test")
    gateway.ensure_indexes()
    return gateway


@pytest.fixture(params=["memory", "mongodb"])
def store(request):
    if request.param == "memory":
        return MemoryGateway()
    return _mongo_gateway()


def test_insert_assigns_id_and_version(store):
    record_id = store.insert_one(SERVICES, {"serviceName": "Plumbing"})

    assert store.is_valid_id(record_id)
    found = store.find_by_id(SERVICES, record_id)
    assert found["_id"] == record_id
    assert found["version"] == 1


def test_invalid_and_unknown_ids(store):
    assert not store.is_valid_id("not-an-id")
    assert not store.is_valid_id("")
    assert store.find_by_id(SERVICES, "not-an-id") is None
    assert store.find_by_id(SERVICES, "0" * 24) is None
    assert store.update_by_id(SERVICES, "0" * 24, {"serviceName": "x"}) is None
    assert store.delete_by_id(SERVICES, "0" * 24) is False


def test_conditional_update_checks_version(store):
    record_id = store.insert_one(SERVICES, {"serviceName": "Plumbing"})

    updated = store.update_by_id(SERVICES, record_id, {"serviceName": "Wiring"}, expected_version=1)
    assert updated["serviceName"] == "Wiring"
    assert updated["version"] == 2

    assert store.update_by_id(SERVICES, record_id, {"serviceName": "Stale"}, expected_version=1) is None
    assert store.find_by_id(SERVICES, record_id)["serviceName"] == "Wiring"


def test_conditional_delete_checks_version(store):
    record_id = store.insert_one(SERVICES, {"serviceName": "Plumbing"})
    store.update_by_id(SERVICES, record_id, {"serviceName": "Wiring"})

    assert store.delete_by_id(SERVICES, record_id, expected_version=1) is False
    assert store.delete_by_id(SERVICES, record_id, expected_version=2) is True
    assert store.find_by_id(SERVICES, record_id) is None


def test_find_filters_sorts_and_limits(store):
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    for offset, area in enumerate(["Dhaka", "Khulna", "Dhaka"]):
        store.insert_one(SERVICES, {"serviceArea": area, "n": offset, "createdAt": base + timedelta(days=offset)})

    assert [doc["n"] for doc in store.find(SERVICES, {"serviceArea": "Dhaka"})] == [2, 0]
    assert [doc["n"] for doc in store.find_all(SERVICES, limit=2)] == [2, 1]
    assert store.count(SERVICES) == 3


def test_upsert_inserts_then_updates(store):
    first = store.upsert_one(
        USERS,
        {"uid": "u1"},
        {"email": "a@x.com", "displayName": "A"},
        on_insert={"createdAt": "first"},
    )
    second = store.upsert_one(
        USERS,
        {"uid": "u1"},
        {"email": "a@x.com", "displayName": "B"},
        on_insert={"createdAt": "second"},
    )

    assert first["_id"] == second["_id"]
    assert second["displayName"] == "B"
    assert second["createdAt"] == "first"
    assert second["version"] == 2
    assert store.count(USERS) == 1


def test_unique_user_email_conflicts(store):
    store.insert_one(USERS, {"uid": "u1", "email": "a@x.com"})
    with pytest.raises(ConflictError):
        store.insert_one(USERS, {"uid": "u2", "email": "a@x.com"})


def test_search_is_case_insensitive_and_literal(store):
    store.insert_one(SERVICES, {"serviceName": "AC Repair", "serviceArea": "Dhaka"})
    store.insert_one(SERVICES, {"serviceName": "Cleaning", "serviceArea": "Sylhet (north)"})

    assert [doc["serviceName"] for doc in store.search(SERVICES, ["serviceName", "serviceArea"], "repair")] == [
        "AC Repair"
    ]
    assert [doc["serviceName"] for doc in store.search(SERVICES, ["serviceName", "serviceArea"], "(north)")] == [
        "Cleaning"
    ]
    assert store.search(SERVICES, ["serviceName"], ".*") == []


def test_returned_documents_are_copies():
    store = MemoryGateway()
    record_id = store.insert_one(SERVICES, {"tags": ["a"]})
    found = store.find_by_id(SERVICES, record_id)
    found["tags"].append("b")
    assert store.find_by_id(SERVICES, record_id)["tags"] == ["a"]


def test_select_gateway_honours_memory_mode(monkeypatch):
    from servicehub.services.storage import select_gateway

    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    assert select_gateway().backend_name == "memory"


def test_select_gateway_falls_back_when_mongo_unreachable(monkeypatch):
    from servicehub.services.storage import select_gateway

    monkeypatch.setenv("STORAGE_BACKEND", "auto")
    monkeypatch.setenv("MONGODB_URI", "mongodb://127.0.0.1:1/servicehub_pro")
    monkeypatch.setenv("MONGODB_TIMEOUT_MS", "100")
    assert select_gateway().backend_name == "memory"


def test_select_gateway_memory_mode_never_imports_pymongo(monkeypatch):
    import sys

    from servicehub.services.storage import select_gateway

    monkeypatch.setitem(sys.modules, "pymongo", None)
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    assert select_gateway().backend_name == "memory"


class _UnreachableAdmin:
    def command(self, name):
        from pymongo.errors import ServerSelectionTimeoutError

        raise ServerSelectionTimeoutError("no servers available")


class _UnreachableClient:
    instances = []

    def __init__(self, *args, **kwargs):
        self.closed = False
        self.admin = _UnreachableAdmin()
        _UnreachableClient.instances.append(self)

    def __getitem__(self, name):
        return object()

    def close(self):
        self.closed = True


def test_select_gateway_closes_client_on_fallback(monkeypatch):
    pytest.importorskip("pymongo")
    from servicehub.services.storage import select_gateway

    _UnreachableClient.instances.clear()
    monkeypatch.setattr("pymongo.MongoClient", _UnreachableClient)
    monkeypatch.setenv("STORAGE_BACKEND", "auto")
    monkeypatch.setenv("MONGODB_DB", "servicehub_test")

    assert select_gateway().backend_name == "memory"
    assert [client.closed for client in _UnreachableClient.instances] == [True]


def test_select_gateway_mongo_mode_is_fatal(monkeypatch):
    pymongo_errors = pytest.importorskip("pymongo.errors")
    from servicehub.services.storage import select_gateway

    monkeypatch.setattr("pymongo.MongoClient", _UnreachableClient)
    monkeypatch.setenv("STORAGE_BACKEND", "mongo")
    monkeypatch.setenv("MONGODB_DB", "servicehub_test")

    with pytest.raises(pymongo_errors.PyMongoError):
        select_gateway()


def test_memory_newest_first_is_stable_for_equal_timestamps():
    store = MemoryGateway()
    stamp = datetime(2026, 1, 1, tzinfo=timezone.utc)
    ids = [store.insert_one(SERVICES, {"createdAt": stamp, "n": n}) for n in range(3)]

    assert [doc["_id"] for doc in store.find_all(SERVICES)] == list(reversed(ids))
    assert [doc["_id"] for doc in store.find_all(SERVICES, newest_first=False)] == ids
