"""
Tests for loading MongoDB documents into the store
"""
import asyncio

import pytest

from conftest import build
from app.config import ENTITIES_COLLECTION, ENTITY_KINDS_COLLECTION, FIELD_DEFINITIONS_COLLECTION, FIELD_INSTANCES_COLLECTION
from app.services.data_loader import load_and_process_data
from app.store import store


class FakeCursor:
    def __init__(self, docs):
        self.docs = docs

    async def to_list(self, length=None):
        return [dict(doc) for doc in self.docs]


class FakeCollection:
    def __init__(self, docs):
        self.docs = docs
        self.filters = []

    def find(self, query):
        self.filters.append(query)
        return FakeCursor(self.docs)


class FakeDatabase(dict):
    def __init__(self, raw):
        super().__init__({
            ENTITY_KINDS_COLLECTION: FakeCollection(raw["kinds"]),
            FIELD_DEFINITIONS_COLLECTION: FakeCollection(raw["definitions"]),
            FIELD_INSTANCES_COLLECTION: FakeCollection(raw["instances"]),
            ENTITIES_COLLECTION: FakeCollection(raw["entities"]),
        })


@pytest.fixture
def reset_store():
    yield store
    store.swap_cache({})
    store.mark_loading()


def test_load_fills_store_and_marks_ready(raw_data, reset_store):
    database = FakeDatabase(raw_data)

    asyncio.run(load_and_process_data(database))

    assert store.is_ready
    assert set(store.cache["entity_kinds"]) == {"node", "taxonomy_term", "user", "file"}
    assert store.cache["entities"]["node"]["10"].properties["title"] == "Cannons win again"
    assert store.cache["field_instances"]["node"]["news"]["team"].option_limit.enabled
    assert database[ENTITIES_COLLECTION].filters == [{"active": {"$ne": False}}]


def test_failed_load_leaves_store_loading(raw_data, reset_store):
    database = FakeDatabase(raw_data)
    del database[ENTITIES_COLLECTION]

    asyncio.run(load_and_process_data(database))

    assert not store.is_ready


def test_invalid_documents_are_skipped(raw_data):
    raw_data["definitions"].append({"_id": "bad", "name": "broken", "type": "no_such_type"})
    raw_data["definitions"].append({"_id": "bad2", "name": "zero", "type": "text", "cardinality": 0})
    raw_data["instances"].append({"_id": "i99", "field_name": "broken", "entity_kind": "node", "bundle": "news"})
    raw_data["entities"].append({"_id": "99", "kind": "node"})

    cache = build(raw_data)

    assert "broken" not in cache["field_definitions"]
    assert "zero" not in cache["field_definitions"]
    assert "broken" not in cache["field_instances"]["node"]["news"]
    assert "99" not in cache["entities"]["node"]


def test_implicit_bundle_for_kinds_without_bundles(cache):
    assert cache["entity_kinds"]["user"].bundles == ["user"]
    assert cache["entity_kinds"]["file"].bundles == []
