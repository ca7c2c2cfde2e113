"""
Shared fixtures: a small site with news stories referencing sports teams,
reports referencing projects, and a few fields that cannot be limited.

    node:news      sport, league, team -> taxonomy_term:teams
    node:report    sport, project -> node:project, team, owner -> user
    node:project   sport, priority
    taxonomy_term:teams  sport, league
"""
import copy
from typing import Any, Dict, List

import pytest

from app.services.data_loader import build_cache
from app.services.entity_store import InMemoryEntityStore
from app.services.metadata import MetadataProvider
from app.store import store

ENTITY_KINDS: List[Dict[str, Any]] = [
    {
        "_id": "k1", "name": "node", "label": "Content",
        "bundles": ["news", "report", "project"],
        "bundle_labels": {"news": "News", "report": "Report", "project": "Project"},
        "label_property": "title",
    },
    {"_id": "k2", "name": "taxonomy_term", "label": "Taxonomy term", "bundles": ["teams"], "label_property": "name"},
    {"_id": "k3", "name": "user", "label": "User", "label_property": "name"},
    {"_id": "k4", "name": "file", "label": "File", "fieldable": False},
]

FIELD_DEFINITIONS: List[Dict[str, Any]] = [
    {"_id": "f1", "name": "sport", "type": "list_text", "cardinality": -1},
    {"_id": "f2", "name": "league", "type": "list_text"},
    {"_id": "f3", "name": "team", "type": "taxonomy_term_reference", "settings": {"vocabulary": "teams"}},
    {"_id": "f4", "name": "priority", "type": "number_integer"},
    {
        "_id": "f5", "name": "project", "type": "entityreference",
        "settings": {
            "target_type": "node",
            "target_bundles": ["project"],
            "sort": {"type": "field", "field": "priority:value", "direction": "DESC"},
        },
    },
    {"_id": "f6", "name": "owner", "type": "entityreference", "settings": {"target_type": "user"}},
    {"_id": "f7", "name": "attachment", "type": "entityreference", "settings": {"target_type": "file"}},
]

FIELD_INSTANCES: List[Dict[str, Any]] = [
    # node:news
    {"_id": "i1", "field_name": "sport", "entity_kind": "node", "bundle": "news", "label": "Sport", "weight": 0,
     "default_value": [{"value": "Football"}]},
    {"_id": "i2", "field_name": "league", "entity_kind": "node", "bundle": "news", "label": "League", "weight": 1},
    {"_id": "i3", "field_name": "team", "entity_kind": "node", "bundle": "news", "label": "Team", "weight": 2,
     "option_limit": {"enabled": True, "matching_fields": ["sport"], "empty_behavior": True}},
    # node:report
    {"_id": "i4", "field_name": "sport", "entity_kind": "node", "bundle": "report", "label": "Sport", "weight": 0},
    {"_id": "i5", "field_name": "project", "entity_kind": "node", "bundle": "report", "label": "Project", "weight": 1,
     "option_limit": {"enabled": True, "matching_fields": ["sport"]}},
    {"_id": "i6", "field_name": "team", "entity_kind": "node", "bundle": "report", "label": "Team", "weight": 2,
     "option_limit": {"enabled": True, "matching_fields": ["sport"]}},
    # Enabled before the user bundle lost its shared fields.
    {"_id": "i7", "field_name": "owner", "entity_kind": "node", "bundle": "report", "label": "Owner", "weight": 3,
     "option_limit": {"enabled": True, "matching_fields": ["sport"]}},
    {"_id": "i8", "field_name": "attachment", "entity_kind": "node", "bundle": "report", "label": "Attachment", "weight": 4},
    # node:project
    {"_id": "i9", "field_name": "sport", "entity_kind": "node", "bundle": "project", "label": "Sport", "weight": 0},
    {"_id": "i10", "field_name": "priority", "entity_kind": "node", "bundle": "project", "label": "Priority", "weight": 1},
    # taxonomy_term:teams
    {"_id": "i11", "field_name": "sport", "entity_kind": "taxonomy_term", "bundle": "teams", "label": "Sport"},
    {"_id": "i12", "field_name": "league", "entity_kind": "taxonomy_term", "bundle": "teams", "label": "League"},
]

ENTITIES: List[Dict[str, Any]] = [
    {"_id": "1", "kind": "taxonomy_term", "bundle": "teams",
     "properties": {"name": "Chudley Cannons", "weight": 0},
     "fields": {"sport": [{"value": "Quidditch"}], "league": [{"value": "British and Irish"}]}},
    {"_id": "2", "kind": "taxonomy_term", "bundle": "teams",
     "properties": {"name": "Real Madrid", "weight": 1},
     "fields": {"sport": [{"value": "Football"}], "league": [{"value": "La Liga"}]}},
    {"_id": "10", "kind": "node", "bundle": "news",
     "properties": {"title": "Cannons win again"},
     "fields": {"sport": [{"value": "Quidditch"}], "team": [{"tid": "1"}]}},
    {"_id": "11", "kind": "node", "bundle": "news",
     "properties": {"title": "Season preview"}, "fields": {}},
    {"_id": "20", "kind": "node", "bundle": "project",
     "properties": {"title": "Low priority project"},
     "fields": {"sport": [{"value": "Quidditch"}], "priority": [{"value": 1}]}},
    {"_id": "21", "kind": "node", "bundle": "project",
     "properties": {"title": "High priority project"},
     "fields": {"sport": [{"value": "Quidditch"}], "priority": [{"value": 5}]}},
    {"_id": "30", "kind": "node", "bundle": "report",
     "properties": {"title": "Quarterly report"},
     "fields": {"sport": [{"value": "Quidditch"}]}},
]


@pytest.fixture
def raw_data() -> Dict[str, List[Dict[str, Any]]]:
    """Deep copies of the raw documents; tests may edit them before build()."""
    return {
        "kinds": copy.deepcopy(ENTITY_KINDS),
        "definitions": copy.deepcopy(FIELD_DEFINITIONS),
        "instances": copy.deepcopy(FIELD_INSTANCES),
        "entities": copy.deepcopy(ENTITIES),
    }


def build(raw: Dict[str, List[Dict[str, Any]]]) -> Dict[str, Any]:
    return build_cache(raw["kinds"], raw["definitions"], raw["instances"], raw["entities"])


def find_instance(raw: Dict[str, List[Dict[str, Any]]], kind: str, bundle: str, name: str) -> Dict[str, Any]:
    return next(
        doc for doc in raw["instances"]
        if doc["entity_kind"] == kind and doc["bundle"] == bundle and doc["field_name"] == name
    )


@pytest.fixture
def cache(raw_data):
    return build(raw_data)


@pytest.fixture
def metadata(cache) -> MetadataProvider:
    return MetadataProvider(cache)


@pytest.fixture
def entity_store(cache) -> InMemoryEntityStore:
    return InMemoryEntityStore(cache)


@pytest.fixture
def loaded_store(cache):
    """Puts the fixture cache into the global store for the API tests."""
    store.swap_cache(cache)
    yield store
    store.swap_cache({})
    store.mark_loading()
