"""
Tests for the in-memory entity store
"""
import pytest

from conftest import build
from app.models import Entity, QueryCondition, QueryOrdering, QueryPlan, SortDirection
from app.services.entity_store import EntityStoreError, InMemoryEntityStore


@pytest.fixture
def projects_store(raw_data):
    raw_data["entities"] += [
        {"_id": "22", "kind": "node", "bundle": "project", "properties": {"title": "Unranked project"},
         "fields": {"sport": [{"value": "Quidditch"}]}},
        {"_id": "23", "kind": "node", "bundle": "project", "properties": {"title": "Another low project"},
         "fields": {"sport": [{"value": "Football"}], "priority": [{"value": "1"}]}},
    ]
    return InMemoryEntityStore(build(raw_data))


def _plan(**kwargs):
    return QueryPlan(target_kind="node", target_bundles=["project"], **kwargs)


def test_query_filters_by_bundle(projects_store):
    ids = projects_store.query(QueryPlan(target_kind="node", target_bundles=["news"]))

    assert ids == ["10", "11"]


def test_condition_matches_any_stored_value(projects_store):
    plan = _plan(conditions=[QueryCondition(field_name="sport", column="value", values=["Football"])])

    assert projects_store.query(plan) == ["23"]


def test_numbers_match_as_strings(projects_store):
    plan = _plan(conditions=[QueryCondition(field_name="priority", column="value", values=["1"])])

    assert projects_store.query(plan) == ["20", "23"]


def test_descending_sort_keeps_ties_in_id_order_and_missing_values_last(projects_store):
    plan = _plan(ordering=QueryOrdering(source="field", key="priority", column="value", direction=SortDirection.DESC))

    assert projects_store.query(plan) == ["21", "20", "23", "22"]


def test_ascending_property_sort(projects_store):
    plan = _plan(ordering=QueryOrdering(source="property", key="title"))

    assert projects_store.query(plan) == ["23", "21", "20", "22"]


def test_load_keeps_requested_order(projects_store):
    loaded = projects_store.load("node", ["21", "20"])

    assert [e.id for e in loaded] == ["21", "20"]


def test_load_of_missing_entity_fails(projects_store):
    with pytest.raises(EntityStoreError):
        projects_store.load("node", ["404"])


def test_store_not_ready_fails(cache):
    not_ready = InMemoryEntityStore(cache, ready=False)

    with pytest.raises(EntityStoreError):
        not_ready.query(_plan())
    with pytest.raises(EntityStoreError):
        not_ready.get("node", "10")


def test_label_uses_kind_label_property(entity_store):
    term = entity_store.get("taxonomy_term", "1")

    assert entity_store.label_of("taxonomy_term", term) == "Chudley Cannons"


def test_label_falls_back_to_entity_label_then_properties(entity_store):
    assert entity_store.label_of("file", Entity(kind="file", bundle="file", id="9", label="report.pdf")) == "report.pdf"
    assert entity_store.label_of("file", Entity(kind="file", bundle="file", id="9", properties={"name": "x.pdf"})) == "x.pdf"
    assert entity_store.label_of("file", Entity(kind="file", bundle="file", id="9")) == "Unknown"


def test_only_plain_numbers_sort_as_numbers(raw_data):
    raw_data["entities"] += [
        {"_id": str(40 + i), "kind": "user", "bundle": "user", "properties": {"name": name}}
        for i, name in enumerate(["Alice", "Nan", "Infinity", "Bob", "7"])
    ]
    store = InMemoryEntityStore(build(raw_data))
    plan = QueryPlan(target_kind="user", target_bundles=["user"], ordering=QueryOrdering(source="property", key="name"))

    names = [store.get("user", i).properties["name"] for i in store.query(plan)]

    assert names == ["7", "Alice", "Bob", "Infinity", "Nan"]


def test_boolean_values_match_stored_ones(raw_data):
    raw_data["entities"] += [
        {"_id": "50", "kind": "user", "bundle": "user", "fields": {"active": [{"value": True}]}},
        {"_id": "51", "kind": "user", "bundle": "user", "fields": {"active": [{"value": 0}]}},
        {"_id": "52", "kind": "user", "bundle": "user", "fields": {"active": [{"value": 1}]}},
    ]
    store = InMemoryEntityStore(build(raw_data))
    plan = QueryPlan(
        target_kind="user", target_bundles=["user"],
        conditions=[QueryCondition(field_name="active", column="value", values=["1"])],
    )

    assert store.query(plan) == ["50", "52"]
