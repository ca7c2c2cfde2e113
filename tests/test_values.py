"""
Tests for building the entity the pipeline reads and extracting match values
"""
import pytest

from app.models import Entity, FieldDefinition, FieldType
from app.services.values import build_entity, collect_match_values, default_entity, extract_match_values


def _sport_values(entity, metadata):
    return extract_match_values(entity, metadata.get_field_definition("node", "sport"))


def test_persisted_entity_uses_stored_values(metadata, entity_store):
    entity = build_entity("node", "news", "10", None, metadata, entity_store)

    assert entity.id == "10"
    assert _sport_values(entity, metadata) == ["Quidditch"]


def test_new_entity_uses_field_defaults(metadata, entity_store):
    entity = build_entity("node", "news", None, None, metadata, entity_store)

    assert entity.is_new
    assert _sport_values(entity, metadata) == ["Football"]


def test_submission_overrides_stored_values(metadata, entity_store):
    entity = build_entity("node", "news", "10", {"sport": ["Football", "Quidditch"]}, metadata, entity_store)

    assert _sport_values(entity, metadata) == ["Football", "Quidditch"]
    # The stored entity is left alone.
    assert _sport_values(entity_store.get("node", "10"), metadata) == ["Quidditch"]


def test_submission_on_new_entity_keeps_defaults_of_unsubmitted_fields(metadata, entity_store):
    entity = build_entity("node", "news", None, {"league": "La Liga"}, metadata, entity_store)

    assert _sport_values(entity, metadata) == ["Football"]
    assert entity.fields["league"] == [{"value": "La Liga"}]


def test_emptied_field_in_submission_has_no_values(metadata, entity_store):
    entity = build_entity("node", "news", "10", {"sport": "_none"}, metadata, entity_store)

    assert _sport_values(entity, metadata) == []


def test_submitted_keys_that_are_not_fields_are_ignored(metadata, entity_store):
    entity = build_entity("node", "news", "10", {"title": "Renamed", "op": "Save"}, metadata, entity_store)

    assert "title" not in entity.fields
    assert entity.properties["title"] == "Cannons win again"


def test_unknown_entity_raises_key_error(metadata, entity_store):
    with pytest.raises(KeyError):
        build_entity("node", "news", "999", None, metadata, entity_store)


def test_entity_of_other_bundle_raises_key_error(metadata, entity_store):
    with pytest.raises(KeyError):
        build_entity("node", "report", "10", None, metadata, entity_store)


def test_match_values_are_unique_and_ordered(metadata):
    entity = default_entity("node", "news", metadata)
    entity.fields["sport"] = [{"value": "Quidditch"}, {"value": "Football"}, {"value": "Quidditch"}, {"value": ""}]

    assert _sport_values(entity, metadata) == ["Quidditch", "Football"]


def test_taxonomy_match_values_use_tid(metadata, entity_store):
    entity = entity_store.get("node", "10")

    assert extract_match_values(entity, metadata.get_field_definition("node", "team")) == ["1"]


def test_collect_skips_fields_without_definition(metadata, entity_store):
    entity = entity_store.get("node", "10")

    assert collect_match_values(entity, ["sport", "retired"], metadata) == {"sport": ["Quidditch"]}


def test_submission_shaped_like_the_form_tree(metadata, entity_store):
    submitted = {"sport": {"und": {"1": {"value": "Quidditch"}, "0": {"value": "Football"}}}}

    entity = build_entity("node", "news", "10", submitted, metadata, entity_store)

    assert _sport_values(entity, metadata) == ["Football", "Quidditch"]


def test_emptied_language_level_has_no_values(metadata, entity_store):
    entity = build_entity("node", "news", "10", {"sport": {"und": {"0": {"value": "_none"}}}}, metadata, entity_store)

    assert _sport_values(entity, metadata) == []


def test_boolean_match_values_are_one_or_zero():
    definition = FieldDefinition(name="featured", type=FieldType.BOOLEAN)
    entity = Entity(kind="node", bundle="news", fields={"featured": [{"value": True}, {"value": "1"}, {"value": False}]})

    assert extract_match_values(entity, definition) == ["1", "0"]
