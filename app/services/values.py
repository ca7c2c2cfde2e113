# app/services/values.py
import copy
from typing import Any, Dict, List, Optional

from app.config import EMPTY_SUBMITTED_VALUES
from app.logging_setup import get_logger
from app.models import Entity, FieldDefinition
from app.services.common import unique_strings
from app.services.entity_store import InMemoryEntityStore
from app.services.metadata import MetadataProvider
from app.services.references import get_handler

logger = get_logger("values")


def default_entity(kind: str, bundle: str, metadata: MetadataProvider) -> Entity:
    """
    A fresh, unsaved entity holding each field's instance-level default.
    Widget defaults are not consulted.
    """
    fields = {
        name: copy.deepcopy(instance.default_value)
        for name, instance in metadata.get_field_instances(kind, bundle).items()
        if instance.default_value
    }
    return Entity(kind=kind, bundle=bundle, fields=fields)


def build_entity(
    kind: str,
    bundle: str,
    entity_id: Optional[str],
    submitted: Optional[Dict[str, Any]],
    metadata: MetadataProvider,
    entity_store: InMemoryEntityStore,
) -> Entity:
    """
    Materializes the entity whose values drive the option lists.

    - saved entity, nothing submitted: the stored entity;
    - values submitted: the stored (or fresh) entity with each submitted
      field replaced by the items its field type extracts, as on save;
    - new entity, nothing submitted: field defaults.

    Raises KeyError when `entity_id` names no entity of this bundle.
    """
    base = None
    if entity_id is not None:
        base = entity_store.get(kind, entity_id)
        if base is None or base.bundle != bundle:
            raise KeyError(f"{kind.replace('_', ' ').title()} with ID '{entity_id}' not found in bundle '{bundle}'")

    if submitted is None:
        return base if base is not None else default_entity(kind, bundle, metadata)

    entity = base.model_copy(deep=True) if base is not None else default_entity(kind, bundle, metadata)
    instances = metadata.get_field_instances(kind, bundle)
    for name, raw in submitted.items():
        if name not in instances:
            continue
        definition = metadata.get_field_definition(kind, name)
        entity.fields[name] = get_handler(definition.type).extract_items(raw, definition)
    return entity


def extract_match_values(entity: Entity, definition: FieldDefinition) -> List[str]:
    """
    Values of the field's primary match column, one per item, in item order.
    Only the first match column is used; composite matching is not supported.
    """
    handler = get_handler(definition.type)
    column = handler.primary_column(definition)
    values = [
        handler.normalize_value(item.get(column)) for item in entity.fields.get(definition.name, [])
        if item.get(column) not in EMPTY_SUBMITTED_VALUES
    ]
    return unique_strings(values)


def collect_match_values(
    entity: Entity,
    matching_fields: List[str],
    metadata: MetadataProvider,
) -> Dict[str, List[str]]:
    """Runs extract_match_values for each matching field that still exists."""
    collected = {}
    for name in matching_fields:
        definition = metadata.find_field_definition(name)
        if definition is None:
            logger.warning("Matching field has no definition", extra={"field": name})
            continue
        collected[name] = extract_match_values(entity, definition)
    return collected
