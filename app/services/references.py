# app/services/references.py
"""
Field type handlers and the reference descriptor resolver.

Each field type gets one handler. Reference handlers also know how to
resolve their target, order candidate targets and label them as options.
New types are added with register_field_type() instead of branching on the
type string.
"""
import re
from typing import Any, Dict, List, NamedTuple, Optional

from app.config import EMPTY_SUBMITTED_VALUES, FORM_LANGUAGE_KEY, TAXONOMY_TERM_KIND
from app.logging_setup import get_logger
from app.models import (
    Entity, FieldDefinition, FieldType, OptionValue, QueryOrdering, SortDirection, SortType,
)
from app.services.metadata import MetadataProvider

logger = get_logger("references")

# "Chudley Cannons (12)" as submitted by an autocomplete widget.
AUTOCOMPLETE_ID_RE = re.compile(r'\((\w+)\)\s*$')


class ResolvedTarget(NamedTuple):
    kind: Optional[str]
    bundles: List[str]

    @property
    def available(self) -> bool:
        return bool(self.kind) and bool(self.bundles)


NO_TARGET = ResolvedTarget(None, [])


def type_key(field_type: Any) -> str:
    """Registry key of a field type, given a FieldType member or a plain string."""
    return field_type.value if isinstance(field_type, FieldType) else str(field_type)


def _as_item_list(raw: Any) -> List[Any]:
    """Normalizes a raw submitted field value into a list of per-delta values."""
    if raw is None:
        return []
    # Submissions shaped like the form tree: {"und": {"0": {...}}}
    if isinstance(raw, dict) and list(raw) == [FORM_LANGUAGE_KEY]:
        raw = raw[FORM_LANGUAGE_KEY]
        if raw is None:
            return []
    if isinstance(raw, (list, tuple)):
        return list(raw)
    if isinstance(raw, dict):
        # Delta-keyed submissions: {"0": {...}, "1": {...}}
        if raw and all(str(k).isdigit() for k in raw):
            return [raw[k] for k in sorted(raw, key=int)]
        return [raw]
    return [raw]


class FieldTypeHandler:
    """Handler for a plain (non-reference) field type."""

    is_reference = False

    def __init__(self, field_type: str, columns: List[str]):
        self.field_type = type_key(field_type)
        self.columns = columns

    def match_columns(self, definition: FieldDefinition) -> List[str]:
        """Columns usable for matching. Only the first one is matched on."""
        return list(self.columns)

    def primary_column(self, definition: FieldDefinition) -> str:
        return self.match_columns(definition)[0]

    def normalize_value(self, value: Any) -> Any:
        return value

    def extract_items(self, raw: Any, definition: FieldDefinition) -> List[Dict[str, Any]]:
        """
        Turns raw submitted values into stored-shape items, dropping empty
        deltas the way the field would on save.
        """
        primary = self.primary_column(definition)
        items = []
        for value in _as_item_list(raw):
            if isinstance(value, dict):
                item = {k: v for k, v in value.items() if k in self.columns}
            else:
                item = {primary: value}
            if item.get(primary) in EMPTY_SUBMITTED_VALUES:
                continue
            item[primary] = self.normalize_value(item[primary])
            items.append(item)
        return items

    def resolve_target(self, definition: FieldDefinition, metadata: MetadataProvider) -> ResolvedTarget:
        return NO_TARGET

    def ordering(self, definition: FieldDefinition) -> Optional[QueryOrdering]:
        return None

    def label_options(self, entities: List[Entity], labels: Dict[str, str], metadata: MetadataProvider) -> Dict[str, OptionValue]:
        return {e.id: labels[e.id] for e in entities}


class TaxonomyTermReferenceHandler(FieldTypeHandler):
    is_reference = True

    def __init__(self):
        super().__init__(FieldType.TAXONOMY_TERM_REFERENCE, ["tid"])

    def normalize_value(self, value: Any) -> Any:
        return str(value)

    def resolve_target(self, definition, metadata):
        vocabulary = definition.settings.vocabulary
        if not vocabulary:
            return ResolvedTarget(TAXONOMY_TERM_KIND, [])
        return ResolvedTarget(TAXONOMY_TERM_KIND, [vocabulary])

    def ordering(self, definition):
        # Terms always list in their configured weight order.
        return QueryOrdering(source="property", key="weight", direction=SortDirection.ASC)

    def label_options(self, entities, labels, metadata):
        # Child terms are indented one dash per level.
        return {
            e.id: "-" * int(e.properties.get("depth", 0) or 0) + labels[e.id]
            for e in entities
        }


class EntityReferenceHandler(FieldTypeHandler):
    is_reference = True

    def __init__(self):
        super().__init__(FieldType.ENTITY_REFERENCE, ["target_id"])

    def match_columns(self, definition):
        # Live submissions only ever carry the target id.
        return ["target_id"]

    def normalize_value(self, value: Any) -> Any:
        if isinstance(value, str):
            match = AUTOCOMPLETE_ID_RE.search(value)
            if match:
                return match.group(1)
        return str(value)

    def resolve_target(self, definition, metadata):
        target_kind = definition.settings.target_type
        if not target_kind:
            return NO_TARGET
        if definition.settings.target_bundles:
            return ResolvedTarget(target_kind, list(definition.settings.target_bundles))

        info = metadata.find_entity_kind_info(target_kind)
        if info is None or not info.fieldable:
            logger.debug("Target kind is not fieldable", extra={"field": definition.name, "target_kind": target_kind})
            return ResolvedTarget(target_kind, [])
        if len(info.bundles) == 1:
            return ResolvedTarget(target_kind, list(info.bundles))
        return ResolvedTarget(target_kind, [])

    def ordering(self, definition):
        sort = definition.settings.sort
        if sort.type == SortType.PROPERTY and sort.property:
            return QueryOrdering(source="property", key=sort.property, direction=sort.direction)
        if sort.type == SortType.FIELD and sort.field:
            field_name, _, column = sort.field.partition(":")
            return QueryOrdering(source="field", key=field_name, column=column or "value", direction=sort.direction)
        return None

    def label_options(self, entities, labels, metadata):
        # Grouped by target bundle; a single group is returned flat.
        groups: Dict[str, Dict[str, str]] = {}
        for e in entities:
            groups.setdefault(e.bundle, {})[e.id] = labels[e.id]
        if len(groups) <= 1:
            return next(iter(groups.values()), {})

        info = metadata.find_entity_kind_info(entities[0].kind)
        options: Dict[str, OptionValue] = {}
        for bundle, group in groups.items():
            options[info.bundle_label(bundle) if info else bundle] = group
        return options


class BooleanHandler(FieldTypeHandler):
    """On/off fields store 1 and 0, whatever the widget submitted."""

    TRUE_STRINGS = ("1", "true", "on", "yes")

    def __init__(self):
        super().__init__(FieldType.BOOLEAN, ["value"])

    def normalize_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return 1 if value.strip().lower() in self.TRUE_STRINGS else 0
        return 1 if value else 0


# Keyed by the field type string, so types outside FieldType can be registered.
FIELD_TYPE_HANDLERS: Dict[str, FieldTypeHandler] = {
    handler.field_type: handler
    for handler in (
        TaxonomyTermReferenceHandler(),
        EntityReferenceHandler(),
        FieldTypeHandler(FieldType.TEXT, ["value", "format"]),
        FieldTypeHandler(FieldType.LIST_TEXT, ["value"]),
        FieldTypeHandler(FieldType.LIST_INTEGER, ["value"]),
        FieldTypeHandler(FieldType.NUMBER_INTEGER, ["value"]),
        FieldTypeHandler(FieldType.NUMBER_DECIMAL, ["value"]),
        BooleanHandler(),
    )
}


def register_field_type(handler: FieldTypeHandler) -> None:
    """Registers (or replaces) the handler for handler.field_type."""
    FIELD_TYPE_HANDLERS[handler.field_type] = handler
    logger.info(f"Registered field type handler: {handler.field_type}")


def find_handler(field_type: Any) -> Optional[FieldTypeHandler]:
    return FIELD_TYPE_HANDLERS.get(type_key(field_type))


def get_handler(field_type: Any) -> FieldTypeHandler:
    handler = find_handler(field_type)
    if handler is None:
        raise KeyError(f"No handler registered for field type '{type_key(field_type)}'")
    return handler


def is_reference_field(definition: FieldDefinition) -> bool:
    handler = find_handler(definition.type)
    return handler is not None and handler.is_reference


def resolve_target(definition: FieldDefinition, metadata: MetadataProvider) -> ResolvedTarget:
    """
    Returns the entity kind and bundles a reference field may point to.
    An empty bundle list means the options of this field cannot be limited.
    """
    handler = find_handler(definition.type)
    if handler is None:
        return NO_TARGET
    return handler.resolve_target(definition, metadata)
