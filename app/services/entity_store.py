# app/services/entity_store.py
import math
import re
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from app.logging_setup import get_logger
from app.models import Entity, QueryCondition, QueryOrdering, QueryPlan, SortDirection
from app.services.common import extract_label

logger = get_logger("entity_store")

QueryListener = Callable[[QueryPlan], None]

# "12", "-3", "4.50"; not "nan", "inf" or "1e3".
DECIMAL_RE = re.compile(r"^\s*-?\d+(\.\d+)?\s*$")


class EntityStoreError(RuntimeError):
    """The entity store could not answer a query or load."""


def _sort_key(value: Any) -> Tuple[int, Any]:
    """Numbers (and plain decimal strings) sort numerically, before any text."""
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)) and math.isfinite(value):
        return (0, value)
    if isinstance(value, str) and DECIMAL_RE.match(value):
        return (0, float(value))
    return (1, str(value).lower())


def _match_string(value: Any) -> str:
    # Booleans compare like the 1/0 their fields store.
    if isinstance(value, bool):
        return str(int(value))
    return str(value)


def _field_values(entity: Entity, field_name: str, column: str) -> List[str]:
    return [_match_string(item[column]) for item in entity.fields.get(field_name, []) if item.get(column) is not None]


def _matches(entity: Entity, condition: QueryCondition) -> bool:
    # OR within a condition: any stored value in the accepted set.
    accepted = set(condition.values)
    return any(value in accepted for value in _field_values(entity, condition.field_name, condition.column))


def _ordering_value(entity: Entity, ordering: QueryOrdering) -> Any:
    if ordering.source == "property":
        if ordering.key == "id":
            return entity.id
        if ordering.key == "label":
            return entity.label
        return entity.properties.get(ordering.key)
    items = entity.fields.get(ordering.key, [])
    return items[0].get(ordering.column or "value") if items else None


class InMemoryEntityStore:
    """
    Read-only entity store over the "entities" and "entity_kinds" caches.

    Queries are bundle-scoped, AND across conditions and OR within one,
    comparing values as strings. Ordering is stable with the entity id as
    tie-break; entities without a value for the sort key come last.
    """

    def __init__(self, cache: Dict[str, Any], ready: bool = True):
        self._entities: Dict[str, Dict[str, Entity]] = cache.get("entities", {})
        self._kinds = cache.get("entity_kinds", {})
        self._ready = ready
        self._listeners: Dict[str, List[QueryListener]] = defaultdict(list)

    def add_query_listener(self, tag: str, callback: QueryListener) -> None:
        """Calls `callback` with every plan tagged `tag`, before it runs."""
        self._listeners[tag].append(callback)

    def _check_ready(self) -> None:
        if not self._ready:
            raise EntityStoreError("Entity data is still being loaded")

    def query(self, plan: QueryPlan) -> List[str]:
        """Returns the ids of the entities matching `plan`, in plan order."""
        self._check_ready()
        for tag in plan.tags:
            for listener in self._listeners.get(tag, []):
                listener(plan)

        bundles = set(plan.target_bundles)
        candidates = [
            e for e in self._entities.get(plan.target_kind, {}).values()
            if e.bundle in bundles and all(_matches(e, c) for c in plan.conditions)
        ]
        candidates.sort(key=lambda e: _sort_key(e.id))
        if plan.ordering is not None:
            candidates = self._order(candidates, plan.ordering)

        logger.debug(
            "Entity query executed",
            extra={"kind": plan.target_kind, "tags": plan.tags, "results": len(candidates)},
        )
        return [e.id for e in candidates]

    @staticmethod
    def _order(entities: List[Entity], ordering: QueryOrdering) -> List[Entity]:
        with_value = [e for e in entities if _ordering_value(e, ordering) is not None]
        without_value = [e for e in entities if _ordering_value(e, ordering) is None]
        # reverse=True keeps ties in their incoming (id) order.
        with_value.sort(
            key=lambda e: _sort_key(_ordering_value(e, ordering)),
            reverse=ordering.direction == SortDirection.DESC,
        )
        return with_value + without_value

    def load(self, kind: str, ids: Iterable[str]) -> List[Entity]:
        """Loads entities in the order of `ids`."""
        self._check_ready()
        by_id = self._entities.get(kind, {})
        loaded = []
        for entity_id in ids:
            entity = by_id.get(entity_id)
            if entity is None:
                raise EntityStoreError(f"{kind} '{entity_id}' disappeared between query and load")
            loaded.append(entity)
        return loaded

    def get(self, kind: str, entity_id: str) -> Optional[Entity]:
        self._check_ready()
        return self._entities.get(kind, {}).get(entity_id)

    def label_of(self, kind: str, entity: Entity) -> str:
        info = self._kinds.get(kind)
        if info is not None and info.label_property:
            value = entity.properties.get(info.label_property)
            if value:
                return str(value)
        if entity.label:
            return entity.label
        return extract_label(entity.properties)
