from typing import Dict, List, Tuple

from app.config import NO_MATCH_SENTINEL, OPTION_LIMIT_QUERY_TAG
from app.logging_setup import get_logger
from app.models import Entity, QueryCondition, QueryPlan
from app.services.configuration import OptionLimitField
from app.services.entity_store import InMemoryEntityStore
from app.services.metadata import MetadataProvider
from app.services.references import get_handler

logger = get_logger("query_planner")


def build_query_plan(
    field: OptionLimitField,
    match_values: Dict[str, List[str]],
    metadata: MetadataProvider,
) -> QueryPlan:
    """
    Builds the candidate query for one option-limited field.

    Each matching field adds an IN condition on its primary column, so any
    one of several values matches. A matching field without values either
    blocks every candidate (empty_behavior) or adds no condition.
    """
    settings = field.settings
    conditions = []
    for name in settings.matching_fields:
        if name not in field.candidates:
            continue
        definition = metadata.find_field_definition(name)
        if definition is None:
            continue
        column = get_handler(definition.type).primary_column(definition)
        values = match_values.get(name, [])
        if values:
            conditions.append(QueryCondition(field_name=name, column=column, values=values))
        elif settings.empty_behavior:
            conditions.append(QueryCondition(field_name=name, column=column, values=[NO_MATCH_SENTINEL]))

    plan = QueryPlan(
        target_kind=field.target.kind,
        target_bundles=list(field.target.bundles),
        conditions=conditions,
        ordering=get_handler(field.definition.type).ordering(field.definition),
        tags=[OPTION_LIMIT_QUERY_TAG, f"{OPTION_LIMIT_QUERY_TAG}_{field.field_name}"],
    )
    logger.debug("Option query planned", extra={"field": field.field_name, "plan": plan.model_dump()})
    return plan


def execute_plan(plan: QueryPlan, entity_store: InMemoryEntityStore) -> Tuple[List[str], List[Entity]]:
    """Runs the plan and loads the matching entities in result order."""
    ids = entity_store.query(plan)
    return ids, entity_store.load(plan.target_kind, ids)
