# app/services/forms.py
"""
Form hooks. A RequestContext is created per request and passed to every
hook; nothing is kept between requests.

Full form build:   entity_form_alter() -> form_build_response()
Partial update:    entity_form_alter() (routes first) -> ajax_response()
"""
from typing import Any, Callable, Dict, List, Optional

from app.config import STORE_FAILURE_MESSAGE
from app.logging_setup import get_logger
from app.models import (
    Entity, FieldDefinition, FieldFragment, FieldInstance, FormBuildResponse, FormElement,
    PartialUpdateResponse, RouteResult, RouteState, StatusMessage,
)
from app.services.configuration import OptionLimitField, describe_option_limit
from app.services.entity_store import EntityStoreError, InMemoryEntityStore
from app.services.metadata import MetadataProvider
from app.services.processing.option_builder import build_option_list, widget_shape
from app.services.processing.partial_update import build_form_tree, locate_path, route_partial_update
from app.services.processing.query_planner import build_query_plan, execute_plan
from app.services.references import is_reference_field
from app.services.values import build_entity, collect_match_values

logger = get_logger("forms")


class RequestContext:
    """State shared by the hooks of a single form request."""

    def __init__(
        self,
        metadata: MetadataProvider,
        entity_store: InMemoryEntityStore,
        submitted: Optional[Dict[str, Any]] = None,
        triggering_element: Optional[List[str]] = None,
        translate: Callable[[str], str] = str,
    ):
        self.metadata = metadata
        self.entity_store = entity_store
        self.submitted = submitted
        self.triggering_element = triggering_element
        self.translate = translate
        self.option_limited: Dict[str, OptionLimitField] = {}
        self.fragments: Dict[str, FieldFragment] = {}
        self.messages: List[StatusMessage] = []
        self.route = RouteResult(state=RouteState.IDLE)
        self.entity: Optional[Entity] = None
        self.form: Optional[FormElement] = None

    @property
    def is_partial_update(self) -> bool:
        return bool(self.triggering_element)

    def add_message(self, message: str, type: str = "status") -> None:
        self.messages.append(StatusMessage(type=type, message=message))

    def pending_messages(self) -> List[StatusMessage]:
        messages, self.messages = self.messages, []
        return messages


def field_widget_form(context: RequestContext, definition: FieldDefinition, instance: FieldInstance) -> Optional[OptionLimitField]:
    """
    Widget hook. Inert unless the instance limits its options; otherwise
    records the field so the form hook can fill in its options once every
    sibling field is known.
    """
    if not instance.option_limit.enabled or not is_reference_field(definition):
        return None
    described = describe_option_limit(definition, instance, context.metadata)
    if not described.settings.enabled:
        logger.info("Option limit enabled but no matching fields are shared", extra={"field": instance.field_name})
        return None
    context.option_limited[instance.field_name] = described
    return described


def compute_field_options(context: RequestContext, entity: Entity, field: OptionLimitField) -> FieldFragment:
    """Runs value extraction, query and option building for one field."""
    match_values = collect_match_values(entity, field.settings.matching_fields, context.metadata)
    plan = build_query_plan(field, match_values, context.metadata)
    _, targets = execute_plan(plan, context.entity_store)

    shape = widget_shape(field, has_value=bool(entity.fields.get(field.field_name)))
    options = build_option_list(targets, field, shape, context.metadata, context.entity_store, context.translate)
    if options.is_empty:
        context.add_message(options.message, "warning")
    return FieldFragment(field_name=field.field_name, path=[field.field_name], options=options, widget=shape)


def entity_form_alter(context: RequestContext, kind: str, bundle: str, entity_id: Optional[str] = None) -> Dict[str, FieldFragment]:
    """
    Entity form hook. Computes the options of every option-limited field,
    or, on a partial update, of the one field the changed element feeds.
    A store failure only fails the field being computed.
    """
    metadata = context.metadata
    entity = build_entity(kind, bundle, entity_id, context.submitted, metadata, context.entity_store)
    context.entity = entity

    for name, instance in metadata.get_field_instances(kind, bundle).items():
        field_widget_form(context, metadata.get_field_definition(kind, name), instance)
    context.form = build_form_tree(entity, metadata)

    fields = list(context.option_limited.values())
    if context.is_partial_update:
        context.route = route_partial_update(context.form, context.triggering_element, fields)
        if context.route.state != RouteState.RESOLVED:
            logger.debug("Partial update ignored", extra={"path": context.triggering_element})
            return context.fragments
        fields = [context.option_limited[context.route.field_name]]

    for field in fields:
        try:
            context.fragments[field.field_name] = compute_field_options(context, entity, field)
        except EntityStoreError as e:
            logger.error(
                "Option computation failed",
                extra={"field": field.field_name, "bundle": bundle, "error": str(e)},
                exc_info=True,
            )
            context.add_message(context.translate(STORE_FAILURE_MESSAGE.format(field=field.instance.display_label)), "error")
            context.fragments[field.field_name] = FieldFragment(
                field_name=field.field_name, path=[field.field_name], error=str(e),
            )
    return context.fragments


def form_build_response(context: RequestContext) -> FormBuildResponse:
    return FormBuildResponse(fields=context.fragments, messages=context.pending_messages())


def ajax_response(context: RequestContext) -> PartialUpdateResponse:
    """
    Partial update response: the recomputed field at the routed path plus any
    messages raised while computing it.
    """
    route = context.route
    fragment = None
    if route.state == RouteState.RESOLVED and locate_path(context.form, [route.field_name]):
        fragment = context.fragments.get(route.field_name)
    return PartialUpdateResponse(
        state=route.state,
        field_name=route.field_name,
        fragment=fragment,
        messages=context.pending_messages(),
    )
