from typing import Iterable, List, Optional

from app.config import FORM_LANGUAGE_KEY
from app.logging_setup import get_logger
from app.models import CARDINALITY_UNLIMITED, Entity, FormElement, RouteResult, RouteState
from app.services.configuration import OptionLimitField
from app.services.metadata import MetadataProvider
from app.services.references import get_handler

logger = get_logger("partial_update")


def build_form_tree(entity: Entity, metadata: MetadataProvider) -> FormElement:
    """
    The element tree of an entity form: one container per field holding a
    language element, its deltas and their columns, plus the non-field
    "title" and "actions" elements.

        form
        ├── title
        ├── field_sport            (field container)
        │   └── und
        │       └── 0
        │           └── value
        └── actions
            └── submit
    """
    children = [FormElement(key="title")]
    for name, instance in metadata.get_field_instances(entity.kind, entity.bundle).items():
        definition = metadata.get_field_definition(entity.kind, name)
        columns = get_handler(definition.type).columns
        items = entity.fields.get(name, [])
        if definition.cardinality == CARDINALITY_UNLIMITED:
            deltas = len(items) + 1
        else:
            deltas = definition.cardinality
        language = FormElement(
            key=FORM_LANGUAGE_KEY,
            children=[
                FormElement(key=str(delta), children=[FormElement(key=column) for column in columns])
                for delta in range(deltas)
            ],
        )
        children.append(FormElement(key=name, field_name=name, children=[language]))
    children.append(FormElement(key="actions", children=[FormElement(key="submit")]))
    return FormElement(key="form", children=children)


def locate_path(form: FormElement, path: List[str]) -> List[FormElement]:
    """The elements along `path` below the root, as far as the tree goes."""
    nodes = []
    node = form
    for key in path:
        node = node.child(key)
        if node is None:
            break
        nodes.append(node)
    return nodes


def find_enclosing_field(form: FormElement, path: List[str]) -> Optional[str]:
    """Nearest field container at or above the element at `path`."""
    for node in reversed(locate_path(form, path)):
        if node.field_name:
            return node.field_name
    return None


def route_partial_update(
    form: FormElement,
    triggering_path: Optional[List[str]],
    option_limited: Iterable[OptionLimitField],
) -> RouteResult:
    """
    Decides which option-limited field a change event recomputes.

    Only the first option-limited field using the changed field as a matcher
    is recomputed; updating several fields from one event is not supported.
    """
    if not triggering_path:
        return RouteResult(state=RouteState.IDLE)

    source = find_enclosing_field(form, triggering_path)
    if source is None:
        return RouteResult(state=RouteState.IGNORED)

    targets = [f.field_name for f in option_limited if source in f.settings.matching_fields]
    if not targets:
        return RouteResult(state=RouteState.IGNORED, source_field=source)
    if len(targets) > 1:
        logger.info(
            "Changed field matches several option-limited fields, updating the first only",
            extra={"source_field": source, "fields": targets},
        )
    return RouteResult(state=RouteState.RESOLVED, field_name=targets[0], source_field=source)
