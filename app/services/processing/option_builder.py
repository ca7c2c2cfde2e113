from typing import Callable, Dict, List

from app.config import NONE_OPTION_KEY, NONE_OPTION_LABELS, NO_OPTIONS_MESSAGE, OPTGROUP_WIDGETS
from app.models import Entity, OptionList, OptionValue, WidgetShape, WidgetType
from app.services.common import join_labels
from app.services.configuration import OptionLimitField
from app.services.entity_store import InMemoryEntityStore
from app.services.metadata import MetadataProvider
from app.services.references import get_handler


def widget_shape(field: OptionLimitField, has_value: bool) -> WidgetShape:
    """
    What the widget needs from the option list, following the options
    widgets: select lists offer "- None -" when optional and "- Select a
    value -" when a required single value is still unset; radios offer
    "N/A" when optional; checkboxes never offer a "none" choice.
    """
    instance = field.instance
    multiple = field.definition.multiple
    empty_option = None

    if instance.widget == WidgetType.SELECT:
        if not instance.required:
            empty_option = "option_none"
        elif not multiple and not has_value:
            empty_option = "option_select"
    elif instance.widget == WidgetType.BUTTONS:
        if not multiple and not instance.required:
            empty_option = "option_na"

    return WidgetShape(
        multiple=multiple,
        optgroups=instance.widget.value in OPTGROUP_WIDGETS,
        empty_option=empty_option,
    )


def flatten_options(options: Dict[str, OptionValue]) -> Dict[str, str]:
    flat: Dict[str, str] = {}
    for key, value in options.items():
        if isinstance(value, dict):
            flat.update(value)
        else:
            flat[key] = value
    return flat


def build_option_list(
    entities: List[Entity],
    field: OptionLimitField,
    shape: WidgetShape,
    metadata: MetadataProvider,
    entity_store: InMemoryEntityStore,
    translate: Callable[[str], str] = str,
) -> OptionList:
    labels = {e.id: entity_store.label_of(e.kind, e) for e in entities}
    options = get_handler(field.definition.type).label_options(entities, labels, metadata)
    if not shape.optgroups:
        options = flatten_options(options)

    if not options:
        instance = field.instance
        owning = metadata.get_field_instances(instance.entity_kind, instance.bundle)
        matching = field.settings.matching_fields
        field_labels = [owning[name].display_label if name in owning else name for name in matching]
        message = NO_OPTIONS_MESSAGE.format(
            field=instance.display_label,
            matching_fields=join_labels(field_labels),
        )
        return OptionList(
            options=_with_none(options, shape, translate),
            is_empty=True,
            message=translate(message),
            advisory_fields=list(matching),
        )

    return OptionList(options=_with_none(options, shape, translate))


def _with_none(options: Dict[str, OptionValue], shape: WidgetShape, translate: Callable[[str], str]) -> Dict[str, OptionValue]:
    if shape.empty_option is None:
        return options
    return {NONE_OPTION_KEY: translate(NONE_OPTION_LABELS[shape.empty_option]), **options}
