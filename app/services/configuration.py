# app/services/configuration.py
from typing import Dict, NamedTuple, Optional

from app.config import NO_COMMON_FIELDS_MESSAGE
from app.logging_setup import get_logger
from app.models import (
    FieldDefinition, FieldInstance, OptionLimitSettings, SettingsControl, SettingsForm,
)
from app.services.matching import discover_matching_fields
from app.services.metadata import MetadataProvider
from app.services.references import ResolvedTarget, is_reference_field, resolve_target

logger = get_logger("configuration")


class OptionLimitField(NamedTuple):
    """Everything the pipeline needs to know about one option-limited field."""
    definition: FieldDefinition
    instance: FieldInstance
    target: ResolvedTarget
    candidates: Dict[str, str]
    settings: OptionLimitSettings

    @property
    def field_name(self) -> str:
        return self.instance.field_name


def effective_settings(instance: FieldInstance, candidates: Dict[str, str]) -> OptionLimitSettings:
    """
    The stored settings as they apply today: matching fields that are no
    longer shared with the target bundles are dropped, and filtering is off
    when nothing is shared at all.
    """
    stored = instance.option_limit
    active = [name for name in stored.matching_fields if name in candidates]
    dropped = [name for name in stored.matching_fields if name not in candidates]
    if dropped:
        logger.warning(
            "Ignoring matching fields no longer shared with the target bundles",
            extra={"field": instance.field_name, "bundle": instance.bundle, "dropped": dropped},
        )
    return OptionLimitSettings(
        enabled=stored.enabled and bool(candidates),
        matching_fields=active,
        empty_behavior=stored.empty_behavior,
    )


def describe_option_limit(
    definition: FieldDefinition,
    instance: FieldInstance,
    metadata: MetadataProvider,
) -> OptionLimitField:
    target = resolve_target(definition, metadata)
    candidates = discover_matching_fields(instance, target, metadata)
    return OptionLimitField(definition, instance, target, candidates, effective_settings(instance, candidates))


def is_option_limited(definition: FieldDefinition, instance: FieldInstance, metadata: MetadataProvider) -> bool:
    if not is_reference_field(definition) or not instance.option_limit.enabled:
        return False
    return describe_option_limit(definition, instance, metadata).settings.enabled


def build_settings_form(
    definition: FieldDefinition,
    instance: FieldInstance,
    metadata: MetadataProvider,
) -> Optional[SettingsForm]:
    """
    Settings contributed to the field instance configuration form. Returns
    None for field types whose options cannot be limited.
    """
    if not is_reference_field(definition):
        return None

    described = describe_option_limit(definition, instance, metadata)
    available = bool(described.candidates)
    stored = instance.option_limit

    controls = [
        SettingsControl(
            name="enabled",
            type="checkbox",
            title="Limit the options of this field by matching field values",
            default_value=described.settings.enabled,
            disabled=not available,
        ),
        SettingsControl(
            name="matching_fields",
            type="checkboxes",
            title="Matching fields",
            default_value=described.settings.matching_fields,
            options=described.candidates,
            disabled=not available,
            description=(
                "Only entities whose values for the checked fields match the values "
                "on the entity being edited are offered. Several values of one field "
                "match any of them."
                if available else NO_COMMON_FIELDS_MESSAGE
            ),
        ),
        SettingsControl(
            name="empty_behavior",
            type="checkbox",
            title="Hide all options while a matching field is empty",
            default_value=stored.empty_behavior,
            disabled=not available,
            description="When unchecked, an empty matching field does not limit the options.",
        ),
    ]
    return SettingsForm(field_name=instance.field_name, available=available, controls=controls)


def apply_settings(
    definition: FieldDefinition,
    instance: FieldInstance,
    submitted: OptionLimitSettings,
    metadata: MetadataProvider,
) -> FieldInstance:
    """
    Validates submitted settings against the current candidates and returns
    the updated instance. Raises ValueError on unusable settings.
    """
    if not is_reference_field(definition):
        raise ValueError(f"Field '{definition.name}' is not a reference field")

    target = resolve_target(definition, metadata)
    candidates = discover_matching_fields(instance, target, metadata)
    unknown = [name for name in submitted.matching_fields if name not in candidates]
    if unknown:
        raise ValueError(f"Not matching fields for '{instance.field_name}': {', '.join(unknown)}")
    if submitted.enabled and not candidates:
        raise ValueError(NO_COMMON_FIELDS_MESSAGE)

    logger.info(
        "Option limit settings updated",
        extra={"field": instance.field_name, "bundle": instance.bundle, "enabled": submitted.enabled},
    )
    return instance.model_copy(update={"option_limit": submitted})
