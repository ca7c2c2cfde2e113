# app/services/matching.py
from typing import Dict

from app.models import FieldInstance
from app.services.metadata import MetadataProvider
from app.services.references import ResolvedTarget


def discover_matching_fields(
    instance: FieldInstance,
    target: ResolvedTarget,
    metadata: MetadataProvider,
) -> Dict[str, str]:
    """
    Returns the fields that can filter the options of `instance`, as
    {field_name: "Label (field_name)"} in the owning bundle's field order.

    A field qualifies when it is attached to the owning bundle and to at
    least one of the target bundles. The option-limited field itself never
    qualifies. An empty result means filtering is unavailable.
    """
    if not target.available:
        return {}

    target_instances = metadata.get_field_instances(target.kind)
    target_field_names = set()
    for bundle in target.bundles:
        target_field_names.update(target_instances.get(bundle, {}).keys())

    candidates = {}
    owning = metadata.get_field_instances(instance.entity_kind, instance.bundle)
    for name, owning_instance in owning.items():
        if name == instance.field_name or name not in target_field_names:
            continue
        candidates[name] = f"{owning_instance.display_label} ({name})"
    return candidates
