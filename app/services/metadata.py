# app/services/metadata.py
from typing import Dict, Any, Optional

from app.models import EntityKindInfo, FieldDefinition, FieldInstance


class MetadataProvider:
    """
    Read access to entity kinds, field definitions and field instances held
    in a store cache (see app.store.Store for the layout).

    Unknown kinds and fields raise KeyError, as the details lookup in the
    search service does; callers that want a soft miss use the
    find_* variants.
    """

    def __init__(self, cache: Dict[str, Any]):
        self._kinds: Dict[str, EntityKindInfo] = cache.get("entity_kinds", {})
        self._definitions: Dict[str, FieldDefinition] = cache.get("field_definitions", {})
        self._instances: Dict[str, Dict[str, Dict[str, FieldInstance]]] = cache.get("field_instances", {})

    def get_entity_kind_info(self, kind: str) -> EntityKindInfo:
        info = self._kinds.get(kind)
        if info is None:
            raise KeyError(f"Entity kind '{kind}' not found")
        return info

    def find_entity_kind_info(self, kind: str) -> Optional[EntityKindInfo]:
        return self._kinds.get(kind)

    def get_field_definition(self, kind: str, name: str) -> FieldDefinition:
        # Field names are global; the kind only shapes the error message.
        definition = self._definitions.get(name)
        if definition is None:
            raise KeyError(f"Field '{name}' not found on entity kind '{kind}'")
        return definition

    def find_field_definition(self, name: str) -> Optional[FieldDefinition]:
        return self._definitions.get(name)

    def get_field_instances(self, kind: str, bundle: Optional[str] = None) -> Dict[str, Any]:
        """
        Returns {field_name: FieldInstance} for one bundle, or
        {bundle: {field_name: FieldInstance}} for the whole kind when no
        bundle is given. Missing kinds or bundles give an empty map.
        """
        by_bundle = self._instances.get(kind, {})
        if bundle is None:
            return by_bundle
        instances = by_bundle.get(bundle, {})
        return dict(sorted(instances.items(), key=lambda item: (item[1].weight, item[0])))

    def get_field_instance(self, kind: str, bundle: str, name: str) -> FieldInstance:
        instance = self._instances.get(kind, {}).get(bundle, {}).get(name)
        if instance is None:
            raise KeyError(f"Field '{name}' has no instance on {kind}:{bundle}")
        return instance

    def has_bundle(self, kind: str, bundle: str) -> bool:
        info = self._kinds.get(kind)
        return info is not None and bundle in info.bundles
