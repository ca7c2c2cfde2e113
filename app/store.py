import threading
from typing import Dict, Any

from app.models import FieldInstance

class Store:
    """
    A thread-safe application store for the metadata and entity caches and
    the readiness state.

    Cache layout:
        "entity_kinds":      {kind: EntityKindInfo}
        "field_definitions": {field_name: FieldDefinition}
        "field_instances":   {kind: {bundle: {field_name: FieldInstance}}}
        "entities":          {kind: {entity_id: Entity}}
    """
    def __init__(self):
        self.cache: Dict[str, Any] = {}
        self.lock = threading.Lock()
        self.is_ready: bool = False

    def swap_cache(self, new_cache: Dict[str, Any]) -> None:
        """
        Atomically clears and updates the cache under a lock and sets the
        application state to ready.
        """
        with self.lock:
            self.cache.clear()
            self.cache.update(new_cache)
            self.is_ready = True

    def mark_loading(self) -> None:
        """
        Sets the application state to not ready (loading).
        """
        with self.lock:
            self.is_ready = False

    def replace_field_instance(self, instance: FieldInstance) -> None:
        """Swaps a single field instance, e.g. after its settings were saved."""
        with self.lock:
            bundles = self.cache.setdefault("field_instances", {}).setdefault(instance.entity_kind, {})
            bundles.setdefault(instance.bundle, {})[instance.field_name] = instance

# Export a singleton instance for global use.
store = Store()
