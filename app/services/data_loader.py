from typing import Dict, Any, List
from collections import defaultdict
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError

from app.config import (
    ENTITY_KINDS_COLLECTION, FIELD_DEFINITIONS_COLLECTION, FIELD_INSTANCES_COLLECTION, ENTITIES_COLLECTION,
)
from app.database import fetch_collection
from app.logging_setup import logger
from app.models import Entity, EntityKindInfo, FieldDefinition, FieldInstance
from app.services.references import find_handler
from app.store import store


def _without_mongo_id(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in doc.items() if k != "_id"}


def build_cache(
    raw_kinds: List[Dict[str, Any]],
    raw_definitions: List[Dict[str, Any]],
    raw_instances: List[Dict[str, Any]],
    raw_entities: List[Dict[str, Any]],
) -> Dict[str, Any]:
    """
    Validates raw documents into models and lays them out as the store cache.
    Invalid documents are logged and skipped so one bad record cannot keep
    the service from starting.
    """
    skipped = 0

    entity_kinds: Dict[str, EntityKindInfo] = {}
    for doc in raw_kinds:
        try:
            info = EntityKindInfo(**_without_mongo_id(doc))
        except ValidationError as e:
            logger.warning("Skipping invalid entity kind", extra={"doc_id": doc.get("_id"), "error": str(e)})
            skipped += 1
            continue
        entity_kinds[info.name] = info

    field_definitions: Dict[str, FieldDefinition] = {}
    for doc in raw_definitions:
        try:
            definition = FieldDefinition(**_without_mongo_id(doc))
        except ValidationError as e:
            logger.warning("Skipping invalid field definition", extra={"doc_id": doc.get("_id"), "error": str(e)})
            skipped += 1
            continue
        if find_handler(definition.type) is None:
            logger.warning("Skipping field definition of unregistered type", extra={"field": definition.name, "type": definition.type})
            skipped += 1
            continue
        field_definitions[definition.name] = definition

    field_instances: Dict[str, Dict[str, Dict[str, FieldInstance]]] = defaultdict(lambda: defaultdict(dict))
    for doc in raw_instances:
        try:
            instance = FieldInstance(**_without_mongo_id(doc))
        except ValidationError as e:
            logger.warning("Skipping invalid field instance", extra={"doc_id": doc.get("_id"), "error": str(e)})
            skipped += 1
            continue
        if instance.field_name not in field_definitions:
            logger.warning("Skipping field instance without definition", extra={"field": instance.field_name})
            skipped += 1
            continue
        field_instances[instance.entity_kind][instance.bundle][instance.field_name] = instance

    entities: Dict[str, Dict[str, Entity]] = defaultdict(dict)
    for doc in raw_entities:
        data = _without_mongo_id(doc)
        # Stored entities use their own id when they carry one, else the ObjectId.
        data["id"] = data.get("id") or doc.get("_id")
        try:
            entity = Entity(**data)
        except ValidationError as e:
            logger.warning("Skipping invalid entity", extra={"doc_id": doc.get("_id"), "error": str(e)})
            skipped += 1
            continue
        entities[entity.kind][entity.id] = entity

    logger.info(
        "Cache built",
        extra={
            "entity_kinds": len(entity_kinds),
            "field_definitions": len(field_definitions),
            "entities": sum(len(by_id) for by_id in entities.values()),
            "skipped": skipped,
        },
    )
    return {
        "entity_kinds": entity_kinds,
        "field_definitions": field_definitions,
        # Plain dicts: lookups of missing kinds must not grow the cache.
        "field_instances": {kind: dict(bundles) for kind, bundles in field_instances.items()},
        "entities": dict(entities),
    }


async def load_and_process_data(db: AsyncIOMotorDatabase) -> None:
    """
    Handles the entire process of fetching, validating and caching the
    metadata and entities directly from the MongoDB database.
    """
    logger.info("--- Starting Data Loading from MongoDB ---")
    store.mark_loading()

    try:
        # 1. FETCH METADATA
        logger.info("Fetching entity kinds, field definitions and field instances...")
        raw_kinds = await fetch_collection(db, ENTITY_KINDS_COLLECTION)
        raw_definitions = await fetch_collection(db, FIELD_DEFINITIONS_COLLECTION)
        raw_instances = await fetch_collection(db, FIELD_INSTANCES_COLLECTION)
        logger.info("Metadata fetched.")

        # 2. FETCH ENTITIES
        logger.info("Fetching entities...")
        raw_entities = await fetch_collection(db, ENTITIES_COLLECTION)
        logger.info("Entities fetched.")

        # 3. BUILD AND SWAP THE CACHE
        new_cache = build_cache(raw_kinds, raw_definitions, raw_instances, raw_entities)
        store.swap_cache(new_cache)
        logger.info("--- Data Loading Finished ---")

    except Exception as e:
        logger.critical(f"A critical error occurred during data loading: {e}", exc_info=True)
