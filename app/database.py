# app/database.py
from typing import List, Dict, Any
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from app.config import MONGO_URI, MONGO_DB_NAME, FIELD_INSTANCES_COLLECTION
from app.logging_setup import logger
from app.models import FieldInstance

class Database:
    client: AsyncIOMotorClient = None

db = Database()

async def connect_to_mongo():
    """Establishes the connection to the MongoDB database."""
    logger.info("Connecting to MongoDB...")
    db.client = AsyncIOMotorClient(MONGO_URI)
    logger.info("MongoDB connection established.")

async def close_mongo_connection():
    """Closes the connection to the MongoDB database."""
    if db.client is None:
        return
    logger.info("Closing MongoDB connection...")
    db.client.close()
    db.client = None
    logger.info("MongoDB connection closed.")

def get_database() -> AsyncIOMotorDatabase:
    """Returns the database client instance."""
    if db.client is None:
        raise RuntimeError("Database is not connected. Call connect_to_mongo() first.")
    return db.client[MONGO_DB_NAME]

async def fetch_collection(database: AsyncIOMotorDatabase, collection_name: str) -> List[Dict[str, Any]]:
    """
    Fetches every document of a collection that is not switched off
    (documents without an "active" flag count as active) and converts the
    ObjectId to a string.
    """
    cursor = database[collection_name].find({"active": {"$ne": False}})
    docs = await cursor.to_list(length=None)
    for doc in docs:
        doc["_id"] = str(doc["_id"])
    return docs

async def save_field_instance(database: AsyncIOMotorDatabase, instance: FieldInstance) -> None:
    """Writes the option limit settings of a field instance back to MongoDB."""
    result = await database[FIELD_INSTANCES_COLLECTION].update_one(
        {"entity_kind": instance.entity_kind, "bundle": instance.bundle, "field_name": instance.field_name},
        {"$set": {"option_limit": instance.option_limit.model_dump()}},
    )
    if result.matched_count == 0:
        raise KeyError(f"Field instance {instance.entity_kind}:{instance.bundle}:{instance.field_name} is not stored")
