"""
MongoDB access for the café API.

The client is created at import time when DATABASE_URL and DATABASE_NAME are
set. Routes receive the database through the ``get_db`` dependency so tests
can swap in another one.
"""

import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from errors import StorageError

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

db: Optional[Database] = None

if DATABASE_URL and DATABASE_NAME:
    client = MongoClient(DATABASE_URL)
    db = client[DATABASE_NAME]


def get_db() -> Database:
    if db is None:
        raise StorageError("Database not available")
    return db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_document(database: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document stamped with created_at/updated_at and return its id."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)

    now = utcnow()
    data_dict.setdefault("created_at", now)
    data_dict["updated_at"] = now

    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(database: Database, collection_name: str, filter_dict: dict = None,
                  limit: int = None, sort: list = None) -> List[dict]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def ensure_indexes(database: Database) -> None:
    # cart.customer_id uniqueness is what makes the cart create/create race detectable
    database["cart"].create_index([("customer_id", ASCENDING)], unique=True)
    database["customer"].create_index([("email", ASCENDING)], unique=True)
    database["order"].create_index([("customer_id", ASCENDING)])
    database["order"].create_index([("created_at", DESCENDING)])
    database["product"].create_index([("category", ASCENDING)])


def serialize_doc(value: Any) -> Any:
    """Make a stored document JSON friendly: ObjectId -> str, datetime -> ISO string."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: serialize_doc(v) for k, v in value.items()}
    if isinstance(value, list):
        return [serialize_doc(v) for v in value]
    return value


def display_fields(doc: Optional[dict], fields) -> Optional[dict]:
    """Public projection of a referenced document, or None when it no longer exists."""
    if not doc:
        return None
    view = {"_id": doc["_id"]}
    for field in fields:
        view[field] = doc.get(field)
    return view


def collection_stats(database: Database) -> Dict[str, Any]:
    return {
        "database_name": database.name,
        "collections": database.list_collection_names()[:10],
    }
