"""
MongoDB access helpers.

Each collection is named after the lowercased schema class in schemas.py.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from config import settings
from errors import InvalidRequestError

client = MongoClient(settings.database_url, serverSelectionTimeoutMS=5000)
db = client[settings.database_name]


def get_db() -> Database:
    return db


def utcnow() -> datetime:
    # Mongo hands back naive UTC datetimes, keep stored values comparable
    return datetime.now(timezone.utc).replace(tzinfo=None)


def oid(id_str: Any) -> ObjectId:
    if isinstance(id_str, ObjectId):
        return id_str
    try:
        return ObjectId(str(id_str))
    except (InvalidId, TypeError):
        raise InvalidRequestError("Invalid id")


def create_document(database: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if isinstance(data, BaseModel):
        data = data.model_dump()
    doc = dict(data)
    now = utcnow()
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    sort: Optional[List] = None,
) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Make a stored document JSON friendly: ObjectIds to str, no password hashes."""
    if doc is None:
        return None
    out: Dict[str, Any] = {}
    for key, value in doc.items():
        if key == "password_hash":
            continue
        if isinstance(value, ObjectId):
            value = str(value)
        elif isinstance(value, dict):
            value = serialize(value)
        out[key] = value
    return out


def ensure_indexes(database: Database) -> None:
    database["user"].create_index([("email", ASCENDING)], unique=True)
    database["admin"].create_index([("email", ASCENDING)], unique=True)
    database["worker"].create_index([("phone", ASCENDING)], unique=True)
    database["vehicle"].create_index([("license_plate", ASCENDING)], unique=True)
    database["pickup"].create_index([("user_id", ASCENDING)])
    database["pickup"].create_index([("razorpay_order_id", ASCENDING)])
    database["complaint"].create_index([("user_id", ASCENDING)])
