import os
import logging
import threading
from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from schemas import utcnow

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME")
DEFAULT_DATABASE_NAME = "chuira_dashboard"
TIMEOUT_MS = int(os.getenv("MONGODB_TIMEOUT_MS", "5000"))

COLLECTIONS = ["dhaanrecords", "chuirarecords", "salaryrecords", "expenserecords", "salesrecords"]
UNIQUE_KEYS = {"chuirarecords": "batchId", "salesrecords": "orderId"}

_client: Optional[MongoClient] = None
_db: Optional[Database] = None
_connect_lock = threading.Lock()


def connect() -> Database:
    """Return the shared database, creating the client on first use.

    The first call creates the unique indexes, which also proves the server
    is reachable; later calls reuse the ready handle.
    """
    global _client, _db
    if _db is not None:
        return _db
    with _connect_lock:
        if _db is not None:
            return _db
        client = MongoClient(DATABASE_URL, serverSelectionTimeoutMS=TIMEOUT_MS)
        if DATABASE_NAME:
            db = client[DATABASE_NAME]
        else:
            db = client.get_default_database(default=DEFAULT_DATABASE_NAME)
        try:
            ensure_indexes(db)
        except PyMongoError:
            client.close()
            raise
        _client, _db = client, db
    logger.info("Connected to MongoDB database %s", db.name)
    return db


def close() -> None:
    global _client, _db
    with _connect_lock:
        if _client is not None:
            _client.close()
            logger.info("MongoDB connection closed")
        _client, _db = None, None


def get_db() -> Database:
    try:
        return connect()
    except PyMongoError as exc:
        logger.exception("Could not connect to MongoDB")
        raise HTTPException(status_code=500, detail="Database connection failed") from exc


def ensure_indexes(db: Database) -> None:
    for collection, field in UNIQUE_KEYS.items():
        db[collection].create_index([(field, ASCENDING)], unique=True)
    for collection in COLLECTIONS:
        db[collection].create_index([("createdAt", DESCENDING)])

# ------------------------- Document helpers -------------------------

def to_oid(val) -> Optional[ObjectId]:
    try:
        return ObjectId(str(val))
    except (InvalidId, TypeError):
        return None


def serialize(doc: dict) -> dict:
    out = {}
    for key, value in doc.items():
        if isinstance(value, ObjectId):
            value = str(value)
        elif isinstance(value, datetime):
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            value = value.isoformat()
        out[key] = value
    return out


def list_many(db: Database, collection: str, query: dict = None, limit: Optional[int] = None) -> list:
    """Newest-first listing; _id breaks ties between equal createdAt values."""
    cursor = db[collection].find(query or {}).sort([("createdAt", DESCENDING), ("_id", DESCENDING)])
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)
