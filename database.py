"""
MongoDB access for the Export Hub backend.

A MongoStore owns one MongoClient and the three collections the service uses.
It is constructed by the application factory and connected/closed by the
application's startup and shutdown handlers.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from bson.objectid import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from errors import StoreUnavailable, ValidationFailed

logger = logging.getLogger(__name__)

USERS = "users"
PRODUCTS = "products"
IMPORTS = "imports"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_object_id(value: Any, label: str = "ID") -> ObjectId:
    """Validate an opaque id before it reaches the store."""
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        raise ValidationFailed(f"Invalid {label}")
    return ObjectId(value)


def to_str_id(doc: Optional[dict]):
    if doc is None:
        return None
    d = dict(doc)
    if d.get("_id") is not None:
        d["id"] = str(d.pop("_id"))
    return d


class MongoStore:
    def __init__(
        self,
        uri: str = "mongodb://127.0.0.1:27017",
        database_name: str = "exportHub",
        timeout_ms: int = 5000,
        client: Optional[MongoClient] = None,
    ):
        self.uri = uri
        self.database_name = database_name
        self.timeout_ms = timeout_ms
        self._client = client
        self._owns_client = client is None
        self._db: Optional[Database] = None

    @property
    def is_connected(self) -> bool:
        return self._db is not None

    def connect(self) -> bool:
        """Open the connection. Returns False (and stays disconnected) on failure."""
        try:
            if self._client is None:
                self._client = MongoClient(self.uri, serverSelectionTimeoutMS=self.timeout_ms)
                self._client.admin.command("ping")
            self._db = self._client[self.database_name]
        except PyMongoError as exc:
            logger.error("MongoDB connection error: %s", exc)
            logger.warning(
                "MongoDB is not reachable at the configured MONGODB_URI; "
                "requests needing the database will get 503"
            )
            self._db = None
            return False
        logger.info("Connected to MongoDB database %r", self.database_name)
        return True

    def close(self):
        if self._client is not None and self._owns_client:
            self._client.close()
            logger.info("MongoDB connection closed")
        self._db = None

    @property
    def db(self) -> Database:
        if self._db is None:
            raise StoreUnavailable(
                "Database not connected",
                hint="Please configure MongoDB connection in .env file",
            )
        return self._db

    def collection(self, name: str) -> Collection:
        return self.db[name]

    @property
    def users(self) -> Collection:
        return self.collection(USERS)

    @property
    def products(self) -> Collection:
        return self.collection(PRODUCTS)

    @property
    def imports(self) -> Collection:
        return self.collection(IMPORTS)

    def ensure_indexes(self):
        self.users.create_index([("email", ASCENDING)], unique=True)
        self.products.create_index([("userEmail", ASCENDING)])
        self.products.create_index([("createdAt", DESCENDING)])
        self.imports.create_index([("productId", ASCENDING), ("userEmail", ASCENDING)], unique=True)
        self.imports.create_index([("userEmail", ASCENDING)])

    def create_document(self, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
        """Insert a document stamped with createdAt/updatedAt and return its id."""
        if isinstance(data, BaseModel):
            doc = data.model_dump(by_alias=True)
        else:
            doc = dict(data)
        now = utcnow()
        doc.setdefault("createdAt", now)
        doc.setdefault("updatedAt", now)
        result = self.collection(collection_name).insert_one(doc)
        return str(result.inserted_id)

    def get_documents(self, collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None):
        cursor = self.collection(collection_name).find(filter_dict or {}).sort("createdAt", DESCENDING)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)
