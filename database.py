"""
Document store used by the chat room.

Two collections, "participants" and "messages", each offering
insert / find_one / find_many / update_one / delete_one by filter.
MongoStore talks to MongoDB through pymongo; MemoryStore keeps everything
in process and is what the tests run against.
"""
import copy
import logging
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson.objectid import ObjectId
from pymongo import ASCENDING, MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from errors import StorageError, UniqueViolation
from schemas import MESSAGES, PARTICIPANTS

LOGGER = logging.getLogger(__name__)

Document = Dict[str, Any]


def to_str_id(doc):
    if not doc:
        return doc
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    # Convert datetimes to isoformat
    for k, v in list(d.items()):
        if isinstance(v, datetime):
            d[k] = v.isoformat()
    return d


# MongoDB

class MongoCollection:
    def __init__(self, collection):
        self._collection = collection

    @property
    def name(self) -> str:
        return self._collection.name

    def insert(self, doc: Document) -> str:
        try:
            return str(self._collection.insert_one(dict(doc)).inserted_id)
        except DuplicateKeyError as exc:
            raise UniqueViolation(str(exc)) from exc
        except PyMongoError as exc:
            raise StorageError(str(exc)) from exc

    def find_one(self, filt: Document) -> Optional[Document]:
        try:
            return self._collection.find_one(filt)
        except PyMongoError as exc:
            raise StorageError(str(exc)) from exc

    def find_many(self, filt: Optional[Document] = None) -> List[Document]:
        try:
            return list(self._collection.find(filt or {}).sort("_id", ASCENDING))
        except PyMongoError as exc:
            raise StorageError(str(exc)) from exc

    def update_one(self, filt: Document, patch: Document) -> bool:
        try:
            return self._collection.update_one(filt, patch).matched_count == 1
        except PyMongoError as exc:
            raise StorageError(str(exc)) from exc

    def delete_one(self, filt: Document) -> bool:
        try:
            return self._collection.delete_one(filt).deleted_count == 1
        except PyMongoError as exc:
            raise StorageError(str(exc)) from exc


class MongoStore:
    """pymongo-backed store. The client connects lazily on first use."""

    def __init__(self, url: str, database_name: str, client=None):
        self.client = client if client is not None else MongoClient(url, tz_aware=True)
        self.db = self.client[database_name]
        self.participants = MongoCollection(self.db[PARTICIPANTS])
        self.messages = MongoCollection(self.db[MESSAGES])

    def ensure_indexes(self) -> None:
        # Duplicate joins are rejected by this index, not by a read-then-write.
        try:
            self.db[PARTICIPANTS].create_index("name", unique=True)
        except PyMongoError as exc:
            raise StorageError(str(exc)) from exc

    def collection_names(self) -> List[str]:
        try:
            return self.db.list_collection_names()
        except PyMongoError as exc:
            raise StorageError(str(exc)) from exc

    def close(self) -> None:
        self.client.close()


# In memory

def _matches(doc: Document, filt: Document) -> bool:
    for key, expected in filt.items():
        if key == "$or":
            if not any(_matches(doc, sub) for sub in expected):
                return False
        elif key not in doc or doc[key] != expected:
            return False
    return True


class MemoryCollection:
    def __init__(self, name: str, unique: tuple = ()):
        self.name = name
        self._unique = unique
        self._docs: List[Document] = []
        self._lock = threading.Lock()

    def insert(self, doc: Document) -> str:
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", ObjectId())
        with self._lock:
            for key in self._unique:
                if any(d.get(key) == doc.get(key) for d in self._docs):
                    raise UniqueViolation(f"duplicate key {key}={doc.get(key)!r} in {self.name}")
            self._docs.append(doc)
        return str(doc["_id"])

    def find_one(self, filt: Document) -> Optional[Document]:
        with self._lock:
            for doc in self._docs:
                if _matches(doc, filt):
                    return copy.deepcopy(doc)
        return None

    def find_many(self, filt: Optional[Document] = None) -> List[Document]:
        with self._lock:
            return [copy.deepcopy(d) for d in self._docs if _matches(d, filt or {})]

    def update_one(self, filt: Document, patch: Document) -> bool:
        unsupported = set(patch) - {"$set"}
        if unsupported:
            raise StorageError(f"unsupported update operators: {sorted(unsupported)}")
        with self._lock:
            for doc in self._docs:
                if _matches(doc, filt):
                    doc.update(copy.deepcopy(patch.get("$set", {})))
                    return True
        return False

    def delete_one(self, filt: Document) -> bool:
        with self._lock:
            for i, doc in enumerate(self._docs):
                if _matches(doc, filt):
                    del self._docs[i]
                    return True
        return False


class MemoryStore:
    """Process-local store with the same contract as MongoStore."""

    def __init__(self):
        self.participants = MemoryCollection(PARTICIPANTS, unique=("name",))
        self.messages = MemoryCollection(MESSAGES)

    def ensure_indexes(self) -> None:
        pass

    def collection_names(self) -> List[str]:
        return [PARTICIPANTS, MESSAGES]

    def close(self) -> None:
        pass


def create_store(url: str, database_name: str):
    if url.startswith("memory://"):
        LOGGER.warning("using the in-memory store, nothing will be persisted")
        return MemoryStore()
    return MongoStore(url, database_name)
