"""
Document store for users and games.

All persistence goes through the `Collection` interface so the MongoDB
backend can be swapped for the in-memory one used in development and tests.
Documents are plain dicts; the store's `_id` is exposed as a string `id`.
"""
import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, AsyncMongoClient
from pymongo.errors import DuplicateKeyError

from config import Settings

logger = logging.getLogger(__name__)

Document = Dict[str, Any]


class DuplicateDocumentError(Exception):
    """A unique field of the document already exists in the collection."""


def to_object_id(doc_id: str) -> Optional[ObjectId]:
    """Parse a client supplied id. Malformed ids map to None, i.e. no such document."""
    if not isinstance(doc_id, str) or not ObjectId.is_valid(doc_id):
        return None
    return ObjectId(doc_id)


def _to_data(data: Union[BaseModel, Document]) -> Document:
    return data.model_dump() if isinstance(data, BaseModel) else dict(data)


class Collection(ABC):

    @abstractmethod
    async def find_by_id(self, doc_id: str) -> Optional[Document]:
        pass

    @abstractmethod
    async def find_one(self, query: Document) -> Optional[Document]:
        pass

    @abstractmethod
    async def find(self, sort_by: Optional[str] = None, descending: bool = False) -> List[Document]:
        pass

    @abstractmethod
    async def create_document(self, data: Union[BaseModel, Document]) -> str:
        """Insert a document and return its generated id."""
        pass

    @abstractmethod
    async def add_to_set(self, doc_id: str, field: str, value: Any) -> bool:
        """Append `value` to the list `field` unless already present. False if no such document."""
        pass

    @abstractmethod
    async def delete_by_id(self, doc_id: str) -> bool:
        pass


class Database(ABC):
    users: Collection
    games: Collection

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        pass


# MongoDB

def _from_mongo(doc: Optional[Document]) -> Optional[Document]:
    if doc is None:
        return None
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return doc


class MongoCollection(Collection):

    def __init__(self, collection):
        self._collection = collection

    async def find_by_id(self, doc_id):
        oid = to_object_id(doc_id)
        if oid is None:
            return None
        return _from_mongo(await self._collection.find_one({"_id": oid}))

    async def find_one(self, query):
        return _from_mongo(await self._collection.find_one(query))

    async def find(self, sort_by=None, descending=False):
        cursor = self._collection.find({})
        if sort_by:
            cursor = cursor.sort(sort_by, DESCENDING if descending else ASCENDING)
        return [_from_mongo(doc) async for doc in cursor]

    async def create_document(self, data):
        doc = _to_data(data)
        try:
            result = await self._collection.insert_one(doc)
        except DuplicateKeyError as exc:
            raise DuplicateDocumentError(str(exc)) from exc
        return str(result.inserted_id)

    async def add_to_set(self, doc_id, field, value):
        oid = to_object_id(doc_id)
        if oid is None:
            return False
        result = await self._collection.update_one({"_id": oid}, {"$addToSet": {field: value}})
        return result.matched_count > 0

    async def delete_by_id(self, doc_id):
        oid = to_object_id(doc_id)
        if oid is None:
            return False
        result = await self._collection.delete_one({"_id": oid})
        return result.deleted_count > 0


class MongoDatabase(Database):

    def __init__(self, url: str, name: str):
        self._client = AsyncMongoClient(url, tz_aware=True)
        db = self._client[name]
        self._users = db["user"]
        self.users = MongoCollection(self._users)
        self.games = MongoCollection(db["game"])

    async def connect(self):
        await self._users.create_index("email", unique=True)
        logger.info("MongoDB connected")

    async def close(self):
        await self._client.close()


# In-memory

class InMemoryCollection(Collection):
    """Dict backed collection enforcing the same unique fields as the Mongo indexes."""

    def __init__(self, unique: Iterable[str] = ()):
        self._documents: Dict[str, Document] = {}
        self._unique = tuple(unique)

    def _export(self, doc_id: str) -> Document:
        doc = copy.deepcopy(self._documents[doc_id])
        doc["id"] = doc_id
        return doc

    async def find_by_id(self, doc_id):
        if to_object_id(doc_id) is None or doc_id not in self._documents:
            return None
        return self._export(doc_id)

    async def find_one(self, query):
        for doc_id, doc in self._documents.items():
            if all(doc.get(key) == value for key, value in query.items()):
                return self._export(doc_id)
        return None

    async def find(self, sort_by=None, descending=False):
        docs = [self._export(doc_id) for doc_id in self._documents]
        if sort_by:
            docs.sort(key=lambda doc: doc[sort_by], reverse=descending)
        return docs

    async def create_document(self, data):
        doc = copy.deepcopy(_to_data(data))
        for field in self._unique:
            if any(existing.get(field) == doc.get(field) for existing in self._documents.values()):
                raise DuplicateDocumentError(f"duplicate key: {field}={doc.get(field)!r}")
        doc_id = str(ObjectId())
        self._documents[doc_id] = doc
        return doc_id

    async def add_to_set(self, doc_id, field, value):
        doc = self._documents.get(doc_id)
        if doc is None:
            return False
        values = doc.setdefault(field, [])
        if value not in values:
            values.append(value)
        return True

    async def delete_by_id(self, doc_id):
        return self._documents.pop(doc_id, None) is not None


class InMemoryDatabase(Database):

    def __init__(self):
        self.users = InMemoryCollection(unique=("email",))
        self.games = InMemoryCollection()


def create_database(settings: Settings) -> Database:
    if settings.storage_backend == "memory":
        logger.warning("Using in-memory storage, data is lost on restart")
        return InMemoryDatabase()
    return MongoDatabase(settings.mongodb_url, settings.database_name)
