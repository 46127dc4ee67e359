"""
Document store access
Every service receives a DocumentRepository instead of reaching for a global db
"""

import copy
import logging
import secrets
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.core.exceptions import ConflictError

logger = logging.getLogger(__name__)

# Collections whose documents must be unique on these fields
UNIQUE_KEYS: Dict[str, Tuple[str, ...]] = {
    "submissions": ("assignment_id", "student_id"),
}


def generate_id(prefix: str) -> str:
    """Generate unique ID with prefix"""
    return f"{prefix}_{secrets.token_hex(8).upper()}"


class DocumentRepository(ABC):
    """Minimal document-store interface used by the services"""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        ...

    async def exists(self, collection: str, doc_id: str) -> bool:
        return await self.get(collection, doc_id) is not None

    @abstractmethod
    async def add(self, collection: str, data: dict, doc_id: Optional[str] = None) -> str:
        ...

    @abstractmethod
    async def set(self, collection: str, doc_id: str, data: dict) -> None:
        ...

    @abstractmethod
    async def update(
        self,
        collection: str,
        doc_id: str,
        changes: dict,
        expected: Optional[dict] = None
    ) -> bool:
        """
        Partial update. With `expected`, applies only while every expected
        field still holds the given value (compare-and-set).

        Returns:
            bool: whether a document matched and was updated
        """

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool:
        ...

    @abstractmethod
    async def query(
        self,
        collection: str,
        where: Optional[dict] = None,
        array_contains: Optional[dict] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[dict]:
        ...

    async def find_one(self, collection: str, where: dict) -> Optional[dict]:
        results = await self.query(collection, where=where, limit=1)
        return results[0] if results else None

    async def ensure_indexes(self) -> None:
        """Create backing indexes where the store supports them"""


# ==================== MONGODB ====================

class MongoRepository(DocumentRepository):
    """Motor-backed repository; the document id is stored as `_id`"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    @staticmethod
    def _out(doc: Optional[dict]) -> Optional[dict]:
        if doc is None:
            return None
        doc["id"] = doc.pop("_id")
        return doc

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        return self._out(await self.db[collection].find_one({"_id": doc_id}))

    async def add(self, collection: str, data: dict, doc_id: Optional[str] = None) -> str:
        doc_id = doc_id or generate_id(collection[:3].upper())
        document = {k: v for k, v in data.items() if k != "id"}
        document["_id"] = doc_id
        try:
            await self.db[collection].insert_one(document)
        except DuplicateKeyError:
            raise ConflictError(
                f"A {collection[:-1]} with the same key already exists",
                details={"collection": collection}
            )
        return doc_id

    async def set(self, collection: str, doc_id: str, data: dict) -> None:
        document = {k: v for k, v in data.items() if k != "id"}
        await self.db[collection].replace_one({"_id": doc_id}, document, upsert=True)

    async def update(
        self,
        collection: str,
        doc_id: str,
        changes: dict,
        expected: Optional[dict] = None
    ) -> bool:
        selector = {"_id": doc_id, **(expected or {})}
        result = await self.db[collection].find_one_and_update(
            selector,
            {"$set": {k: v for k, v in changes.items() if k != "id"}},
            return_document=ReturnDocument.AFTER
        )
        return result is not None

    async def delete(self, collection: str, doc_id: str) -> bool:
        result = await self.db[collection].delete_one({"_id": doc_id})
        return result.deleted_count > 0

    async def query(
        self,
        collection: str,
        where: Optional[dict] = None,
        array_contains: Optional[dict] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[dict]:
        selector = dict(where or {})
        # Equality on an array field matches membership in Mongo
        selector.update(array_contains or {})

        cursor = self.db[collection].find(selector)
        if order_by:
            cursor = cursor.sort(order_by, -1 if descending else 1)
        if limit:
            cursor = cursor.limit(limit)

        docs = await cursor.to_list(length=limit)
        return [self._out(doc) for doc in docs]

    async def ensure_indexes(self) -> None:
        await create_indexes(self.db)


def connect_mongo(mongo_url: str, db_name: str) -> MongoRepository:
    client = AsyncIOMotorClient(mongo_url)
    return MongoRepository(client[db_name])


async def create_indexes(db: AsyncIOMotorDatabase):
    """
    Create database indexes for portal queries
    Called during application startup
    """

    # Catalog
    await db.branches.create_index("name")
    await db.subjects.create_index("branch_id")
    await db.subjects.create_index([("branch_id", 1), ("year", 1), ("semester", 1)])

    # People
    await db.users.create_index("email")
    await db.users.create_index([("branch_id", 1), ("year", 1), ("semester", 1), ("section", 1)])
    await db.faculties.create_index("email")
    await db.faculties.create_index("faculty_id")

    # Assignments
    await db.assignments.create_index("faculty_id")
    await db.assignments.create_index("target_branches")
    await db.assignments.create_index("deadline")

    # Submissions - at most one per (assignment, student)
    for collection, fields in UNIQUE_KEYS.items():
        await db[collection].create_index([(f, 1) for f in fields], unique=True)
    await db.submissions.create_index("student_id")
    await db.submissions.create_index([("faculty_id", 1), ("submitted_at", -1)])
    await db.submissions.create_index([("assignment_id", 1), ("status", 1)])

    # Audit logs
    await db.audit_logs.create_index("actor_id")
    await db.audit_logs.create_index([("target_type", 1), ("target_id", 1)])
    await db.audit_logs.create_index("timestamp")

    logger.info("Portal indexes created")


# ==================== IN-MEMORY ====================

class InMemoryRepository(DocumentRepository):
    """Dict-backed repository for tests and local runs"""

    def __init__(self, unique_keys: Optional[Dict[str, Sequence[str]]] = None):
        self.collections: Dict[str, Dict[str, dict]] = {}
        self.unique_keys = dict(UNIQUE_KEYS if unique_keys is None else unique_keys)

    def _collection(self, name: str) -> Dict[str, dict]:
        return self.collections.setdefault(name, {})

    @staticmethod
    def _out(doc_id: str, doc: dict) -> dict:
        result = copy.deepcopy(doc)
        result["id"] = doc_id
        return result

    def _check_unique(self, collection: str, doc_id: str, data: dict) -> None:
        fields = self.unique_keys.get(collection)
        if not fields:
            return
        key = tuple(data.get(f) for f in fields)
        for other_id, other in self._collection(collection).items():
            if other_id != doc_id and tuple(other.get(f) for f in fields) == key:
                raise ConflictError(
                    f"A {collection[:-1]} with the same key already exists",
                    details={"collection": collection}
                )

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        doc = self._collection(collection).get(doc_id)
        return self._out(doc_id, doc) if doc is not None else None

    async def add(self, collection: str, data: dict, doc_id: Optional[str] = None) -> str:
        doc_id = doc_id or generate_id(collection[:3].upper())
        if doc_id in self._collection(collection):
            raise ConflictError(f"Document '{doc_id}' already exists")
        document = {k: copy.deepcopy(v) for k, v in data.items() if k != "id"}
        self._check_unique(collection, doc_id, document)
        self._collection(collection)[doc_id] = document
        return doc_id

    async def set(self, collection: str, doc_id: str, data: dict) -> None:
        document = {k: copy.deepcopy(v) for k, v in data.items() if k != "id"}
        self._check_unique(collection, doc_id, document)
        self._collection(collection)[doc_id] = document

    async def update(
        self,
        collection: str,
        doc_id: str,
        changes: dict,
        expected: Optional[dict] = None
    ) -> bool:
        doc = self._collection(collection).get(doc_id)
        if doc is None:
            return False
        for field, value in (expected or {}).items():
            if doc.get(field) != value:
                return False
        updated = {**doc, **{k: copy.deepcopy(v) for k, v in changes.items() if k != "id"}}
        self._check_unique(collection, doc_id, updated)
        self._collection(collection)[doc_id] = updated
        return True

    async def delete(self, collection: str, doc_id: str) -> bool:
        return self._collection(collection).pop(doc_id, None) is not None

    async def query(
        self,
        collection: str,
        where: Optional[dict] = None,
        array_contains: Optional[dict] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[dict]:
        results = []
        for doc_id, doc in self._collection(collection).items():
            if any(doc.get(k) != v for k, v in (where or {}).items()):
                continue
            if any(v not in (doc.get(k) or []) for k, v in (array_contains or {}).items()):
                continue
            results.append(self._out(doc_id, doc))

        if order_by:
            # Missing values sort first, as Mongo does
            results.sort(
                key=lambda d: (d.get(order_by) is not None, _sort_value(d.get(order_by))),
                reverse=descending
            )
        if limit:
            results = results[:limit]
        return results


def _sort_value(value: Any) -> Any:
    if value is None:
        return 0
    return value
