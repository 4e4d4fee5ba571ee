"""Storage engines for expense records."""
import copy
import logging
from abc import ABC, abstractmethod
from typing import List, Dict, Any
from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo.errors import PyMongoError
from pydantic import ValidationError

from models.expense import Expense
from services.errors import InvalidIdentifier, StorageUnavailable

logger = logging.getLogger(__name__)


def parse_expense_id(raw_id: str) -> ObjectId:
    """Converts a path identifier into an ObjectId, raising InvalidIdentifier if malformed."""
    try:
        return ObjectId(raw_id)
    except (InvalidId, TypeError):
        raise InvalidIdentifier(f"'{raw_id}' is not a valid expense id")


def _doc_to_expense(doc: Dict[str, Any]) -> Expense:
    doc = dict(doc)
    doc['id'] = str(doc.pop('_id'))
    return Expense(**doc)


class ExpenseStore(ABC):
    """
    Keyed storage of expense records.

    Identifier generation and per-operation atomicity belong to the engine;
    callers do no locking of their own.
    """

    @abstractmethod
    async def insert(self, record: Dict[str, Any]) -> ObjectId:
        """Persists `record` under a newly generated id and returns that id."""

    @abstractmethod
    async def find_all(self) -> List[Expense]:
        """Returns every stored record, in no particular order."""

    @abstractmethod
    async def update_fields(self, expense_id: ObjectId, fields: Dict[str, Any]) -> bool:
        """
        Merges `fields` into the record. Fields not in the mapping are untouched.
        Returns False when no record has `expense_id`.
        """

    @abstractmethod
    async def delete_by_id(self, expense_id: ObjectId) -> int:
        """Removes the record and returns the number deleted (0 or 1)."""

    async def ping(self) -> None:
        pass

    async def close(self) -> None:
        pass


class MongoExpenseStore(ExpenseStore):
    """ExpenseStore backed by a Motor collection."""

    def __init__(self, collection: AsyncIOMotorCollection, client: AsyncIOMotorClient = None):
        self.collection = collection
        self.client = client

    async def insert(self, record: Dict[str, Any]) -> ObjectId:
        try:
            result = await self.collection.insert_one(dict(record))
        except PyMongoError as e:
            logger.error(f"Database error inserting expense: {e}")
            raise StorageUnavailable(f"Database error inserting expense: {e}")
        return result.inserted_id

    async def find_all(self) -> List[Expense]:
        logger.info(f"Fetching all expenses from collection '{self.collection.name}'...")
        expenses = []
        try:
            async for doc in self.collection.find({}):
                try:
                    expenses.append(_doc_to_expense(doc))
                except ValidationError as e:
                    # Skip invalid documents
                    logger.error(f"Data validation error for document ID {doc.get('_id', 'N/A')}: {e}")
        except PyMongoError as e:
            logger.error(f"Database error fetching expenses: {e}")
            raise StorageUnavailable(f"Database error fetching expenses: {e}")
        logger.info(f"Fetched {len(expenses)} expenses successfully.")
        return expenses

    async def update_fields(self, expense_id: ObjectId, fields: Dict[str, Any]) -> bool:
        try:
            if not fields:
                # $set rejects an empty document
                return await self.collection.count_documents({"_id": expense_id}, limit=1) > 0
            result = await self.collection.update_one({"_id": expense_id}, {"$set": dict(fields)})
        except PyMongoError as e:
            logger.error(f"Database error updating expense {expense_id}: {e}")
            raise StorageUnavailable(f"Database error updating expense: {e}")
        return result.matched_count > 0

    async def delete_by_id(self, expense_id: ObjectId) -> int:
        try:
            result = await self.collection.delete_one({"_id": expense_id})
        except PyMongoError as e:
            logger.error(f"Database error deleting expense {expense_id}: {e}")
            raise StorageUnavailable(f"Database error deleting expense: {e}")
        return result.deleted_count

    async def ping(self) -> None:
        if self.client is None:
            return
        try:
            await self.client.admin.command('ping')
        except PyMongoError as e:
            raise StorageUnavailable(f"MongoDB ping failed: {e}")

    async def close(self) -> None:
        if self.client is not None:
            self.client.close()


class InMemoryExpenseStore(ExpenseStore):
    """Process-local engine for development and tests. Nothing here awaits mid-mutation."""

    def __init__(self):
        self._records: Dict[ObjectId, Dict[str, Any]] = {}

    async def insert(self, record: Dict[str, Any]) -> ObjectId:
        expense_id = ObjectId()
        self._records[expense_id] = copy.deepcopy(record)
        return expense_id

    async def find_all(self) -> List[Expense]:
        return [_doc_to_expense({**copy.deepcopy(doc), '_id': oid}) for oid, doc in self._records.items()]

    async def update_fields(self, expense_id: ObjectId, fields: Dict[str, Any]) -> bool:
        doc = self._records.get(expense_id)
        if doc is None:
            return False
        doc.update(copy.deepcopy(fields))
        return True

    async def delete_by_id(self, expense_id: ObjectId) -> int:
        return 1 if self._records.pop(expense_id, None) is not None else 0

    def __len__(self):
        return len(self._records)


def create_mongo_store(uri: str, db_name: str, collection_name: str, timeout_ms: int) -> MongoExpenseStore:
    """Builds a MongoExpenseStore whose calls give up after `timeout_ms`."""
    client = AsyncIOMotorClient(
        uri,
        serverSelectionTimeoutMS=timeout_ms,
        timeoutMS=timeout_ms,
        tz_aware=True,
    )
    collection = client[db_name].get_collection(collection_name)
    return MongoExpenseStore(collection, client)
