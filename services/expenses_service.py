"""Service layer for storing and reading expenses."""
import logging
from datetime import tzinfo
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorCollection # Type hint for collection
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from models.expense import Expense, ExpenseIn
from services.document_mapper import document_to_expense, expense_to_document
from services.errors import StoreUnavailable

logger = logging.getLogger(__name__)

OWNER_FIELD = "ownerId"


def sanitize_fields(expense_in: ExpenseIn) -> Dict[str, Any]:
    """Trims surrounding whitespace from the free-text fields."""
    return {
        "title": expense_in.title.strip(),
        "amount": expense_in.amount,
        "category": expense_in.category.strip(),
        "date": expense_in.date,
    }


def is_owner_mismatch(document: Dict[str, Any], owner_id: Optional[str]) -> bool:
    """A record without an owner can be changed by anyone."""
    stored_owner = document.get(OWNER_FIELD)
    return stored_owner is not None and stored_owner != owner_id


def sum_amounts(expenses: Iterable[Expense]) -> Decimal:
    return sum((expense.amount for expense in expenses), Decimal("0"))


def _object_id(expense_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(expense_id)
    except (InvalidId, TypeError):
        return None


class ExpenseStore:
    """
    CRUD over a single MongoDB collection, scoped by owner id.

    Each call is one independent round trip (two for update and delete: read the
    owner, then write). There is no locking between the read and the write, so
    concurrent writers on the same id are last-write-wins.
    """

    def __init__(self, collection: AsyncIOMotorCollection, tz: Optional[tzinfo] = None):
        self.collection = collection
        self.tz = tz

    async def list(self, owner_id: Optional[str]) -> List[Expense]:
        """All expenses of one owner, newest date first. Malformed documents are skipped."""
        expenses = []
        try:
            cursor = self.collection.find({OWNER_FIELD: owner_id}).sort("date", DESCENDING)
            async for doc in cursor:
                expense = document_to_expense(doc, self.tz)
                if expense is not None:
                    expenses.append(expense)
        except PyMongoError as e:
            logger.error(f"Database error fetching expenses for owner {owner_id}: {e}")
            raise StoreUnavailable("Failed to get expenses") from e
        logger.info(f"Retrieved {len(expenses)} expenses for owner {owner_id}")
        return expenses

    async def get_by_id(self, expense_id: str) -> Optional[Expense]:
        object_id = _object_id(expense_id)
        if object_id is None:
            return None
        doc = await self._find_one(object_id)
        if doc is None:
            return None
        return document_to_expense(doc, self.tz)

    async def create(self, expense_in: ExpenseIn, owner_id: Optional[str]) -> Expense:
        expense = Expense(**sanitize_fields(expense_in), owner_id=owner_id)
        try:
            result = await self.collection.insert_one(expense_to_document(expense, self.tz))
        except PyMongoError as e:
            logger.error(f"Database error creating expense: {e}")
            raise StoreUnavailable("Failed to create expense") from e
        expense.id = str(result.inserted_id)
        logger.info(f"Created expense with ID: {expense.id}")
        return expense

    async def update(self, expense_id: str, expense_in: ExpenseIn, owner_id: Optional[str]) -> Optional[Expense]:
        """
        Replaces the fields of an existing expense.
        Returns None when the id is unknown or belongs to another owner; the
        two cases are indistinguishable to the caller.
        """
        object_id = _object_id(expense_id)
        if object_id is None:
            return None
        existing = await self._find_one(object_id)
        if existing is None:
            return None
        if is_owner_mismatch(existing, owner_id):
            logger.warning(f"Owner {owner_id} attempted to update expense {expense_id} owned by {existing.get(OWNER_FIELD)}")
            return None

        expense = Expense(id=str(object_id), **sanitize_fields(expense_in), owner_id=owner_id)
        try:
            result = await self.collection.update_one(
                {"_id": object_id}, {"$set": expense_to_document(expense, self.tz)}
            )
        except PyMongoError as e:
            logger.error(f"Database error updating expense {expense_id}: {e}")
            raise StoreUnavailable("Failed to update expense") from e
        if result.matched_count == 0:
            logger.info(f"Expense {expense_id} was removed before it could be updated")
            return None
        logger.info(f"Updated expense with ID: {expense.id}")
        return expense

    async def delete(self, expense_id: str, owner_id: Optional[str]) -> bool:
        object_id = _object_id(expense_id)
        if object_id is None:
            return False
        existing = await self._find_one(object_id)
        if existing is None:
            return False
        if is_owner_mismatch(existing, owner_id):
            logger.warning(f"Owner {owner_id} attempted to delete expense {expense_id} owned by {existing.get(OWNER_FIELD)}")
            return False

        try:
            result = await self.collection.delete_one({"_id": object_id})
        except PyMongoError as e:
            logger.error(f"Database error deleting expense {expense_id}: {e}")
            raise StoreUnavailable("Failed to delete expense") from e
        if result.deleted_count == 0:
            return False
        logger.info(f"Deleted expense with ID: {expense_id}")
        return True

    async def total_amount(self, owner_id: Optional[str]) -> Decimal:
        return sum_amounts(await self.list(owner_id))

    async def _find_one(self, object_id: ObjectId) -> Optional[Dict[str, Any]]:
        try:
            return await self.collection.find_one({"_id": object_id})
        except PyMongoError as e:
            logger.error(f"Database error reading expense {object_id}: {e}")
            raise StoreUnavailable("Failed to read expense") from e
