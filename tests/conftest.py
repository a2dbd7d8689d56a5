"""Pytest configuration and fixtures for the test suite."""
import os
from datetime import datetime, timezone
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest
from bson import ObjectId
from pymongo.errors import ServerSelectionTimeoutError

# Set before the application module is imported
os.environ.update(
    {
        "RATE_LIMIT": "100000/minute",
        "STATIC_DIR": "__no_static_dir__",
        "LOG_LEVEL": "WARNING",
    }
)

from services.expenses_service import ExpenseStore  # noqa: E402

STORE_TZ = ZoneInfo("America/New_York")


def _to_stored(value):
    # MongoDB keeps instants as naive UTC datetimes
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _matches(document, query):
    # Equality on None also matches a missing field, as in MongoDB
    return all(document.get(key) == value for key, value in query.items())


def _sort_key(value):
    if isinstance(value, datetime):
        return (1, value)
    return (0, datetime.min)


class FakeCursor:
    def __init__(self, documents):
        self._documents = list(documents)

    def sort(self, key, direction=1):
        self._documents.sort(key=lambda doc: _sort_key(doc.get(key)), reverse=direction < 0)
        return self

    def __aiter__(self):
        self._iter = iter(self._documents)
        return self

    async def __anext__(self):
        try:
            return dict(next(self._iter))
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    """In-memory stand-in for an AsyncIOMotorCollection, covering the calls ExpenseStore makes."""

    name = "expenses"

    def __init__(self):
        self.documents = {}
        self.error = None

    def fail_with(self, error=None):
        self.error = error or ServerSelectionTimeoutError("No servers available")

    def _check(self):
        if self.error is not None:
            raise self.error

    def insert_raw(self, document):
        """Stores a document as-is, bypassing the mapper."""
        document = {key: _to_stored(value) for key, value in document.items()}
        document.setdefault("_id", ObjectId())
        self.documents[document["_id"]] = document
        return document["_id"]

    def find(self, query=None):
        self._check()
        return FakeCursor(doc for doc in self.documents.values() if _matches(doc, query or {}))

    async def find_one(self, query):
        self._check()
        for doc in self.documents.values():
            if _matches(doc, query):
                return dict(doc)
        return None

    async def insert_one(self, document):
        self._check()
        inserted_id = self.insert_raw(dict(document))
        return SimpleNamespace(inserted_id=inserted_id, acknowledged=True)

    async def update_one(self, query, update):
        self._check()
        for doc in self.documents.values():
            if _matches(doc, query):
                doc.update({key: _to_stored(value) for key, value in update["$set"].items()})
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def delete_one(self, query):
        self._check()
        for object_id, doc in list(self.documents.items()):
            if _matches(doc, query):
                del self.documents[object_id]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)


@pytest.fixture
def collection():
    return FakeCollection()


@pytest.fixture
def store(collection):
    return ExpenseStore(collection, STORE_TZ)
