"""
Shared fixtures: in-memory MongoDB collection and Redis doubles.

The doubles support the subset of motor/redis behavior the engine uses and
yield to the event loop on every call, so concurrent tasks interleave at the
same points they would against real servers.
"""

import asyncio
import copy
import secrets
from typing import Any

import pytest
import pytest_asyncio
from pymongo.errors import DuplicateKeyError

from portfolio_engine.core.config import Settings
from portfolio_engine.engine import Collections, PortfolioEngine
from portfolio_engine.models.fund import Fund


# ===== In-memory MongoDB =====


def _matches(document: dict[str, Any], query: dict[str, Any]) -> bool:
    for field, condition in query.items():
        value = document.get(field)
        if isinstance(condition, dict):
            for op, operand in condition.items():
                if op == "$in" and value not in operand:
                    return False
                if op == "$lt" and not (value is not None and value < operand):
                    return False
                if op == "$gt" and not (value is not None and value > operand):
                    return False
                if op == "$ne" and value == operand:
                    return False
        elif value != condition:
            return False
    return True


def _sort_keys(key_or_list, direction=None) -> list[tuple[str, int]]:
    if isinstance(key_or_list, str):
        return [(key_or_list, direction if direction is not None else 1)]
    return list(key_or_list)


def _sorted(documents: list[dict], keys: list[tuple[str, int]]) -> list[dict]:
    result = list(documents)
    for field, direction in reversed(keys):
        result.sort(key=lambda d: d.get(field), reverse=direction == -1)
    return result


class InsertResult:
    def __init__(self, inserted_id):
        self.inserted_id = inserted_id


class UpdateResult:
    def __init__(self, matched_count: int, modified_count: int):
        self.matched_count = matched_count
        self.modified_count = modified_count


class InMemoryCursor:
    """Async cursor over a snapshot of matching documents."""

    def __init__(self, documents: list[dict]):
        self._documents = documents
        self._sort: list[tuple[str, int]] = []
        self._skip = 0
        self._limit = 0

    def sort(self, key_or_list, direction=None):
        self._sort = _sort_keys(key_or_list, direction)
        return self

    def skip(self, count: int):
        self._skip = count
        return self

    def limit(self, count: int):
        self._limit = count
        return self

    async def __aiter__(self):
        await asyncio.sleep(0)
        documents = _sorted(self._documents, self._sort)[self._skip :]
        if self._limit:
            documents = documents[: self._limit]
        for document in documents:
            yield copy.deepcopy(document)


class InMemoryCollection:
    """Async collection double with unique (and partial unique) indexes."""

    def __init__(self, name: str = "collection"):
        self.name = name
        self.documents: list[dict[str, Any]] = []
        self.unique_indexes: list[tuple[list[str], dict | None]] = []
        self.index_names: list[str | None] = []

    async def create_index(self, keys, name=None, unique=False, **kwargs):
        fields = [field for field, _ in _sort_keys(keys)]
        if unique:
            self.unique_indexes.append((fields, kwargs.get("partialFilterExpression")))
        self.index_names.append(name)
        return name

    def _violates_unique(self, candidate: dict, exclude: dict | None = None) -> bool:
        for fields, partial in self.unique_indexes:
            if partial and not _matches(candidate, partial):
                continue
            for existing in self.documents:
                if existing is exclude:
                    continue
                if partial and not _matches(existing, partial):
                    continue
                if all(existing.get(f) == candidate.get(f) for f in fields):
                    return True
        return False

    async def insert_one(self, document: dict):
        await asyncio.sleep(0)
        stored = copy.deepcopy(document)
        if self._violates_unique(stored):
            raise DuplicateKeyError(f"E11000 duplicate key error collection: {self.name}")
        stored["_id"] = secrets.token_hex(12)
        self.documents.append(stored)
        return InsertResult(stored["_id"])

    async def find_one(self, query: dict, sort=None):
        await asyncio.sleep(0)
        matches = [d for d in self.documents if _matches(d, query)]
        if sort:
            matches = _sorted(matches, _sort_keys(sort))
        return copy.deepcopy(matches[0]) if matches else None

    def find(self, query: dict | None = None):
        query = query or {}
        return InMemoryCursor([d for d in self.documents if _matches(d, query)])

    @staticmethod
    def _apply_update(document: dict, update: dict) -> dict:
        updated = copy.deepcopy(document)
        for field, value in update.get("$set", {}).items():
            updated[field] = copy.deepcopy(value)
        for field, amount in update.get("$inc", {}).items():
            updated[field] = updated.get(field, 0) + amount
        return updated

    async def find_one_and_update(self, query: dict, update: dict, **kwargs):
        await asyncio.sleep(0)
        for index, document in enumerate(self.documents):
            if _matches(document, query):
                updated = self._apply_update(document, update)
                if self._violates_unique(updated, exclude=document):
                    raise DuplicateKeyError(
                        f"E11000 duplicate key error collection: {self.name}"
                    )
                self.documents[index] = updated
                return copy.deepcopy(updated)
        return None

    async def update_many(self, query: dict, update: dict):
        await asyncio.sleep(0)
        modified = 0
        for index, document in enumerate(self.documents):
            if _matches(document, query):
                self.documents[index] = self._apply_update(document, update)
                modified += 1
        return UpdateResult(modified, modified)

    async def count_documents(self, query: dict) -> int:
        await asyncio.sleep(0)
        return sum(1 for d in self.documents if _matches(d, query))


class InMemoryMongoDB:
    """Stands in for the MongoDB manager: one collection per name."""

    def __init__(self):
        self.collections: dict[str, InMemoryCollection] = {}

    def get_collection(self, collection_name: str) -> InMemoryCollection:
        if collection_name not in self.collections:
            self.collections[collection_name] = InMemoryCollection(collection_name)
        return self.collections[collection_name]

    async def health_check(self) -> dict[str, bool | str]:
        return {"connected": True}


# ===== In-memory Redis =====


class InMemoryRedisCache:
    """Stands in for RedisCache: JSON-free value store plus owner-token locks."""

    def __init__(self):
        self.values: dict[str, Any] = {}
        self.locks: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}

    async def get(self, key: str) -> Any | None:
        await asyncio.sleep(0)
        return copy.deepcopy(self.values.get(key))

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        await asyncio.sleep(0)
        self.values[key] = copy.deepcopy(value)
        self.ttls[key] = ttl_seconds
        return True

    async def delete(self, key: str) -> bool:
        await asyncio.sleep(0)
        return self.values.pop(key, None) is not None

    async def acquire_lock(self, lock_key: str, lock_ttl_seconds: int = 30) -> str | None:
        await asyncio.sleep(0)
        if lock_key in self.locks:
            return None
        token = secrets.token_hex(16)
        self.locks[lock_key] = token
        return token

    async def release_lock(self, lock_key: str, token: str) -> bool:
        await asyncio.sleep(0)
        if self.locks.get(lock_key) != token:
            return False
        del self.locks[lock_key]
        return True

    async def health_check(self) -> dict[str, bool | str]:
        return {"connected": True}


# ===== Fixtures =====


@pytest.fixture
def settings():
    """Settings isolated from local env files, with fast lock retries."""
    return Settings(
        _env_file=None,
        environment="test",
        lock_retry_delay_seconds=0.001,
        lock_max_attempts=2000,
    )


@pytest.fixture
def mongodb():
    return InMemoryMongoDB()


@pytest.fixture
def redis_cache():
    return InMemoryRedisCache()


@pytest_asyncio.fixture
async def engine(mongodb, redis_cache, settings):
    """Engine wired to in-memory doubles with indexes registered."""
    portfolio_engine = PortfolioEngine(mongodb, redis_cache, settings)
    await portfolio_engine.ensure_indexes()
    return portfolio_engine


def build_fund(
    fund_id: str,
    fund_type: str = "gold",
    nav: float = 10.0,
    **overrides,
) -> Fund:
    """Build a fund with sensible defaults."""
    fields = {
        "name": f"Fund {fund_id}",
        "symbol": fund_id.upper(),
        "minimum_investment": 500.0,
        **overrides,
    }
    return Fund(fund_id=fund_id, fund_type=fund_type, current_nav=nav, **fields)


class FundCatalogSeeder:
    """Writes the fund catalog directly, as the external feed would."""

    def __init__(self, mongodb: InMemoryMongoDB):
        self.collection = mongodb.get_collection(Collections.FUNDS)

    async def add(self, *funds: Fund) -> None:
        for fund in funds:
            await self.collection.insert_one(fund.model_dump())

    async def set_nav(self, fund_id: str, nav: float) -> None:
        await self.collection.find_one_and_update(
            {"fund_id": fund_id}, {"$set": {"current_nav": nav}}
        )


@pytest.fixture
def make_fund():
    return build_fund


@pytest.fixture
def catalog(mongodb):
    return FundCatalogSeeder(mongodb)
