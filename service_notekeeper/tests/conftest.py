"""
Shared fixtures for Notekeeper tests.

The in-memory cache and collection implement the same contracts as
RedisCache and PostgresCollection so coordinator behaviour can be exercised
without live Redis or PostgreSQL.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest

from notekeeper_shared.config import get_config
from service_notekeeper.app.coordinators import NotesCoordinator, UsersCoordinator
from service_notekeeper.app.persistence import NOTES_COLLECTION, USERS_COLLECTION
from service_notekeeper.app.persistence.base import CollectionSpec, DuplicateKeyError
from service_notekeeper.app.security.passwords import PasswordHasher


class InMemoryCache:
    """Cache store with a manual clock for TTL expiry."""

    def __init__(self):
        self.now = 0.0
        self.entries: Dict[str, Tuple[bytes, float]] = {}
        self.get_calls: List[str] = []
        self.set_calls: List[Tuple[str, bytes, int]] = []
        self.delete_calls: List[str] = []
        self.started = False

    def advance(self, seconds: float):
        self.now += seconds

    async def get(self, key: str) -> Optional[bytes]:
        self.get_calls.append(key)
        entry = self.entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self.now:
            del self.entries[key]
            return None
        return value

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> bool:
        self.set_calls.append((key, value, ttl_seconds))
        self.entries[key] = (value, self.now + ttl_seconds)
        return True

    async def delete(self, key: str) -> bool:
        self.delete_calls.append(key)
        return self.entries.pop(key, None) is not None

    async def start(self):
        self.started = True

    async def stop(self):
        self.started = False

    async def health_check(self) -> bool:
        return True


class InMemoryCollection:
    """Document collection enforcing the same unique fields as the Postgres tables."""

    def __init__(self, spec: CollectionSpec):
        self.spec = spec
        self.name = spec.name
        self.records: Dict[str, Dict[str, Any]] = {}
        self.calls: Dict[str, int] = {}

    def _count(self, operation: str):
        self.calls[operation] = self.calls.get(operation, 0) + 1

    def _check_unique(self, document: Dict[str, Any], exclude_id: Optional[str] = None):
        for unique in self.spec.unique_fields:
            value = document.get(unique.name)
            if value is None:
                continue
            for record_id, record in self.records.items():
                if record_id == exclude_id:
                    continue
                existing = record.get(unique.name)
                if existing is None:
                    continue
                if unique.case_insensitive:
                    clash = existing.lower() == value.lower()
                else:
                    clash = existing == value
                if clash:
                    raise DuplicateKeyError(self.name, f"{self.name}_{unique.name}_key")

    async def insert(self, document: Dict[str, Any]) -> Dict[str, Any]:
        self._count("insert")
        self._check_unique(document)
        now = datetime.now(timezone.utc)
        record = dict(document, id=str(uuid.uuid4()), created_at=now, updated_at=now)
        self.records[record["id"]] = record
        return dict(record)

    async def find_by_id(self, identifier: str) -> Optional[Dict[str, Any]]:
        self._count("find_by_id")
        record = self.records.get(identifier)
        return dict(record) if record else None

    async def find_one(self, field_name: str, value: str, case_insensitive: bool = False) -> Optional[Dict[str, Any]]:
        self._count("find_one")
        for record in self.records.values():
            existing = record.get(field_name)
            if existing is None:
                continue
            if case_insensitive and existing.lower() == value.lower():
                return dict(record)
            if existing == value:
                return dict(record)
        return None

    async def find_all(self) -> List[Dict[str, Any]]:
        self._count("find_all")
        return [dict(record) for record in self.records.values()]

    async def update_by_id(self, identifier: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        self._count("update_by_id")
        record = self.records.get(identifier)
        if record is None:
            return None
        self._check_unique(changes, exclude_id=identifier)
        record.update(changes)
        record["updated_at"] = datetime.now(timezone.utc)
        return dict(record)

    async def delete_by_id(self, identifier: str) -> Optional[Dict[str, Any]]:
        self._count("delete_by_id")
        record = self.records.pop(identifier, None)
        return dict(record) if record else None


class InMemoryStore:
    """Store of record holding one in-memory collection per entity kind."""

    def __init__(self):
        self._collections = {
            spec.name: InMemoryCollection(spec) for spec in (USERS_COLLECTION, NOTES_COLLECTION)
        }
        self.started = False

    def collection(self, name: str) -> InMemoryCollection:
        return self._collections[name]

    async def start(self):
        self.started = True

    async def stop(self):
        self.started = False

    async def health_check(self) -> bool:
        return True


@pytest.fixture
def cache():
    """In-memory cache store."""
    return InMemoryCache()


@pytest.fixture
def store():
    """In-memory store of record."""
    return InMemoryStore()


@pytest.fixture
def notes_collection(store):
    return store.collection("notes")


@pytest.fixture
def users_collection(store):
    return store.collection("users")


@pytest.fixture
def hasher():
    """Password hasher with a low iteration count to keep tests fast."""
    return PasswordHasher(iterations=1000)


@pytest.fixture
def notes(notes_collection, cache):
    """Notes coordinator with the default stale-until-TTL policy."""
    return NotesCoordinator(notes_collection, cache, ttl_seconds=3600)


@pytest.fixture
def users(users_collection, cache, hasher):
    """Users coordinator with the default stale-until-TTL policy."""
    return UsersCoordinator(users_collection, cache, hasher, ttl_seconds=3600)


@pytest.fixture
def service_config():
    """Service configuration for route tests."""
    return get_config("notekeeper", password_hash_iterations=1000, env="test")
