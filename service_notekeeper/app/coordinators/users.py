"""
Users coordinator.

User reads share the cache-first path with notes. Registration and login
talk to the store only, and the password hash is dropped whenever a record
is turned into a :class:`User`.
"""

import re
from typing import Any, Dict, Optional

from pydantic import BaseModel

from notekeeper_shared.errors import AuthenticationError, ConflictError, ValidationError
from notekeeper_shared.metrics import MetricsCollector

from ..cache.redis_cache import CacheStore
from ..models import CreateUserRequest, EntityKind, Envelope, LoginRequest, User
from ..persistence.base import DocumentCollection
from ..security.passwords import PasswordHasher
from .base import EntityCoordinator, coordinator_boundary

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_strong_password(password: str) -> bool:
    """At least 8 characters with lower, upper, digit and symbol."""
    return (
        len(password) >= 8
        and re.search(r"[a-z]", password) is not None
        and re.search(r"[A-Z]", password) is not None
        and re.search(r"[0-9]", password) is not None
        and re.search(r"[^A-Za-z0-9]", password) is not None
    )


class UsersCoordinator(EntityCoordinator[User]):
    """Cache-first reads, registration, login and direct writes for users."""

    kind = EntityKind.USERS
    entity_model = User
    label = "user"
    mutable_fields = ("username", "email", "name", "password")
    messages = {
        "created": "User successfully registered",
        "fetched": "Fetched user successfully",
        "fetched_all": "Fetched all users successfully",
        "updated": "User successfully updated",
        "deleted": "User deleted successfully",
        "logged_in": "User logged in successfully",
        "conflict": "Username or email is already taken",
        "empty_update": "Kindly provide at least one field to update",
    }

    def __init__(
        self,
        collection: DocumentCollection,
        cache: CacheStore,
        hasher: PasswordHasher,
        *,
        ttl_seconds: int = 3600,
        invalidate_on_write: bool = False,
        metrics: Optional[MetricsCollector] = None,
    ):
        super().__init__(
            collection,
            cache,
            ttl_seconds=ttl_seconds,
            invalidate_on_write=invalidate_on_write,
            metrics=metrics,
        )
        self.hasher = hasher

    @coordinator_boundary("Unable to create new {label}")
    async def create(self, payload: CreateUserRequest) -> Envelope[User]:
        """Register a user with a unique email and username."""
        self._require_fields(
            payload,
            ("username", "email", "name", "password"),
            "Username, email, name and password are required"
        )
        self._check_email(payload.email)
        self._check_password(payload.password)

        self._record_store("find_one")
        if await self.collection.find_one("email", payload.email):
            raise ConflictError(
                "User with this email already exists. Please log in or use a different email",
                {"field": "email"}
            )

        self._record_store("find_one")
        if await self.collection.find_one("username", payload.username):
            raise ConflictError("Username is already taken", {"field": "username"})

        password_hash = await self.hasher.hash_async(payload.password)
        record = await self._insert({
            "username": payload.username,
            "email": payload.email,
            "name": payload.name,
            "password_hash": password_hash,
        })

        self.logger.info("User registered", id=record["id"], username=payload.username)
        return self._envelope(self._to_entity(record), self.messages["created"])

    @coordinator_boundary("Unable to log in {label}")
    async def login(self, payload: LoginRequest) -> Envelope[User]:
        """Check credentials against the store of record."""
        if not payload.username or not payload.password:
            raise ValidationError("Kindly input your required details")

        self._record_store("find_one")
        record = await self.collection.find_one("username", payload.username)
        if record is None:
            raise AuthenticationError("Invalid username or password")

        if not await self.hasher.verify_async(payload.password, record.get("password_hash", "")):
            raise AuthenticationError("Invalid username or password")

        self.logger.info("User logged in", id=record["id"])
        return self._envelope(self._to_entity(record), self.messages["logged_in"])

    async def _prepare_changes(self, payload: BaseModel) -> Dict[str, Any]:
        changes = await super()._prepare_changes(payload)

        if "email" in changes:
            self._check_email(changes["email"])

        if "password" in changes:
            self._check_password(changes["password"])
            changes["password_hash"] = await self.hasher.hash_async(changes.pop("password"))

        return changes

    @staticmethod
    def _check_email(email: str):
        if not EMAIL_RE.match(email):
            raise ValidationError("Email address is not valid", {"field": "email"})

    @staticmethod
    def _check_password(password: str):
        if not is_strong_password(password):
            raise ValidationError(
                "Password must be at least 8 characters with upper and lower case letters, a digit and a symbol",
                {"field": "password"}
            )
