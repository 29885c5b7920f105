"""
Entity access coordinator: cache-first reads, direct-to-store writes.

Read path (``get_by_id``)::

    derive key -> cache get
        hit  -> deserialize envelope, return (no store access, no id check)
        miss -> validate id -> store find -> build envelope
                -> cache set with the kind's TTL -> return live envelope

Writes go straight to the store of record. By default a successful update or
delete leaves any cached copy in place, so a read through the cache can
return the pre-mutation value until the entry's TTL lapses. Reads against the
store are always fresh. ``invalidate_on_write`` switches on synchronous
eviction after update and delete.

Typed failures (``InvalidIdentifierError``, ``NotFoundError``,
``ConflictError``, ``ValidationError``, ``AuthenticationError``) propagate
unchanged. Anything else raised by the store, the cache or the password
hasher is logged and surfaced as ``OperationFailedError``.
"""

import functools
from typing import Any, Dict, Generic, Optional, Tuple, Type

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from notekeeper_shared.errors import (
    ConflictError,
    InvalidIdentifierError,
    NotekeeperException,
    NotFoundError,
    OperationFailedError,
    ValidationError,
)
from notekeeper_shared.logging import get_logger
from notekeeper_shared.metrics import MetricsCollector

from ..cache.keys import derive_key
from ..cache.redis_cache import CacheStore
from ..models import EntityKind, EntityT, Envelope
from ..persistence.base import DocumentCollection, DuplicateKeyError, Record, is_valid_identifier


def coordinator_boundary(failure_message: str):
    """Normalize unexpected errors to OperationFailedError.

    ``failure_message`` may reference ``{label}``, the coordinator's entity
    label.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self: "EntityCoordinator", *args, **kwargs):
            message = failure_message.format(label=self.label)
            try:
                return await func(self, *args, **kwargs)
            except NotekeeperException:
                raise
            except Exception as e:
                self.logger.error(message, operation=func.__name__, error=str(e), exc_info=True)
                raise OperationFailedError(message, {"operation": func.__name__}) from e

        return wrapper

    return decorator


class EntityCoordinator(Generic[EntityT]):
    """Coordinates the cache and the store of record for one entity kind."""

    kind: EntityKind
    entity_model: Type[EntityT]
    label: str = "entity"
    mutable_fields: Tuple[str, ...] = ()
    messages: Dict[str, str] = {}

    def __init__(
        self,
        collection: DocumentCollection,
        cache: CacheStore,
        *,
        ttl_seconds: int = 3600,
        invalidate_on_write: bool = False,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.collection = collection
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.invalidate_on_write = invalidate_on_write
        self.metrics = metrics
        self.envelope_model = Envelope[self.entity_model]
        self.logger = get_logger(f"notekeeper.coordinators.{self.kind.value}")

    # Read path

    @coordinator_boundary("Unable to get your {label}, try again")
    async def get_by_id(self, identifier: str) -> Envelope[EntityT]:
        """Cache-first lookup by identifier."""
        cache_key = derive_key(self.kind, identifier)

        cached = await self.cache.get(cache_key)
        if cached is not None:
            envelope = self._deserialize(cache_key, cached)
            if envelope is not None:
                self._record_cache("hit")
                self.logger.debug("Cache hit", cache_key=cache_key)
                return envelope

        self._record_cache("miss")
        self._require_valid_identifier(identifier)

        record = await self._find_existing(identifier)
        envelope = self._envelope(self._to_entity(record), self.messages["fetched"])

        stored = await self.cache.set(cache_key, self._serialize(envelope), self.ttl_seconds)
        if stored:
            self.logger.debug("Cache populated", cache_key=cache_key, ttl=self.ttl_seconds)
        else:
            self.logger.warning("Cache population skipped", cache_key=cache_key)

        return envelope

    @coordinator_boundary("Unable to fetch all {label}s, try again")
    async def list_all(self) -> Envelope[EntityT]:
        """Load every entity straight from the store; the cache is not consulted."""
        self._record_store("find_all")
        records = await self.collection.find_all()
        return self._envelope([self._to_entity(record) for record in records], self.messages["fetched_all"])

    # Write path

    @coordinator_boundary("Unable to update {label}, try again")
    async def update(self, identifier: str, payload: BaseModel) -> Envelope[EntityT]:
        """Apply a partial update and return the post-mutation entity."""
        self._require_valid_identifier(identifier)
        changes = await self._prepare_changes(payload)

        await self._find_existing(identifier)

        self._record_store("update_by_id")
        try:
            updated = await self.collection.update_by_id(identifier, changes)
        except DuplicateKeyError as e:
            raise ConflictError(self.messages["conflict"], {"constraint": e.constraint}) from e

        if updated is None:
            raise NotFoundError(f"{self.label.title()} not found or update failed", {"id": identifier})

        await self._after_write(identifier)
        self.logger.info(f"{self.label.title()} updated", id=identifier, fields=sorted(changes))
        return self._envelope(self._to_entity(updated), self.messages["updated"])

    @coordinator_boundary("Unable to delete your {label}, try again")
    async def delete(self, identifier: str) -> Envelope[EntityT]:
        """Atomically remove an entity and return the removed record."""
        self._require_valid_identifier(identifier)

        self._record_store("delete_by_id")
        removed = await self.collection.delete_by_id(identifier)
        if removed is None:
            raise NotFoundError(f"{self.label.title()} with id: {identifier} not found", {"id": identifier})

        await self._after_write(identifier)
        self.logger.info(f"{self.label.title()} deleted", id=identifier)
        return self._envelope(self._to_entity(removed), self.messages["deleted"])

    # Helpers

    async def _insert(self, document: Dict[str, Any]) -> Record:
        """Insert into the store, turning unique-index violations into conflicts."""
        self._record_store("insert")
        try:
            return await self.collection.insert(document)
        except DuplicateKeyError as e:
            raise ConflictError(self.messages["conflict"], {"constraint": e.constraint}) from e

    async def _find_existing(self, identifier: str) -> Record:
        self._record_store("find_by_id")
        record = await self.collection.find_by_id(identifier)
        if record is None:
            raise NotFoundError(f"{self.label.title()} with id: {identifier} not found", {"id": identifier})
        return record

    async def _prepare_changes(self, payload: BaseModel) -> Dict[str, Any]:
        """Collect the mutable fields the payload actually sets."""
        changes = {
            name: value
            for name, value in payload.model_dump(include=set(self.mutable_fields)).items()
            if value is not None and value != ""
        }
        if not changes:
            raise ValidationError(
                self.messages["empty_update"],
                {"mutable_fields": list(self.mutable_fields)}
            )
        return changes

    async def _after_write(self, identifier: str):
        """Evict the cached copy when write invalidation is enabled."""
        if not self.invalidate_on_write:
            return
        cache_key = derive_key(self.kind, identifier)
        if not await self.cache.delete(cache_key):
            self.logger.debug("No cache entry evicted", cache_key=cache_key)

    @staticmethod
    def _require_valid_identifier(identifier: str):
        if not is_valid_identifier(identifier):
            raise InvalidIdentifierError(identifier)

    @staticmethod
    def _require_fields(payload: BaseModel, required: Tuple[str, ...], message: str):
        missing = [name for name in required if not getattr(payload, name)]
        if missing:
            raise ValidationError(message, {"missing": missing})

    def _to_entity(self, record: Record) -> EntityT:
        return self.entity_model.model_validate(record)

    def _envelope(self, data, message: str) -> Envelope[EntityT]:
        return self.envelope_model(data=data, message=message)

    @staticmethod
    def _serialize(envelope: Envelope[EntityT]) -> bytes:
        return envelope.model_dump_json().encode("utf-8")

    def _deserialize(self, cache_key: str, raw: bytes) -> Optional[Envelope[EntityT]]:
        """Parse a cached envelope; a corrupt entry reads as a miss."""
        try:
            return self.envelope_model.model_validate_json(raw)
        except PydanticValidationError as e:
            self._record_cache("corrupt")
            self.logger.warning("Discarding unreadable cache entry", cache_key=cache_key, error=str(e))
            return None

    def _record_cache(self, result: str):
        if self.metrics:
            self.metrics.record_cache_lookup(self.kind.value, result)

    def _record_store(self, operation: str):
        if self.metrics:
            self.metrics.record_store_operation(self.kind.value, operation)
