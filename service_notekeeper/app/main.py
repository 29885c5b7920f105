"""
Notekeeper service: users and notes over a cache-first coordinator.
"""

from typing import Optional

from notekeeper_shared.base_service import BaseService
from notekeeper_shared.config import ServiceConfig

from .cache.redis_cache import CacheStore, RedisCache
from .coordinators import NotesCoordinator, UsersCoordinator
from .models import (
    CreateNoteRequest,
    CreateUserRequest,
    LoginRequest,
    UpdateNoteRequest,
    UpdateUserRequest,
)
from .persistence import NOTES_COLLECTION, USERS_COLLECTION, PostgresDocumentStore
from .security.passwords import PasswordHasher


class NotekeeperService(BaseService):
    """Notekeeper service implementation.

    The cache client and the store of record are process-wide handles,
    opened in ``start`` and closed in ``stop``. Both can be passed in
    explicitly; otherwise they are built from configuration.
    """

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        cache: Optional[CacheStore] = None,
        store: Optional[PostgresDocumentStore] = None,
    ):
        super().__init__("notekeeper", config)

        self.cache = cache or RedisCache(
            host=self.config.redis_host,
            port=self.config.redis_port,
            db=self.config.redis_db,
            password=self.config.redis_password
        )
        self.store = store or PostgresDocumentStore(
            self.config.postgres_dsn,
            collections=[USERS_COLLECTION, NOTES_COLLECTION],
            min_size=self.config.postgres_min_pool_size,
            max_size=self.config.postgres_max_pool_size,
            command_timeout=self.config.postgres_command_timeout
        )
        self.hasher = PasswordHasher(self.config.password_hash_iterations)

        self.users = UsersCoordinator(
            self.store.collection(USERS_COLLECTION.name),
            self.cache,
            self.hasher,
            ttl_seconds=self.config.users_cache_ttl_seconds,
            invalidate_on_write=self.config.cache_invalidate_on_write,
            metrics=self.metrics
        )
        self.notes = NotesCoordinator(
            self.store.collection(NOTES_COLLECTION.name),
            self.cache,
            ttl_seconds=self.config.notes_cache_ttl_seconds,
            invalidate_on_write=self.config.cache_invalidate_on_write,
            metrics=self.metrics
        )

        self._setup_notekeeper_routes()

    def _setup_notekeeper_routes(self):
        """Set up user and note routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "notekeeper",
                "message": "Notekeeper - users and notes",
                "version": "1.0.0",
                "capabilities": ["users", "notes", "caching", "persistence"]
            }

        # Users

        @self.app.get("/users")
        async def get_all_users():
            return await self.users.list_all()

        @self.app.post("/users/register", status_code=201)
        async def register_user(request: CreateUserRequest):
            return await self.users.create(request)

        @self.app.post("/users/login")
        async def login(request: LoginRequest):
            return await self.users.login(request)

        @self.app.get("/users/{user_id}")
        async def get_user_by_id(user_id: str):
            return await self.users.get_by_id(user_id)

        @self.app.patch("/users/{user_id}")
        async def update_user(user_id: str, request: UpdateUserRequest):
            return await self.users.update(user_id, request)

        @self.app.delete("/users/{user_id}")
        async def delete_user_by_id(user_id: str):
            return await self.users.delete(user_id)

        # Notes

        @self.app.get("/notes")
        async def get_all_notes():
            return await self.notes.list_all()

        @self.app.post("/notes/create", status_code=201)
        async def create_note(request: CreateNoteRequest):
            return await self.notes.create(request)

        @self.app.get("/notes/{note_id}")
        async def get_note_by_id(note_id: str):
            return await self.notes.get_by_id(note_id)

        @self.app.put("/notes/{note_id}")
        async def update_note(note_id: str, request: UpdateNoteRequest):
            return await self.notes.update(note_id, request)

        @self.app.delete("/notes/{note_id}")
        async def delete_note(note_id: str):
            return await self.notes.delete(note_id)

    async def _check_dependencies(self):
        """Check Notekeeper dependencies."""
        dependencies = {}

        try:
            dependencies["redis"] = "ok" if await self.cache.health_check() else "error"
        except Exception:
            dependencies["redis"] = "error"

        try:
            dependencies["postgres"] = "ok" if await self.store.health_check() else "error"
        except Exception:
            dependencies["postgres"] = "error"

        return dependencies

    async def start(self):
        """Open the store of record and the cache client."""
        await self.store.start()
        await self.cache.start()

        self.logger.info(
            "Notekeeper service started",
            env=self.config.env,
            port=self.config.port,
            cache_invalidate_on_write=self.config.cache_invalidate_on_write
        )

    async def stop(self):
        """Close the store of record and the cache client."""
        try:
            await self.store.stop()
        finally:
            await self.cache.stop()

        self.logger.info("Notekeeper service stopped")


def create_app(
    config: Optional[ServiceConfig] = None,
    *,
    cache: Optional[CacheStore] = None,
    store: Optional[PostgresDocumentStore] = None,
):
    """Create Notekeeper service application."""
    service = NotekeeperService(config, cache=cache, store=store)
    return service.app


def main():
    NotekeeperService().run()


if __name__ == "__main__":
    main()
