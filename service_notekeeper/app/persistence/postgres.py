"""
PostgreSQL persistence layer for Notekeeper.

Each entity kind lives in its own table holding a JSONB document keyed by a
server-generated UUID. Single-row statements give the atomicity the
coordinators rely on: ``UPDATE ... RETURNING`` yields the post-mutation
record and ``DELETE ... RETURNING`` finds and removes in one step.
"""

import json
from typing import Any, Dict, Iterable, List, Optional

import asyncpg

from notekeeper_shared.logging import get_logger
from .base import CollectionSpec, DuplicateKeyError, Record

RESERVED_FIELDS = ("id", "created_at", "updated_at")


async def _init_connection(conn: asyncpg.Connection):
    """Decode JSONB columns to Python objects."""
    await conn.set_type_codec(
        "jsonb",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog"
    )


class PostgresDocumentStore:
    """Owns the connection pool and one collection per entity kind."""

    def __init__(
        self,
        dsn: str,
        collections: Iterable[CollectionSpec],
        min_size: int = 2,
        max_size: int = 10,
        command_timeout: float = 30.0,
    ):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.logger = get_logger("notekeeper.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None
        self._collections = {
            spec.name: PostgresCollection(self, spec) for spec in collections
        }

    def collection(self, name: str) -> "PostgresCollection":
        """Get the collection registered under a name."""
        return self._collections[name]

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=self.command_timeout,
                init=_init_connection
            )

            await self._create_tables()

            self.logger.info("PostgreSQL connection established", collections=list(self._collections))

        except Exception as e:
            self.logger.error("Failed to start PostgreSQL persistence", error=str(e))
            raise RuntimeError(f"Failed to start PostgreSQL persistence: {e}") from e

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL persistence stopped")

    async def _create_tables(self):
        """Create collection tables and unique indexes."""
        async with self.pool.acquire() as conn:
            for spec in self._collections.values():
                await conn.execute(f"""
                    CREATE TABLE IF NOT EXISTS {spec.name} (
                        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                        document JSONB NOT NULL,
                        created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
                        updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                    );
                """)

                for unique in spec.unique_fields:
                    expression = f"(document->>'{unique.name}')"
                    if unique.case_insensitive:
                        expression = f"lower{expression}"
                    await conn.execute(f"""
                        CREATE UNIQUE INDEX IF NOT EXISTS {spec.name}_{unique.name}_key
                        ON {spec.name} (({expression}));
                    """)

    async def health_check(self) -> bool:
        """Check database health."""
        if self.pool is None:
            return False
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception:
            return False


class PostgresCollection:
    """One JSONB document table."""

    def __init__(self, store: PostgresDocumentStore, spec: CollectionSpec):
        self.store = store
        self.spec = spec
        self.name = spec.name
        self.logger = get_logger(f"notekeeper.persistence.{spec.name}")
        self._columns = "id, document, created_at, updated_at"

    @property
    def pool(self) -> asyncpg.Pool:
        if self.store.pool is None:
            raise RuntimeError("PostgreSQL persistence is not started")
        return self.store.pool

    async def insert(self, document: Dict[str, Any]) -> Record:
        """Insert a document and return the stored record."""
        try:
            row = await self.pool.fetchrow(
                f"INSERT INTO {self.name} (document) VALUES ($1::jsonb) RETURNING {self._columns}",
                self._strip_reserved(document)
            )
        except asyncpg.UniqueViolationError as e:
            raise DuplicateKeyError(self.name, getattr(e, "constraint_name", None)) from e

        self.logger.info("Document inserted", id=str(row["id"]))
        return self._row_to_record(row)

    async def find_by_id(self, identifier: str) -> Optional[Record]:
        """Find a document by identifier."""
        row = await self.pool.fetchrow(
            f"SELECT {self._columns} FROM {self.name} WHERE id = $1::uuid",
            identifier
        )
        return self._row_to_record(row) if row else None

    async def find_one(self, field_name: str, value: str, case_insensitive: bool = False) -> Optional[Record]:
        """Find the first document whose field equals a value."""
        if case_insensitive:
            condition = "lower(document->>$1) = lower($2)"
        else:
            condition = "document->>$1 = $2"

        row = await self.pool.fetchrow(
            f"SELECT {self._columns} FROM {self.name} WHERE {condition} LIMIT 1",
            field_name,
            value
        )
        return self._row_to_record(row) if row else None

    async def find_all(self) -> List[Record]:
        """Load every document in the collection."""
        rows = await self.pool.fetch(
            f"SELECT {self._columns} FROM {self.name} ORDER BY created_at ASC"
        )
        return [self._row_to_record(row) for row in rows]

    async def update_by_id(self, identifier: str, changes: Dict[str, Any]) -> Optional[Record]:
        """Merge changes into a document and return the post-mutation record."""
        try:
            row = await self.pool.fetchrow(
                f"""
                UPDATE {self.name}
                SET document = document || $2::jsonb, updated_at = NOW()
                WHERE id = $1::uuid
                RETURNING {self._columns}
                """,
                identifier,
                self._strip_reserved(changes)
            )
        except asyncpg.UniqueViolationError as e:
            raise DuplicateKeyError(self.name, getattr(e, "constraint_name", None)) from e

        if not row:
            return None

        self.logger.info("Document updated", id=identifier)
        return self._row_to_record(row)

    async def delete_by_id(self, identifier: str) -> Optional[Record]:
        """Remove a document and return it, or None when nothing matched."""
        row = await self.pool.fetchrow(
            f"DELETE FROM {self.name} WHERE id = $1::uuid RETURNING {self._columns}",
            identifier
        )
        if not row:
            self.logger.warning("Document not found for deletion", id=identifier)
            return None

        self.logger.info("Document deleted", id=identifier)
        return self._row_to_record(row)

    @staticmethod
    def _strip_reserved(document: Dict[str, Any]) -> Dict[str, Any]:
        return {key: value for key, value in document.items() if key not in RESERVED_FIELDS}

    @staticmethod
    def _row_to_record(row) -> Record:
        """Convert database row to a record dict."""
        record = dict(row["document"])
        record["id"] = str(row["id"])
        record["created_at"] = row["created_at"]
        record["updated_at"] = row["updated_at"]
        return record
