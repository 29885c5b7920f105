"""
Persistence package for the Notekeeper service.

The store of record is PostgreSQL: one JSONB document table per entity kind,
with unique indexes backing the uniqueness rules checked on create.
"""

from .base import (
    CollectionSpec,
    DocumentCollection,
    DuplicateKeyError,
    UniqueField,
    is_valid_identifier,
)
from .postgres import PostgresCollection, PostgresDocumentStore

USERS_COLLECTION = CollectionSpec(
    name="users",
    unique_fields=(UniqueField("email"), UniqueField("username")),
)

NOTES_COLLECTION = CollectionSpec(
    name="notes",
    unique_fields=(UniqueField("title", case_insensitive=True),),
)

__all__ = [
    "CollectionSpec",
    "DocumentCollection",
    "DuplicateKeyError",
    "UniqueField",
    "is_valid_identifier",
    "PostgresCollection",
    "PostgresDocumentStore",
    "USERS_COLLECTION",
    "NOTES_COLLECTION",
]
