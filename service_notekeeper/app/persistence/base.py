"""
Store-of-record contract shared by the Postgres adapter and test doubles.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Tuple

# Identifiers are issued by the store as canonical UUID strings.
_IDENTIFIER_RE = re.compile(
    r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
)


def is_valid_identifier(value: Any) -> bool:
    """Check that a value has the shape of a store-issued identifier."""
    return isinstance(value, str) and bool(_IDENTIFIER_RE.fullmatch(value))


class DuplicateKeyError(Exception):
    """Raised when a write violates a unique index."""

    def __init__(self, collection: str, constraint: Optional[str] = None):
        self.collection = collection
        self.constraint = constraint
        super().__init__(f"Duplicate key in {collection}: {constraint or 'unknown constraint'}")


@dataclass(frozen=True)
class UniqueField:
    """A document field that must be unique within its collection."""
    name: str
    case_insensitive: bool = False


@dataclass(frozen=True)
class CollectionSpec:
    """Definition of one collection (one per entity kind)."""
    name: str
    unique_fields: Tuple[UniqueField, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not re.fullmatch(r"[a-z_]+", self.name):
            raise ValueError(f"Invalid collection name: {self.name}")
        for unique in self.unique_fields:
            if not re.fullmatch(r"[a-z_]+", unique.name):
                raise ValueError(f"Invalid unique field name: {unique.name}")


Record = Dict[str, Any]


class DocumentCollection(Protocol):
    """Persistent collection keyed by a store-generated identifier.

    Records are plain dicts carrying ``id``, ``created_at``, ``updated_at`` and
    the document fields.
    """

    name: str

    async def insert(self, document: Dict[str, Any]) -> Record:
        ...

    async def find_by_id(self, identifier: str) -> Optional[Record]:
        ...

    async def find_one(self, field_name: str, value: str, case_insensitive: bool = False) -> Optional[Record]:
        ...

    async def find_all(self) -> List[Record]:
        ...

    async def update_by_id(self, identifier: str, changes: Dict[str, Any]) -> Optional[Record]:
        ...

    async def delete_by_id(self, identifier: str) -> Optional[Record]:
        ...
