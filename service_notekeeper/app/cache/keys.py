"""
Cache key derivation.

Keys have the form ``<prefix>:<id>``. Prefixes are fixed per entity kind so
user and note namespaces never collide, even for equal identifiers. The
identifier is used exactly as issued by the store: no trimming and no case
folding.
"""

from ..models import EntityKind

USER_CACHE_PREFIX = "user"
NOTE_CACHE_PREFIX = "note"

CACHE_PREFIXES = {
    EntityKind.USERS: USER_CACHE_PREFIX,
    EntityKind.NOTES: NOTE_CACHE_PREFIX,
}


def derive_key(kind: EntityKind, identifier: str) -> str:
    """Map (kind, identifier) to its cache key."""
    return f"{CACHE_PREFIXES[kind]}:{identifier}"
