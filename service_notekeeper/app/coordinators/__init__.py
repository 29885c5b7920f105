"""
Entity access coordinators.

One coordinator per entity kind mediates cache-first reads and
direct-to-store writes.
"""

from .base import EntityCoordinator, coordinator_boundary
from .notes import NotesCoordinator
from .users import UsersCoordinator

__all__ = [
    "EntityCoordinator",
    "coordinator_boundary",
    "NotesCoordinator",
    "UsersCoordinator",
]
