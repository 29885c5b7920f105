"""
Notes coordinator.
"""

from notekeeper_shared.errors import ConflictError, InvalidIdentifierError

from ..models import CreateNoteRequest, EntityKind, Envelope, Note
from ..persistence.base import is_valid_identifier
from .base import EntityCoordinator, coordinator_boundary


class NotesCoordinator(EntityCoordinator[Note]):
    """Cache-first reads and direct writes for notes."""

    kind = EntityKind.NOTES
    entity_model = Note
    label = "note"
    mutable_fields = ("title", "content")
    messages = {
        "created": "Note successfully created",
        "fetched": "Fetched note successfully",
        "fetched_all": "Fetched all notes successfully",
        "updated": "Note successfully updated",
        "deleted": "Note deleted successfully",
        "conflict": "The title name already exists",
        "empty_update": "Kindly tell us the title or the content",
    }

    @coordinator_boundary("Unable to create {label}, try again")
    async def create(self, payload: CreateNoteRequest) -> Envelope[Note]:
        """Create a note whose title is unique ignoring case.

        The title check is a plain query ahead of the insert, so two
        concurrent creates can both pass it; the unique index on
        ``lower(title)`` then rejects the loser with a conflict.
        """
        self._require_fields(payload, ("title", "content", "user_id"), "Title, content and userId are required")

        if not is_valid_identifier(payload.user_id):
            raise InvalidIdentifierError(payload.user_id, "Invalid / bad userId format")

        self._record_store("find_one")
        if await self.collection.find_one("title", payload.title, case_insensitive=True):
            raise ConflictError(self.messages["conflict"], {"title": payload.title})

        record = await self._insert({
            "title": payload.title,
            "content": payload.content,
            "user_id": payload.user_id,
        })

        self.logger.info("Note created", id=record["id"], user_id=payload.user_id)
        return self._envelope(self._to_entity(record), self.messages["created"])
