"""
Unit tests for the notes coordinator: cache-first reads and direct writes.
"""

import uuid
import pytest
from unittest.mock import AsyncMock, patch

from notekeeper_shared.errors import (
    ConflictError,
    InvalidIdentifierError,
    NotFoundError,
    OperationFailedError,
    ValidationError,
)
from notekeeper_shared.metrics import MetricsCollector
from service_notekeeper.app.coordinators import NotesCoordinator
from service_notekeeper.app.models import CreateNoteRequest, Envelope, Note, UpdateNoteRequest


OWNER_ID = str(uuid.uuid4())


def note_request(title="A", content="B", user_id=OWNER_ID):
    return CreateNoteRequest(title=title, content=content, user_id=user_id)


class TestNotesReadPath:
    """Cache-first lookups by identifier."""

    @pytest.mark.asyncio
    async def test_cache_hit_skips_store(self, notes, notes_collection, cache):
        """A present entry is returned without touching the store."""
        note_id = str(uuid.uuid4())
        cached = Envelope[Note](
            data=Note(id=note_id, title="Cached", content="from cache", user_id=OWNER_ID),
            message="Fetched note successfully"
        )
        await cache.set(f"note:{note_id}", cached.model_dump_json().encode(), 3600)

        with patch.object(notes_collection, "find_by_id", new_callable=AsyncMock) as mock_find:
            result = await notes.get_by_id(note_id)

        assert result == cached
        mock_find.assert_not_called()

    @pytest.mark.asyncio
    async def test_cache_hit_does_not_validate_identifier(self, notes, cache):
        """The hit path returns whatever sits under the key, even for malformed ids."""
        cached = Envelope[Note](
            data=Note(id="not-a-valid-id", title="Odd", content="entry", user_id=OWNER_ID),
            message="Fetched note successfully"
        )
        await cache.set("note:not-a-valid-id", cached.model_dump_json().encode(), 3600)

        result = await notes.get_by_id("not-a-valid-id")

        assert result.data.title == "Odd"

    @pytest.mark.asyncio
    async def test_cache_miss_populates_with_ttl(self, notes, notes_collection, cache):
        """A miss reads the store and writes the envelope under the derived key."""
        created = await notes.create(note_request())
        note_id = created.data.id

        first = await notes.get_by_id(note_id)

        assert first.message == "Fetched note successfully"
        assert first.data.title == "A"
        assert len(cache.set_calls) == 1
        key, value, ttl = cache.set_calls[0]
        assert key == f"note:{note_id}"
        assert ttl == 3600
        assert Envelope[Note].model_validate_json(value) == first

        second = await notes.get_by_id(note_id)

        assert second == first
        assert notes_collection.calls["find_by_id"] == 1

    @pytest.mark.asyncio
    async def test_configured_ttl_is_used(self, notes_collection, cache):
        """The TTL comes from the coordinator's configuration."""
        coordinator = NotesCoordinator(notes_collection, cache, ttl_seconds=120)
        created = await coordinator.create(note_request())

        await coordinator.get_by_id(created.data.id)

        assert cache.set_calls[0][2] == 120

    @pytest.mark.asyncio
    async def test_invalid_identifier_on_miss(self, notes, notes_collection):
        """A malformed id on a miss is rejected before the store is queried."""
        with pytest.raises(InvalidIdentifierError) as exc_info:
            await notes.get_by_id("not-a-valid-id")

        assert exc_info.value.code == "INVALID_IDENTIFIER"
        assert "find_by_id" not in notes_collection.calls

    @pytest.mark.asyncio
    async def test_identifier_with_trailing_newline_is_invalid(self, notes, notes_collection):
        """Only the whole string may match the identifier shape."""
        with pytest.raises(InvalidIdentifierError):
            await notes.get_by_id(str(uuid.uuid4()) + "\n")

        assert "find_by_id" not in notes_collection.calls

    @pytest.mark.asyncio
    async def test_typed_failure_is_not_logged_by_coordinator(self, notes):
        """Typed failures are left to the HTTP layer to log."""
        with patch.object(notes, "logger") as mock_logger:
            with pytest.raises(NotFoundError):
                await notes.get_by_id(str(uuid.uuid4()))

        mock_logger.warning.assert_not_called()
        mock_logger.error.assert_not_called()

    @pytest.mark.asyncio
    async def test_not_found_on_miss(self, notes, cache):
        """A well-formed id with no record fails with NotFound and caches nothing."""
        with pytest.raises(NotFoundError):
            await notes.get_by_id(str(uuid.uuid4()))

        assert cache.set_calls == []

    @pytest.mark.asyncio
    async def test_expired_entry_reads_through(self, notes, notes_collection, cache):
        """Once the TTL lapses the next read goes back to the store."""
        created = await notes.create(note_request())
        await notes.get_by_id(created.data.id)

        cache.advance(3601)
        await notes.get_by_id(created.data.id)

        assert notes_collection.calls["find_by_id"] == 2
        assert len(cache.set_calls) == 2

    @pytest.mark.asyncio
    async def test_unreadable_cache_entry_is_a_miss(self, notes, cache):
        """Garbage under a key is discarded and replaced from the store."""
        created = await notes.create(note_request())
        key = f"note:{created.data.id}"
        await cache.set(key, b"{not json", 3600)

        result = await notes.get_by_id(created.data.id)

        assert result.data.title == "A"
        assert cache.set_calls[-1][0] == key

    @pytest.mark.asyncio
    async def test_store_failure_is_operation_failed(self, notes, notes_collection):
        """Unexpected store errors are normalized at the coordinator boundary."""
        with patch.object(notes_collection, "find_by_id", new_callable=AsyncMock) as mock_find:
            mock_find.side_effect = RuntimeError("connection reset")

            with pytest.raises(OperationFailedError) as exc_info:
                await notes.get_by_id(str(uuid.uuid4()))

        assert exc_info.value.message == "Unable to get your note, try again"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_list_all_bypasses_cache(self, notes, cache):
        """Listing reads the store only."""
        await notes.create(note_request(title="One"))
        await notes.create(note_request(title="Two"))

        result = await notes.list_all()

        assert result.message == "Fetched all notes successfully"
        assert sorted(note.title for note in result.data) == ["One", "Two"]
        assert cache.get_calls == []

    @pytest.mark.asyncio
    async def test_cache_metrics_recorded(self, notes_collection, cache):
        """Hits and misses are counted per entity kind."""
        metrics = MetricsCollector("notekeeper")
        coordinator = NotesCoordinator(notes_collection, cache, metrics=metrics)
        created = await coordinator.create(note_request())

        await coordinator.get_by_id(created.data.id)
        await coordinator.get_by_id(created.data.id)

        registry = metrics.registry
        assert registry.get_sample_value("cache_lookups_total", {"kind": "notes", "result": "miss"}) == 1
        assert registry.get_sample_value("cache_lookups_total", {"kind": "notes", "result": "hit"}) == 1


class TestNotesWritePath:
    """Create, update and delete against the store of record."""

    @pytest.mark.asyncio
    async def test_create_returns_generated_id(self, notes, cache):
        """Creating a note returns the stored record and leaves the cache alone."""
        result = await notes.create(note_request())

        assert result.message == "Note successfully created"
        assert result.data.title == "A"
        assert result.data.content == "B"
        assert result.data.user_id == OWNER_ID
        assert uuid.UUID(result.data.id)
        assert cache.set_calls == []
        assert cache.get_calls == []

    @pytest.mark.asyncio
    async def test_create_title_conflict_ignores_case(self, notes):
        """A second note titled "foo" conflicts with "Foo"."""
        await notes.create(note_request(title="Foo"))

        with pytest.raises(ConflictError):
            await notes.create(note_request(title="foo"))

    @pytest.mark.asyncio
    async def test_create_unique_index_backs_precheck(self, notes, notes_collection):
        """A duplicate that slips past the pre-check still surfaces as a conflict."""
        await notes.create(note_request(title="Race"))

        with patch.object(notes_collection, "find_one", new_callable=AsyncMock) as mock_find_one:
            mock_find_one.return_value = None

            with pytest.raises(ConflictError):
                await notes.create(note_request(title="RACE"))

    @pytest.mark.asyncio
    async def test_create_requires_fields(self, notes):
        """Title, content and owner are all required."""
        with pytest.raises(ValidationError) as exc_info:
            await notes.create(CreateNoteRequest(title="Only title"))

        assert exc_info.value.details["missing"] == ["content", "user_id"]

    @pytest.mark.asyncio
    async def test_create_rejects_malformed_owner(self, notes):
        """The owning user id must be a store identifier."""
        with pytest.raises(InvalidIdentifierError):
            await notes.create(note_request(user_id="12345"))

    @pytest.mark.asyncio
    async def test_create_accepts_camel_case_owner(self):
        """Request bodies may spell the owner as userId."""
        payload = CreateNoteRequest.model_validate({"title": "A", "content": "B", "userId": OWNER_ID})

        assert payload.user_id == OWNER_ID

    @pytest.mark.asyncio
    async def test_update_returns_post_mutation_record(self, notes):
        """Update merges the given fields and returns the fresh record."""
        created = await notes.create(note_request())

        result = await notes.update(created.data.id, UpdateNoteRequest(content="changed"))

        assert result.message == "Note successfully updated"
        assert result.data.title == "A"
        assert result.data.content == "changed"

    @pytest.mark.asyncio
    async def test_update_validates_identifier(self, notes):
        with pytest.raises(InvalidIdentifierError):
            await notes.update("bad-id", UpdateNoteRequest(title="x"))

    @pytest.mark.asyncio
    async def test_update_requires_a_field(self, notes):
        """An update that sets nothing is rejected."""
        created = await notes.create(note_request())

        with pytest.raises(ValidationError):
            await notes.update(created.data.id, UpdateNoteRequest(title="", content=None))

    @pytest.mark.asyncio
    async def test_update_missing_record(self, notes, notes_collection):
        """The existence check fails before any mutation is attempted."""
        with pytest.raises(NotFoundError):
            await notes.update(str(uuid.uuid4()), UpdateNoteRequest(title="x"))

        assert "update_by_id" not in notes_collection.calls

    @pytest.mark.asyncio
    async def test_update_vanishing_record(self, notes, notes_collection):
        """A record removed between the check and the mutation reads as NotFound."""
        created = await notes.create(note_request())

        with patch.object(notes_collection, "update_by_id", new_callable=AsyncMock) as mock_update:
            mock_update.return_value = None

            with pytest.raises(NotFoundError):
                await notes.update(created.data.id, UpdateNoteRequest(title="x"))

    @pytest.mark.asyncio
    async def test_update_leaves_stale_cache_entry(self, notes, notes_collection, cache):
        """After an update the cached copy is served until its TTL lapses."""
        created = await notes.create(note_request())
        note_id = created.data.id
        await notes.get_by_id(note_id)

        updated = await notes.update(note_id, UpdateNoteRequest(title="New title"))
        assert updated.data.title == "New title"

        stale = await notes.get_by_id(note_id)
        assert stale.data.title == "A"
        assert (await notes_collection.find_by_id(note_id))["title"] == "New title"
        assert cache.delete_calls == []

        cache.advance(3600)
        fresh = await notes.get_by_id(note_id)
        assert fresh.data.title == "New title"

    @pytest.mark.asyncio
    async def test_delete_returns_removed_record(self, notes):
        created = await notes.create(note_request())

        result = await notes.delete(created.data.id)

        assert result.message == "Note deleted successfully"
        assert result.data.id == created.data.id

    @pytest.mark.asyncio
    async def test_delete_twice_is_not_found(self, notes):
        """The second delete of the same id fails with NotFound."""
        created = await notes.create(note_request())
        await notes.delete(created.data.id)

        with pytest.raises(NotFoundError):
            await notes.delete(created.data.id)

    @pytest.mark.asyncio
    async def test_delete_validates_identifier(self, notes, notes_collection):
        with pytest.raises(InvalidIdentifierError):
            await notes.delete("not-a-valid-id")

        assert "delete_by_id" not in notes_collection.calls


class TestNotesWriteInvalidation:
    """Opt-in eviction of cached copies after writes."""

    @pytest.fixture
    def hardened_notes(self, notes_collection, cache):
        return NotesCoordinator(notes_collection, cache, ttl_seconds=3600, invalidate_on_write=True)

    @pytest.mark.asyncio
    async def test_update_evicts_entry(self, hardened_notes, cache):
        created = await hardened_notes.create(note_request())
        note_id = created.data.id
        await hardened_notes.get_by_id(note_id)

        await hardened_notes.update(note_id, UpdateNoteRequest(title="New title"))
        result = await hardened_notes.get_by_id(note_id)

        assert cache.delete_calls == [f"note:{note_id}"]
        assert result.data.title == "New title"

    @pytest.mark.asyncio
    async def test_delete_evicts_entry(self, hardened_notes):
        created = await hardened_notes.create(note_request())
        note_id = created.data.id
        await hardened_notes.get_by_id(note_id)

        await hardened_notes.delete(note_id)

        with pytest.raises(NotFoundError):
            await hardened_notes.get_by_id(note_id)


class TestNotesEndToEnd:
    """Create, read, delete and read again through the coordinator."""

    @pytest.mark.asyncio
    async def test_deleted_note_still_served_from_cache(self, notes, notes_collection, cache):
        created = await notes.create(CreateNoteRequest(title="A", content="B", user_id=OWNER_ID))
        note_id = created.data.id
        assert f"note:{note_id}" not in cache.entries

        fetched = await notes.get_by_id(note_id)
        assert fetched.data.model_dump(exclude={"created_at", "updated_at"}) == \
            created.data.model_dump(exclude={"created_at", "updated_at"})
        assert f"note:{note_id}" in cache.entries

        removed = await notes.delete(note_id)
        assert removed.data.id == note_id
        assert await notes_collection.find_by_id(note_id) is None

        stale = await notes.get_by_id(note_id)
        assert stale == fetched

        cache.advance(3600)
        with pytest.raises(NotFoundError):
            await notes.get_by_id(note_id)
