"""
Unit tests for the merge resolver, against an in-memory DuckDB note store.
"""

from unittest.mock import patch

import pytest

from notesync.database import DatabaseManager
from notesync.errors import ConflictError, IdentityError
from notesync.models import Document, MergeOutcome, OutgoingLink, SourceCategory, StoredNote, UserSource
from notesync.sync import MergeResolver


@pytest.fixture
def db():
    with DatabaseManager(":memory:") as database:
        database.initialize_database()
        yield database


@pytest.fixture
def resolver(db):
    return MergeResolver(db, "u1")


def make_document(title="Note", slug="u1-1000", content="[]", file_path=None, **kwargs):
    return Document(
        title=title,
        slug=slug,
        content=content,
        file_ctime=1000,
        file_mtime=1000,
        file_path=file_path or f"{title}.md",
        **kwargs
    )


def store_foreign_note(db, slug="u1-1000", title="Clipped page", access_to=None):
    """Insert a note that some other pipeline created for user u1."""
    return db.insert_note(StoredNote(
        slug=slug,
        title=title,
        content="clipped",
        source_type="link",
        source_category=SourceCategory(category="web", sub_category="clipper", extension=""),
        created_by="u1",
        access_to=access_to if access_to is not None else ["u1"]
    ))


def test_new_then_update(db, resolver):
    first = resolver.sync([make_document(content='["v1"]')])

    assert first.success
    assert first.data.new_files == ["Note"]
    assert first.data.sync_count == 1
    assert first.data.file_sync_time["Note"] is not None

    stored = db.find_note_by_slug("u1-1000")
    assert stored.content == '["v1"]'
    assert stored.published is False
    assert stored.created_by == "u1"
    assert stored.access_to == ["u1"]
    assert db.get_user_source(stored.source_id, "u1").in_local is True

    second = resolver.sync([make_document(content='["v2"]')])

    assert second.success
    assert second.data.new_files == []
    assert second.data.synced_files == ["Note"]

    updated = db.find_note_by_slug("u1-1000")
    assert updated.source_id == stored.source_id
    assert updated.ctime == stored.ctime
    assert updated.content == '["v2"]'
    assert len(db.list_notes()) == 1


def test_resolve_outcomes(resolver):
    assert resolver.resolve(make_document()).outcome == MergeOutcome.NEW
    assert resolver.resolve(make_document()).outcome == MergeOutcome.UPDATE


def test_conflict_leaves_store_unchanged(db, resolver):
    source_id = store_foreign_note(db)

    response = resolver.sync([make_document()])

    assert response.success
    assert response.data.sync_count == 0
    assert len(response.data.replacement_notes) == 1
    assert response.data.replacement_notes[0]["title"] == "Note"
    assert response.data.replacement_notes[0]["can_overwrite"] is True
    assert response.data.file_sync_time["Note"] is None

    stored = db.find_note_by_slug("u1-1000")
    assert stored.source_id == source_id
    assert stored.title == "Clipped page"
    assert stored.source_category.category == "web"


def test_confirmed_override_replaces_conflicting_note(db, resolver):
    source_id = store_foreign_note(db)

    response = resolver.sync([make_document()], can_override=True)

    assert response.data.synced_files == ["Note"]
    stored = db.find_note_by_slug("u1-1000")
    assert stored.source_id == source_id
    assert stored.title == "Note"
    assert stored.source_category == SourceCategory()


def test_conflict_can_raise(db, resolver):
    store_foreign_note(db)

    with pytest.raises(ConflictError):
        resolver.resolve(make_document(), raise_on_conflict=True)


def test_rename_is_reported_and_not_applied(db, resolver):
    response = resolver.sync([make_document(temp_title="Old name")])

    assert response.data.renamed_notes == ["Note"]
    assert response.data.sync_count == 0
    assert db.list_notes() == []


def test_internal_link_ids_are_resolved(db, resolver):
    resolver.sync([make_document(title="Target", slug="u1-2000")])
    target = db.find_note_by_slug("u1-2000")

    links = [OutgoingLink(slug="u1-2000"), OutgoingLink(slug="Python_(programming_language)")]
    resolver.sync([make_document(internal_links=links)])

    stored = db.find_note_by_slug("u1-1000")
    assert stored.internal_links[0].id == target.source_id
    assert stored.internal_links[1].id is None


def test_failed_note_does_not_stop_batch(db, resolver):
    insert_note = db.insert_note

    def flaky_insert(note):
        if note.title == "Bad":
            raise RuntimeError("disk full")
        return insert_note(note)

    with patch.object(db, "insert_note", side_effect=flaky_insert):
        response = resolver.sync([make_document(title="Bad", slug="u1-1"), make_document(title="Good", slug="u1-2")])

    assert not response.success
    assert response.message == "Sync failed for 1 of 2 notes."
    assert response.data.failed_notes == {"Bad.md": "disk full"}
    assert response.data.new_files == ["Good"]
    assert [note.title for note in db.list_notes()] == ["Good"]


def test_failed_note_is_rolled_back(db, resolver):
    with patch.object(db, "add_user_source", side_effect=RuntimeError("constraint")):
        response = resolver.sync([make_document()])

    assert response.data.failed_notes == {"Note.md": "constraint"}
    assert db.find_note_by_slug("u1-1000") is None


def test_failed_notes_are_keyed_by_path(db, resolver):
    documents = [
        make_document(title="Plan", slug="u1-1", file_path="Work/Plan.md"),
        make_document(title="Plan", slug="u1-2", file_path="Home/Plan.md"),
    ]

    with patch.object(db, "insert_note", side_effect=RuntimeError("disk full")):
        response = resolver.sync(documents)

    assert response.data.failed_notes == {"Work/Plan.md": "disk full", "Home/Plan.md": "disk full"}


def test_note_removed_in_app_is_flagged_local_again(db, resolver):
    # Own note the user removed from their collection in the app
    source_id = db.insert_note(StoredNote(slug="u1-1000", title="Note", created_by="u1", access_to=[]))
    db.add_user_source(UserSource(source_id=source_id, saved_by="u1", in_local=False))

    response = resolver.sync([make_document()])

    assert response.data.synced_files == ["Note"]
    assert db.get_user_source(source_id, "u1").in_local is True


def test_missing_user_raises(db):
    resolver = MergeResolver(db, "")

    with pytest.raises(IdentityError):
        resolver.sync([make_document()])
    assert db.list_notes() == []


def test_response_serializes_with_client_keys(resolver):
    response = resolver.sync([make_document()])

    data = response.model_dump(mode="json", by_alias=True)["data"]
    assert data["newFiles"] == ["Note"]
    assert data["syncCount"] == 1
    assert "failedNotes" in data
