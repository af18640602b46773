"""
Merge resolver for notesync.

Runs on the store side of a sync. For every incoming document it decides
whether the note is new, an update of an earlier sync of the same note, a
rename, or a conflict with a note that came from somewhere else, and applies
the matching change to the note store.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from ..database import DatabaseManager
from ..errors import ConflictError, IdentityError
from ..models import (
    Document,
    MergeOutcome,
    MergeResult,
    OutgoingLink,
    SourceCategory,
    StoredNote,
    SyncResponse,
    SyncResponseData,
    UserSource,
)


class MergeResolver:
    """
    Reconciles incoming documents with the notes already in the store.

    Notes are matched by slug among the notes created by the syncing user. A
    match that was created by this pipeline (same source type and category) is
    updated; any other match is a conflict that needs the user's confirmation.
    """

    def __init__(self, database: DatabaseManager, user_id: Optional[str],
                 source_category: Optional[SourceCategory] = None, source_type: str = "text"):
        """
        Initialize the merge resolver.

        Args:
            database: Connected note store
            user_id: Id of the syncing user
            source_category: Category of notes created by this pipeline
            source_type: Source type of notes created by this pipeline
        """
        self.database = database
        self.user_id = user_id
        self.source_category = source_category or SourceCategory()
        self.source_type = source_type

    def sync(self, documents: List[Document], can_override: bool = False) -> SyncResponse:
        """
        Merge a batch of documents into the store.

        Each document is merged in its own transaction. A document that fails
        is rolled back and reported in ``failedNotes``; the others still sync.

        Args:
            documents: Incoming documents
            can_override: The user confirmed overwriting conflicting notes

        Returns:
            SyncResponse with the per-batch counters

        Raises:
            IdentityError: If no user id is known
        """
        self._require_user()
        data = SyncResponseData()

        for document in documents:
            try:
                result = self.resolve(document, is_override_confirmed=can_override)
            except Exception as e:
                logging.error(f"Failed to sync note {document.file_path}: {e}")
                result = MergeResult(
                    outcome=MergeOutcome.FAILED,
                    slug=document.slug,
                    title=document.title,
                    message=str(e)
                )

            self._record(data, document, result)

        failed = len(data.failed_notes)
        if failed:
            message = f"Sync failed for {failed} of {len(documents)} notes."
        else:
            message = "Notes synced successfully."

        logging.info(
            f"Sync finished: {data.sync_count} synced, {len(data.new_files)} new, "
            f"{len(data.replacement_notes)} conflicts, {failed} failed"
        )
        return SyncResponse(success=failed == 0, message=message, data=data)

    def resolve(self, document: Document, is_override_confirmed: bool = False,
                raise_on_conflict: bool = False) -> MergeResult:
        """
        Merge one document into the store.

        Args:
            document: The incoming document
            is_override_confirmed: Overwrite a conflicting note instead of reporting it
            raise_on_conflict: Raise ConflictError instead of returning a CONFLICT result

        Returns:
            MergeResult describing what happened

        Raises:
            IdentityError: If no user id is known
            ConflictError: On a conflict when raise_on_conflict is set
        """
        self._require_user()

        if document.is_renamed():
            logging.warning(f"Rename of '{document.temp_title}' to '{document.title}' is not supported yet")
            return MergeResult(
                outcome=MergeOutcome.RENAME,
                slug=document.slug,
                title=document.title,
                message="Renaming synced notes is not supported yet."
            )

        owner_key = self.database.ensure_user(self.user_id)
        existing = self.database.find_note_by_slug(document.slug, created_by=self.user_id)

        if existing is not None and not is_override_confirmed and not self.is_own_note(existing):
            if raise_on_conflict:
                raise ConflictError(document.slug, document.title)
            logging.info(f"Note '{document.title}' conflicts with an existing note")
            return MergeResult(
                outcome=MergeOutcome.CONFLICT,
                slug=document.slug,
                title=document.title,
                message="A note with this name already exists. Confirm to replace it.",
                source_id=existing.source_id
            )

        now = datetime.now()
        note = self._to_stored_note(document, owner_key, now)

        if existing is None:
            return self._insert(note, owner_key, now)
        return self._update(note, existing, owner_key, now)

    def is_own_note(self, note: StoredNote) -> bool:
        """True when a stored note was created by this pipeline."""
        return (
            note.source_type == self.source_type
            and note.source_category.category == self.source_category.category
            and note.source_category.sub_category == self.source_category.sub_category
        )

    def resolve_internal_link_ids(self, links: List[OutgoingLink]) -> List[OutgoingLink]:
        """Fill in the stored id of every link whose slug is in the store."""
        ids = self.database.find_ids_by_slugs(link.slug for link in links)
        return [OutgoingLink(slug=link.slug, id=ids.get(link.slug, link.id)) for link in links]

    def _require_user(self):
        if not self.user_id:
            raise IdentityError("User identification failed. Please verify your token.")

    def _to_stored_note(self, document: Document, owner_key: str, now: datetime) -> StoredNote:
        return StoredNote(
            slug=document.slug,
            title=document.title,
            content=document.content,
            description=document.description,
            headings=document.headings,
            internal_links=self.resolve_internal_link_ids(document.internal_links),
            banner_image=document.banner_image,
            source_type=document.source_type,
            source_category=document.source_category,
            owner=owner_key,
            created_by=self.user_id,
            access_to=[self.user_id],
            ext_owner=self.user_id,
            mtime=now
        )

    def _insert(self, note: StoredNote, owner_key: str, now: datetime) -> MergeResult:
        note.published = False
        note.ctime = now

        with self.database.transaction():
            source_id = self.database.insert_note(note)
            self.database.add_user_source(UserSource(
                source_id=source_id,
                saved_by=self.user_id,
                owner=owner_key,
                in_local=True,
                date_added=now,
                review_state=1,
                last_review_date=now
            ))

        logging.info(f"Created note '{note.title}' ({note.slug})")
        return MergeResult(
            outcome=MergeOutcome.NEW,
            slug=note.slug,
            title=note.title,
            source_id=source_id,
            synced_at=now
        )

    def _update(self, note: StoredNote, existing: StoredNote, owner_key: str, now: datetime) -> MergeResult:
        note.published = existing.published

        with self.database.transaction():
            self.database.update_note(note)

            if self.database.get_user_source(existing.source_id, self.user_id) is None:
                self.database.add_user_source(UserSource(
                    source_id=existing.source_id,
                    saved_by=self.user_id,
                    owner=owner_key,
                    date_added=now,
                    last_review_date=now
                ))
            elif self.user_id not in existing.access_to:
                # Removed in the app but still in the vault: flag it, never delete
                self.database.set_in_local(existing.source_id, self.user_id, True)

        logging.info(f"Updated note '{note.title}' ({note.slug})")
        return MergeResult(
            outcome=MergeOutcome.UPDATE,
            slug=note.slug,
            title=note.title,
            source_id=existing.source_id,
            synced_at=now
        )

    @staticmethod
    def _record(data: SyncResponseData, document: Document, result: MergeResult) -> None:
        if result.outcome == MergeOutcome.NEW:
            data.new_files.append(document.title)
            data.sync_count += 1
            data.file_sync_time[document.title] = result.synced_at
        elif result.outcome == MergeOutcome.UPDATE:
            data.synced_files.append(document.title)
            data.sync_count += 1
            data.file_sync_time[document.title] = result.synced_at
        elif result.outcome == MergeOutcome.CONFLICT:
            replacement: Dict = document.model_dump(mode="json")
            replacement["can_overwrite"] = True
            data.replacement_notes.append(replacement)
            data.file_sync_time[document.title] = None
        elif result.outcome == MergeOutcome.RENAME:
            data.renamed_notes.append(document.title)
        else:
            data.failed_notes[document.file_path] = result.message
