"""
Sync records for notesync.

Stored note records, ownership records and the response returned to the
client after a batch of notes has been merged into the store.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .document import OutgoingLink, SourceCategory


class MergeOutcome(str, Enum):
    """What the merge resolver did with an incoming note."""
    NEW = "new"
    UPDATE = "update"
    CONFLICT = "conflict"
    RENAME = "rename"
    FAILED = "failed"


class StoredNote(BaseModel):
    """
    A note record in the global note table.
    """

    model_config = ConfigDict(populate_by_name=True)

    source_id: Optional[str] = None
    slug: str
    title: str
    content: str = ""
    description: str = ""
    headings: List[str] = Field(default_factory=list)
    internal_links: List[OutgoingLink] = Field(default_factory=list)
    banner_image: Optional[str] = None
    source_type: str = "text"
    source_category: SourceCategory = Field(default_factory=SourceCategory)
    owner: Optional[str] = Field(default=None, alias="_owner")
    created_by: Optional[str] = Field(default=None, alias="_created_by")
    access_to: List[str] = Field(default_factory=list, alias="_access_to")
    ext_owner: Optional[str] = None
    published: bool = False
    ctime: Optional[datetime] = None
    mtime: Optional[datetime] = None


class UserSource(BaseModel):
    """
    Links a stored note to a user. ``in_local`` is the soft-delete flag.
    """

    source_id: str
    saved_by: str
    owner: Optional[str] = None
    in_local: bool = True
    date_added: Optional[datetime] = None
    review_state: int = 1
    last_review_date: Optional[datetime] = None


class MergeResult(BaseModel):
    """Outcome of resolving one incoming note."""

    outcome: MergeOutcome
    slug: str
    title: str
    message: str = ""
    source_id: Optional[str] = None
    synced_at: Optional[datetime] = None


class SyncResponseData(BaseModel):
    """Per-batch counters, serialized with the camelCase keys the client reads."""

    model_config = ConfigDict(populate_by_name=True)

    file_sync_time: Dict[str, Optional[datetime]] = Field(default_factory=dict, alias="fileSyncTime")
    sync_count: int = Field(default=0, alias="syncCount")
    synced_files: List[str] = Field(default_factory=list, alias="syncedFiles")
    new_files: List[str] = Field(default_factory=list, alias="newFiles")
    replacement_notes: List[Dict[str, Any]] = Field(default_factory=list, alias="replacementNotes")
    renamed_notes: List[str] = Field(default_factory=list, alias="renamedNotes")
    failed_notes: Dict[str, str] = Field(default_factory=dict, alias="failedNotes")


class SyncResponse(BaseModel):
    success: bool
    message: str
    data: SyncResponseData = Field(default_factory=SyncResponseData)
