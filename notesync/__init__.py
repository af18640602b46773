"""
notesync: Converts markdown vault notes into structured knowledge-base documents.

Rewrites internal links, structures markdown into a block tree and merges the
resulting documents into a note store.
"""

__version__ = "0.1.0"
__author__ = "notesync Project"

# Import main components
from .database import DatabaseManager
from .models import Block, Document, MergeOutcome, SyncResponse
from .importers import BaseImporter, MockImporter, VaultImporter
from .parsing import DocumentAssembler, LinkRewriter, MarkdownStructurer
from .sync import ImageUploader, MergeResolver, NoteProcessor

__all__ = [
    "DatabaseManager",
    "Block",
    "Document",
    "MergeOutcome",
    "SyncResponse",
    "BaseImporter",
    "MockImporter",
    "VaultImporter",
    "DocumentAssembler",
    "LinkRewriter",
    "MarkdownStructurer",
    "ImageUploader",
    "MergeResolver",
    "NoteProcessor"
]
