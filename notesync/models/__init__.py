"""Data models for notesync."""

from .blocks import (
    Block,
    BlockQuoteBlock,
    CodeBlock,
    EmptyBlock,
    HeadingBlock,
    ImageBlock,
    ListBlock,
    ListItemBlock,
    MathBlock,
    ParagraphBlock,
    RowBlock,
    TableBlock,
)
from .document import (
    Document,
    EmbeddedImageRef,
    FileMeta,
    OutgoingLink,
    Section,
    SiblingStat,
    SourceCategory,
)
from .sync import MergeOutcome, MergeResult, StoredNote, SyncResponse, SyncResponseData, UserSource

__all__ = [
    "Block",
    "BlockQuoteBlock",
    "CodeBlock",
    "EmptyBlock",
    "HeadingBlock",
    "ImageBlock",
    "ListBlock",
    "ListItemBlock",
    "MathBlock",
    "ParagraphBlock",
    "RowBlock",
    "TableBlock",
    "Document",
    "EmbeddedImageRef",
    "FileMeta",
    "OutgoingLink",
    "Section",
    "SiblingStat",
    "SourceCategory",
    "MergeOutcome",
    "MergeResult",
    "StoredNote",
    "SyncResponse",
    "SyncResponseData",
    "UserSource",
]
