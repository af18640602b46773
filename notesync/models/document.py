"""
Document models for notesync.

This module defines the records that flow from the vault collaborators through
the parser into the assembled document handed to the sync transport.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class Section(BaseModel):
    """
    A heading-scoped section of a note, used by the section-oriented output.

    Sections nest strictly by heading level: a child always has a larger
    ``heading_level`` than its parent.
    """

    title: str = Field(
        ...,
        description="Heading text, empty for the content before the first heading"
    )

    content: str = Field(
        default="",
        description="Markdown between this heading and the next one, trimmed"
    )

    heading_level: int = Field(
        ...,
        ge=0,
        description="Heading depth; 0 marks the initial pseudo-section"
    )

    children: List['Section'] = Field(
        default_factory=list,
        description="Sections with deeper headings inside this section's scope"
    )


Section.model_rebuild()


class OutgoingLink(BaseModel):
    """A link from a note to another note or an external source."""

    slug: str = Field(..., description="Slug of the link target")
    id: Optional[str] = Field(
        default=None,
        description="Stored id of the target, resolved remotely"
    )


class SourceCategory(BaseModel):
    """Identifies which ingestion pipeline created a stored record."""

    category: str = "notes"
    sub_category: str = "obsidian"
    extension: str = ".md"


class FileMeta(BaseModel):
    """File metadata supplied by the vault. Timestamps are in milliseconds."""

    name: str
    basename: str
    path: str
    parent: str = ""
    ctime: int
    mtime: int
    size: int = 0


class SiblingStat(BaseModel):
    """An entry of a folder listing, keyed by file name in the listing dict."""

    ctime: int
    mtime: int
    size: int = 0
    path: str = Field(
        default="",
        description="Path of the folder holding the file, '/' or '' for the vault root"
    )


class EmbeddedImageRef(BaseModel):
    """An ``![[image]]`` embed found in a note."""

    original: str = Field(..., description="Markdown exactly as written in the note")
    link: str = Field(..., description="Link target, the image file name or path")
    display_text: str = Field(default="", description="Alias text, used as alt text")


class Document(BaseModel):
    """
    The assembled, serializable representation of one note.
    """

    title: str
    slug: str = Field(..., description="Stable merge key between syncs of the same note")
    content: str = Field(..., description="JSON serialization of the block or section tree")
    description: str = "Obsidian vault"
    headings: List[str] = Field(default_factory=list, description="H1 titles in order")
    internal_links: List[OutgoingLink] = Field(default_factory=list)
    banner_image: Optional[str] = None
    source_type: str = "text"
    source_category: SourceCategory = Field(default_factory=SourceCategory)
    file_ctime: int
    file_mtime: int
    file_path: str
    temp_title: Optional[str] = Field(
        default=None,
        description="Previous title when the host reported a rename"
    )

    def is_renamed(self) -> bool:
        """True when the note carries a prior title that differs from its title."""
        return bool(self.temp_title) and self.temp_title != self.title
