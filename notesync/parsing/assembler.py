"""
Document assembly for notesync.

Combines the structured content of a note with its links, banner image and
file metadata into the document record that is sent to the knowledge base.
"""

import json
import re
from typing import List, Optional, Sequence, Union

from ..errors import IdentityError
from ..models import Block, Document, FileMeta, OutgoingLink, Section, SourceCategory
from .slugs import create_ctime_slug, create_title_slug

MARKDOWN_IMAGE_PATTERN = re.compile(r'!\[(.*?)\]\((.*?)\)')

SLUG_STRATEGIES = ("ctime", "title")


class DocumentAssembler:
    """
    Builds Document records. Performs no I/O.
    """

    def __init__(self, source_category: Optional[SourceCategory] = None,
                 description: str = "Obsidian vault", source_type: str = "text",
                 slug_strategy: str = "ctime"):
        """
        Initialize the assembler.

        Args:
            source_category: Category stamped on every document
            description: Document description
            source_type: Document source type
            slug_strategy: 'ctime' for owner + creation time, 'title' for owner + title
        """
        if slug_strategy not in SLUG_STRATEGIES:
            raise ValueError(f"Unknown slug strategy: {slug_strategy}")

        self.source_category = source_category or SourceCategory()
        self.description = description
        self.source_type = source_type
        self.slug_strategy = slug_strategy

    def create_slug(self, owner_id: str, file_meta: FileMeta) -> str:
        """Return the stable slug of a note."""
        if self.slug_strategy == "title":
            return create_title_slug(owner_id, file_meta.basename)
        return create_ctime_slug(owner_id, file_meta.ctime)

    def assemble(self, owner_id: Optional[str], file_meta: FileMeta,
                 content: Sequence[Union[Block, Section]], headings: List[str],
                 internal_links: List[OutgoingLink], banner_image: Optional[str] = None,
                 raw_content: str = "", temp_title: Optional[str] = None) -> Document:
        """
        Assemble a document.

        Args:
            owner_id: Id of the owning user
            file_meta: Metadata of the note file
            content: Top-level blocks or sections of the note
            headings: H1 titles in order
            internal_links: Outgoing links in order of appearance
            banner_image: Url of the first embedded image, if any
            raw_content: Note body before link rewriting, searched for a fallback banner
            temp_title: Previous title when the note was renamed

        Returns:
            The assembled Document

        Raises:
            IdentityError: If no owner id is given
        """
        if not owner_id:
            raise IdentityError("User identification failed. Please verify your token.")

        if not banner_image:
            match = MARKDOWN_IMAGE_PATTERN.search(raw_content)
            if match:
                banner_image = match.group(2)

        serialized = json.dumps([item.model_dump(mode="json") for item in content], ensure_ascii=False)

        return Document(
            title=file_meta.basename,
            slug=self.create_slug(owner_id, file_meta),
            content=serialized,
            description=self.description,
            headings=list(headings),
            internal_links=list(internal_links),
            banner_image=banner_image,
            source_type=self.source_type,
            source_category=self.source_category,
            file_ctime=file_meta.ctime,
            file_mtime=file_meta.mtime,
            file_path=file_meta.path,
            temp_title=temp_title
        )
