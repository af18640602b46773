"""
Note processor for notesync.

Client side of a sync: finds the notes marked for sync in a vault, turns each
into a Document and hands the batch to a merge resolver.
"""

import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..config import ConfigManager, get_config
from ..errors import IdentityError
from ..importers.base import BaseImporter
from ..models import Document, SourceCategory, SyncResponse
from ..parsing import DocumentAssembler, LinkRewriter, MarkdownStructurer, parse_sections
from .resolver import MergeResolver
from .uploader import ImageUploader


class ProcessingReport(BaseModel):
    """Documents built from a batch of notes, and the notes that failed."""

    documents: List[Document] = Field(default_factory=list)
    failures: Dict[str, str] = Field(default_factory=dict)


class NoteProcessor:
    """
    Converts vault notes into documents.
    """

    def __init__(self, source: BaseImporter, user_id: Optional[str] = None,
                 uploader: Optional[ImageUploader] = None,
                 config: Optional[ConfigManager] = None):
        """
        Initialize the note processor.

        Args:
            source: Vault the notes are read from
            user_id: Id of the syncing user (defaults to config value)
            uploader: Uploader for embedded images
            config: Configuration (defaults to the global configuration)
        """
        self.source = source
        self.config = config or get_config()
        self.user_id = user_id if user_id is not None else self.config.user_id
        self.uploader = uploader
        self.structurer = MarkdownStructurer(tab_width=self.config.tab_width)
        self.assembler = DocumentAssembler(
            source_category=SourceCategory(**self.config.source_category),
            description=self.config.get("sync.description", "Obsidian vault"),
            source_type=self.config.get("sync.source_type", "text"),
            slug_strategy=self.config.slug_strategy
        )

    def get_syncable_files(self) -> List[str]:
        """Return the markdown files whose front matter marks them for sync."""
        flag = self.config.sync_flag
        return [path for path in self.source.list_markdown_files() if self.source.has_sync_flag(path, flag)]

    def parse_file(self, path: str, temp_title: Optional[str] = None) -> Document:
        """
        Convert one note into a Document.

        Args:
            path: Vault path of the note
            temp_title: Previous title of the note when it was renamed

        Returns:
            The assembled Document

        Raises:
            IdentityError: If no user id is configured
            ImageUploadError: If an embedded image cannot be uploaded
        """
        if not self.user_id:
            raise IdentityError("User identification failed. Please verify your token.")

        file_meta = self.source.get_file_metadata(path)
        body = self.source.strip_front_matter(self.source.read_file_text(path))

        rewriter = LinkRewriter(
            owner_id=self.user_id,
            source=self.source,
            image_uploader=self.uploader,
            image_extensions=self.config.image_extensions
        )
        rewritten = rewriter.rewrite(
            body,
            siblings=self.source.get_sibling_listing(file_meta.parent),
            embedded_images=self.source.get_embedded_image_refs(path, self.config.image_extensions)
        )

        if self.config.output_format == "sections":
            content, headings = parse_sections(rewritten.content)
        else:
            structured = self.structurer.structure(rewritten.content)
            content, headings = structured.blocks, structured.h1_headings

        logging.info(f"Parsed {path}: {len(rewritten.internal_links)} links, {len(headings)} H1 headings")

        return self.assembler.assemble(
            owner_id=self.user_id,
            file_meta=file_meta,
            content=content,
            headings=headings,
            internal_links=rewritten.internal_links,
            banner_image=rewritten.banner_image_url,
            raw_content=body,
            temp_title=temp_title
        )

    def process_files(self, paths: List[str], renames: Optional[Dict[str, str]] = None) -> ProcessingReport:
        """
        Convert a batch of notes, containing failures per note.

        Args:
            paths: Vault paths of the notes
            renames: Optional mapping of path to the note's previous title

        Returns:
            ProcessingReport with the documents and the per-note failures

        Raises:
            IdentityError: If no user id is configured
        """
        if not self.user_id:
            raise IdentityError("User identification failed. Please verify your token.")

        renames = renames or {}
        report = ProcessingReport()

        for path in paths:
            try:
                report.documents.append(self.parse_file(path, temp_title=renames.get(path)))
            except Exception as e:
                logging.error(f"Failed to process note {path}: {e}")
                report.failures[path] = str(e)

        return report

    def process_marked_files(self) -> ProcessingReport:
        """Convert every note marked for sync."""
        files = self.get_syncable_files()
        if not files:
            logging.info("No files marked for sync in the vault.")
        return self.process_files(files)

    def process_single_file(self, path: str) -> Optional[ProcessingReport]:
        """
        Convert one note, provided it is marked for sync.

        Returns:
            ProcessingReport, or None when the note is not marked for sync
        """
        if not self.source.has_sync_flag(path, self.config.sync_flag):
            logging.info(f"{path} is not marked for sync.")
            return None
        return self.process_files([path])

    def sync(self, resolver: MergeResolver, can_override: bool = False) -> SyncResponse:
        """
        Convert every marked note and merge the results into the store.

        Notes that failed to convert are reported in ``failedNotes``.
        """
        report = self.process_marked_files()
        response = resolver.sync(report.documents, can_override=can_override)

        if report.failures:
            response.data.failed_notes.update(report.failures)
            response.success = False
            response.message = f"Sync failed for {len(response.data.failed_notes)} notes."

        return response

    @staticmethod
    def summarize(response: SyncResponse) -> str:
        """One-line notification text for a sync response."""
        data = response.data
        parts = [f"{data.sync_count} notes synced"]

        if data.new_files:
            parts.append(f"{len(data.new_files)} new")
        if data.replacement_notes:
            parts.append(f"{len(data.replacement_notes)} need confirmation to replace existing notes")
        if data.renamed_notes:
            parts.append(f"{len(data.renamed_notes)} renames not supported yet")
        if data.failed_notes:
            reasons = "; ".join(f"{name}: {reason}" for name, reason in data.failed_notes.items())
            parts.append(f"{len(data.failed_notes)} failed ({reasons})")

        return f"{response.message} " + ", ".join(parts) + "."
