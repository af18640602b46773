"""
Base importer interface for notesync.

This module defines the collaborator interface that every vault source must
implement. The parser only ever talks to a vault through this interface: file
text and bytes, file metadata, folder listings and embedded image references.
"""

import logging
import posixpath
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import frontmatter
import yaml

from ..models import EmbeddedImageRef, FileMeta, SiblingStat
from ..parsing.links import find_embedded_images


class BaseImporter(ABC):
    """
    Abstract base class for all vault sources.

    Paths are vault-relative and use forward slashes. Timestamps are
    milliseconds since the epoch.
    """

    @abstractmethod
    def list_files(self) -> List[str]:
        """
        List every file in the vault.

        Returns:
            Vault-relative paths of all files, markdown or not
        """
        pass

    @abstractmethod
    def read_file_text(self, path: str) -> str:
        """Return the raw text of a file."""
        pass

    @abstractmethod
    def read_binary(self, path: str) -> bytes:
        """Return the raw bytes of a file."""
        pass

    @abstractmethod
    def get_file_metadata(self, path: str) -> FileMeta:
        """
        Return metadata of a file.

        Raises:
            FileNotFoundError: If the file does not exist
        """
        pass

    @abstractmethod
    def stat(self, path: str) -> Optional[SiblingStat]:
        """Return timestamps of a file, or None when it does not exist."""
        pass

    def list_markdown_files(self) -> List[str]:
        return [path for path in self.list_files() if path.endswith(".md")]

    @staticmethod
    def parent_of(path: str) -> str:
        """Return the folder of a path, '/' for the vault root."""
        return posixpath.dirname(path) or "/"

    def get_sibling_listing(self, parent: str) -> Dict[str, SiblingStat]:
        """
        List the files of one folder.

        Args:
            parent: Folder path, '/' or '' for the vault root

        Returns:
            Mapping of file name to its timestamps and folder path
        """
        parent = parent or "/"
        listing: Dict[str, SiblingStat] = {}

        for path in self.list_files():
            if self.parent_of(path) != parent:
                continue
            meta = self.get_file_metadata(path)
            listing[meta.name] = SiblingStat(
                ctime=meta.ctime,
                mtime=meta.mtime,
                size=meta.size,
                path=parent
            )

        return listing

    def get_embedded_image_refs(self, path: str, image_extensions: Sequence[str]) -> List[EmbeddedImageRef]:
        """Return the image embeds of a note in order of appearance."""
        return find_embedded_images(self.read_file_text(path), image_extensions)

    def find_file(self, name: str) -> Optional[str]:
        """
        Find a file anywhere in the vault.

        An exact path match wins, then a file name match, then a path suffix.
        """
        files = self.list_files()

        if name in files:
            return name

        for path in files:
            if posixpath.basename(path) == name:
                return path

        for path in files:
            if path.endswith("/" + name):
                return path

        return None

    def load_note(self, text: str) -> frontmatter.Post:
        """
        Split a note into its YAML front matter and its body.

        Invalid front matter is logged and the note is kept whole.
        """
        try:
            return frontmatter.loads(text)
        except yaml.YAMLError as e:
            logging.warning(f"Invalid front matter: {e}")
            return frontmatter.Post(text)

    def read_front_matter(self, text: str) -> Dict[str, Any]:
        """Return the front matter of a note as a dict."""
        return dict(self.load_note(text).metadata)

    def strip_front_matter(self, text: str) -> str:
        """Return the note body without its front matter."""
        return self.load_note(text).content

    def has_sync_flag(self, path: str, flag: str = "oe_sync") -> bool:
        """Check whether a note is marked for sync in its front matter."""
        return self.read_front_matter(self.read_file_text(path)).get(flag) is True
