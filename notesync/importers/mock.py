"""
Mock importer for testing notesync.

This module provides an in-memory vault with explicit timestamps, so tests and
demos can exercise the parser without touching the filesystem.
"""

import posixpath
from typing import Dict, List, Optional, Union

from ..models import FileMeta, SiblingStat
from .base import BaseImporter


class MockImporter(BaseImporter):
    """
    In-memory vault source.

    Files are added with explicit creation and modification timestamps.
    """

    def __init__(self, files: Optional[Dict[str, Union[str, bytes]]] = None, ctime: int = 1000):
        """
        Initialize the mock importer.

        Args:
            files: Optional mapping of path to content; None loads a sample vault
            ctime: Creation time given to the files, incremented per file
        """
        self._files: Dict[str, bytes] = {}
        self._stats: Dict[str, FileMeta] = {}

        if files is None:
            files = self._create_sample_files()

        for offset, (path, content) in enumerate(files.items()):
            self.add_file(path, content, ctime=ctime + offset)

    def add_file(self, path: str, content: Union[str, bytes], ctime: int = 1000,
                 mtime: Optional[int] = None) -> None:
        """Add or replace a file."""
        data = content.encode("utf-8") if isinstance(content, str) else content
        name = posixpath.basename(path)

        self._files[path] = data
        self._stats[path] = FileMeta(
            name=name,
            basename=posixpath.splitext(name)[0],
            path=path,
            parent=self.parent_of(path),
            ctime=ctime,
            mtime=mtime if mtime is not None else ctime,
            size=len(data)
        )

    def list_files(self) -> List[str]:
        return list(self._files)

    def read_file_text(self, path: str) -> str:
        if path not in self._files:
            raise FileNotFoundError(path)
        return self._files[path].decode("utf-8")

    def read_binary(self, path: str) -> bytes:
        if path not in self._files:
            raise FileNotFoundError(path)
        return self._files[path]

    def get_file_metadata(self, path: str) -> FileMeta:
        if path not in self._stats:
            raise FileNotFoundError(path)
        return self._stats[path]

    def stat(self, path: str) -> Optional[SiblingStat]:
        meta = self._stats.get(path)
        if meta is None:
            return None
        return SiblingStat(ctime=meta.ctime, mtime=meta.mtime, size=meta.size, path=meta.parent)

    def _create_sample_files(self) -> Dict[str, Union[str, bytes]]:
        """
        Create a small sample vault covering links, lists, tables and images.
        """
        return {
            "Projects/Phoenix.md": (
                "---\noe_sync: true\n---\n"
                "# Project Phoenix\n\n"
                "Kick-off notes with [[Jane Doe]] and the [[Roadmap|plan]].\n\n"
                "![[diagram.png]]\n\n"
                "## Tasks\n"
                "- [x] Draft proposal\n"
                "- [ ] Review budget\n"
                "  - Ask finance\n\n"
                "## Background\n"
                "See [Phoenix](https://en.wikipedia.org/wiki/Phoenix_(mythology)) "
                "and https://www.youtube.com/watch?v=dQw4w9WgXcQ&t=42\n\n"
                "| Phase | Owner |\n|---|---|\n| Design | Jane |\n"
            ),
            "Projects/Roadmap.md": "---\noe_sync: true\n---\n# Roadmap\n\n1. Design\n2. Build\n",
            "Projects/diagram.png": b"\x89PNG\r\n\x1a\n",
            "People/Jane Doe.md": "# Jane Doe\n\nProduct lead.\n",
        }
