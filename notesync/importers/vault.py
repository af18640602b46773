"""
Filesystem vault importer for notesync.

Reads an Obsidian-style vault directory from disk.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..models import FileMeta, SiblingStat
from .base import BaseImporter

CREATION_TIMES_FILE = ".notesync/creation_times.json"


class VaultImporter(BaseImporter):
    """
    Vault source backed by a directory on disk.

    Hidden folders such as ``.obsidian`` and ``.trash`` are ignored.

    The creation time of a file is recorded the first time the file is seen,
    in ``.notesync/creation_times.json`` inside the vault, and read back from
    there afterwards. Linux has no birth time in ``os.stat`` and ``st_ctime``
    moves on every write, so ``<owner>-<ctime>`` slugs stay stable only
    through the recorded value.
    """

    def __init__(self, vault_path: str, creation_times_file: str = CREATION_TIMES_FILE):
        """
        Initialize the vault importer.

        Args:
            vault_path: Path to the vault root directory
            creation_times_file: Vault-relative file holding recorded creation times
        """
        self.vault_path = Path(vault_path)
        self.creation_times_path = self.vault_path / creation_times_file
        self.creation_times: Dict[str, int] = {}

        if self.vault_path.is_dir():
            self._load_creation_times()
            self._record_creation_times(self.list_files())
        else:
            logging.warning(f"Vault directory not found: {vault_path}")

        logging.info(f"Initialized vault importer for: {self.vault_path}")

    def _resolve(self, path: str) -> Path:
        return self.vault_path / path.lstrip("/")

    @staticmethod
    def _filesystem_ctime(file_path: Path) -> int:
        st = file_path.stat()
        # st_ctime is the inode change time on Linux, prefer the birth time
        return int(getattr(st, "st_birthtime", st.st_ctime) * 1000)

    def _load_creation_times(self) -> None:
        """Load the recorded creation times from the vault."""
        if not self.creation_times_path.exists():
            return
        try:
            with open(self.creation_times_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logging.warning(f"Could not load creation times: {e}")
            return

        if not isinstance(data, dict):
            logging.warning(f"Ignoring creation times {self.creation_times_path}: not a mapping")
            return

        self.creation_times = {
            str(path): ctime for path, ctime in data.items() if isinstance(ctime, int)
        }

    def _record_creation_times(self, paths: Iterable[str]) -> None:
        """Record the creation time of every path not seen before."""
        new_times = {
            path: self._filesystem_ctime(self._resolve(path))
            for path in paths
            if path not in self.creation_times
        }
        if not new_times:
            return

        self.creation_times.update(new_times)
        try:
            self.creation_times_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.creation_times_path, 'w', encoding='utf-8') as f:
                json.dump(self.creation_times, f, indent=2, sort_keys=True, ensure_ascii=False)
            logging.info(f"Recorded creation times of {len(new_times)} files")
        except IOError as e:
            logging.error(f"Failed to save creation times: {e}")

    def list_files(self) -> List[str]:
        if not self.vault_path.is_dir():
            return []

        files = []
        for file_path in sorted(self.vault_path.rglob("*")):
            relative = file_path.relative_to(self.vault_path)
            if any(part.startswith(".") for part in relative.parts):
                continue
            if file_path.is_file():
                files.append(relative.as_posix())
        return files

    def read_file_text(self, path: str) -> str:
        with open(self._resolve(path), 'r', encoding='utf-8') as f:
            return f.read()

    def read_binary(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    def get_file_metadata(self, path: str) -> FileMeta:
        key = path.lstrip("/")
        file_path = self._resolve(key)
        st = file_path.stat()

        if key not in self.creation_times:
            self._record_creation_times([key])

        return FileMeta(
            name=file_path.name,
            basename=file_path.stem,
            path=path,
            parent=self.parent_of(path),
            ctime=self.creation_times[key],
            mtime=int(st.st_mtime * 1000),
            size=st.st_size
        )

    def stat(self, path: str) -> Optional[SiblingStat]:
        if not self._resolve(path).is_file():
            return None

        meta = self.get_file_metadata(path)
        return SiblingStat(ctime=meta.ctime, mtime=meta.mtime, size=meta.size, path=meta.parent)
