"""DuckDB note store for notesync."""

from .manager import DatabaseManager

__all__ = ["DatabaseManager"]
