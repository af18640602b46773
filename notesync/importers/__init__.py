"""Vault sources for notesync."""

from .base import BaseImporter
from .mock import MockImporter
from .vault import VaultImporter

__all__ = ["BaseImporter", "MockImporter", "VaultImporter"]
