"""Sync pipeline: image upload, note processing and merge resolution."""

from .processor import NoteProcessor, ProcessingReport
from .resolver import MergeResolver
from .uploader import ImageUploader

__all__ = ["ImageUploader", "MergeResolver", "NoteProcessor", "ProcessingReport"]
