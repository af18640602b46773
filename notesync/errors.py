"""
Exception types for notesync.

Parsing and rewriting errors propagate to the caller that processes a batch of
notes; the batch loop decides whether one failed note stops the rest.
"""


class NoteSyncError(Exception):
    """Base class for all notesync errors."""


class ParseError(NoteSyncError):
    """A markdown node could not be classified into a block."""


class LinkResolutionError(NoteSyncError):
    """An internal link target does not exist in the vault."""

    def __init__(self, target: str):
        super().__init__(f"Could not resolve internal link target: {target}")
        self.target = target


class ImageUploadError(NoteSyncError):
    """An embedded image could not be located or uploaded."""


class IdentityError(NoteSyncError):
    """No owning user is known, so no document may be produced."""


class ConflictError(NoteSyncError):
    """An incoming note collides with a differently sourced stored note."""

    def __init__(self, slug: str, title: str):
        super().__init__(f"Note '{title}' conflicts with an existing note ({slug})")
        self.slug = slug
        self.title = title
