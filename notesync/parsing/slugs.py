"""Slug helpers shared by the link rewriter and the document assembler."""

import re


def create_ctime_slug(owner_id: str, ctime: int) -> str:
    """Slug of a note identified by its creation time."""
    return f"{owner_id}-{ctime}"


def create_title_slug(owner_id: str, title: str) -> str:
    """Slug of a note identified by its title: lower case, whitespace runs as '_'."""
    normalized = re.sub(r'\s+', '_', title.strip().lower())
    return f"{owner_id}-{normalized}"
