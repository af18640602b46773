"""Note parsing: link rewriting, structuring and document assembly."""

from .assembler import DocumentAssembler
from .links import LinkRewriter, RewriteResult, apply_edits, find_embedded_images, find_literal_spans
from .lists import parse_list_lines
from .sections import parse_sections
from .slugs import create_ctime_slug, create_title_slug
from .structurer import MarkdownStructurer, StructureResult

__all__ = [
    "DocumentAssembler",
    "LinkRewriter",
    "RewriteResult",
    "apply_edits",
    "find_embedded_images",
    "find_literal_spans",
    "parse_list_lines",
    "parse_sections",
    "create_ctime_slug",
    "create_title_slug",
    "MarkdownStructurer",
    "StructureResult",
]
