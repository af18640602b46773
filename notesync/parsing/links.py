"""
Link rewriting for notesync.

Rewrites three families of links into the ``[[title|alias|index|source]]``
form the knowledge base understands, and collects the outgoing links of a note
in the order they appear:

- embedded images ``![[image.png]]``, uploaded and turned into ``![alt](url)``
- internal wiki links ``[[Note]]`` / ``[[Note|alias]]``
- Wikipedia and YouTube links, bare or wrapped in markdown link syntax

Code and math are left as written: matches inside fenced, indented or ``$$``
blocks and inside inline code spans are not rewritten.
"""

import bisect
import logging
import posixpath
import re
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

from markdown_it import MarkdownIt
from pydantic import BaseModel, Field

from ..errors import ImageUploadError, LinkResolutionError
from ..models import EmbeddedImageRef, OutgoingLink, SiblingStat
from .slugs import create_ctime_slug, create_title_slug
from .structurer import create_markdown_parser

if TYPE_CHECKING:
    from ..importers.base import BaseImporter
    from ..sync.uploader import ImageUploader


DEFAULT_IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".bmp", ".svg", ".webp")

IMAGE_EMBED_PATTERN = re.compile(r'!\[\[([^\[\]]+?)\]\]')

_EXTERNAL_URL = r'https://(?:\w+\.wikipedia\.org/wiki/\S+|www\.youtube\.com/watch\?v=\S+)'

LINK_PATTERN = re.compile(
    r'\[(?P<text>[^\[\]]*?)\]\((?P<md_url>' + _EXTERNAL_URL + r')\)'
    r'|\[\[(?P<target>.*?)\]\]'
    r'|\b(?P<bare_url>' + _EXTERNAL_URL + r')\b'
)

# [[title|alias|index|source]] as produced by this module
REWRITTEN_LINK_PATTERN = re.compile(r'^[^|]+\|[^|]*\|\d+\|(?:obsidian|wikipedia|youtube)$')

LITERAL_BLOCK_TYPES = ("fence", "code_block", "math_block", "math_block_label")

NEWLINE_PATTERN = re.compile(r'\r\n|\r|\n')

# A backtick run closed by a run of the same length, within one paragraph
CODE_SPAN_PATTERN = re.compile(r'(?<!`)(`+)(?!`)(?:(?!\n[ \t]*\n).)+?(?<!`)\1(?!`)', re.DOTALL)

Edit = Tuple[int, int, str]
Span = Tuple[int, int]


class RewriteResult(BaseModel):
    """Content with rewritten links plus what the rewrite collected."""

    content: str
    internal_links: List[OutgoingLink] = Field(default_factory=list)
    banner_image_url: Optional[str] = None


def find_literal_spans(content: str, md: Optional[MarkdownIt] = None) -> List[Span]:
    """
    Return the ``(start, end)`` character spans of code and math in a note.

    Block spans come from the line map of the parser's fence, indented code
    and math tokens. Inline code spans are searched for only in the lines of
    paragraphs the parser found inline code in.
    """
    md = md or create_markdown_parser()
    line_starts = [0] + [match.end() for match in NEWLINE_PATTERN.finditer(content)]

    def offset(line: int) -> int:
        return line_starts[line] if line < len(line_starts) else len(content)

    spans: List[Span] = []
    for token in md.parse(content):
        if token.map is None:
            continue

        start, end = offset(token.map[0]), offset(token.map[1])
        if token.type in LITERAL_BLOCK_TYPES:
            spans.append((start, end))
        elif token.type == "inline" and any(child.type == "code_inline" for child in token.children or []):
            for match in CODE_SPAN_PATTERN.finditer(content, start, end):
                spans.append(match.span())

    return sorted(spans)


def in_spans(position: int, spans: List[Span]) -> bool:
    """True when position falls inside one of the sorted spans."""
    index = bisect.bisect_right([start for start, _ in spans], position) - 1
    return index >= 0 and position < spans[index][1]


def find_embedded_images(content: str, image_extensions: Sequence[str] = DEFAULT_IMAGE_EXTENSIONS) -> List[EmbeddedImageRef]:
    """Find ``![[...]]`` embeds whose target has an image extension, outside code."""
    refs = []
    extensions = tuple(ext.lower() for ext in image_extensions)
    literal_spans = find_literal_spans(content) if IMAGE_EMBED_PATTERN.search(content) else []

    for match in IMAGE_EMBED_PATTERN.finditer(content):
        if in_spans(match.start(), literal_spans):
            continue
        link, _, alias = match.group(1).partition("|")
        link = link.strip()
        if not link.lower().endswith(extensions):
            continue
        refs.append(EmbeddedImageRef(
            original=match.group(0),
            link=link,
            display_text=alias.strip() or link
        ))

    return refs


def apply_edits(content: str, edits: List[Edit]) -> str:
    """
    Apply non-overlapping ``(start, end, replacement)`` edits in one forward pass.
    """
    pieces = []
    cursor = 0

    for start, end, replacement in sorted(edits, key=lambda edit: edit[0]):
        if start < cursor:
            raise ValueError(f"Overlapping edit at offset {start}")
        pieces.append(content[cursor:start])
        pieces.append(replacement)
        cursor = end

    pieces.append(content[cursor:])
    return "".join(pieces)


def get_title_for_wikipedia(url: str) -> str:
    return url.split("/")[-1]


def get_title_for_youtube(url: str) -> str:
    video_id = re.search(r'v=([^&]+)', url)
    return video_id.group(1) if video_id else ""


class LinkRewriter:
    """
    Rewrites the links of one note for one owner.

    Internal link targets are resolved through the vault source to the target
    file's creation time, which gives the stable ``<owner>-<ctime>`` object id.
    """

    def __init__(self, owner_id: str, source: "BaseImporter",
                 image_uploader: Optional["ImageUploader"] = None,
                 image_extensions: Sequence[str] = DEFAULT_IMAGE_EXTENSIONS):
        """
        Initialize the link rewriter.

        Args:
            owner_id: Id of the user owning the note
            source: Vault source used to resolve link targets and read images
            image_uploader: Uploader for embedded images
            image_extensions: Extensions that mark an embed as an image
        """
        self.owner_id = owner_id
        self.source = source
        self.image_uploader = image_uploader
        self.image_extensions = tuple(image_extensions)
        self.md = create_markdown_parser()

    def rewrite(self, content: str, siblings: Optional[Dict[str, SiblingStat]] = None,
                embedded_images: Optional[List[EmbeddedImageRef]] = None) -> RewriteResult:
        """
        Rewrite all links of a note.

        Args:
            content: Note body without front matter
            siblings: Listing of the note's folder, keyed by file name
            embedded_images: Image embeds of the note; scanned from content when None

        Returns:
            RewriteResult with the rewritten content, the outgoing links and the
            banner image url

        Raises:
            ImageUploadError: If an embedded image cannot be found or uploaded
        """
        siblings = siblings or {}

        content, banner_image_url = self._rewrite_embedded_images(content, siblings, embedded_images)
        content, internal_links = self._rewrite_links(content, siblings)

        return RewriteResult(
            content=content,
            internal_links=internal_links,
            banner_image_url=banner_image_url
        )

    def _rewrite_embedded_images(self, content: str, siblings: Dict[str, SiblingStat],
                                 embedded_images: Optional[List[EmbeddedImageRef]]) -> Tuple[str, Optional[str]]:
        refs = embedded_images if embedded_images is not None else find_embedded_images(content, self.image_extensions)
        if not refs:
            return content, None

        remote_urls: Dict[str, str] = {}
        replacements: Dict[str, str] = {}
        for ref in refs:
            if ref.original in remote_urls:
                continue
            remote_urls[ref.original] = self._upload_image(ref.link, siblings)
            replacements[ref.original] = f"![{ref.display_text}]({remote_urls[ref.original]})"
            logging.info(f"Uploaded embedded image {ref.link}")

        # Longest first so an embed that prefixes another never wins
        originals = sorted(replacements, key=len, reverse=True)
        pattern = re.compile("|".join(re.escape(original) for original in originals))
        literal_spans = find_literal_spans(content, self.md)
        edits = [
            (match.start(), match.end(), replacements[match.group(0)])
            for match in pattern.finditer(content)
            if not in_spans(match.start(), literal_spans)
        ]

        return apply_edits(content, edits), remote_urls[refs[0].original]

    def _upload_image(self, link: str, siblings: Dict[str, SiblingStat]) -> str:
        if self.image_uploader is None:
            raise ImageUploadError("Image sync failed. No image uploader configured.")

        path = self._resolve_image_path(link, siblings)
        if path is None:
            raise ImageUploadError(f"Error. {link}, is not a valid file path")

        extension = posixpath.splitext(path)[1].lstrip(".").lower()
        data = self.source.read_binary(path)

        return self.image_uploader.upload(data, key=path.replace(" ", "+"), content_type=f"image/{extension}")

    def _resolve_image_path(self, link: str, siblings: Dict[str, SiblingStat]) -> Optional[str]:
        if link in siblings:
            folder = siblings[link].path
            return link if folder in ("", "/") else f"{folder}/{link}"
        return self.source.find_file(link)

    def _rewrite_links(self, content: str, siblings: Dict[str, SiblingStat]) -> Tuple[str, List[OutgoingLink]]:
        internal_links: List[OutgoingLink] = []
        edits: List[Edit] = []
        resolved: Dict[str, str] = {}
        literal_spans = find_literal_spans(content, self.md)

        for match in LINK_PATTERN.finditer(content):
            if in_spans(match.start(), literal_spans):
                continue

            target = match.group("target")

            if target is not None:
                if REWRITTEN_LINK_PATTERN.match(target):
                    continue

                parts = target.split("|")
                file_path = parts[0].strip()
                alias = parts[1] if len(parts) > 1 else parts[0]
                lookup = file_path.split("#")[0].strip()
                if not lookup:
                    # Link to a heading of the same note
                    continue

                if lookup not in resolved:
                    resolved[lookup] = self._resolve_internal_link(lookup, siblings)
                title = resolved[lookup]
                source = "obsidian"
            else:
                url = match.group("md_url") or match.group("bare_url")
                alias = match.group("text") or url
                if "wikipedia.org" in url:
                    source = "wikipedia"
                    title = get_title_for_wikipedia(url)
                else:
                    source = "youtube"
                    title = get_title_for_youtube(url)

            index = len(internal_links)
            internal_links.append(OutgoingLink(slug=title, id=None))
            edits.append((match.start(), match.end(), f"[[{title}|{alias}|{index}|{source}]]"))

        return apply_edits(content, edits), internal_links

    def _resolve_internal_link(self, target: str, siblings: Dict[str, SiblingStat]) -> str:
        try:
            return create_ctime_slug(self.owner_id, self.get_file_ctime(target, siblings))
        except LinkResolutionError as e:
            logging.warning(f"{e}; linking by title instead")
            return create_title_slug(self.owner_id, posixpath.basename(target))

    def get_file_ctime(self, target: str, siblings: Dict[str, SiblingStat]) -> int:
        """
        Return the creation time of a link target.

        The folder listing is consulted first, then the exact vault path, then
        any file with that name anywhere in the vault.

        Raises:
            LinkResolutionError: If no such file exists
        """
        file_name = target if target.endswith(".md") else f"{target}.md"

        if file_name in siblings:
            return siblings[file_name].ctime

        stat = self.source.stat(file_name)
        if stat is not None:
            return stat.ctime

        path = self.source.find_file(file_name)
        if path is not None:
            return self.source.get_file_metadata(path).ctime

        raise LinkResolutionError(target)
