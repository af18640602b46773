"""
Markdown structuring for notesync.

Turns the (link-rewritten) body of a note into a tree of blocks:

1. markdown-it parses the body into block nodes (tables and $$ math enabled).
2. Blank source lines between blocks, which the parser drops, come back as
   ``EmptyBlock`` (empty line) or an empty ``ParagraphBlock`` (whitespace only).
3. Paragraphs that mix text and images are split so images stand alone. The
   images are the ones markdown-it reports, so reference-style images count.
4. Each node becomes a typed block; lists are rebuilt from their source lines.
5. Headings nest by level and collect everything up to the next heading of the
   same or a higher level.
"""

import logging
import re
from typing import List, Sequence

from markdown_it import MarkdownIt
from markdown_it.tree import SyntaxTreeNode
from mdit_py_plugins.dollarmath import dollarmath_plugin
from pydantic import BaseModel, Field

from ..errors import ParseError
from ..models import (
    Block,
    BlockQuoteBlock,
    CodeBlock,
    EmptyBlock,
    HeadingBlock,
    ImageBlock,
    MathBlock,
    ParagraphBlock,
    RowBlock,
    TableBlock,
)
from .lists import parse_list_lines

BLOCKQUOTE_MARKER_PATTERN = re.compile(r'^[ ]{0,3}>[ ]?')


class StructureResult(BaseModel):
    """Nested blocks of a note and its H1 titles."""

    blocks: List[Block] = Field(default_factory=list)
    h1_headings: List[str] = Field(default_factory=list)


def create_markdown_parser() -> MarkdownIt:
    """CommonMark with GFM tables and dollar math."""
    return MarkdownIt("commonmark").enable("table").use(dollarmath_plugin)


def image_source_end(text: str, position: int) -> int:
    """
    Return the index just past the destination of an image whose ``![label]``
    ends at position: an inline ``(url "title")``, a ``[ref]``, or nothing for
    a shortcut reference.
    """
    if text.startswith("(", position):
        depth = 0
        index = position
        while index < len(text):
            char = text[index]
            if char == "\\":
                index += 1
            elif char == "<":
                index = max(text.find(">", index), index)
            elif char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
                if depth == 0:
                    return index + 1
            index += 1
        return len(text)

    if text.startswith("[", position):
        close = text.find("]", position)
        return close + 1 if close >= 0 else position

    return position


class MarkdownStructurer:
    """
    Converts markdown text into nested blocks.
    """

    def __init__(self, tab_width: int = 4):
        """
        Initialize the structurer.

        Args:
            tab_width: Number of spaces a tab counts for in list indentation
        """
        self.md = create_markdown_parser()
        self.tab_width = tab_width

    def structure(self, content: str) -> StructureResult:
        """
        Parse a note body into a heading-nested block tree.

        Args:
            content: Note body, links already rewritten

        Returns:
            StructureResult with the top-level blocks and the H1 titles
        """
        return self.nest_blocks(self.parse_blocks(content))

    def parse_blocks(self, content: str) -> List[Block]:
        """
        Parse a note body into a flat list of blocks in source order.
        """
        content = content.replace("\r\n", "\n").replace("\r", "\n")
        lines = content.split("\n")
        root = SyntaxTreeNode(self.md.parse(content))

        blocks: List[Block] = []
        cursor = 0

        for node in root.children:
            if node.map is None:
                continue

            start = node.map[0]
            blocks.extend(self._gap_blocks(lines[cursor:start]))
            blocks.extend(self._convert(node, lines))
            cursor = max(cursor, self._effective_end(node, lines))

        # Non-blank lines after the last node, e.g. link reference definitions
        rest = lines[cursor:]
        while rest and not rest[-1].strip():
            rest.pop()
        blocks.extend(self._gap_blocks(rest))

        return blocks

    def nest_blocks(self, blocks: Sequence[Block]) -> StructureResult:
        """
        Nest a flat block list under its headings.

        A heading closes every open heading of the same or a deeper level.
        Blocks before the first heading stay at the top level.
        """
        heading_stack: List[HeadingBlock] = []
        nested: List[Block] = []
        h1_headings: List[str] = []

        for block in blocks:
            if isinstance(block, HeadingBlock):
                if block.heading_level == 1:
                    h1_headings.append(block.content)

                while heading_stack and heading_stack[-1].heading_level >= block.heading_level:
                    heading_stack.pop()

                if heading_stack:
                    heading_stack[-1].children.append(block)
                else:
                    nested.append(block)

                heading_stack.append(block)
            elif heading_stack:
                heading_stack[-1].children.append(block)
            else:
                nested.append(block)

        return StructureResult(blocks=nested, h1_headings=h1_headings)

    @staticmethod
    def _effective_end(node: SyntaxTreeNode, lines: List[str]) -> int:
        """End line of a node, excluding blank lines the parser folded into it."""
        start, end = node.map
        end = min(end, len(lines))
        while end > start + 1 and not lines[end - 1].strip():
            end -= 1
        return end

    def _source_lines(self, node: SyntaxTreeNode, lines: List[str]) -> List[str]:
        return lines[node.map[0]:self._effective_end(node, lines)]

    @staticmethod
    def _gap_blocks(gap: Sequence[str]) -> List[Block]:
        blocks: List[Block] = []
        for line in gap:
            if line == "":
                blocks.append(EmptyBlock())
            elif not line.strip():
                blocks.append(ParagraphBlock(content=""))
            else:
                # Lines the parser emits no node for, e.g. link reference definitions
                blocks.append(ParagraphBlock(content=line.strip()))
        return blocks

    def _convert(self, node: SyntaxTreeNode, lines: List[str]) -> List[Block]:
        try:
            return self._convert_node(node, lines)
        except ParseError as e:
            logging.warning(f"{e}; keeping its source as paragraphs")
            return self._raw_paragraphs(node, lines)

    def _convert_node(self, node: SyntaxTreeNode, lines: List[str]) -> List[Block]:
        node_type = node.type

        if node_type == "heading":
            return [HeadingBlock(heading_level=int(node.tag[1:]), content=self._inline_content(node))]

        if node_type == "paragraph":
            return self._convert_paragraph(node, lines)

        if node_type in ("fence", "code_block"):
            info = node.info.strip()
            return [CodeBlock(
                content=self._strip_final_newline(node.content),
                language=info.split()[0] if info else None
            )]

        if node_type in ("math_block", "math_block_label"):
            return [MathBlock(content=node.content.strip("\n"))]

        if node_type == "blockquote":
            return [BlockQuoteBlock(content=self._blockquote_content(node, lines))]

        if node_type == "table":
            return [self._convert_table(node)]

        if node_type in ("bullet_list", "ordered_list"):
            return [parse_list_lines(self._source_lines(node, lines), self.tab_width)]

        if node_type in ("hr", "html_block"):
            return self._raw_paragraphs(node, lines)

        raise ParseError(f"Unsupported markdown node '{node_type}' at line {node.map[0] + 1}")

    @staticmethod
    def _inline_content(node: SyntaxTreeNode) -> str:
        """Raw inline markdown of a heading, paragraph or table cell."""
        if not node.children:
            return ""
        return node.children[0].content.strip()

    @staticmethod
    def _strip_final_newline(text: str) -> str:
        return text[:-1] if text.endswith("\n") else text

    def _raw_paragraphs(self, node: SyntaxTreeNode, lines: List[str]) -> List[Block]:
        return [
            ParagraphBlock(content=line.strip()) if line.strip() else EmptyBlock()
            for line in self._source_lines(node, lines)
        ]

    def _convert_paragraph(self, node: SyntaxTreeNode, lines: List[str]) -> List[Block]:
        text_lines = [line.strip() for line in self._source_lines(node, lines)]
        inline = node.children[0] if node.children else None
        images = [child for child in inline.children if child.type == "image"] if inline is not None else []

        if not images:
            return [ParagraphBlock(content=line) for line in text_lines]

        return self._fragment_images(text_lines, images)

    @classmethod
    def _fragment_images(cls, text_lines: Sequence[str], images: Sequence[SyntaxTreeNode]) -> List[Block]:
        """
        Split paragraph lines into text paragraphs and standalone images.

        Each image is found in the source by its ``![label]`` text, together
        with the ``(url)`` or ``[ref]`` that follows it.
        """
        text = "\n".join(text_lines)
        blocks: List[Block] = []
        cursor = 0

        for image in images:
            label = f"![{image.content}]"
            start = text.find(label, cursor)
            if start < 0:
                raise ParseError(f"Image '{image.content}' not found in its paragraph")

            blocks.extend(cls._text_paragraphs(text[cursor:start]))
            blocks.append(ImageBlock(img_src=image.attrGet("src") or "", img_caption=image.content))
            cursor = image_source_end(text, start + len(label))

        blocks.extend(cls._text_paragraphs(text[cursor:]))
        return blocks

    @staticmethod
    def _text_paragraphs(text: str) -> List[Block]:
        return [ParagraphBlock(content=line.strip()) for line in text.split("\n") if line.strip()]

    def _blockquote_content(self, node: SyntaxTreeNode, lines: List[str]) -> str:
        quoted = [BLOCKQUOTE_MARKER_PATTERN.sub("", line, count=1) for line in self._source_lines(node, lines)]
        return "\n".join(quoted).strip("\n")

    def _convert_table(self, node: SyntaxTreeNode) -> TableBlock:
        rows = []
        for section in node.children:
            for row in section.children:
                rows.append(RowBlock(
                    is_heading=section.type == "thead",
                    values=[self._inline_content(cell) for cell in row.children]
                ))
        return TableBlock(rows=rows)
