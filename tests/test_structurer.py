"""
Unit tests for the markdown structurer.

Covers heading nesting, blank line fidelity, code fences, lists, tables,
images and math.
"""

import unittest
from typing import List
from unittest.mock import patch

from pydantic import TypeAdapter

from notesync.errors import ParseError
from notesync.models import (
    Block,
    BlockQuoteBlock,
    CodeBlock,
    EmptyBlock,
    HeadingBlock,
    ImageBlock,
    ListBlock,
    MathBlock,
    ParagraphBlock,
    TableBlock,
)
from notesync.parsing import MarkdownStructurer


def block_types(blocks) -> List[str]:
    return [block.block_type for block in blocks]


class TestHeadingNesting(unittest.TestCase):
    """Test that headings collect the blocks in their scope."""

    def setUp(self):
        self.structurer = MarkdownStructurer()

    def test_end_to_end_example(self):
        """Test the rewritten example note becomes one H1 tree."""
        content = "# Title\n\nSome text\n\n## Sub\nMore [[u1-1000|OtherNote|0|obsidian]]"
        result = self.structurer.structure(content)

        self.assertEqual(result.h1_headings, ["Title"])
        self.assertEqual(len(result.blocks), 1)

        title = result.blocks[0]
        self.assertIsInstance(title, HeadingBlock)
        self.assertEqual(title.heading_level, 1)
        self.assertEqual(title.content, "Title")
        self.assertEqual(block_types(title.children), ["empty_line", "paragraph", "empty_line", "heading"])
        self.assertEqual(title.children[1].content, "Some text")

        sub = title.children[3]
        self.assertEqual(sub.heading_level, 2)
        self.assertEqual(sub.content, "Sub")
        self.assertEqual(len(sub.children), 1)
        self.assertEqual(sub.children[0].content, "More [[u1-1000|OtherNote|0|obsidian]]")

    def test_sibling_and_nested_headings(self):
        """Test a heading closes open headings of the same or deeper level."""
        result = self.structurer.structure("# A\n## B\n### C\n## D\n# E")

        self.assertEqual([block.content for block in result.blocks], ["A", "E"])
        a = result.blocks[0]
        self.assertEqual([block.content for block in a.children], ["B", "D"])
        self.assertEqual([block.content for block in a.children[0].children], ["C"])
        self.assertEqual(result.h1_headings, ["A", "E"])

    def test_children_are_deeper(self):
        """Test every heading child of a heading has a larger level."""
        result = self.structurer.structure("## Two\n#### Four\n### Three\n# One\n## Two again")

        def check(blocks):
            for block in blocks:
                if isinstance(block, HeadingBlock):
                    for child in block.children:
                        if isinstance(child, HeadingBlock):
                            self.assertGreater(child.heading_level, block.heading_level)
                    check(block.children)

        check(result.blocks)
        self.assertEqual(result.h1_headings, ["One"])

    def test_blocks_before_first_heading_stay_top_level(self):
        result = self.structurer.structure("Intro line\n# A\ntext")

        self.assertEqual(block_types(result.blocks), ["paragraph", "heading"])
        self.assertEqual(result.blocks[0].content, "Intro line")
        self.assertEqual(result.blocks[1].children[0].content, "text")

    def test_document_without_headings(self):
        result = self.structurer.structure("Just text")

        self.assertEqual(result.h1_headings, [])
        self.assertEqual(block_types(result.blocks), ["paragraph"])


class TestBlankLines(unittest.TestCase):
    """Test empty and whitespace-only lines survive as distinct blocks."""

    def setUp(self):
        self.structurer = MarkdownStructurer()

    def test_empty_versus_whitespace_only(self):
        blocks = self.structurer.parse_blocks("Line one\n\nLine two\n   \nLine three")

        self.assertEqual(block_types(blocks), ["paragraph", "empty_line", "paragraph", "paragraph", "paragraph"])
        self.assertIsInstance(blocks[1], EmptyBlock)
        self.assertIsInstance(blocks[3], ParagraphBlock)
        self.assertEqual(blocks[3].content, "")
        self.assertEqual(blocks[4].content, "Line three")

    def test_multiple_blank_lines(self):
        blocks = self.structurer.parse_blocks("a\n\n\nb")

        self.assertEqual(block_types(blocks), ["paragraph", "empty_line", "empty_line", "paragraph"])

    def test_paragraph_lines_become_separate_blocks(self):
        blocks = self.structurer.parse_blocks("first\nsecond")

        self.assertEqual([block.content for block in blocks], ["first", "second"])


class TestCodeAndMath(unittest.TestCase):
    """Test literal blocks."""

    def setUp(self):
        self.structurer = MarkdownStructurer()

    def test_heading_inside_fence_is_code(self):
        result = self.structurer.structure("# Real\n```python\n# not a heading\nx = 1\n```\n")

        self.assertEqual(result.h1_headings, ["Real"])
        code = result.blocks[0].children[0]
        self.assertIsInstance(code, CodeBlock)
        self.assertEqual(code.content, "# not a heading\nx = 1")
        self.assertEqual(code.language, "python")

    def test_fence_without_language(self):
        blocks = self.structurer.parse_blocks("```\nplain\n```")

        self.assertIsInstance(blocks[0], CodeBlock)
        self.assertIsNone(blocks[0].language)
        self.assertEqual(blocks[0].content, "plain")

    def test_display_math(self):
        blocks = self.structurer.parse_blocks("$$\nx^2 + y^2\n$$")

        self.assertEqual(len(blocks), 1)
        self.assertIsInstance(blocks[0], MathBlock)
        self.assertEqual(blocks[0].content, "x^2 + y^2")
        self.assertEqual(blocks[0].markup_type, "latex")


class TestLists(unittest.TestCase):
    """Test list nesting by indentation."""

    def setUp(self):
        self.structurer = MarkdownStructurer()

    def test_nested_list(self):
        blocks = self.structurer.parse_blocks("- A\n  - B\n- C")

        self.assertEqual(len(blocks), 1)
        top = blocks[0]
        self.assertIsInstance(top, ListBlock)
        self.assertEqual([item.content for item in top.content], ["A", "C"])

        a = top.content[0]
        self.assertEqual(len(a.children), 1)
        self.assertEqual([item.content for item in a.children[0].content], ["B"])
        self.assertEqual(top.content[1].children, [])

    def test_checkbox_items(self):
        blocks = self.structurer.parse_blocks("- [x] Done\n- [ ] Todo")

        items = blocks[0].content
        self.assertEqual([item.list_type for item in items], ["checkbox", "checkbox"])
        self.assertEqual([item.checked for item in items], [True, False])
        self.assertEqual(items[0].marker, "- [x]")
        self.assertEqual(items[1].content, "Todo")

    def test_ordered_items(self):
        blocks = self.structurer.parse_blocks("1. One\n2. Two")

        items = blocks[0].content
        self.assertEqual([item.list_type for item in items], ["ordered", "ordered"])
        self.assertEqual([item.marker for item in items], ["1.", "2."])
        self.assertIsNone(items[0].checked)

    def test_blank_lines_between_items_are_kept(self):
        blocks = self.structurer.parse_blocks("- A\n\n- B\n  \n- C\n\n\n# H")

        self.assertEqual(block_types(blocks), ["list", "empty_line", "empty_line", "heading"])
        items = blocks[0].content
        self.assertEqual([item.content for item in items], ["A", "B", "C"])
        self.assertEqual(items[0].blank_lines_before, [])
        self.assertEqual(items[1].blank_lines_before, [EmptyBlock()])
        self.assertEqual(items[2].blank_lines_before, [ParagraphBlock(content="")])

    def test_blank_line_inside_item_text(self):
        blocks = self.structurer.parse_blocks("- A\n\n  more about A\n- B")

        items = blocks[0].content
        self.assertEqual(items[0].content, "A\n\nmore about A")
        self.assertEqual(items[1].blank_lines_before, [])


class TestOtherBlocks(unittest.TestCase):
    """Test tables, images and block quotes."""

    def setUp(self):
        self.structurer = MarkdownStructurer()

    def test_table(self):
        blocks = self.structurer.parse_blocks("| Phase | Owner |\n|---|---|\n| Design | Jane |")

        table = blocks[0]
        self.assertIsInstance(table, TableBlock)
        self.assertEqual(len(table.rows), 2)
        self.assertTrue(table.rows[0].is_heading)
        self.assertEqual(table.rows[0].values, ["Phase", "Owner"])
        self.assertFalse(table.rows[1].is_heading)
        self.assertEqual(table.rows[1].values, ["Design", "Jane"])

    def test_image_is_split_out_of_paragraph(self):
        blocks = self.structurer.parse_blocks("Look ![cap](https://img.test/a.png) here")

        self.assertEqual(block_types(blocks), ["paragraph", "image", "paragraph"])
        self.assertEqual(blocks[0].content, "Look")
        self.assertIsInstance(blocks[1], ImageBlock)
        self.assertEqual(blocks[1].img_src, "https://img.test/a.png")
        self.assertEqual(blocks[1].img_caption, "cap")
        self.assertEqual(blocks[2].content, "here")

    def test_reference_image_is_split_out(self):
        blocks = self.structurer.parse_blocks("Look ![cap][r] here\n\n[r]: https://img.test/a.png")

        self.assertEqual(block_types(blocks), ["paragraph", "image", "paragraph", "empty_line", "paragraph"])
        self.assertEqual(blocks[1].img_src, "https://img.test/a.png")
        self.assertEqual(blocks[1].img_caption, "cap")
        self.assertEqual(blocks[2].content, "here")
        self.assertEqual(blocks[4].content, "[r]: https://img.test/a.png")

    def test_angle_bracket_image(self):
        blocks = self.structurer.parse_blocks("![pic](<my pic.png>) after")

        self.assertEqual(block_types(blocks), ["image", "paragraph"])
        self.assertEqual(blocks[0].img_src, "my%20pic.png")
        self.assertEqual(blocks[1].content, "after")

    def test_image_with_title_and_parentheses(self):
        blocks = self.structurer.parse_blocks('![a](https://img.test/x_(1).png "Title") tail')

        self.assertEqual(blocks[0].img_src, "https://img.test/x_(1).png")
        self.assertEqual(blocks[1].content, "tail")

    def test_blockquote(self):
        blocks = self.structurer.parse_blocks("> quoted\n> more")

        self.assertIsInstance(blocks[0], BlockQuoteBlock)
        self.assertEqual(blocks[0].content, "quoted\nmore")

    def test_thematic_break_kept_as_text(self):
        blocks = self.structurer.parse_blocks("above\n\n---\n\nbelow")

        self.assertIn("---", [block.content for block in blocks if isinstance(block, ParagraphBlock)])


def test_unclassifiable_node_falls_back_to_paragraphs():
    structurer = MarkdownStructurer()

    with patch.object(MarkdownStructurer, "_convert_node", side_effect=ParseError("unsupported")):
        blocks = structurer.parse_blocks("some text")

    assert len(blocks) == 1
    assert isinstance(blocks[0], ParagraphBlock)
    assert blocks[0].content == "some text"


def test_block_tree_validates_back_into_variants():
    result = MarkdownStructurer().structure("# A\n- item\n\n| h |\n|---|\n| v |")
    dumped = [block.model_dump(mode="json") for block in result.blocks]

    restored = TypeAdapter(List[Block]).validate_python(dumped)

    assert isinstance(restored[0], HeadingBlock)
    assert isinstance(restored[0].children[0], ListBlock)
    assert isinstance(restored[0].children[-1], TableBlock)
