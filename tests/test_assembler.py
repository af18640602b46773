"""
Unit tests for section parsing, slugs and document assembly.
"""

import json
import unittest

from notesync.errors import IdentityError
from notesync.models import FileMeta, HeadingBlock, OutgoingLink, ParagraphBlock, SourceCategory
from notesync.parsing import DocumentAssembler, create_ctime_slug, create_title_slug, parse_sections


class TestSectionParsing(unittest.TestCase):
    """Test the section-oriented output."""

    def test_sections_nest_by_level(self):
        """Test initial content, nesting and H1 collection."""
        sections, h1s = parse_sections("intro\n# A\ntext\n## B\nmore\n# C")

        self.assertEqual([section.title for section in sections], ["", "A", "C"])
        self.assertEqual(sections[0].heading_level, 0)
        self.assertEqual(sections[0].content, "intro")
        self.assertEqual(sections[1].content, "text")
        self.assertEqual([child.title for child in sections[1].children], ["B"])
        self.assertEqual(sections[1].children[0].content, "more")
        self.assertEqual(h1s, ["A", "C"])

    def test_empty_initial_section_is_dropped(self):
        sections, _ = parse_sections("# A\nbody")

        self.assertEqual(len(sections), 1)
        self.assertEqual(sections[0].title, "A")

    def test_heading_inside_fence_is_content(self):
        sections, h1s = parse_sections("# A\n```\n# not a heading\n```")

        self.assertEqual(len(sections), 1)
        self.assertEqual(h1s, ["A"])
        self.assertIn("# not a heading", sections[0].content)

    def test_closing_hashes_are_stripped(self):
        sections, _ = parse_sections("## Title ##")

        self.assertEqual(sections[0].title, "Title")
        self.assertEqual(sections[0].heading_level, 2)

    def test_hashtag_is_not_a_heading(self):
        sections, h1s = parse_sections("#tag at the start")

        self.assertEqual(h1s, [])
        self.assertEqual(sections[0].heading_level, 0)


class TestSlugs(unittest.TestCase):
    """Test slug helpers."""

    def test_ctime_slug(self):
        self.assertEqual(create_ctime_slug("u1", 1000), "u1-1000")

    def test_title_slug(self):
        self.assertEqual(create_title_slug("u1", "My  Big Note"), "u1-my_big_note")


class TestDocumentAssembler(unittest.TestCase):
    """Test document assembly."""

    def setUp(self):
        self.file_meta = FileMeta(
            name="My Note.md",
            basename="My Note",
            path="Folder/My Note.md",
            parent="Folder",
            ctime=1000,
            mtime=2000
        )
        self.blocks = [HeadingBlock(heading_level=1, content="Title", children=[ParagraphBlock(content="x")])]

    def test_assemble(self):
        assembler = DocumentAssembler()
        links = [OutgoingLink(slug="u1-5")]

        document = assembler.assemble("u1", self.file_meta, self.blocks, ["Title"], links)

        self.assertEqual(document.title, "My Note")
        self.assertEqual(document.slug, "u1-1000")
        self.assertEqual(document.headings, ["Title"])
        self.assertEqual(document.internal_links, links)
        self.assertEqual(document.file_path, "Folder/My Note.md")
        self.assertEqual(document.file_mtime, 2000)
        self.assertEqual(document.source_category, SourceCategory())
        self.assertIsNone(document.banner_image)

        content = json.loads(document.content)
        self.assertEqual(content[0]["block_type"], "heading")
        self.assertEqual(content[0]["children"][0]["content"], "x")

    def test_slug_is_stable_across_content_changes(self):
        assembler = DocumentAssembler()

        first = assembler.assemble("u1", self.file_meta, self.blocks, [], [])
        second = assembler.assemble("u1", self.file_meta, [], [], [])

        self.assertEqual(first.slug, second.slug)

    def test_title_slug_strategy(self):
        assembler = DocumentAssembler(slug_strategy="title")

        document = assembler.assemble("u1", self.file_meta, [], [], [])

        self.assertEqual(document.slug, "u1-my_note")

    def test_unknown_slug_strategy(self):
        with self.assertRaises(ValueError):
            DocumentAssembler(slug_strategy="random")

    def test_missing_owner_raises(self):
        assembler = DocumentAssembler()

        with self.assertRaises(IdentityError):
            assembler.assemble(None, self.file_meta, [], [], [])
        with self.assertRaises(IdentityError):
            assembler.assemble("", self.file_meta, [], [], [])

    def test_banner_falls_back_to_markdown_image(self):
        assembler = DocumentAssembler()

        document = assembler.assemble(
            "u1", self.file_meta, [], [], [],
            raw_content="text\n![cover](https://img.test/cover.png)"
        )

        self.assertEqual(document.banner_image, "https://img.test/cover.png")

    def test_uploaded_banner_wins(self):
        assembler = DocumentAssembler()

        document = assembler.assemble(
            "u1", self.file_meta, [], [], [],
            banner_image="https://cdn.test/first.png",
            raw_content="![cover](https://img.test/cover.png)"
        )

        self.assertEqual(document.banner_image, "https://cdn.test/first.png")

    def test_rename_detection(self):
        assembler = DocumentAssembler()

        renamed = assembler.assemble("u1", self.file_meta, [], [], [], temp_title="Old Name")
        same = assembler.assemble("u1", self.file_meta, [], [], [], temp_title="My Note")

        self.assertTrue(renamed.is_renamed())
        self.assertFalse(same.is_renamed())
