"""
Tests for the note processor: vault notes to documents, and full syncs into
an in-memory note store.
"""

import json

import pytest

from notesync.config import ConfigManager
from notesync.database import DatabaseManager
from notesync.errors import IdentityError
from notesync.importers import MockImporter
from notesync.models import OutgoingLink
from notesync.sync import MergeResolver, NoteProcessor


class FakeUploader:
    def __init__(self):
        self.keys = []

    def upload(self, data, key, content_type):
        self.keys.append(key)
        return f"https://cdn.test/{key}"


@pytest.fixture
def settings(tmp_path):
    # Missing file: defaults apply
    return ConfigManager(str(tmp_path / "missing.yaml"))


@pytest.fixture
def example_vault():
    return MockImporter({
        "OtherNote.md": "---\noe_sync: true\n---\nThe other note",
        "Title.md": "---\noe_sync: true\n---\n# Title\n\nSome text\n\n## Sub\nMore [[OtherNote]]",
        "Draft.md": "# Draft\n",
    }, ctime=1000)


@pytest.fixture
def db():
    with DatabaseManager(":memory:") as database:
        database.initialize_database()
        yield database


def test_parse_file_end_to_end(example_vault, settings):
    processor = NoteProcessor(example_vault, user_id="u1", config=settings)

    document = processor.parse_file("Title.md")

    assert document.title == "Title"
    assert document.slug == "u1-1001"
    assert document.headings == ["Title"]
    assert document.internal_links == [OutgoingLink(slug="u1-1000", id=None)]
    assert document.source_category.sub_category == "obsidian"

    blocks = json.loads(document.content)
    assert len(blocks) == 1
    sub = blocks[0]["children"][-1]
    assert sub["content"] == "Sub"
    assert sub["children"][0]["content"] == "More [[u1-1000|OtherNote|0|obsidian]]"


def test_front_matter_is_not_content(example_vault, settings):
    processor = NoteProcessor(example_vault, user_id="u1", config=settings)

    blocks = json.loads(processor.parse_file("OtherNote.md").content)

    assert blocks == [{"block_type": "paragraph", "content": "The other note"}]


def test_section_output(example_vault, tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("parser:\n  output_format: sections\n", encoding="utf-8")
    processor = NoteProcessor(example_vault, user_id="u1", config=ConfigManager(str(config_path)))

    sections = json.loads(processor.parse_file("Title.md").content)

    assert sections[0]["title"] == "Title"
    assert sections[0]["content"] == "Some text"
    assert sections[0]["children"][0]["title"] == "Sub"


def test_syncable_files(example_vault, settings):
    processor = NoteProcessor(example_vault, user_id="u1", config=settings)

    assert processor.get_syncable_files() == ["OtherNote.md", "Title.md"]
    assert processor.process_single_file("Draft.md") is None

    report = processor.process_single_file("Title.md")
    assert [document.title for document in report.documents] == ["Title"]


def test_missing_user_raises(example_vault, settings):
    processor = NoteProcessor(example_vault, user_id="", config=settings)

    with pytest.raises(IdentityError):
        processor.process_marked_files()
    with pytest.raises(IdentityError):
        processor.parse_file("Title.md")


def test_failed_note_is_contained(settings):
    # The sample vault embeds an image, which cannot be uploaded without an uploader
    processor = NoteProcessor(MockImporter(), user_id="u1", config=settings)

    report = processor.process_marked_files()

    assert [document.title for document in report.documents] == ["Roadmap"]
    assert list(report.failures) == ["Projects/Phoenix.md"]


def test_sample_vault_with_uploader(settings):
    uploader = FakeUploader()
    processor = NoteProcessor(MockImporter(), user_id="u1", uploader=uploader, config=settings)

    document = processor.parse_file("Projects/Phoenix.md")

    assert uploader.keys == ["Projects/diagram.png"]
    assert document.banner_image == "https://cdn.test/Projects/diagram.png"
    assert [link.slug for link in document.internal_links] == [
        "u1-1003",
        "u1-1001",
        "Phoenix_(mythology)",
        "dQw4w9WgXcQ",
    ]
    assert document.headings == ["Project Phoenix"]


def test_sync_into_store(db, settings):
    processor = NoteProcessor(MockImporter(), user_id="u1", uploader=FakeUploader(), config=settings)
    resolver = MergeResolver(db, "u1")

    first = processor.sync(resolver)
    second = processor.sync(resolver)

    assert first.success
    assert first.data.new_files == ["Phoenix", "Roadmap"]
    assert second.data.synced_files == ["Phoenix", "Roadmap"]
    assert second.data.new_files == []
    assert len(db.list_notes(created_by="u1")) == 2


def test_sync_reports_parse_failures(db, settings):
    processor = NoteProcessor(MockImporter(), user_id="u1", config=settings)

    response = processor.sync(MergeResolver(db, "u1"))

    assert not response.success
    assert "Projects/Phoenix.md" in response.data.failed_notes
    assert response.data.new_files == ["Roadmap"]


def test_summarize(db, settings):
    processor = NoteProcessor(MockImporter(), user_id="u1", config=settings)
    response = processor.sync(MergeResolver(db, "u1"))

    summary = NoteProcessor.summarize(response)

    assert "1 notes synced" in summary
    assert "1 new" in summary
    assert "1 failed" in summary
