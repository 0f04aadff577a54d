"""
Tests for RecordStorage

Tests URL list reading/writing and merging of the record collection.
"""

import json

import pytest

from sitecrawl.core.base import ConfigurationError, ContentRecord, StorageError
from sitecrawl.storage.output import RecordStorage


def make_record(url, title="Title", content="Body"):
    return ContentRecord(
        avatar="https://example.org/avatar.jpg",
        author="Author",
        source_url=url,
        title=title,
        tags=["tag"],
        markdown_body=content,
    )


class TestRecordStorage:
    """Test suite for RecordStorage"""

    @pytest.fixture
    def storage(self):
        return RecordStorage()

    def test_read_url_list_trims_and_skips_blanks(self, storage, tmp_path):
        path = tmp_path / "urls.txt"
        path.write_text("  https://example.org/a  \n\n\nhttps://example.org/b\n   \n", encoding="utf-8")

        assert storage.read_url_list(str(path)) == ["https://example.org/a", "https://example.org/b"]

    def test_read_url_list_missing_file(self, storage, tmp_path):
        """Test an unreadable seed file is a configuration error"""
        with pytest.raises(ConfigurationError):
            storage.read_url_list(str(tmp_path / "missing.txt"))

    def test_save_url_list(self, storage, tmp_path):
        path = tmp_path / "out" / "urls.txt"

        storage.save_url_list(["https://example.org/a", "https://example.org/b"], str(path))

        assert path.read_text(encoding="utf-8").splitlines() == [
            "https://example.org/a",
            "https://example.org/b",
        ]

    def test_save_records_serializes_fields(self, storage, tmp_path):
        path = tmp_path / "posts.json"

        storage.save_records([make_record("https://example.org/a", title=None)], str(path))

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data == [{
            'avatar': "https://example.org/avatar.jpg",
            'username': "Author",
            'url': "https://example.org/a",
            'title': None,
            'date_published': None,
            'date_updated': None,
            'tags': ["tag"],
            'content': "Body",
        }]

    def test_save_records_merges_by_url(self, storage, tmp_path):
        """Test a resumed run replaces, never duplicates, earlier records"""
        path = tmp_path / "posts.json"
        storage.save_records([make_record("https://example.org/a", content="old"),
                              make_record("https://example.org/b")], str(path))

        total = storage.save_records([make_record("https://example.org/a", content="new"),
                                      make_record("https://example.org/c")], str(path))

        data = json.loads(path.read_text(encoding="utf-8"))
        assert total == 3
        assert sorted(item['url'] for item in data) == [
            "https://example.org/a", "https://example.org/b", "https://example.org/c",
        ]
        assert next(item for item in data if item['url'] == "https://example.org/a")['content'] == "new"

    def test_save_records_ignores_corrupt_existing_file(self, storage, tmp_path):
        path = tmp_path / "posts.json"
        path.write_text("{broken", encoding="utf-8")

        assert storage.save_records([make_record("https://example.org/a")], str(path)) == 1

    def test_unwritable_output_is_storage_error(self, storage, tmp_path):
        """Test write failures surface as StorageError instead of OSError"""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")

        with pytest.raises(StorageError):
            storage.save_url_list(["https://example.org/a"], str(blocker / "urls.txt"))
        with pytest.raises(StorageError):
            storage.save_records([make_record("https://example.org/a")], str(blocker / "posts.json"))

    def test_record_round_trip(self):
        record = make_record("https://example.org/a")
        assert ContentRecord.from_dict(record.to_dict()) == record
