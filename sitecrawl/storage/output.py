"""
Record Storage Implementation

Reads the seed URL list and writes the discovered URL list and the content
record collection.
"""

from pathlib import Path
from typing import Dict, Iterable, List

from sitecrawl.core.base import ConfigurationError, ContentRecord, StorageError
from sitecrawl.core.logging import get_logger
from sitecrawl.utils.files import atomic_write_json, atomic_write_text, read_json


class RecordStorage:
    """
    File-backed storage for URL lists and content records
    """

    def __init__(self):
        self.logger = get_logger()

    def read_url_list(self, path: str) -> List[str]:
        """
        Read a newline-delimited URL list

        Args:
            path: File to read

        Returns:
            Trimmed, non-empty lines in file order

        Raises:
            ConfigurationError: if the file cannot be read
        """
        try:
            with open(path, 'r', encoding='utf-8') as f:
                lines = f.read().splitlines()
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigurationError(f"Cannot read URL list {path}: {e}")

        urls = [line.strip() for line in lines if line.strip()]
        self.logger.info(f"Loaded {len(urls)} URLs from {path}")
        return urls

    def save_url_list(self, urls: Iterable[str], path: str) -> None:
        """Write one URL per line, raising StorageError when the file cannot be written"""
        urls = list(urls)
        try:
            atomic_write_text(path, '\n'.join(urls) + ('\n' if urls else ''))
        except OSError as e:
            raise StorageError(f"Cannot write URL list {path}: {e}")
        self.logger.info(f"Saved {len(urls)} URLs to {path}")

    def load_records(self, path: str) -> List[Dict]:
        """Existing record dicts from an earlier run, or [] when absent or unreadable"""
        if not Path(path).exists():
            return []
        try:
            data = read_json(path)
        except (OSError, ValueError) as e:
            self.logger.warning(f"Ignoring unreadable output file {path}: {e}")
            return []
        if not isinstance(data, list):
            self.logger.warning(f"Ignoring output file {path}: expected a JSON array")
            return []
        return [item for item in data if isinstance(item, dict) and item.get('url')]

    def save_records(self, records: Iterable[ContentRecord], path: str) -> int:
        """
        Merge records into the collection at path, keyed by url

        Records from this run replace earlier entries with the same url, so a
        resumed run never duplicates a page.

        Returns:
            Number of records in the written collection

        Raises:
            StorageError: if the collection cannot be written
        """
        merged: Dict[str, Dict] = {}
        for item in self.load_records(path):
            merged[item['url']] = item
        for record in records:
            merged[record.source_url] = record.to_dict()

        try:
            atomic_write_json(path, list(merged.values()))
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Cannot write records to {path}: {e}")
        self.logger.info(f"Saved {len(merged)} records to {path}")
        return len(merged)
