"""
State Store Implementation

Loads and checkpoints crawl state, scrape cache and progress as JSON files.
A missing or unreadable file means "start fresh"; a failed write is logged
and reported to the caller without stopping the run.
"""

from pathlib import Path
from typing import Any, Callable, Optional

from sitecrawl.core.config import StorageConfig
from sitecrawl.core.logging import get_logger
from sitecrawl.core.state import CrawlState, ScrapeCache, Progress
from sitecrawl.utils.files import atomic_write_json, read_json


class StateStore:
    """
    Durable storage for the three state documents
    """

    def __init__(self, config: StorageConfig):
        self.logger = get_logger()
        base = Path(config.state_dir)
        self.crawl_state_path = base / config.crawl_state_file
        self.cache_path = base / config.cache_file
        self.progress_path = base / config.progress_file

    def _load(self, path: Path, parse: Callable[[Any], Any], label: str) -> Optional[Any]:
        if not path.exists():
            self.logger.debug(f"No {label} at {path}, starting fresh")
            return None
        try:
            data = read_json(path)
            if not isinstance(data, dict):
                raise ValueError("expected a JSON object")
            return parse(data)
        except (OSError, ValueError, TypeError, KeyError) as e:
            self.logger.warning(f"Ignoring unreadable {label} {path}: {e}")
            return None

    def _save(self, path: Path, data: Any, label: str) -> bool:
        try:
            atomic_write_json(path, data)
            return True
        except (OSError, TypeError, ValueError) as e:
            self.logger.error(f"Failed to save {label} to {path}: {e}")
            return False

    def load_crawl_state(self) -> Optional[CrawlState]:
        """Load crawl state, or None when there is nothing to resume"""
        return self._load(self.crawl_state_path, CrawlState.from_dict, "crawl state")

    def save_crawl_state(self, state: CrawlState) -> bool:
        return self._save(self.crawl_state_path, state.to_dict(), "crawl state")

    def load_cache(self) -> ScrapeCache:
        """Load the scrape cache, migrating the older hash-map schema"""
        cache = self._load(self.cache_path, ScrapeCache.from_dict, "scrape cache")
        if cache is None:
            return ScrapeCache()
        self.logger.info(
            f"Loaded cache: {len(cache.processed_urls)} processed, {len(cache.failed_urls)} failed"
        )
        return cache

    def save_cache(self, cache: ScrapeCache) -> bool:
        return self._save(self.cache_path, cache.to_dict(), "scrape cache")

    def load_progress(self) -> Optional[Progress]:
        return self._load(self.progress_path, Progress.from_dict, "progress")

    def save_progress(self, progress: Progress) -> bool:
        return self._save(self.progress_path, progress.to_dict(), "progress")

    def clear_scrape_state(self) -> None:
        """Delete the scrape cache and progress files"""
        for path in (self.cache_path, self.progress_path):
            try:
                path.unlink()
                self.logger.info(f"Removed {path}")
            except FileNotFoundError:
                pass

    def clear_crawl_state(self) -> None:
        try:
            self.crawl_state_path.unlink()
            self.logger.info(f"Removed {self.crawl_state_path}")
        except FileNotFoundError:
            pass
