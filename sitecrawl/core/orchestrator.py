"""
Scrape Orchestrator Implementation

Drives a URL list through the fetch client and the content extractor with
bounded concurrency, recording every URL as processed or failed in the
resumable scrape cache.
"""

import asyncio
import time
from typing import Any, Dict, List, Optional

from sitecrawl.core.base import (
    BaseComponent,
    ContentExtractorInterface,
    ContentRecord,
    ExtractionError,
    FetchClientInterface,
    FetchError,
)
from sitecrawl.core.config import ScrapeConfig
from sitecrawl.core.logging import get_logger, logging_manager
from sitecrawl.core.state import Progress, ScrapeCache
from sitecrawl.storage.state_store import StateStore


class ScrapeOrchestrator(BaseComponent):
    """
    Scrape driver.

    The cache and progress objects are shared by every in-flight task and are
    handed in by the caller, so tests and resumed runs can supply their own.
    """

    def __init__(self, config: ScrapeConfig, fetch_client: FetchClientInterface,
                 extractor: ContentExtractorInterface, state_store: StateStore,
                 cache: ScrapeCache, progress: Progress,
                 asset_client: Optional[FetchClientInterface] = None):
        super().__init__({'chunk_size': config.chunk_size})
        self.logger = get_logger()
        self.scrape_config = config
        self.fetch_client = fetch_client
        self.asset_client = asset_client
        self.extractor = extractor
        self.state_store = state_store
        self.cache = cache
        self.progress = progress
        self.rate_limit = config.rate_limit_ms / 1000.0
        self.skipped = 0

    async def initialize(self) -> None:
        """Initialize fetch clients"""
        for client in (self.fetch_client, self.asset_client):
            if client:
                await client.initialize()
        self._initialized = True
        self.logger.debug("Scrape orchestrator initialized")

    async def cleanup(self) -> None:
        """Clean up resources"""
        for client in (self.fetch_client, self.asset_client):
            if client:
                await client.cleanup()
        self._initialized = False

    def pending_urls(self, urls: List[str]) -> List[str]:
        """De-duplicate (first occurrence wins) and drop URLs the cache already holds"""
        unique = list(dict.fromkeys(urls))
        pending = [url for url in unique if not self.cache.should_skip(url)]
        self.skipped = len(unique) - len(pending)
        return pending

    async def scrape_all(self, urls: List[str]) -> List[ContentRecord]:
        """
        Scrape every URL not already handled in an earlier run

        Args:
            urls: Page URLs, possibly with duplicates

        Returns:
            Records in completion order
        """
        if not self._initialized:
            await self.initialize()

        pending = self.pending_urls(urls)
        self.progress.total_urls = len(pending)
        if self.skipped:
            self.logger.info(f"Skipping {self.skipped} URLs already handled in an earlier run")
        self.logger.info(f"Scraping {len(pending)} URLs")

        chunk_size = self.scrape_config.chunk_size
        chunks = [pending[i:i + chunk_size] for i in range(0, len(pending), chunk_size)]

        records: List[ContentRecord] = []
        await asyncio.gather(*(self._process_chunk(chunk, records) for chunk in chunks))

        self.save_checkpoint(progress=True, cache=True)
        return records

    async def _process_chunk(self, chunk: List[str], records: List[ContentRecord]) -> None:
        """Handle one chunk sequentially, pausing before each fetch"""
        for url in chunk:
            await asyncio.sleep(self.rate_limit)
            record = await self.process_single_url(url)
            if record is not None:
                records.append(record)

    async def process_single_url(self, url: str) -> Optional[ContentRecord]:
        """
        Fetch and extract one URL, recording the outcome in the cache

        Args:
            url: URL to process

        Returns:
            ContentRecord on success, None when the URL was marked failed
        """
        start_time = time.time()

        try:
            response = await self.fetch_client.fetch(url)
        except FetchError as e:
            await self._record_failure(url, str(e), start_time)
            return None
        except Exception as e:
            self.logger.error(f"Error fetching URL {url}: {e}", exc_info=True)
            await self._record_failure(url, f"unexpected fetch error: {e}", start_time)
            return None

        try:
            record = await self.extractor.extract(url, response.body, response.headers)
        except ExtractionError as e:
            await self._record_failure(url, f"extraction failed: {e}", start_time)
            return None
        except Exception as e:
            self.logger.error(f"Error processing URL {url}: {e}", exc_info=True)
            await self._record_failure(url, f"extraction failed: {e!r}", start_time)
            return None

        if record is None:
            await self._record_failure(url, "no record extracted", start_time)
            return None

        if not await self.cache.mark_processed(url):
            self.logger.warning(f"{url} is already marked failed; keeping that outcome")
            return None

        handled = self.progress.record_success()
        logging_manager.log_url_result(url, True, time.time() - start_time)
        self._maybe_checkpoint(handled)
        return record

    async def _record_failure(self, url: str, message: str, start_time: float) -> None:
        if not await self.cache.mark_failed(url):
            return
        handled = self.progress.record_failure()
        logging_manager.log_url_result(url, False, time.time() - start_time, message)
        self._maybe_checkpoint(handled)

    def _maybe_checkpoint(self, handled: int) -> None:
        progress_due = handled % self.scrape_config.progress_interval == 0
        cache_due = handled % self.scrape_config.cache_interval == 0
        if progress_due:
            logging_manager.log_progress(handled, self.progress.total_urls, self.progress.failed)
        if progress_due or cache_due:
            self.save_checkpoint(progress=progress_due, cache=cache_due)

    def save_checkpoint(self, progress: bool = True, cache: bool = True) -> None:
        """Persist progress and/or the cache; failures are logged by the store"""
        if progress:
            self.progress.last_checkpoint = time.time()
            self.state_store.save_progress(self.progress)
        if cache:
            self.state_store.save_cache(self.cache)

    def get_stats(self) -> Dict[str, Any]:
        return {
            'total_urls': self.progress.total_urls,
            'processed': self.progress.processed,
            'failed': self.progress.failed,
            'skipped': self.skipped,
            'duration': time.time() - self.progress.start_time,
        }
