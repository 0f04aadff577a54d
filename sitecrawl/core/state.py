"""
Resumable crawl and scrape state.

CrawlState belongs to the frontier loop. ScrapeCache and Progress are shared
by the orchestrator's concurrent tasks and are handed to them explicitly.
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Iterable, Mapping, Optional, Set


@dataclass
class CrawlState:
    """Frontier state: every pending URL is also discovered"""
    discovered: Set[str] = field(default_factory=set)
    pending: Deque[str] = field(default_factory=deque)
    processed: int = 0
    start_time: float = field(default_factory=time.time)

    def add(self, url: str) -> bool:
        """Insert a URL; returns False when it was already discovered"""
        if url in self.discovered:
            return False
        self.discovered.add(url)
        self.pending.append(url)
        return True

    def drain(self, batch_size: int) -> list:
        """Pop up to batch_size URLs from the front of the queue"""
        batch = []
        while self.pending and len(batch) < batch_size:
            batch.append(self.pending.popleft())
        return batch

    def to_dict(self) -> Dict[str, Any]:
        return {
            'discovered': sorted(self.discovered),
            'processed': self.processed,
            'pending': list(self.pending),
            'start_time': int(self.start_time),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CrawlState":
        discovered = set(data.get('discovered') or [])
        pending = deque(url for url in (data.get('pending') or []) if url in discovered)
        return cls(
            discovered=discovered,
            pending=pending,
            processed=int(data.get('processed', 0)),
            start_time=float(data.get('start_time') or time.time()),
        )


class ScrapeCache:
    """
    Processed and failed URL sets.

    Membership checks read the sets directly. Inserts go through one asyncio
    lock so there is a single writer at a time. A URL lands in at most one set.
    """

    def __init__(self, processed_urls: Optional[Iterable[str]] = None,
                 failed_urls: Optional[Iterable[str]] = None,
                 last_updated: Optional[float] = None):
        self.processed_urls: Set[str] = set(processed_urls or ())
        self.failed_urls: Set[str] = set(failed_urls or ())
        self.last_updated: float = last_updated or 0.0
        self._write_lock = asyncio.Lock()

    def should_skip(self, url: str) -> bool:
        return url in self.processed_urls or url in self.failed_urls

    async def mark_processed(self, url: str) -> bool:
        async with self._write_lock:
            if url in self.failed_urls:
                return False
            self.processed_urls.add(url)
            self.last_updated = time.time()
            return True

    async def mark_failed(self, url: str) -> bool:
        async with self._write_lock:
            if url in self.processed_urls:
                return False
            self.failed_urls.add(url)
            self.last_updated = time.time()
            return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'processed_urls': sorted(self.processed_urls),
            'failed_urls': sorted(self.failed_urls),
            'last_updated': int(self.last_updated),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScrapeCache":
        """
        Load either schema. The older one stored processed_urls as a
        URL -> content hash mapping; only its keys are kept.
        """
        processed = data.get('processed_urls') or []
        if isinstance(processed, Mapping):
            processed = processed.keys()
        failed = data.get('failed_urls') or []
        if isinstance(failed, Mapping):
            failed = failed.keys()
        cache = cls(
            processed_urls=processed,
            failed_urls=set(failed) - set(processed),
            last_updated=float(data.get('last_updated') or 0),
        )
        return cache

    def __len__(self) -> int:
        return len(self.processed_urls) + len(self.failed_urls)


@dataclass
class Progress:
    """Run counters; increments happen on the event loop thread"""
    total_urls: int = 0
    processed: int = 0
    failed: int = 0
    start_time: float = field(default_factory=time.time)
    last_checkpoint: float = 0.0

    def record_success(self) -> int:
        self.processed += 1
        return self.handled

    def record_failure(self) -> int:
        self.failed += 1
        return self.handled

    @property
    def handled(self) -> int:
        return self.processed + self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_urls': self.total_urls,
            'processed': self.processed,
            'failed': self.failed,
            'start_time': int(self.start_time),
            'last_checkpoint': int(self.last_checkpoint),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Progress":
        return cls(
            total_urls=int(data.get('total_urls', 0)),
            processed=int(data.get('processed', 0)),
            failed=int(data.get('failed', 0)),
            start_time=float(data.get('start_time') or time.time()),
            last_checkpoint=float(data.get('last_checkpoint') or 0),
        )
