"""
Crawl Engine Implementation

Breadth-first frontier over one domain. Pages are fetched in concurrent
batches; links from HTML anchors and XML sitemap/feed locators go through the
admission filter, and the frontier is checkpointed after every batch so an
interrupted crawl resumes where it stopped.
"""

import asyncio
import time
import xml.etree.ElementTree as ElementTree
from typing import List, Optional, Set, Tuple

from bs4 import BeautifulSoup

from sitecrawl.core.base import (
    CrawlEngineInterface,
    ConfigurationError,
    FetchClientInterface,
    FetchError,
    FetchResponse,
)
from sitecrawl.core.config import CrawlConfig
from sitecrawl.core.logging import get_logger, logging_manager
from sitecrawl.core.state import CrawlState
from sitecrawl.storage.state_store import StateStore
from sitecrawl.utils.url import admit_url, domain_of, normalize_url


LOCATOR_TAGS = {'loc', 'link', 'url'}


class CrawlEngine(CrawlEngineInterface):
    """
    Frontier crawler with:
    - batched concurrent fetching through a shared FetchClient
    - idempotent admission of discovered links
    - per-batch checkpoints of the CrawlState
    """

    def __init__(self, config: CrawlConfig, fetch_client: FetchClientInterface,
                 state_store: StateStore):
        super().__init__({'base_url': config.base_url})
        self.logger = get_logger()
        self.crawl_config = config
        self.fetch_client = fetch_client
        self.state_store = state_store
        self.domain = domain_of(config.base_url)
        if not self.domain:
            raise ConfigurationError(f"Invalid base URL: {config.base_url}")

        self.state: Optional[CrawlState] = None
        self.stats = {
            'batches': 0,
            'fetched': 0,
            'fetch_errors': 0,
            'extract_errors': 0,
            'links_seen': 0,
        }

    async def initialize(self) -> None:
        """Initialize the fetch client and load or seed the frontier"""
        await self.fetch_client.initialize()
        self.state = self._initial_state()
        self._initialized = True

    async def cleanup(self) -> None:
        """Clean up resources"""
        await self.fetch_client.cleanup()
        self._initialized = False

    def _initial_state(self) -> CrawlState:
        """Resume a persisted frontier, or seed a new one"""
        state = self.state_store.load_crawl_state()
        if state is not None and state.pending:
            self.logger.info(
                f"Resuming crawl: {len(state.discovered)} discovered, {len(state.pending)} pending"
            )
            return state

        if state is None:
            state = CrawlState()
        seeds = list(self.crawl_config.seed_urls) + [f"https://{self.domain}/"]
        # Seeds skip admission; sitemap.xml would otherwise be rejected as data
        for seed in seeds:
            state.add(normalize_url(seed))

        self.logger.info(f"Seeded crawl of {self.domain} with {len(state.pending)} URLs")
        return state

    async def crawl(self) -> Set[str]:
        """
        Run the frontier until no pending URLs remain

        Returns:
            Set of every discovered URL
        """
        if not self._initialized:
            await self.initialize()

        state = self.state
        batch_size = self.crawl_config.batch_size
        started = time.time()

        while state.pending:
            batch = state.drain(batch_size)
            results = await asyncio.gather(*(self._fetch_links(url) for url in batch))

            new_urls = 0
            for page_url, links in results:
                self.stats['links_seen'] += len(links)
                for link in links:
                    admitted = admit_url(link, page_url, self.domain)
                    if admitted and state.add(admitted):
                        new_urls += 1

            state.processed += len(batch)
            self.stats['batches'] += 1
            self.state_store.save_crawl_state(state)

            self.logger.info(f"Batch {self.stats['batches']} completed: {new_urls} new URLs discovered")
            logging_manager.log_progress(
                state.processed,
                len(state.discovered),
                self.stats['fetch_errors'],
                f"{len(state.pending)} pending, elapsed {time.time() - started:.0f}s",
            )

        return set(state.discovered)

    async def _fetch_links(self, url: str) -> Tuple[str, List[str]]:
        """Fetch one page and return (page URL, raw link candidates)"""
        try:
            response = await self.fetch_client.fetch(url)
        except FetchError as e:
            self.stats['fetch_errors'] += 1
            self.logger.warning(str(e))
            return url, []

        self.stats['fetched'] += 1
        page_url = response.url or url
        try:
            return page_url, self.extract_links(response)
        except Exception as e:
            self.stats['extract_errors'] += 1
            self.logger.error(f"Error extracting links from {page_url}: {e}", exc_info=True)
            return page_url, []

    def extract_links(self, response: FetchResponse) -> List[str]:
        """
        Raw link candidates from a response

        XML (by content type or a .xml URL) yields loc/link/url element text;
        HTML yields anchor hrefs; anything else yields nothing.
        """
        content_type = response.content_type.lower()
        if 'xml' in content_type or response.url.lower().endswith('.xml'):
            return self._extract_xml_locators(response.body)
        if 'text/html' in content_type:
            return self._extract_anchors(response.body)
        return []

    def _extract_xml_locators(self, body: bytes) -> List[str]:
        """Locator text up to the first XML error"""
        parser = ElementTree.XMLPullParser(events=('end',))
        links: List[str] = []
        try:
            parser.feed(body)
            for _event, element in parser.read_events():
                tag = element.tag.rsplit('}', 1)[-1]
                if tag in LOCATOR_TAGS:
                    text = (element.text or '').strip()
                    if text:
                        links.append(text)
                    elif tag == 'link' and element.get('href'):
                        links.append(element.get('href').strip())
        except (ElementTree.ParseError, LookupError, ValueError) as e:
            self.logger.debug(f"XML parse stopped after {len(links)} locators: {e}")
        return links

    def _extract_anchors(self, body: bytes) -> List[str]:
        soup = BeautifulSoup(body, 'html.parser')
        return [anchor['href'] for anchor in soup.find_all('a', href=True)]

    def get_stats(self):
        """Get crawling statistics"""
        discovered = len(self.state.discovered) if self.state else 0
        return {**self.stats, 'discovered': discovered}
