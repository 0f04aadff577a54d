"""
Component Factory for sitecrawl

Builds the crawl engine and the scrape orchestrator with their collaborators
from a loaded ConfigManager.
"""

from typing import Optional

from sitecrawl.core.config import ConfigManager, ProxyConfig
from sitecrawl.core.crawl_engine import CrawlEngine
from sitecrawl.core.fetch_client import FetchClient
from sitecrawl.core.logging import get_logger
from sitecrawl.core.orchestrator import ScrapeOrchestrator
from sitecrawl.core.state import Progress
from sitecrawl.processors.content import ContentExtractor
from sitecrawl.processors.markdown import MarkdownConverter
from sitecrawl.processors.media import AssetPipeline
from sitecrawl.storage.state_store import StateStore
from sitecrawl.utils.url import domain_of


def create_state_store(config_manager: ConfigManager) -> StateStore:
    return StateStore(config_manager.storage_config)


def create_crawl_engine(config_manager: ConfigManager,
                        state_store: Optional[StateStore] = None) -> CrawlEngine:
    """
    Create the frontier crawler.

    Raises:
        ConfigurationError: when proxy rotation is on and credentials are missing
    """
    crawl_config = config_manager.crawl_config
    proxy = ProxyConfig.from_env() if crawl_config.use_proxy else None
    if proxy is not None:
        get_logger().info(f"Proxy rotation enabled via {proxy.proxy_url}")

    fetch_client = FetchClient(config_manager.fetch_config, proxy=proxy, name="pages")
    return CrawlEngine(crawl_config, fetch_client, state_store or create_state_store(config_manager))


def create_scrape_orchestrator(config_manager: ConfigManager,
                               state_store: Optional[StateStore] = None) -> ScrapeOrchestrator:
    """
    Create the scrape orchestrator with its page and asset fetch pools.

    The scrape cache is loaded from the state store; progress starts fresh
    for every run.
    """
    fetch_config = config_manager.fetch_config
    scrape_config = config_manager.scrape_config
    state_store = state_store or create_state_store(config_manager)

    page_client = FetchClient(fetch_config, name="pages")
    asset_client = FetchClient(
        fetch_config,
        max_concurrent=fetch_config.asset_concurrency,
        timeout=fetch_config.asset_timeout,
        name="assets",
    )

    asset_pipeline = AssetPipeline(
        asset_client,
        domain=domain_of(config_manager.crawl_config.base_url),
        assets_path=scrape_config.assets_path,
    )
    converter = MarkdownConverter(
        scrape_config.byline_names,
        asset_pipeline=asset_pipeline,
        skip_first_block=scrape_config.skip_first_block,
    )
    extractor = ContentExtractor(scrape_config, converter)

    return ScrapeOrchestrator(
        scrape_config,
        page_client,
        extractor,
        state_store,
        cache=state_store.load_cache(),
        progress=Progress(),
        asset_client=asset_client,
    )
