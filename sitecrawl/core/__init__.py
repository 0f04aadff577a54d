"""
Core components for sitecrawl

This package contains the core components including:
- Base classes, records and exceptions
- Configuration management
- Logging system
- Crawl and scrape state
- Fetch client, crawl engine and scrape orchestrator (import from their modules)
"""

from sitecrawl.core.base import (
    StatusClass,
    FetchResponse,
    ContentRecord,
    BaseComponent,
    FetchClientInterface,
    CrawlEngineInterface,
    ContentExtractorInterface,
    ScraperError,
    ConfigurationError,
    FetchError,
    TransientFetchError,
    TerminalFetchError,
    ExtractionError,
    StorageError
)

from sitecrawl.core.config import (
    ConfigManager,
    FetchConfig,
    CrawlConfig,
    ScrapeConfig,
    StorageConfig,
    LoggingConfig,
    ProxyConfig
)

from sitecrawl.core.logging import (
    LoggingManager,
    get_logger,
    setup_logging
)

from sitecrawl.core.state import (
    CrawlState,
    ScrapeCache,
    Progress
)

__all__ = [
    # Base classes
    'StatusClass',
    'FetchResponse',
    'ContentRecord',
    'BaseComponent',
    'FetchClientInterface',
    'CrawlEngineInterface',
    'ContentExtractorInterface',
    'ScraperError',
    'ConfigurationError',
    'FetchError',
    'TransientFetchError',
    'TerminalFetchError',
    'ExtractionError',
    'StorageError',

    # Configuration
    'ConfigManager',
    'FetchConfig',
    'CrawlConfig',
    'ScrapeConfig',
    'StorageConfig',
    'LoggingConfig',
    'ProxyConfig',

    # Logging
    'LoggingManager',
    'get_logger',
    'setup_logging',

    # State
    'CrawlState',
    'ScrapeCache',
    'Progress'
]
