"""
Configuration Manager for sitecrawl

Handles YAML/JSON configuration files and environment variable integration
with validation. Proxy credentials come from the environment only.
"""

import os
import json
import random
import string
import yaml
import aiohttp
from typing import Dict, Any, Optional, List, Tuple
from dataclasses import dataclass, field, asdict
from pathlib import Path
from urllib.parse import urlparse

from sitecrawl.core.base import ConfigurationError


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@dataclass
class FetchConfig:
    """HTTP client configuration for page and asset pools"""
    max_concurrent: int = 100
    asset_concurrency: int = 50
    timeout: int = 30
    asset_timeout: int = 60
    max_asset_size: int = 100 * 1024 * 1024
    retries: int = 3
    retry_delay_ms: int = 1000
    user_agent: str = DEFAULT_USER_AGENT


@dataclass
class CrawlConfig:
    """
    Frontier configuration

    base_url fixes the crawl domain: its host with a leading "www." removed.
    That host and its subdomains are in scope, so https://www.example.org
    covers blog.example.org, while https://blog.example.org does not cover
    www.example.org or example.org.
    """
    base_url: str = "https://jesus-is-savior.com"
    seed_urls: List[str] = field(default_factory=lambda: [
        "https://www.jesus-is-savior.com/",
        "https://www.jesus-is-savior.com/sitemap.xml",
        "https://www.jesus-is-savior.com/rss.xml",
        "https://www.jesus-is-savior.com/recent_articles.htm",
        "https://www.jesus-is-savior.com/Basics/basics_of_christianity.htm",
    ])
    batch_size: int = 50
    use_proxy: bool = False
    output_file: str = "urls.txt"


@dataclass
class ScrapeConfig:
    """Scrape orchestrator and content extraction configuration"""
    urls_file: str = "urls.txt"
    output_file: str = "posts.json"
    chunk_size: int = 20
    rate_limit_ms: int = 100
    progress_interval: int = 10
    cache_interval: int = 50
    assets_path: str = "./assets"
    skip_first_block: bool = True
    avatar: str = "https://pbs.twimg.com/profile_images/1277486993765568512/LKqi43Xt_400x400.jpg"
    author: str = "David J. Stewart"
    byline_names: List[str] = field(default_factory=lambda: [
        "david j. stewart",
        "david j stewart",
    ])


@dataclass
class StorageConfig:
    """Locations of the persisted state files"""
    state_dir: str = "."
    crawl_state_file: str = "crawl_state.json"
    cache_file: str = "scraper_cache.json"
    progress_file: str = "scraper_progress.json"


@dataclass
class LoggingConfig:
    """Logging system configuration"""
    level: str = "INFO"
    file: str = "./logs/sitecrawl.log"
    max_size: str = "100MB"
    backup_count: int = 5


@dataclass
class ProxyConfig:
    """Rotating upstream proxy credentials"""
    user: str
    password: str
    host: str = "brd.superproxy.io"
    port: str = "33335"

    @classmethod
    def from_env(cls) -> "ProxyConfig":
        """Build from PROXY_* environment variables"""
        user = os.getenv('PROXY_USER')
        password = os.getenv('PROXY_PASS')
        if not user:
            raise ConfigurationError("PROXY_USER environment variable not set")
        if not password:
            raise ConfigurationError("PROXY_PASS environment variable not set")
        return cls(
            user=user,
            password=password,
            host=os.getenv('PROXY_HOST', 'brd.superproxy.io'),
            port=os.getenv('PROXY_PORT', '33335'),
        )

    @staticmethod
    def new_session_token(length: int = 8) -> str:
        alphabet = string.ascii_letters + string.digits
        return ''.join(random.choices(alphabet, k=length))

    def session_user(self) -> str:
        """Proxy username carrying a fresh session token"""
        if '-session-' in self.user:
            return self.user
        return f"{self.user}-session-{self.new_session_token()}"

    @property
    def proxy_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def create_session(self, timeout: aiohttp.ClientTimeout,
                       headers: Dict[str, str]) -> Tuple[aiohttp.ClientSession, Dict[str, Any]]:
        """
        Build a single-use session and the proxy options for one request.

        The connector never keeps connections alive and the proxy user carries
        a new session token, so every fetch reaches the upstream as a new client.

        Returns:
            Tuple of (session, keyword arguments for session.get)
        """
        connector = aiohttp.TCPConnector(force_close=True, limit=0)
        session = aiohttp.ClientSession(timeout=timeout, headers=headers, connector=connector)
        request_options = {
            'proxy': self.proxy_url,
            'proxy_auth': aiohttp.BasicAuth(self.session_user(), self.password),
        }
        return session, request_options


class ConfigManager:
    """
    Centralized configuration manager with support for YAML/JSON files
    and environment variable integration.
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or "config/config.yaml"
        self._config_data: Dict[str, Any] = {}
        self.fetch_config: Optional[FetchConfig] = None
        self.crawl_config: Optional[CrawlConfig] = None
        self.scrape_config: Optional[ScrapeConfig] = None
        self.storage_config: Optional[StorageConfig] = None
        self.logging_config: Optional[LoggingConfig] = None

    def load_config(self, config_path: Optional[str] = None) -> Dict[str, Any]:
        """Load configuration from file with environment variable override"""
        if config_path:
            self.config_path = config_path

        config_file = Path(self.config_path)

        if not config_file.exists():
            self._config_data = self._get_default_config()
        else:
            try:
                with open(config_file, 'r', encoding='utf-8') as f:
                    if config_file.suffix.lower() == '.json':
                        self._config_data = json.load(f)
                    else:  # Assume YAML
                        self._config_data = yaml.safe_load(f) or {}
            except (OSError, ValueError, yaml.YAMLError) as e:
                raise ConfigurationError(f"Failed to load config from {config_file}: {e}")

        self._apply_env_overrides()
        self._parse_config()

        return self._config_data

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration dictionary"""
        return {
            'fetch': asdict(FetchConfig()),
            'crawl': asdict(CrawlConfig()),
            'scrape': asdict(ScrapeConfig()),
            'storage': asdict(StorageConfig()),
            'logging': asdict(LoggingConfig()),
        }

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides"""
        if os.getenv('SITECRAWL_MAX_CONCURRENT'):
            try:
                self._config_data.setdefault('fetch', {})['max_concurrent'] = int(os.getenv('SITECRAWL_MAX_CONCURRENT'))
            except ValueError:
                pass

        if os.getenv('SITECRAWL_RETRIES'):
            try:
                self._config_data.setdefault('fetch', {})['retries'] = int(os.getenv('SITECRAWL_RETRIES'))
            except ValueError:
                pass

        if os.getenv('LOG_LEVEL'):
            self._config_data.setdefault('logging', {})['level'] = os.getenv('LOG_LEVEL')

    @staticmethod
    def _section(cls, data: Optional[Dict[str, Any]]):
        """Build a dataclass from a config section, ignoring unknown keys"""
        data = data or {}
        known = {name: value for name, value in data.items() if name in cls.__dataclass_fields__}
        return cls(**known)

    def _parse_config(self) -> None:
        """Parse configuration into dataclass objects"""
        self.fetch_config = self._section(FetchConfig, self._config_data.get('fetch'))
        self.crawl_config = self._section(CrawlConfig, self._config_data.get('crawl'))
        self.scrape_config = self._section(ScrapeConfig, self._config_data.get('scrape'))
        self.storage_config = self._section(StorageConfig, self._config_data.get('storage'))
        self.logging_config = self._section(LoggingConfig, self._config_data.get('logging'))

    def validate_config(self) -> bool:
        """Validate the loaded configuration"""
        if not self.fetch_config:
            raise ConfigurationError("Configuration not loaded")

        parsed = urlparse(self.crawl_config.base_url)
        if parsed.scheme not in ('http', 'https') or not parsed.hostname:
            raise ConfigurationError(f"Invalid base URL: {self.crawl_config.base_url}")

        if self.fetch_config.max_concurrent <= 0:
            raise ConfigurationError("max_concurrent must be greater than 0")

        if self.fetch_config.asset_concurrency <= 0:
            raise ConfigurationError("asset_concurrency must be greater than 0")

        if self.fetch_config.max_asset_size <= 0:
            raise ConfigurationError("max_asset_size must be greater than 0")

        if self.fetch_config.retries <= 0:
            raise ConfigurationError("retries must be greater than 0")

        if self.crawl_config.batch_size <= 0 or self.scrape_config.chunk_size <= 0:
            raise ConfigurationError("batch_size and chunk_size must be greater than 0")

        if self.scrape_config.progress_interval <= 0 or self.scrape_config.cache_interval <= 0:
            raise ConfigurationError("checkpoint intervals must be greater than 0")

        return True
