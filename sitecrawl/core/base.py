"""
Base Classes and Data Models for sitecrawl

Defines the abstract component interfaces, the records passed between
components and the exception hierarchy shared by the whole package.
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional, Mapping
from dataclasses import dataclass, field
from enum import Enum


class StatusClass(Enum):
    """Coarse classification of an HTTP status code"""
    SUCCESS = "success"
    REDIRECT = "redirect"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    OTHER = "other"

    @classmethod
    def from_status(cls, status: int) -> "StatusClass":
        if 200 <= status < 300:
            return cls.SUCCESS
        if 300 <= status < 400:
            return cls.REDIRECT
        if 400 <= status < 500:
            return cls.CLIENT_ERROR
        if 500 <= status < 600:
            return cls.SERVER_ERROR
        return cls.OTHER


@dataclass
class FetchResponse:
    """Fully read HTTP response for one URL"""
    url: str
    status: int
    headers: Dict[str, str]
    body: bytes

    @property
    def status_class(self) -> StatusClass:
        return StatusClass.from_status(self.status)

    @property
    def content_type(self) -> str:
        return self.headers.get('content-type', '')


@dataclass(frozen=True)
class ContentRecord:
    """Normalized output for one successfully scraped page"""
    avatar: str
    author: str
    source_url: str
    title: Optional[str] = None
    date_published: Optional[str] = None
    date_updated: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    markdown_body: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the on-disk field names"""
        return {
            'avatar': self.avatar,
            'username': self.author,
            'url': self.source_url,
            'title': self.title,
            'date_published': self.date_published,
            'date_updated': self.date_updated,
            'tags': list(self.tags),
            'content': self.markdown_body,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ContentRecord":
        return cls(
            avatar=data.get('avatar', ''),
            author=data.get('username', ''),
            source_url=data['url'],
            title=data.get('title'),
            date_published=data.get('date_published'),
            date_updated=data.get('date_updated'),
            tags=list(data.get('tags') or []),
            markdown_body=data.get('content', ''),
        )


class BaseComponent(ABC):
    """Base class for all long-lived components"""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self._initialized = False

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the component"""
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up resources"""
        pass

    def is_initialized(self) -> bool:
        """Check if component is initialized"""
        return self._initialized


class FetchClientInterface(BaseComponent):
    """Interface for HTTP retrieval"""

    @abstractmethod
    async def fetch(self, url: str) -> FetchResponse:
        """Fetch a URL, raising TerminalFetchError when it cannot be retrieved"""
        pass

    @abstractmethod
    async def download(self, url: str, target, max_size: Optional[int] = None) -> int:
        """Stream a URL into the file at target and return the number of bytes written"""
        pass


class CrawlEngineInterface(BaseComponent):
    """Interface for the breadth-first frontier"""

    @abstractmethod
    async def crawl(self) -> set:
        """Run the crawl to completion and return the discovered set"""
        pass

    @abstractmethod
    def extract_links(self, response: FetchResponse) -> List[str]:
        """Extract candidate links from a fetched response"""
        pass


class ContentExtractorInterface(ABC):
    """Interface for converting one fetched page into a ContentRecord"""

    @abstractmethod
    async def extract(self, url: str, body: bytes,
                      headers: Mapping[str, str]) -> Optional[ContentRecord]:
        """Extract a record, or None when extraction cannot proceed"""
        pass


class ScraperError(Exception):
    """Base exception for scraper errors"""
    pass


class ConfigurationError(ScraperError):
    """Configuration-related errors, fatal at startup"""
    pass


class FetchError(ScraperError):
    """Fetch-related errors"""

    def __init__(self, url: str, message: str, status: Optional[int] = None):
        self.url = url
        self.status = status
        super().__init__(f"Failed to fetch {url}: {message}")


class TransientFetchError(FetchError):
    """Timeouts, connection failures and 5xx responses; retried in place"""
    pass


class TerminalFetchError(FetchError):
    """4xx responses, exhausted retries and unusable client configuration"""
    pass


class ExtractionError(ScraperError):
    """Content extraction errors"""
    pass


class StorageError(ScraperError):
    """Storage-related errors"""
    pass
