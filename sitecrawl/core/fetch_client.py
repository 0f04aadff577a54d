"""
Fetch Client Implementation

Bounded-concurrency HTTP retrieval on aiohttp with retry, linear backoff and
optional rotating proxy identity. Asset downloads stream to disk.
"""

import asyncio
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

import aiofiles
import aiohttp

from sitecrawl.core.base import (
    FetchClientInterface,
    FetchError,
    FetchResponse,
    StatusClass,
    TransientFetchError,
    TerminalFetchError,
)
from sitecrawl.core.config import FetchConfig, ProxyConfig
from sitecrawl.core.logging import get_logger


DOWNLOAD_CHUNK_SIZE = 8192

ResponseHandler = Callable[[aiohttp.ClientResponse], Awaitable[FetchResponse]]


class FetchClient(FetchClientInterface):
    """
    HTTP client with:
    - a counting permit pool bounding in-flight requests
    - retry of transient failures with linearly increasing delay
    - pooled connections, or a fresh proxied session per fetch when a
      ProxyConfig is given
    """

    def __init__(self, config: FetchConfig, max_concurrent: Optional[int] = None,
                 timeout: Optional[int] = None, proxy: Optional[ProxyConfig] = None,
                 name: str = "pages"):
        super().__init__({'name': name})
        self.logger = get_logger()
        self.fetch_config = config
        self.name = name
        self.max_concurrent = max_concurrent or config.max_concurrent
        self.timeout = aiohttp.ClientTimeout(total=timeout or config.timeout)
        self.retries = max(config.retries, 1)
        self.retry_delay = config.retry_delay_ms / 1000.0
        self.proxy = proxy
        self.headers = {'User-Agent': config.user_agent}

        self.semaphore = asyncio.Semaphore(self.max_concurrent)
        self.session: Optional[aiohttp.ClientSession] = None

        self.stats = {
            'requests': 0,
            'successful': 0,
            'failed': 0,
            'retries': 0,
        }

    async def initialize(self) -> None:
        """Create the pooled session (not used when proxy rotation is on)"""
        if self._initialized:
            return

        if self.proxy is None:
            connector = aiohttp.TCPConnector(
                limit=self.max_concurrent,
                ttl_dns_cache=300,
            )
            self.session = aiohttp.ClientSession(
                timeout=self.timeout,
                connector=connector,
                headers=self.headers,
            )

        self._initialized = True
        self.logger.debug(f"Fetch client '{self.name}' initialized with max_concurrent={self.max_concurrent}")

    async def cleanup(self) -> None:
        """Close the pooled session"""
        if self.session:
            await self.session.close()
            self.session = None
        self._initialized = False

    async def fetch(self, url: str) -> FetchResponse:
        """
        Fetch a URL with retry

        Args:
            url: Absolute URL to fetch

        Returns:
            FetchResponse with the full body

        Raises:
            TerminalFetchError: on 4xx, other non-success statuses, or when
                all attempts failed transiently
        """
        return await self._with_retry(url, self._read_body)

    async def download(self, url: str, target: Path, max_size: Optional[int] = None) -> int:
        """
        Stream a URL into a file with the same permit and retry rules as fetch

        The file is rewritten from the start on every attempt and removed when
        the download fails.

        Args:
            url: Absolute URL to download
            target: File to write
            max_size: Byte limit, defaults to FetchConfig.max_asset_size

        Returns:
            Number of bytes written
        """
        limit = max_size or self.fetch_config.max_asset_size
        target = Path(target)

        async def stream(response: aiohttp.ClientResponse) -> FetchResponse:
            return await self._stream_body(response, url, target, limit)

        try:
            await self._with_retry(url, stream)
        except FetchError:
            target.unlink(missing_ok=True)
            raise
        return target.stat().st_size

    async def _with_retry(self, url: str, handler: ResponseHandler) -> FetchResponse:
        if not self._initialized:
            await self.initialize()

        last_error: Optional[TransientFetchError] = None

        for attempt in range(1, self.retries + 1):
            try:
                response = await self._attempt(url, handler)
            except TransientFetchError as e:
                last_error = e
                if attempt < self.retries:
                    self.stats['retries'] += 1
                    self.logger.debug(f"Attempt {attempt}/{self.retries} failed for {url}: {e}")
                    await asyncio.sleep(self.retry_delay * attempt)
                continue
            except TerminalFetchError:
                self.stats['failed'] += 1
                raise

            if response.status_class == StatusClass.SUCCESS:
                self.stats['successful'] += 1
                return response

            if response.status_class == StatusClass.SERVER_ERROR:
                last_error = TransientFetchError(url, f"HTTP {response.status}", response.status)
                if attempt < self.retries:
                    self.stats['retries'] += 1
                    self.logger.debug(f"Attempt {attempt}/{self.retries} got HTTP {response.status} for {url}")
                    await asyncio.sleep(self.retry_delay * attempt)
                continue

            self.stats['failed'] += 1
            raise TerminalFetchError(url, f"HTTP {response.status}", response.status)

        self.stats['failed'] += 1
        status = last_error.status if last_error else None
        raise TerminalFetchError(url, f"max retries exceeded ({last_error})", status)

    async def _attempt(self, url: str, handler: ResponseHandler) -> FetchResponse:
        """Run one request while holding a permit"""
        async with self.semaphore:
            self.stats['requests'] += 1
            started = time.time()
            try:
                if self.proxy is not None:
                    return await self._proxied_request(url, handler)
                return await self._request(self.session, url, {}, handler)
            except asyncio.TimeoutError:
                raise TransientFetchError(url, f"timeout after {time.time() - started:.1f}s")
            except aiohttp.InvalidURL as e:
                raise TerminalFetchError(url, f"invalid URL: {e}")
            except aiohttp.ClientError as e:
                raise TransientFetchError(url, f"client error: {e}")

    async def _proxied_request(self, url: str, handler: ResponseHandler) -> FetchResponse:
        """Request through a single-use session with a new proxy identity"""
        session, request_options = self.proxy.create_session(self.timeout, self.headers)
        async with session:
            return await self._request(session, url, request_options, handler)

    async def _request(self, session: aiohttp.ClientSession, url: str,
                       request_options: Dict[str, Any], handler: ResponseHandler) -> FetchResponse:
        async with session.get(url, **request_options) as response:
            return await handler(response)

    @staticmethod
    def _describe(response: aiohttp.ClientResponse, body: bytes = b"") -> FetchResponse:
        headers = {key.lower(): value for key, value in response.headers.items()}
        return FetchResponse(url=str(response.url), status=response.status, headers=headers, body=body)

    async def _read_body(self, response: aiohttp.ClientResponse) -> FetchResponse:
        return self._describe(response, await response.read())

    async def _stream_body(self, response: aiohttp.ClientResponse, url: str,
                           target: Path, max_size: int) -> FetchResponse:
        """Write a successful body to target in chunks; other statuses write nothing"""
        result = self._describe(response)
        if result.status_class != StatusClass.SUCCESS:
            return result

        declared = response.content_length
        if declared is not None and declared > max_size:
            raise TerminalFetchError(url, f"too large: {declared} bytes (max {max_size})")

        written = 0
        async with aiofiles.open(target, 'wb') as f:
            async for chunk in response.content.iter_chunked(DOWNLOAD_CHUNK_SIZE):
                written += len(chunk)
                if written > max_size:
                    raise TerminalFetchError(url, f"too large: over {max_size} bytes")
                await f.write(chunk)
        return result

    def get_stats(self) -> Dict[str, Any]:
        """Get fetch statistics"""
        return dict(self.stats)
