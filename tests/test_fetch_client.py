"""
Tests for FetchClient implementation

Tests retry classification, linear backoff, response capture, streamed
downloads and proxy identity rotation.
"""

import asyncio

import aiohttp
import pytest
from aioresponses import aioresponses
from yarl import URL

from sitecrawl.core.base import ConfigurationError, StatusClass, TerminalFetchError
from sitecrawl.core.config import FetchConfig, ProxyConfig
from sitecrawl.core.fetch_client import FetchClient


URL_OK = "https://example.org/page.htm"


class TestFetchClient:
    """Test suite for FetchClient"""

    @pytest.fixture
    def fetch_config(self):
        """Fast retries for testing"""
        return FetchConfig(max_concurrent=5, retries=3, retry_delay_ms=0, timeout=5)

    @pytest.fixture
    def client(self, fetch_config):
        return FetchClient(fetch_config)

    @pytest.mark.asyncio
    async def test_fetch_success(self, client):
        """Test a 200 response is returned with body and lower-cased headers"""
        with aioresponses() as m:
            m.get(URL_OK, status=200, body="<html>hi</html>", content_type="text/html")

            response = await client.fetch(URL_OK)

        await client.cleanup()
        assert response.status == 200
        assert response.status_class == StatusClass.SUCCESS
        assert response.body == b"<html>hi</html>"
        assert response.content_type.startswith("text/html")
        assert all(key == key.lower() for key in response.headers)

    @pytest.mark.asyncio
    async def test_server_error_retried_until_exhausted(self, client):
        """Test 5xx is retried exactly `retries` times then becomes terminal"""
        with aioresponses() as m:
            m.get(URL_OK, status=503, repeat=True)

            with pytest.raises(TerminalFetchError) as exc_info:
                await client.fetch(URL_OK)

            assert len(m.requests[('GET', URL(URL_OK))]) == 3

        await client.cleanup()
        assert "max retries exceeded" in str(exc_info.value)
        assert exc_info.value.status == 503
        assert client.get_stats()['retries'] == 2

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, client):
        """Test 4xx is terminal on the first attempt"""
        with aioresponses() as m:
            m.get(URL_OK, status=404, repeat=True)

            with pytest.raises(TerminalFetchError) as exc_info:
                await client.fetch(URL_OK)

            assert len(m.requests[('GET', URL(URL_OK))]) == 1

        await client.cleanup()
        assert exc_info.value.status == 404

    @pytest.mark.asyncio
    async def test_connection_error_then_success(self, client):
        """Test a transient connection failure is retried"""
        with aioresponses() as m:
            m.get(URL_OK, exception=aiohttp.ClientConnectionError("reset"))
            m.get(URL_OK, status=200, body="ok")

            response = await client.fetch(URL_OK)

        await client.cleanup()
        assert response.body == b"ok"
        assert client.get_stats()['retries'] == 1

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self, client):
        """Test timeouts are retried and then reported as terminal"""
        with aioresponses() as m:
            m.get(URL_OK, exception=asyncio.TimeoutError(), repeat=True)

            with pytest.raises(TerminalFetchError):
                await client.fetch(URL_OK)

            assert len(m.requests[('GET', URL(URL_OK))]) == 3

        await client.cleanup()

    @pytest.mark.asyncio
    async def test_backoff_is_linear(self, fetch_config, monkeypatch):
        """Test retry sleeps grow as attempt * retry_delay"""
        fetch_config.retry_delay_ms = 100
        client = FetchClient(fetch_config)
        sleeps = []
        real_sleep = asyncio.sleep

        async def fake_sleep(delay, *args, **kwargs):
            if delay:
                sleeps.append(delay)
            await real_sleep(0)

        with aioresponses() as m:
            m.get(URL_OK, status=500, repeat=True)
            monkeypatch.setattr(asyncio, "sleep", fake_sleep)
            with pytest.raises(TerminalFetchError):
                await client.fetch(URL_OK)
            monkeypatch.undo()

        await client.cleanup()
        assert sleeps == [pytest.approx(0.1), pytest.approx(0.2)]

    @pytest.mark.asyncio
    async def test_download_streams_to_file(self, client, tmp_path):
        """Test a download writes the body to the target and reports its size"""
        target = tmp_path / "clip.mp4.part"
        payload = b"frame" * 5000

        with aioresponses() as m:
            m.get(URL_OK, status=200, body=payload, content_type="video/mp4")

            size = await client.download(URL_OK, target)

        await client.cleanup()
        assert size == len(payload)
        assert target.read_bytes() == payload

    @pytest.mark.asyncio
    async def test_download_retries_server_errors(self, client, tmp_path):
        target = tmp_path / "a.mp3.part"

        with aioresponses() as m:
            m.get(URL_OK, status=502)
            m.get(URL_OK, status=200, body=b"audio")

            size = await client.download(URL_OK, target)

        await client.cleanup()
        assert size == 5
        assert client.get_stats()['retries'] == 1

    @pytest.mark.asyncio
    async def test_download_over_limit_removes_file(self, client, tmp_path):
        """Test an oversized body is terminal and leaves no partial file"""
        target = tmp_path / "big.mp4.part"

        with aioresponses() as m:
            m.get(URL_OK, status=200, body=b"x" * 10000, repeat=True)

            with pytest.raises(TerminalFetchError) as exc_info:
                await client.download(URL_OK, target, max_size=1000)

            assert len(m.requests[('GET', URL(URL_OK))]) == 1

        await client.cleanup()
        assert "too large" in str(exc_info.value)
        assert not target.exists()

    @pytest.mark.asyncio
    async def test_download_client_error_writes_nothing(self, client, tmp_path):
        target = tmp_path / "gone.jpg.part"

        with aioresponses() as m:
            m.get(URL_OK, status=404)

            with pytest.raises(TerminalFetchError):
                await client.download(URL_OK, target)

        await client.cleanup()
        assert not target.exists()

    def test_separate_pools(self, fetch_config):
        """Test page and asset clients get independent permit pools"""
        pages = FetchClient(fetch_config)
        assets = FetchClient(fetch_config, max_concurrent=2, timeout=60, name="assets")

        assert pages.max_concurrent == 5
        assert assets.max_concurrent == 2
        assert pages.semaphore is not assets.semaphore
        assert assets.timeout.total == 60


class TestProxyConfig:
    """Test suite for proxy identity rotation"""

    def test_from_env_requires_credentials(self, monkeypatch):
        """Test missing credentials are a configuration error"""
        monkeypatch.delenv("PROXY_USER", raising=False)
        monkeypatch.delenv("PROXY_PASS", raising=False)

        with pytest.raises(ConfigurationError):
            ProxyConfig.from_env()

        monkeypatch.setenv("PROXY_USER", "customer")
        with pytest.raises(ConfigurationError):
            ProxyConfig.from_env()

    def test_from_env_defaults(self, monkeypatch):
        monkeypatch.setenv("PROXY_USER", "customer")
        monkeypatch.setenv("PROXY_PASS", "secret")
        monkeypatch.delenv("PROXY_HOST", raising=False)
        monkeypatch.delenv("PROXY_PORT", raising=False)

        proxy = ProxyConfig.from_env()

        assert proxy.proxy_url == "http://brd.superproxy.io:33335"

    def test_session_user_has_fresh_token(self):
        """Test every identity carries a new 8-character token"""
        proxy = ProxyConfig(user="customer", password="secret")

        first = proxy.session_user()
        second = proxy.session_user()

        assert first.startswith("customer-session-")
        token = first.rsplit("-", 1)[1]
        assert len(token) == 8
        assert token.isalnum()
        assert first != second

    def test_session_user_left_alone_when_present(self):
        proxy = ProxyConfig(user="customer-session-fixed", password="secret")
        assert proxy.session_user() == "customer-session-fixed"

    @pytest.mark.asyncio
    async def test_create_session_disables_pooling(self):
        """Test the per-fetch session never keeps connections alive"""
        proxy = ProxyConfig(user="customer", password="secret", host="proxy.local", port="8080")

        session, options = proxy.create_session(aiohttp.ClientTimeout(total=5), {'User-Agent': 'x'})
        try:
            assert session.connector.force_close is True
            assert options['proxy'] == "http://proxy.local:8080"
            assert options['proxy_auth'].login.startswith("customer-session-")
            assert options['proxy_auth'].password == "secret"
        finally:
            await session.close()
