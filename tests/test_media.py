"""
Tests for AssetPipeline

Tests deterministic naming, folder classification, download de-duplication
and in-domain asset discovery.
"""

import asyncio
import hashlib

import pytest
from unittest.mock import AsyncMock
from aioresponses import aioresponses
from bs4 import BeautifulSoup

from sitecrawl.core.base import TerminalFetchError
from sitecrawl.core.config import FetchConfig
from sitecrawl.core.fetch_client import FetchClient
from sitecrawl.processors.media import (
    AssetKind,
    AssetPipeline,
    is_audio_file,
    is_media_file,
    is_video_file,
    local_name,
    local_reference,
)


IMG_URL = "https://www.example.org/pics/photo.jpg"
BASE = "https://www.example.org/articles/page.htm"


class TestNaming:
    """Test suite for naming and classification helpers"""

    def test_local_name_is_deterministic(self):
        expected = hashlib.sha256(IMG_URL.encode("utf-8")).hexdigest() + ".jpg"

        assert local_name(IMG_URL) == expected
        assert local_name(IMG_URL) == local_name(IMG_URL)

    def test_local_name_without_extension(self):
        assert local_name("https://www.example.org/embed/123").endswith(".bin")

    def test_kind_from_extension(self):
        assert AssetKind.from_url("https://x.org/a.MP3") == AssetKind.AUDIO
        assert AssetKind.from_url("https://x.org/a.webm") == AssetKind.VIDEO
        assert AssetKind.from_url("https://x.org/a.png") == AssetKind.IMAGE
        assert AssetKind.from_url("https://x.org/embed/1") == AssetKind.IMAGE

    def test_local_reference_folder(self):
        assert local_reference("https://x.org/a.mp3").startswith("audio/")
        assert local_reference("https://x.org/a.mov").startswith("videos/")
        assert local_reference(IMG_URL).startswith("images/")

    def test_media_predicates(self):
        assert is_audio_file("https://x.org/a.flac?dl=1")
        assert is_video_file("https://x.org/a.mkv")
        assert is_media_file("https://x.org/a.wav")
        assert not is_media_file("https://x.org/a.htm")


class TestAssetPipeline:
    """Test suite for AssetPipeline"""

    @pytest.fixture
    def fetch_client(self):
        """Client whose downloads write a few bytes to the requested file"""
        client = AsyncMock()

        async def download(url, target, max_size=None):
            target.write_bytes(b"bytes")
            return 5

        client.download.side_effect = download
        return client

    @pytest.fixture
    def pipeline(self, fetch_client, tmp_path):
        return AssetPipeline(fetch_client, domain="example.org", assets_path=str(tmp_path))

    @pytest.mark.asyncio
    async def test_download_writes_content_addressed_file(self, pipeline, fetch_client, tmp_path):
        reference = await pipeline.download(IMG_URL)

        assert reference == f"images/{local_name(IMG_URL)}"
        assert (tmp_path / reference).read_bytes() == b"bytes"
        assert not list((tmp_path / "images").glob("*.part"))
        fetch_client.download.assert_awaited_once()
        assert fetch_client.download.await_args.args[0] == IMG_URL

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_download(self, pipeline, fetch_client):
        """Test one network fetch for many simultaneous references"""
        references = await asyncio.gather(*(pipeline.download(IMG_URL) for _ in range(5)))

        assert len(set(references)) == 1
        assert fetch_client.download.await_count == 1

    @pytest.mark.asyncio
    async def test_existing_file_short_circuits(self, fetch_client, tmp_path):
        """Test files from an earlier run are not fetched again"""
        target = tmp_path / "images" / local_name(IMG_URL)
        target.parent.mkdir(parents=True)
        target.write_bytes(b"old")
        pipeline = AssetPipeline(fetch_client, domain="example.org", assets_path=str(tmp_path))

        reference = await pipeline.download(IMG_URL)

        assert reference == f"images/{local_name(IMG_URL)}"
        fetch_client.download.assert_not_awaited()
        assert target.read_bytes() == b"old"

    @pytest.mark.asyncio
    async def test_failed_download_returns_none(self, pipeline, fetch_client, tmp_path):
        fetch_client.download.side_effect = TerminalFetchError(IMG_URL, "HTTP 404", 404)

        assert await pipeline.download(IMG_URL) is None
        assert not (tmp_path / "images" / local_name(IMG_URL)).exists()
        assert pipeline.get_stats()['failed'] == 1

    @pytest.mark.asyncio
    async def test_streams_through_fetch_client(self, tmp_path):
        """Test a real FetchClient streams the asset body to disk"""
        client = FetchClient(FetchConfig(retries=1, retry_delay_ms=0))
        pipeline = AssetPipeline(client, domain="example.org", assets_path=str(tmp_path))
        payload = b"\x00\x01" * 20000

        with aioresponses() as m:
            m.get(IMG_URL, status=200, body=payload, content_type="image/jpeg")

            reference = await pipeline.download(IMG_URL)

        await client.cleanup()
        assert (tmp_path / reference).read_bytes() == payload

    def test_find_asset_urls(self, pipeline):
        """Test in-domain selection across element kinds"""
        soup = BeautifulSoup(
            '<body>'
            '<img src="/pics/photo.jpg">'
            '<img src="https://cdn.other.org/x.png">'
            '<img src="local.gif">'
            '<a href="/audio/sermon.mp3">Listen</a>'
            '<a href="/page.htm">Page</a>'
            '<a href="https://other.org/clip.mp4">External clip</a>'
            '<iframe src="https://www.example.org/embed/video.mp4"></iframe>'
            '<embed src="https://youtube.com/embed/xyz">'
            '<img src="/pics/photo.jpg">'
            '</body>',
            "html.parser",
        )

        urls = pipeline.find_asset_urls(soup.body, BASE)

        assert urls == [
            "https://www.example.org/pics/photo.jpg",
            "https://www.example.org/articles/local.gif",
            "https://www.example.org/audio/sermon.mp3",
            "https://www.example.org/embed/video.mp4",
        ]

    def test_root_relative_counts_as_in_domain(self, fetch_client, tmp_path):
        pipeline = AssetPipeline(fetch_client, domain="example.org", assets_path=str(tmp_path))
        soup = BeautifulSoup('<img src="/pics/a.jpg">', "html.parser")

        assert pipeline.find_asset_urls(soup, "https://mirror.test/page.htm") == ["https://mirror.test/pics/a.jpg"]

    @pytest.mark.asyncio
    async def test_collect_assets_maps_successes(self, pipeline, fetch_client):
        async def download(url, target, max_size=None):
            if url.endswith(".mp3"):
                raise TerminalFetchError(url, "HTTP 500 max retries exceeded", 500)
            target.write_bytes(b"bytes")
            return 5

        fetch_client.download.side_effect = download
        soup = BeautifulSoup(
            '<body><img src="/pics/photo.jpg"><a href="/audio/s.mp3">x</a></body>', "html.parser"
        )

        mapping = await pipeline.collect_assets(soup.body, BASE)

        assert mapping == {IMG_URL: f"images/{local_name(IMG_URL)}"}
