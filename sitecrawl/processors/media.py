"""
Asset Pipeline Implementation

Finds media references in a parsed page, downloads the in-domain ones through
the asset fetch pool and maps each absolute URL to a content-addressed local
reference under the assets root.
"""

import asyncio
import hashlib
import os
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import urljoin, urlparse

from bs4 import Tag

from sitecrawl.core.base import FetchClientInterface, FetchError
from sitecrawl.core.logging import get_logger
from sitecrawl.utils.url import is_in_domain, url_extension


AUDIO_EXTENSIONS = {'.mp3', '.wav', '.ogg', '.m4a', '.flac', '.aac'}
VIDEO_EXTENSIONS = {'.mp4', '.avi', '.mov', '.wmv', '.webm', '.mkv', '.flv'}


class AssetKind(Enum):
    """Asset category, which is also the folder under the assets root"""
    IMAGE = "images"
    VIDEO = "videos"
    AUDIO = "audio"

    @classmethod
    def from_url(cls, url: str) -> "AssetKind":
        ext = url_extension(url)
        if ext in AUDIO_EXTENSIONS:
            return cls.AUDIO
        if ext in VIDEO_EXTENSIONS:
            return cls.VIDEO
        return cls.IMAGE


def is_audio_file(url: str) -> bool:
    return url_extension(url) in AUDIO_EXTENSIONS


def is_video_file(url: str) -> bool:
    return url_extension(url) in VIDEO_EXTENSIONS


def is_media_file(url: str) -> bool:
    """Audio or video target, as linked from an anchor"""
    return is_audio_file(url) or is_video_file(url)


def local_name(url: str) -> str:
    """Deterministic file name: sha256 of the absolute URL plus its extension"""
    digest = hashlib.sha256(url.encode('utf-8')).hexdigest()
    ext = url_extension(url).lstrip('.') or 'bin'
    return f"{digest}.{ext}"


def local_reference(url: str) -> str:
    """Path of the asset relative to the assets root, e.g. images/<hash>.jpg"""
    return f"{AssetKind.from_url(url).value}/{local_name(url)}"


class AssetPipeline:
    """
    Downloads page assets once each and remembers their local references.

    Downloads go through the asset fetch client, whose permit pool bounds how
    many run at once. Concurrent requests for the same URL await one shared
    task.
    """

    def __init__(self, fetch_client: FetchClientInterface, domain: str,
                 assets_path: str = "./assets"):
        self.logger = get_logger()
        self.fetch_client = fetch_client
        self.domain = domain
        self.assets_path = Path(assets_path)
        self._inflight: Dict[str, asyncio.Task] = {}
        self._resolved: Dict[str, str] = {}

        self.stats = {
            'downloaded': 0,
            'existing': 0,
            'failed': 0,
        }

    def is_in_domain_reference(self, raw: str, absolute_url: str) -> bool:
        """Root-relative references and crawl-domain hosts count as in-domain"""
        if raw.startswith('/') and not raw.startswith('//'):
            return True
        return is_in_domain(urlparse(absolute_url).hostname, self.domain)

    async def download(self, url: str) -> Optional[str]:
        """
        Make sure the asset for url exists on disk

        Args:
            url: Absolute asset URL

        Returns:
            Local reference relative to the assets root, or None on failure
        """
        if url in self._resolved:
            return self._resolved[url]

        task = self._inflight.get(url)
        if task is None:
            task = asyncio.ensure_future(self._download(url))
            self._inflight[url] = task
            task.add_done_callback(lambda _t, key=url: self._inflight.pop(key, None))

        reference = await task
        if reference is not None:
            self._resolved[url] = reference
        return reference

    async def _download(self, url: str) -> Optional[str]:
        reference = local_reference(url)
        target = self.assets_path / reference

        if target.exists():
            self.stats['existing'] += 1
            return reference

        tmp = target.with_suffix(target.suffix + '.part')
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            size = await self.fetch_client.download(url, tmp)
            os.replace(tmp, target)
        except FetchError as e:
            self.stats['failed'] += 1
            self.logger.warning(f"Asset download failed: {e}")
            return None
        except OSError as e:
            self.stats['failed'] += 1
            self.logger.warning(f"Could not write asset {url} to {target}: {e}")
            tmp.unlink(missing_ok=True)
            return None

        self.stats['downloaded'] += 1
        self.logger.debug(f"Downloaded asset {url} -> {reference} ({size} bytes)")
        return reference

    def find_asset_urls(self, root: Tag, base_url: str) -> List[str]:
        """
        Absolute in-domain asset URLs referenced under root, in document order
        """
        found: List[str] = []
        seen = set()

        def consider(raw: Optional[str]) -> None:
            if not raw or not raw.strip():
                return
            raw = raw.strip()
            absolute = urljoin(base_url, raw)
            if absolute in seen:
                return
            if urlparse(absolute).scheme not in ('http', 'https'):
                return
            if not self.is_in_domain_reference(raw, absolute):
                return
            seen.add(absolute)
            found.append(absolute)

        for element in root.find_all(['img', 'a', 'iframe', 'video', 'embed']):
            if element.name == 'a':
                href = element.get('href')
                if href and is_media_file(urljoin(base_url, href.strip())):
                    consider(href)
            else:
                consider(element.get('src'))

        return found

    async def collect_assets(self, root: Tag, base_url: str) -> Dict[str, str]:
        """
        Download every in-domain asset referenced under root

        Args:
            root: Parsed body (or document) to scan
            base_url: Page URL used to resolve relative references

        Returns:
            Mapping of absolute asset URL to local reference, successes only
        """
        urls = self.find_asset_urls(root, base_url)
        if not urls:
            return {}

        references = await asyncio.gather(*(self.download(url) for url in urls))
        mapping = {url: ref for url, ref in zip(urls, references) if ref is not None}

        self.logger.debug(f"Resolved {len(mapping)}/{len(urls)} assets for {base_url}")
        return mapping

    def get_stats(self) -> Dict[str, int]:
        return dict(self.stats)
