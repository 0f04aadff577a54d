"""
DOM-to-Markdown Converter

Flattens a parsed page into a single line of text with inline links, images
and media markers. Assets are resolved first (pass 1) so that pass 2 can
point at local copies where they exist.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence
from urllib.parse import urljoin

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from sitecrawl.core.logging import get_logger
from sitecrawl.processors.media import AssetPipeline, is_audio_file, is_media_file


class ElementCategory(Enum):
    """How the walk treats an element, decided once from its tag name"""
    BLOCK = "block"
    HEADING = "heading"
    LINE_BREAK = "line_break"
    INLINE_EMPHASIS = "inline_emphasis"
    MEDIA_IMAGE = "media_image"
    MEDIA_LINK = "media_link"
    MEDIA_EMBED = "media_embed"
    SKIP = "skip"
    SECTION = "section"
    GENERIC = "generic"


CATEGORY_BY_TAG: Dict[str, ElementCategory] = {
    'p': ElementCategory.BLOCK,
    'div': ElementCategory.BLOCK,
    'font': ElementCategory.BLOCK,
    'center': ElementCategory.BLOCK,
    'br': ElementCategory.LINE_BREAK,
    'strong': ElementCategory.INLINE_EMPHASIS,
    'b': ElementCategory.INLINE_EMPHASIS,
    'em': ElementCategory.INLINE_EMPHASIS,
    'i': ElementCategory.INLINE_EMPHASIS,
    'img': ElementCategory.MEDIA_IMAGE,
    'a': ElementCategory.MEDIA_LINK,
    'iframe': ElementCategory.MEDIA_EMBED,
    'video': ElementCategory.MEDIA_EMBED,
    'embed': ElementCategory.MEDIA_EMBED,
    'script': ElementCategory.SKIP,
    'style': ElementCategory.SKIP,
    'noscript': ElementCategory.SKIP,
    'head': ElementCategory.SKIP,
    'meta': ElementCategory.SKIP,
    'link': ElementCategory.SKIP,
}
CATEGORY_BY_TAG.update({f'h{level}': ElementCategory.HEADING for level in range(1, 7)})
CATEGORY_BY_TAG.update({tag: ElementCategory.SECTION for tag in (
    'section', 'article', 'blockquote', 'address', 'aside', 'main', 'header',
    'footer', 'nav', 'figure', 'figcaption', 'details', 'summary', 'table',
    'tbody', 'thead', 'tfoot', 'tr', 'td', 'th',
)})

WHITESPACE_RE = re.compile(r'\s+')
SPACE_BEFORE_CLOSING_RE = re.compile(r' ([.,!?:;)\]}])')
SPACE_AFTER_OPENING_RE = re.compile(r'([(\[{]) ')


def categorize(tag_name: str) -> ElementCategory:
    return CATEGORY_BY_TAG.get(tag_name.lower(), ElementCategory.GENERIC)


def collapse_whitespace(text: str) -> str:
    return WHITESPACE_RE.sub(' ', text.strip())


def clean_markdown(text: str) -> str:
    """Single spaces, no space before closing punctuation or after opening brackets"""
    text = collapse_whitespace(text)
    text = SPACE_BEFORE_CLOSING_RE.sub(r'\1', text)
    text = SPACE_AFTER_OPENING_RE.sub(r'\1', text)
    return text.strip()


@dataclass
class _MarkdownBuffer:
    """Output accumulator threaded through one conversion"""
    base_url: str
    assets: Dict[str, str]
    skip_first_block: bool = True
    parts: List[str] = field(default_factory=list)

    def append(self, text: str) -> None:
        self.parts.append(text)

    def ends_with_space(self) -> bool:
        return not self.parts or self.parts[-1].endswith(' ')

    def text(self) -> str:
        return ''.join(self.parts)


class MarkdownConverter:
    """
    Converts a parsed document into flat markdown text.

    Byline blocks (author attribution) and headings are dropped. Emphasis is
    flattened to plain text.
    """

    def __init__(self, byline_names: Sequence[str], asset_pipeline: Optional[AssetPipeline] = None,
                 skip_first_block: bool = True):
        self.logger = get_logger()
        self.byline_names = [name.lower() for name in byline_names]
        self.asset_pipeline = asset_pipeline
        self.skip_first_block = skip_first_block

    def contains_byline(self, text: str) -> bool:
        """
        True when text reads as an author attribution line
        """
        normalized = text.strip().lower()
        for name in self.byline_names:
            if f"by {name}" in normalized or normalized.startswith(name):
                return True
            if len(normalized) < 100 and name in normalized:
                return True
        return False

    async def convert(self, soup: BeautifulSoup, base_url: str) -> str:
        """
        Convert a document to flat markdown

        Args:
            soup: Parsed document
            base_url: Page URL, used to resolve relative references

        Returns:
            Cleaned markdown text
        """
        root = soup.body or soup

        assets: Dict[str, str] = {}
        if self.asset_pipeline is not None:
            assets = await self.asset_pipeline.collect_assets(root, base_url)

        buffer = _MarkdownBuffer(base_url=base_url, assets=assets,
                                 skip_first_block=self.skip_first_block)
        self._walk(root, buffer)
        return clean_markdown(buffer.text())

    def _resolve(self, raw: Optional[str], buffer: _MarkdownBuffer) -> str:
        return urljoin(buffer.base_url, (raw or '').strip())

    def _walk(self, element: Tag, buffer: _MarkdownBuffer) -> None:
        for child in element.children:
            if isinstance(child, NavigableString):
                if isinstance(child, PreformattedString):
                    continue
                normalized = collapse_whitespace(str(child))
                if normalized:
                    buffer.append(normalized)
                    buffer.append(' ')
                continue

            if not isinstance(child, Tag):
                continue

            category = categorize(child.name)

            if buffer.skip_first_block and category in (ElementCategory.BLOCK, ElementCategory.HEADING):
                buffer.skip_first_block = False
                continue

            if category == ElementCategory.LINE_BREAK:
                buffer.append(' ')

            elif category == ElementCategory.BLOCK:
                if self.contains_byline(child.get_text()):
                    continue
                if not buffer.ends_with_space():
                    buffer.append(' ')
                self._walk(child, buffer)
                buffer.append(' ')

            elif category == ElementCategory.HEADING or category == ElementCategory.SKIP:
                continue

            elif category == ElementCategory.INLINE_EMPHASIS:
                self._walk(child, buffer)

            elif category == ElementCategory.MEDIA_IMAGE:
                url = self._resolve(child.get('src'), buffer)
                buffer.append(f"![image]({buffer.assets.get(url, url)}) ")

            elif category == ElementCategory.MEDIA_LINK:
                self._emit_link(child, buffer)

            elif category == ElementCategory.MEDIA_EMBED:
                url = self._resolve(child.get('src'), buffer)
                buffer.append(f"▶️ [Video]({buffer.assets.get(url, url)}) ")

            elif category == ElementCategory.SECTION:
                if self.contains_byline(child.get_text()):
                    continue
                self._walk(child, buffer)

            else:
                self._walk(child, buffer)

    def _emit_link(self, anchor: Tag, buffer: _MarkdownBuffer) -> None:
        href = anchor.get('href')
        if href is None:
            self._walk(anchor, buffer)
            return

        url = self._resolve(href, buffer)
        if is_media_file(url):
            target = buffer.assets.get(url, url)
            if is_audio_file(url):
                buffer.append(f"🔊 [Audio]({target}) ")
            else:
                buffer.append(f"▶️ [Video]({target}) ")
            return

        text = collapse_whitespace(anchor.get_text()) or "Link"
        buffer.append(f"[{text}]({url}) ")
