"""
Content Extractor Implementation

Turns the bytes of one fetched page into a ContentRecord: encoding detection,
title, byline dates, URL tags and the flattened markdown body.
"""

import codecs
import re
from typing import List, Mapping, Optional, Tuple
from urllib.parse import unquote, urlparse

from bs4 import BeautifulSoup, ParserRejectedMarkup

from sitecrawl.core.base import ContentExtractorInterface, ContentRecord
from sitecrawl.core.config import ScrapeConfig
from sitecrawl.core.logging import get_logger
from sitecrawl.processors.markdown import MarkdownConverter


STOP_WORDS = frozenset([
    "in", "of", "the", "and", "a", "an", "on", "for", "to", "by", "with", "at", "from",
    "as", "is", "it", "that", "this", "be", "or", "are", "was", "were", "but", "not",
    "so", "if", "then", "than", "too", "very", "can", "will", "just", "do", "does",
    "did", "has", "have", "had", "about", "into", "out", "up", "down", "over", "under",
    "again", "further", "once", "here", "there", "when", "where", "why", "how", "all",
    "any", "both", "each", "few", "more", "most", "other", "some", "such", "no", "nor",
    "only", "own", "same", "s", "t", "don", "should", "now",
])

MONTHS = {
    'january': 1, 'february': 2, 'march': 3, 'april': 4, 'may': 5, 'june': 6,
    'july': 7, 'august': 8, 'september': 9, 'october': 10, 'november': 11, 'december': 12,
}
_MONTH = '(' + '|'.join(MONTHS) + ')'

UPDATED_DATE_RE = re.compile(
    _MONTH + r'\s+(\d{4})\s*\|\s*updated\s+' + _MONTH + r'\s+(\d{4})', re.IGNORECASE
)
SINGLE_DATE_RE = re.compile(r'\b' + _MONTH + r'\s+(\d{4})\b', re.IGNORECASE)

HEADER_CHARSET_RE = re.compile(r'charset\s*=\s*["\']?([^;"\'\s]+)', re.IGNORECASE)
META_CHARSET_RE = re.compile(rb'<meta[^>]+charset=["\']?([a-zA-Z0-9\-_]+)', re.IGNORECASE)
META_SNIFF_BYTES = 1024

# Browsers decode these labels as windows-1252
LEGACY_LATIN_LABELS = {
    'iso-8859-1', 'iso8859-1', 'iso_8859-1', 'latin1', 'latin-1', 'l1',
    'us-ascii', 'ascii',
}

TAG_SPLIT_RE = re.compile(r'[ _\-%]')
BYLINE_CANDIDATE_TAGS = ['p', 'div', 'font', 'center', 'span', 'td', 'address',
                         'small', 'i', 'em', 'b', 'strong']


def _usable_encoding(label: Optional[str]) -> Optional[str]:
    """Map a declared charset label to a Python codec name, or None if unknown"""
    if not label:
        return None
    label = label.strip().lower()
    if label in LEGACY_LATIN_LABELS:
        return 'cp1252'
    try:
        return codecs.lookup(label).name
    except LookupError:
        return None


def detect_encoding(body: bytes, headers: Mapping[str, str]) -> str:
    """
    Resolve the encoding of a page

    Order: charset parameter of the content-type header, then a meta charset
    declaration in the first 1024 bytes, then UTF-8. Unknown labels fall
    through to the next rule.
    """
    content_type = headers.get('content-type', '')
    match = HEADER_CHARSET_RE.search(content_type)
    if match:
        encoding = _usable_encoding(match.group(1))
        if encoding:
            return encoding

    match = META_CHARSET_RE.search(body[:META_SNIFF_BYTES])
    if match:
        encoding = _usable_encoding(match.group(1).decode('ascii', errors='ignore'))
        if encoding:
            return encoding

    return 'utf-8'


def decode_body(body: bytes, headers: Mapping[str, str]) -> str:
    return body.decode(detect_encoding(body, headers), errors='replace')


def extract_title(soup: BeautifulSoup) -> Optional[str]:
    title = soup.find('title')
    if title is None:
        return None
    text = title.get_text().strip()
    return text or None


def _to_date(month: str, year: str) -> str:
    return f"{int(year):04d}-{MONTHS[month.lower()]:02d}-01"


def parse_dates(text: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Find "Month YYYY | Updated Month YYYY" or a single "Month YYYY" in text

    Returns:
        (date_published, date_updated) as YYYY-MM-01 strings or None
    """
    match = UPDATED_DATE_RE.search(text)
    if match:
        return _to_date(match.group(1), match.group(2)), _to_date(match.group(3), match.group(4))

    match = SINGLE_DATE_RE.search(text)
    if match:
        return _to_date(match.group(1), match.group(2)), None

    return None, None


def extract_tags_from_url(url: str) -> List[str]:
    """
    Keywords from the URL path, in first-seen order

    Example:
        /Basics/basics_of_christianity.htm -> ['basics', 'christianity']
    """
    tags: List[str] = []
    for segment in urlparse(url).path.split('/'):
        segment = unquote(segment.split('.', 1)[0])
        for part in TAG_SPLIT_RE.split(segment):
            tag = part.strip().lower()
            if len(tag) > 2 and tag not in STOP_WORDS and tag not in tags:
                tags.append(tag)
    return tags


class ContentExtractor(ContentExtractorInterface):
    """
    Implementation of the page-to-record extractor
    """

    def __init__(self, config: ScrapeConfig, converter: MarkdownConverter):
        self.logger = get_logger()
        self.config = config
        self.converter = converter

    def extract_dates(self, soup: BeautifulSoup) -> Tuple[Optional[str], Optional[str]]:
        """Dates from the tightest byline-bearing element that carries any"""
        bylines = [
            text for text in (element.get_text(' ') for element in soup.find_all(BYLINE_CANDIDATE_TAGS))
            if self.converter.contains_byline(text)
        ]
        # Outer containers repeat their children's text; prefer the innermost
        for text in sorted(bylines, key=len):
            published, updated = parse_dates(text)
            if published:
                return published, updated
        return None, None

    async def extract(self, url: str, body: bytes,
                      headers: Mapping[str, str]) -> Optional[ContentRecord]:
        """
        Extract a record from a fetched page

        Args:
            url: Page URL, also the base for relative references
            body: Raw response body
            headers: Response headers with lower-cased names

        Returns:
            ContentRecord, or None when the page cannot be parsed at all
        """
        if not body:
            self.logger.warning(f"Empty body for {url}")
            return None

        html = decode_body(body, headers)
        try:
            soup = BeautifulSoup(html, 'html.parser')
        except ParserRejectedMarkup as e:
            self.logger.warning(f"Could not parse {url}: {e}")
            return None

        date_published, date_updated = self.extract_dates(soup)
        markdown_body = await self.converter.convert(soup, url)

        return ContentRecord(
            avatar=self.config.avatar,
            author=self.config.author,
            source_url=url,
            title=extract_title(soup),
            date_published=date_published,
            date_updated=date_updated,
            tags=extract_tags_from_url(url),
            markdown_body=markdown_body,
        )
