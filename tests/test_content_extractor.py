"""
Tests for ContentExtractor

Tests encoding detection, title/date/tag extraction and record assembly.
"""

import pytest
from bs4 import BeautifulSoup

from sitecrawl.core.base import ContentRecord
from sitecrawl.core.config import ScrapeConfig
from sitecrawl.processors.content import (
    ContentExtractor,
    decode_body,
    detect_encoding,
    extract_tags_from_url,
    extract_title,
    parse_dates,
)
from sitecrawl.processors.markdown import MarkdownConverter


class TestEncodingDetection:
    """Test suite for detect_encoding / decode_body"""

    def test_header_charset_wins(self):
        body = b'<meta charset="utf-8"><p>x</p>'
        headers = {'content-type': 'text/html; charset=ISO-8859-2'}
        assert detect_encoding(body, headers) == 'iso8859-2'

    def test_meta_charset(self):
        body = b'<html><head><META http-equiv="Content-Type" content="text/html; charset=windows-1251"></head>'
        assert detect_encoding(body, {'content-type': 'text/html'}) == 'cp1251'

    def test_meta_outside_first_kilobyte_ignored(self):
        body = b' ' * 2000 + b'<meta charset="windows-1251">'
        assert detect_encoding(body, {}) == 'utf-8'

    def test_unknown_label_falls_through(self):
        body = b'<meta charset="shift_jis">'
        headers = {'content-type': 'text/html; charset=no-such-charset'}
        assert detect_encoding(body, headers) == 'shift_jis'

    def test_default_utf8(self):
        assert detect_encoding(b'<p>plain</p>', {}) == 'utf-8'

    def test_latin1_decodes_as_windows_1252(self):
        """Test legacy Latin labels decode smart quotes the way browsers do"""
        body = b'<p>\x93quoted\x94</p>'
        headers = {'content-type': 'text/html; charset=iso-8859-1'}

        assert detect_encoding(body, headers) == 'cp1252'
        assert decode_body(body, headers) == '<p>“quoted”</p>'

    def test_undecodable_bytes_replaced(self):
        assert decode_body(b'ok \xff\xfe', {}) == 'ok ��'


class TestMetadataHelpers:
    """Test suite for title, date and tag helpers"""

    def test_extract_title(self):
        soup = BeautifulSoup("<html><head><title>  A Title \n</title></head></html>", "html.parser")
        assert extract_title(soup) == "A Title"

    def test_extract_title_absent_or_empty(self):
        assert extract_title(BeautifulSoup("<p>x</p>", "html.parser")) is None
        assert extract_title(BeautifulSoup("<title>  </title>", "html.parser")) is None

    def test_parse_dates_with_update(self):
        text = "By David J. Stewart | January 2010 | Updated March 2015"
        assert parse_dates(text) == ("2010-01-01", "2015-03-01")

    def test_parse_dates_single(self):
        assert parse_dates("By David J. Stewart | may 2012") == ("2012-05-01", None)

    def test_parse_dates_none(self):
        assert parse_dates("By David J. Stewart") == (None, None)

    def test_tags_from_url(self):
        """Test path keywords skip stop words and extensions"""
        tags = extract_tags_from_url("https://example.org/Basics/basics_of_christianity.htm")

        assert tags == ["basics", "christianity"]
        assert "of" not in tags
        assert "htm" not in tags

    def test_tags_percent_decoded(self):
        tags = extract_tags_from_url("https://example.org/My%20Sermons/the-great_flood%2Dstory.html")
        assert tags == ["sermons", "great", "flood", "story"]

    def test_tags_root(self):
        assert extract_tags_from_url("https://example.org/") == []


class TestContentExtractor:
    """Test suite for ContentExtractor"""

    @pytest.fixture
    def config(self):
        return ScrapeConfig()

    @pytest.fixture
    def extractor(self, config):
        converter = MarkdownConverter(config.byline_names, skip_first_block=True)
        return ContentExtractor(config, converter)

    @pytest.mark.asyncio
    async def test_extract_record(self, extractor, config):
        html = (
            "<html><head><title> Basics of Christianity </title></head><body>"
            "<h1>Basics of Christianity</h1>"
            "<p>By David J. Stewart | June 2011 | Updated July 2019</p>"
            "<p>First <b>paragraph</b>.</p>"
            "<p>Read <a href='/more.htm'>more</a>.</p>"
            "</body></html>"
        ).encode("utf-8")
        url = "https://www.example.org/Basics/basics_of_christianity.htm"

        record = await extractor.extract(url, html, {'content-type': 'text/html; charset=utf-8'})

        assert isinstance(record, ContentRecord)
        assert record.source_url == url
        assert record.title == "Basics of Christianity"
        assert record.author == config.author
        assert record.avatar == config.avatar
        assert record.date_published == "2011-06-01"
        assert record.date_updated == "2019-07-01"
        assert record.tags == ["basics", "christianity"]
        assert record.markdown_body == (
            "First paragraph. Read [more](https://www.example.org/more.htm)."
        )

    @pytest.mark.asyncio
    async def test_missing_metadata_is_not_failure(self, extractor):
        record = await extractor.extract("https://example.org/", b"<p>Skipped</p><p>Kept</p>", {})

        assert record is not None
        assert record.title is None
        assert record.date_published is None
        assert record.date_updated is None
        assert record.tags == []
        assert record.markdown_body == "Kept"

    @pytest.mark.asyncio
    async def test_empty_body_yields_none(self, extractor):
        assert await extractor.extract("https://example.org/a", b"", {}) is None

    @pytest.mark.asyncio
    async def test_dates_from_innermost_byline(self, extractor):
        html = (
            "<body><div>Intro text from March 1999."
            "<p>By David J. Stewart | August 2008</p></div></body>"
        ).encode("utf-8")

        record = await extractor.extract("https://example.org/a.htm", html, {})

        assert record.date_published == "2008-08-01"
        assert record.date_updated is None
