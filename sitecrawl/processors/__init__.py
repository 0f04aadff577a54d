"""
Content processing components for sitecrawl

This package contains components for processing pages including:
- Encoding detection and metadata extraction
- Asset discovery and content-addressed downloads
- HTML to flat markdown conversion
"""

from sitecrawl.processors.content import ContentExtractor
from sitecrawl.processors.media import AssetPipeline, AssetKind
from sitecrawl.processors.markdown import MarkdownConverter, ElementCategory

__all__ = [
    'ContentExtractor',
    'AssetPipeline',
    'AssetKind',
    'MarkdownConverter',
    'ElementCategory'
]
