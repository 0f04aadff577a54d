"""
Storage components for sitecrawl

This package contains components for storage management including:
- Resumable crawl state, scrape cache and progress files
- URL lists and the content record collection
"""

from .state_store import StateStore
from .output import RecordStorage

__all__ = ['StateStore', 'RecordStorage']
