"""
sitecrawl

A resumable domain crawler and page scraper. The crawler walks one domain
breadth-first and writes the discovered URL list; the scraper fetches each
URL, converts the page to flat markdown text and writes a JSON collection
of content records.

Features:
- Breadth-first frontier with sitemap/feed parsing and resumable state
- Bounded-concurrency fetching with retry and linear backoff
- Optional rotating proxy identity per request
- Content-addressed asset downloads (images, audio, video)
- HTML to flat markdown conversion with byline suppression
- Periodic checkpoints of cache and progress
"""

__version__ = "0.1.0"
