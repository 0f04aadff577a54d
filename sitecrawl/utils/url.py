"""
URL Utilities for sitecrawl

URL normalization, crawl-domain membership and the admission filter that
decides which discovered links enter the frontier.
"""

import posixpath
from typing import Optional
from urllib.parse import urlparse, urljoin, urldefrag, urlunparse

import validators


DISALLOWED_SCHEMES = ('mailto:', 'tel:', 'ftp:', 'javascript:', 'data:')

# Non-content resources the frontier never queues
UNWANTED_EXTENSIONS = frozenset([
    # documents
    '.pdf', '.doc', '.docx', '.xls', '.xlsx', '.ppt', '.pptx', '.rtf',
    # archives and executables
    '.zip', '.rar', '.gz', '.tar', '.7z', '.exe', '.dmg', '.msi', '.apk',
    # images
    '.jpg', '.jpeg', '.png', '.gif', '.svg', '.webp', '.bmp', '.ico', '.tif', '.tiff',
    # audio
    '.mp3', '.wav', '.ogg', '.m4a', '.flac', '.aac',
    # video
    '.mp4', '.avi', '.mov', '.wmv', '.webm', '.mkv', '.flv',
    # stylesheets and scripts
    '.css', '.js',
    # data formats
    '.xml', '.json', '.csv',
])


def domain_of(base_url: str) -> str:
    """
    Host name of a base URL with any leading www. removed

    Only "www." is stripped; other subdomains stay, so the crawl domain of
    https://blog.example.org is blog.example.org.
    """
    host = (urlparse(base_url).hostname or '').lower()
    if host.startswith('www.'):
        host = host[4:]
    return host


def is_in_domain(host: Optional[str], domain: str) -> bool:
    """True for the crawl domain itself and any of its subdomains"""
    if not host:
        return False
    host = host.lower()
    return host == domain or host.endswith('.' + domain)


def url_extension(url: str) -> str:
    """Lower-cased extension of the URL path including the dot, or ''"""
    path = urlparse(url).path
    return posixpath.splitext(posixpath.basename(path))[1].lower()


def normalize_url(url: str) -> str:
    """
    Drop the fragment and collapse a trailing slash unless the path is root

    Args:
        url: Absolute URL

    Returns:
        Normalized URL
    """
    url, _fragment = urldefrag(url.strip())
    parsed = urlparse(url)
    path = parsed.path
    if not path:
        path = '/'
    elif len(path) > 1 and path.endswith('/'):
        path = path.rstrip('/') or '/'
    return urlunparse((parsed.scheme, parsed.netloc, path, parsed.params, parsed.query, ''))


def admit_url(candidate: str, page_url: str, domain: str) -> Optional[str]:
    """
    Resolve a discovered link and decide whether the frontier should keep it

    Args:
        candidate: Raw href or locator text as found in the page
        page_url: URL of the page the link was found on
        domain: Crawl domain

    Returns:
        Normalized absolute URL, or None when the link is rejected
    """
    if not candidate:
        return None
    candidate = candidate.strip()
    if not candidate or candidate.lower().startswith(DISALLOWED_SCHEMES):
        return None

    try:
        url = normalize_url(urljoin(page_url, candidate))
        parsed = urlparse(url)
        host = parsed.hostname
    except ValueError:
        return None

    if parsed.scheme not in ('http', 'https'):
        return None

    if not validators.url(url):
        return None

    if not is_in_domain(host, domain):
        return None

    if url_extension(url) in UNWANTED_EXTENSIONS:
        return None

    return url
