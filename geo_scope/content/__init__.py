"""
Content Module
==============
SSRF対策付きのWebコンテンツ取得

Usage:
    from geo_scope.content import SafeUrlFetcher

    fetcher = SafeUrlFetcher()
    text, media_type, final_url = await fetcher.fetch("https://example.com/article")
"""

from .fetcher import SafeUrlFetcher, is_blocked_hostname, is_private_ip, resolve_host

__all__ = [
    "SafeUrlFetcher",
    "is_private_ip",
    "is_blocked_hostname",
    "resolve_host",
]
