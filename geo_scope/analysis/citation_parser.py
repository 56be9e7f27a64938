"""
Citation Parser
===============
AI検索エンジンの回答から引用URLを抽出（アノテーション + 本文中のURL）
"""

from __future__ import annotations

import re
from typing import Iterable, Optional
from urllib.parse import urlparse

from ..types import Annotation, DiscoveredCitation


INLINE_URL_PATTERN = re.compile(r'https?://[^\s\])<>"\']+', re.IGNORECASE)
TRAILING_PUNCTUATION = re.compile(r'[.,;:!?)]+$')


def extract_domain(url: str) -> str:
    """URLからドメインを抽出（www. を除去）"""
    try:
        hostname = urlparse(url).hostname or ""
    except ValueError:
        return ""
    return re.sub(r'^www\.', '', hostname.lower())


def is_domain_match(citation_domain: str, user_domain: str) -> bool:
    """
    引用ドメインがユーザードメインに一致するか

    完全一致、またはサブドメイン（blog.example.com は example.com に一致）。
    """
    a = re.sub(r'^www\.', '', citation_domain.lower())
    b = re.sub(r'^www\.', '', user_domain.lower())
    if not a or not b:
        return False
    return a == b or a.endswith(f".{b}")


def parse_citations_from_annotations(
    annotations: Iterable[Annotation],
    user_domain: str,
) -> list[DiscoveredCitation]:
    """構造化アノテーションから引用を抽出"""
    citations = []
    for ann in annotations:
        if not ann.url:
            continue
        domain = extract_domain(ann.url)
        if not domain:
            continue
        citations.append(DiscoveredCitation(
            url=ann.url,
            domain=domain,
            is_user_domain=is_domain_match(domain, user_domain),
            title=ann.title,
        ))
    return citations


def parse_citations_from_text(text: str, user_domain: str) -> list[DiscoveredCitation]:
    """本文中のURLから引用を抽出（アノテーションを返さないエンジン向け）"""
    citations = []
    for url in INLINE_URL_PATTERN.findall(text):
        clean_url = TRAILING_PUNCTUATION.sub('', url)
        domain = extract_domain(clean_url)
        if not domain:
            continue
        citations.append(DiscoveredCitation(
            url=clean_url,
            domain=domain,
            is_user_domain=is_domain_match(domain, user_domain),
        ))
    return citations


def deduplicate_citations(citations: Iterable[DiscoveredCitation]) -> list[DiscoveredCitation]:
    """URL（小文字化・末尾スラッシュ除去）で重複を除く。順序は保持"""
    seen: set[str] = set()
    unique = []
    for c in citations:
        key = c.url.lower().rstrip('/')
        if key in seen:
            continue
        seen.add(key)
        unique.append(c)
    return unique


def collect_citations(
    text: str,
    annotations: Iterable[Annotation],
    user_domain: str,
) -> list[DiscoveredCitation]:
    """アノテーションと本文URLを合わせて重複除去した引用リストを返す"""
    return deduplicate_citations(
        parse_citations_from_annotations(annotations, user_domain)
        + parse_citations_from_text(text, user_domain)
    )


def find_user_citation_position(citations: list[DiscoveredCitation]) -> Optional[int]:
    """ユーザードメインの最初の引用位置（1始まり）。なければ None"""
    for i, c in enumerate(citations, start=1):
        if c.is_user_domain:
            return i
    return None
