"""
Source Builder
==============
回答生成に渡す競合ソース（Source 1-4）とユーザーコンテンツ（Source 5）を構築

流れ:
1. 検索対応エンジンでWeb検索し、上位4件のURLとタイトルを取得
2. 各URLをSSRF対策付きフェッチャーで並列取得（失敗したURLはタイトルのみ）
3. 4件に満たない場合はLLMで生成した参考文章で補う
4. 検索結果が0件ならLLMで4件の参考文章を生成
5. Source 5 は常にユーザーコンテンツ
"""

from __future__ import annotations

import asyncio
import json
import re
from typing import Optional

from .analysis.citation_parser import extract_domain
from .content import SafeUrlFetcher
from .errors import ParseError, ProviderError
from .llm.base import LLMClient
from .types import CompetingSource, SearchResult


TOTAL_SOURCES = 5
USER_SOURCE_INDEX = 5
COMPETING_SOURCES = TOTAL_SOURCES - 1
SOURCE_EXCERPT_LENGTH = 2000

JSON_ARRAY = re.compile(r'\[[\s\S]*\]')


def build_fallback_prompt(query: str, locale: str) -> str:
    if locale == "zh":
        return f"""你是一个内容生成专家。根据给定的查询问题，生成4段不同角度的参考内容。

要求：
1. 每段内容200-300字
2. 内容要专业、有信息量
3. 每段从不同角度回答问题
4. 使用JSON数组格式返回

查询问题：{query}

返回格式：
["内容1", "内容2", "内容3", "内容4"]"""

    return f"""You are a content generation expert. Generate 4 reference passages from different angles for the given query.

Requirements:
1. Each passage 200-300 words
2. Professional and informative content
3. Each from a different perspective
4. Return as JSON array

Query: {query}

Return format:
["content1", "content2", "content3", "content4"]"""


def build_padding_prompt(query: str, count: int, locale: str) -> str:
    if locale == "zh":
        return f'根据问题"{query}"，生成{count}段不同角度的参考内容。每段100-200字，返回JSON数组格式。'
    return f'For the question "{query}", generate {count} reference passages from different angles. Each 100-200 words, return as JSON array.'


def parse_passages(response: str) -> list[str]:
    """
    LLMの出力から文章のJSON配列を取り出す

    Raises:
        ParseError: JSON配列が見つからない、または文字列の配列でない場合
    """
    match = JSON_ARRAY.search(response or "")
    if not match:
        raise ParseError("参考文章のJSON配列が見つかりません")
    try:
        contents = json.loads(match.group())
    except json.JSONDecodeError as e:
        raise ParseError(f"参考文章のJSONパースに失敗: {e}") from e
    if not isinstance(contents, list):
        raise ParseError("参考文章がJSON配列ではありません")
    return [str(c).strip() for c in contents if str(c).strip()]


def unavailable_source(index: int) -> CompetingSource:
    return CompetingSource(index=index, type="generated", content=f"Source {index} content unavailable.")


def user_source(content: str) -> CompetingSource:
    return CompetingSource(index=USER_SOURCE_INDEX, type="user", content=content)


class SourceBuilder:
    """
    競合ソースの構築クラス

    Attributes:
        search_client: Web検索に使う検索対応クライアント（None なら検索しない）
        llm: 参考文章の生成に使うクライアント
        fetcher: SSRF対策付きフェッチャー
    """

    def __init__(
        self,
        search_client: Optional[LLMClient],
        llm: Optional[LLMClient],
        fetcher: SafeUrlFetcher,
    ):
        self.search_client = search_client
        self.llm = llm
        self.fetcher = fetcher
        self.settings = fetcher.settings

    async def build(self, query: str, user_content: str, locale: str = "zh") -> list[CompetingSource]:
        """
        クエリに対する5件のソースを構築

        Returns:
            list[CompetingSource]: index 1-4 が競合ソース、index 5 がユーザーコンテンツ
        """
        results = await self._search(query)
        if not results:
            sources = await self._generate_fallback_sources(query, locale)
            return sources + [user_source(user_content)]

        sources = await self._fetch_sources(results)
        if len(sources) < COMPETING_SOURCES:
            sources += await self._generate_padding_sources(
                query,
                COMPETING_SOURCES - len(sources),
                len(sources) + 1,
                locale,
            )
        return sources + [user_source(user_content)]

    async def _search(self, query: str) -> list[SearchResult]:
        """Web検索（失敗時は空リスト）"""
        if self.search_client is None:
            print("[Sources] 警告: 検索対応エンジンがないためAI生成ソースを使用")
            return []
        try:
            results = await asyncio.wait_for(
                self.search_client.search_web(query, max_results=COMPETING_SOURCES),
                timeout=self.settings.engine_timeout,
            )
        except asyncio.TimeoutError:
            print(f"[Sources] 警告: Web検索がタイムアウト、AI生成ソースを使用: {query}")
            return []
        except ProviderError as e:
            print(f"[Sources] 警告: Web検索に失敗、AI生成ソースを使用: {e}")
            return []
        results = [r for r in results if r.get("url")][:COMPETING_SOURCES]
        print(f"[Sources] 検索結果 {len(results)}件: {query}")
        return results

    async def _fetch_one(self, index: int, result: SearchResult) -> Optional[CompetingSource]:
        url = result["url"]
        title = result.get("title") or ""
        try:
            text, _, final_url = await self.fetcher.fetch(url)
        except Exception as e:
            print(f"[Sources] 取得失敗（タイトルのみ使用）: {url} ({type(e).__name__}: {e})")
            text, final_url = "", url

        excerpt = text[:SOURCE_EXCERPT_LENGTH].strip()
        if excerpt and title:
            content = f"{title}\n\n{excerpt}"
        else:
            content = excerpt or title
        if not content:
            return None
        return CompetingSource(
            index=index,
            type="search",
            content=content,
            url=final_url,
            title=title or None,
            domain=extract_domain(final_url) or None,
        )

    async def _fetch_sources(self, results: list[SearchResult]) -> list[CompetingSource]:
        """検索結果のURLを並列取得"""
        tasks = [self._fetch_one(i, r) for i, r in enumerate(results, 1)]
        fetched = await asyncio.gather(*tasks)

        sources = []
        for source in fetched:
            if source is None:
                continue
            source.index = len(sources) + 1
            sources.append(source)
        return sources

    async def _generate_padding_sources(
        self,
        query: str,
        count: int,
        start_index: int,
        locale: str,
    ) -> list[CompetingSource]:
        """検索結果の不足分をLLM生成の文章で補う"""
        if count <= 0:
            return []

        contents: list[str] = []
        if self.llm is not None:
            try:
                response = await self.llm.acall_standard(
                    build_padding_prompt(query, count, locale),
                    temperature=0.7,
                    max_tokens=1000,
                )
                contents = parse_passages(response)[:count]
            except (ProviderError, ParseError) as e:
                print(f"[Sources] 警告: 補完ソースの生成に失敗: {e}")

        sources = [
            CompetingSource(index=start_index + i, type="generated", content=c)
            for i, c in enumerate(contents)
        ]
        for i in range(len(sources), count):
            sources.append(unavailable_source(start_index + i))
        return sources

    async def _generate_fallback_sources(self, query: str, locale: str) -> list[CompetingSource]:
        """検索が使えない場合に4件の参考文章を生成"""
        if self.llm is None:
            return [unavailable_source(i) for i in range(1, COMPETING_SOURCES + 1)]

        try:
            response = await self.llm.acall_standard(
                build_fallback_prompt(query, locale),
                temperature=0.7,
                max_tokens=2000,
            )
            contents = parse_passages(response)
        except (ProviderError, ParseError) as e:
            print(f"[Sources] 警告: AI生成ソースに失敗: {e}")
            return [unavailable_source(i) for i in range(1, COMPETING_SOURCES + 1)]

        if len(contents) < COMPETING_SOURCES:
            print(f"[Sources] 警告: AI生成ソースが不足 ({len(contents)}件)")
            return [unavailable_source(i) for i in range(1, COMPETING_SOURCES + 1)]

        return [
            CompetingSource(index=i, type="generated", content=c)
            for i, c in enumerate(contents[:COMPETING_SOURCES], 1)
        ]
