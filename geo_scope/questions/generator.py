"""
Query Generator
===============
分析対象コンテンツからAI検索で聞かれそうなクエリを生成

LLMが使えない・失敗した・出力が不正な場合はテンプレートにフォールバックする。
"""

from __future__ import annotations

import hashlib
import json
import re
from typing import Optional

from ..errors import ParseError, ProviderError
from ..llm.base import LLMClient
from ..types import GeneratedQuery, QueryGenerationResult
from .cache import CacheStore, InMemoryCacheStore


MAX_QUERIES = 3
CONTENT_EXCERPT_LENGTH = 2000
TOPIC_MAX_LENGTH = 50

SYSTEM_PROMPTS = {
    "zh": """你是一个内容分析专家。根据用户提供的内容，提取主题并生成3个用户可能会向AI搜索引擎提问的问题。

要求：
1. 问题应该覆盖不同角度：定义类、方法类、对比类
2. 问题应该自然，像真实用户会问的
3. 问题应该与内容主题高度相关

输出JSON格式：
{
  "topic": "内容的核心主题",
  "queries": [
    {"query": "问题1", "type": "definition"},
    {"query": "问题2", "type": "howto"},
    {"query": "问题3", "type": "comparison"}
  ]
}""",
    "en": """You are a content analysis expert. Based on the user's content, extract the topic and generate 3 questions that users might ask AI search engines.

Requirements:
1. Questions should cover different angles: definition, how-to, comparison
2. Questions should be natural, like real users would ask
3. Questions should be highly relevant to the content topic

Output JSON format:
{
  "topic": "core topic of the content",
  "queries": [
    {"query": "question 1", "type": "definition"},
    {"query": "question 2", "type": "howto"},
    {"query": "question 3", "type": "comparison"}
  ]
}""",
}

DEFAULT_QUERY_TEMPLATES = {
    "zh": {
        "definition": "什么是{topic}？",
        "howto": "如何理解{topic}？",
        "general": "{topic}有什么特点？",
    },
    "en": {
        "definition": "What is {topic}?",
        "howto": "How does {topic} work?",
        "general": "What are the key aspects of {topic}?",
    },
}

FIRST_SENTENCE = re.compile(r'^[^.!?。！？]+')
JSON_OBJECT = re.compile(r'\{[\s\S]*\}')


def extract_topic(content: str) -> str:
    """先頭の文（最大50文字）をトピックとする"""
    match = FIRST_SENTENCE.match(content)
    if match:
        return match.group()[:TOPIC_MAX_LENGTH].strip()
    return content[:TOPIC_MAX_LENGTH].strip()


def default_queries(content: str, locale: str = "zh") -> QueryGenerationResult:
    """テンプレートからクエリを生成"""
    topic = extract_topic(content)
    templates = DEFAULT_QUERY_TEMPLATES.get(locale, DEFAULT_QUERY_TEMPLATES["en"])
    return QueryGenerationResult(
        topic=topic,
        queries=[
            GeneratedQuery(query=templates[t].format(topic=topic), type=t)
            for t in ("definition", "howto", "general")
        ],
    )


def parse_query_response(response: str) -> QueryGenerationResult:
    """
    LLMの出力からトピックとクエリを取り出す

    Raises:
        ParseError: JSONが見つからない、または形式が不正な場合
    """
    json_match = JSON_OBJECT.search(response)
    if not json_match:
        raise ParseError("クエリ生成のレスポンスにJSONがありません")

    try:
        parsed = json.loads(json_match.group())
    except json.JSONDecodeError as e:
        raise ParseError(f"クエリ生成のJSONパースに失敗: {e}") from e

    if not isinstance(parsed, dict) or not parsed.get("topic") or not isinstance(parsed.get("queries"), list):
        raise ParseError("クエリ生成のJSONに topic または queries がありません")

    queries = []
    for q in parsed["queries"][:MAX_QUERIES]:
        if not isinstance(q, dict) or not q.get("query"):
            raise ParseError(f"不正なクエリ要素: {q}")
        queries.append(GeneratedQuery(query=str(q["query"]), type=q.get("type") or "general"))
    if not queries:
        raise ParseError("クエリ生成のJSONにクエリがありません")

    return QueryGenerationResult(topic=str(parsed["topic"]), queries=queries)


def cache_key(content: str, locale: str) -> str:
    """(ロケール, コンテンツのハッシュ) からキャッシュキーを作成"""
    digest = hashlib.sha256(content.encode("utf-8")).hexdigest()
    return f"{locale}:{digest}"


class QueryGenerator:
    """LLMを使用してクエリを生成するクラス"""

    def __init__(self, llm: Optional[LLMClient], cache: Optional[CacheStore] = None):
        """
        Args:
            llm: クエリ生成に使用するLLMクライアント（None ならテンプレートのみ）
            cache: 生成結果のキャッシュ
        """
        self.llm = llm
        self.cache = cache if cache is not None else InMemoryCacheStore()

    async def generate(self, content: str, locale: str = "zh") -> QueryGenerationResult:
        """コンテンツからトピックと最大3件のクエリを生成（キャッシュ利用）"""
        key = cache_key(content, locale)
        cached = self.cache.get(key)
        if cached is not None:
            print(f"[QueryGen] キャッシュから{len(cached.queries)}件のクエリを読み込みました")
            return cached

        result = await self._generate(content, locale)
        self.cache.set(key, result)
        return result

    async def _generate(self, content: str, locale: str) -> QueryGenerationResult:
        if self.llm is None:
            print("[QueryGen] 警告: LLM未設定のためテンプレートを使用")
            return default_queries(content, locale)

        system = SYSTEM_PROMPTS.get(locale, SYSTEM_PROMPTS["en"])
        try:
            response = await self.llm.acall_standard(
                content[:CONTENT_EXCERPT_LENGTH],
                system=system,
                temperature=0.5,
                max_tokens=500,
            )
            result = parse_query_response(response)
        except (ProviderError, ParseError) as e:
            print(f"[QueryGen] 警告: クエリ生成に失敗、テンプレートを使用: {e}")
            return default_queries(content, locale)

        print(f"[QueryGen] トピック: {result.topic} / {len(result.queries)}件")
        return result
