"""
Questions Module
================
クエリ・質問生成機能

Usage:
    from geo_scope.questions import QueryGenerator, JsonFileCacheStore

    cache = JsonFileCacheStore("cache/queries.json")
    generator = QueryGenerator(llm, cache)
    result = await generator.generate(content, locale="zh")
    cache.flush()
"""

from .cache import CacheStore, InMemoryCacheStore, JsonFileCacheStore
from .generator import QueryGenerator, cache_key, default_queries, extract_topic, parse_query_response
from .monitor import (
    INTENT_TYPES,
    QUERY_TYPES,
    fallback_buyer_intent_queries,
    fallback_keyword_questions,
    generate_buyer_intent_queries,
    generate_questions_for_keyword,
)

__all__ = [
    "CacheStore",
    "InMemoryCacheStore",
    "JsonFileCacheStore",
    "QueryGenerator",
    "cache_key",
    "default_queries",
    "extract_topic",
    "parse_query_response",
    "QUERY_TYPES",
    "INTENT_TYPES",
    "generate_buyer_intent_queries",
    "generate_questions_for_keyword",
    "fallback_buyer_intent_queries",
    "fallback_keyword_questions",
]
