"""Tests for query generation and caching."""

import json

import pytest

from conftest import FakeLLMClient, query_json
from geo_scope.errors import ParseError, ProviderError
from geo_scope.questions import (
    InMemoryCacheStore,
    JsonFileCacheStore,
    QueryGenerator,
    cache_key,
    default_queries,
    extract_topic,
    parse_query_response,
)
from geo_scope.types import GeneratedQuery, QueryGenerationResult

CONTENT = "GEO helps pages get cited. It adds statistics and quotes to the article body."


class TestParseQueryResponse:
    """Tests for parse_query_response."""

    def test_json_inside_code_fence(self) -> None:
        """Test JSON wrapped in prose or code fences is found."""
        response = "```json\n" + query_json("GEO", "What is GEO?", "How to GEO?") + "\n```"
        result = parse_query_response(response)

        assert result.topic == "GEO"
        assert [q.query for q in result.queries] == ["What is GEO?", "How to GEO?"]
        assert result.queries[1].type == "howto"

    def test_caps_at_three(self) -> None:
        """Test at most three queries are kept."""
        result = parse_query_response(query_json("T", "a?", "b?", "c?", "d?"))

        assert len(result.queries) == 3

    def test_missing_type_defaults_to_general(self) -> None:
        """Test a query without type becomes general."""
        result = parse_query_response(json.dumps({"topic": "T", "queries": [{"query": "q?"}]}))

        assert result.queries[0].type == "general"

    def test_errors(self) -> None:
        """Test malformed responses raise ParseError."""
        for bad in ("no json here", "{not json}", '{"topic": "T"}', '{"topic": "T", "queries": []}'):
            with pytest.raises(ParseError):
                parse_query_response(bad)


class TestDefaultQueries:
    """Tests for the template fallback."""

    def test_topic_is_first_sentence(self) -> None:
        """Test topic extraction stops at the first terminator."""
        assert extract_topic(CONTENT) == "GEO helps pages get cited"

    def test_topic_is_capped(self) -> None:
        """Test topic is at most fifty characters."""
        assert len(extract_topic("x" * 200)) == 50

    def test_templates(self) -> None:
        """Test three template queries per locale."""
        zh = default_queries("生成式引擎优化。其他内容", "zh")
        en = default_queries(CONTENT, "en")

        assert [q.type for q in zh.queries] == ["definition", "howto", "general"]
        assert zh.queries[0].query == "什么是生成式引擎优化？"
        assert en.queries[0].query == f"What is {en.topic}?"


class TestQueryGenerator:
    """Tests for QueryGenerator."""

    @pytest.mark.asyncio
    async def test_generates_with_llm(self) -> None:
        """Test the LLM result is parsed and the call is configured."""
        llm = FakeLLMClient(query_json("GEO basics"))
        generator = QueryGenerator(llm)

        result = await generator.generate(CONTENT, "en")

        assert result.topic == "GEO basics"
        assert len(result.queries) == 3
        assert llm.calls[0]["temperature"] == 0.5
        assert llm.calls[0]["max_tokens"] == 500
        assert llm.calls[0]["system"].startswith("You are a content analysis expert")

    @pytest.mark.asyncio
    async def test_cache_hit_skips_llm(self) -> None:
        """Test a cached result is reused for the same content and locale."""
        llm = FakeLLMClient(query_json())
        cache = InMemoryCacheStore()
        generator = QueryGenerator(llm, cache)

        first = await generator.generate(CONTENT, "en")
        second = await generator.generate(CONTENT, "en")
        await generator.generate(CONTENT, "zh")

        assert first is second
        assert len(llm.calls) == 2
        assert len(cache) == 2

    @pytest.mark.asyncio
    async def test_falls_back_on_provider_error(self) -> None:
        """Test provider failures fall back to templates."""
        generator = QueryGenerator(FakeLLMClient(ProviderError("down")))

        result = await generator.generate(CONTENT, "en")

        assert [q.type for q in result.queries] == ["definition", "howto", "general"]

    @pytest.mark.asyncio
    async def test_falls_back_on_parse_error(self) -> None:
        """Test malformed LLM output falls back to templates."""
        generator = QueryGenerator(FakeLLMClient("sorry, I cannot help"))

        result = await generator.generate(CONTENT, "zh")

        assert result.queries[0].type == "definition"

    @pytest.mark.asyncio
    async def test_without_llm(self) -> None:
        """Test no LLM means template queries."""
        generator = QueryGenerator(None)

        result = await generator.generate(CONTENT, "en")

        assert len(result.queries) == 3


class TestJsonFileCacheStore:
    """Tests for the JSON file cache."""

    def test_flush_and_reload(self, tmp_path) -> None:
        """Test flushed entries are loaded by a new store."""
        path = tmp_path / "cache" / "queries.json"
        store = JsonFileCacheStore(str(path))
        key = cache_key(CONTENT, "en")
        store.set(key, QueryGenerationResult(topic="GEO", queries=[GeneratedQuery(query="q?", type="definition")]))
        store.flush()

        reloaded = JsonFileCacheStore(str(path))
        cached = reloaded.get(key)

        assert cached is not None
        assert cached.topic == "GEO"
        assert cached.queries[0].query == "q?"
        assert json.loads(path.read_text(encoding="utf-8"))[key]["queries"][0]["type"] == "definition"

    def test_flush_without_changes_writes_nothing(self, tmp_path) -> None:
        """Test flush is a no-op when nothing was set."""
        path = tmp_path / "queries.json"
        JsonFileCacheStore(str(path)).flush()

        assert not path.exists()

    def test_corrupt_file_starts_empty(self, tmp_path) -> None:
        """Test an unreadable cache file is ignored."""
        path = tmp_path / "queries.json"
        path.write_text("{broken", encoding="utf-8")

        assert len(JsonFileCacheStore(str(path))) == 0

    def test_key_depends_on_locale(self) -> None:
        """Test cache keys differ per locale."""
        assert cache_key(CONTENT, "en") != cache_key(CONTENT, "zh")
        assert cache_key(CONTENT, "en").startswith("en:")
