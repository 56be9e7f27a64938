"""Tests for competing source construction and answer generation."""

import json

import httpx
import pytest

from conftest import FakeLLMClient, html_transport, public_resolver, search_response
from geo_scope.answer import AnswerGenerator, build_system_prompt, build_user_prompt, format_sources
from geo_scope.config import Settings
from geo_scope.content import SafeUrlFetcher
from geo_scope.errors import ParseError, ProviderError
from geo_scope.sources import SourceBuilder, parse_passages
from geo_scope.types import CompetingSource

USER_CONTENT = "My article about generative engine optimization and citations."


def passages(n: int) -> str:
    return json.dumps([f"Passage {i} content." for i in range(1, n + 1)])


class TestParsePassages:
    """Tests for parse_passages."""

    def test_array_in_prose(self) -> None:
        """Test the JSON array is located inside surrounding text."""
        assert parse_passages('Here: ["a", " b ", ""] done') == ["a", "b"]

    def test_errors(self) -> None:
        """Test invalid output raises ParseError."""
        for bad in ("nothing", "[not json]", ""):
            with pytest.raises(ParseError):
                parse_passages(bad)


class TestSourceBuilder:
    """Tests for SourceBuilder.build."""

    @pytest.mark.asyncio
    async def test_generated_sources_without_search(self, fetcher: SafeUrlFetcher) -> None:
        """Test four generated sources plus the user content at index 5."""
        llm = FakeLLMClient(passages(4))
        builder = SourceBuilder(None, llm, fetcher)

        sources = await builder.build("What is GEO?", USER_CONTENT, "en")

        assert [s.index for s in sources] == [1, 2, 3, 4, 5]
        assert [s.type for s in sources] == ["generated"] * 4 + ["user"]
        assert sources[4].content == USER_CONTENT
        assert llm.calls[0]["temperature"] == 0.7
        assert llm.calls[0]["max_tokens"] == 2000

    @pytest.mark.asyncio
    async def test_too_few_generated_passages(self, fetcher: SafeUrlFetcher) -> None:
        """Test fewer than four passages leaves placeholder sources."""
        builder = SourceBuilder(None, FakeLLMClient(passages(2)), fetcher)

        sources = await builder.build("What is GEO?", USER_CONTENT, "en")

        assert [s.content for s in sources[:4]] == [f"Source {i} content unavailable." for i in range(1, 5)]

    @pytest.mark.asyncio
    async def test_search_results_are_fetched_and_padded(self, fetcher: SafeUrlFetcher) -> None:
        """Test fetched search results come first and the rest is generated."""
        search = FakeLLMClient(
            searchable=True,
            search=search_response("", "https://example.com/a", "https://other.org/b"),
        )
        llm = FakeLLMClient(passages(5))
        builder = SourceBuilder(search, llm, fetcher)

        sources = await builder.build("What is GEO?", USER_CONTENT, "en")

        assert [s.type for s in sources] == ["search", "search", "generated", "generated", "user"]
        assert sources[0].content.startswith("Title 1\n\n")
        assert sources[0].domain == "example.com"
        assert sources[1].domain == "other.org"
        assert sources[2].content == "Passage 1 content."
        assert llm.calls[0]["max_tokens"] == 1000

    @pytest.mark.asyncio
    async def test_failed_fetch_uses_title(self, settings: Settings) -> None:
        """Test a failed fetch keeps the search result title as content."""
        transport = html_transport({"https://example.com/blocked": httpx.Response(403)})
        fetcher = SafeUrlFetcher(settings, transport=transport, resolver=public_resolver)
        search = FakeLLMClient(searchable=True, search=search_response("", "https://example.com/blocked"))
        builder = SourceBuilder(search, FakeLLMClient(ProviderError("down")), fetcher)

        sources = await builder.build("q", USER_CONTENT, "en")

        assert sources[0].content == "Title 1"
        assert sources[0].type == "search"
        assert [s.content for s in sources[1:4]] == [f"Source {i} content unavailable." for i in range(2, 5)]

    @pytest.mark.asyncio
    async def test_unparsable_page_uses_title(self, settings: Settings) -> None:
        """Test a search result whose page cannot be parsed keeps its title and the build succeeds."""
        transport = html_transport({
            "https://example.com/report.pdf": httpx.Response(
                200, headers={"content-type": "application/pdf"}, content=b"garbage not a pdf",
            ),
        })
        fetcher = SafeUrlFetcher(settings, transport=transport, resolver=public_resolver)
        search = FakeLLMClient(
            searchable=True,
            search=search_response("", "https://example.com/report.pdf", "https://other.org/b"),
        )
        builder = SourceBuilder(search, FakeLLMClient(passages(2)), fetcher)

        sources = await builder.build("q", USER_CONTENT, "en")

        assert sources[0].content == "Title 1"
        assert sources[0].url == "https://example.com/report.pdf"
        assert sources[1].content.startswith("Title 2\n\n")
        assert [s.type for s in sources] == ["search", "search", "generated", "generated", "user"]

    @pytest.mark.asyncio
    async def test_unexpected_fetch_error_uses_title(self, fetcher: SafeUrlFetcher, monkeypatch) -> None:
        """Test any fetch exception is absorbed per source."""

        async def broken_fetch(url: str):
            raise RuntimeError("decoder crashed")

        monkeypatch.setattr(fetcher, "fetch", broken_fetch)
        search = FakeLLMClient(searchable=True, search=search_response("", "https://example.com/a"))
        builder = SourceBuilder(search, FakeLLMClient(passages(3)), fetcher)

        sources = await builder.build("q", USER_CONTENT, "en")

        assert sources[0].content == "Title 1"
        assert sources[0].type == "search"

    @pytest.mark.asyncio
    async def test_search_timeout_falls_back(self, settings: Settings, fetcher: SafeUrlFetcher) -> None:
        """Test a search slower than the engine timeout falls back to generated sources."""
        search = FakeLLMClient(
            searchable=True,
            search=search_response("", "https://example.com/a"),
            delay=settings.engine_timeout + 0.3,
        )
        llm = FakeLLMClient(passages(4))
        builder = SourceBuilder(search, llm, fetcher)

        sources = await builder.build("q", USER_CONTENT, "en")

        assert len(search.search_calls) == 1
        assert [s.type for s in sources] == ["generated"] * 4 + ["user"]
        assert llm.calls[0]["max_tokens"] == 2000

    @pytest.mark.asyncio
    async def test_search_failure_falls_back(self, fetcher: SafeUrlFetcher) -> None:
        """Test a failing search falls back to generated sources."""
        search = FakeLLMClient(searchable=True, search=ProviderError("search down"))
        builder = SourceBuilder(search, FakeLLMClient(passages(4)), fetcher)

        sources = await builder.build("q", USER_CONTENT, "zh")

        assert [s.type for s in sources] == ["generated"] * 4 + ["user"]


class TestAnswerGenerator:
    """Tests for the cited answer generator."""

    def test_format_sources(self) -> None:
        """Test the source block format."""
        sources = [
            CompetingSource(index=1, type="generated", content="A"),
            CompetingSource(index=5, type="user", content="B"),
        ]
        assert format_sources(sources) == "### Source 1:\nA\n\n### Source 5:\nB"

    def test_system_prompt_markers(self) -> None:
        """Test markers and forbidden indices follow the source count."""
        en = build_system_prompt(5, "en")
        zh = build_system_prompt(5, "zh")

        assert "[1], [2], [3], [4], [5]" in en
        assert "[6], [7]" in en
        assert "[1]、[2]、[3]、[4]、[5]" in zh

    def test_user_prompt(self) -> None:
        """Test the user prompt embeds the question and sources."""
        prompt = build_user_prompt("What is GEO?", [CompetingSource(index=1, type="user", content="X")], "en")

        assert prompt.startswith("Question: What is GEO?")
        assert "### Source 1:\nX" in prompt

    @pytest.mark.asyncio
    async def test_generate(self) -> None:
        """Test the answer call uses the system prompt."""
        llm = FakeLLMClient("Answer[1].")
        generator = AnswerGenerator(llm)
        sources = [CompetingSource(index=i, type="generated", content=f"S{i}") for i in range(1, 6)]

        answer = await generator.generate("q", sources, "en")

        assert answer == "Answer[1]."
        assert "Source 1-5" in llm.calls[0]["system"]
        assert llm.calls[0]["max_tokens"] == 1500

    @pytest.mark.asyncio
    async def test_generate_propagates_provider_error(self) -> None:
        """Test provider failures propagate."""
        with pytest.raises(ProviderError):
            await AnswerGenerator(FakeLLMClient(ProviderError("down"))).generate("q", [], "en")

    @pytest.mark.asyncio
    async def test_generate_without_llm(self) -> None:
        """Test no LLM gives an empty answer."""
        assert await AnswerGenerator(None).generate("q", [], "en") == ""
