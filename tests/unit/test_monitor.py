"""Tests for the brand monitor orchestrator and its aggregation."""

import pytest

from conftest import FakeLLMClient, make_registry, search_response
from geo_scope.config import Settings
from geo_scope.errors import AbortedError, NoEnginesError
from geo_scope.events import CancelToken, ListEventSink
from geo_scope.monitor import (
    BrandMonitorOrchestrator,
    aggregate_query,
    aggregate_summary,
    merge_competitor_mentions,
)
from geo_scope.types import (
    BrandMonitor,
    CompetitorBrand,
    CompetitorMention,
    EngineCheckResult,
    MonitorQuery,
    MonitorQuestion,
    QueryCheckResult,
)
from geo_scope.verifier import SearchEngineVerifier

LISTED_ANSWER = "Top CRM tools:\n1. Rival Suite\n2. Acme Platform\n\nAcme is popular with small teams."

MONITOR = BrandMonitor(
    id="m1",
    name="Acme watch",
    brand_names=["Acme", "Acme Inc"],
    competitor_brands=[CompetitorBrand(name="Rival", aliases=["RivalCo"])],
    industry_keywords=["CRM"],
    locale="en",
)

QUESTIONS = [
    MonitorQuestion(question="best CRM tools", intent_type="recommendation"),
    MonitorQuestion(question="disabled question", intent_type="review", enabled=False),
    MonitorQuestion(question="top CRM for startups", intent_type="ranking"),
]


def _engine(engine: str, mentioned: bool, position: int, competitors=None) -> EngineCheckResult:
    return EngineCheckResult(
        engine=engine,
        answer="",
        brand_mentioned=mentioned,
        brand_position=position,
        brand_context="Acme context" if mentioned else "",
        competitor_mentions=competitors or [],
    )


def _registry():
    return make_registry(
        gpt=FakeLLMClient(searchable=True, search=search_response(LISTED_ANSWER)),
        gemini=FakeLLMClient(searchable=True, search=search_response("Nothing relevant here.")),
        deepseek=FakeLLMClient(
            '[{"index": 0, "sentiment": "positive", "confidence": 0.9},'
            ' {"index": 1, "sentiment": "negative", "confidence": 0.7}]'
        ),
    )


class BrokenVerifier(SearchEngineVerifier):
    async def verify_with_engine(self, query, engine, target_domain, locale="zh"):
        raise RuntimeError("boom")


class TestBrandMonitorOrchestrator:
    """Tests for BrandMonitorOrchestrator.run."""

    @pytest.mark.asyncio
    async def test_full_run(self, settings: Settings) -> None:
        """Test event order, per-query results and the summary."""
        sink = ListEventSink()
        orchestrator = BrandMonitorOrchestrator(_registry(), settings)

        summary, detail = await orchestrator.run(MONITOR, QUESTIONS, sink=sink)

        per_query = ["monitor_engine_start", "monitor_engine_start"]
        assert sink.types[:2] == ["monitor_init", "monitor_queries"]
        assert sink.types[2:4] == per_query
        assert sorted(sink.types[4:6]) == ["monitor_engine_complete", "monitor_engine_complete"]
        assert sink.types[6] == "monitor_query_complete"
        assert sink.types[7:9] == per_query
        assert sink.types[-3:] == ["monitor_sentiment", "monitor_sentiment", "monitor_complete"]

        assert [q.query for q in detail.queries] == ["best CRM tools", "top CRM for startups"]
        first = detail.queries[0]
        assert first.brand_mentioned
        assert first.brand_position == 2
        assert [(c.name, c.position) for c in first.competitor_mentions] == [("Rival", 1)]
        assert [q.sentiment for q in detail.queries] == ["positive", "negative"]

        assert summary.mention_rate == 1.0
        assert summary.avg_position == 2.0
        assert summary.share_of_voice == {"Acme": 0.5, "Rival": 0.5}
        assert summary.sentiment_distribution == {"positive": 1, "neutral": 0, "negative": 1}
        assert summary.per_engine["gpt"].mention_rate == 1.0
        assert summary.per_engine["gemini"].mention_rate == 0.0
        assert summary.total_queries == 2
        assert summary.total_engines == 2

    @pytest.mark.asyncio
    async def test_generates_queries_without_questions(self, settings: Settings) -> None:
        """Test buyer-intent queries are generated when no question is enabled."""
        registry = make_registry(
            gpt=FakeLLMClient(searchable=True, search=search_response("No brands.")),
            deepseek=FakeLLMClient('[{"query": "best CRM", "type": "recommendation"}]'),
        )
        sink = ListEventSink()

        summary, detail = await BrandMonitorOrchestrator(registry, settings).run(
            MONITOR, [QUESTIONS[1]], sink=sink,
        )

        assert [q.query for q in detail.queries] == ["best CRM"]
        assert sink.events[1].data["queries"] == [{"query": "best CRM", "type": "recommendation"}]
        assert summary.mention_rate == 0.0
        assert "monitor_sentiment" not in sink.types

    @pytest.mark.asyncio
    async def test_no_engines(self, settings: Settings) -> None:
        """Test no search engine fails before any event."""
        sink = ListEventSink()
        registry = make_registry(deepseek=FakeLLMClient("x"))

        with pytest.raises(NoEnginesError):
            await BrandMonitorOrchestrator(registry, settings).run(MONITOR, QUESTIONS, sink=sink)

        assert sink.events == []

    @pytest.mark.asyncio
    async def test_abort_emits_no_error(self, settings: Settings) -> None:
        """Test a cancelled run stops without a monitor_error event."""
        sink = ListEventSink()
        cancel = CancelToken()
        cancel.cancel()

        with pytest.raises(AbortedError):
            await BrandMonitorOrchestrator(_registry(), settings).run(MONITOR, QUESTIONS, sink=sink, cancel=cancel)

        assert sink.types == ["monitor_init"]

    @pytest.mark.asyncio
    async def test_failure_emits_error(self, settings: Settings) -> None:
        """Test an unexpected failure emits monitor_error and re-raises."""
        registry = _registry()
        sink = ListEventSink()
        orchestrator = BrandMonitorOrchestrator(registry, settings, verifier=BrokenVerifier(registry, settings))

        with pytest.raises(RuntimeError):
            await orchestrator.run(MONITOR, QUESTIONS, sink=sink)

        assert sink.types[-1] == "monitor_error"
        assert sink.events[-1].data["message"] == "boom"


class TestAggregation:
    """Tests for query and summary aggregation."""

    def test_merge_competitor_mentions(self) -> None:
        """Test the smallest positive position wins across engines."""
        merged = merge_competitor_mentions([
            _engine("gpt", False, 0, [CompetitorMention("Rival", 0), CompetitorMention("Other", 3)]),
            _engine("claude", False, 0, [CompetitorMention("Rival", 2), CompetitorMention("Other", 1)]),
            _engine("gemini", False, 0, [CompetitorMention("Rival", 0)]),
        ])

        assert [(m.name, m.position) for m in merged] == [("Rival", 2), ("Other", 1)]

    def test_aggregate_query_position_includes_zero(self) -> None:
        """Test brand position averages mentioning engines including unlisted ones."""
        result = aggregate_query(
            MonitorQuery(query="q", type="ranking"),
            [_engine("gpt", True, 1), _engine("claude", True, 0), _engine("gemini", False, 0)],
        )

        assert result.brand_mentioned
        assert result.brand_position == 1
        assert result.sentiment == "neutral"
        assert result.sentiment_context == "Acme context"

    def test_aggregate_query_not_mentioned(self) -> None:
        """Test no mention gives position 0 and no context."""
        result = aggregate_query(MonitorQuery(query="q", type="review"), [_engine("gpt", False, 0)])

        assert not result.brand_mentioned
        assert result.brand_position == 0
        assert result.sentiment_context == ""

    def test_aggregate_summary(self) -> None:
        """Test rates, share of voice and per-engine breakdown."""
        queries = [
            QueryCheckResult(
                query="a", query_type="ranking",
                engine_results=[_engine("gpt", True, 1), _engine("claude", True, 2)],
                brand_mentioned=True, brand_position=2,
                competitor_mentions=[CompetitorMention("Rival", 1)],
                sentiment="positive",
            ),
            QueryCheckResult(
                query="b", query_type="review",
                engine_results=[_engine("gpt", False, 0), _engine("claude", True, 0)],
                brand_mentioned=True, brand_position=0,
                competitor_mentions=[CompetitorMention("Rival", 0), CompetitorMention("Other", 2)],
            ),
            QueryCheckResult(
                query="c", query_type="comparison",
                engine_results=[_engine("gpt", False, 0), _engine("claude", False, 0)],
                brand_mentioned=False, brand_position=0, competitor_mentions=[],
            ),
        ]

        summary = aggregate_summary(queries, MONITOR, 2)

        assert summary.mention_rate == 0.67
        assert summary.avg_position == 2.0
        assert summary.share_of_voice == {"Acme": 0.4, "Rival": 0.4, "Other": 0.2}
        assert summary.sentiment_distribution == {"positive": 1, "neutral": 1, "negative": 0}
        assert summary.per_engine["gpt"].mention_rate == 1 / 3
        assert summary.per_engine["gpt"].avg_position == 1.0
        assert summary.per_engine["claude"].mention_rate == 2 / 3
        assert summary.per_engine["claude"].avg_position == 2.0
        assert summary.total_queries == 3

    def test_aggregate_summary_empty(self) -> None:
        """Test an empty run gives zeros."""
        summary = aggregate_summary([], MONITOR, 1)

        assert summary.mention_rate == 0.0
        assert summary.share_of_voice == {"Acme": 0.0}
        assert summary.per_engine == {}
