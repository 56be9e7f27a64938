"""
Brand Monitor Orchestrator
==========================
ブランドモニターの実行

流れ:
1. クエリ準備（有効な保存済み質問、なければ業界キーワードから購買意図クエリを生成）
2. 各クエリを全検索エンジンで並列実行し、ブランド・競合の言及と順位を検出
3. 言及されたクエリのセンチメントを一括判定
4. 言及率・平均順位・シェアオブボイス・エンジン別内訳を集計

進捗は monitor_* イベントとしてシンクに送信する。
キャンセルはフェーズ境界で確認し、検出後はイベントを送信しない。
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional

from .analysis.citation_parser import collect_citations
from .analysis.mentions import detect_brand_mention, detect_competitor_mentions, extract_mention_context
from .analysis.metrics import round_half_up, round_int
from .config import Settings, load_settings
from .errors import AbortedError, NoEnginesError
from .events import CancelToken, EventSink, emit
from .llm.registry import Engine, EngineRegistry
from .questions.monitor import generate_buyer_intent_queries
from .sentiment import SentimentInput, analyze_sentiment_batch
from .types import (
    BrandMonitor,
    CheckDetail,
    CheckSummary,
    CompetitorMention,
    EngineBreakdown,
    EngineCheckResult,
    MonitorQuery,
    MonitorQuestion,
    QueryCheckResult,
    to_dict,
)
from .verifier import SearchEngineVerifier


class BrandMonitorOrchestrator:
    """
    ブランドモニター実行クラス

    Attributes:
        registry: 利用可能なエンジンのレジストリ
        verifier: エンジン単位の検索呼び出し（タイムアウト・フォールバック付き）
    """

    def __init__(
        self,
        registry: EngineRegistry,
        settings: Optional[Settings] = None,
        verifier: Optional[SearchEngineVerifier] = None,
    ):
        self.registry = registry
        self.settings = settings or load_settings()
        self.verifier = verifier or SearchEngineVerifier(registry, self.settings)

    async def run(
        self,
        monitor: BrandMonitor,
        questions: Optional[list[MonitorQuestion]] = None,
        sink: Optional[EventSink] = None,
        cancel: Optional[CancelToken] = None,
    ) -> tuple[CheckSummary, CheckDetail]:
        """
        ブランドモニターを1回実行

        Args:
            monitor: モニター設定
            questions: 保存済みの質問（有効なものがなければクエリを生成）
            sink: 進捗イベントの送信先
            cancel: キャンセルトークン

        Returns:
            tuple: (CheckSummary, CheckDetail)

        Raises:
            ProviderError: 検索エンジンが1つもない場合（イベント送信前）
            AbortedError: キャンセルされた場合
        """
        engines = self.registry.search_engines()
        if not engines:
            raise NoEnginesError("No search engines available")

        try:
            return await self._run(monitor, engines, questions, sink, cancel)
        except AbortedError:
            print(f"[Monitor] {monitor.name}: キャンセルされました")
            raise
        except Exception as e:
            print(f"[Monitor] {monitor.name}: エラー: {e!r}")
            emit(sink, "monitor_error", message=str(e))
            raise

    async def _run(
        self,
        monitor: BrandMonitor,
        engines: list[Engine],
        questions: Optional[list[MonitorQuestion]],
        sink: Optional[EventSink],
        cancel: Optional[CancelToken],
    ) -> tuple[CheckSummary, CheckDetail]:
        start_time = time.time()
        check_abort = cancel.raise_if_cancelled if cancel is not None else (lambda: None)

        emit(
            sink,
            "monitor_init",
            monitor_id=monitor.id,
            monitor_name=monitor.name,
            brand_names=monitor.brand_names,
            total_engines=len(engines),
        )
        check_abort()

        queries = await self._prepare_queries(monitor, questions)
        emit(sink, "monitor_queries", queries=[to_dict(q) for q in queries])
        check_abort()

        query_results: list[QueryCheckResult] = []
        for qi, q in enumerate(queries):
            check_abort()
            query_results.append(await self._check_query(monitor, engines, qi, q, sink))

        check_abort()
        await self._apply_sentiment(monitor, query_results, sink)

        summary = aggregate_summary(query_results, monitor, len(engines))
        duration = time.time() - start_time
        emit(sink, "monitor_complete", summary=to_dict(summary), duration=duration)
        print(f"[Monitor] {monitor.name}: 完了 (mention_rate: {summary.mention_rate:.0%}, {duration:.1f}s)")

        return summary, CheckDetail(queries=query_results)

    async def _prepare_queries(
        self,
        monitor: BrandMonitor,
        questions: Optional[list[MonitorQuestion]],
    ) -> list[MonitorQuery]:
        enabled = [q for q in questions or [] if q.enabled]
        if enabled:
            return [MonitorQuery(query=q.question, type=q.intent_type) for q in enabled]
        return await generate_buyer_intent_queries(
            self.registry.default_client(),
            monitor.industry_keywords,
            monitor.locale,
        )

    async def _check_engine(
        self,
        monitor: BrandMonitor,
        engine: Engine,
        query_index: int,
        query: str,
        sink: Optional[EventSink],
    ) -> EngineCheckResult:
        result = await self.verifier.verify_with_engine(query, engine, "", monitor.locale)

        mention = detect_brand_mention(result.answer, monitor.brand_names)
        context = mention.context if mention.found else extract_mention_context(result.answer, monitor.brand_names)

        engine_result = EngineCheckResult(
            engine=engine.value,
            answer=result.answer,
            brand_mentioned=mention.found,
            brand_position=mention.position,
            brand_context=context,
            competitor_mentions=detect_competitor_mentions(result.answer, monitor.competitor_brands),
            citations=result.citations or collect_citations(result.answer, [], ""),
            duration=result.duration,
        )

        emit(
            sink,
            "monitor_engine_complete",
            query_index=query_index,
            engine=engine.value,
            brand_mentioned=mention.found,
            brand_position=mention.position,
            duration=result.duration,
        )
        return engine_result

    async def _check_query(
        self,
        monitor: BrandMonitor,
        engines: list[Engine],
        query_index: int,
        query: MonitorQuery,
        sink: Optional[EventSink],
    ) -> QueryCheckResult:
        for engine in engines:
            emit(sink, "monitor_engine_start", query_index=query_index, engine=engine.value)

        tasks = [self._check_engine(monitor, e, query_index, query.query, sink) for e in engines]
        engine_results = list(await asyncio.gather(*tasks))

        result = aggregate_query(query, engine_results)
        emit(
            sink,
            "monitor_query_complete",
            query_index=query_index,
            query=query.query,
            brand_mentioned=result.brand_mentioned,
            brand_position=result.brand_position,
            competitor_count=len(result.competitor_mentions),
        )
        return result

    async def _apply_sentiment(
        self,
        monitor: BrandMonitor,
        query_results: list[QueryCheckResult],
        sink: Optional[EventSink],
    ) -> None:
        inputs = [
            SentimentInput(query_index=i, context=qr.sentiment_context)
            for i, qr in enumerate(query_results)
            if qr.brand_mentioned and qr.sentiment_context
        ]
        if not inputs:
            return

        emit(sink, "monitor_sentiment", processed=0, total=len(inputs))
        sentiments = await analyze_sentiment_batch(
            self.registry.default_client(),
            monitor.brand_names[0],
            inputs,
            monitor.locale,
        )
        for index, sentiment in sentiments.items():
            query_results[index].sentiment = sentiment.sentiment
        emit(sink, "monitor_sentiment", processed=len(inputs), total=len(inputs))


# =============================================================================
# Aggregation
# =============================================================================

def merge_competitor_mentions(engine_results: list[EngineCheckResult]) -> list[CompetitorMention]:
    """エンジン間で競合の言及をマージ（順位は正の値の最小値）"""
    positions: dict[str, int] = {}
    for er in engine_results:
        for cm in er.competitor_mentions:
            current = positions.get(cm.name)
            if current is None or (cm.position > 0 and (current == 0 or cm.position < current)):
                positions[cm.name] = cm.position
    return [CompetitorMention(name=name, position=pos) for name, pos in positions.items()]


def aggregate_query(query: MonitorQuery, engine_results: list[EngineCheckResult]) -> QueryCheckResult:
    """
    エンジン単位の結果をクエリ単位に集計

    brand_position は言及したエンジンの順位（0 を含む）の平均を四捨五入した値。
    """
    mentioned = [r for r in engine_results if r.brand_mentioned]
    brand_position = (
        round_int(sum(r.brand_position for r in mentioned) / len(mentioned))
        if mentioned else 0
    )
    sentiment_context = next((r.brand_context for r in engine_results if r.brand_context), "")

    return QueryCheckResult(
        query=query.query,
        query_type=query.type,
        engine_results=engine_results,
        brand_mentioned=bool(mentioned),
        brand_position=brand_position,
        competitor_mentions=merge_competitor_mentions(engine_results),
        sentiment="neutral",
        sentiment_context=sentiment_context,
    )


def _mean(values: list[int]) -> float:
    return sum(values) / len(values) if values else 0.0


def aggregate_summary(
    query_results: list[QueryCheckResult],
    monitor: BrandMonitor,
    engine_count: int,
) -> CheckSummary:
    """
    モニター実行結果のサマリーを集計

    Args:
        query_results: クエリ単位の結果
        monitor: モニター設定（先頭のブランド名をシェアオブボイスのキーに使う）
        engine_count: 使用したエンジン数

    Returns:
        CheckSummary: 集計結果
    """
    total_queries = len(query_results)
    mentioned_queries = sum(1 for q in query_results if q.brand_mentioned)
    mention_rate = mentioned_queries / total_queries if total_queries > 0 else 0.0

    avg_position = _mean([q.brand_position for q in query_results if q.brand_position > 0])

    # シェアオブボイス: ブランドは言及クエリ数、競合はクエリごとに+1
    voice_counts: dict[str, int] = {monitor.brand_names[0]: mentioned_queries}
    for qr in query_results:
        for cm in qr.competitor_mentions:
            voice_counts[cm.name] = voice_counts.get(cm.name, 0) + 1
    total_voice = sum(voice_counts.values())
    share_of_voice = {
        name: round_half_up(count / total_voice, 2) if total_voice > 0 else 0.0
        for name, count in voice_counts.items()
    }

    sentiment_distribution = {"positive": 0, "neutral": 0, "negative": 0}
    for qr in query_results:
        if qr.brand_mentioned:
            sentiment_distribution[qr.sentiment] += 1

    per_engine: dict[str, EngineBreakdown] = {}
    engine_names = list(dict.fromkeys(e.engine for q in query_results for e in q.engine_results))
    for engine in engine_names:
        engine_mentioned = sum(
            1 for q in query_results
            if any(e.engine == engine and e.brand_mentioned for e in q.engine_results)
        )
        engine_positions = [
            e.brand_position
            for q in query_results
            for e in q.engine_results
            if e.engine == engine and e.brand_position > 0
        ]
        per_engine[engine] = EngineBreakdown(
            mention_rate=engine_mentioned / total_queries if total_queries > 0 else 0.0,
            avg_position=round_half_up(_mean(engine_positions), 1),
        )

    return CheckSummary(
        mention_rate=round_half_up(mention_rate, 2),
        avg_position=round_half_up(avg_position, 1),
        share_of_voice=share_of_voice,
        sentiment_distribution=sentiment_distribution,
        per_engine=per_engine,
        total_queries=total_queries,
        total_engines=engine_count,
    )
