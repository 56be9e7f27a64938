"""
Search Engine Verifier
======================
実際のAI検索エンジンを呼び出し、ユーザードメインが引用されるかを検証

特徴:
- エンジンごとにタイムアウト付きで検索付き呼び出し
- 失敗・タイムアウト時はWeb検索非対応のプロバイダーで1回だけフォールバック
  （回答テキストのみ、引用なし）
- フォールバックも失敗した場合は空の回答。例外は送出しない
- 1クエリに対して全エンジンを並列実行
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional

from .analysis.citation_parser import collect_citations, find_user_citation_position
from .config import Settings, load_settings
from .events import EventSink, emit
from .llm.registry import Engine, EngineRegistry
from .types import (
    CompetitorDomain,
    EngineQueryResult,
    QueryVerificationResult,
    StrategyScore,
)


MAX_COMPETITORS = 10
SUGGESTION_COMPETITORS = 3
HIGH_CITATION_RATE = 0.5


SEARCH_PROMPTS = {
    "zh": "请搜索并回答以下问题，引用相关来源：\n\n{query}",
    "en": "Please search and answer the following question, citing relevant sources:\n\n{query}",
}


def build_search_prompt(query: str, locale: str) -> str:
    return SEARCH_PROMPTS.get(locale, SEARCH_PROMPTS["en"]).format(query=query)


class SearchEngineVerifier:
    """
    AI検索エンジンによる引用検証クラス

    Attributes:
        registry: 利用可能なエンジンのレジストリ
        settings: タイムアウト設定
    """

    def __init__(self, registry: EngineRegistry, settings: Optional[Settings] = None):
        self.registry = registry
        self.settings = settings or load_settings()

    async def _search(self, query: str, engine: Engine, target_domain: str, locale: str) -> EngineQueryResult:
        client = self.registry.get(engine)
        response = await client.acall_with_search(build_search_prompt(query, locale))

        citations = collect_citations(response.text, response.annotations, target_domain)
        position = find_user_citation_position(citations)
        return EngineQueryResult(
            engine=engine.value,
            answer=response.text,
            citations=citations,
            user_cited=position is not None,
            user_citation_position=position or 0,
        )

    async def _fallback(self, query: str, engine: Engine, locale: str) -> tuple[str, Optional[str]]:
        """Web検索非対応のプロバイダーで回答テキストだけを取得"""
        fallback_engine = self.registry.fallback_for(engine)
        if fallback_engine is None:
            print(f"[Verifier] {engine.value}: フォールバック先がありません")
            return "", None

        client = self.registry.get(fallback_engine)
        try:
            answer = await asyncio.wait_for(
                client.acall_standard(build_search_prompt(query, locale)),
                timeout=self.settings.fallback_timeout,
            )
        except Exception as e:
            print(f"[Verifier] フォールバック ({fallback_engine.value}) も失敗 ({engine.value}): {e!r}")
            return "", fallback_engine.value

        print(f"[Verifier] {engine.value}: {fallback_engine.value} でフォールバック回答を取得")
        return answer, fallback_engine.value

    async def verify_with_engine(
        self,
        query: str,
        engine: Engine,
        target_domain: str,
        locale: str = "zh",
    ) -> EngineQueryResult:
        """
        1クエリ × 1エンジンの検証（タイムアウト・フォールバック付き）

        Args:
            query: 検索クエリ
            engine: 検索エンジン
            target_domain: 引用を確認するドメイン（空文字列なら判定しない）
            locale: "zh" または "en"

        Returns:
            EngineQueryResult: 失敗時は引用なし・フォールバック回答の結果
        """
        start_time = time.time()
        try:
            result = await asyncio.wait_for(
                self._search(query, engine, target_domain, locale),
                timeout=self.settings.engine_timeout,
            )
        except asyncio.TimeoutError:
            print(f"[Verifier] {engine.value} タイムアウト ({self.settings.engine_timeout}s): {query}")
        except Exception as e:
            print(f"[Verifier] {engine.value} 失敗: {query} ({e!r})")
        else:
            result.duration = time.time() - start_time
            return result

        answer, fallback_provider = await self._fallback(query, engine, locale)
        return EngineQueryResult(
            engine=engine.value,
            answer=answer,
            citations=[],
            user_cited=False,
            user_citation_position=0,
            duration=time.time() - start_time,
            fallback_provider=fallback_provider,
        )

    async def verify_query(
        self,
        query: str,
        query_type: str,
        target_domain: str,
        locale: str,
        engines: list[Engine],
        sink: Optional[EventSink] = None,
        query_index: Optional[int] = None,
    ) -> QueryVerificationResult:
        """
        1クエリを全エンジンで並列検証

        engine_start を全エンジン分送信してから並列実行し、
        各エンジンの完了ごとに engine_complete を送信する。
        """
        send = sink if query_index is not None else None
        for engine in engines:
            emit(send, "engine_start", query_index=query_index, engine=engine.value)

        async def run_engine(engine: Engine) -> EngineQueryResult:
            result = await self.verify_with_engine(query, engine, target_domain, locale)
            emit(
                send,
                "engine_complete",
                query_index=query_index,
                engine=engine.value,
                user_cited=result.user_cited,
                citation_count=len(result.citations),
                duration=result.duration,
            )
            return result

        engine_results = list(await asyncio.gather(*(run_engine(e) for e in engines)))

        cited_by_engines = sum(1 for r in engine_results if r.user_cited)
        total_engines = len(engines)
        return QueryVerificationResult(
            query=query,
            query_type=query_type,
            engine_results=engine_results,
            cited_by_engines=cited_by_engines,
            total_engines=total_engines,
            citation_rate=cited_by_engines / total_engines if total_engines > 0 else 0.0,
            competitor_domains=competitors_for_query(engine_results),
        )


# =============================================================================
# Aggregation
# =============================================================================

def competitors_for_query(engine_results: list[EngineQueryResult]) -> list[CompetitorDomain]:
    """1クエリ内の競合ドメイン（ユーザードメイン以外、エンジンごとに1回カウント）"""
    domains: dict[str, CompetitorDomain] = {}
    for result in engine_results:
        seen_in_engine: set[str] = set()
        for citation in result.citations:
            if citation.is_user_domain or citation.domain in seen_in_engine:
                continue
            seen_in_engine.add(citation.domain)
            entry = domains.setdefault(
                citation.domain,
                CompetitorDomain(domain=citation.domain, engine_count=0, query_count=1),
            )
            entry.engine_count += 1
            if not entry.title and citation.title:
                entry.title = citation.title

    return sorted(domains.values(), key=lambda d: d.engine_count, reverse=True)


def aggregate_competitors(query_results: list[QueryVerificationResult]) -> list[CompetitorDomain]:
    """全クエリの競合ドメインを集計（クエリ数、エンジン数の順で上位10件）"""
    domains: dict[str, CompetitorDomain] = {}
    for qr in query_results:
        for cd in qr.competitor_domains:
            existing = domains.get(cd.domain)
            if existing is None:
                domains[cd.domain] = CompetitorDomain(
                    domain=cd.domain,
                    engine_count=cd.engine_count,
                    query_count=cd.query_count,
                    title=cd.title,
                )
                continue
            existing.engine_count += cd.engine_count
            existing.query_count += 1
            if not existing.title and cd.title:
                existing.title = cd.title

    ranked = sorted(domains.values(), key=lambda d: (d.query_count, d.engine_count), reverse=True)
    return ranked[:MAX_COMPETITORS]


def overall_citation_rate(query_results: list[QueryVerificationResult]) -> float:
    """少なくとも1エンジンで引用されたクエリの割合"""
    if not query_results:
        return 0.0
    cited = sum(1 for qr in query_results if qr.citation_rate > 0)
    return cited / len(query_results)


# =============================================================================
# Suggestions
# =============================================================================

SUGGESTION_I18N = {
    "high_rate": {
        "zh": "你的内容在 AI 搜索中表现优秀，被多个引擎引用。",
        "en": "Your content performs well in AI search, cited by multiple engines.",
    },
    "medium_rate": {
        "zh": "你的内容被部分 AI 搜索引擎引用，仍有提升空间。",
        "en": "Your content is cited by some AI engines, room for improvement.",
    },
    "low_rate": {
        "zh": "你的内容未被 AI 搜索引擎引用，需要优化以提升可见性。",
        "en": "Your content is not cited by AI search engines, optimization needed.",
    },
    "section_assessment": {"zh": "总体评估", "en": "Overall Assessment"},
    "section_competitors": {"zh": "竞争对手", "en": "Competitors"},
    "section_competitors_desc": {
        "zh": "以下域名在相同查询中频繁被引用：",
        "en": "These domains are frequently cited for similar queries:",
    },
    "section_optimization": {"zh": "内容优化建议", "en": "Optimization Suggestions"},
    "col_domain": {"zh": "域名", "en": "Domain"},
    "col_queries": {"zh": "查询数", "en": "Queries"},
    "col_engines": {"zh": "引擎数", "en": "Engines"},
}


def _t(key: str, locale: str) -> str:
    pair = SUGGESTION_I18N[key]
    return pair.get(locale, pair["en"])


def format_verification_suggestions(
    overall_rate: float,
    top_competitors: list[CompetitorDomain],
    top_weaknesses: list[StrategyScore],
    locale: str = "zh",
) -> list[str]:
    """
    検証結果からMarkdown形式の改善提案を作成

    Args:
        overall_rate: 全体の引用率
        top_competitors: 競合ドメイン（上位3件を表で表示）
        top_weaknesses: 弱いGEO戦略（提案があるものだけ表示）
        locale: "zh" または "en"

    Returns:
        list[str]: Markdownの行リスト
    """
    lines = [f"**{_t('section_assessment', locale)}**", ""]
    if overall_rate >= HIGH_CITATION_RATE:
        lines.append(_t("high_rate", locale))
    elif overall_rate > 0:
        lines.append(_t("medium_rate", locale))
    else:
        lines.append(_t("low_rate", locale))

    if top_competitors:
        lines += [
            "",
            f"**{_t('section_competitors', locale)}**",
            "",
            _t("section_competitors_desc", locale),
            "",
            f"| {_t('col_domain', locale)} | {_t('col_queries', locale)} | {_t('col_engines', locale)} |",
            "|---|---|---|",
        ]
        for c in top_competitors[:SUGGESTION_COMPETITORS]:
            lines.append(f"| {c.domain} | {c.query_count} | {c.engine_count} |")

    if top_weaknesses:
        lines += ["", f"**{_t('section_optimization', locale)}**", ""]
        for w in top_weaknesses:
            if w.suggestions:
                lines.append(f"- **{w.label}**：{'；'.join(w.suggestions)}")

    return lines
