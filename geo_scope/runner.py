"""
Content Analysis Pipeline
=========================
コンテンツのGEO分析を実行するパイプライン

2つのモード:
- text_quality: クエリごとに競合ソース4件 + ユーザーコンテンツ（Source 5）で
  引用付き回答を生成し、ユーザーコンテンツのインプレッションスコアを計算
- url_verification: URLのページを取得し、実際のAI検索エンジンで
  ユーザードメインが引用されるかを検証

特徴:
- クエリは全件を同時に開始して並列実行（失敗したクエリは除外）
- ストリーミング時は進捗イベントを EventChannel に送信
- キャンセルはフェーズ境界で確認し、検出後はイベントを送信しない
- エラー時は error イベントを1件だけ送信して終了
"""

from __future__ import annotations

import asyncio
import re
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union
from urllib.parse import urlparse

from .analysis.citation import extract_citations
from .analysis.citation_parser import extract_domain
from .analysis.impression import calculate_impression
from .analysis.metrics import calc_content_characteristics, calc_content_stats, round_int
from .analysis.strategy import analyze_geo_strategies
from .answer import AnswerGenerator
from .config import CONTENT_MAX_LENGTH, CONTENT_MIN_LENGTH, Settings, load_settings
from .content import SafeUrlFetcher
from .errors import (
    AbortedError,
    GeoError,
    HttpStatusError,
    NetworkError,
    NoEnginesError,
    ProviderError,
    SecurityRejection,
    UrlAnalysisError,
    ValidationError,
)
from .events import CancelToken, EventChannel, EventSink, emit
from .llm.registry import EngineRegistry
from .questions import CacheStore, QueryGenerator
from .sources import TOTAL_SOURCES, USER_SOURCE_INDEX, SourceBuilder
from .types import (
    AnalysisMetadata,
    GeneratedQuery,
    GeoAnalysisResult,
    QueryAnalysisResult,
    QueryVerificationResult,
    StrategyAnalysisResult,
    UrlVerificationResult,
    to_dict,
)
from .verifier import (
    SearchEngineVerifier,
    aggregate_competitors,
    format_verification_suggestions,
    overall_citation_rate,
)


LOW_SCORE_THRESHOLD = 30


# =============================================================================
# Input resolution
# =============================================================================

URL_PREFIX = re.compile(r'^(?:https?://|www\.)', re.IGNORECASE)
URL_SCHEME = re.compile(r'^https?://', re.IGNORECASE)
URL_CANDIDATE = re.compile(r'(https?://[^\s]+|www\.[^\s]+)', re.IGNORECASE)
DOMAIN_CANDIDATE = re.compile(
    r'\b(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,}(?:/[^\s]*)?',
    re.IGNORECASE,
)
TRAILING_PUNCTUATION = re.compile(r'[)\],.!?;:]+$')

SEARCH_PORTAL_HOSTS = [
    re.compile(r'(^|\.)baidu\.com$', re.IGNORECASE),
    re.compile(r'(^|\.)google\.[a-z.]+$', re.IGNORECASE),
    re.compile(r'(^|\.)bing\.com$', re.IGNORECASE),
    re.compile(r'(^|\.)so\.com$', re.IGNORECASE),
    re.compile(r'(^|\.)sogou\.com$', re.IGNORECASE),
    re.compile(r'(^|\.)yahoo\.[a-z.]+$', re.IGNORECASE),
    re.compile(r'(^|\.)duckduckgo\.com$', re.IGNORECASE),
]


URL_ERROR_MESSAGES = {
    "insufficient_content": {
        "zh": "无法从该链接提取足够正文（仅 {length} 字）。该页面可能是首页/搜索页/验证码页/登录页，或依赖动态渲染。请改用可公开访问的具体文章链接，或直接粘贴正文文本。链接：{url}",
        "en": "Unable to extract enough article text from this URL ({length} chars). This page may be homepage/search/captcha/login-only or dynamically rendered. Try a specific public article URL, or paste the full text directly. URL: {url}",
    },
    "search_portal": {
        "zh": "该链接更像搜索/门户首页，不是具体文章页。请提供可公开访问的具体文章链接，或直接粘贴正文文本。链接：{url}",
        "en": "This URL appears to be a search/home portal, not a specific article page. Please provide a concrete public article URL, or paste the full text directly. URL: {url}",
    },
    "blocked": {
        "zh": "目标站点拒绝抓取（403）。请换一个可公开访问的文章链接，或直接粘贴正文文本。链接：{url}",
        "en": "URL fetch blocked by target site (403). Try another public article URL, or paste text directly. URL: {url}",
    },
    "unreachable_status": {
        "zh": "链接当前不可公开访问（HTTP {status}）。请检查链接，或直接粘贴正文文本。链接：{url}",
        "en": "URL is not publicly accessible (HTTP {status}). Please verify the link or paste text directly. URL: {url}",
    },
    "unreachable": {
        "zh": "无法抓取该链接内容（{detail}）。请尝试其他链接，或直接粘贴正文文本。链接：{url}",
        "en": "Unable to fetch URL content ({detail}). Please try another link or paste text directly. URL: {url}",
    },
    "restricted": {
        "zh": "链接无效或受限。请提供可公开访问的 http/https 链接。链接：{url}",
        "en": "Invalid or restricted URL. Please provide a public http/https URL. URL: {url}",
    },
    "failed": {
        "zh": "抓取链接内容失败。请尝试其他链接，或直接粘贴正文文本。链接：{url}",
        "en": "Failed to fetch URL content. Please try another link or paste text directly. URL: {url}",
    },
}

TEXT_LENGTH_MESSAGES = {
    "too_short": {
        "zh": f"内容过短（最少 {CONTENT_MIN_LENGTH} 字）",
        "en": f"Content too short (minimum {CONTENT_MIN_LENGTH} characters)",
    },
    "too_long": {
        "zh": f"内容过长（最多 {CONTENT_MAX_LENGTH} 字）",
        "en": f"Content too long (maximum {CONTENT_MAX_LENGTH} characters)",
    },
}

NO_ENGINES_MESSAGES = {
    "zh": "没有可用的 AI 搜索引擎，请检查 API 配置",
    "en": "No AI search engines available, check API configuration",
}

# ネットワークエラーのうち「到達不能」として扱うもの
UNREACHABLE_MESSAGES = ("URL fetch timed out", "Hostname resolution failed", "Too many redirects")


def normalize_locale(locale: Optional[str]) -> str:
    return "en" if locale == "en" else "zh"


def url_error(kind: str, url: str, locale: str, **fields) -> UrlAnalysisError:
    """ロケール別メッセージ付きの UrlAnalysisError を作成"""
    key = "unreachable_status" if kind == "unreachable" and "status" in fields else kind
    message = URL_ERROR_MESSAGES[key][locale].format(url=url, **fields)
    return UrlAnalysisError(kind, url, message)


def is_url_input(raw: str) -> bool:
    return bool(URL_PREFIX.match(raw.strip()))


def _trim_url_token(value: str) -> str:
    return TRAILING_PUNCTUATION.sub("", value)


def extract_url_candidate(raw: str) -> Optional[str]:
    """
    入力テキストから最初のURL（またはドメイン）候補を取り出す

    "@" を含むドメイン候補（メールアドレス）は無視する。
    """
    text = raw.strip()
    match = URL_CANDIDATE.search(text)
    if match:
        return _trim_url_token(match.group(1))

    for match in DOMAIN_CANDIDATE.finditer(text):
        candidate = match.group()
        start = match.start()
        if "@" in candidate or (start > 0 and text[start - 1] == "@"):
            continue
        return _trim_url_token(candidate)
    return None


def is_search_portal(hostname: str) -> bool:
    return any(p.search(hostname) for p in SEARCH_PORTAL_HOSTS)


@dataclass
class ResolvedInput:
    """モード判定後の入力"""
    mode: str  # "text" or "url"
    content: str = ""
    url: str = ""


def resolve_input(raw: str, input_type: Optional[str] = None, locale: str = "zh") -> ResolvedInput:
    """
    入力をテキストモード・URLモードに振り分けて検証

    Args:
        raw: ユーザー入力
        input_type: "url" を指定するとURLモードを強制
        locale: "zh" または "en"

    Returns:
        ResolvedInput: text モードは content、url モードは https 正規化済みの url を持つ

    Raises:
        UrlAnalysisError: URLが無効、または検索ポータルのトップページの場合
        ValidationError: テキストが短すぎる・長すぎる場合
    """
    locale = normalize_locale(locale)
    text = raw.strip()

    if input_type == "url" or is_url_input(text):
        candidate = extract_url_candidate(text)
        if candidate is None:
            raise url_error("restricted", text, locale)
        url = candidate if URL_SCHEME.match(candidate) else f"https://{candidate}"

        try:
            parsed = urlparse(url)
            hostname = parsed.hostname
        except ValueError:
            hostname = None
        if not hostname:
            raise url_error("restricted", url, locale)

        if is_search_portal(hostname) and parsed.path in ("", "/") and not parsed.query:
            raise url_error("search_portal", url, locale)
        return ResolvedInput(mode="url", url=url)

    if len(text) < CONTENT_MIN_LENGTH:
        raise ValidationError(TEXT_LENGTH_MESSAGES["too_short"][locale])
    if len(text) > CONTENT_MAX_LENGTH:
        raise ValidationError(TEXT_LENGTH_MESSAGES["too_long"][locale])
    return ResolvedInput(mode="text", content=text)


def normalize_fetch_error(error: GeoError, url: str, locale: str) -> UrlAnalysisError:
    """フェッチャーの例外をユーザー向けの UrlAnalysisError に変換"""
    if isinstance(error, HttpStatusError):
        if error.status_code == 403:
            return url_error("blocked", url, locale)
        if 400 <= error.status_code < 500:
            return url_error("unreachable", url, locale, status=error.status_code)
        return url_error("failed", url, locale)
    if isinstance(error, NetworkError) and str(error) in UNREACHABLE_MESSAGES:
        return url_error("unreachable", url, locale, detail=str(error))
    if isinstance(error, (ValidationError, SecurityRejection)):
        return url_error("restricted", url, locale)
    return url_error("failed", url, locale)


# =============================================================================
# Suggestions
# =============================================================================

TEXT_SUGGESTION_I18N = {
    "overall_score": {"zh": "## GEO 综合评分", "en": "## GEO Overall Score"},
    "citation_perf": {"zh": "**引用表现**", "en": "**Citation Performance**"},
    "avg_rank": {"zh": "平均排名", "en": "Avg Rank"},
    "weaknesses": {"zh": "\n### 需要改进的方面\n", "en": "\n### Areas for Improvement\n"},
    "strengths": {"zh": "\n### 做得好的方面\n", "en": "\n### Strengths\n"},
    "no_citation": {
        "zh": "\n**警告**: 内容在所有查询中均未被AI引用，建议重构内容以直接回答用户问题",
        "en": "\n**Warning**: Content not cited in any query. Restructure to directly answer user questions.",
    },
    "low_score": {"zh": "\n**注意**: 引用分数较低", "en": "\n**Note**: Low citation score"},
    "low_score_suffix": {"zh": "，需要大幅优化", "en": ", needs significant improvement"},
}


def _t(key: str, locale: str) -> str:
    return TEXT_SUGGESTION_I18N[key][normalize_locale(locale)]


def build_text_suggestions(
    query_results: list[QueryAnalysisResult],
    strategy: StrategyAnalysisResult,
    locale: str = "zh",
) -> list[str]:
    """
    テキストモードの改善提案を作成

    総合スコア、引用表現、弱い戦略（提案付き）、強い戦略、
    最後に引用ゼロの警告または低スコアの注意の順に並べる。
    """
    suggestions: list[str] = []
    if not query_results:
        return suggestions

    avg_score = sum(r.citation_score for r in query_results) / len(query_results)
    avg_rank = sum(r.rank for r in query_results) / len(query_results)
    total_citations = sum(r.citation_count for r in query_results)

    suggestions.append(f"{_t('overall_score', locale)}: {strategy.overall_score}/100\n")
    suggestions.append(
        f"{_t('citation_perf', locale)}: {round_int(avg_score)}/100 "
        f"({_t('avg_rank', locale)} {avg_rank:.1f}/{TOTAL_SOURCES})\n"
    )

    suggestions.append(_t("weaknesses", locale))
    for i, weakness in enumerate(strategy.top_weaknesses, 1):
        suggestions.append(f"{i}. {weakness.label} ({weakness.score}/100)")
        suggestions.extend(f"   • {s}" for s in weakness.suggestions)

    suggestions.append(_t("strengths", locale))
    for i, strength in enumerate(strategy.top_strengths, 1):
        suggestions.append(f"{i}. {strength.label} ({strength.score}/100)")

    if total_citations == 0:
        suggestions.append(_t("no_citation", locale))
    elif avg_score < LOW_SCORE_THRESHOLD:
        suggestions.append(
            f"{_t('low_score', locale)} ({round_int(avg_score)}/100){_t('low_score_suffix', locale)}"
        )
    return suggestions


# =============================================================================
# Pipeline
# =============================================================================

class ContentAnalysisPipeline:
    """
    コンテンツ分析パイプライン

    Attributes:
        registry: 利用可能なエンジンのレジストリ
        fetcher: SSRF対策付きフェッチャー
        query_generator: クエリ生成（キャッシュ付き）
        source_builder: 競合ソースの構築
        answer_generator: 引用付き回答の生成
        verifier: AI検索エンジンでの引用検証
    """

    def __init__(
        self,
        registry: EngineRegistry,
        settings: Optional[Settings] = None,
        fetcher: Optional[SafeUrlFetcher] = None,
        cache: Optional[CacheStore] = None,
    ):
        self.registry = registry
        self.settings = settings or load_settings()
        self.fetcher = fetcher or SafeUrlFetcher(self.settings)

        llm = registry.default_client()
        self.query_generator = QueryGenerator(llm, cache)
        self.source_builder = SourceBuilder(registry.search_client(), llm, self.fetcher)
        self.answer_generator = AnswerGenerator(llm)
        self.verifier = SearchEngineVerifier(registry, self.settings)

    def _metadata(self, model: str, start_time: float, api_calls: int) -> AnalysisMetadata:
        engine = self.registry.default_engine()
        return AnalysisMetadata(
            provider=engine.value if engine is not None else "unknown",
            model=model,
            total_duration=time.time() - start_time,
            api_calls=api_calls,
            timestamp=datetime.now().isoformat(),
        )

    def _model_name(self) -> str:
        client = self.registry.default_client()
        return client.model if client is not None else "unknown"

    # -------------------------------------------------------------------------
    # text_quality
    # -------------------------------------------------------------------------

    async def analyze_query(
        self,
        query: GeneratedQuery,
        content: str,
        locale: str = "zh",
    ) -> QueryAnalysisResult:
        """
        1クエリの分析

        ソース構築 → 回答生成 → 引用抽出 → インプレッション計算（対象は Source 5）

        Raises:
            ProviderError: 回答生成に失敗した場合
        """
        start_time = time.time()

        sources = await self.source_builder.build(query.query, content, locale)
        answer = await self.answer_generator.generate(query.query, sources, locale)

        extraction = extract_citations(answer)
        impression = calculate_impression(extraction, TOTAL_SOURCES, USER_SOURCE_INDEX)
        target = impression.target_score

        return QueryAnalysisResult(
            query=query.query,
            query_type=query.type,
            citation_score=target.normalized_score if target else 0,
            rank=impression.target_rank,
            citation_count=target.citation_count if target else 0,
            avg_position=target.avg_position if target else TOTAL_SOURCES,
            ai_answer=answer,
            citations=extraction.citations,
            sources=sources,
            duration=time.time() - start_time,
        )

    async def analyze_text(
        self,
        content: str,
        locale: str = "zh",
        sink: Optional[EventSink] = None,
        cancel: Optional[CancelToken] = None,
    ) -> GeoAnalysisResult:
        """
        テキストコンテンツのGEO分析

        Args:
            content: 分析対象のテキスト（長さ検証済み）
            locale: "zh" または "en"
            sink: 進捗イベントの送信先
            cancel: キャンセルトークン

        Returns:
            GeoAnalysisResult: 分析結果

        Raises:
            ProviderError: 全クエリが失敗した場合
            AbortedError: キャンセルされた場合
        """
        locale = normalize_locale(locale)
        check_abort = cancel.raise_if_cancelled if cancel is not None else (lambda: None)
        start_time = time.time()

        content_stats = calc_content_stats(content)
        characteristics = calc_content_characteristics(content)
        emit(
            sink,
            "init",
            mode="text_quality",
            content_stats=to_dict(content_stats),
            characteristics={
                "has_statistics": characteristics.has_statistics,
                "has_citations": characteristics.has_citations,
                "has_quotes": characteristics.has_quotes,
                "has_structure": characteristics.has_structure,
                "avg_sentence_length": round_int(characteristics.avg_sentence_length),
                "unique_words_ratio": round_int(characteristics.unique_words_ratio * 100),
            },
        )
        check_abort()

        generated = await self.query_generator.generate(content, locale)
        emit(sink, "queries", topic=generated.topic, queries=[to_dict(q) for q in generated.queries])
        check_abort()

        for i, q in enumerate(generated.queries):
            emit(sink, "query_start", query_index=i, query=q.query, query_type=q.type)

        async def run_query(index: int, query: GeneratedQuery) -> Optional[QueryAnalysisResult]:
            try:
                result = await self.analyze_query(query, content, locale)
            except GeoError as e:
                print(f"[Pipeline] クエリ {index + 1} の分析に失敗: {query.query} ({e})")
                return None
            emit(sink, "query_complete", query_index=index, result=to_dict(result))
            return result

        outcomes = await asyncio.gather(*(run_query(i, q) for i, q in enumerate(generated.queries)))
        check_abort()

        query_results = [r for r in outcomes if r is not None]
        if not query_results:
            raise ProviderError("All query analyses failed")

        strategy = analyze_geo_strategies(content, locale)
        overall = round_int(sum(r.citation_score for r in query_results) / len(query_results))

        result = GeoAnalysisResult(
            overall=overall,
            query_results=query_results,
            topic=generated.topic,
            content_stats=content_stats,
            characteristics=characteristics,
            suggestions=build_text_suggestions(query_results, strategy, locale),
            strategy_scores=strategy.scores,
            metadata=self._metadata(
                self._model_name(),
                start_time,
                1 + 2 * len(generated.queries),
            ),
        )
        emit(sink, "complete", result=to_dict(result))
        print(f"[Pipeline] テキスト分析完了: overall={overall} ({result.metadata.total_duration:.1f}s)")
        return result

    # -------------------------------------------------------------------------
    # url_verification
    # -------------------------------------------------------------------------

    def _require_search_engines(self, locale: str):
        engines = self.registry.search_engines()
        if not engines:
            raise NoEnginesError(NO_ENGINES_MESSAGES[normalize_locale(locale)])
        return engines

    async def fetch_url_content(self, url: str, locale: str = "zh") -> str:
        """
        URLのページ本文を取得

        Raises:
            UrlAnalysisError: 取得失敗、または本文が短すぎる場合
        """
        locale = normalize_locale(locale)
        try:
            text, _, _ = await self.fetcher.fetch(url)
        except GeoError as e:
            raise normalize_fetch_error(e, url, locale) from e
        except Exception as e:
            print(f"[Pipeline] URL取得で予期しないエラー: {url} ({type(e).__name__}: {e})")
            raise url_error("failed", url, locale) from e

        if len(text) < CONTENT_MIN_LENGTH:
            raise url_error("insufficient_content", url, locale, length=len(text))
        return text

    async def analyze_url(
        self,
        url: str,
        locale: str = "zh",
        sink: Optional[EventSink] = None,
        cancel: Optional[CancelToken] = None,
    ) -> UrlVerificationResult:
        """
        URLコンテンツがAI検索エンジンで引用されるかを検証

        Args:
            url: 検証対象のURL（https 正規化済み）
            locale: "zh" または "en"
            sink: 進捗イベントの送信先
            cancel: キャンセルトークン

        Returns:
            UrlVerificationResult: 検証結果

        Raises:
            NoEnginesError: 検索エンジンが1つもない場合（取得・クエリ生成の前）
            UrlAnalysisError: ページ取得に失敗した場合
            AbortedError: キャンセルされた場合
        """
        locale = normalize_locale(locale)
        check_abort = cancel.raise_if_cancelled if cancel is not None else (lambda: None)
        engines = self._require_search_engines(locale)
        start_time = time.time()

        content = await self.fetch_url_content(url, locale)
        user_domain = extract_domain(url)
        content_stats = calc_content_stats(content)

        emit(
            sink,
            "init",
            mode="url_verification",
            content_stats=to_dict(content_stats),
            user_url=url,
            user_domain=user_domain,
        )
        emit(sink, "url_fetched", url=url, domain=user_domain, content_length=len(content))
        check_abort()

        generated = await self.query_generator.generate(content, locale)
        emit(sink, "queries", topic=generated.topic, queries=[to_dict(q) for q in generated.queries])
        check_abort()

        for i, q in enumerate(generated.queries):
            emit(sink, "query_start", query_index=i, query=q.query, query_type=q.type)

        async def run_query(index: int, query: GeneratedQuery) -> QueryVerificationResult:
            result = await self.verifier.verify_query(
                query.query, query.type, user_domain, locale, engines,
                sink=sink, query_index=index,
            )
            emit(sink, "query_complete", query_index=index, result=to_dict(result))
            return result

        query_results = list(
            await asyncio.gather(*(run_query(i, q) for i, q in enumerate(generated.queries)))
        )
        check_abort()

        strategy = analyze_geo_strategies(content, locale)
        top_competitors = aggregate_competitors(query_results)
        rate = overall_citation_rate(query_results)

        result = UrlVerificationResult(
            user_url=url,
            user_domain=user_domain,
            overall_citation_rate=rate,
            query_results=query_results,
            topic=generated.topic,
            content_stats=content_stats,
            top_competitors=top_competitors,
            strategy_scores=strategy.scores,
            suggestions=format_verification_suggestions(rate, top_competitors, strategy.top_weaknesses, locale),
            metadata=self._metadata(
                "multi-engine",
                start_time,
                1 + len(generated.queries) * len(engines),
            ),
        )
        emit(sink, "verification_complete", result=to_dict(result))
        print(f"[Pipeline] URL検証完了: {user_domain} citation_rate={rate:.0%} ({result.metadata.total_duration:.1f}s)")
        return result

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    async def analyze(
        self,
        raw: str,
        input_type: Optional[str] = None,
        locale: str = "zh",
    ) -> Union[GeoAnalysisResult, UrlVerificationResult]:
        """入力のモードを判定して分析を実行"""
        resolved = resolve_input(raw, input_type, locale)
        if resolved.mode == "url":
            return await self.analyze_url(resolved.url, locale)
        return await self.analyze_text(resolved.content, locale)

    async def analyze_stream(
        self,
        raw: str,
        channel: EventChannel,
        input_type: Optional[str] = None,
        locale: str = "zh",
        cancel: Optional[CancelToken] = None,
    ) -> None:
        """
        進捗イベントを送信しながら分析を実行

        失敗時は error イベント（message, code）を1件だけ送信する。
        キャンセル時はそれ以上イベントを送信しない。
        いずれの場合も最後にチャネルを閉じる。
        """
        mode = "text"
        try:
            resolved = resolve_input(raw, input_type, locale)
            mode = resolved.mode
            if mode == "url":
                await self.analyze_url(resolved.url, locale, channel, cancel)
            else:
                await self.analyze_text(resolved.content, locale, channel, cancel)
        except AbortedError:
            print("[Pipeline] キャンセルされました")
        except Exception as e:
            code = error_code(e, mode)
            print(f"[Pipeline] エラー ({code}): {e}")
            emit(channel, "error", message=str(e), code=code)
        finally:
            channel.close()

    async def close(self):
        """リソースを解放"""
        await self.fetcher.close()


def error_code(error: Exception, mode: str) -> str:
    """error イベントのコード"""
    if isinstance(error, NoEnginesError):
        return "NO_ENGINES"
    if isinstance(error, UrlAnalysisError):
        return f"URL_{error.kind.upper()}"
    if isinstance(error, ValidationError):
        return "VALIDATION_ERROR"
    return "VERIFICATION_ERROR" if mode == "url" else "ANALYSIS_ERROR"
