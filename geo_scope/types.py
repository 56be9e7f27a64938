"""
GEO-Scope Type Definitions
==========================
共通の型定義（TypedDict, dataclass）
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal, Optional, TypedDict


SourceType = Literal["search", "generated", "user"]
Sentiment = Literal["positive", "neutral", "negative"]


class SearchResult(TypedDict):
    """Web検索結果の型"""
    url: str
    title: str


class GeneratedQuestion(TypedDict):
    """キーワードから生成されたモニター質問の型"""
    question: str
    intent_type: str
    search_volume: int


# =============================================================================
# Citation / Impression
# =============================================================================

@dataclass
class Citation:
    """文ごとの引用情報"""
    source_index: int
    sentence_position: int
    sentence_text: str
    word_count: int


@dataclass
class SourceStats:
    """ソース別の引用統計"""
    citation_count: int = 0
    total_word_count: float = 0.0  # 同一文で共同引用された場合は均等割り
    positions: list[int] = field(default_factory=list)


@dataclass
class ExtractionResult:
    """引用抽出の結果"""
    citations: list[Citation] = field(default_factory=list)
    source_stats: dict[int, SourceStats] = field(default_factory=dict)
    total_sentences: int = 0


@dataclass
class ImpressionScore:
    """ソース別のインプレッションスコア"""
    source_index: int
    raw_score: float
    normalized_score: int  # 0-100
    citation_count: int
    avg_position: float


@dataclass
class ImpressionResult:
    """インプレッション計算の結果"""
    scores: list[ImpressionScore]
    target_score: Optional[ImpressionScore]
    target_rank: int


# =============================================================================
# Content Analysis
# =============================================================================

@dataclass
class CompetingSource:
    """回答生成に渡すソース"""
    index: int
    type: SourceType
    content: str
    url: Optional[str] = None
    title: Optional[str] = None
    domain: Optional[str] = None


@dataclass
class GeneratedQuery:
    """生成されたクエリ"""
    query: str
    type: str  # "definition", "howto", "comparison", "general"


@dataclass
class QueryGenerationResult:
    """クエリ生成の結果"""
    queries: list[GeneratedQuery]
    topic: str


@dataclass
class QueryAnalysisResult:
    """クエリ単位の分析結果（text_qualityモード）"""
    query: str
    query_type: str
    citation_score: int
    rank: int
    citation_count: int
    avg_position: float
    ai_answer: str
    citations: list[Citation] = field(default_factory=list)
    sources: list[CompetingSource] = field(default_factory=list)
    duration: float = 0.0


@dataclass
class ContentStats:
    """コンテンツの基本統計"""
    char_count: int
    word_count: int
    sentence_count: int
    paragraph_count: int


@dataclass
class ContentCharacteristics:
    """コンテンツの特徴"""
    has_statistics: bool
    has_citations: bool
    has_quotes: bool
    has_structure: bool
    avg_sentence_length: float
    unique_words_ratio: float


@dataclass
class StrategyScore:
    """GEO戦略ごとのスコア"""
    strategy: str
    score: int
    label: str
    description: str
    suggestions: list[str] = field(default_factory=list)


@dataclass
class StrategyAnalysisResult:
    """GEO戦略分析の結果"""
    scores: list[StrategyScore]
    overall_score: int
    top_strengths: list[StrategyScore]
    top_weaknesses: list[StrategyScore]


@dataclass
class AnalysisMetadata:
    """分析メタデータ"""
    provider: str
    model: str
    total_duration: float
    api_calls: int
    timestamp: str


@dataclass
class GeoAnalysisResult:
    """text_qualityモードの最終結果"""
    overall: int
    query_results: list[QueryAnalysisResult]
    topic: str
    content_stats: ContentStats
    characteristics: ContentCharacteristics
    suggestions: list[str]
    strategy_scores: list[StrategyScore]
    metadata: AnalysisMetadata


# =============================================================================
# Search Engine Verification
# =============================================================================

@dataclass
class Annotation:
    """LLMが返す引用アノテーション"""
    url: str
    title: Optional[str] = None


@dataclass
class ChatResponse:
    """LLMレスポンス（本文 + 引用アノテーション）"""
    text: str
    annotations: list[Annotation] = field(default_factory=list)


@dataclass
class DiscoveredCitation:
    """AI検索回答から発見された引用"""
    url: str
    domain: str
    is_user_domain: bool
    title: Optional[str] = None


@dataclass
class EngineQueryResult:
    """エンジン単位の検証結果"""
    engine: str
    answer: str
    citations: list[DiscoveredCitation] = field(default_factory=list)
    user_cited: bool = False
    user_citation_position: int = 0  # 1始まり、0 = 引用なし
    duration: float = 0.0
    fallback_provider: Optional[str] = None


@dataclass
class CompetitorDomain:
    """競合ドメイン"""
    domain: str
    engine_count: int
    query_count: int
    title: Optional[str] = None


@dataclass
class QueryVerificationResult:
    """クエリ単位の検証結果（url_verificationモード）"""
    query: str
    query_type: str
    engine_results: list[EngineQueryResult]
    cited_by_engines: int
    total_engines: int
    citation_rate: float
    competitor_domains: list[CompetitorDomain] = field(default_factory=list)


@dataclass
class UrlVerificationResult:
    """url_verificationモードの最終結果"""
    user_url: str
    user_domain: str
    overall_citation_rate: float
    query_results: list[QueryVerificationResult]
    topic: str
    content_stats: ContentStats
    top_competitors: list[CompetitorDomain]
    strategy_scores: list[StrategyScore]
    suggestions: list[str]
    metadata: AnalysisMetadata


# =============================================================================
# Brand Monitoring
# =============================================================================

@dataclass
class CompetitorBrand:
    """競合ブランド"""
    name: str
    aliases: list[str] = field(default_factory=list)


@dataclass
class BrandMonitor:
    """ブランドモニター設定"""
    id: str
    name: str
    brand_names: list[str]  # 先頭が正式名
    competitor_brands: list[CompetitorBrand] = field(default_factory=list)
    industry_keywords: list[str] = field(default_factory=list)
    locale: str = "zh"


@dataclass
class MonitorQuestion:
    """モニター用の質問"""
    question: str
    intent_type: str
    enabled: bool = True
    search_volume: int = 0


@dataclass
class MonitorQuery:
    """実行対象のクエリ"""
    query: str
    type: str


@dataclass
class BrandMention:
    """ブランド言及の検出結果"""
    found: bool
    position: int  # 0 = リスト外
    context: str
    matched_name: str


@dataclass
class CompetitorMention:
    """競合ブランドの言及"""
    name: str
    position: int


@dataclass
class SentimentResult:
    """センチメント判定結果"""
    sentiment: Sentiment
    confidence: float
    context: str


@dataclass
class EngineCheckResult:
    """エンジン単位のブランドチェック結果"""
    engine: str
    answer: str
    brand_mentioned: bool
    brand_position: int
    brand_context: str
    competitor_mentions: list[CompetitorMention] = field(default_factory=list)
    citations: list[DiscoveredCitation] = field(default_factory=list)
    duration: float = 0.0


@dataclass
class QueryCheckResult:
    """クエリ単位のブランドチェック結果"""
    query: str
    query_type: str
    engine_results: list[EngineCheckResult]
    brand_mentioned: bool
    brand_position: int
    competitor_mentions: list[CompetitorMention]
    sentiment: Sentiment = "neutral"
    sentiment_context: str = ""


@dataclass
class EngineBreakdown:
    """エンジン別の集計"""
    mention_rate: float
    avg_position: float


@dataclass
class CheckSummary:
    """モニター実行のサマリー"""
    mention_rate: float
    avg_position: float
    share_of_voice: dict[str, float]
    sentiment_distribution: dict[str, int]
    per_engine: dict[str, EngineBreakdown]
    total_queries: int
    total_engines: int


@dataclass
class CheckDetail:
    """モニター実行の詳細"""
    queries: list[QueryCheckResult] = field(default_factory=list)


def to_dict(record: Any) -> dict[str, Any]:
    """dataclass をイベント送信用の辞書に変換"""
    return asdict(record)
