"""
GEO-Scope
=========
GEO (Generative Engine Optimization) の引用検証・スコアリングエンジン

Reference: Aggarwal et al., "GEO: Generative Engine Optimization", KDD 2024

モジュール構成:
- analysis: 引用抽出、インプレッション計算、GEO戦略評価、言及検出
- content: SSRF対策付きのWebコンテンツ取得
- llm: LLMクライアント（GPT, Claude, Gemini, DeepSeek, Qwen）とエンジンレジストリ
- questions: クエリ生成とキャッシュ
- runner: コンテンツ分析パイプライン（テキスト品質 / URL検証）
- verifier: AI検索エンジンでの引用検証
- monitor: ブランドモニター

Usage:
    from geo_scope import ContentAnalysisPipeline, EngineRegistry

    registry = EngineRegistry.from_env()
    pipeline = ContentAnalysisPipeline(registry)
    result = await pipeline.analyze("https://example.com/article", locale="en")
"""

# 主要なクラスをトップレベルでエクスポート
from .analysis import analyze_geo_strategies, calculate_impression, extract_citations
from .config import Settings, build_monitor, load_monitor_config, load_settings
from .content import SafeUrlFetcher
from .errors import (
    AbortedError,
    GeoError,
    NetworkError,
    NoEnginesError,
    ParseError,
    ProviderError,
    SecurityRejection,
    UrlAnalysisError,
    ValidationError,
)
from .events import CancelToken, EventChannel, ListEventSink, ProgressEvent
from .llm import Engine, EngineRegistry, LLMClient, create_llm_client
from .monitor import BrandMonitorOrchestrator
from .questions import JsonFileCacheStore, QueryGenerator
from .runner import ContentAnalysisPipeline, resolve_input
from .verifier import SearchEngineVerifier

__version__ = "1.0.0"

__all__ = [
    # Core classes
    "ContentAnalysisPipeline",
    "SearchEngineVerifier",
    "BrandMonitorOrchestrator",
    "QueryGenerator",
    "SafeUrlFetcher",
    "LLMClient",
    "Engine",
    "EngineRegistry",
    # Events
    "ProgressEvent",
    "EventChannel",
    "ListEventSink",
    "CancelToken",
    "JsonFileCacheStore",
    # Errors
    "GeoError",
    "ValidationError",
    "NetworkError",
    "SecurityRejection",
    "ProviderError",
    "NoEnginesError",
    "ParseError",
    "AbortedError",
    "UrlAnalysisError",
    # Functions
    "analyze_geo_strategies",
    "build_monitor",
    "calculate_impression",
    "create_llm_client",
    "extract_citations",
    "load_monitor_config",
    "load_settings",
    "resolve_input",
    "Settings",
]
