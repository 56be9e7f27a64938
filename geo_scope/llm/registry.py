"""
Engine Registry
===============
エンジン（プロバイダー）識別子と機能テーブル

どのエンジンがWeb検索に対応するかは ENGINE_CAPABILITIES だけで決まり、
フォールバック先の選択もこのテーブルから導出する。
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..errors import ProviderError
from .base import LLMClient
from .claude import ClaudeClient
from .compatible import DeepSeekClient, QwenClient
from .gemini import GeminiClient
from .gpt import GPTClient


class Engine(str, Enum):
    """エンジン識別子"""
    GPT = "gpt"
    CLAUDE = "claude"
    GEMINI = "gemini"
    DEEPSEEK = "deepseek"
    QWEN = "qwen"


@dataclass(frozen=True)
class EngineCapability:
    """エンジンの機能"""
    supports_web_search: bool
    api_key_env: str
    priority: int  # 小さいほど優先（デフォルトクライアントの選択順）


ENGINE_CAPABILITIES: dict[Engine, EngineCapability] = {
    Engine.GPT: EngineCapability(supports_web_search=True, api_key_env="OPENAI_API_KEY", priority=3),
    Engine.CLAUDE: EngineCapability(supports_web_search=True, api_key_env="ANTHROPIC_API_KEY", priority=4),
    Engine.GEMINI: EngineCapability(supports_web_search=True, api_key_env="GOOGLE_API_KEY", priority=5),
    Engine.DEEPSEEK: EngineCapability(supports_web_search=False, api_key_env="DEEPSEEK_API_KEY", priority=1),
    Engine.QWEN: EngineCapability(supports_web_search=False, api_key_env="DASHSCOPE_API_KEY", priority=2),
}


def _client_factories() -> dict[Engine, Callable[[], LLMClient]]:
    return {
        Engine.GPT: GPTClient,
        Engine.CLAUDE: ClaudeClient,
        Engine.GEMINI: GeminiClient,
        Engine.DEEPSEEK: DeepSeekClient,
        Engine.QWEN: QwenClient,
    }


def parse_engine(value: str) -> Engine:
    """文字列をエンジン識別子に変換"""
    try:
        return Engine(value.lower())
    except ValueError:
        valid = ", ".join(e.value for e in Engine)
        raise ValueError(f"Unknown provider: {value}. Use one of: {valid}") from None


def create_llm_client(provider: str = "gpt") -> LLMClient:
    """
    LLMクライアントを作成するファクトリ関数

    Args:
        provider: "gpt", "claude", "gemini", "deepseek", "qwen" のいずれか

    Returns:
        LLMClient インスタンス
    """
    return _client_factories()[parse_engine(provider)]()


class EngineRegistry:
    """
    利用可能なエンジンとクライアントの集合

    オーケストレーターはこのレジストリを受け取り、グローバルな状態を参照しない。
    """

    def __init__(self, clients: Optional[dict[Engine, LLMClient]] = None):
        self._clients: dict[Engine, LLMClient] = dict(clients or {})

    @classmethod
    def from_env(cls) -> "EngineRegistry":
        """APIキーが設定されているエンジンのクライアントを作成"""
        factories = _client_factories()
        clients: dict[Engine, LLMClient] = {}
        for engine, capability in ENGINE_CAPABILITIES.items():
            if not os.getenv(capability.api_key_env):
                continue
            try:
                clients[engine] = factories[engine]()
            except ProviderError as e:
                print(f"[Registry] {engine.value} のクライアント作成に失敗: {e}")
        print(f"[Registry] 利用可能なエンジン: {[e.value for e in clients]}")
        return cls(clients)

    def get(self, engine: Engine) -> LLMClient:
        client = self._clients.get(engine)
        if client is None:
            raise ProviderError(f"エンジンが設定されていません: {engine.value}")
        return client

    def available(self) -> list[Engine]:
        """設定済みの全エンジン（Enumの定義順）"""
        return [e for e in Engine if e in self._clients]

    def search_engines(self) -> list[Engine]:
        """Web検索に対応した設定済みエンジン"""
        return [e for e in self.available() if ENGINE_CAPABILITIES[e].supports_web_search]

    def fallback_for(self, engine: Engine) -> Optional[Engine]:
        """
        フォールバック先を選択

        指定エンジンと異なる、Web検索非対応の設定済みエンジンのうち優先度が最も高いもの。
        """
        candidates = [
            e for e in self.available()
            if e != engine and not ENGINE_CAPABILITIES[e].supports_web_search
        ]
        candidates.sort(key=lambda e: ENGINE_CAPABILITIES[e].priority)
        return candidates[0] if candidates else None

    def default_engine(self) -> Optional[Engine]:
        """テキスト生成に使うデフォルトのエンジン"""
        engines = sorted(self.available(), key=lambda e: ENGINE_CAPABILITIES[e].priority)
        return engines[0] if engines else None

    def default_client(self) -> Optional[LLMClient]:
        engine = self.default_engine()
        return self._clients[engine] if engine is not None else None

    def search_client(self) -> Optional[LLMClient]:
        """ソース検索に使う検索対応クライアント"""
        engines = sorted(self.search_engines(), key=lambda e: ENGINE_CAPABILITIES[e].priority)
        return self._clients[engines[0]] if engines else None
