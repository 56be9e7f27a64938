"""
Claude Client (Anthropic)
=========================
Anthropic Claude クライアント実装
"""

from __future__ import annotations

import os
from typing import Any, Optional

import anthropic

from ..errors import ProviderError
from ..types import Annotation, ChatResponse
from .base import LLMClient


class ClaudeClient(LLMClient):
    """Anthropic Claude クライアント（Web検索ツール使用）"""

    MODEL = "claude-sonnet-4-5-20250929"
    DEFAULT_RATE_LIMIT_INTERVAL = 2.0
    DEFAULT_MAX_TOKENS = 4096
    MAX_SEARCH_USES = 5

    def __init__(self, api_key: Optional[str] = None):
        super().__init__()
        api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            raise ProviderError("ANTHROPIC_API_KEY が設定されていません")
        self.async_client = anthropic.AsyncAnthropic(api_key=api_key)

    @property
    def name(self) -> str:
        return f"Claude ({self.MODEL})"

    @property
    def supports_web_search(self) -> bool:
        return True

    @staticmethod
    def _extract_text(response: Any) -> str:
        """Messages API から全テキストブロックを連結して抽出"""
        parts = [block.text for block in response.content if getattr(block, "type", None) == "text"]
        text = "".join(parts).strip()
        if not text:
            raise ProviderError("LLM からのレスポンスにテキストが含まれていません")
        return text

    @staticmethod
    def _extract_annotations(response: Any) -> list[Annotation]:
        """テキストブロックの引用と検索結果からURLを抽出"""
        annotations = []
        seen_urls: set[str] = set()

        for block in response.content:
            # テキストブロックの引用（回答で実際に使われたソース）
            for citation in getattr(block, "citations", None) or []:
                url = getattr(citation, "url", None)
                if url and url not in seen_urls:
                    seen_urls.add(url)
                    annotations.append(Annotation(url=url, title=getattr(citation, "title", None)))

        if annotations:
            return annotations

        # 引用がない場合は web_search_tool_result の検索結果を使う
        for block in response.content:
            if getattr(block, "type", None) != "web_search_tool_result":
                continue
            content = getattr(block, "content", None)
            if not isinstance(content, list):
                continue
            for result in content:
                url = getattr(result, "url", None)
                if url and url not in seen_urls:
                    seen_urls.add(url)
                    annotations.append(Annotation(url=url, title=getattr(result, "title", None)))

        return annotations

    async def acall_standard(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """非同期で Claude を呼び出し（Web検索なし）"""
        await self._wait_for_rate_limit()
        kwargs: dict[str, Any] = {
            "model": self.MODEL,
            "max_tokens": max_tokens or self.DEFAULT_MAX_TOKENS,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system
        if temperature is not None:
            kwargs["temperature"] = temperature
        try:
            response = await self.async_client.messages.create(**kwargs)
        except anthropic.AnthropicError as e:
            raise ProviderError(f"Anthropic API エラー: {e}") from e
        return self._extract_text(response)

    async def acall_with_search(self, prompt: str) -> ChatResponse:
        """Web検索ツールを使って回答と引用を取得"""
        await self._wait_for_rate_limit()
        try:
            response = await self.async_client.messages.create(
                model=self.MODEL,
                max_tokens=self.DEFAULT_MAX_TOKENS,
                messages=[{"role": "user", "content": prompt}],
                tools=[{
                    "type": "web_search_20250305",
                    "name": "web_search",
                    "max_uses": self.MAX_SEARCH_USES,
                }],
            )
        except anthropic.AnthropicError as e:
            raise ProviderError(f"Anthropic API エラー: {e}") from e
        return ChatResponse(
            text=self._extract_text(response),
            annotations=self._extract_annotations(response),
        )
