"""
GPT Client (OpenAI)
===================
OpenAI GPT-5 クライアント実装（Responses API + web_search ツール）
"""

from __future__ import annotations

import os
from typing import Any, Optional

import openai

from ..errors import ProviderError
from ..types import Annotation, ChatResponse
from .base import LLMClient


class GPTClient(LLMClient):
    """OpenAI GPT-5 クライアント"""

    MODEL = "gpt-5"
    DEFAULT_RATE_LIMIT_INTERVAL = 0.5

    def __init__(self, api_key: Optional[str] = None):
        super().__init__()
        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ProviderError("OPENAI_API_KEY が設定されていません")
        self.async_client = openai.AsyncOpenAI(api_key=api_key)

    @property
    def name(self) -> str:
        return f"GPT ({self.MODEL})"

    @property
    def supports_web_search(self) -> bool:
        return True

    @staticmethod
    def _extract_text(response: Any) -> str:
        """Responses API からテキストを抽出"""
        text = (response.output_text or "").strip()
        if not text:
            raise ProviderError("LLM からのレスポンスにテキストが含まれていません")
        return text

    @staticmethod
    def _extract_annotations(response: Any) -> list[Annotation]:
        """message 出力の url_citation アノテーションを抽出"""
        annotations = []
        for item in response.output or []:
            if getattr(item, "type", None) != "message":
                continue
            for content in getattr(item, "content", None) or []:
                for ann in getattr(content, "annotations", None) or []:
                    if getattr(ann, "type", None) == "url_citation" and getattr(ann, "url", None):
                        annotations.append(Annotation(url=ann.url, title=getattr(ann, "title", None)))
        return annotations

    async def acall_standard(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """非同期で gpt-5 を呼び出し（推論モデルのため temperature は使わない）"""
        await self._wait_for_rate_limit()
        kwargs: dict[str, Any] = {
            "model": self.MODEL,
            "reasoning": {"effort": "low"},
            "input": prompt,
        }
        if system:
            kwargs["instructions"] = system
        try:
            response = await self.async_client.responses.create(**kwargs)
        except openai.OpenAIError as e:
            raise ProviderError(f"OpenAI API エラー: {e}") from e
        return self._extract_text(response)

    async def acall_with_search(self, prompt: str) -> ChatResponse:
        """web_search ツールを使って回答と引用を取得"""
        await self._wait_for_rate_limit()
        try:
            response = await self.async_client.responses.create(
                model=self.MODEL,
                tools=[{"type": "web_search"}],
                input=prompt,
            )
        except openai.OpenAIError as e:
            raise ProviderError(f"OpenAI API エラー: {e}") from e
        return ChatResponse(
            text=self._extract_text(response),
            annotations=self._extract_annotations(response),
        )
