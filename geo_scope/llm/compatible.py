"""
OpenAI-Compatible Clients
=========================
OpenAI互換 Chat Completions API のクライアント（DeepSeek, Qwen）

Web検索には対応しないため、検索エンジン失敗時のフォールバック回答に使う。
"""

from __future__ import annotations

import os
from typing import Any, Optional

import openai

from ..errors import ProviderError
from .base import LLMClient


class OpenAICompatibleClient(LLMClient):
    """OpenAI互換APIクライアントの基底クラス"""

    API_KEY_ENV = ""
    BASE_URL = ""
    DISPLAY_NAME = ""
    DEFAULT_RATE_LIMIT_INTERVAL = 0.5

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None):
        super().__init__()
        api_key = api_key or os.getenv(self.API_KEY_ENV)
        if not api_key:
            raise ProviderError(f"{self.API_KEY_ENV} が設定されていません")
        self.async_client = openai.AsyncOpenAI(api_key=api_key, base_url=base_url or self.BASE_URL)

    @property
    def name(self) -> str:
        return f"{self.DISPLAY_NAME} ({self.MODEL})"

    async def acall_standard(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Chat Completions API で呼び出し"""
        await self._wait_for_rate_limit()
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        kwargs: dict[str, Any] = {"model": self.MODEL, "messages": messages}
        if temperature is not None:
            kwargs["temperature"] = temperature
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        try:
            response = await self.async_client.chat.completions.create(**kwargs)
        except openai.OpenAIError as e:
            raise ProviderError(f"{self.DISPLAY_NAME} API エラー: {e}") from e

        text = (response.choices[0].message.content or "").strip() if response.choices else ""
        if not text:
            raise ProviderError("LLM からのレスポンスにテキストが含まれていません")
        return text


class DeepSeekClient(OpenAICompatibleClient):
    """DeepSeek クライアント"""

    MODEL = os.getenv("DEEPSEEK_MODEL", "deepseek-chat")
    API_KEY_ENV = "DEEPSEEK_API_KEY"
    BASE_URL = "https://api.deepseek.com"
    DISPLAY_NAME = "DeepSeek"


class QwenClient(OpenAICompatibleClient):
    """Qwen（DashScope 互換モード）クライアント"""

    MODEL = os.getenv("QWEN_MODEL", "qwen-plus")
    API_KEY_ENV = "DASHSCOPE_API_KEY"
    BASE_URL = "https://dashscope.aliyuncs.com/compatible-mode/v1"
    DISPLAY_NAME = "Qwen"
