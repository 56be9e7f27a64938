"""
Gemini Client (Google)
======================
Google Gemini クライアント実装
"""

from __future__ import annotations

import asyncio
import os
import random
from typing import Any, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..errors import ProviderError
from ..types import Annotation, ChatResponse
from .base import LLMClient


class GeminiClient(LLMClient):
    """Google Gemini クライアント（検索グラウンディング使用）"""

    MODEL = "gemini-2.5-flash"
    DEFAULT_RATE_LIMIT_INTERVAL = 3.3
    MAX_RETRIES = 5  # 429エラー時の最大リトライ回数

    def __init__(self, api_key: Optional[str] = None):
        super().__init__()
        api_key = api_key or os.getenv("GOOGLE_API_KEY")
        if not api_key:
            raise ProviderError("GOOGLE_API_KEY が設定されていません")
        self.client = genai.Client(api_key=api_key)

    @property
    def name(self) -> str:
        return f"Gemini ({self.MODEL})"

    @property
    def supports_web_search(self) -> bool:
        return True

    async def _retry_on_error(self, func, *args, **kwargs):
        """429エラーまたは接続エラー時にリトライ"""
        last_error = None
        for attempt in range(self.MAX_RETRIES):
            try:
                result = await func(*args, **kwargs)
                print("[Gemini] 成功")
                return result
            except genai_errors.ClientError as e:
                if "429" in str(e) or "RESOURCE_EXHAUSTED" in str(e):
                    wait_time = 20 + random.randint(0, 60)
                    print(f"[Gemini] 429 RESOURCE_EXHAUSTED - {wait_time}秒待機後リトライ ({attempt + 1}/{self.MAX_RETRIES})")
                    await asyncio.sleep(wait_time)
                    last_error = e
                else:
                    raise ProviderError(f"Gemini API エラー: {e}") from e
            except genai_errors.APIError as e:
                raise ProviderError(f"Gemini API エラー: {e}") from e
            except (httpx.ConnectError, httpx.TimeoutException, OSError) as e:
                # ネットワーク接続エラー（DNS解決失敗、タイムアウト等）
                wait_time = 10 + random.randint(0, 20)
                print(f"[Gemini] 接続エラー - {wait_time}秒待機後リトライ ({attempt + 1}/{self.MAX_RETRIES}): {e}")
                await asyncio.sleep(wait_time)
                last_error = e
        raise ProviderError(f"Gemini API: {self.MAX_RETRIES}回リトライしましたが失敗しました: {last_error}")

    async def _generate(self, contents: str, config: Optional[types.GenerateContentConfig]) -> Any:
        # google-genai の同期APIをスレッドプールで実行
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            lambda: self.client.models.generate_content(
                model=self.MODEL,
                contents=contents,
                config=config,
            )
        )

    async def acall_standard(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """非同期で Gemini を呼び出し（グラウンディングなし）"""
        await self._wait_for_rate_limit()

        config = types.GenerateContentConfig(
            system_instruction=system,
            temperature=temperature,
            max_output_tokens=max_tokens,
        )

        async def _call():
            response = await self._generate(prompt, config)
            text = response.text.strip() if response.text else ""
            if not text:
                raise ProviderError("LLM からのレスポンスにテキストが含まれていません")
            return text

        return await self._retry_on_error(_call)

    async def acall_with_search(self, prompt: str) -> ChatResponse:
        """Google検索グラウンディングで回答と引用を取得"""
        await self._wait_for_rate_limit()

        grounding_tool = types.Tool(google_search=types.GoogleSearch())
        config = types.GenerateContentConfig(tools=[grounding_tool])

        response = await self._retry_on_error(self._generate, prompt, config)

        # grounding_metadata.grounding_chunks からURLを抽出
        annotations = []
        seen_urls: set[str] = set()
        candidates = getattr(response, "candidates", None) or []
        if candidates:
            metadata = getattr(candidates[0], "grounding_metadata", None)
            for chunk in getattr(metadata, "grounding_chunks", None) or []:
                web = getattr(chunk, "web", None)
                url = getattr(web, "uri", None)
                if url and url not in seen_urls:
                    seen_urls.add(url)
                    annotations.append(Annotation(url=url, title=getattr(web, "title", None)))

        text = response.text.strip() if response.text else ""
        if not text:
            raise ProviderError("LLM からのレスポンスにテキストが含まれていません")
        return ChatResponse(text=text, annotations=annotations)
