"""
LLM Base Client
===============
LLMクライアントの抽象基底クラス
"""

from __future__ import annotations

import asyncio
import os
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from ..errors import ProviderError
from ..types import ChatResponse


class LLMClient(ABC):
    """LLMクライアントの抽象基底クラス"""

    # サブクラスでオーバーライドするデフォルトのレートリミット間隔
    DEFAULT_RATE_LIMIT_INTERVAL = 3.3
    MODEL = ""

    def __init__(self):
        # レートリミット設定（環境変数で上書き可能）
        env_interval = os.getenv("LLM_RATE_LIMIT_INTERVAL")
        if env_interval:
            self.rate_limit_interval = float(env_interval)
        else:
            self.rate_limit_interval = self.DEFAULT_RATE_LIMIT_INTERVAL
        print(f"[{self.__class__.__name__}] rate_limit_interval: {self.rate_limit_interval}s")
        self._rate_limit_lock = asyncio.Lock()
        self._last_call_time = 0.0

    async def _wait_for_rate_limit(self):
        """レートリミットを待機"""
        async with self._rate_limit_lock:
            now = time.time()
            wait_time = self.rate_limit_interval - (now - self._last_call_time)
            if wait_time > 0:
                await asyncio.sleep(wait_time)
            self._last_call_time = time.time()
            timestamp = datetime.now().strftime("%H:%M:%S")
            print(f"[{timestamp}] LLM API呼び出し {self.name} (interval: {self.rate_limit_interval}s)")

    @abstractmethod
    async def acall_standard(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """標準的なLLM呼び出し（Web検索なし）"""
        pass

    async def acall_with_search(self, prompt: str) -> ChatResponse:
        """
        Web検索付きのLLM呼び出し

        Returns:
            ChatResponse: 回答テキストと引用アノテーション

        Raises:
            ProviderError: Web検索に対応していない場合
        """
        raise ProviderError(f"{self.name} はWeb検索に対応していません")

    async def search_web(self, query: str, max_results: int = 5) -> list[dict]:
        """
        Web検索を実行してソースURLとタイトルを取得

        acall_with_search のアノテーションを検索結果として使う。
        """
        response = await self.acall_with_search(query)
        results: list[dict] = []
        seen_urls: set[str] = set()
        for ann in response.annotations:
            if ann.url and ann.url not in seen_urls:
                seen_urls.add(ann.url)
                results.append({"url": ann.url, "title": ann.title or ""})
        return results[:max_results]

    @property
    def supports_web_search(self) -> bool:
        """Web検索付き呼び出しに対応しているか"""
        return False

    @property
    def model(self) -> str:
        """モデル名"""
        return self.MODEL

    @property
    @abstractmethod
    def name(self) -> str:
        """クライアント名"""
        pass
