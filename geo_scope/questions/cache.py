"""
Query Cache
===========
生成済みクエリのキャッシュ

キャッシュは呼び出し側から注入する。
- InMemoryCacheStore: プロセス内のみ（デフォルト）
- JsonFileCacheStore: 生成時に1回読み込み、flush() で1回書き出す
  （同じファイルへの同時書き込みは競合し得る）
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional, Protocol

from ..types import GeneratedQuery, QueryGenerationResult


class CacheStore(Protocol):
    """クエリキャッシュのインターフェース"""

    def get(self, key: str) -> Optional[QueryGenerationResult]:
        ...

    def set(self, key: str, value: QueryGenerationResult) -> None:
        ...


class InMemoryCacheStore:
    """辞書ベースのキャッシュ"""

    def __init__(self):
        self._data: dict[str, QueryGenerationResult] = {}

    def get(self, key: str) -> Optional[QueryGenerationResult]:
        return self._data.get(key)

    def set(self, key: str, value: QueryGenerationResult) -> None:
        self._data[key] = value

    def __len__(self) -> int:
        return len(self._data)


def _load_cache_file(cache_path: Path) -> dict[str, QueryGenerationResult]:
    """キャッシュファイルを読み込む"""
    if not cache_path.exists():
        return {}

    try:
        with open(cache_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return {
            key: QueryGenerationResult(
                topic=entry["topic"],
                queries=[
                    GeneratedQuery(query=q["query"], type=q.get("type", "general"))
                    for q in entry["queries"]
                ],
            )
            for key, entry in data.items()
        }
    except (json.JSONDecodeError, KeyError, TypeError) as e:
        print(f"警告: キャッシュファイルの読み込みに失敗: {e}")
        return {}


class JsonFileCacheStore(InMemoryCacheStore):
    """JSONファイルに永続化するキャッシュ"""

    def __init__(self, cache_file: str):
        super().__init__()
        self.cache_file = Path(cache_file)
        self._data = _load_cache_file(self.cache_file)
        self._dirty = False

    def set(self, key: str, value: QueryGenerationResult) -> None:
        super().set(key, value)
        self._dirty = True

    def flush(self) -> None:
        """キャッシュをファイルに保存"""
        if not self._dirty:
            return
        data = {
            key: {
                "topic": result.topic,
                "queries": [{"query": q.query, "type": q.type} for q in result.queries],
            }
            for key, result in self._data.items()
        }
        self.cache_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.cache_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        self._dirty = False
        print(f"クエリキャッシュを保存しました: {self.cache_file}")
