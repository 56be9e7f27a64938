"""
Sentiment Aggregator
====================
ブランド言及の周辺テキストに対するセンチメントを1回のLLM呼び出しでまとめて判定

LLMの失敗・出力不正・判定漏れはすべて neutral（confidence 0）になる。例外は送出しない。
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Optional

from .errors import ParseError
from .llm.base import LLMClient
from .types import SentimentResult


DEFAULT_CONFIDENCE = 0.8
JSON_ARRAY = re.compile(r'\[[\s\S]*\]')


@dataclass
class SentimentInput:
    """判定対象（クエリのインデックスと言及周辺のテキスト）"""
    query_index: int
    context: str


def normalize_sentiment(raw: object) -> str:
    """ラベルを positive/neutral/negative に正規化"""
    label = str(raw or "").strip().lower()
    if label in ("positive", "negative"):
        return label
    return "neutral"


def build_sentiment_prompt(brand_name: str, contexts: list[SentimentInput], locale: str) -> str:
    entries = "\n\n".join(f"[{c.query_index}] {c.context}" for c in contexts)

    if locale == "zh":
        return f"""分析以下文本片段中对品牌"{brand_name}"的情感倾向。

{entries}

对每个片段判断情感：positive（正面推荐）、neutral（客观提及）、negative（负面评价）。

严格按以下 JSON 格式返回，不要添加其他内容：
[{{"index":0,"sentiment":"positive|neutral|negative","confidence":0.9}}]"""

    return f"""Analyze the sentiment toward the brand "{brand_name}" in each text snippet below.

{entries}

For each snippet, determine sentiment: positive (recommendation), neutral (objective mention), negative (criticism).

Return strictly in this JSON format, no extra text:
[{{"index":0,"sentiment":"positive|neutral|negative","confidence":0.9}}]"""


def parse_sentiment_response(response: str, contexts: list[SentimentInput]) -> dict[int, SentimentResult]:
    """
    LLMの出力をクエリインデックスごとの判定結果に変換

    Raises:
        ParseError: JSON配列が見つからない、またはパースできない場合
    """
    match = JSON_ARRAY.search(response.strip())
    if not match:
        raise ParseError("センチメントのJSON配列が見つかりません")
    try:
        parsed = json.loads(match.group())
    except json.JSONDecodeError as e:
        raise ParseError(f"センチメントのJSONパースに失敗: {e}") from e
    if not isinstance(parsed, list):
        raise ParseError("センチメントがJSON配列ではありません")

    context_by_index = {c.query_index: c.context for c in contexts}
    results: dict[int, SentimentResult] = {}
    for item in parsed:
        if not isinstance(item, dict) or not isinstance(item.get("index"), int):
            continue
        index = item["index"]
        if index not in context_by_index:
            continue
        confidence = item.get("confidence")
        results[index] = SentimentResult(
            sentiment=normalize_sentiment(item.get("sentiment")),
            confidence=float(confidence) if isinstance(confidence, (int, float)) else DEFAULT_CONFIDENCE,
            context=context_by_index[index],
        )
    return results


async def analyze_sentiment_batch(
    llm: Optional[LLMClient],
    brand_name: str,
    contexts: list[SentimentInput],
    locale: str = "zh",
) -> dict[int, SentimentResult]:
    """
    全コンテキストのセンチメントを判定

    Args:
        llm: 判定に使用するLLMクライアント（None なら全件 neutral）
        brand_name: ブランドの正式名
        contexts: 判定対象のリスト
        locale: "zh" または "en"

    Returns:
        dict[int, SentimentResult]: クエリインデックス → 判定結果（入力の全件を含む）
    """
    results: dict[int, SentimentResult] = {}
    if not contexts:
        return results

    if llm is None:
        print("[Sentiment] 警告: LLM未設定のため neutral として扱います")
    else:
        try:
            response = await llm.acall_standard(build_sentiment_prompt(brand_name, contexts, locale))
            results = parse_sentiment_response(response, contexts)
        except Exception as e:
            print(f"[Sentiment] 警告: 判定に失敗、neutral として扱います: {e}")

    for c in contexts:
        if c.query_index not in results:
            results[c.query_index] = SentimentResult(sentiment="neutral", confidence=0.0, context=c.context)
    return results
