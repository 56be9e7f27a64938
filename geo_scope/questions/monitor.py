"""
Monitor Question Generator
==========================
ブランドモニター用の質問生成

- generate_buyer_intent_queries: 業界キーワードから購買意図クエリ（最大10件）
- generate_questions_for_keyword: コアキーワードから6意図の質問と月間検索量（最大8件）

どちらもLLM失敗時はテンプレートにフォールバックする。
"""

from __future__ import annotations

import json
import re
from typing import Any, Optional

from ..analysis.metrics import round_int
from ..errors import ParseError, ProviderError
from ..llm.base import LLMClient
from ..types import GeneratedQuestion, MonitorQuery


QUERY_TYPES = ["recommendation", "comparison", "ranking", "review"]
INTENT_TYPES = ["recommendation", "comparison", "inquiry", "evaluation", "tutorial", "pricing"]

MAX_BUYER_INTENT_QUERIES = 10
MAX_KEYWORD_QUESTIONS = 8

JSON_ARRAY = re.compile(r'\[[\s\S]*\]')


def _parse_json_array(response: str) -> list[Any]:
    """レスポンスからJSON配列を取り出す（コードブロックで囲まれていてもよい）"""
    json_match = JSON_ARRAY.search(response.strip())
    if not json_match:
        raise ParseError("JSON配列が見つかりません")
    try:
        parsed = json.loads(json_match.group())
    except json.JSONDecodeError as e:
        raise ParseError(f"JSONパースに失敗: {e}") from e
    if not isinstance(parsed, list):
        raise ParseError("JSON配列ではありません")
    return parsed


# =============================================================================
# Buyer-intent queries
# =============================================================================

def build_buyer_intent_prompt(keywords: list[str], locale: str) -> str:
    if locale == "zh":
        return f"""你是一个搜索查询生成专家。根据以下行业关键词，生成 8 个真实用户会在 AI 搜索引擎（如 ChatGPT、Perplexity）中输入的买家意图查询。

行业关键词：{'、'.join(keywords)}

要求：
- 每种类型各 2 个：推荐类、对比类、排名类、评价类
- 推荐类：如"最好的XX有哪些"、"推荐几个XX工具"
- 对比类：如"XX和YY哪个好"、"XX工具对比"
- 排名类：如"2025年XX排行榜"、"XX工具TOP10"
- 评价类：如"XX怎么样"、"XX好用吗"
- 查询要自然，像真实用户会搜索的

严格按以下 JSON 格式返回，不要添加其他内容：
[{{"query":"查询内容","type":"recommendation|comparison|ranking|review"}}]"""

    return f"""You are a search query generation expert. Based on the following industry keywords, generate 8 realistic buyer-intent queries that users would type into AI search engines (ChatGPT, Perplexity, etc.).

Industry keywords: {', '.join(keywords)}

Requirements:
- 2 of each type: recommendation, comparison, ranking, review
- Recommendation: e.g. "best XX tools", "top XX recommendations"
- Comparison: e.g. "XX vs YY", "XX tool comparison"
- Ranking: e.g. "XX tools ranking 2025", "top 10 XX"
- Review: e.g. "is XX good", "XX review"
- Queries should sound natural

Return strictly in this JSON format, no extra text:
[{{"query":"query text","type":"recommendation|comparison|ranking|review"}}]"""


def fallback_buyer_intent_queries(keywords: list[str], locale: str) -> list[MonitorQuery]:
    """テンプレートから8件の購買意図クエリを生成"""
    kw = keywords[0] if keywords and keywords[0] else "tool"
    kw2 = keywords[1] if len(keywords) > 1 and keywords[1] else kw

    if locale == "zh":
        templates = [
            (f"最好的{kw}有哪些", "recommendation"),
            (f"推荐几个{kw}工具", "recommendation"),
            (f"{kw}和{kw2}哪个好", "comparison"),
            (f"{kw}工具对比", "comparison"),
            (f"2025年{kw}排行榜", "ranking"),
            (f"{kw}工具TOP10", "ranking"),
            (f"{kw}怎么样", "review"),
            (f"{kw}好用吗", "review"),
        ]
    else:
        templates = [
            (f"best {kw} tools", "recommendation"),
            (f"top {kw} recommendations", "recommendation"),
            (f"{kw} vs {kw2}", "comparison"),
            (f"{kw} tool comparison", "comparison"),
            (f"{kw} tools ranking 2025", "ranking"),
            (f"top 10 {kw}", "ranking"),
            (f"is {kw} good", "review"),
            (f"{kw} review", "review"),
        ]
    return [MonitorQuery(query=q, type=t) for q, t in templates]


async def generate_buyer_intent_queries(
    llm: Optional[LLMClient],
    industry_keywords: list[str],
    locale: str = "zh",
) -> list[MonitorQuery]:
    """
    業界キーワードから購買意図クエリを生成

    Args:
        llm: 生成に使用するLLMクライアント（None ならテンプレート）
        industry_keywords: 業界キーワード
        locale: "zh" または "en"

    Returns:
        list[MonitorQuery]: 最大10件（type は recommendation/comparison/ranking/review）
    """
    if llm is None:
        print("[MonitorQueries] 警告: LLM未設定のためテンプレートを使用")
        return fallback_buyer_intent_queries(industry_keywords, locale)

    try:
        response = await llm.acall_standard(build_buyer_intent_prompt(industry_keywords, locale))
        parsed = _parse_json_array(response)
    except (ProviderError, ParseError) as e:
        print(f"[MonitorQueries] 警告: LLM生成に失敗、テンプレートを使用: {e}")
        return fallback_buyer_intent_queries(industry_keywords, locale)

    queries = [
        MonitorQuery(query=str(q["query"]), type=q["type"])
        for q in parsed
        if isinstance(q, dict) and q.get("query") and q.get("type") in QUERY_TYPES
    ][:MAX_BUYER_INTENT_QUERIES]

    if not queries:
        print("[MonitorQueries] 警告: 有効なクエリがないためテンプレートを使用")
        return fallback_buyer_intent_queries(industry_keywords, locale)
    return queries


# =============================================================================
# Questions for a core keyword
# =============================================================================

def build_keyword_prompt(brand_name: str, core_keyword: str, locale: str) -> str:
    if locale == "zh":
        return f"""你是一个搜索查询生成专家。根据核心关键词"{core_keyword}"，生成 6 个真实用户会在 AI 搜索引擎中输入的通用行业查询问题。

要求：
- 6 种意图类型各 1 个：
  - recommendation（推荐/建议）：如"哪个牌子的{core_keyword}效果好"
  - comparison（对比/评测）：如"{core_keyword}排行榜"
  - inquiry（咨询/查询）：如"{core_keyword}怎么选"
  - evaluation（评价/口碑）：如"{core_keyword}好不好用"、"{core_keyword}口碑怎么样"
  - tutorial（教程/指南）：如"{core_keyword}怎么用"、"{core_keyword}使用方法"
  - pricing（价格/选购）：如"{core_keyword}多少钱"、"性价比高的{core_keyword}"
- 问题必须是通用的品类/行业问题，禁止包含任何品牌名称（如"{brand_name}"）
- 目的是监控品牌在 AI 回答这些通用问题时是否被提及
- 估算每个问题的月搜索量（整数）
- 查询要自然，像真实用户会搜索的

严格按以下 JSON 格式返回，不要添加其他内容：
[{{"question":"问题内容","intentType":"recommendation|comparison|inquiry|evaluation|tutorial|pricing","searchVolume":1000}}]"""

    return f"""You are a search query generation expert. Based on the core keyword "{core_keyword}", generate 6 realistic generic industry queries that users would type into AI search engines.

Requirements:
- 1 of each intent type:
  - recommendation: e.g. "best {core_keyword} brands"
  - comparison: e.g. "{core_keyword} ranking top 10"
  - inquiry: e.g. "how to choose {core_keyword}"
  - evaluation: e.g. "is {core_keyword} worth it", "{core_keyword} reviews"
  - tutorial: e.g. "how to use {core_keyword}", "{core_keyword} guide"
  - pricing: e.g. "how much does {core_keyword} cost", "affordable {core_keyword}"
- Questions MUST be generic category/industry questions, NEVER include any brand names (e.g. "{brand_name}")
- Purpose: monitor whether the brand gets mentioned when AI answers these generic questions
- Estimate monthly search volume (integer) for each query
- Queries should sound natural

Return strictly in this JSON format, no extra text:
[{{"question":"query text","intentType":"recommendation|comparison|inquiry|evaluation|tutorial|pricing","searchVolume":1000}}]"""


def fallback_keyword_questions(keyword: str, locale: str) -> list[GeneratedQuestion]:
    """テンプレートから6意図の質問を生成"""
    if locale == "zh":
        templates = [
            (f"哪个牌子的{keyword}效果好", "recommendation", 1200),
            (f"{keyword}排行榜前十名", "comparison", 3600),
            (f"{keyword}怎么选", "inquiry", 900),
            (f"{keyword}口碑怎么样", "evaluation", 800),
            (f"{keyword}怎么用", "tutorial", 700),
            (f"{keyword}多少钱", "pricing", 1500),
        ]
    else:
        templates = [
            (f"best {keyword} brands", "recommendation", 1200),
            (f"{keyword} ranking top 10", "comparison", 3600),
            (f"how to choose {keyword}", "inquiry", 900),
            (f"{keyword} reviews", "evaluation", 800),
            (f"how to use {keyword}", "tutorial", 700),
            (f"how much does {keyword} cost", "pricing", 1500),
        ]
    return [
        GeneratedQuestion(question=q, intent_type=t, search_volume=v)
        for q, t, v in templates
    ]


def _search_volume(value: Any) -> int:
    try:
        return max(0, round_int(float(value or 0)))
    except (TypeError, ValueError):
        return 0


async def generate_questions_for_keyword(
    llm: Optional[LLMClient],
    brand_name: str,
    core_keyword: str,
    locale: str = "zh",
) -> list[GeneratedQuestion]:
    """
    コアキーワードから監視用の質問を生成

    質問はブランド名を含まない一般的な業界質問。

    Returns:
        list[GeneratedQuestion]: 最大8件
    """
    if llm is None:
        print("[MonitorQuestions] 警告: LLM未設定のためテンプレートを使用")
        return fallback_keyword_questions(core_keyword, locale)

    try:
        response = await llm.acall_standard(build_keyword_prompt(brand_name, core_keyword, locale))
        parsed = _parse_json_array(response)
    except (ProviderError, ParseError) as e:
        print(f"[MonitorQuestions] 警告: LLM生成に失敗、テンプレートを使用: {e}")
        return fallback_keyword_questions(core_keyword, locale)

    questions = [
        GeneratedQuestion(
            question=str(q["question"]),
            intent_type=q["intentType"],
            search_volume=_search_volume(q.get("searchVolume")),
        )
        for q in parsed
        if isinstance(q, dict) and q.get("question") and q.get("intentType") in INTENT_TYPES
    ][:MAX_KEYWORD_QUESTIONS]

    if not questions:
        print("[MonitorQuestions] 警告: 有効な質問がないためテンプレートを使用")
        return fallback_keyword_questions(core_keyword, locale)
    return questions
