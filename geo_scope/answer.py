"""
Answer Generator
================
ソースを注入したプロンプトで [n] 引用付きの回答を生成

GEO論文のプロンプト（generative_le.py）と同じく、
ソースは "### Source N:" 形式で渡し、各文の直後に引用を付けさせる。
"""

from __future__ import annotations

from typing import Optional

from .llm.base import LLMClient
from .types import CompetingSource


SYSTEM_PROMPTS = {
    "zh": """你是一个专业的信息综合助手。根据提供的 {n} 个搜索结果，为用户问题撰写准确、全面的回答。

严格要求：
1. 【必须】只能使用提供的 {n} 个搜索结果（Source 1-{n}）作为信息来源
2. 【必须】每个句子后面紧跟引用标记，格式为 {markers}
3. 【必须】尽可能引用所有 {n} 个来源，不要只引用其中 1-2 个
4. 【必须】引用多个来源时使用 [1][2][3] 格式，不要用 [1, 2, 3]
5. 【禁止】引用不存在的来源（如 [{n_plus_1}]、[{n_plus_2}] 等）
6. 【禁止】编造信息或使用搜索结果之外的知识
7. 回答要专业、客观、全面，综合多个来源的观点

回答格式要求：
- 使用结构化表述："第一，...；第二，...；第三，..."
- 每个要点后都要有引用标记
- 先总述概念，再分点阐述细节
- 使用专业术语，避免口语化表达

示例格式：
"Schema标记也被称为结构化数据标记，它是一种结构化数据的语言[2][3]。它的核心作用主要包括：第一，帮助搜索引擎及AI更好地解析网页内容[3][5]；第二，添加该标记后可在搜索结果中生成增强的描述[1][4]；第三，它还能助力建立E-E-A-T信号[5]。\"""",
    "en": """You are a professional information synthesis assistant. Write an accurate and comprehensive answer based on the {n} provided search results.

STRICT REQUIREMENTS:
1. [MUST] Use ONLY the {n} provided search results (Source 1-{n}) as information sources
2. [MUST] Every sentence must be immediately followed by citation marks: {markers}
3. [MUST] Try to cite ALL {n} sources, don't just cite 1-2 of them
4. [MUST] Use [1][2][3] format for multiple citations, NOT [1, 2, 3]
5. [FORBIDDEN] Do NOT cite non-existent sources (like [{n_plus_1}], [{n_plus_2}], etc.)
6. [FORBIDDEN] Do NOT make up information or use knowledge outside the search results
7. Answer should be professional, objective, and comprehensive, synthesizing multiple viewpoints

FORMAT REQUIREMENTS:
- Use structured presentation: "First, ...; Second, ...; Third, ..."
- Include citations after each point
- Start with overview, then elaborate with details
- Use professional terminology, avoid colloquial language

Example format:
"Schema markup is also called structured data markup, a language for structured data[2][3]. Its core functions include: First, helping search engines and AI better parse webpage content[3][5]; Second, generating enhanced descriptions in search results after adding this markup[1][4]; Third, assisting in establishing E-E-A-T signals[5].\"""",
}

USER_PROMPTS = {
    "zh": """问题：{query}

以下是 {n} 个搜索结果（Source 1-{n}），请综合所有来源回答问题：

{sources}

请基于以上 {n} 个来源撰写回答，尽可能引用所有来源。""",
    "en": """Question: {query}

Here are {n} search results (Source 1-{n}), please synthesize all sources to answer:

{sources}

Please write an answer based on all {n} sources above, citing as many sources as possible.""",
}


def format_sources(sources: list[CompetingSource]) -> str:
    """
    ソースをプロンプト用にフォーマット

    Args:
        sources: ソースリスト

    Returns:
        str: "### Source N:\\n{content}" を空行で連結した文字列
    """
    return "\n\n".join(f"### Source {s.index}:\n{s.content}" for s in sources)


def build_system_prompt(num_sources: int, locale: str) -> str:
    template = SYSTEM_PROMPTS.get(locale, SYSTEM_PROMPTS["en"])
    separator = "、" if locale == "zh" else ", "
    markers = separator.join(f"[{i}]" for i in range(1, num_sources + 1))
    return template.format(
        n=num_sources,
        markers=markers,
        n_plus_1=num_sources + 1,
        n_plus_2=num_sources + 2,
    )


def build_user_prompt(query: str, sources: list[CompetingSource], locale: str) -> str:
    template = USER_PROMPTS.get(locale, USER_PROMPTS["en"])
    return template.format(query=query, n=len(sources), sources=format_sources(sources))


class AnswerGenerator:
    """ソースから引用付き回答を生成するクラス"""

    def __init__(self, llm: Optional[LLMClient]):
        self.llm = llm

    async def generate(self, query: str, sources: list[CompetingSource], locale: str = "zh") -> str:
        """
        引用付きの回答を生成

        Returns:
            str: 回答テキスト（LLM未設定なら空文字列）

        Raises:
            ProviderError: LLM呼び出しに失敗した場合
        """
        if self.llm is None:
            print("[Answer] 警告: LLM未設定のため回答を生成できません")
            return ""

        prompt = build_user_prompt(query, sources, locale)
        print(f"[Answer] 回答生成中: プロンプトサイズ = {len(prompt)}")
        return await self.llm.acall_standard(
            prompt,
            system=build_system_prompt(len(sources), locale),
            temperature=0.5,
            max_tokens=1500,
        )
