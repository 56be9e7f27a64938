"""
Strategy Analyzer
=================
GEO論文の9つの最適化戦略に基づくコンテンツのルールベース評価

Reference: Aggarwal et al., "GEO: Generative Engine Optimization", KDD 2024

各戦略はパターンの出現数をしきい値で区切って 0-100 のスコアと提案を返す。
LLMは使わない純粋関数。
"""

from __future__ import annotations

import re
from enum import Enum

from ..types import StrategyAnalysisResult, StrategyScore
from .metrics import round_int


class GeoStrategy(str, Enum):
    """GEO 9戦略"""
    CITE_SOURCES = "cite_sources"
    STATISTICS = "statistics"
    QUOTATIONS = "quotations"
    FLUENCY = "fluency"
    AUTHORITATIVE = "authoritative"
    TECHNICAL_TERMS = "technical_terms"
    CREDIBILITY = "credibility"
    UNIQUE_WORDS = "unique_words"
    EASY_TO_UNDERSTAND = "easy_to_understand"


# =============================================================================
# i18n
# =============================================================================

STRATEGY_I18N: dict[GeoStrategy, dict] = {
    GeoStrategy.CITE_SOURCES: {
        "label": {"zh": "引用来源", "en": "Cite Sources"},
        "description": {
            "zh": "通过引用权威来源提升内容可信度",
            "en": "Enhance content credibility by citing authoritative sources",
        },
        "suggestions": {
            "add_more": {
                "zh": "增加更多引用来源,建议至少 5 处引用",
                "en": "Add more citations, recommend at least 5 references",
            },
            "few": {
                "zh": "引用来源较少,建议添加权威数据来源和研究引用",
                "en": "Few citations found, add authoritative data sources and research references",
            },
            "none": {
                "zh": "缺少引用来源!添加学术研究、行业报告或权威网站的引用",
                "en": "No citations found! Add academic research, industry reports, or authoritative website references",
            },
        },
    },
    GeoStrategy.STATISTICS: {
        "label": {"zh": "统计数据", "en": "Statistics"},
        "description": {
            "zh": "使用数据和统计信息增强说服力",
            "en": "Use data and statistics to enhance persuasiveness",
        },
        "suggestions": {
            "add_more": {
                "zh": "增加更多具体数据和统计信息,使内容更有说服力",
                "en": "Add more specific data and statistics to make content more persuasive",
            },
            "few": {
                "zh": "统计数据较少,建议添加市场数据、用户数据或研究数据",
                "en": "Few statistics found, add market data, user data, or research statistics",
            },
            "none": {
                "zh": "缺少统计数据!添加具体数字、百分比、增长率等数据",
                "en": "No statistics found! Add specific numbers, percentages, growth rates, etc.",
            },
        },
    },
    GeoStrategy.QUOTATIONS: {
        "label": {"zh": "专家观点", "en": "Quotations"},
        "description": {
            "zh": "引用专家观点提升内容权威性",
            "en": "Quote experts to enhance content authority",
        },
        "suggestions": {
            "add_more": {
                "zh": "增加更多专家观点或行业领袖的引用",
                "en": "Add more expert opinions or industry leader quotes",
            },
            "none": {
                "zh": "添加专家观点、权威人士的引用或行业报告的结论",
                "en": "Add expert opinions, authoritative quotes, or industry report conclusions",
            },
        },
    },
    GeoStrategy.FLUENCY: {
        "label": {"zh": "可读性", "en": "Fluency"},
        "description": {
            "zh": "提升文本流畅性和可读性",
            "en": "Improve text fluency and readability",
        },
        "suggestions": {
            "long_sentences": {
                "zh": "句子过长,建议拆分为更短的句子提升可读性",
                "en": "Sentences too long, split into shorter sentences for better readability",
            },
            "no_structure": {
                "zh": "增加段落分隔,使内容结构更清晰",
                "en": "Add paragraph breaks for clearer content structure",
            },
        },
    },
    GeoStrategy.AUTHORITATIVE: {
        "label": {"zh": "权威性", "en": "Authoritative"},
        "description": {
            "zh": "建立权威性,直接回答问题",
            "en": "Establish authority, answer questions directly",
        },
        "suggestions": {
            "improve": {
                "zh": "在开头直接回答核心问题,使用更权威的表述",
                "en": "Answer core question directly at the beginning, use more authoritative expressions",
            },
        },
    },
    GeoStrategy.TECHNICAL_TERMS: {
        "label": {"zh": "结构化", "en": "Technical Terms"},
        "description": {
            "zh": "使用结构化格式提升内容组织性",
            "en": "Use structured format to improve content organization",
        },
        "suggestions": {
            "improve": {
                "zh": "使用标题、列表、代码块等结构化元素组织内容",
                "en": "Use headings, lists, code blocks to structure content",
            },
        },
    },
    GeoStrategy.CREDIBILITY: {
        "label": {"zh": "可信度", "en": "Credibility"},
        "description": {
            "zh": "通过时效性和来源提升可信度",
            "en": "Enhance credibility through timeliness and sources",
        },
        "suggestions": {
            "improve": {
                "zh": "添加链接、时间标记和最新信息来提升可信度",
                "en": "Add links, timestamps, and recent information to enhance credibility",
            },
        },
    },
    GeoStrategy.UNIQUE_WORDS: {
        "label": {"zh": "内容新鲜度", "en": "Unique Words"},
        "description": {
            "zh": "保持内容新鲜度和词汇多样性",
            "en": "Maintain content freshness and vocabulary diversity",
        },
        "suggestions": {
            "improve": {
                "zh": "增加词汇多样性,避免重复使用相同词汇",
                "en": "Increase vocabulary diversity, avoid repeating same words",
            },
        },
    },
    GeoStrategy.EASY_TO_UNDERSTAND: {
        "label": {"zh": "易理解性", "en": "Easy to Understand"},
        "description": {
            "zh": "简化语言,提升内容易理解性",
            "en": "Simplify language, improve content comprehensibility",
        },
        "suggestions": {
            "simplify": {
                "zh": "简化句子结构,使用更简单的表达方式",
                "en": "Simplify sentence structure, use simpler expressions",
            },
            "add_examples": {
                "zh": "添加例子和解释,帮助读者理解复杂概念",
                "en": "Add examples and explanations to help readers understand complex concepts",
            },
        },
    },
}


def _t(text: dict[str, str], locale: str) -> str:
    """ロケールに対応するテキストを取得（未対応ロケールは英語）"""
    return text.get(locale, text["en"])


def _suggestion(strategy: GeoStrategy, key: str, locale: str) -> str:
    return _t(STRATEGY_I18N[strategy]["suggestions"][key], locale)


def _make_score(strategy: GeoStrategy, score: int, suggestions: list[str], locale: str) -> StrategyScore:
    i18n = STRATEGY_I18N[strategy]
    return StrategyScore(
        strategy=strategy.value,
        score=score,
        label=_t(i18n["label"], locale),
        description=_t(i18n["description"], locale),
        suggestions=suggestions,
    )


def _count_matches(content: str, patterns: list[re.Pattern]) -> int:
    return sum(len(p.findall(content)) for p in patterns)


# =============================================================================
# Patterns
# =============================================================================

CITE_PATTERNS = [
    re.compile(r'\[\d+\]'),                    # [1], [2]
    re.compile(r'\([A-Z][a-z]+,?\s+\d{4}\)'),  # (Smith, 2023)
    re.compile(r'根据.*研究'),
    re.compile(r'数据显示'),
    re.compile(r'来源[:：]'),
]

STATS_PATTERNS = [
    re.compile(r'\d+%'),
    re.compile(r'\d+\s*亿'),
    re.compile(r'\d+\s*万'),
    re.compile(r'\d+\s*(?:倍|次|个|人|家)'),
    re.compile(r'增长\s*\d+'),
    re.compile(r'\d+\.\d+'),
]

QUOTE_PATTERNS = [
    re.compile(r'["“”].*?["“”]|「.*?」'),
    re.compile(r'.*?表示|.*?认为|.*?指出'),
    re.compile(r'根据.*?(?:专家|教授|CEO|创始人)'),
]

DIRECT_ANSWER_PATTERN = re.compile(r'^(.*?是|.*?指|.*?表示|.*?means|.*?refers to)', re.MULTILINE)
AUTHORITY_PATTERNS = [
    re.compile(r'研究表明|数据显示|事实上|实际上'),
    re.compile(r'research shows|studies indicate|in fact', re.IGNORECASE),
]

HEADING_PATTERNS = [
    re.compile(r'^#{1,6}\s+', re.MULTILINE),
    re.compile(r'^[一二三四五六七八九十]+[、.]', re.MULTILINE),
]
LIST_PATTERNS = [
    re.compile(r'^[-*•]\s+', re.MULTILINE),
    re.compile(r'^\d+[.)]\s+', re.MULTILINE),
]
CODE_BLOCK_PATTERN = re.compile(r'```[\s\S]*?```')

CREDIBILITY_PATTERNS = [
    re.compile(r'https?://\S+'),
    re.compile(r'\d{4}年'),
    re.compile(r'最新|最近|近期'),
]

WORD_PATTERN = re.compile(r'[\u4e00-\u9fa5]+|[a-zA-Z]+')
EXPLANATION_PATTERN = re.compile(
    r'例如|比如|也就是说|换句话说|for example|in other words', re.IGNORECASE
)

SENTENCE_SPLIT = re.compile(r'[。！？.!?]+')
PARAGRAPH_SPLIT = re.compile(r'\n\s*\n')


def _avg_sentence_length(content: str) -> float:
    sentences = [s for s in SENTENCE_SPLIT.split(content) if s.strip()]
    return len(content) / max(len(sentences), 1)


# =============================================================================
# Scorers
# =============================================================================

def analyze_cite_sources(content: str, locale: str) -> StrategyScore:
    """戦略1: 引用来源（引用・参考文献・データ出典）"""
    count = _count_matches(content, CITE_PATTERNS)
    s = GeoStrategy.CITE_SOURCES
    if count >= 5:
        return _make_score(s, 90, [], locale)
    if count >= 3:
        return _make_score(s, 70, [_suggestion(s, "add_more", locale)], locale)
    if count >= 1:
        return _make_score(s, 50, [_suggestion(s, "few", locale)], locale)
    return _make_score(s, 20, [_suggestion(s, "none", locale)], locale)


def analyze_statistics(content: str, locale: str) -> StrategyScore:
    """戦略2: 統計データ（数値・百分率）"""
    count = _count_matches(content, STATS_PATTERNS)
    s = GeoStrategy.STATISTICS
    if count >= 8:
        return _make_score(s, 95, [], locale)
    if count >= 5:
        return _make_score(s, 80, [], locale)
    if count >= 3:
        return _make_score(s, 60, [_suggestion(s, "add_more", locale)], locale)
    if count >= 1:
        return _make_score(s, 40, [_suggestion(s, "few", locale)], locale)
    return _make_score(s, 15, [_suggestion(s, "none", locale)], locale)


def analyze_quotations(content: str, locale: str) -> StrategyScore:
    """戦略3: 専門家の見解"""
    count = _count_matches(content, QUOTE_PATTERNS)
    s = GeoStrategy.QUOTATIONS
    if count >= 3:
        return _make_score(s, 85, [], locale)
    if count >= 2:
        return _make_score(s, 70, [], locale)
    if count >= 1:
        return _make_score(s, 50, [_suggestion(s, "add_more", locale)], locale)
    return _make_score(s, 25, [_suggestion(s, "none", locale)], locale)


def analyze_fluency(content: str, locale: str) -> StrategyScore:
    """戦略4: 可読性（文の長さと段落構造）"""
    s = GeoStrategy.FLUENCY
    score = 70
    suggestions = []

    if _avg_sentence_length(content) > 100:
        score -= 20
        suggestions.append(_suggestion(s, "long_sentences", locale))

    paragraphs = [p for p in PARAGRAPH_SPLIT.split(content) if p.strip()]
    if len(paragraphs) < 3:
        score -= 15
        suggestions.append(_suggestion(s, "no_structure", locale))

    return _make_score(s, max(score, 30), suggestions, locale)


def analyze_authoritative(content: str, locale: str) -> StrategyScore:
    """戦略5: 権威性（冒頭での直接回答と断定表現）"""
    s = GeoStrategy.AUTHORITATIVE
    score = 60

    if DIRECT_ANSWER_PATTERN.search(content):
        score += 20

    auth_count = _count_matches(content, AUTHORITY_PATTERNS)
    if auth_count >= 3:
        score += 15
    elif auth_count >= 1:
        score += 5

    suggestions = [_suggestion(s, "improve", locale)] if score < 70 else []
    return _make_score(s, min(score, 95), suggestions, locale)


def analyze_technical_terms(content: str, locale: str) -> StrategyScore:
    """戦略6: 構造化（見出し・リスト・コードブロック）"""
    s = GeoStrategy.TECHNICAL_TERMS
    score = 50

    if any(p.search(content) for p in HEADING_PATTERNS):
        score += 20
    if any(p.search(content) for p in LIST_PATTERNS):
        score += 20
    if CODE_BLOCK_PATTERN.search(content):
        score += 10

    suggestions = [_suggestion(s, "improve", locale)] if score < 70 else []
    return _make_score(s, min(score, 95), suggestions, locale)


def analyze_credibility(content: str, locale: str) -> StrategyScore:
    """戦略7: 信頼性（リンク・年号・最新性）"""
    s = GeoStrategy.CREDIBILITY
    count = _count_matches(content, CREDIBILITY_PATTERNS)

    score = 50
    if count >= 5:
        score = 85
    elif count >= 3:
        score = 70
    elif count >= 1:
        score = 55

    suggestions = [_suggestion(s, "improve", locale)] if score < 70 else []
    return _make_score(s, score, suggestions, locale)


def analyze_unique_words(content: str, locale: str) -> StrategyScore:
    """戦略8: 語彙の多様性"""
    s = GeoStrategy.UNIQUE_WORDS
    words = WORD_PATTERN.findall(content)
    diversity = len(set(words)) / len(words) if words else 0.0

    if diversity > 0.6:
        return _make_score(s, 90, [], locale)
    if diversity > 0.5:
        return _make_score(s, 75, [], locale)
    if diversity > 0.4:
        return _make_score(s, 60, [], locale)
    return _make_score(s, 40, [_suggestion(s, "improve", locale)], locale)


def analyze_easy_to_understand(content: str, locale: str) -> StrategyScore:
    """戦略9: わかりやすさ（文の長さと例示）"""
    s = GeoStrategy.EASY_TO_UNDERSTAND
    score = 70
    suggestions = []

    if _avg_sentence_length(content) > 80:
        score -= 15
        suggestions.append(_suggestion(s, "simplify", locale))

    if not EXPLANATION_PATTERN.search(content):
        score -= 10
        suggestions.append(_suggestion(s, "add_examples", locale))

    return _make_score(s, max(score, 40), suggestions, locale)


SCORERS = [
    analyze_cite_sources,
    analyze_statistics,
    analyze_quotations,
    analyze_fluency,
    analyze_authoritative,
    analyze_technical_terms,
    analyze_credibility,
    analyze_unique_words,
    analyze_easy_to_understand,
]


def analyze_geo_strategies(content: str, locale: str = "zh") -> StrategyAnalysisResult:
    """
    9戦略すべてでコンテンツを評価

    Args:
        content: 評価対象テキスト
        locale: "zh" または "en"（その他は英語）

    Returns:
        StrategyAnalysisResult: 各スコア、総合スコア、上位3つの強み・弱み
    """
    scores = [scorer(content, locale) for scorer in SCORERS]
    overall = round_int(sum(s.score for s in scores) / len(scores))

    ranked = sorted(scores, key=lambda s: s.score, reverse=True)
    return StrategyAnalysisResult(
        scores=scores,
        overall_score=overall,
        top_strengths=ranked[:3],
        top_weaknesses=list(reversed(ranked[-3:])),
    )
