"""
Metrics Calculation
===================
コンテンツ統計・特徴量と丸め処理
"""

from __future__ import annotations

import math
import re

from ..types import ContentCharacteristics, ContentStats
from .citation import count_words


# =============================================================================
# Rounding
# =============================================================================

def round_half_up(value: float, decimals: int = 0) -> float:
    """
    四捨五入（0.5 は切り上げ）

    Python の round() は偶数丸めのため、スコアの再現性を保つためにこちらを使う。
    """
    factor = 10 ** decimals
    # 浮動小数の誤差（例: 0.285 * 100 = 28.499999...）を吸収
    scaled = round(value * factor, 9)
    return math.floor(scaled + 0.5) / factor


def round_int(value: float) -> int:
    """四捨五入して整数に変換"""
    return int(round_half_up(value))


# =============================================================================
# Content Statistics
# =============================================================================

SENTENCE_TERMINATORS = re.compile(r'[.!?。！？]+')
PARAGRAPH_BREAK = re.compile(r'\n\s*\n')


def count_sentences(text: str) -> int:
    """文末記号の数で文数を数える（最低1）"""
    matches = SENTENCE_TERMINATORS.findall(text)
    return len(matches) if matches else 1


def count_paragraphs(text: str) -> int:
    """空行区切りで段落数を数える（最低1）"""
    paragraphs = [p for p in PARAGRAPH_BREAK.split(text) if p.strip()]
    return max(len(paragraphs), 1)


def calc_content_stats(content: str) -> ContentStats:
    """コンテンツの基本統計を計算"""
    return ContentStats(
        char_count=len(content),
        word_count=count_words(content),
        sentence_count=count_sentences(content),
        paragraph_count=count_paragraphs(content),
    )


# =============================================================================
# Content Characteristics
# =============================================================================

STATS_PATTERN = re.compile(r'\d+%|\d+\.\d+|\d{4}年|\d+ (percent|million|billion)', re.IGNORECASE)
CITATION_HINT_PATTERN = re.compile(
    r'\[\d+\]|（.*?研究.*?）|\(.*?et al\..*?\)|according to|研究表明|数据显示', re.IGNORECASE
)
QUOTE_PATTERN = re.compile(r'["“「『].*?["”」』]')
STRUCTURE_PATTERN = re.compile(r'^#+\s|^\d+\.\s|^[-*]\s|<h[1-6]>', re.MULTILINE)
UNIQUE_TOKEN = re.compile(r'[\u4e00-\u9fff]|[a-z]+')


def calc_content_characteristics(content: str) -> ContentCharacteristics:
    """
    提案生成用にコンテンツの特徴を抽出

    Args:
        content: 分析対象テキスト

    Returns:
        ContentCharacteristics: 統計・引用・引用句・構造の有無と文長・語彙多様性
    """
    sentences = [s.strip() for s in SENTENCE_TERMINATORS.split(content) if s.strip()]
    avg_sentence_length = (
        sum(len(s) for s in sentences) / len(sentences) if sentences else 0.0
    )

    tokens = UNIQUE_TOKEN.findall(content.lower())
    unique_words_ratio = len(set(tokens)) / len(tokens) if tokens else 0.0

    return ContentCharacteristics(
        has_statistics=bool(STATS_PATTERN.search(content)),
        has_citations=bool(CITATION_HINT_PATTERN.search(content)),
        has_quotes=bool(QUOTE_PATTERN.search(content)),
        has_structure=bool(STRUCTURE_PATTERN.search(content)),
        avg_sentence_length=avg_sentence_length,
        unique_words_ratio=unique_words_ratio,
    )
