"""
Citation Extractor
==================
AI回答テキストから [n] 形式の引用を抽出（GEO論文 Section 2.2.1）
"""

from __future__ import annotations

import re

from ..types import Citation, ExtractionResult, SourceStats


# 引用パターン: [1], [2], [1][2][3] など
CITATION_PATTERN = re.compile(r'\[(\d+)\]')

# 有効なソースインデックスの範囲
MIN_SOURCE_INDEX = 1
MAX_SOURCE_INDEX = 10

# 文末記号 + 直後の引用グループ
# 英語の文末記号は後続が空白か末尾の場合のみ（小数点・URLで分割しない）
SENTENCE_END = re.compile(r'([.!?]+(?:\[\d+\])*(?=\s|$)|[。！？]+(?:\[\d+\])*)')

CJK_CHAR = re.compile(r'[\u4e00-\u9fff]')
LATIN_WORD = re.compile(r'[a-zA-Z]{3,}')


def split_sentences(text: str) -> list[str]:
    """
    テキストを文に分割

    英語（. ! ?）と中国語・日本語（。！？）の文末記号に対応する。
    文末記号の直後に続く引用グループはその文に含める。
    """
    parts = SENTENCE_END.split(text.strip())
    sentences = []
    # re.split はキャプチャを含むため [本文, 区切り, 本文, 区切り, ..., 本文] の形
    for i in range(0, len(parts), 2):
        body = parts[i]
        end = parts[i + 1] if i + 1 < len(parts) else ""
        sentence = (body + end).strip()
        if sentence:
            sentences.append(sentence)
    return sentences


def extract_citation_indices(sentence: str) -> list[int]:
    """
    文から引用インデックスを抽出

    1..10 の範囲外は抽出ノイズとして捨て、文内の重複は除く（出現順を保持）。
    """
    indices: list[int] = []
    for m in CITATION_PATTERN.findall(sentence):
        idx = int(m)
        if MIN_SOURCE_INDEX <= idx <= MAX_SOURCE_INDEX and idx not in indices:
            indices.append(idx)
    return indices


def count_words(text: str) -> int:
    """
    二言語対応のワードカウント

    CJK文字は1文字 = 1語、英字は3文字以上の連続を1語として数える。
    """
    return len(CJK_CHAR.findall(text)) + len(LATIN_WORD.findall(text))


class CitationExtractor:
    """
    AI回答から引用を抽出するクラス

    - 文ごとに [n] マーカーを検出
    - 複数ソースを引用する文のワード数は均等に分配
    - 引用ごとに文の位置を記録
    """

    def extract(self, answer: str) -> ExtractionResult:
        """
        回答テキストから引用と統計を抽出

        Args:
            answer: [n] 形式の引用を含む回答テキスト

        Returns:
            ExtractionResult: 引用リスト、ソース別統計、総文数
        """
        sentences = split_sentences(answer)
        result = ExtractionResult(total_sentences=len(sentences))

        for pos, sentence in enumerate(sentences):
            indices = extract_citation_indices(sentence)
            if not indices:
                continue

            word_count = count_words(sentence)
            share = word_count / len(indices)  # 複数引用時は均等分割

            for idx in indices:
                result.citations.append(Citation(
                    source_index=idx,
                    sentence_position=pos,
                    sentence_text=sentence,
                    word_count=word_count,
                ))
                stats = result.source_stats.setdefault(idx, SourceStats())
                stats.citation_count += 1
                stats.total_word_count += share
                stats.positions.append(pos)

        return result


def extract_citations(answer: str) -> ExtractionResult:
    """CitationExtractor().extract() のショートカット"""
    return CitationExtractor().extract(answer)
