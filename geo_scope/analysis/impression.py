"""
Impression Calculator
=====================
引用抽出結果からソースごとのインプレッションスコア（0-100）を計算

- 頻度スコア: min(引用数 / 総文数 * 70, 70)
- 位置スコア: (1 - 平均位置 / (総文数 - 1)) * 30（総文数1以下なら30）
"""

from __future__ import annotations

from typing import Optional

from ..types import ExtractionResult, ImpressionResult, ImpressionScore
from .metrics import round_int


FREQUENCY_WEIGHT = 70
POSITION_WEIGHT = 30


def score_source(extraction: ExtractionResult, source_index: int) -> ImpressionScore:
    """
    1ソースのスコアを計算

    引用されていないソースはスコア0、平均位置は総文数（最悪値）とする。
    """
    total_sentences = extraction.total_sentences
    stats = extraction.source_stats.get(source_index)

    if stats is None or stats.citation_count == 0:
        return ImpressionScore(
            source_index=source_index,
            raw_score=0,
            normalized_score=0,
            citation_count=0,
            avg_position=total_sentences,
        )

    avg_position = sum(stats.positions) / len(stats.positions)
    frequency_score = min(stats.citation_count / total_sentences * FREQUENCY_WEIGHT, FREQUENCY_WEIGHT)
    if total_sentences > 1:
        position_score = (1 - avg_position / (total_sentences - 1)) * POSITION_WEIGHT
    else:
        position_score = POSITION_WEIGHT

    return ImpressionScore(
        source_index=source_index,
        raw_score=stats.citation_count,
        normalized_score=round_int(frequency_score + position_score),
        citation_count=stats.citation_count,
        avg_position=avg_position,
    )


def calculate_impression(
    extraction: ExtractionResult,
    total_sources: int,
    target_index: Optional[int] = None,
) -> ImpressionResult:
    """
    全ソースのインプレッションスコアと対象ソースの順位を計算

    Args:
        extraction: CitationExtractor の出力
        total_sources: ソース総数 N
        target_index: 評価対象ソースのインデックス（1始まり）

    Returns:
        ImpressionResult: 全スコア、対象スコア、対象の順位（1 = 最上位）
    """
    scores = [score_source(extraction, idx) for idx in range(1, total_sources + 1)]

    # sorted は安定ソートのため同点は元のインデックス順を保つ
    ranked = sorted(scores, key=lambda s: s.normalized_score, reverse=True)

    target_score = None
    target_rank = total_sources
    if target_index is not None:
        for rank, score in enumerate(ranked, start=1):
            if score.source_index == target_index:
                target_score = score
                target_rank = rank
                break

    return ImpressionResult(scores=scores, target_score=target_score, target_rank=target_rank)
