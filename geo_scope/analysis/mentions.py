"""
Brand Mention Detector
======================
回答テキスト中のブランド・競合の言及とリスト内の順位を検出（文字列のみを扱う純粋関数）
"""

from __future__ import annotations

import re

from ..types import BrandMention, CompetitorBrand, CompetitorMention


CONTEXT_WINDOW = 100

# 番号付きリスト: "1. Foo" / "1、Foo" / "1) Foo"
NUMBERED_LINE = re.compile(r'^\s*(\d+)[.、)]\s*(.+)$', re.MULTILINE)
# 箇条書き: "- Foo" / "• Foo" / "* Foo"
BULLETED_LINE = re.compile(r'^\s*[-•*]\s*(.+)$', re.MULTILINE)


def detect_position_in_list(answer: str, brand_names: list[str]) -> int:
    """
    リスト構造内でのブランドの順位（1始まり）を検出

    番号付きリストを優先し、その行の番号を順位とする。
    なければ箇条書きの出現順。どちらにも含まれなければ 0。
    """
    lower_names = [n.lower() for n in brand_names if n]

    for match in NUMBERED_LINE.finditer(answer):
        text = match.group(2).lower()
        if any(n in text for n in lower_names):
            return int(match.group(1))

    for idx, match in enumerate(BULLETED_LINE.finditer(answer), start=1):
        text = match.group(1).lower()
        if any(n in text for n in lower_names):
            return idx

    return 0


def extract_mention_context(answer: str, brand_names: list[str], chars: int = CONTEXT_WINDOW) -> str:
    """最初の言及の前後 chars 文字を抜き出す"""
    lower = answer.lower()
    for name in brand_names:
        if not name:
            continue
        idx = lower.find(name.lower())
        if idx != -1:
            start = max(0, idx - chars)
            end = min(len(answer), idx + len(name) + chars)
            return answer[start:end].strip()
    return ""


def detect_brand_mention(answer: str, brand_names: list[str]) -> BrandMention:
    """
    ブランド名（表記ゆれを含む）の言及を検出

    Args:
        answer: AIの回答テキスト
        brand_names: ブランド名のリスト（大文字小文字は区別しない）

    Returns:
        BrandMention: 検出有無、リスト内順位、周辺テキスト、一致した名前
    """
    lower = answer.lower()
    for name in brand_names:
        if name and name.lower() in lower:
            return BrandMention(
                found=True,
                position=detect_position_in_list(answer, [name]),
                context=extract_mention_context(answer, [name]),
                matched_name=name,
            )
    return BrandMention(found=False, position=0, context="", matched_name="")


def detect_competitor_mentions(
    answer: str,
    competitors: list[CompetitorBrand],
) -> list[CompetitorMention]:
    """競合ごとに名前・別名で言及を検出し、順位を返す"""
    lower = answer.lower()
    results = []
    for comp in competitors:
        all_names = [comp.name, *comp.aliases]
        if any(n and n.lower() in lower for n in all_names):
            results.append(CompetitorMention(
                name=comp.name,
                position=detect_position_in_list(answer, all_names),
            ))
    return results
