"""
Analysis Module
===============
引用抽出、インプレッション計算、GEO戦略評価、言及検出

Usage:
    from geo_scope.analysis import extract_citations, calculate_impression

    extraction = extract_citations(answer)
    impression = calculate_impression(extraction, total_sources=5, target_index=5)
"""

from .citation import (
    CitationExtractor,
    count_words,
    extract_citation_indices,
    extract_citations,
    split_sentences,
)
from .citation_parser import (
    collect_citations,
    deduplicate_citations,
    extract_domain,
    is_domain_match,
    parse_citations_from_annotations,
    parse_citations_from_text,
)
from .impression import calculate_impression
from .mentions import (
    detect_brand_mention,
    detect_competitor_mentions,
    detect_position_in_list,
    extract_mention_context,
)
from .metrics import calc_content_characteristics, calc_content_stats, round_half_up
from .strategy import GeoStrategy, analyze_geo_strategies

__all__ = [
    "CitationExtractor",
    "extract_citations",
    "split_sentences",
    "extract_citation_indices",
    "count_words",
    "calculate_impression",
    "extract_domain",
    "is_domain_match",
    "parse_citations_from_annotations",
    "parse_citations_from_text",
    "deduplicate_citations",
    "collect_citations",
    "detect_brand_mention",
    "detect_competitor_mentions",
    "detect_position_in_list",
    "extract_mention_context",
    "calc_content_stats",
    "calc_content_characteristics",
    "round_half_up",
    "GeoStrategy",
    "analyze_geo_strategies",
]
