"""Tests for the nine-strategy content analyzer."""

from geo_scope.analysis.strategy import (
    GeoStrategy,
    analyze_cite_sources,
    analyze_geo_strategies,
    analyze_statistics,
    analyze_technical_terms,
)

PLAIN = "This is a simple text without any numbers or references at all here"

RICH = """# Generative Engine Optimization

GEO means optimizing content for AI answers. Research shows citations matter [1][2][3].

- Visibility rose 40% in 2024 [4]
- Traffic grew 3.5 times across 120 sites [5]
- Conversion improved 12% and retention 8%

According to Smith, "structure is everything". Experts said the trend will continue.

For example, https://example.com/report covers the latest data from 2023年."""


class TestStrategyScorers:
    """Tests for individual strategy scorers."""

    def test_no_statistics(self) -> None:
        """Test text without numbers scores low with suggestions."""
        score = analyze_statistics(PLAIN, "en")

        assert score.strategy == GeoStrategy.STATISTICS.value
        assert score.score <= 15
        assert score.suggestions

    def test_no_citations(self) -> None:
        """Test text without citations scores low with suggestions."""
        score = analyze_cite_sources(PLAIN, "en")

        assert score.score <= 20
        assert score.suggestions

    def test_many_citations(self) -> None:
        """Test five or more citation markers score high with no suggestions."""
        score = analyze_cite_sources(RICH, "en")

        assert score.score == 90
        assert score.suggestions == []

    def test_structure(self) -> None:
        """Test headings and lists raise the structure score."""
        assert analyze_technical_terms(RICH, "en").score == 90
        assert analyze_technical_terms(PLAIN, "en").score == 50

    def test_locale_labels(self) -> None:
        """Test labels follow the locale."""
        assert analyze_statistics(PLAIN, "zh").label == "统计数据"
        assert analyze_statistics(PLAIN, "en").label == "Statistics"


class TestAnalyzeGeoStrategies:
    """Tests for analyze_geo_strategies."""

    def test_nine_scores(self) -> None:
        """Test every strategy is scored in range."""
        result = analyze_geo_strategies(RICH, "en")

        assert [s.strategy for s in result.scores] == [g.value for g in GeoStrategy]
        assert all(0 <= s.score <= 100 for s in result.scores)

    def test_strengths_and_weaknesses(self) -> None:
        """Test top three strengths and weaknesses ordering."""
        result = analyze_geo_strategies(PLAIN, "en")

        assert len(result.top_strengths) == 3
        assert len(result.top_weaknesses) == 3
        assert result.top_strengths[0].score >= result.top_strengths[-1].score
        assert result.top_weaknesses[0].score <= result.top_weaknesses[-1].score

    def test_overall_is_rounded_mean(self) -> None:
        """Test overall score is the rounded mean."""
        result = analyze_geo_strategies(PLAIN, "en")
        mean = sum(s.score for s in result.scores) / 9

        assert abs(result.overall_score - mean) <= 0.5

    def test_rich_content_beats_plain(self) -> None:
        """Test richer content scores higher overall."""
        assert analyze_geo_strategies(RICH).overall_score > analyze_geo_strategies(PLAIN).overall_score
