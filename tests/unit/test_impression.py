"""Tests for the impression calculator."""

from geo_scope.analysis.citation import extract_citations
from geo_scope.analysis.impression import calculate_impression, score_source
from geo_scope.types import ExtractionResult, SourceStats


def _extraction(total_sentences: int, **positions: list[int]) -> ExtractionResult:
    stats = {
        int(key.lstrip("s")): SourceStats(citation_count=len(p), positions=list(p))
        for key, p in positions.items()
    }
    return ExtractionResult(citations=[], source_stats=stats, total_sentences=total_sentences)


class TestScoreSource:
    """Tests for score_source."""

    def test_uncited_source(self) -> None:
        """Test uncited source scores 0 with worst-case position."""
        score = score_source(_extraction(7), 5)

        assert score.normalized_score == 0
        assert score.citation_count == 0
        assert score.avg_position == 7

    def test_frequency_and_position(self) -> None:
        """Test ten sentences with citations at positions 0 and 2."""
        score = score_source(_extraction(10, s5=[0, 2]), 5)

        # 2/10*70 = 14, (1 - 1/9)*30 = 26.67
        assert score.normalized_score == 41
        assert score.avg_position == 1.0

    def test_single_sentence_gets_full_position_score(self) -> None:
        """Test one-sentence answers get the whole position weight."""
        score = score_source(_extraction(1, s1=[0]), 1)

        assert score.normalized_score == 100

    def test_frequency_capped(self) -> None:
        """Test frequency score never exceeds its weight."""
        score = score_source(_extraction(2, s1=[0, 0, 1, 1]), 1)

        assert score.normalized_score <= 100


class TestCalculateImpression:
    """Tests for calculate_impression."""

    def test_target_rank(self) -> None:
        """Test target rank among all sources."""
        extraction = extract_citations("First[1]. Second[5]. Third[5]. Fourth[2].")
        result = calculate_impression(extraction, 5, 5)

        assert len(result.scores) == 5
        assert result.target_score is not None
        assert result.target_score.source_index == 5
        assert result.target_rank == 1

    def test_ties_keep_source_order(self) -> None:
        """Test tied scores rank by original index."""
        result = calculate_impression(extract_citations("Nothing cited."), 5, 5)

        assert result.target_rank == 5
        assert result.target_score.normalized_score == 0

    def test_without_target(self) -> None:
        """Test missing target gives rank N."""
        result = calculate_impression(extract_citations("A[1]."), 5)

        assert result.target_score is None
        assert result.target_rank == 5
