"""Tests for AI search citation parsing."""

from geo_scope.analysis.citation_parser import (
    collect_citations,
    deduplicate_citations,
    extract_domain,
    find_user_citation_position,
    is_domain_match,
    parse_citations_from_annotations,
    parse_citations_from_text,
)
from geo_scope.types import Annotation


class TestDomains:
    """Tests for domain helpers."""

    def test_extract_domain_strips_www(self) -> None:
        """Test www prefix and case are normalized."""
        assert extract_domain("https://WWW.Example.com/page?q=1") == "example.com"

    def test_extract_domain_invalid(self) -> None:
        """Test unparsable input gives an empty domain."""
        assert extract_domain("not a url") == ""

    def test_subdomain_match(self) -> None:
        """Test subdomains match their parent domain."""
        assert is_domain_match("blog.example.com", "example.com")
        assert is_domain_match("www.example.com", "example.com")

    def test_suffix_is_not_a_match(self) -> None:
        """Test that a shared suffix without a dot boundary does not match."""
        assert not is_domain_match("notexample.com", "example.com")

    def test_empty_user_domain(self) -> None:
        """Test an empty user domain never matches."""
        assert not is_domain_match("example.com", "")


class TestParseCitations:
    """Tests for annotation and inline URL parsing."""

    def test_annotations(self) -> None:
        """Test annotations become citations with titles."""
        citations = parse_citations_from_annotations(
            [Annotation(url="https://blog.example.com/a", title="A"), Annotation(url="")],
            "example.com",
        )

        assert len(citations) == 1
        assert citations[0].is_user_domain
        assert citations[0].title == "A"

    def test_inline_urls_trim_punctuation(self) -> None:
        """Test trailing punctuation is removed from inline URLs."""
        citations = parse_citations_from_text(
            "See https://other.org/report. Also (https://example.com/x).",
            "example.com",
        )

        assert [c.url for c in citations] == ["https://other.org/report", "https://example.com/x"]
        assert [c.is_user_domain for c in citations] == [False, True]

    def test_deduplicate_by_normalized_url(self) -> None:
        """Test dedupe ignores case and trailing slash, keeping first."""
        citations = parse_citations_from_text(
            "https://a.com/x https://A.com/x/ https://b.com", ""
        )

        assert [c.url for c in deduplicate_citations(citations)] == ["https://a.com/x", "https://b.com"]

    def test_collect_prefers_annotation_order(self) -> None:
        """Test annotations come before inline URLs and duplicates collapse."""
        citations = collect_citations(
            "Inline https://example.com/post and https://third.net",
            [Annotation(url="https://first.io"), Annotation(url="https://example.com/post/")],
            "example.com",
        )

        assert [c.domain for c in citations] == ["first.io", "example.com", "third.net"]
        assert find_user_citation_position(citations) == 2

    def test_no_user_citation(self) -> None:
        """Test position is None when the user domain is absent."""
        citations = collect_citations("https://x.com", [], "example.com")

        assert find_user_citation_position(citations) is None
