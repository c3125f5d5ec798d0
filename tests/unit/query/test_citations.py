"""Tests for citation display formatting."""

from answerforge.query.citations import (
    ELLIPSIS,
    MAX_SNIPPET_DISPLAY_CHARS,
    format_citation,
    format_citations_compact,
)
from answerforge.query.models import Citation


class TestFormatCitation:
    """Tests for format_citation()."""

    def test_basic_format(self):
        citation = Citation("policy.md", "c-1", "TLS 1.2 is required.")

        assert format_citation(citation) == 'policy.md#c-1:"TLS 1.2 is required."'

    def test_whitespace_collapsed(self):
        citation = Citation("policy.md", "c-1", "# Access\nMFA   is enforced.")

        assert format_citation(citation) == 'policy.md#c-1:"# Access MFA is enforced."'

    def test_long_snippet_truncated(self):
        """Snippets over the display limit are cut and end with an ellipsis."""
        citation = Citation("policy.md", "c-1", "word " * 100)

        rendered = format_citation(citation)
        snippet = rendered.split(":", 1)[1].strip('"')

        assert snippet.endswith(ELLIPSIS)
        assert len(snippet) <= MAX_SNIPPET_DISPLAY_CHARS + len(ELLIPSIS)
        assert not snippet[: -len(ELLIPSIS)].endswith(" ")


class TestFormatCitationsCompact:
    """Tests for format_citations_compact()."""

    def test_joined_with_separator(self):
        citations = [Citation("a.md", "1", "One."), Citation("b.md", "2", "Two.")]

        assert format_citations_compact(citations) == 'a.md#1:"One." | b.md#2:"Two."'

    def test_stops_before_limit(self):
        """Citations that would overflow max_chars are left out whole."""
        citations = [Citation("a.md", "1", "One."), Citation("b.md", "2", "Two.")]

        assert format_citations_compact(citations, max_chars=20) == 'a.md#1:"One."'

    def test_empty(self):
        assert format_citations_compact([]) == ""
