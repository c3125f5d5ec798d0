"""Tests for anchor-token extraction and boundary-aware matching."""

from answerforge.retrieval.anchors import (
    count_token_hits,
    earliest_token_span,
    extract_anchor_tokens,
    has_token,
)


class TestExtractAnchorTokens:
    """Tests for extract_anchor_tokens()."""

    def test_families_are_applied_in_order(self):
        """Protocol versions and acronyms come before plain words."""
        tokens = extract_anchor_tokens("Do you enforce TLS 1.2 for all APIs?")

        assert tokens == ["tls 1.2", "tls", "1.2", "enforce", "apis"]

    def test_stopwords_are_dropped(self):
        """Question-framing words never anchor a snippet."""
        tokens = extract_anchor_tokens("Please describe your encryption")

        assert tokens == ["encryption"]

    def test_shouted_words_are_not_acronyms(self):
        """All-caps filler words are excluded from the acronym family."""
        tokens = extract_anchor_tokens("ARE YOU SOC2 compliant")

        assert tokens == ["soc2", "compliant"]

    def test_limit_caps_output(self):
        """No more than limit tokens are returned."""
        question = "firewall logging monitoring alerting patching scanning"

        assert len(extract_anchor_tokens(question, limit=2)) == 2

    def test_empty_question(self):
        """An empty question has no anchors."""
        assert extract_anchor_tokens("") == []

    def test_tokens_are_distinct(self):
        """Repeated words appear once."""
        tokens = extract_anchor_tokens("backup backup BACKUP")

        assert tokens == ["backup"]


class TestTokenMatching:
    """Tests for boundary-aware token search."""

    def test_inner_whitespace_is_optional(self):
        """'tls 1.2' matches 'tls1.2'."""
        assert has_token("tls1.2 only", "tls 1.2")

    def test_match_requires_word_boundaries(self):
        """A token inside a longer word does not match."""
        assert not has_token("atlas backups", "tls")

    def test_count_token_hits_counts_distinct_tokens(self):
        """Each token counts once however often it occurs."""
        text = "mfa is enforced; mfa is audited"

        assert count_token_hits(text, ["mfa", "enforced", "sso"]) == 2

    def test_earliest_span_wins(self):
        """The earliest occurrence of any token is returned."""
        assert earliest_token_span("we use mfa and sso", ["sso", "mfa"]) == (7, 10)

    def test_no_span_without_hits(self):
        """None when no token occurs."""
        assert earliest_token_span("nothing here", ["mfa"]) is None
