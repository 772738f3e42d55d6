"""Tests for LexiconMatcher."""

from src.config import DEFAULT_TERMS
from src.lexicon import LexiconMatcher


class TestLexiconMatcher:
    """Test whole-word, case-insensitive term counting."""

    def setup_method(self):
        """Set up test fixtures."""
        self.matcher = LexiconMatcher(["damn", "hell", "shit", "ass"])

    def test_counts_repeated_terms(self):
        """Test counting a term that appears several times."""
        assert self.matcher.count("This damn thing is damn good") == {"damn": 2}

    def test_case_insensitive(self):
        """Test that matching ignores case."""
        assert self.matcher.count("HELL yeah, Hell no, hell maybe") == {"hell": 3}

    def test_whole_words_only(self):
        """Test that terms inside longer words don't match."""
        assert self.matcher.count("a classic assessment of shell scripts") == {}
        assert self.matcher.count("bullshit") == {}

    def test_punctuation_is_a_word_boundary(self):
        """Test terms next to punctuation still match."""
        assert self.matcher.count("damn! (hell) shit, ass.") == {
            "damn": 1,
            "hell": 1,
            "shit": 1,
            "ass": 1,
        }

    def test_no_matches_returns_empty_mapping(self):
        """Test clean text yields no entries at all."""
        assert self.matcher.count("What a lovely day") == {}
        assert self.matcher.count("") == {}

    def test_never_reports_zero_counts(self):
        """Test that every reported count is positive."""
        counts = self.matcher.count("damn it all to hell and back, damn")
        assert counts
        assert all(count > 0 for count in counts.values())

    def test_terms_are_normalized(self):
        """Test that term lists are lowercased and deduplicated."""
        matcher = LexiconMatcher(["Damn", "damn", " hell ", ""])
        assert matcher.terms == ["damn", "hell"]
        assert matcher.count("DAMN") == {"damn": 1}

    def test_default_terms(self):
        """Test the default vocabulary distinguishes overlapping words."""
        matcher = LexiconMatcher()
        assert matcher.terms == DEFAULT_TERMS
        assert matcher.count("you asshole, what bullshit") == {"asshole": 1, "bullshit": 1}
