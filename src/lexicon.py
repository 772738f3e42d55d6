"""Whole-word flagged term matching."""

import re
from typing import Iterable

from .config import DEFAULT_TERMS


class LexiconMatcher:
    """Count case-insensitive, whole-word occurrences of flagged terms."""

    def __init__(self, terms: Iterable[str] = DEFAULT_TERMS):
        # dict.fromkeys keeps the first occurrence order while dropping duplicates
        self.terms = list(dict.fromkeys(term.strip().lower() for term in terms if term.strip()))
        self._patterns = [
            (term, re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE)) for term in self.terms
        ]

    def count(self, text: str) -> dict[str, int]:
        """
        Count flagged terms in a single text body.

        Args:
            text: Text to scan.

        Returns:
            Mapping of term to number of matches. Terms with no matches are
            left out entirely.

        Examples:
            >>> LexiconMatcher(["ass"]).count("a classic ASS move")
            {'ass': 1}
        """
        if not text:
            return {}

        counts: dict[str, int] = {}
        for term, pattern in self._patterns:
            hits = len(pattern.findall(text))
            if hits:
                counts[term] = hits
        return counts
