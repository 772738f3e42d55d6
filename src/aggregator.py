"""Aggregate flagged term counts across a subject's posts."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from .lexicon import LexiconMatcher

TOP_RANKED_LIMIT = 3


@dataclass
class ContentUnit:
    """A single post pulled from a subject's history."""

    uri: str
    text: str
    created_at: datetime
    is_repost: bool = False


@dataclass
class RankedTerm:
    """A flagged term with its total count and 1-based rank."""

    term: str
    count: int
    rank: int


@dataclass
class ContentAggregate:
    """Result of scanning a sequence of content units."""

    total_count: int = 0
    term_counts: dict[str, int] = field(default_factory=dict)
    top_ranked: list[RankedTerm] = field(default_factory=list)
    unit_count: int = 0


def rank_terms(term_counts: dict[str, int], limit: int = TOP_RANKED_LIMIT) -> list[RankedTerm]:
    """Rank terms by descending count.

    ``sorted`` is stable, so ties keep the mapping's insertion order, which is
    the order terms were first encountered.
    """
    ordered = sorted(term_counts.items(), key=lambda item: item[1], reverse=True)
    return [
        RankedTerm(term=term, count=count, rank=index + 1)
        for index, (term, count) in enumerate(ordered[:limit])
    ]


def aggregate(units: Iterable[ContentUnit], matcher: LexiconMatcher) -> ContentAggregate:
    """Reduce content units into totals, per-term counts and a top-3 ranking."""
    term_counts: dict[str, int] = {}
    unit_count = 0

    for unit in units:
        unit_count += 1
        for term, count in matcher.count(unit.text).items():
            term_counts[term] = term_counts.get(term, 0) + count

    return ContentAggregate(
        total_count=sum(term_counts.values()),
        term_counts=term_counts,
        top_ranked=rank_terms(term_counts),
        unit_count=unit_count,
    )
