"""Merge per-source candidates into one ranked, deduplicated page.

Merging happens before pagination: slicing each source first would let a
strong hit from one source land on a later page than a weak hit from another.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from workplace_search.models.search import (
    SOURCE_PRIORITY,
    Candidate,
    RankedResult,
    SearchQuery,
    SourceKind,
)
from workplace_search.services.scorer import RelevanceScorer

SCORE_TOLERANCE = 1e-6

# Scorer-only metadata keys not returned to callers
_INTERNAL_METADATA = frozenset({"boost"})


@dataclass(frozen=True)
class ScoredCandidate:
    score: float
    candidate: Candidate


@dataclass
class MergeOutcome:
    results: list[RankedResult] = field(default_factory=list)
    total_matched: int = 0


def rank_key(item: ScoredCandidate) -> tuple[int, int, str, str]:
    """Score descending in 1e-6 buckets, then source priority, title and id.

    Scores are bucketed rather than compared pairwise against the tolerance so
    the key is a total order and ranking never depends on input order.
    """
    candidate = item.candidate
    return (
        -round(item.score / SCORE_TOLERANCE),
        SOURCE_PRIORITY[candidate.source_kind],
        candidate.title.casefold(),
        candidate.id,
    )


def rank(scored: Iterable[ScoredCandidate]) -> list[ScoredCandidate]:
    return sorted(scored, key=rank_key)


def dedupe(ranked: list[ScoredCandidate]) -> list[ScoredCandidate]:
    """Keep the first, i.e. best-ranked, occurrence of every id."""
    seen: set[str] = set()
    unique: list[ScoredCandidate] = []
    for item in ranked:
        if item.candidate.id in seen:
            continue
        seen.add(item.candidate.id)
        unique.append(item)
    return unique


def to_ranked_result(item: ScoredCandidate) -> RankedResult:
    candidate = item.candidate
    return RankedResult(
        id=candidate.id,
        source_kind=candidate.source_kind,
        source_id=candidate.source_id,
        title=candidate.title,
        excerpt=candidate.excerpt,
        score=item.score,
        content_type=candidate.content_type,
        url=candidate.url,
        metadata={
            k: v for k, v in candidate.metadata.items() if k not in _INTERNAL_METADATA
        },
    )


def merge(
    per_source: Mapping[SourceKind, Iterable[Candidate]],
    query: SearchQuery,
    scorer: RelevanceScorer,
) -> MergeOutcome:
    """Score, filter, dedupe, sort and paginate candidates from all sources."""
    scored = [
        ScoredCandidate(score=s, candidate=c)
        for candidates in per_source.values()
        for c in candidates
        if (s := scorer.score(c)) >= query.min_score
    ]

    ranked = dedupe(rank(scored))
    page = ranked[query.offset : query.offset + query.limit]
    return MergeOutcome(
        results=[to_ranked_result(item) for item in page],
        total_matched=len(ranked),
    )
