"""Relevance scoring: maps heterogeneous raw scores onto one [0, 1] scale."""

from __future__ import annotations

from workplace_search.models.search import Candidate


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def normalize_semantic(raw: float) -> float:
    """Rescale a cosine similarity from [-1, 1] to [0, 1]."""
    return _clamp((raw + 1.0) / 2.0)


class RelevanceScorer:
    """Produce comparable relevance scores for candidates from any source.

    Lexical scores are already in [0, 1] and pass through; semantic
    similarities are rescaled. A small per-candidate boost carried in
    ``metadata["boost"]`` (pinned news, popular knowledge items) is added
    afterwards and capped at ``max_boost``.
    """

    def __init__(self, max_boost: float = 0.05) -> None:
        self.max_boost = max_boost

    def score(self, candidate: Candidate) -> float:
        if candidate.match_kind == "semantic":
            base = normalize_semantic(candidate.raw_score)
        else:
            base = _clamp(candidate.raw_score)

        boost = candidate.metadata.get("boost") or 0.0
        try:
            boost = max(0.0, min(float(boost), self.max_boost))
        except (TypeError, ValueError):
            boost = 0.0
        return _clamp(base + boost)
