"""Unit tests for relevance score normalization."""

from __future__ import annotations

import pytest

from workplace_search.models.search import SourceKind
from workplace_search.services.scorer import RelevanceScorer, normalize_semantic
from tests.fakes import make_candidate


class TestNormalizeSemantic:
    @pytest.mark.parametrize(("raw", "expected"), [(-1.0, 0.0), (0.0, 0.5), (1.0, 1.0)])
    def test_cosine_range_maps_to_unit_interval(self, raw: float, expected: float) -> None:
        assert normalize_semantic(raw) == pytest.approx(expected)

    def test_out_of_range_values_are_clamped(self) -> None:
        assert normalize_semantic(1.2) == 1.0
        assert normalize_semantic(-3.0) == 0.0


class TestRelevanceScorer:
    def test_semantic_candidates_are_rescaled(self) -> None:
        scorer = RelevanceScorer()
        candidate = make_candidate(SourceKind.KNOWLEDGE_ITEMS, "k1", 0.0, match_kind="semantic")
        assert scorer.score(candidate) == pytest.approx(0.5)

    def test_lexical_candidates_pass_through(self) -> None:
        scorer = RelevanceScorer()
        assert scorer.score(make_candidate(SourceKind.ARTICLES, "a1", 0.37)) == pytest.approx(0.37)

    def test_lexical_scores_are_clamped(self) -> None:
        scorer = RelevanceScorer()
        assert scorer.score(make_candidate(SourceKind.ARTICLES, "a1", 1.4)) == 1.0

    def test_boost_is_added_and_capped(self) -> None:
        scorer = RelevanceScorer(max_boost=0.05)
        pinned = make_candidate(SourceKind.NEWS, "n1", 0.6, metadata={"boost": 0.5})
        assert scorer.score(pinned) == pytest.approx(0.65)

    def test_boost_never_exceeds_one(self) -> None:
        scorer = RelevanceScorer()
        candidate = make_candidate(SourceKind.NEWS, "n1", 0.99, metadata={"boost": 0.05})
        assert scorer.score(candidate) == 1.0

    def test_malformed_boost_is_ignored(self) -> None:
        scorer = RelevanceScorer()
        candidate = make_candidate(SourceKind.NEWS, "n1", 0.4, metadata={"boost": "lots"})
        assert scorer.score(candidate) == pytest.approx(0.4)
