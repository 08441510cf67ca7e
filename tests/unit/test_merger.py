"""Unit tests for merging, dedup, ordering and pagination."""

from __future__ import annotations

import itertools
import random

from workplace_search.models.search import SearchQuery, SourceKind
from workplace_search.services.merger import merge
from workplace_search.services.scorer import RelevanceScorer
from tests.fakes import make_candidate


def _query(**kwargs) -> SearchQuery:
    kwargs.setdefault("min_score", 0.0)
    return SearchQuery.build("policy", **kwargs)


class TestMerge:
    def test_results_sorted_by_score_descending(self) -> None:
        per_source = {
            SourceKind.ARTICLES: [
                make_candidate(SourceKind.ARTICLES, "a1", 0.4),
                make_candidate(SourceKind.ARTICLES, "a2", 0.9),
            ],
            SourceKind.NEWS: [make_candidate(SourceKind.NEWS, "n1", 0.7)],
        }
        outcome = merge(per_source, _query(), RelevanceScorer())

        assert [r.id for r in outcome.results] == ["articles:a2", "news:n1", "articles:a1"]
        scores = [r.score for r in outcome.results]
        assert scores == sorted(scores, reverse=True)

    def test_min_score_filters_per_candidate(self) -> None:
        per_source = {
            SourceKind.NEWS: [
                make_candidate(SourceKind.NEWS, "strong", 0.8),
                make_candidate(SourceKind.NEWS, "weak", 0.2),
            ],
        }
        outcome = merge(per_source, _query(min_score=0.5), RelevanceScorer())

        assert [r.source_id for r in outcome.results] == ["strong"]
        assert outcome.total_matched == 1
        assert all(r.score >= 0.5 for r in outcome.results)

    def test_duplicate_id_keeps_higher_score(self) -> None:
        stale_mirror = make_candidate(
            SourceKind.KNOWLEDGE_ITEMS, "doc-1", 0.3, title="Stale copy"
        )
        internal = make_candidate(SourceKind.KNOWLEDGE_ITEMS, "doc-1", 0.9, title="Fresh copy")
        per_source = {
            SourceKind.CONNECTORS: [stale_mirror],
            SourceKind.KNOWLEDGE_ITEMS: [internal],
        }
        outcome = merge(per_source, _query(), RelevanceScorer())

        assert len(outcome.results) == 1
        assert outcome.results[0].title == "Fresh copy"
        assert outcome.results[0].score == 0.9
        assert outcome.total_matched == 1

    def test_tie_broken_by_source_priority_then_title(self) -> None:
        per_source = {
            SourceKind.CONNECTORS: [make_candidate(SourceKind.CONNECTORS, "c1", 0.5, title="A")],
            SourceKind.EMPLOYEES: [make_candidate(SourceKind.EMPLOYEES, "e1", 0.5, title="A")],
            SourceKind.NEWS: [
                make_candidate(SourceKind.NEWS, "n2", 0.5, title="beta"),
                make_candidate(SourceKind.NEWS, "n1", 0.5 + 1e-9, title="Alpha"),
            ],
            SourceKind.ARTICLES: [make_candidate(SourceKind.ARTICLES, "a1", 0.5, title="Z")],
            SourceKind.KNOWLEDGE_ITEMS: [
                make_candidate(SourceKind.KNOWLEDGE_ITEMS, "k1", 0.5, title="Z")
            ],
        }
        outcome = merge(per_source, _query(), RelevanceScorer())

        assert [r.id for r in outcome.results] == [
            "knowledge_items:k1",
            "articles:a1",
            "news:n1",
            "news:n2",
            "employees:e1",
            "connectors:c1",
        ]

    def test_input_order_does_not_change_ranking(self) -> None:
        candidates = [
            make_candidate(kind, f"{kind.value}-{i}", score)
            for i, (kind, score) in enumerate(
                [
                    (SourceKind.ARTICLES, 0.5),
                    (SourceKind.NEWS, 0.5),
                    (SourceKind.EMPLOYEES, 0.8),
                    (SourceKind.ARTICLES, 0.3),
                    (SourceKind.CONNECTORS, 0.8),
                ]
            )
        ]
        baseline = merge({SourceKind.ARTICLES: candidates}, _query(), RelevanceScorer())

        rng = random.Random(7)
        for _ in range(5):
            shuffled = candidates[:]
            rng.shuffle(shuffled)
            outcome = merge({SourceKind.ARTICLES: shuffled}, _query(), RelevanceScorer())
            assert [r.id for r in outcome.results] == [r.id for r in baseline.results]

    def test_near_ties_rank_identically_in_every_input_order(self) -> None:
        knowledge = make_candidate(SourceKind.KNOWLEDGE_ITEMS, "k1", 0.5)
        article = make_candidate(SourceKind.ARTICLES, "a1", 0.5000008)
        news = make_candidate(SourceKind.NEWS, "n1", 0.5000016)

        orders = set()
        for permutation in itertools.permutations([knowledge, article, news]):
            outcome = merge({SourceKind.ARTICLES: list(permutation)}, _query(), RelevanceScorer())
            orders.add(tuple(r.id for r in outcome.results))

        assert orders == {("news:n1", "articles:a1", "knowledge_items:k1")}

    def test_pagination_after_global_merge(self) -> None:
        per_source = {
            SourceKind.ARTICLES: [
                make_candidate(SourceKind.ARTICLES, f"a{i}", 0.9 - i * 0.1) for i in range(6)
            ],
            SourceKind.NEWS: [
                make_candidate(SourceKind.NEWS, f"n{i}", 0.85 - i * 0.1) for i in range(6)
            ],
        }
        scorer = RelevanceScorer()
        first = merge(per_source, _query(limit=5, offset=0), scorer)
        second = merge(per_source, _query(limit=5, offset=5), scorer)
        both = merge(per_source, _query(limit=10, offset=0), scorer)

        assert [r.id for r in first.results + second.results] == [r.id for r in both.results]
        assert first.total_matched == second.total_matched == 12

    def test_offset_past_end_returns_empty_page(self) -> None:
        per_source = {SourceKind.NEWS: [make_candidate(SourceKind.NEWS, "n1", 0.6)]}
        outcome = merge(per_source, _query(offset=10), RelevanceScorer())

        assert outcome.results == []
        assert outcome.total_matched == 1

    def test_boost_metadata_not_exposed(self) -> None:
        per_source = {
            SourceKind.NEWS: [
                make_candidate(SourceKind.NEWS, "n1", 0.6, metadata={"boost": 0.05, "pinned": True})
            ]
        }
        outcome = merge(per_source, _query(), RelevanceScorer())
        assert outcome.results[0].metadata == {"pinned": True}
