"""Unit tests for search query construction and result models."""

from __future__ import annotations

import pytest

from workplace_search.models.errors import InvalidQueryError, InvalidSourceError
from workplace_search.models.search import (
    DEFAULT_SOURCES,
    FederatedSearchResult,
    SearchQuery,
    SourceKind,
    TenantScope,
)
from tests.fakes import make_candidate


class TestSearchQueryBuild:
    def test_single_character_query_rejected(self) -> None:
        with pytest.raises(InvalidQueryError):
            SearchQuery.build("a")

    def test_two_character_query_accepted(self) -> None:
        query = SearchQuery.build("ab")
        assert query.text == "ab"

    def test_whitespace_is_trimmed_before_length_check(self) -> None:
        with pytest.raises(InvalidQueryError):
            SearchQuery.build("  a   ")
        assert SearchQuery.build("  hr  ").text == "hr"

    def test_missing_query_rejected(self) -> None:
        with pytest.raises(InvalidQueryError, match="at least 2"):
            SearchQuery.build(None)

    def test_default_sources(self) -> None:
        query = SearchQuery.build("policy")
        assert query.sources == DEFAULT_SOURCES
        assert query.sources == {
            SourceKind.ARTICLES,
            SourceKind.KNOWLEDGE_ITEMS,
            SourceKind.NEWS,
        }

    def test_unknown_source_rejected(self) -> None:
        with pytest.raises(InvalidSourceError) as exc_info:
            SearchQuery.build("policy", sources=["bogus_source"])
        assert exc_info.value.source == "bogus_source"

    def test_one_bad_source_rejects_whole_request(self) -> None:
        with pytest.raises(InvalidSourceError):
            SearchQuery.build("policy", sources=["articles", "wiki"])

    def test_known_sources_parsed(self) -> None:
        query = SearchQuery.build("policy", sources=["employees", "connectors"])
        assert query.sources == {SourceKind.EMPLOYEES, SourceKind.CONNECTORS}

    def test_limit_clamped_to_max(self) -> None:
        assert SearchQuery.build("policy", limit=500, max_limit=100).limit == 100

    @pytest.mark.parametrize(
        "kwargs",
        [{"limit": 0}, {"offset": -1}, {"min_score": 1.5}, {"min_score": -0.1}],
    )
    def test_numeric_bounds_rejected(self, kwargs: dict) -> None:
        with pytest.raises(InvalidQueryError):
            SearchQuery.build("policy", **kwargs)

    def test_empty_content_types_mean_no_filter(self) -> None:
        assert SearchQuery.build("policy", content_types=[]).content_types is None
        assert SearchQuery.build("policy", content_types=["pdf"]).content_types == {"pdf"}

    def test_query_is_immutable(self) -> None:
        query = SearchQuery.build("policy")
        with pytest.raises(Exception):
            query.limit = 5  # type: ignore[misc]

    def test_tenant_scope_carried(self) -> None:
        scope = TenantScope(organization_id="org-1", kb_space_ids=frozenset({"space-a"}))
        query = SearchQuery.build("policy", tenant_scope=scope)
        assert query.tenant_scope.organization_id == "org-1"
        assert "space-a" in query.tenant_scope.kb_space_ids


class TestModels:
    def test_candidate_id_is_composite(self) -> None:
        candidate = make_candidate(SourceKind.NEWS, "42", 0.5)
        assert candidate.id == "news:42"

    def test_result_serializes_camel_case(self) -> None:
        result = FederatedSearchResult(
            query="policy",
            total_matched=3,
            sources_queried=[SourceKind.ARTICLES],
            sources_failed=[SourceKind.NEWS],
            took_ms=12,
        )
        data = result.model_dump(mode="json", by_alias=True)
        assert data["totalMatched"] == 3
        assert data["sourcesFailed"] == ["news"]
        assert data["tookMs"] == 12
        assert data["hasMore"] is False
