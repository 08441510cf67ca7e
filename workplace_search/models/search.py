"""Search request and result models for federated search.

Candidates are transient adapter output; ranked results and the federated
result are built once per request and discarded after the response is sent.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from workplace_search.models.errors import InvalidQueryError, InvalidSourceError

MIN_QUERY_LENGTH = 2


class SourceKind(str, Enum):
    """One queryable origin of searchable content."""

    INTERNAL_KB = "internal_kb"
    ARTICLES = "articles"
    CONNECTORS = "connectors"
    KNOWLEDGE_ITEMS = "knowledge_items"
    NEWS = "news"
    EMPLOYEES = "employees"


# Lower rank wins a score tie.
SOURCE_PRIORITY: dict[SourceKind, int] = {
    SourceKind.INTERNAL_KB: 0,
    SourceKind.KNOWLEDGE_ITEMS: 0,
    SourceKind.ARTICLES: 1,
    SourceKind.NEWS: 2,
    SourceKind.EMPLOYEES: 3,
    SourceKind.CONNECTORS: 4,
}

DEFAULT_SOURCES: frozenset[SourceKind] = frozenset(
    {SourceKind.ARTICLES, SourceKind.KNOWLEDGE_ITEMS, SourceKind.NEWS}
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TenantScope(_CamelModel):
    """Caller identity used to scope every store lookup."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    user_id: str | None = None
    organization_id: str | None = None
    kb_space_ids: frozenset[str] = Field(default_factory=frozenset)


def parse_sources(raw: Iterable[str] | None) -> frozenset[SourceKind]:
    """Resolve requested source names, defaulting when none are given.

    Raises:
        InvalidSourceError: If any name is not a known source kind.
    """
    if raw is None:
        return DEFAULT_SOURCES

    kinds: set[SourceKind] = set()
    for name in raw:
        cleaned = name.strip() if isinstance(name, str) else name
        try:
            kinds.add(SourceKind(cleaned))
        except ValueError:
            raise InvalidSourceError(str(name)) from None
    return frozenset(kinds) if kinds else DEFAULT_SOURCES


class SearchQuery(_CamelModel):
    """A validated, immutable federated search request."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    text: str = Field(..., min_length=MIN_QUERY_LENGTH)
    sources: frozenset[SourceKind] = DEFAULT_SOURCES
    content_types: frozenset[str] | None = None
    limit: int = Field(20, ge=1)
    offset: int = Field(0, ge=0)
    min_score: float = Field(0.1, ge=0.0, le=1.0)
    semantic_search: bool = True
    include_connectors: bool = True
    highlight: bool = True
    tenant_scope: TenantScope = Field(default_factory=TenantScope)

    @classmethod
    def build(
        cls,
        text: str | None,
        *,
        sources: Iterable[str] | None = None,
        content_types: Iterable[str] | None = None,
        limit: int = 20,
        offset: int = 0,
        min_score: float = 0.1,
        semantic_search: bool = True,
        include_connectors: bool = True,
        highlight: bool = True,
        tenant_scope: TenantScope | None = None,
        max_limit: int = 100,
    ) -> SearchQuery:
        """Validate raw request values and construct a query.

        ``limit`` is clamped to ``max_limit``.

        Raises:
            InvalidQueryError: Text too short or numeric bounds violated.
            InvalidSourceError: Unknown source requested.
        """
        stripped = (text or "").strip()
        if len(stripped) < MIN_QUERY_LENGTH:
            raise InvalidQueryError(
                f"Query must be at least {MIN_QUERY_LENGTH} characters"
            )
        if limit < 1:
            raise InvalidQueryError("limit must be a positive integer")
        if offset < 0:
            raise InvalidQueryError("offset must not be negative")
        if not 0.0 <= min_score <= 1.0:
            raise InvalidQueryError("minScore must be between 0 and 1")

        kinds = parse_sources(sources)
        types = frozenset(t for t in content_types if t) if content_types else None

        return cls(
            text=stripped,
            sources=kinds,
            content_types=types or None,
            limit=min(limit, max_limit),
            offset=offset,
            min_score=min_score,
            semantic_search=semantic_search,
            include_connectors=include_connectors,
            highlight=highlight,
            tenant_scope=tenant_scope or TenantScope(),
        )


class Candidate(BaseModel):
    """Unranked match returned by a single source adapter."""

    source_id: str
    source_kind: SourceKind
    title: str
    excerpt: str | None = None
    content_type: str = "text"
    raw_score: float
    match_kind: Literal["lexical", "semantic"] = "lexical"
    native_rank: int | None = None
    url: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def id(self) -> str:
        return result_id(self.source_kind, self.source_id)


def result_id(kind: SourceKind, source_id: str) -> str:
    """Composite id that is unique across sources within one response."""
    return f"{kind.value}:{source_id}"


class Highlight(_CamelModel):
    title: str
    content: str | None = None


class RankedResult(_CamelModel):
    """A scored, deduplicated result ready to be returned to the caller."""

    id: str
    source_kind: SourceKind
    source_id: str
    title: str
    excerpt: str | None = None
    score: float = Field(..., ge=0.0, le=1.0)
    content_type: str
    url: str | None = None
    highlight: Highlight | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class SourceStats(_CamelModel):
    """Per-source accounting for one request."""

    source: SourceKind
    count: int = 0
    duration_ms: int = 0
    status: Literal["ok", "failed", "timeout"] = "ok"


class FederatedSearchResult(_CamelModel):
    """Unified response of a federated search."""

    query: str
    results: list[RankedResult] = Field(default_factory=list)
    total_matched: int = 0
    sources_queried: list[SourceKind] = Field(default_factory=list)
    sources_failed: list[SourceKind] = Field(default_factory=list)
    sources: list[SourceStats] = Field(default_factory=list)
    semantic_applied: bool = False
    has_more: bool = False
    took_ms: int = 0
