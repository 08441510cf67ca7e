"""Pydantic data models for the workplace federated search service."""

from workplace_search.models.errors import (
    ErrorCode,
    ErrorResponse,
    InvalidQueryError,
    InvalidSourceError,
    SearchError,
    SearchTimeoutError,
    SourceUnavailableError,
)
from workplace_search.models.search import (
    Candidate,
    FederatedSearchResult,
    Highlight,
    RankedResult,
    SearchQuery,
    SourceKind,
    SourceStats,
    TenantScope,
)

__all__ = [
    "Candidate",
    "ErrorCode",
    "ErrorResponse",
    "FederatedSearchResult",
    "Highlight",
    "InvalidQueryError",
    "InvalidSourceError",
    "RankedResult",
    "SearchError",
    "SearchQuery",
    "SearchTimeoutError",
    "SourceKind",
    "SourceStats",
    "SourceUnavailableError",
    "TenantScope",
]
