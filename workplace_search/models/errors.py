"""Error taxonomy and error response models for the search API."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Machine-readable error codes returned in the ``error`` field."""

    INVALID_REQUEST = "invalid_request"
    INVALID_QUERY = "invalid_query"
    INVALID_SOURCE = "invalid_source"
    SEARCH_TIMEOUT = "search_timeout"
    INTERNAL_ERROR = "internal_error"


class ErrorResponse(BaseModel):
    """Structured error body: ``{"error": <code>, "message": <text>}``."""

    error: ErrorCode = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error description")


class SearchError(Exception):
    """Base class for errors surfaced to the caller of a federated search."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(error=self.code, message=self.message)


class InvalidQueryError(SearchError):
    """Raised when query parameters fail validation (e.g. text too short)."""

    code = ErrorCode.INVALID_QUERY
    status_code = 400


class InvalidSourceError(SearchError):
    """Raised when an unknown source kind is requested."""

    code = ErrorCode.INVALID_SOURCE
    status_code = 400

    def __init__(self, source: str) -> None:
        self.source = source
        super().__init__(f"Invalid source type provided: {source!r}")


class SearchTimeoutError(SearchError):
    """Raised when the whole request exceeds its time budget."""

    code = ErrorCode.SEARCH_TIMEOUT
    status_code = 504

    def __init__(self, budget_seconds: float) -> None:
        self.budget_seconds = budget_seconds
        super().__init__("Search did not complete in time. Please try again.")


class SourceUnavailableError(Exception):
    """Raised by a source adapter when its backing store cannot be queried.

    Never surfaced to the caller: the orchestrator records the source as
    failed and continues with the remaining sources.
    """

    def __init__(self, source: str, reason: str = "") -> None:
        self.source = source
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"source {source} unavailable{detail}")
