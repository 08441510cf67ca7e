"""FastAPI application entry point for the workplace federated search service."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import httpx
from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from workplace_search.config import Settings, get_settings
from workplace_search.logging_config import new_request_id, setup_logging
from workplace_search.models.errors import ErrorCode, ErrorResponse, SearchError
from workplace_search.models.search import FederatedSearchResult, SearchQuery, TenantScope
from workplace_search.services.adapters import build_adapter_registry
from workplace_search.services.document_store import CosmosDocumentStore
from workplace_search.services.embeddings import OpenAIEmbedder
from workplace_search.services.federated_search import FederatedSearchService

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    timestamp: str


class FederatedSearchRequest(BaseModel):
    """Request body for POST /search/federated (camelCase keys)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    query: str | None = Field(None, description="Search text, at least 2 characters")
    user_id: str | None = None
    organization_id: str | None = None
    kb_space_ids: list[str] | None = None
    sources: list[str] | None = Field(None, description="Source kinds to search")
    content_types: list[str] | None = None
    limit: int | None = None
    offset: int = 0
    min_score: float | None = None
    include_connectors: bool = True
    semantic_search: bool = True
    highlight: bool = True


def _split(value: str | None) -> list[str] | None:
    if not value:
        return None
    return [part.strip() for part in value.split(",") if part.strip()]


def _error_response(status_code: int, code: ErrorCode, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=code, message=message).model_dump(mode="json"),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Wire the document store, embeddings client and adapters at startup."""
    settings = get_settings()
    setup_logging(settings.log_level)
    logger.info("Workplace search service starting up")

    store = CosmosDocumentStore.from_settings(settings)
    http_client = httpx.AsyncClient(timeout=settings.connector_timeout_seconds)
    adapters = build_adapter_registry(store, settings, http_client=http_client)

    app.state.settings = settings
    app.state.search_service = FederatedSearchService.from_settings(
        settings,
        adapters,
        embedder=OpenAIEmbedder.from_settings(settings),
    )

    yield

    await http_client.aclose()
    await store.close()
    logger.info("Workplace search service shutting down")


def get_app_settings(request: Request) -> Settings:
    """FastAPI dependency: settings loaded at startup."""
    return request.app.state.settings


def get_search_service(request: Request) -> FederatedSearchService:
    """FastAPI dependency: the shared federated search service."""
    return request.app.state.search_service


async def _run_search(
    service: FederatedSearchService,
    build_query: Callable[[], SearchQuery],
) -> FederatedSearchResult | JSONResponse:
    """Validate, execute and map errors to responses for one search request."""
    new_request_id()
    try:
        query = build_query()
        return await service.search(query)
    except SearchError as exc:
        if exc.status_code >= 500:
            logger.warning("Search failed: %s", exc.message)
        return _error_response(exc.status_code, exc.code, exc.message)
    except Exception:
        logger.exception("Federated search API error")
        return _error_response(500, ErrorCode.INTERNAL_ERROR, "Internal server error")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="Workplace Federated Search API",
        version=VERSION,
        description="Ranked search across articles, knowledge, news, people and connectors",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Malformed bodies and parameters are client errors, not 422s."""
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        detail = first.get("msg", "Invalid request")
        message = f"{location}: {detail}" if location else detail
        return _error_response(400, ErrorCode.INVALID_REQUEST, message)

    @application.get("/")
    async def root() -> dict:
        """Root endpoint with API info."""
        return {
            "name": "Workplace Federated Search",
            "version": VERSION,
            "docs": "/docs",
            "health": "/health",
            "search": "/search/federated",
        }

    @application.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Liveness check."""
        return HealthResponse(
            status="healthy",
            version=VERSION,
            timestamp=datetime.now(tz=UTC).isoformat(),
        )

    @application.post("/search/federated", response_model=FederatedSearchResult)
    async def federated_search_post(
        body: FederatedSearchRequest,
        settings: Settings = Depends(get_app_settings),
        service: FederatedSearchService = Depends(get_search_service),
    ) -> FederatedSearchResult:
        """Search all requested sources and return one ranked result list."""

        def build() -> SearchQuery:
            return SearchQuery.build(
                body.query,
                sources=body.sources,
                content_types=body.content_types,
                limit=body.limit if body.limit is not None else settings.default_limit,
                offset=body.offset,
                min_score=(
                    body.min_score if body.min_score is not None else settings.default_min_score
                ),
                semantic_search=body.semantic_search,
                include_connectors=body.include_connectors,
                highlight=body.highlight,
                tenant_scope=TenantScope(
                    user_id=body.user_id,
                    organization_id=body.organization_id,
                    kb_space_ids=frozenset(body.kb_space_ids or ()),
                ),
                max_limit=settings.max_limit,
            )

        return await _run_search(service, build)  # type: ignore[return-value]

    @application.get("/search/federated", response_model=FederatedSearchResult)
    async def federated_search_get(
        q: str | None = None,
        query: str | None = None,
        sources: str | None = None,
        limit: int | None = None,
        offset: int = 0,
        semantic: str | None = None,
        include_connectors: str | None = Query(None, alias="includeConnectors"),
        user_id: str | None = Query(None, alias="userId"),
        organization_id: str | None = Query(None, alias="organizationId"),
        kb_space_ids: str | None = Query(None, alias="kbSpaceIds"),
        settings: Settings = Depends(get_app_settings),
        service: FederatedSearchService = Depends(get_search_service),
    ) -> FederatedSearchResult:
        """Query-string variant: semantic on unless ``semantic=false``,
        connectors off unless ``includeConnectors=true``, always highlighted.
        """

        def build() -> SearchQuery:
            return SearchQuery.build(
                q or query,
                sources=_split(sources),
                limit=limit if limit is not None else settings.default_limit,
                offset=offset,
                min_score=settings.default_min_score,
                semantic_search=semantic != "false",
                include_connectors=include_connectors == "true",
                highlight=True,
                tenant_scope=TenantScope(
                    user_id=user_id,
                    organization_id=organization_id,
                    kb_space_ids=frozenset(_split(kb_space_ids) or ()),
                ),
                max_limit=settings.max_limit,
            )

        return await _run_search(service, build)  # type: ignore[return-value]

    return application


app = create_app()
