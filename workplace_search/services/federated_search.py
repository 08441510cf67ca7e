"""Federated search orchestration across all content sources."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from workplace_search.models.errors import SearchTimeoutError, SourceUnavailableError
from workplace_search.models.search import (
    SOURCE_PRIORITY,
    Candidate,
    FederatedSearchResult,
    SearchQuery,
    SourceKind,
    SourceStats,
)
from workplace_search.services.adapters import SourceAdapter, restore_mirrored_identity
from workplace_search.services.embeddings import Embedder, EmbeddingError
from workplace_search.services.highlighter import highlight_results
from workplace_search.services.merger import merge
from workplace_search.services.scorer import RelevanceScorer

logger = logging.getLogger(__name__)


@dataclass
class _SourceOutcome:
    kind: SourceKind
    candidates: list[Candidate] = field(default_factory=list)
    status: str = "ok"
    duration_ms: int = 0


def _priority_order(kind: SourceKind) -> tuple[int, str]:
    return SOURCE_PRIORITY[kind], kind.value


class FederatedSearchService:
    """Fan a query out to every requested source and merge the answers.

    Sources run concurrently in one task group, each under its own timeout.
    A failing or slow source is reported in ``sources_failed`` and never
    fails the request; only the overall request budget does.
    """

    def __init__(
        self,
        adapters: Mapping[SourceKind, SourceAdapter],
        *,
        scorer: RelevanceScorer | None = None,
        embedder: Embedder | None = None,
        source_timeout_seconds: float = 5.0,
        request_timeout_seconds: float = 10.0,
    ) -> None:
        self._adapters = dict(adapters)
        self._scorer = scorer or RelevanceScorer()
        self._embedder = embedder
        self._source_timeout = source_timeout_seconds
        self._request_timeout = request_timeout_seconds

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        adapters: Mapping[SourceKind, SourceAdapter],
        embedder: Embedder | None = None,
    ) -> FederatedSearchService:
        return cls(
            adapters,
            scorer=RelevanceScorer(max_boost=settings.max_boost),
            embedder=embedder,
            source_timeout_seconds=settings.source_timeout_seconds,
            request_timeout_seconds=settings.request_timeout_seconds,
        )

    async def search(self, query: SearchQuery) -> FederatedSearchResult:
        """Run a federated search.

        Args:
            query: A validated query (see ``SearchQuery.build``).

        Returns:
            The merged, paginated and optionally highlighted result.

        Raises:
            SearchTimeoutError: If the whole request exceeds its budget.
        """
        started = time.monotonic()
        kinds = sorted(self._dispatch_kinds(query), key=_priority_order)

        try:
            async with asyncio.timeout(self._request_timeout):
                outcomes, semantic_applied = await self._fan_out(query, kinds)
        except TimeoutError as exc:
            logger.warning(
                "Federated search exceeded request budget",
                extra={"latency_ms": int((time.monotonic() - started) * 1000)},
            )
            raise SearchTimeoutError(self._request_timeout) from exc

        if SourceKind.KNOWLEDGE_ITEMS not in kinds:
            for outcome in outcomes:
                outcome.candidates = [restore_mirrored_identity(c) for c in outcome.candidates]

        merged = merge({o.kind: o.candidates for o in outcomes}, query, self._scorer)
        if query.highlight:
            highlight_results(merged.results, query.text)

        failed = [o.kind for o in outcomes if o.status != "ok"]
        took_ms = int((time.monotonic() - started) * 1000)
        result = FederatedSearchResult(
            query=query.text,
            results=merged.results,
            total_matched=merged.total_matched,
            sources_queried=kinds,
            sources_failed=failed,
            sources=[
                SourceStats(
                    source=o.kind,
                    count=len(o.candidates),
                    duration_ms=o.duration_ms,
                    status=o.status,  # type: ignore[arg-type]
                )
                for o in outcomes
            ],
            semantic_applied=semantic_applied,
            has_more=query.offset + query.limit < merged.total_matched,
            took_ms=took_ms,
        )

        logger.info(
            "Federated search completed",
            extra={
                "took_ms": took_ms,
                "result_count": len(result.results),
                "total_matched": result.total_matched,
                "sources_failed": [k.value for k in failed] or None,
                "semantic_applied": semantic_applied,
            },
        )
        return result

    def _dispatch_kinds(self, query: SearchQuery) -> set[SourceKind]:
        """Requested kinds, with kinds served by a shared adapter dispatched once."""
        kinds: set[SourceKind] = set()
        for kind in query.sources:
            if kind is SourceKind.CONNECTORS and not query.include_connectors:
                continue
            adapter = self._adapters.get(kind)
            kinds.add(adapter.kind if adapter is not None else kind)
        return kinds

    async def _fan_out(
        self,
        query: SearchQuery,
        kinds: Sequence[SourceKind],
    ) -> tuple[list[_SourceOutcome], bool]:
        wants_vector = (
            query.semantic_search
            and self._embedder is not None
            and any(getattr(self._adapters.get(k), "semantic", False) for k in kinds)
        )

        async with asyncio.TaskGroup() as group:
            vector_task = group.create_task(self._embed(query.text)) if wants_vector else None
            tasks = [
                group.create_task(self._run_source(kind, query, vector_task))
                for kind in kinds
            ]

        vector = vector_task.result() if vector_task is not None else None
        return [t.result() for t in tasks], vector is not None

    async def _embed(self, text: str) -> list[float] | None:
        """Embed the query once per request; ``None`` degrades to lexical search."""
        try:
            async with asyncio.timeout(self._source_timeout):
                return await self._embedder.embed(text)  # type: ignore[union-attr]
        except (EmbeddingError, TimeoutError) as exc:
            logger.warning("Query embedding unavailable, using lexical matching: %s", exc)
        except Exception:
            logger.exception("Unexpected embedding failure, using lexical matching")
        return None

    async def _run_source(
        self,
        kind: SourceKind,
        query: SearchQuery,
        vector_task: asyncio.Task[list[float] | None] | None,
    ) -> _SourceOutcome:
        outcome = _SourceOutcome(kind=kind)
        adapter = self._adapters.get(kind)
        if adapter is None:
            logger.error("No adapter registered for source", extra={"source": kind.value})
            outcome.status = "failed"
            return outcome

        timeout = adapter.timeout_seconds or self._source_timeout
        started = time.monotonic()
        try:
            async with asyncio.timeout(timeout):
                vector = None
                if adapter.semantic and vector_task is not None:
                    vector = await asyncio.shield(vector_task)
                outcome.candidates = await adapter.search(
                    query.text,
                    query.tenant_scope,
                    query.content_types,
                    query_vector=vector,
                )
        except TimeoutError:
            outcome.status = "timeout"
            logger.warning("Source timed out after %ss", timeout, extra={"source": kind.value})
        except SourceUnavailableError as exc:
            outcome.status = "failed"
            logger.warning("Source unavailable: %s", exc, extra={"source": kind.value})
        except Exception:
            outcome.status = "failed"
            logger.exception("Source search error", extra={"source": kind.value})
        finally:
            outcome.duration_ms = int((time.monotonic() - started) * 1000)

        if outcome.status != "ok":
            outcome.candidates = []
        return outcome
