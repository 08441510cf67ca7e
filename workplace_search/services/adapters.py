"""Source adapters: one search implementation per content source.

Each adapter turns query text into a source-specific lookup against the
document store and returns at most ``fetch_cap`` candidates with a raw score.
Lexical adapters score in [0, 1]; semantic lookups report raw cosine
similarity in [-1, 1] and leave normalization to the scorer.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Iterable, Sequence
from typing import Any, Protocol, runtime_checkable

import httpx

from workplace_search.models.errors import SourceUnavailableError
from workplace_search.models.search import Candidate, SourceKind, TenantScope
from workplace_search.services.document_store import (
    DocumentStore,
    DocumentStoreError,
    query_tokens,
)
from workplace_search.services.embeddings import cosine_similarity

logger = logging.getLogger(__name__)

NEWS_TITLE_LENGTH = 100
NEWS_EXCERPT_LENGTH = 200
LIVE_RESULT_FACTOR = 0.8
PINNED_BOOST = 0.05
SEMANTIC_BLEND = 0.3


@runtime_checkable
class SourceAdapter(Protocol):
    """Search contract shared by every source.

    ``timeout_seconds`` overrides the default per-source timeout when set.
    ``semantic`` marks adapters that can use a query vector.
    """

    kind: SourceKind
    semantic: bool
    timeout_seconds: float | None

    async def search(
        self,
        query_text: str,
        tenant_scope: TenantScope,
        content_types: frozenset[str] | None = None,
        *,
        query_vector: Sequence[float] | None = None,
    ) -> list[Candidate]: ...


def lexical_match_score(fields: Iterable[tuple[str | None, float]], query_text: str) -> float:
    """Score how well ``query_text`` matches a set of weighted text fields.

    A whole-phrase hit scores ``weight * (1 - 0.5 * position / length)`` so
    earlier hits rank higher; otherwise the share of query tokens present
    scores ``weight * 0.5 * share``. The best field wins. Result is in [0, 1].
    """
    needle = query_text.strip().lower()
    if not needle:
        return 0.0
    tokens = query_tokens(needle)

    best = 0.0
    for text, weight in fields:
        if not text:
            continue
        haystack = text.lower()
        pos = haystack.find(needle)
        if pos >= 0:
            score = weight * (1.0 - 0.5 * pos / len(haystack))
        else:
            hits = sum(1 for token in tokens if token in haystack)
            score = weight * 0.5 * hits / len(tokens)
        best = max(best, score)
    return max(0.0, min(best, 1.0))


class StoreAdapter:
    """Shared plumbing for adapters reading from the document store."""

    kind: SourceKind
    semantic = False
    timeout_seconds: float | None = None

    def __init__(self, store: DocumentStore, container: str, fetch_cap: int = 50) -> None:
        self._store = store
        self._container = container
        self._fetch_cap = fetch_cap

    async def _find(self, container: str | None = None, **kwargs: Any) -> list[dict[str, Any]]:
        try:
            return await self._store.find_documents(container or self._container, **kwargs)
        except DocumentStoreError as exc:
            raise SourceUnavailableError(self.kind.value, str(exc)) from exc

    def _finalize(
        self,
        candidates: list[Candidate],
        content_types: frozenset[str] | None,
    ) -> list[Candidate]:
        """Apply the content-type filter, rank natively and cap the list."""
        if content_types:
            candidates = [c for c in candidates if c.content_type in content_types]
        candidates.sort(key=lambda c: (-c.raw_score, c.id))
        capped = candidates[: self._fetch_cap]
        for rank, candidate in enumerate(capped, start=1):
            candidate.native_rank = rank
        return capped


class ArticlesAdapter(StoreAdapter):
    """Published knowledge-base articles, serving both ``articles`` and ``internal_kb``.

    Title and body matches come first. With a query vector, every article above
    the similarity floor either raises an existing match by
    ``similarity * SEMANTIC_BLEND`` or joins as a semantic match, so each
    article is reported once.
    """

    kind = SourceKind.ARTICLES
    semantic = True

    def __init__(
        self,
        store: DocumentStore,
        container: str,
        fetch_cap: int = 50,
        *,
        scan_limit: int = 500,
        min_similarity: float = 0.3,
        space_field: str = "kb_space_id",
    ) -> None:
        super().__init__(store, container, fetch_cap)
        self._scan_limit = scan_limit
        self._min_similarity = min_similarity
        self._space_field = space_field

    async def search(
        self,
        query_text: str,
        tenant_scope: TenantScope,
        content_types: frozenset[str] | None = None,
        *,
        query_vector: Sequence[float] | None = None,
    ) -> list[Candidate]:
        docs = await self._find(
            scope=tenant_scope,
            text=query_text,
            text_fields=("title", "excerpt", "content"),
            where={"status": "published"},
            space_field=self._space_field,
            limit=self._fetch_cap,
        )
        by_id: dict[str, Candidate] = {}
        for doc in docs:
            score = _article_text_score(doc, query_text)
            if score > 0:
                by_id[str(doc["id"])] = _article_candidate(self.kind, doc, score)

        if query_vector is not None:
            embedded = await self._find(
                scope=tenant_scope,
                where={"status": "published"},
                require=("embedding",),
                space_field=self._space_field,
                limit=self._scan_limit,
            )
            for doc in embedded:
                similarity = cosine_similarity(query_vector, doc.get("embedding") or [])
                if similarity < self._min_similarity:
                    continue
                existing = by_id.get(str(doc["id"]))
                if existing is not None:
                    existing.raw_score = min(1.0, existing.raw_score + similarity * SEMANTIC_BLEND)
                else:
                    by_id[str(doc["id"])] = _article_candidate(
                        self.kind, doc, similarity, "semantic"
                    )

        return self._finalize(list(by_id.values()), content_types)


def _article_text_score(doc: dict[str, Any], query_text: str) -> float:
    return lexical_match_score(
        [
            (doc.get("title"), 1.0),
            (doc.get("excerpt"), 0.7),
            (doc.get("content"), 0.6),
        ],
        query_text,
    )


def _article_candidate(
    kind: SourceKind,
    doc: dict[str, Any],
    raw_score: float,
    match_kind: str = "lexical",
) -> Candidate:
    slug = doc.get("slug")
    return Candidate(
        source_id=str(doc["id"]),
        source_kind=kind,
        title=doc.get("title") or "Untitled",
        excerpt=doc.get("excerpt"),
        content_type=doc.get("content_type") or "html",
        raw_score=raw_score,
        match_kind=match_kind,  # type: ignore[arg-type]
        url=f"/diq/content/{slug}" if slug else None,
        metadata={
            "category": doc.get("category"),
            "author": doc.get("author_name"),
            "updated_at": doc.get("updated_at"),
            "kb_space_id": doc.get("kb_space_id"),
        },
    )


class NewsAdapter(StoreAdapter):
    """Published news posts; pinned posts get a small boost."""

    kind = SourceKind.NEWS

    async def search(
        self,
        query_text: str,
        tenant_scope: TenantScope,
        content_types: frozenset[str] | None = None,
        *,
        query_vector: Sequence[float] | None = None,
    ) -> list[Candidate]:
        docs = await self._find(
            scope=tenant_scope,
            text=query_text,
            text_fields=("content",),
            require=("published_at",),
            limit=self._fetch_cap,
        )

        candidates: list[Candidate] = []
        for doc in docs:
            content = doc.get("content") or ""
            title = content.split("\n", 1)[0][:NEWS_TITLE_LENGTH] or "News Post"
            score = lexical_match_score([(title, 1.0), (content, 0.7)], query_text)
            if score <= 0:
                continue
            pinned = bool(doc.get("pinned"))
            candidates.append(
                Candidate(
                    source_id=str(doc["id"]),
                    source_kind=self.kind,
                    title=title,
                    excerpt=content[:NEWS_EXCERPT_LENGTH] or None,
                    content_type="text",
                    raw_score=score,
                    url=f"/diq/news/{doc['id']}",
                    metadata={
                        "type": doc.get("type"),
                        "pinned": pinned,
                        "attachments_count": len(doc.get("attachments") or []),
                        "published_at": doc.get("published_at"),
                        "boost": PINNED_BOOST if pinned else 0.0,
                    },
                )
            )
        return self._finalize(candidates, content_types)


class EmployeesAdapter(StoreAdapter):
    """Employee directory, matched on name, title, department and location."""

    kind = SourceKind.EMPLOYEES

    async def search(
        self,
        query_text: str,
        tenant_scope: TenantScope,
        content_types: frozenset[str] | None = None,
        *,
        query_vector: Sequence[float] | None = None,
    ) -> list[Candidate]:
        docs = await self._find(
            scope=tenant_scope,
            text=query_text,
            text_fields=("full_name", "job_title", "department", "location"),
            limit=self._fetch_cap,
        )

        candidates: list[Candidate] = []
        for doc in docs:
            name = doc.get("full_name")
            if not name:
                continue
            department = doc.get("department") or "Unknown Department"
            score = lexical_match_score(
                [
                    (name, 1.0),
                    (doc.get("job_title"), 0.8),
                    (doc.get("department"), 0.7),
                    (doc.get("location"), 0.6),
                ],
                query_text,
            )
            if score <= 0:
                continue
            candidates.append(
                Candidate(
                    source_id=str(doc["id"]),
                    source_kind=self.kind,
                    title=name,
                    excerpt=f"{doc.get('job_title') or ''} - {department}".strip(" -"),
                    content_type="person",
                    raw_score=score,
                    url=f"/diq/people?id={doc['id']}",
                    metadata={
                        "job_title": doc.get("job_title"),
                        "department": doc.get("department"),
                        "location": doc.get("location"),
                        "email": doc.get("email"),
                        "avatar_url": doc.get("avatar_url"),
                    },
                )
            )
        return self._finalize(candidates, content_types)


class SemanticAdapter(StoreAdapter):
    """Vector similarity over pre-computed document embeddings.

    Without a query vector (semantic search disabled or embedding failed)
    the adapter falls back to lexical matching over the same documents.
    """

    semantic = True

    def __init__(
        self,
        kind: SourceKind,
        store: DocumentStore,
        container: str,
        *,
        fetch_cap: int = 50,
        scan_limit: int = 500,
        min_similarity: float = 0.3,
        space_field: str = "kb_space_id",
    ) -> None:
        super().__init__(store, container, fetch_cap)
        self.kind = kind
        self._scan_limit = scan_limit
        self._min_similarity = min_similarity
        self._space_field = space_field

    async def search(
        self,
        query_text: str,
        tenant_scope: TenantScope,
        content_types: frozenset[str] | None = None,
        *,
        query_vector: Sequence[float] | None = None,
    ) -> list[Candidate]:
        if query_vector is None:
            return await self._lexical(query_text, tenant_scope, content_types)

        docs = await self._find(
            scope=tenant_scope,
            where={"status": "published"},
            require=("embedding",),
            space_field=self._space_field,
            limit=self._scan_limit,
        )
        candidates: list[Candidate] = []
        for doc in docs:
            embedding = doc.get("embedding")
            if not embedding:
                continue
            similarity = cosine_similarity(query_vector, embedding)
            if similarity < self._min_similarity:
                continue
            candidates.append(self._candidate(doc, similarity, "semantic"))
        return self._finalize(candidates, content_types)

    async def _lexical(
        self,
        query_text: str,
        tenant_scope: TenantScope,
        content_types: frozenset[str] | None,
    ) -> list[Candidate]:
        docs = await self._find(
            scope=tenant_scope,
            text=query_text,
            text_fields=("title", "excerpt", "content"),
            where={"status": "published"},
            space_field=self._space_field,
            limit=self._fetch_cap,
        )
        candidates: list[Candidate] = []
        for doc in docs:
            score = lexical_match_score(
                [
                    (doc.get("title"), 1.0),
                    (doc.get("excerpt"), 0.7),
                    (doc.get("content"), 0.6),
                ],
                query_text,
            )
            if score > 0:
                candidates.append(self._candidate(doc, score, "lexical"))
        return self._finalize(candidates, content_types)

    def _candidate(self, doc: dict[str, Any], raw_score: float, match_kind: str) -> Candidate:
        views = doc.get("view_count") or 0
        return Candidate(
            source_id=str(doc["id"]),
            source_kind=self.kind,
            title=doc.get("title") or "Untitled",
            excerpt=doc.get("excerpt"),
            content_type=doc.get("content_type") or "html",
            raw_score=raw_score,
            match_kind=match_kind,  # type: ignore[arg-type]
            url=doc.get("internal_url") or doc.get("source_url"),
            metadata={
                "kb_space_id": doc.get(self._space_field),
                "tags": doc.get("tags") or [],
                "view_count": views,
                "boost": min(0.05, math.log10(1 + views) / 100) if views > 0 else 0.0,
            },
        )


class ConnectorAdapter(StoreAdapter):
    """Items synced from external systems, optionally plus live connector search.

    Items linked to an internal knowledge item are reported as that knowledge
    item (``metadata.mirrored_from`` names the connector item) so the merger can
    collapse the mirror onto the internal copy. When knowledge items are not
    part of the request, ``restore_mirrored_identity`` turns them back into
    connector results.
    """

    kind = SourceKind.CONNECTORS

    def __init__(
        self,
        store: DocumentStore,
        connectors_container: str,
        items_container: str,
        *,
        fetch_cap: int = 50,
        timeout_seconds: float | None = None,
        live_search: bool = False,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(store, items_container, fetch_cap)
        self._connectors_container = connectors_container
        self.timeout_seconds = timeout_seconds
        self._live_search = live_search
        self._http_client = http_client

    async def search(
        self,
        query_text: str,
        tenant_scope: TenantScope,
        content_types: frozenset[str] | None = None,
        *,
        query_vector: Sequence[float] | None = None,
    ) -> list[Candidate]:
        connectors = await self._find(
            self._connectors_container,
            scope=tenant_scope,
            where={"status": "active"},
            limit=100,
        )
        if not connectors:
            return []
        by_id = {str(c["id"]): c for c in connectors}

        items = await self._find(
            scope=tenant_scope,
            text=query_text,
            text_fields=("title",),
            where={"sync_status": "synced"},
            limit=self._fetch_cap,
        )

        candidates: list[Candidate] = []
        for item in items:
            connector = by_id.get(str(item.get("connector_id")))
            if connector is None:
                continue
            candidate = self._synced_candidate(item, connector, query_text)
            if candidate is not None:
                candidates.append(candidate)

        if self._live_search:
            candidates.extend(await self._search_live(connectors, query_text))

        return self._finalize(candidates, content_types)

    def _synced_candidate(
        self,
        item: dict[str, Any],
        connector: dict[str, Any],
        query_text: str,
    ) -> Candidate | None:
        score = lexical_match_score(
            [(item.get("title"), 1.0), (item.get("excerpt"), 0.6)],
            query_text,
        )
        if score <= 0:
            return None

        metadata: dict[str, Any] = {
            "connector_type": connector.get("type"),
            "connector_name": connector.get("name"),
            "source_path": item.get("source_path"),
        }
        kind, source_id = self.kind, str(item["id"])
        if item.get("kb_item_id"):
            kind, source_id = SourceKind.KNOWLEDGE_ITEMS, str(item["kb_item_id"])
            metadata["mirrored_from"] = f"{self.kind.value}:{item['id']}"

        return Candidate(
            source_id=source_id,
            source_kind=kind,
            title=item.get("title") or "Untitled",
            excerpt=item.get("excerpt"),
            content_type=item.get("content_type") or "text",
            raw_score=score,
            url=item.get("source_url"),
            metadata=metadata,
        )

    async def _search_live(
        self,
        connectors: list[dict[str, Any]],
        query_text: str,
    ) -> list[Candidate]:
        targets = [c for c in connectors if c.get("search_url")]
        if not targets:
            return []

        if self._http_client is not None:
            outcomes = await asyncio.gather(
                *(self._query_connector(self._http_client, c, query_text) for c in targets),
                return_exceptions=True,
            )
        else:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                outcomes = await asyncio.gather(
                    *(self._query_connector(client, c, query_text) for c in targets),
                    return_exceptions=True,
                )

        candidates: list[Candidate] = []
        for connector, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                logger.warning(
                    "Live search failed for connector %s: %s",
                    connector.get("id"),
                    outcome,
                    extra={"source": self.kind.value},
                )
                continue
            candidates.extend(outcome)
        return candidates

    async def _query_connector(
        self,
        client: httpx.AsyncClient,
        connector: dict[str, Any],
        query_text: str,
    ) -> list[Candidate]:
        headers: dict[str, str] = {"Accept": "application/json"}
        if connector.get("api_key"):
            headers["Authorization"] = f"Bearer {connector['api_key']}"

        response = await client.get(
            connector["search_url"],
            params={"q": query_text, "limit": 10},
            headers=headers,
        )
        response.raise_for_status()
        data = response.json()

        candidates: list[Candidate] = []
        for item in data.get("items", []):
            external_id = item.get("external_id") or item.get("id")
            if not external_id:
                continue
            score = lexical_match_score(
                [(item.get("title"), 1.0), (item.get("excerpt"), 0.6)],
                query_text,
            )
            if score <= 0:
                continue
            candidates.append(
                Candidate(
                    source_id=f"live-{connector.get('type', 'custom')}-{external_id}",
                    source_kind=self.kind,
                    title=item.get("title") or "Untitled",
                    excerpt=item.get("excerpt"),
                    content_type=item.get("content_type") or "text",
                    raw_score=score * LIVE_RESULT_FACTOR,
                    url=item.get("source_url"),
                    metadata={
                        "connector_type": connector.get("type"),
                        "connector_name": connector.get("name"),
                        "live": True,
                    },
                )
            )
        return candidates


def build_adapter_registry(
    store: DocumentStore,
    settings: Any,
    http_client: httpx.AsyncClient | None = None,
) -> dict[SourceKind, SourceAdapter]:
    """Create the per-source lookup table.

    ``internal_kb`` and ``articles`` share one adapter over the articles
    container; the orchestrator dispatches a shared adapter once.
    """
    cap = settings.source_fetch_cap
    semantic_options = {
        "fetch_cap": cap,
        "scan_limit": settings.semantic_scan_limit,
        "min_similarity": settings.semantic_min_similarity,
    }
    articles = ArticlesAdapter(store, settings.articles_container, **semantic_options)
    return {
        SourceKind.INTERNAL_KB: articles,
        SourceKind.KNOWLEDGE_ITEMS: SemanticAdapter(
            SourceKind.KNOWLEDGE_ITEMS,
            store,
            settings.knowledge_items_container,
            **semantic_options,
        ),
        SourceKind.ARTICLES: articles,
        SourceKind.NEWS: NewsAdapter(store, settings.news_container, cap),
        SourceKind.EMPLOYEES: EmployeesAdapter(store, settings.employees_container, cap),
        SourceKind.CONNECTORS: ConnectorAdapter(
            store,
            settings.connectors_container,
            settings.connector_items_container,
            fetch_cap=cap,
            timeout_seconds=settings.connector_timeout_seconds,
            live_search=settings.connector_live_search,
            http_client=http_client,
        ),
    }


def restore_mirrored_identity(candidate: Candidate) -> Candidate:
    """Report a mirrored knowledge item under its connector item identity."""
    origin = candidate.metadata.get("mirrored_from")
    if not origin:
        return candidate
    kind, _, source_id = origin.partition(":")
    metadata = {k: v for k, v in candidate.metadata.items() if k != "mirrored_from"}
    metadata["kb_item_id"] = candidate.source_id
    return candidate.model_copy(
        update={"source_kind": SourceKind(kind), "source_id": source_id, "metadata": metadata}
    )
