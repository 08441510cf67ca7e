"""Read-only document store access backed by Azure Cosmos DB.

Every source adapter reads through the ``DocumentStore`` protocol so the
search path never depends on a concrete client. The Cosmos implementation
pushes a coarse token filter down to the database; fine-grained scoring
happens in the adapters.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from azure.core.exceptions import AzureError

from workplace_search.models.search import TenantScope

logger = logging.getLogger(__name__)

# Field names are interpolated into SQL; only plain identifiers are allowed.
_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
MAX_QUERY_TOKENS = 8


class DocumentStoreError(Exception):
    """Raised when the backing store cannot answer a query."""


@runtime_checkable
class DocumentStore(Protocol):
    """Contract for the per-source document lookups used by adapters."""

    async def find_documents(
        self,
        container: str,
        *,
        scope: TenantScope,
        text: str | None = None,
        text_fields: Sequence[str] = (),
        where: Mapping[str, Any] | None = None,
        require: Sequence[str] = (),
        space_field: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]: ...


def query_tokens(text: str) -> list[str]:
    """Split query text into distinct lower-cased whitespace tokens."""
    seen: dict[str, None] = {}
    for token in text.lower().split():
        seen.setdefault(token, None)
    return list(seen)[:MAX_QUERY_TOKENS]


def _field(name: str) -> str:
    if not _FIELD_RE.match(name):
        raise ValueError(f"invalid field name: {name!r}")
    return f"c.{name}"


def build_query(
    *,
    scope: TenantScope,
    text: str | None,
    text_fields: Sequence[str],
    where: Mapping[str, Any] | None,
    require: Sequence[str],
    space_field: str | None,
    limit: int,
) -> tuple[str, list[dict[str, Any]]]:
    """Build a parameterised Cosmos SQL query and its parameters."""
    clauses: list[str] = []
    parameters: list[dict[str, Any]] = [{"name": "@limit", "value": limit}]

    if text and text_fields:
        matches: list[str] = []
        for i, token in enumerate(query_tokens(text)):
            parameters.append({"name": f"@t{i}", "value": token})
            matches.extend(f"CONTAINS({_field(f)}, @t{i}, true)" for f in text_fields)
        if matches:
            clauses.append("(" + " OR ".join(matches) + ")")

    for i, (key, value) in enumerate(sorted((where or {}).items())):
        parameters.append({"name": f"@w{i}", "value": value})
        clauses.append(f"{_field(key)} = @w{i}")

    for name in require:
        clauses.append(f"(IS_DEFINED({_field(name)}) AND NOT IS_NULL({_field(name)}))")

    if scope.organization_id:
        parameters.append({"name": "@org", "value": scope.organization_id})
        clauses.append("c.organization_id = @org")

    if space_field and scope.kb_space_ids:
        parameters.append({"name": "@spaces", "value": sorted(scope.kb_space_ids)})
        clauses.append(f"ARRAY_CONTAINS(@spaces, {_field(space_field)})")

    query = "SELECT TOP @limit * FROM c"
    if clauses:
        query += " WHERE " + " AND ".join(clauses)
    return query, parameters


class CosmosDocumentStore:
    """Query source containers in a single Cosmos DB database.

    Queries span partitions; the store never writes.
    """

    def __init__(self, client: Any, database: str) -> None:
        self._client = client
        self._db = client.get_database_client(database)
        self._containers: dict[str, Any] = {}

    @classmethod
    def from_settings(cls, settings: Any) -> CosmosDocumentStore:
        """Create a store using a key when configured, managed identity otherwise."""
        from azure.cosmos.aio import CosmosClient

        if settings.cosmos_key:
            credential: Any = settings.cosmos_key
        else:
            from azure.identity.aio import DefaultAzureCredential

            credential = DefaultAzureCredential()
        client = CosmosClient(settings.cosmos_endpoint, credential=credential)
        return cls(client=client, database=settings.cosmos_database)

    def _container(self, name: str) -> Any:
        if name not in self._containers:
            self._containers[name] = self._db.get_container_client(name)
        return self._containers[name]

    async def find_documents(
        self,
        container: str,
        *,
        scope: TenantScope,
        text: str | None = None,
        text_fields: Sequence[str] = (),
        where: Mapping[str, Any] | None = None,
        require: Sequence[str] = (),
        space_field: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Return up to ``limit`` raw documents from ``container``.

        Raises:
            DocumentStoreError: If Cosmos DB rejects or fails the query.
        """
        query, parameters = build_query(
            scope=scope,
            text=text,
            text_fields=text_fields,
            where=where,
            require=require,
            space_field=space_field,
            limit=limit,
        )
        logger.debug("Cosmos query on %s: %s", container, query)

        items: list[dict[str, Any]] = []
        try:
            async for item in self._container(container).query_items(
                query=query,
                parameters=parameters,
            ):
                items.append(item)
        except AzureError as exc:
            raise DocumentStoreError(f"query on {container} failed: {exc}") from exc
        return items

    async def close(self) -> None:
        await self._client.close()
