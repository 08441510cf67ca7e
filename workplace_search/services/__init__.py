"""Search services: store access, source adapters, ranking and orchestration."""

from workplace_search.services.adapters import (
    ArticlesAdapter,
    ConnectorAdapter,
    EmployeesAdapter,
    NewsAdapter,
    SemanticAdapter,
    SourceAdapter,
    build_adapter_registry,
    lexical_match_score,
    restore_mirrored_identity,
)
from workplace_search.services.document_store import (
    CosmosDocumentStore,
    DocumentStore,
    DocumentStoreError,
)
from workplace_search.services.embeddings import (
    Embedder,
    EmbeddingError,
    OpenAIEmbedder,
    cosine_similarity,
)
from workplace_search.services.federated_search import FederatedSearchService
from workplace_search.services.highlighter import highlight_matches
from workplace_search.services.merger import MergeOutcome, merge
from workplace_search.services.scorer import RelevanceScorer, normalize_semantic

__all__ = [
    "ArticlesAdapter",
    "ConnectorAdapter",
    "CosmosDocumentStore",
    "DocumentStore",
    "DocumentStoreError",
    "Embedder",
    "EmbeddingError",
    "EmployeesAdapter",
    "FederatedSearchService",
    "MergeOutcome",
    "NewsAdapter",
    "OpenAIEmbedder",
    "RelevanceScorer",
    "SemanticAdapter",
    "SourceAdapter",
    "build_adapter_registry",
    "cosine_similarity",
    "highlight_matches",
    "lexical_match_score",
    "merge",
    "normalize_semantic",
    "restore_mirrored_identity",
]
