"""Query embedding client and vector similarity helpers."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# Character cap that keeps a single input under the model's token limit
MAX_TEXT_LENGTH = 8000


class EmbeddingError(Exception):
    """Raised when a query embedding cannot be produced."""


@runtime_checkable
class Embedder(Protocol):
    """Opaque text -> vector function."""

    async def embed(self, text: str) -> list[float]: ...


class OpenAIEmbedder:
    """Generate embeddings through the (Azure) OpenAI embeddings API.

    The same model must be used here and when the stored document vectors
    were produced, otherwise similarities are meaningless.
    """

    def __init__(self, client: Any, model: str = "text-embedding-3-small") -> None:
        self._client = client
        self._model = model

    @classmethod
    def from_settings(cls, settings: Any) -> OpenAIEmbedder:
        """Use Azure OpenAI when an endpoint is configured, OpenAI otherwise."""
        if settings.azure_openai_endpoint:
            from openai import AsyncAzureOpenAI

            if settings.azure_openai_api_key:
                client: Any = AsyncAzureOpenAI(
                    azure_endpoint=settings.azure_openai_endpoint,
                    api_key=settings.azure_openai_api_key,
                    api_version=settings.azure_openai_api_version,
                )
            else:
                from azure.identity import DefaultAzureCredential, get_bearer_token_provider

                token_provider = get_bearer_token_provider(
                    DefaultAzureCredential(),
                    "https://cognitiveservices.azure.com/.default",
                )
                client = AsyncAzureOpenAI(
                    azure_endpoint=settings.azure_openai_endpoint,
                    azure_ad_token_provider=token_provider,
                    api_version=settings.azure_openai_api_version,
                )
        else:
            from openai import AsyncOpenAI

            client = AsyncOpenAI(api_key=settings.openai_api_key or None)
        return cls(client=client, model=settings.embedding_model)

    async def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Raises:
            EmbeddingError: On empty input, API failure, or an empty response.
        """
        truncated = text[:MAX_TEXT_LENGTH].strip()
        if not truncated:
            raise EmbeddingError("Cannot generate embedding for empty text")

        try:
            response = await self._client.embeddings.create(
                input=truncated,
                model=self._model,
            )
        except Exception as exc:
            raise EmbeddingError(f"embedding request failed: {exc}") from exc

        if not response.data:
            raise EmbeddingError("No embedding returned from embeddings API")
        return list(response.data[0].embedding)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1]; 0 for mismatched or zero-length vectors."""
    if len(a) != len(b) or not a:
        return 0.0

    dot = norm_a = norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0 or norm_b == 0:
        return 0.0
    similarity = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    return max(-1.0, min(1.0, similarity))
