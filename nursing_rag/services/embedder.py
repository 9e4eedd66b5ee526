# =============================================================================
# Embedding Service - Dual-Dimension Query Embeddings
# =============================================================================
#
# Generates query embeddings with any OpenAI-compatible embedding API.
# The same model is called with two `dimensions` values:
#
#   books  → 3072 dims (textbook corpus index)
#   videos → 1536 dims (video transcript index, stored as halfvec)
#
# No retry logic here: callers wrap `embed()` in `retry_async` with the
# embedding retry policy, so each sub-call is retried independently.
# =============================================================================

from __future__ import annotations

import logging
from typing import Protocol

from openai import AsyncOpenAI

from nursing_rag.config import settings

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    """Anything that turns text into a fixed-length vector."""

    dimensions: int

    async def embed(self, text: str) -> list[float]:
        ...


# ---------------------------------------------------------------------------
# Shared Client - Lazy Singleton
# ---------------------------------------------------------------------------
# API key resolution order:
#   1. OPENAI_API_KEY
#   2. LLM_API_KEY (one key for both LLM and embeddings)
# ---------------------------------------------------------------------------

_client: AsyncOpenAI | None = None


def _get_client() -> AsyncOpenAI:
    """Lazily initialize and cache the async embedding client."""
    global _client
    if _client is None:
        resolved_key = settings.openai_api_key or settings.llm_api_key
        if not resolved_key:
            raise ValueError(
                "No API key configured for embeddings. "
                "Set OPENAI_API_KEY or LLM_API_KEY in .env"
            )

        client_kwargs: dict = {"api_key": resolved_key}
        if settings.embedding_base_url:
            client_kwargs["base_url"] = settings.embedding_base_url

        _client = AsyncOpenAI(**client_kwargs)

        logger.info(
            "Initialized embedding client (model=%s, base_url=%s)",
            settings.embedding_model,
            settings.embedding_base_url or "https://api.openai.com/v1",
        )
    return _client


class OpenAIEmbedder:
    """Embeds single query strings at a fixed output dimensionality."""

    def __init__(
        self,
        dimensions: int,
        model: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.dimensions = dimensions
        self._model = model or settings.embedding_model
        self._client = client

    async def embed(self, text: str) -> list[float]:
        """
        Generate one embedding.

        Returns:
            A list of exactly `self.dimensions` floats.

        Raises:
            ValueError: If no API key is configured.
            openai.APIError: If the API call fails.
        """
        client = self._client or _get_client()
        response = await client.embeddings.create(
            model=self._model,
            input=[text],
            dimensions=self.dimensions,
        )
        vector = response.data[0].embedding

        logger.debug(
            "Embedded %d chars → %dD (model=%s, prompt_tokens=%d)",
            len(text),
            len(vector),
            self._model,
            response.usage.prompt_tokens if response.usage else 0,
        )
        return vector


_books_embedder: OpenAIEmbedder | None = None
_videos_embedder: OpenAIEmbedder | None = None


def get_books_embedder() -> OpenAIEmbedder:
    """Embedder for the 3072-dim textbook space."""
    global _books_embedder
    if _books_embedder is None:
        _books_embedder = OpenAIEmbedder(settings.books_embedding_dimensions)
    return _books_embedder


def get_videos_embedder() -> OpenAIEmbedder:
    """Embedder for the 1536-dim video space."""
    global _videos_embedder
    if _videos_embedder is None:
        _videos_embedder = OpenAIEmbedder(settings.videos_embedding_dimensions)
    return _videos_embedder
