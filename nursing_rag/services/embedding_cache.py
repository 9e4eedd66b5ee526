# =============================================================================
# Embedding Cache - Per-Request Vector Arena
# =============================================================================
#
# The agent never sees raw vectors. The embedding tool stores them here and
# hands back an opaque id (`emb_<n>`); the search tools look the vector up
# again by (id, dimensionality).
#
#   emb_1 ──┬── BOOKS  (3072) → textbook search
#           └── VIDEOS (1536) → video search
#
# A cache instance belongs to exactly one `generate` call. The solution
# generator creates a fresh one per request, so overlapping requests on one
# service instance never see each other's vectors or ids.
# =============================================================================

from __future__ import annotations

import logging
from enum import Enum

from nursing_rag.config import settings
from nursing_rag.exceptions import EmbeddingNotFoundError

logger = logging.getLogger(__name__)


class EmbeddingSpace(str, Enum):
    """The two vector spaces of the knowledge base."""

    BOOKS = "books"
    VIDEOS = "videos"

    @property
    def dimensions(self) -> int:
        if self is EmbeddingSpace.BOOKS:
            return settings.books_embedding_dimensions
        return settings.videos_embedding_dimensions


class EmbeddingCache:
    """
    Key-value store of `(embedding_id, space) -> vector`.

    Keys are composite so one logical embedding holds both of its
    differently sized representations without collision.
    """

    def __init__(self) -> None:
        self._vectors: dict[tuple[str, EmbeddingSpace], list[float]] = {}
        self._counter = 0

    def __len__(self) -> int:
        return len(self._vectors)

    def new_id(self) -> str:
        """Mint the next id. Ids increase monotonically until `clear()`."""
        self._counter += 1
        return f"emb_{self._counter}"

    def put(self, embedding_id: str, space: EmbeddingSpace, vector: list[float]) -> None:
        """Store a vector. Rejects vectors of the wrong dimensionality."""
        if len(vector) != space.dimensions:
            raise ValueError(
                f"{space.value} vector must have {space.dimensions} dimensions, "
                f"got {len(vector)}"
            )
        self._vectors[(embedding_id, space)] = vector

    def get(self, embedding_id: str, space: EmbeddingSpace) -> list[float] | None:
        """Return the vector, or None when absent."""
        return self._vectors.get((embedding_id, space))

    def require(
        self,
        embedding_id: str,
        space: EmbeddingSpace,
        message: str | None = None,
    ) -> list[float]:
        """Return the vector or raise EmbeddingNotFoundError."""
        vector = self.get(embedding_id, space)
        if vector is None:
            raise EmbeddingNotFoundError(
                message
                or f"{space.dimensions}D embedding not found in cache for ID: {embedding_id}"
            )
        return vector

    def clear(self) -> None:
        """Drop every vector and reset the id counter. Idempotent."""
        self._vectors.clear()
        self._counter = 0
        logger.debug("Embedding cache cleared")
