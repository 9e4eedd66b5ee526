# =============================================================================
# Unit Tests — Embedding Cache
# =============================================================================

from __future__ import annotations

import pytest

from nursing_rag.exceptions import EmbeddingNotFoundError
from nursing_rag.services.embedding_cache import EmbeddingCache, EmbeddingSpace

BOOKS_DIM = 3072
VIDEOS_DIM = 1536


def _pair(cache: EmbeddingCache) -> str:
    embedding_id = cache.new_id()
    cache.put(embedding_id, EmbeddingSpace.BOOKS, [0.1] * BOOKS_DIM)
    cache.put(embedding_id, EmbeddingSpace.VIDEOS, [0.2] * VIDEOS_DIM)
    return embedding_id


class TestEmbeddingCache:
    """Composite (id, space) keys, id minting and reset."""

    def test_ids_increase_monotonically(self):
        cache = EmbeddingCache()
        assert [cache.new_id() for _ in range(3)] == ["emb_1", "emb_2", "emb_3"]

    def test_each_space_returns_its_own_vector(self):
        cache = EmbeddingCache()
        embedding_id = _pair(cache)

        books = cache.get(embedding_id, EmbeddingSpace.BOOKS)
        videos = cache.get(embedding_id, EmbeddingSpace.VIDEOS)
        assert len(books) == BOOKS_DIM
        assert len(videos) == VIDEOS_DIM
        assert books[0] == 0.1
        assert videos[0] == 0.2
        assert len(cache) == 2

    def test_missing_space_is_not_substituted(self):
        cache = EmbeddingCache()
        embedding_id = cache.new_id()
        cache.put(embedding_id, EmbeddingSpace.BOOKS, [0.0] * BOOKS_DIM)

        assert cache.get(embedding_id, EmbeddingSpace.VIDEOS) is None
        with pytest.raises(EmbeddingNotFoundError, match="1536D embedding not found"):
            cache.require(embedding_id, EmbeddingSpace.VIDEOS)

    def test_require_uses_custom_message(self):
        cache = EmbeddingCache()
        with pytest.raises(EmbeddingNotFoundError, match="run the embedding first"):
            cache.require("emb_9", EmbeddingSpace.BOOKS, message="run the embedding first")

    def test_rejects_wrong_dimensionality(self):
        cache = EmbeddingCache()
        with pytest.raises(ValueError, match="3072"):
            cache.put("emb_1", EmbeddingSpace.BOOKS, [0.0] * VIDEOS_DIM)

    def test_clear_forgets_vectors_and_resets_counter(self):
        cache = EmbeddingCache()
        embedding_id = _pair(cache)

        cache.clear()
        assert cache.get(embedding_id, EmbeddingSpace.BOOKS) is None
        assert cache.get(embedding_id, EmbeddingSpace.VIDEOS) is None
        assert len(cache) == 0
        assert cache.new_id() == "emb_1"

    def test_clear_is_idempotent(self):
        cache = EmbeddingCache()
        _pair(cache)
        cache.clear()
        cache.clear()
        assert len(cache) == 0

    def test_space_dimensions_follow_settings(self):
        assert EmbeddingSpace.BOOKS.dimensions == BOOKS_DIM
        assert EmbeddingSpace.VIDEOS.dimensions == VIDEOS_DIM
