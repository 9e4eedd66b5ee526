# =============================================================================
# Unit Tests — Embedding Service
# =============================================================================

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from nursing_rag.services.embedder import OpenAIEmbedder


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _client(vector):
    client = MagicMock()
    client.embeddings.create = AsyncMock(return_value=SimpleNamespace(
        data=[SimpleNamespace(embedding=vector)],
        usage=SimpleNamespace(prompt_tokens=3),
    ))
    return client


class TestOpenAIEmbedder:
    def test_requests_configured_dimensions(self):
        client = _client([0.25] * 8)
        embedder = OpenAIEmbedder(8, model="text-embedding-3-large", client=client)

        vector = _run(embedder.embed("peaked T waves"))

        assert vector == [0.25] * 8
        client.embeddings.create.assert_awaited_once_with(
            model="text-embedding-3-large",
            input=["peaked T waves"],
            dimensions=8,
        )

    def test_one_model_two_sizes(self):
        client = _client([0.0])
        _run(OpenAIEmbedder(3072, client=client).embed("q"))
        _run(OpenAIEmbedder(1536, client=client).embed("q"))

        sizes = [call.kwargs["dimensions"] for call in client.embeddings.create.await_args_list]
        assert sizes == [3072, 1536]
