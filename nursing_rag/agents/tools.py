# =============================================================================
# Agent Tools — Registry & Retrieval Toolkit
# =============================================================================
#
# A tool is a (name, description, argument model, async handler) record.
# The registry resolves the model's requested tool by exact name match;
# an unknown name is a UsageError, never a silent no-op.
#
# RETRIEVAL TOOLKIT (one instance per `generate` call):
#
#   generate_embedding(text)
#       ├── books embedder  (3072D) ─┐  concurrent, each retried
#       └── videos embedder (1536D) ─┘  → EmbeddingCache → {"embeddingId": ...}
#   vector_search(embedding_id, limit≤4)  → textbook passages as text
#   video_search(embedding_id, limit≤5)   → video segments as text
#
# DESIGN DECISION: Raw vectors never leave the cache.
# The model only ever sees an opaque id, which keeps the conversation small
# and keeps vectors out of the transcript.
#
# DESIGN DECISION: Copy-paste reference templates.
# The model must reproduce reference metadata verbatim in its final JSON,
# so each search result carries a ready-made JSON snippet instead of
# leaving the model to reconstruct it from prose.
# =============================================================================

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from pydantic import BaseModel, Field, ValidationError

from nursing_rag.config import settings
from nursing_rag.exceptions import (
    EmbeddingServiceError,
    ToolArgumentError,
    ToolTimeoutError,
    UnknownToolError,
)
from nursing_rag.services.embedder import EmbeddingProvider
from nursing_rag.services.embedding_cache import EmbeddingCache, EmbeddingSpace
from nursing_rag.services.retry import retry_async, run_with_timeout
from nursing_rag.services.vectorstore import (
    BookStore,
    RetrievedPassage,
    RetrievedVideoSegment,
    VideoStore,
)

logger = logging.getLogger(__name__)

NO_VIDEOS_FOUND = (
    "No relevant videos found. The video database may be empty or the "
    "search terms may be too specific."
)


# ---------------------------------------------------------------------------
# Tool Registry
# ---------------------------------------------------------------------------


@dataclass
class ToolSpec:
    """One capability exposed to the agent."""

    name: str
    description: str
    args_model: type[BaseModel]
    handler: Callable[[BaseModel], Awaitable[str]]

    def openai_schema(self) -> dict:
        """OpenAI function-calling schema built from the argument model."""
        parameters = self.args_model.model_json_schema()
        parameters.pop("title", None)
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": parameters,
            },
        }


class ToolRegistry:
    """Closed mapping of tool name → ToolSpec."""

    def __init__(self, tools: list[ToolSpec] | None = None) -> None:
        self._tools: dict[str, ToolSpec] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: ToolSpec) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def schemas(self) -> list[dict]:
        return [tool.openai_schema() for tool in self._tools.values()]

    async def dispatch(self, name: str, raw_arguments: str) -> str:
        """
        Validate arguments and run the named tool.

        Raises:
            UnknownToolError: No tool is registered under `name`.
            ToolArgumentError: Arguments are not JSON or fail validation.
        """
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name)

        try:
            payload = json.loads(raw_arguments or "{}")
        except json.JSONDecodeError as e:
            raise ToolArgumentError(
                f"Arguments for {name} are not valid JSON: {e}"
            ) from e

        try:
            args = tool.args_model.model_validate(payload)
        except ValidationError as e:
            raise ToolArgumentError(f"Invalid arguments for {name}: {e}") from e

        logger.info("Tool call: %s(%s)", name, (raw_arguments or "")[:120])
        return await tool.handler(args)


# ---------------------------------------------------------------------------
# Argument Models
# ---------------------------------------------------------------------------


class GenerateEmbeddingArgs(BaseModel):
    text: str = Field(
        description=(
            "The text to generate embeddings for (usually the question or "
            "key concepts from the question)"
        ),
    )


class VectorSearchArgs(BaseModel):
    embedding_id: str = Field(
        description="The embedding ID returned from generate_embedding",
    )
    limit: int | None = Field(
        default=None,
        description="Maximum number of results to return (default and maximum: 4)",
    )


class VideoSearchArgs(BaseModel):
    embedding_id: str = Field(
        description="Embedding ID from generate_embedding (format: emb_N)",
    )
    limit: int | None = Field(
        default=None,
        description="Number of videos to retrieve (1-5, default: 4)",
    )


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def truncate_content(content: str, max_chars: int) -> str:
    """Cut to `max_chars` and append '...' when anything was removed."""
    if not content or len(content) <= max_chars:
        return content
    return content[:max_chars] + "..."


def _indent(block: str, prefix: str = "  ") -> str:
    return "\n".join(prefix + line for line in block.splitlines())


def format_passages(passages: list[RetrievedPassage]) -> str:
    entries = []
    for rank, passage in enumerate(passages, start=1):
        reference = json.dumps(
            {
                "book_title": passage.book_title,
                "book_id": passage.book_id,
                "page_start": passage.page_start,
                "page_end": passage.page_end,
            },
            indent=2,
        )
        entries.append(
            f"{rank}. [Score: {passage.similarity_score:.3f}]\n"
            f'  Book: "{passage.book_title}"\n'
            f'  Book ID: "{passage.book_id}"\n'
            f"  Pages: {passage.page_start} - {passage.page_end}\n"
            f"\n"
            f"  **FULL CONTENT:**\n"
            f"  {passage.content}\n"
            f"\n"
            f"  **Reference to include in JSON:**\n"
            f"{_indent(reference)}"
        )

    return (
        f"Found {len(passages)} relevant textbook documents. **IMPORTANT: Use "
        f'this source information for your "references" field in the JSON '
        f"output.**\n\n"
        + "\n\n".join(entries)
        + '\n\n**CRITICAL: Include ALL these references in your JSON output '
        '"references" array using the exact format shown above.**'
    )


def format_video_segments(segments: list[RetrievedVideoSegment]) -> str:
    if not segments:
        return NO_VIDEOS_FOUND

    entries = []
    for rank, segment in enumerate(segments, start=1):
        reference = json.dumps(
            {
                "video_id": segment.video_id,
                "time_start": segment.time_start,
                "time_end": segment.time_end,
            },
            indent=2,
        )
        entries.append(
            f"{rank}. [Score: {segment.similarity_score:.3f}]\n"
            f"  Video ID: {segment.video_id}\n"
            f"  Time Range: {segment.time_start} - {segment.time_end}\n"
            f"\n"
            f"  **FULL VIDEO CONTENT/TRANSCRIPT:**\n"
            f"  {segment.content}\n"
            f"\n"
            f"  **Video Reference to include in JSON:**\n"
            f"{_indent(reference)}"
        )

    return (
        f"Found {len(segments)} relevant video content. **IMPORTANT: Use this "
        f'video information for your "video_references" field in the JSON '
        f"output.**\n\n"
        + "\n\n".join(entries)
        + '\n\n**CRITICAL: Include ALL these video references in your JSON '
        'output "video_references" array. This is required for proper video '
        "citation.**"
    )


# ---------------------------------------------------------------------------
# Retrieval Toolkit
# ---------------------------------------------------------------------------


class RetrievalToolkit:
    """
    The three retrieval tools bound to one request's EmbeddingCache.

    Tunables default to settings; tests pass `pre_call_delay_ms=0`.
    """

    def __init__(
        self,
        cache: EmbeddingCache,
        books_embedder: EmbeddingProvider,
        videos_embedder: EmbeddingProvider,
        book_store: BookStore,
        video_store: VideoStore,
        pre_call_delay_ms: int | None = None,
        search_timeout_seconds: float | None = None,
    ) -> None:
        self.cache = cache
        self._books_embedder = books_embedder
        self._videos_embedder = videos_embedder
        self._book_store = book_store
        self._video_store = video_store
        self._pre_call_delay_ms = (
            pre_call_delay_ms
            if pre_call_delay_ms is not None
            else settings.search_pre_call_delay_ms
        )
        self._search_timeout = (
            search_timeout_seconds
            if search_timeout_seconds is not None
            else settings.search_timeout_seconds
        )

    def registry(self) -> ToolRegistry:
        return ToolRegistry([
            ToolSpec(
                name="generate_embedding",
                description=(
                    "Generate embedding vectors for a text query to search through "
                    "both nursing textbooks (3072D) and video lectures (1536D). "
                    "Returns an embedding ID, never the vectors."
                ),
                args_model=GenerateEmbeddingArgs,
                handler=self._generate_embedding_tool,
            ),
            ToolSpec(
                name="vector_search",
                description=(
                    "Search through the nursing textbook database using a cached "
                    "embedding ID to find relevant context"
                ),
                args_model=VectorSearchArgs,
                handler=self._vector_search_tool,
            ),
            ToolSpec(
                name="video_search",
                description=(
                    "Search for relevant video lecture content using a cached "
                    "embedding ID. Use when you need video references."
                ),
                args_model=VideoSearchArgs,
                handler=self._video_search_tool,
            ),
        ])

    # -- handlers ------------------------------------------------------------

    async def _generate_embedding_tool(self, args: GenerateEmbeddingArgs) -> str:
        result = await self.generate_embedding(args.text)
        return json.dumps(result)

    async def _vector_search_tool(self, args: VectorSearchArgs) -> str:
        return await self.vector_search(args.embedding_id, args.limit)

    async def _video_search_tool(self, args: VideoSearchArgs) -> str:
        return await self.video_search(args.embedding_id, args.limit)

    # -- operations ----------------------------------------------------------

    async def generate_embedding(self, text: str) -> dict:
        """
        Embed `text` in both spaces and cache the pair under a new id.

        The id is minted only after both sub-calls succeed, so a failed
        call leaves no half-populated entry behind.

        Raises:
            EmbeddingServiceError: A sub-call exhausted its retries or
                returned a vector of the wrong size.
        """
        label = f"Embedding Generation ({text[:30]}...)"
        try:
            async with asyncio.TaskGroup() as group:
                books_task = group.create_task(retry_async(
                    lambda: self._books_embedder.embed(text),
                    f"{label} [books]",
                    settings.embedding_max_attempts,
                    settings.embedding_base_delay_ms,
                ))
                videos_task = group.create_task(retry_async(
                    lambda: self._videos_embedder.embed(text),
                    f"{label} [videos]",
                    settings.embedding_max_attempts,
                    settings.embedding_base_delay_ms,
                ))
        except ExceptionGroup as group_error:
            # The first failure cancels its sibling; both are done here.
            first = group_error.exceptions[0]
            raise EmbeddingServiceError(f"Embedding generation failed: {first}") from first
        books_vector, videos_vector = books_task.result(), videos_task.result()

        for space, vector in (
            (EmbeddingSpace.BOOKS, books_vector),
            (EmbeddingSpace.VIDEOS, videos_vector),
        ):
            if len(vector) != space.dimensions:
                raise EmbeddingServiceError(
                    f"Embedding provider returned {len(vector)} dimensions for "
                    f"{space.value}, expected {space.dimensions}"
                )

        embedding_id = self.cache.new_id()
        self.cache.put(embedding_id, EmbeddingSpace.BOOKS, books_vector)
        self.cache.put(embedding_id, EmbeddingSpace.VIDEOS, videos_vector)

        logger.info(
            "Generated dual embeddings: %dD (books) and %dD (videos), cached as %s",
            len(books_vector), len(videos_vector), embedding_id,
        )
        return {
            "embeddingId": embedding_id,
            "dimensions": {"books": len(books_vector), "videos": len(videos_vector)},
            "message": (
                f"Dual embeddings generated and cached as {embedding_id}: "
                f"{len(books_vector)}D for books, {len(videos_vector)}D for videos"
            ),
        }

    async def vector_search(self, embedding_id: str, limit: int | None = None) -> str:
        """
        Textbook similarity search, formatted for the agent.

        Raises:
            EmbeddingNotFoundError: No 3072D vector for `embedding_id`.
            RetryExhaustedError: The store kept failing or timing out.
        """
        vector = self.cache.require(embedding_id, EmbeddingSpace.BOOKS)
        cap = settings.book_search_max_results
        capped_limit = max(1, min(limit or cap, cap))

        logger.info(
            "Textbook search with %s (%dD), limit: %d",
            embedding_id, len(vector), capped_limit,
        )
        await self._pre_call_delay()

        passages = await retry_async(
            lambda: run_with_timeout(
                self._book_store.search(vector, capped_limit, {}),
                self._search_timeout,
                ToolTimeoutError,
                f"Vector search timeout after {self._search_timeout:g}s",
            ),
            f"Vector Search for {embedding_id}",
            settings.search_max_attempts,
            settings.search_base_delay_ms,
        )

        passages = [
            RetrievedPassage(
                source_id=p.source_id,
                content=truncate_content(p.content, settings.passage_max_chars),
                book_title=p.book_title,
                book_id=p.book_id,
                page_start=p.page_start,
                page_end=p.page_end,
                similarity_score=p.similarity_score,
                chapter=p.chapter,
                paragraph_number=p.paragraph_number,
            )
            for p in passages[:capped_limit]
        ]
        logger.info("Found %d textbook passages using %s", len(passages), embedding_id)
        return format_passages(passages)

    async def video_search(self, embedding_id: str, limit: int | None = None) -> str:
        """
        Video transcript search, formatted for the agent.

        Zero matches is a normal outcome and yields NO_VIDEOS_FOUND.
        """
        vector = self.cache.require(
            embedding_id,
            EmbeddingSpace.VIDEOS,
            message=(
                f"Embedding {embedding_id} not found in cache. "
                "Please use generate_embedding first."
            ),
        )
        requested = limit or settings.video_search_default_results
        capped_limit = max(1, min(requested, settings.video_search_max_results))

        logger.info(
            "Video search with %s (%dD halfvec), limit: %d",
            embedding_id, len(vector), capped_limit,
        )
        await self._pre_call_delay()

        segments = await retry_async(
            lambda: run_with_timeout(
                self._video_store.search(vector, capped_limit),
                self._search_timeout,
                ToolTimeoutError,
                f"Video search timeout after {self._search_timeout:g}s",
            ),
            f"Video Search for {embedding_id}",
            settings.search_max_attempts,
            settings.search_base_delay_ms,
        )

        logger.info("Found %d relevant videos using %s", len(segments), embedding_id)
        return format_video_segments(segments[:capped_limit])

    async def _pre_call_delay(self) -> None:
        if self._pre_call_delay_ms > 0:
            await asyncio.sleep(self._pre_call_delay_ms / 1000)
