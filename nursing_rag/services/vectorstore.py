# =============================================================================
# Knowledge Base Stores — Textbook Passages & Video Segments
# =============================================================================
#
# Two independently dimensioned indexes live in one PostgreSQL database:
#
#   BookStore  → match_documents(vector(3072), count, jsonb filter)
#   VideoStore → video_recordings.embedding_half halfvec(1536)
#
# DESIGN DECISION: Protocol (structural typing) over ABC.
# The retrieval tools only need `search()`; tests hand in AsyncMock fakes
# without touching a database.
#
# Neither store retries or time-boxes. The retrieval tools wrap each
# search in `retry_async` + `run_with_timeout` with the search policy.
#
# ARCHITECTURE:
#   BookStore (Protocol)  ── PgBookStore   — database function call
#   VideoStore (Protocol) ── PgVideoStore  — ORM query, halfvec cosine distance
#   verify_store_connection()              — startup probe
# =============================================================================

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from pgvector.sqlalchemy import Vector
from sqlalchemy import bindparam, select, text

from nursing_rag.config import settings
from nursing_rag.db.engine import async_session_factory
from nursing_rag.db.models import VideoRecording

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class RetrievedPassage:
    """One textbook passage returned by similarity search."""

    source_id: str
    content: str
    book_title: str
    book_id: str
    page_start: int
    page_end: int
    similarity_score: float  # higher = more relevant
    chapter: str | None = None
    paragraph_number: int | None = None


@dataclass
class RetrievedVideoSegment:
    """One video transcript segment returned by similarity search."""

    video_id: str
    time_start: str
    time_end: str
    content: str
    similarity_score: float


# ---------------------------------------------------------------------------
# Protocol Definitions
# ---------------------------------------------------------------------------


class BookStore(Protocol):
    async def search(
        self,
        query_embedding: list[float],
        limit: int,
        metadata_filter: dict | None = None,
    ) -> list[RetrievedPassage]:
        """Return up to `limit` passages, highest similarity first."""
        ...


class VideoStore(Protocol):
    async def search(
        self,
        query_embedding: list[float],
        limit: int,
    ) -> list[RetrievedVideoSegment]:
        """Return up to `limit` segments, highest similarity first."""
        ...


# ---------------------------------------------------------------------------
# Row normalisation
# ---------------------------------------------------------------------------


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def passage_from_row(
    row_id: Any,
    content: str | None,
    metadata: dict | str | None,
    similarity: float | None,
) -> RetrievedPassage:
    """
    Normalise one `match_documents` row.

    Metadata was written by several ingestion runs, so keys vary:
    `book_title` or `book`, `page_start`/`page_end` or a single
    `page_number`. jsonb may arrive as text when no codec is registered.
    """
    if isinstance(metadata, str):
        metadata = json.loads(metadata) if metadata else {}
    meta = metadata or {}

    page_number = meta.get("page_number")
    return RetrievedPassage(
        source_id=str(row_id),
        content=content or "",
        book_title=meta.get("book_title") or meta.get("book") or "Unknown",
        book_id=str(meta.get("book_id") or "unknown"),
        page_start=_as_int(meta.get("page_start") or page_number),
        page_end=_as_int(meta.get("page_end") or page_number),
        similarity_score=float(similarity or 0.0),
        chapter=meta.get("chapter"),
        paragraph_number=meta.get("paragraph_number"),
    )


# ---------------------------------------------------------------------------
# Implementation: textbook passages (match_documents)
# ---------------------------------------------------------------------------

_MATCH_DOCUMENTS = text(
    "SELECT * FROM match_documents("
    "CAST(:query_embedding AS vector), :match_count, CAST(:filter AS jsonb))"
).bindparams(
    bindparam(
        "query_embedding",
        type_=Vector(settings.books_embedding_dimensions),
    ),
)


class PgBookStore:
    """Textbook search through the `match_documents` database function."""

    async def search(
        self,
        query_embedding: list[float],
        limit: int,
        metadata_filter: dict | None = None,
    ) -> list[RetrievedPassage]:
        async with async_session_factory() as session:
            result = await session.execute(
                _MATCH_DOCUMENTS,
                {
                    "query_embedding": query_embedding,
                    "match_count": limit,
                    "filter": json.dumps(metadata_filter or {}),
                },
            )
            rows = result.mappings().all()

        passages = [
            passage_from_row(
                row.get("id"),
                row.get("content"),
                row.get("metadata"),
                row.get("similarity"),
            )
            for row in rows
        ]
        passages.sort(key=lambda p: p.similarity_score, reverse=True)

        logger.debug(
            "Textbook search returned %d rows (limit=%d)", len(passages), limit
        )
        return passages


# ---------------------------------------------------------------------------
# Implementation: video segments (halfvec cosine distance)
# ---------------------------------------------------------------------------


class PgVideoStore:
    """
    Video transcript search over `video_recordings.embedding_half`.

    pgvector's cosine_distance() returns values in [0, 2]; the score is
    1 - distance, so ordering by distance ascending is score descending.
    """

    async def search(
        self,
        query_embedding: list[float],
        limit: int,
    ) -> list[RetrievedVideoSegment]:
        distance = VideoRecording.embedding_half.cosine_distance(query_embedding)

        async with async_session_factory() as session:
            stmt = (
                select(VideoRecording, distance.label("distance"))
                .where(VideoRecording.embedding_half.is_not(None))
                .order_by(distance)
                .limit(limit)
            )
            result = await session.execute(stmt)
            rows = result.all()

        logger.debug("Video search returned %d rows (limit=%d)", len(rows), limit)

        return [
            RetrievedVideoSegment(
                video_id=recording.video_id,
                time_start=recording.time_start,
                time_end=recording.time_end,
                content=recording.content or recording.transcript or "",
                similarity_score=1.0 - float(dist),
            )
            for recording, dist in rows
        ]


# ---------------------------------------------------------------------------
# Startup probe
# ---------------------------------------------------------------------------


async def verify_store_connection() -> None:
    """
    Check that the knowledge base is reachable and shaped as expected.

    Raises:
        RuntimeError: If the vector extension, the match_documents function
            or the video_recordings table is missing.
        sqlalchemy.exc.DBAPIError: If the database cannot be reached.
    """
    async with async_session_factory() as session:
        now = (await session.execute(text("SELECT now()"))).scalar_one()
        logger.info("Knowledge base reachable (server time %s)", now)

        has_vector = (await session.execute(text(
            "SELECT EXISTS (SELECT 1 FROM pg_extension WHERE extname = 'vector')"
        ))).scalar_one()
        if not has_vector:
            raise RuntimeError("pgvector extension is not installed")

        has_function = (await session.execute(text(
            "SELECT EXISTS (SELECT 1 FROM pg_proc WHERE proname = 'match_documents')"
        ))).scalar_one()
        if not has_function:
            raise RuntimeError("match_documents function is missing")

        video_table = (await session.execute(text(
            "SELECT to_regclass('video_recordings')"
        ))).scalar_one()
        if video_table is None:
            raise RuntimeError("video_recordings table is missing")
