# =============================================================================
# Database Models — SQLAlchemy ORM
# =============================================================================
#
# Only the video index is mapped. Textbook passages are reached through the
# `match_documents(vector, int, jsonb)` database function, whose result
# columns are (id, content, metadata, similarity); see services/vectorstore.
#
# ┌──────────────────────────────────────┐
# │  video_recordings                    │
# ├──────────────────────────────────────┤
# │ id (PK)                              │
# │ video_id (text)                      │
# │ time_start / time_end (text)         │
# │ content (text, nullable)             │
# │ transcript (text, nullable)          │
# │ embedding_half (halfvec(1536))       │
# │ metadata (jsonb)                     │
# └──────────────────────────────────────┘
#
# The half-precision column halves index size; cosine distance on it is
# close enough for ranking transcript segments.
# =============================================================================

from pgvector.sqlalchemy import HALFVEC
from sqlalchemy import Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from nursing_rag.config import settings


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class."""

    pass


class VideoRecording(Base):
    """
    One transcript segment of a lecture video.

    Either `content` or `transcript` carries the text, depending on which
    ingestion run produced the row.
    """

    __tablename__ = "video_recordings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    video_id: Mapped[str] = mapped_column(String(255), nullable=False)
    time_start: Mapped[str] = mapped_column(String(32), nullable=False)
    time_end: Mapped[str] = mapped_column(String(32), nullable=False)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    transcript: Mapped[str | None] = mapped_column(Text, nullable=True)
    embedding_half = mapped_column(
        HALFVEC(settings.videos_embedding_dimensions), nullable=True
    )
    # Trailing underscore avoids clashing with DeclarativeBase.metadata
    metadata_: Mapped[dict | None] = mapped_column(
        "metadata", JSONB, nullable=True, default=dict
    )

    def __repr__(self) -> str:
        return (
            f"<VideoRecording(id={self.id}, video_id='{self.video_id}', "
            f"{self.time_start}-{self.time_end})>"
        )
