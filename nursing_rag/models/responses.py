# =============================================================================
# Output Models — Pydantic V2 Schemas
# =============================================================================
#
# Two kinds of model live here:
#
# 1. Agent output schemas (SolutionOutput, GradingOutput,
#    ClassificationOutput). The JSON the LLM writes is validated against
#    these; see agents/validator.py.
# 2. API response models (Solution, EchoResponse, HealthResponse).
#
# DESIGN DECISION: strict ints for the answer index.
# `answer` must be a real JSON integer. Lax coercion would accept "2" or
# 2.0 and hide model drift.
# =============================================================================

from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator

Difficulty = Literal["easy", "medium", "hard"]


# ---------------------------------------------------------------------------
# Agent output schemas
# ---------------------------------------------------------------------------


class Reference(BaseModel):
    book_title: str
    book_id: str
    page_start: int
    page_end: int


class VideoReference(BaseModel):
    video_id: str
    time_start: str
    time_end: str


class ImageRequirement(BaseModel):
    is_required: bool
    image_description: str | None = None


class SolutionOutput(BaseModel):
    """Validated answer produced by the solution agent."""

    answer: Annotated[int, Field(strict=True, ge=0, le=3)] = Field(
        description="0-based index of the correct option (A-D)",
    )
    ans_description: str
    references: list[Reference]
    video_references: list[VideoReference]
    images: list[ImageRequirement]

    @field_validator("ans_description")
    @classmethod
    def _description_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Answer description cannot be empty")
        return value


class GradingOutput(BaseModel):
    difficulty_rating: Difficulty = Field(alias="difficultyRating")


class ClassificationOutput(BaseModel):
    """
    Subject / topic / category ids chosen by the tagging agent.

    The agent writes 0 when no topic or category applies; that becomes None.
    """

    subject_id: Annotated[int, Field(strict=True, gt=0)]
    topic_id: Annotated[int, Field(strict=True, gt=0)] | None = None
    category_id: Annotated[int, Field(strict=True, gt=0)] | None = None

    @field_validator("topic_id", "category_id", mode="before")
    @classmethod
    def _zero_means_none(cls, value):
        if value == 0 and not isinstance(value, bool):
            return None
        return value


# ---------------------------------------------------------------------------
# API response models
# ---------------------------------------------------------------------------


class SolutionReference(BaseModel):
    book: str
    chapter: str
    page_number: int
    paragraph_number: int


class Solution(BaseModel):
    """Response for POST /solution-generation/generate."""

    question: str
    options: list[str]
    answer: int
    ans_description: str
    references: list[SolutionReference]
    subject_id: int
    topic_id: int | None
    category_id: int | None
    difficulty: Difficulty


class EchoReceivedData(BaseModel):
    """Shape summary of whatever body the echo endpoint received."""

    questionProvided: bool
    optionsCount: int
    hasImages: bool


class EchoResponse(BaseModel):
    """Echo returned by POST /solution-generation/test-endpoint."""

    message: str
    receivedData: EchoReceivedData


class HealthResponse(BaseModel):
    """Response for GET /health — confirms the API is running."""

    status: str = "ok"
    version: str
    service: str
