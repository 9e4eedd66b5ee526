# =============================================================================
# API Request Models — Pydantic V2 Schemas
# =============================================================================
#
# Shape of data coming INTO the service. FastAPI turns any violation into
# a 422 before the pipeline runs.
#
# A servicable question is the stem, exactly four answer options and any
# images already extracted from markdown by the caller. Image bytes are
# carried through untouched; the agents only see how many there are.
# =============================================================================

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ExtractedImage(BaseModel):
    """An image pulled out of the question markdown, base64 encoded."""

    mime_type: str = Field(..., alias="mimeType", examples=["image/png"])
    data: str = Field(..., description="Base64-encoded image bytes")
    original_url: str = Field(..., alias="originalUrl")
    alt_text: str | None = Field(default=None, alias="altText")

    model_config = ConfigDict(populate_by_name=True)


class ServicableQuestion(BaseModel):
    """
    Request body for POST /solution-generation/generate.

    Example:
        {
            "question": "Which electrolyte imbalance causes peaked T waves?",
            "options": ["Hypokalemia", "Hyperkalemia", "Hyponatremia", "Hypercalcemia"]
        }
    """

    question: str = Field(
        ...,
        min_length=1,
        description="The question stem",
    )
    options: list[str] = Field(
        ...,
        description="Exactly four answer options, in display order (A-D)",
    )
    images: list[ExtractedImage] = Field(
        default_factory=list,
        description="Images extracted from the question or options",
    )

    @field_validator("question")
    @classmethod
    def _question_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("question must not be blank")
        return value

    @field_validator("options")
    @classmethod
    def _four_non_empty_options(cls, value: list[str]) -> list[str]:
        if len(value) != 4:
            raise ValueError("Exactly 4 options are required")
        if any(not option.strip() for option in value):
            raise ValueError("Options must be non-empty strings")
        return value

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "question": "Which electrolyte imbalance causes peaked T waves?",
                    "options": [
                        "Hypokalemia",
                        "Hyperkalemia",
                        "Hyponatremia",
                        "Hypercalcemia",
                    ],
                }
            ]
        }
    )
