# =============================================================================
# Response Validator — Free Text → Validated Schema
# =============================================================================
#
# Agents answer in prose that contains one JSON object. Extraction takes the
# span from the first "{" to the last "}" and parses it; nothing more
# lenient (no trailing-comma repair, no code-fence guessing).
#
# KNOWN LIMITATION: a stray "}" in commentary after the object, or prose
# braces before it, widens the span and the parse fails. Such output is
# reported, not repaired.
#
# Validation collects every pydantic error into one ResponseValidationError
# so a single failure report lists all violated fields.
# =============================================================================

from __future__ import annotations

import json
import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from nursing_rag.exceptions import ResponseParseError, ResponseValidationError
from nursing_rag.models.responses import (
    ClassificationOutput,
    GradingOutput,
    SolutionOutput,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def extract_json_object(text: str) -> dict[str, Any]:
    """
    Parse the JSON object embedded in `text`.

    Raises:
        ResponseParseError: No braces, invalid JSON, or a non-object value.
            The error carries the raw text.
    """
    candidate = text.strip()
    start = candidate.find("{")
    end = candidate.rfind("}")
    if start != -1 and end > start:
        candidate = candidate[start:end + 1]

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse agent response as JSON: %s", text[:500])
        raise ResponseParseError(f"Invalid JSON response from agent: {e}", text) from e

    if not isinstance(parsed, dict):
        raise ResponseParseError(
            f"Expected a JSON object, got {type(parsed).__name__}", text
        )
    return parsed


def _format_errors(error: ValidationError) -> list[str]:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "<root>"
        messages.append(f"Property '{location}': {item['msg']}")
    return messages


def validate_payload(payload: dict[str, Any], model: type[M]) -> M:
    """Validate a parsed object, reporting every violated field at once."""
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        errors = _format_errors(e)
        logger.error("Response validation failed: %s", "; ".join(errors))
        raise ResponseValidationError(errors) from e


def parse_solution(text: str) -> SolutionOutput:
    return validate_payload(extract_json_object(text), SolutionOutput)


def parse_grading(text: str) -> GradingOutput:
    return validate_payload(extract_json_object(text), GradingOutput)


def parse_classification(text: str) -> ClassificationOutput:
    return validate_payload(extract_json_object(text), ClassificationOutput)
