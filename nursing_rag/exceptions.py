# =============================================================================
# Domain Errors
# =============================================================================
#
# Four families of failure, each handled differently:
#
#   Transient infrastructure → retried, then RetryExhaustedError
#   Usage errors             → never retried (UsageError subclasses)
#   Model-output errors      → ResponseParseError / ResponseValidationError
#   Timeouts                 → ToolTimeoutError / AgentTimeoutError
#
# The public entry points (generate, grade_question, classify_question) wrap
# every internal failure in GenerationError, so callers handle one shape.
# =============================================================================

from __future__ import annotations


class SolutionServiceError(Exception):
    """Base class for every error raised by this package."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# Transient infrastructure
# ---------------------------------------------------------------------------


class RetryExhaustedError(SolutionServiceError):
    """An operation kept failing until its retry budget ran out."""

    def __init__(self, label: str, attempts: int, last_error: BaseException) -> None:
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{label} failed after {attempts} attempts: {last_error}"
        )


class EmbeddingServiceError(SolutionServiceError):
    """The embedding provider failed or returned a malformed vector."""


class ToolTimeoutError(SolutionServiceError):
    """A single tool call exceeded its time box."""


class AgentTimeoutError(SolutionServiceError):
    """The whole agent run exceeded its wall-clock budget."""


# ---------------------------------------------------------------------------
# Usage errors (contract violations, never retried)
# ---------------------------------------------------------------------------


class UsageError(SolutionServiceError):
    """A caller broke a contract. Retrying cannot help."""


class EmbeddingNotFoundError(UsageError):
    """No cached vector exists for an embedding id / dimensionality pair."""


class UnknownToolError(UsageError):
    """The model asked for a tool that is not registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown function: {name}")


class ToolArgumentError(UsageError):
    """Tool arguments were not valid JSON or did not match the schema."""


# ---------------------------------------------------------------------------
# Model-output errors
# ---------------------------------------------------------------------------


class AgentIterationError(SolutionServiceError):
    """The agent stopped without producing any usable text."""


class ResponseParseError(SolutionServiceError):
    """Model output did not contain a parseable JSON object."""

    def __init__(self, message: str, raw_text: str) -> None:
        self.raw_text = raw_text
        super().__init__(f"{message}. Raw output: {raw_text[:500]!r}")


class ResponseValidationError(SolutionServiceError):
    """Parsed output violated the schema. Lists every violated field."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__("Validation failed: " + "; ".join(errors))


# ---------------------------------------------------------------------------
# Collaborator errors
# ---------------------------------------------------------------------------


class ApiRequestError(SolutionServiceError):
    """The classification-tags HTTP API could not be used."""

    def __init__(self, message: str, status_code: int | None = 502) -> None:
        self.status_code = status_code or 502
        super().__init__(message)


class GenerationError(SolutionServiceError):
    """Single domain-level failure raised by the public entry points."""
