# =============================================================================
# Solution Generation API
# =============================================================================
#
#   POST /solution-generation/generate       question → full Solution
#   POST /solution-generation/test-endpoint  echo of any JSON body, no LLM calls
#
# FLOW (generate):
#   1. FastAPI validates the body (exactly four non-empty options) → 422
#   2. SolutionPipeline: solve → (grade ‖ classify) → assemble
#   3. Domain errors map to status codes:
#        GenerationError → 503   anything else → 500
#
# The pipeline comes from the `get_pipeline` dependency so tests can swap
# it through `app.dependency_overrides`.
# =============================================================================

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from nursing_rag.agents.orchestrator import SolutionPipeline
from nursing_rag.exceptions import GenerationError
from nursing_rag.models.requests import ServicableQuestion
from nursing_rag.models.responses import EchoReceivedData, EchoResponse, Solution

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/solution-generation", tags=["Solution Generation"])

_pipeline: SolutionPipeline | None = None


def get_pipeline() -> SolutionPipeline:
    """FastAPI dependency returning the process-wide pipeline (lazy singleton)."""
    global _pipeline
    if _pipeline is None:
        _pipeline = SolutionPipeline()
    return _pipeline


@router.post(
    "/generate",
    response_model=Solution,
    summary="Answer, grade and tag a multiple-choice question",
)
async def generate_solution(
    request: ServicableQuestion,
    pipeline: SolutionPipeline = Depends(get_pipeline),
) -> Solution:
    """
    Run the full pipeline for one question.

    Error handling:
    - Invalid body → 422 (FastAPI validation)
    - Any agent, LLM, retrieval or tags API failure → 503 Service Unavailable
    """
    logger.info(
        "Generate request: question='%s', images=%d",
        request.question[:80], len(request.images),
    )

    try:
        return await pipeline.run(request)
    except GenerationError as e:
        logger.error("Solution generation failed: %s", e)
        raise HTTPException(status_code=503, detail=e.message) from e


@router.post(
    "/test-endpoint",
    response_model=EchoResponse,
    summary="Echo request shape without calling any model",
)
async def echo_request(body: dict[str, Any] | None = Body(default=None)) -> EchoResponse:
    """Accepts any JSON object; nothing is validated beyond that."""
    logger.info("Test endpoint called")
    body = body or {}
    options = body.get("options")
    images = body.get("images")
    return EchoResponse(
        message="Solution Generator module is working",
        receivedData=EchoReceivedData(
            questionProvided=bool(body.get("question")),
            optionsCount=len(options) if isinstance(options, list) else 0,
            hasImages=bool(images) if isinstance(images, list) else False,
        ),
    )
