# =============================================================================
# Difficulty Grader
# =============================================================================
#
# One plain completion (no tools): question + options + solution in,
# {"difficultyRating": "easy" | "medium" | "hard"} out. The output goes
# through the same first/last-brace parser as the solution agent.
# =============================================================================

from __future__ import annotations

import logging

from nursing_rag.agents.prompts import (
    DIFFICULTY_GRADING_PROMPT,
    IMAGE_GRADING_NOTE,
    images_context,
)
from nursing_rag.agents.validator import parse_grading
from nursing_rag.exceptions import GenerationError
from nursing_rag.models.requests import ServicableQuestion
from nursing_rag.models.responses import GradingOutput
from nursing_rag.services.llm import LLMProvider, get_llm_provider

logger = logging.getLogger(__name__)


class DifficultyGrader:
    def __init__(self, llm: LLMProvider | None = None) -> None:
        self._llm = llm

    async def grade_question(
        self,
        question: ServicableQuestion,
        solution_description: str,
    ) -> GradingOutput:
        """
        Rate how hard `question` is, given its worked solution.

        Raises:
            GenerationError: LLM failure, unparsable or invalid rating.
        """
        logger.info("Grading difficulty for question: %s...", question.question[:100])

        has_images = bool(question.images)
        system_prompt = DIFFICULTY_GRADING_PROMPT.format(
            image_note=IMAGE_GRADING_NOTE if has_images else "",
        ) + images_context(len(question.images))

        user_prompt = (
            f"Question: {question.question}\n\n"
            f"Options: " + "\n".join(question.options) + "\n\n"
            f"Solution: {solution_description}"
        )

        try:
            llm = self._llm or get_llm_provider()
            response = await llm.complete(
                messages=[{"role": "user", "content": user_prompt}],
                system=system_prompt,
            )
            grading = parse_grading(response.content)
        except Exception as e:
            logger.error("Failed to grade question difficulty: %s", e)
            raise GenerationError(f"Failed to grade question difficulty: {e}") from e

        logger.info("Difficulty graded: %s", grading.difficulty_rating)
        return grading
