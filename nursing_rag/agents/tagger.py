# =============================================================================
# Question Tagger — Subject / Topic / Category Classification Agent
# =============================================================================
#
# Same tool-calling loop as the solution agent, with a smaller budget
# (8 iterations, 60 s) and three lookup tools over the tags API:
#
#   choose_subject()            → every subject
#   choose_topic(subject_id)    → topics of that subject
#   choose_category(topic_id)   → categories of that topic (may be empty)
#
# The agent replies with {"subject_id", "topic_id", "category_id"};
# 0 for topic or category means "none" and becomes null.
#
# Every failure, tags API errors included, leaves `classify_question` as
# GenerationError chained to its cause.
# =============================================================================

from __future__ import annotations

import json
import logging
from dataclasses import asdict

from pydantic import BaseModel, Field

from nursing_rag.agents.executor import AgentExecutor
from nursing_rag.agents.prompts import QUESTION_TAGGING_PROMPT, images_context
from nursing_rag.agents.tools import ToolRegistry, ToolSpec
from nursing_rag.agents.validator import parse_classification
from nursing_rag.config import settings
from nursing_rag.exceptions import GenerationError
from nursing_rag.models.requests import ServicableQuestion
from nursing_rag.models.responses import ClassificationOutput
from nursing_rag.services.llm import LLMProvider, get_llm_provider
from nursing_rag.services.taxonomy import TaxonomyClient

logger = logging.getLogger(__name__)


class ChooseSubjectArgs(BaseModel):
    pass


class ChooseTopicArgs(BaseModel):
    subject_id: int = Field(description="The ID of the subject to get topics for")


class ChooseCategoryArgs(BaseModel):
    topic_id: int = Field(description="The ID of the topic to get categories for")


class QuestionTagger:
    def __init__(
        self,
        llm: LLMProvider | None = None,
        taxonomy: TaxonomyClient | None = None,
        max_iterations: int | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._llm = llm
        self._taxonomy = taxonomy or TaxonomyClient()
        self._max_iterations = max_iterations or settings.classification_max_iterations
        self._timeout_seconds = (
            timeout_seconds or settings.classification_timeout_seconds
        )

    def registry(self) -> ToolRegistry:
        return ToolRegistry([
            ToolSpec(
                name="choose_subject",
                description=(
                    "Get a list of all available subjects to choose from for "
                    "question classification"
                ),
                args_model=ChooseSubjectArgs,
                handler=self._choose_subject,
            ),
            ToolSpec(
                name="choose_topic",
                description=(
                    "Get a list of topics available for a specific subject to "
                    "choose from"
                ),
                args_model=ChooseTopicArgs,
                handler=self._choose_topic,
            ),
            ToolSpec(
                name="choose_category",
                description=(
                    "Get a list of categories available for a specific topic to "
                    "choose from"
                ),
                args_model=ChooseCategoryArgs,
                handler=self._choose_category,
            ),
        ])

    # -- tool handlers -------------------------------------------------------

    async def _choose_subject(self, args: ChooseSubjectArgs) -> str:
        subjects = await self._taxonomy.get_subjects()
        logger.info("Found %d available subjects", len(subjects))
        return json.dumps({
            "subjects": [asdict(s) for s in subjects],
            "count": len(subjects),
            "message": (
                f"Found {len(subjects)} available subjects. Please choose the "
                "most appropriate subject_id."
            ),
        })

    async def _choose_topic(self, args: ChooseTopicArgs) -> str:
        topics = await self._taxonomy.get_topics(args.subject_id)
        logger.info("Found %d topics for subject %d", len(topics), args.subject_id)
        return json.dumps({
            "topics": [asdict(t) for t in topics],
            "count": len(topics),
            "subject_id": args.subject_id,
            "message": (
                f"Found {len(topics)} topics for subject {args.subject_id}. "
                "Please choose the most appropriate topic_id."
            ),
        })

    async def _choose_category(self, args: ChooseCategoryArgs) -> str:
        categories = await self._taxonomy.get_categories(args.topic_id)
        logger.info(
            "Found %d categories for topic %d", len(categories), args.topic_id
        )
        if categories:
            message = (
                f"Found {len(categories)} categories for topic {args.topic_id}. "
                "Please choose the most appropriate category_id."
            )
        else:
            message = (
                f"No categories found for topic {args.topic_id}. "
                "Use category_id as 0."
            )
        return json.dumps({
            "categories": [asdict(c) for c in categories],
            "count": len(categories),
            "topic_id": args.topic_id,
            "message": message,
        })

    # -- public API ----------------------------------------------------------

    async def classify_question(
        self,
        question: ServicableQuestion,
        solution: str | None = None,
    ) -> ClassificationOutput:
        """
        Tag `question` with subject, topic and category ids.

        Raises:
            GenerationError: On any failure, including the tags API.
        """
        logger.info("Classifying question: %s...", question.question[:100])

        user_message = (
            f"Question:\n{question.question}\n\n"
            "Options:\n" + "\n".join(question.options)
        )
        if solution:
            user_message += f"\n\nSolution:\n{solution}"

        try:
            executor = AgentExecutor(
                llm=self._llm or get_llm_provider(),
                max_iterations=self._max_iterations,
                timeout_seconds=self._timeout_seconds,
                name="Classification agent",
            )
            run = await executor.run(
                system_prompt=QUESTION_TAGGING_PROMPT
                + images_context(len(question.images)),
                user_message=user_message,
                registry=self.registry(),
            )
            classification = parse_classification(run.output)
        except Exception as e:
            logger.error("Failed to classify question: %s", e)
            raise GenerationError(f"Failed to classify question: {e}") from e

        logger.info(
            "Question classified: subject=%s topic=%s category=%s",
            classification.subject_id,
            classification.topic_id,
            classification.category_id,
        )
        return classification
