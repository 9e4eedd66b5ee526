# =============================================================================
# Solution Generator — Retrieval-Augmented Answering Agent
# =============================================================================
#
# Answers one multiple-choice question:
#
#   1. fresh EmbeddingCache + RetrievalToolkit for this call
#   2. system prompt (+ image notice) and "Question/Options" user message
#   3. AgentExecutor loop (15 iterations, 120 s)
#   4. parse_solution() on the final text
#
# DESIGN DECISION: One cache per call, not per service.
# Overlapping requests on one generator each get their own arena, so ids
# and vectors never cross between questions.
#
# DESIGN DECISION: Images are described, not sent.
# The agent orchestrates text tools; it only learns how many images the
# question has.
#
# Every failure leaves `generate` as GenerationError, chained to its cause.
# =============================================================================

from __future__ import annotations

import logging

from nursing_rag.agents.executor import AgentExecutor
from nursing_rag.agents.prompts import (
    NURSING_SYSTEM_PROMPT,
    format_question,
    images_context,
)
from nursing_rag.agents.tools import RetrievalToolkit
from nursing_rag.agents.validator import parse_solution
from nursing_rag.config import settings
from nursing_rag.exceptions import GenerationError
from nursing_rag.models.requests import ServicableQuestion
from nursing_rag.models.responses import SolutionOutput
from nursing_rag.services.embedder import (
    EmbeddingProvider,
    get_books_embedder,
    get_videos_embedder,
)
from nursing_rag.services.embedding_cache import EmbeddingCache
from nursing_rag.services.llm import LLMProvider, get_llm_provider
from nursing_rag.services.retry import retry_async
from nursing_rag.services.vectorstore import (
    BookStore,
    PgBookStore,
    PgVideoStore,
    VideoStore,
    verify_store_connection,
)

logger = logging.getLogger(__name__)


class SolutionGenerator:
    """
    Produces a validated SolutionOutput for a question.

    Collaborators default to the configured singletons; tests inject fakes.
    """

    def __init__(
        self,
        llm: LLMProvider | None = None,
        books_embedder: EmbeddingProvider | None = None,
        videos_embedder: EmbeddingProvider | None = None,
        book_store: BookStore | None = None,
        video_store: VideoStore | None = None,
        max_iterations: int | None = None,
        timeout_seconds: float | None = None,
        pre_call_delay_ms: int | None = None,
    ) -> None:
        self._llm = llm
        self._books_embedder = books_embedder
        self._videos_embedder = videos_embedder
        self._book_store = book_store or PgBookStore()
        self._video_store = video_store or PgVideoStore()
        self._max_iterations = max_iterations or settings.solution_max_iterations
        self._timeout_seconds = timeout_seconds or settings.solution_timeout_seconds
        self._pre_call_delay_ms = pre_call_delay_ms
        self._executor: AgentExecutor | None = None

    # -------------------------------------------------------------------------
    # Startup
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Probe the knowledge base, then build the agent. Each step runs under
        its own retry policy; exhausting either raises RetryExhaustedError.
        """
        await retry_async(
            verify_store_connection,
            "Knowledge Base Connection Test",
            settings.store_probe_max_attempts,
            settings.store_probe_base_delay_ms,
        )

        async def _init_agent() -> None:
            self._build_executor()

        await retry_async(
            _init_agent,
            "Solution Agent Initialization",
            settings.agent_init_max_attempts,
            settings.agent_init_base_delay_ms,
        )
        logger.info("SolutionGenerator initialized")

    def _build_executor(self) -> AgentExecutor:
        if self._executor is None:
            self._executor = AgentExecutor(
                llm=self._llm or get_llm_provider(),
                max_iterations=self._max_iterations,
                timeout_seconds=self._timeout_seconds,
                name="Solution agent",
            )
        return self._executor

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def generate(
        self,
        question: ServicableQuestion,
        system_message: str,
    ) -> SolutionOutput:
        """
        Answer `question` with `system_message` as the agent's instructions.

        Raises:
            GenerationError: On any failure, wrapping the original error.
        """
        cache = EmbeddingCache()
        logger.info("Generating solution for question: %s...", question.question[:100])

        try:
            toolkit = RetrievalToolkit(
                cache=cache,
                books_embedder=self._books_embedder or get_books_embedder(),
                videos_embedder=self._videos_embedder or get_videos_embedder(),
                book_store=self._book_store,
                video_store=self._video_store,
                pre_call_delay_ms=self._pre_call_delay_ms,
            )

            if question.images:
                logger.info(
                    "Question includes %d images; passing image context only",
                    len(question.images),
                )
            system_prompt = system_message + images_context(len(question.images))

            run = await self._build_executor().run(
                system_prompt=system_prompt,
                user_message=format_question(question.question, question.options),
                registry=toolkit.registry(),
            )
            solution = parse_solution(run.output)
        except Exception as e:
            logger.error("Failed to generate solution: %s", e)
            raise GenerationError(f"Failed to generate solution: {e}") from e
        finally:
            cache.clear()

        logger.info(
            "Solution generated: answer=%d, %d references, %d video references "
            "(%d iterations)",
            solution.answer,
            len(solution.references),
            len(solution.video_references),
            run.iterations,
        )
        return solution

    async def generate_solution(self, question: ServicableQuestion) -> SolutionOutput:
        """`generate` with the default nursing prompt."""
        return await self.generate(question, NURSING_SYSTEM_PROMPT)
