# =============================================================================
# LangGraph Orchestrator — Solution Pipeline
# =============================================================================
#
# Wires the three LLM roles into one StateGraph:
#
#                      ┌──▶ grade ────┐
#   START ──▶ solve ───┤              ├──▶ assemble ──▶ END
#                      └──▶ classify ─┘
#
# `grade` and `classify` both consume the generated solution text and
# share no mutable state, so they run concurrently in one superstep; the
# list edge into `assemble` waits for both.
#
# DESIGN DECISION: Plain TypedDict state (not MessagesState).
# The state is structured data flowing through a pipeline:
# question → solution → (difficulty, tags) → final Solution.
#
# DESIGN DECISION: Graph compiled once per pipeline.
# Nodes are bound methods of the pipeline so that the generator, grader
# and tagger can be injected (tests pass fakes). Compiling happens in
# __init__, never per request.
#
# A failing node aborts the run; its exception reaches the caller as-is.
# =============================================================================

from __future__ import annotations

import logging

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from nursing_rag.agents.grader import DifficultyGrader
from nursing_rag.agents.solution import SolutionGenerator
from nursing_rag.agents.tagger import QuestionTagger
from nursing_rag.models.requests import ServicableQuestion
from nursing_rag.models.responses import (
    ClassificationOutput,
    GradingOutput,
    Solution,
    SolutionOutput,
    SolutionReference,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pipeline State Schema
# ---------------------------------------------------------------------------


class PipelineState(TypedDict, total=False):
    """
    State flowing through the graph.

    total=False so each node returns only the keys it sets.
    """

    # --- Input ---
    question: ServicableQuestion

    # --- Intermediate ---
    solution_output: SolutionOutput
    grading: GradingOutput
    classification: ClassificationOutput

    # --- Output ---
    solution: Solution


def assemble_solution(
    question: ServicableQuestion,
    solution_output: SolutionOutput,
    grading: GradingOutput,
    classification: ClassificationOutput,
) -> Solution:
    """
    Merge the three results into the API response.

    Book references are re-keyed for the question bank: book_id doubles as
    the chapter and page_start as the page; paragraphs are not tracked.
    """
    return Solution(
        question=question.question,
        options=question.options,
        answer=solution_output.answer,
        ans_description=solution_output.ans_description,
        references=[
            SolutionReference(
                book=ref.book_title,
                chapter=ref.book_id,
                page_number=ref.page_start,
                paragraph_number=1,
            )
            for ref in solution_output.references
        ],
        subject_id=classification.subject_id,
        topic_id=classification.topic_id,
        category_id=classification.category_id,
        difficulty=grading.difficulty_rating,
    )


class SolutionPipeline:
    """solve → (grade ‖ classify) → assemble."""

    def __init__(
        self,
        generator: SolutionGenerator | None = None,
        grader: DifficultyGrader | None = None,
        tagger: QuestionTagger | None = None,
    ) -> None:
        self.generator = generator or SolutionGenerator()
        self.grader = grader or DifficultyGrader()
        self.tagger = tagger or QuestionTagger()
        self._graph = self._build_graph()

    def _build_graph(self):
        builder = StateGraph(PipelineState)
        builder.add_node("solve", self._solve_node)
        builder.add_node("grade", self._grade_node)
        builder.add_node("classify", self._classify_node)
        builder.add_node("assemble", self._assemble_node)

        builder.add_edge(START, "solve")
        builder.add_edge("solve", "grade")
        builder.add_edge("solve", "classify")
        builder.add_edge(["grade", "classify"], "assemble")
        builder.add_edge("assemble", END)
        return builder.compile()

    # -------------------------------------------------------------------------
    # Node Functions
    # -------------------------------------------------------------------------

    async def _solve_node(self, state: PipelineState) -> dict:
        output = await self.generator.generate_solution(state["question"])
        return {"solution_output": output}

    async def _grade_node(self, state: PipelineState) -> dict:
        grading = await self.grader.grade_question(
            state["question"], state["solution_output"].ans_description
        )
        return {"grading": grading}

    async def _classify_node(self, state: PipelineState) -> dict:
        classification = await self.tagger.classify_question(
            state["question"], state["solution_output"].ans_description
        )
        return {"classification": classification}

    async def _assemble_node(self, state: PipelineState) -> dict:
        return {
            "solution": assemble_solution(
                state["question"],
                state["solution_output"],
                state["grading"],
                state["classification"],
            )
        }

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def run(self, question: ServicableQuestion) -> Solution:
        """Generate, grade and classify one question."""
        logger.info("Running solution pipeline: question='%s'", question.question[:80])
        result = await self._graph.ainvoke({"question": question})
        solution: Solution = result["solution"]
        logger.info(
            "Solution pipeline complete: answer=%d, difficulty=%s, subject=%s",
            solution.answer, solution.difficulty, solution.subject_id,
        )
        return solution
