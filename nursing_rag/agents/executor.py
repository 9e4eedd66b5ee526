# =============================================================================
# Tool-Calling Agent Loop
# =============================================================================
#
# Drives one conversation between the LLM and a ToolRegistry:
#
#   ┌──────────── system + user message ────────────┐
#   ▼                                               │
#   LLM turn ──▶ tool calls? ── yes ──▶ run each in order, append results ──┘
#                    │
#                    no ──▶ non-empty text → done
#                           empty text     → AgentIterationError
#
# Budgets:
#   max_iterations   one iteration = one LLM call. When exhausted, the last
#                    partial text (if any) is returned as the parse candidate;
#                    with no text at all the run fails.
#   timeout_seconds  wall clock for the whole run; exceeding it cancels the
#                    pending call and raises AgentTimeoutError.
#
# DESIGN DECISION: Plain async loop, not a LangGraph subgraph.
# The loop has one state variable (the conversation) and one branch; the
# graph lives one level up, in the solution pipeline.
#
# Tool exceptions are not caught here. A failing tool fails the run, and
# the entry point wraps it in GenerationError.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from nursing_rag.agents.tools import ToolRegistry
from nursing_rag.exceptions import AgentIterationError, AgentTimeoutError
from nursing_rag.services.llm import LLMProvider, LLMResponse
from nursing_rag.services.retry import run_with_timeout

logger = logging.getLogger(__name__)


@dataclass
class AgentRunResult:
    """Final text of an agent run plus bookkeeping for logs and tests."""

    output: str
    iterations: int
    tool_calls: list[str] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0
    hit_iteration_limit: bool = False


class AgentExecutor:
    """
    Runs the tool-calling loop for one agent configuration.

    Stateless between runs: every `run()` starts a fresh conversation, so a
    single executor may serve concurrent requests as long as each request
    brings its own registry.
    """

    def __init__(
        self,
        llm: LLMProvider,
        max_iterations: int,
        timeout_seconds: float,
        name: str = "agent",
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        self._llm = llm
        self._max_iterations = max_iterations
        self._timeout_seconds = timeout_seconds
        self._name = name

    async def run(
        self,
        system_prompt: str,
        user_message: str,
        registry: ToolRegistry,
    ) -> AgentRunResult:
        """
        Run the loop under the wall-clock budget.

        Raises:
            AgentTimeoutError: The run exceeded `timeout_seconds`.
            AgentIterationError: No usable text was produced.
            UsageError: Unknown tool or bad tool arguments (from dispatch).
        """
        return await run_with_timeout(
            self._loop(system_prompt, user_message, registry),
            self._timeout_seconds,
            AgentTimeoutError,
            f"{self._name} execution timed out after {self._timeout_seconds:g}s",
        )

    async def _loop(
        self,
        system_prompt: str,
        user_message: str,
        registry: ToolRegistry,
    ) -> AgentRunResult:
        messages: list[dict[str, Any]] = [{"role": "user", "content": user_message}]
        tools = registry.schemas()
        result = AgentRunResult(output="", iterations=0)
        last_text = ""

        for iteration in range(1, self._max_iterations + 1):
            result.iterations = iteration
            response: LLMResponse = await self._llm.complete(
                messages=messages,
                system=system_prompt,
                tools=tools,
            )
            result.input_tokens += response.input_tokens
            result.output_tokens += response.output_tokens

            if response.content.strip():
                last_text = response.content

            if not response.tool_calls:
                if not response.content.strip():
                    raise AgentIterationError(
                        f"{self._name} returned empty output on iteration {iteration}"
                    )
                logger.info(
                    "%s finished after %d iterations (%d tool calls)",
                    self._name, iteration, len(result.tool_calls),
                )
                result.output = response.content
                return result

            messages.append({
                "role": "assistant",
                "content": response.content or None,
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.name, "arguments": call.arguments},
                    }
                    for call in response.tool_calls
                ],
            })

            for call in response.tool_calls:
                output = await registry.dispatch(call.name, call.arguments)
                result.tool_calls.append(call.name)
                messages.append({
                    "role": "tool",
                    "tool_call_id": call.id,
                    "content": output,
                })

        logger.warning(
            "%s reached its iteration limit (%d)", self._name, self._max_iterations
        )
        if not last_text.strip():
            raise AgentIterationError(
                f"{self._name} reached the iteration limit ({self._max_iterations}) "
                "without producing any output"
            )
        result.output = last_text
        result.hit_iteration_limit = True
        return result
