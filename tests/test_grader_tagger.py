# =============================================================================
# Unit Tests — Difficulty Grader & Question Tagger
# =============================================================================
#
# The tags API is served by httpx.MockTransport, so the real client code
# (headers, query params, status handling) runs without a network.
# =============================================================================

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock

import httpx
import pytest

from nursing_rag.agents.grader import DifficultyGrader
from nursing_rag.agents.tagger import QuestionTagger
from nursing_rag.exceptions import (
    ApiRequestError,
    GenerationError,
    ResponseParseError,
)
from nursing_rag.models.requests import ExtractedImage, ServicableQuestion
from nursing_rag.services.llm import LLMResponse, ToolCall
from nursing_rag.services.taxonomy import TaxonomyClient, TaxonomyEntry


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _text(content: str) -> LLMResponse:
    return LLMResponse(content=content, model="fake", input_tokens=0, output_tokens=0)


def _tool_turn(call_id: str, name: str, arguments: dict) -> LLMResponse:
    return LLMResponse(
        content="",
        model="fake",
        input_tokens=0,
        output_tokens=0,
        tool_calls=[ToolCall(id=call_id, name=name, arguments=json.dumps(arguments))],
    )


QUESTION = ServicableQuestion(
    question="A client on furosemide reports leg cramps. Which lab should the nurse check?",
    options=["Sodium", "Potassium", "Calcium", "Glucose"],
)


# ---------------------------------------------------------------------------
# Test: Difficulty Grader
# ---------------------------------------------------------------------------


class TestDifficultyGrader:
    """Single completion, strict rating vocabulary."""

    def test_grades_question(self):
        llm = AsyncMock()
        llm.complete.return_value = _text('Rating: {"difficultyRating": "medium"}')

        grading = _run(DifficultyGrader(llm).grade_question(QUESTION, "Loop diuretics waste K+."))

        assert grading.difficulty_rating == "medium"
        kwargs = llm.complete.await_args.kwargs
        user_prompt = kwargs["messages"][0]["content"]
        assert user_prompt.startswith("Question: A client on furosemide")
        assert "Options: Sodium\nPotassium\nCalcium\nGlucose" in user_prompt
        assert user_prompt.endswith("Solution: Loop diuretics waste K+.")
        assert "IMAGES PROVIDED" not in kwargs["system"]

    def test_image_questions_get_image_guidance(self):
        llm = AsyncMock()
        llm.complete.return_value = _text('{"difficultyRating": "hard"}')
        question = QUESTION.model_copy(update={
            "images": [ExtractedImage(mime_type="image/jpeg", data="abc", original_url="u")]
        })

        _run(DifficultyGrader(llm).grade_question(question, "..."))

        assert "IMAGES PROVIDED: This question includes 1 image(s)." in (
            llm.complete.await_args.kwargs["system"]
        )

    def test_unknown_rating_is_wrapped(self):
        llm = AsyncMock()
        llm.complete.return_value = _text('{"difficultyRating": "brutal"}')

        with pytest.raises(GenerationError, match="Failed to grade question difficulty"):
            _run(DifficultyGrader(llm).grade_question(QUESTION, "..."))

    def test_non_json_reply_is_wrapped(self):
        llm = AsyncMock()
        llm.complete.return_value = _text("I would say it is medium.")

        with pytest.raises(GenerationError) as exc_info:
            _run(DifficultyGrader(llm).grade_question(QUESTION, "..."))
        assert isinstance(exc_info.value.__cause__, ResponseParseError)

    def test_llm_failure_is_wrapped(self):
        llm = AsyncMock()
        llm.complete.side_effect = RuntimeError("quota exceeded")

        with pytest.raises(GenerationError, match="quota exceeded"):
            _run(DifficultyGrader(llm).grade_question(QUESTION, "..."))


# ---------------------------------------------------------------------------
# Test: Tags API Client
# ---------------------------------------------------------------------------


TAXONOMY = {
    "/subject": [{"id": 3, "name": "Pharmacology"}, {"id": 4, "name": "Pediatrics"}],
    "/topic": [{"id": 7, "name": "Diuretics"}],
    "/question-category": [],
}


def _taxonomy(status: int = 200, requests: list | None = None) -> TaxonomyClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        if status != 200:
            return httpx.Response(status, json={"message": "nope"})
        path = request.url.path.removeprefix("/v3/admin")
        return httpx.Response(200, json=TAXONOMY[path])

    return TaxonomyClient(
        base_url="http://tags.test/v3/admin",
        token="secret-token",
        transport=httpx.MockTransport(handler),
    )


class TestTaxonomyClient:
    def test_subjects_request_shape(self):
        requests: list[httpx.Request] = []
        subjects = _run(_taxonomy(requests=requests).get_subjects())

        assert subjects == [TaxonomyEntry(3, "Pharmacology"), TaxonomyEntry(4, "Pediatrics")]
        request = requests[0]
        assert request.url.path == "/v3/admin/subject"
        assert request.headers["Authorization"] == "Bearer secret-token"
        assert request.url.params["fields"] == "id,name"

    def test_topic_filter(self):
        requests: list[httpx.Request] = []
        _run(_taxonomy(requests=requests).get_topics(3))
        assert requests[0].url.params["filters"] == "subject_id||$eq||3"

    def test_category_filter(self):
        requests: list[httpx.Request] = []
        categories = _run(_taxonomy(requests=requests).get_categories(7))
        assert categories == []
        assert requests[0].url.path == "/v3/admin/question-category"
        assert requests[0].url.params["filters"] == "topic_id||$eq||7"

    def test_non_200_raises_with_status(self):
        with pytest.raises(ApiRequestError, match="HTTP 401") as exc_info:
            _run(_taxonomy(status=401).get_subjects())
        assert exc_info.value.status_code == 401

    def test_missing_token_fails_before_request(self):
        requests: list[httpx.Request] = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=[])

        client = TaxonomyClient(
            base_url="http://tags.test", token="", transport=httpx.MockTransport(handler)
        )
        with pytest.raises(ApiRequestError, match="token not configured"):
            _run(client.get_subjects())
        assert requests == []

    def test_transport_error_becomes_api_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        client = TaxonomyClient(
            base_url="http://tags.test", token="t", transport=httpx.MockTransport(handler)
        )
        with pytest.raises(ApiRequestError, match="connection refused"):
            _run(client.get_subjects())


# ---------------------------------------------------------------------------
# Test: Question Tagger
# ---------------------------------------------------------------------------


class ScriptedLLM:
    def __init__(self, responses: list[LLMResponse]) -> None:
        self._responses = list(responses)
        self.calls: list[dict] = []

    async def complete(self, messages, system=None, tools=None, temperature=None, max_tokens=None):
        self.calls.append({"messages": list(messages), "system": system, "tools": tools})
        if len(self._responses) > 1:
            return self._responses.pop(0)
        return self._responses[0]


def _tagging_script(final: dict) -> list[LLMResponse]:
    return [
        _tool_turn("s", "choose_subject", {}),
        _tool_turn("t", "choose_topic", {"subject_id": 3}),
        _tool_turn("c", "choose_category", {"topic_id": 7}),
        _text(json.dumps(final)),
    ]


class TestQuestionTagger:
    """Drill-down through the hierarchy, then a validated id triple."""

    def test_full_drill_down(self):
        llm = ScriptedLLM(_tagging_script({"subject_id": 3, "topic_id": 7, "category_id": 0}))
        tagger = QuestionTagger(llm=llm, taxonomy=_taxonomy())

        result = _run(tagger.classify_question(QUESTION, "Check potassium."))

        assert (result.subject_id, result.topic_id, result.category_id) == (3, 7, None)

        tool_replies = [
            json.loads(m["content"]) for m in llm.calls[-1]["messages"] if m["role"] == "tool"
        ]
        assert tool_replies[0]["count"] == 2
        assert tool_replies[0]["subjects"][0] == {"id": 3, "name": "Pharmacology"}
        assert tool_replies[1]["topics"] == [{"id": 7, "name": "Diuretics"}]
        assert tool_replies[2]["categories"] == []
        assert "Use category_id as 0" in tool_replies[2]["message"]

    def test_user_message_includes_solution(self):
        llm = ScriptedLLM([_text('{"subject_id": 3, "topic_id": 0, "category_id": 0}')])
        tagger = QuestionTagger(llm=llm, taxonomy=_taxonomy())

        _run(tagger.classify_question(QUESTION, "Check potassium."))

        user_message = llm.calls[0]["messages"][0]["content"]
        assert user_message.startswith("Question:\nA client on furosemide")
        assert "Options:\nSodium\nPotassium" in user_message
        assert user_message.endswith("Solution:\nCheck potassium.")
        tool_names = [t["function"]["name"] for t in llm.calls[0]["tools"]]
        assert tool_names == ["choose_subject", "choose_topic", "choose_category"]

    def test_solution_is_optional(self):
        llm = ScriptedLLM([_text('{"subject_id": 3, "topic_id": 0, "category_id": 0}')])
        _run(QuestionTagger(llm=llm, taxonomy=_taxonomy()).classify_question(QUESTION))
        assert "Solution:" not in llm.calls[0]["messages"][0]["content"]

    def test_api_failure_is_wrapped(self):
        llm = ScriptedLLM(_tagging_script({"subject_id": 3, "topic_id": 7, "category_id": 0}))
        tagger = QuestionTagger(llm=llm, taxonomy=_taxonomy(status=503))

        with pytest.raises(GenerationError, match="Failed to classify question") as exc_info:
            _run(tagger.classify_question(QUESTION))

        cause = exc_info.value.__cause__
        assert isinstance(cause, ApiRequestError)
        assert cause.status_code == 503
        assert len(llm.calls) == 1

    def test_invalid_ids_are_wrapped(self):
        llm = ScriptedLLM([_text('{"subject_id": 0, "topic_id": 0, "category_id": 0}')])
        tagger = QuestionTagger(llm=llm, taxonomy=_taxonomy())

        with pytest.raises(GenerationError, match="Failed to classify question"):
            _run(tagger.classify_question(QUESTION))
