# =============================================================================
# API Tests — Solution Generation Endpoints
# =============================================================================
#
# TestClient is used without entering the lifespan, so no database probe
# runs; the pipeline is replaced through dependency_overrides.
# =============================================================================

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from nursing_rag.api.solutions import get_pipeline
from nursing_rag.exceptions import ApiRequestError, GenerationError
from nursing_rag.main import app
from nursing_rag.models.responses import Solution, SolutionReference

BODY = {
    "question": "Which finding indicates digoxin toxicity?",
    "options": ["Bradycardia", "Hypertension", "Polyuria", "Fever"],
}

SOLUTION = Solution(
    question=BODY["question"],
    options=BODY["options"],
    answer=0,
    ans_description="- Bradycardia is an early sign.",
    references=[
        SolutionReference(book="Pharmacology for Nurses", chapter="pharm_5", page_number=311, paragraph_number=1)
    ],
    subject_id=2,
    topic_id=14,
    category_id=None,
    difficulty="medium",
)


@pytest.fixture
def pipeline():
    fake = AsyncMock()
    fake.run.return_value = SOLUTION
    app.dependency_overrides[get_pipeline] = lambda: fake
    yield fake
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app, raise_server_exceptions=False)


class TestGenerateEndpoint:
    def test_returns_solution(self, client, pipeline):
        response = client.post("/solution-generation/generate", json=BODY)

        assert response.status_code == 200
        data = response.json()
        assert data["answer"] == 0
        assert data["difficulty"] == "medium"
        assert data["category_id"] is None
        assert data["references"][0] == {
            "book": "Pharmacology for Nurses",
            "chapter": "pharm_5",
            "page_number": 311,
            "paragraph_number": 1,
        }
        assert pipeline.run.await_args.args[0].question == BODY["question"]

    def test_images_are_accepted(self, client, pipeline):
        body = {
            **BODY,
            "images": [{"mimeType": "image/png", "data": "aGVsbG8=", "originalUrl": "https://x/1.png"}],
        }
        response = client.post("/solution-generation/generate", json=body)

        assert response.status_code == 200
        assert pipeline.run.await_args.args[0].images[0].mime_type == "image/png"

    def test_three_options_rejected(self, client, pipeline):
        response = client.post(
            "/solution-generation/generate", json={**BODY, "options": BODY["options"][:3]}
        )
        assert response.status_code == 422
        pipeline.run.assert_not_awaited()

    def test_blank_option_rejected(self, client, pipeline):
        response = client.post(
            "/solution-generation/generate",
            json={**BODY, "options": ["Bradycardia", " ", "Polyuria", "Fever"]},
        )
        assert response.status_code == 422

    def test_missing_question_rejected(self, client, pipeline):
        response = client.post("/solution-generation/generate", json={"options": BODY["options"]})
        assert response.status_code == 422

    def test_generation_failure_is_503(self, client, pipeline):
        pipeline.run.side_effect = GenerationError("Failed to generate solution: timed out")

        response = client.post("/solution-generation/generate", json=BODY)

        assert response.status_code == 503
        assert response.json()["detail"] == "Failed to generate solution: timed out"

    def test_tags_api_failure_is_503(self, client, pipeline):
        cause = ApiRequestError("Failed to fetch subjects: HTTP 500", 500)
        error = GenerationError(f"Failed to classify question: {cause}")
        error.__cause__ = cause
        pipeline.run.side_effect = error

        response = client.post("/solution-generation/generate", json=BODY)

        assert response.status_code == 503
        assert response.json()["detail"] == (
            "Failed to classify question: Failed to fetch subjects: HTTP 500"
        )

    def test_unexpected_failure_is_500(self, client, pipeline):
        pipeline.run.side_effect = RuntimeError("unexpected")

        response = client.post("/solution-generation/generate", json=BODY)

        assert response.status_code == 500


class TestEchoEndpoint:
    """Accepts any JSON body and reports its shape."""

    def test_echoes_request_shape(self, client):
        response = client.post("/solution-generation/test-endpoint", json=BODY)

        assert response.status_code == 200
        assert response.json() == {
            "message": "Solution Generator module is working",
            "receivedData": {
                "questionProvided": True,
                "optionsCount": 4,
                "hasImages": False,
            },
        }

    def test_accepts_bodies_generate_would_reject(self, client):
        response = client.post(
            "/solution-generation/test-endpoint",
            json={"options": ["A", "B"], "images": [{"anything": 1}]},
        )

        assert response.status_code == 200
        assert response.json()["receivedData"] == {
            "questionProvided": False,
            "optionsCount": 2,
            "hasImages": True,
        }

    def test_empty_body(self, client):
        response = client.post("/solution-generation/test-endpoint")

        assert response.status_code == 200
        assert response.json()["receivedData"]["optionsCount"] == 0


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
