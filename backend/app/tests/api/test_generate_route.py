from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from app.core.errors import UpstreamError
from app.main import create_app

CHART_RESPONSE = {
    "needsClarification": False,
    "chartData": {
        "title": "Coffee consumption per capita",
        "chartType": "bar",
        "labels": ["Finland", "Norway", "Iceland"],
        "values": [12, 9.9, 9],
        "unit": "kg",
    },
}


def test_generate_returns_chart_data(client, application):
    application.state.chart_agent.llm.generate_json = AsyncMock(return_value=CHART_RESPONSE)

    response = client.post("/api/generate-chart", json={"query": "coffee consumption per capita"})

    assert response.status_code == 200
    assert response.json() == CHART_RESPONSE
    application.state.chart_agent.llm.generate_json.assert_awaited_once()
    kwargs = application.state.chart_agent.llm.generate_json.call_args.kwargs
    assert kwargs["user_prompt"] == "coffee consumption per capita"


def test_generate_returns_clarification(client, application):
    application.state.chart_agent.llm.generate_json = AsyncMock(
        return_value={"needsClarification": True, "clarificationQuestion": "Which country?"}
    )

    response = client.post("/api/generate-chart", json={"query": "GDP"})

    assert response.status_code == 200
    assert response.json() == {"needsClarification": True, "clarificationQuestion": "Which country?"}


def test_generate_passes_clarification_answer(client, application):
    application.state.chart_agent.llm.generate_json = AsyncMock(return_value=CHART_RESPONSE)

    client.post("/api/generate-chart", json={"query": "GDP", "clarificationAnswer": "Spain"})

    kwargs = application.state.chart_agent.llm.generate_json.call_args.kwargs
    assert kwargs["user_prompt"] == "GDP\nAdditional information: Spain"


def test_generate_rejects_other_methods(client):
    response = client.get("/api/generate-chart")

    assert response.status_code == 405
    assert response.json() == {"error": "Method not allowed"}


def test_generate_rejects_empty_query(client):
    response = client.post("/api/generate-chart", json={"query": "   "})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid request"
    assert body["code"] == "INVALID_REQUEST"


def test_generate_without_api_key(test_settings):
    test_settings.OPENAI_API_KEY = None
    with TestClient(create_app(test_settings)) as client:
        response = client.post("/api/generate-chart", json={"query": "coffee"})

    assert response.status_code == 500
    assert response.json() == {"error": "OPENAI_API_KEY not configured", "code": "CONFIGURATION_ERROR"}


def test_generate_surfaces_upstream_errors(client, application):
    application.state.chart_agent.llm.generate_json = AsyncMock(
        side_effect=UpstreamError("Error processing request", details="Rate limit reached", code=429)
    )

    response = client.post("/api/generate-chart", json={"query": "coffee"})

    assert response.status_code == 500
    assert response.json() == {"error": "Error processing request", "details": "Rate limit reached", "code": 429}


def test_generate_reports_schema_violations(client, application):
    application.state.chart_agent.llm.generate_json = AsyncMock(
        return_value={"needsClarification": False, "chartData": {"title": "x", "chartType": "bar", "labels": ["a"], "values": []}}
    )

    response = client.post("/api/generate-chart", json={"query": "coffee"})

    assert response.status_code == 500
    assert response.json()["code"] == "INVALID_SCHEMA"


def test_health_check(client):
    response = client.get("/api/utils/health-check/")

    assert response.status_code == 200
    assert response.json() is True


def test_generate_rejects_non_finite_model_values(client, application):
    application.state.chart_agent.llm.generate_json = AsyncMock(
        return_value={
            "needsClarification": False,
            "chartData": {"title": "x", "chartType": "bar", "labels": ["a"], "values": [float("nan")]},
        }
    )

    response = client.post("/api/generate-chart", json={"query": "coffee"})

    assert response.status_code == 500
    assert response.json()["code"] == "INVALID_SCHEMA"
