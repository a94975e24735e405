import pytest
from pydantic import ValidationError

from app.agent.artifacts import AIResponse, ChartData, ChartRequest


def test_chart_request_trims_query_and_builds_effective_prompt():
    request = ChartRequest.model_validate({"query": "  inflation  ", "clarificationAnswer": "Argentina"})

    assert request.query == "inflation"
    assert request.effective_query() == "inflation\nAdditional information: Argentina"


def test_chart_request_without_answer_uses_query_only():
    request = ChartRequest.model_validate({"query": "inflation", "clarificationAnswer": "   "})

    assert request.clarification_answer is None
    assert request.effective_query() == "inflation"


def test_chart_request_rejects_blank_query():
    with pytest.raises(ValidationError):
        ChartRequest.model_validate({"query": "   "})


def test_chart_data_coerces_numeric_labels():
    chart = ChartData.model_validate(
        {"title": "Sales", "chartType": "line", "labels": [2021, 2022], "values": [10, 12.5]}
    )

    assert chart.labels == ["2021", "2022"]
    assert chart.values == [10, 12.5]


def test_chart_data_requires_matching_non_empty_series():
    with pytest.raises(ValidationError):
        ChartData.model_validate({"title": "Sales", "chartType": "bar", "labels": [], "values": []})
    with pytest.raises(ValidationError):
        ChartData.model_validate({"title": "Sales", "chartType": "bar", "labels": ["a", "b"], "values": [1]})


def test_chart_data_rejects_unknown_chart_type():
    with pytest.raises(ValidationError):
        ChartData.model_validate({"title": "Sales", "chartType": "radar", "labels": ["a"], "values": [1]})


def test_chart_data_drops_out_of_range_highlight_index():
    chart = ChartData.model_validate(
        {"title": "Sales", "chartType": "bar", "labels": ["a", "b"], "values": [1, 2], "highlightIndex": 2}
    )

    assert chart.highlight_index is None


def test_chart_data_wire_format_is_camel_case():
    chart = ChartData(title="Sales", chart_type="area", labels=["a"], values=[1], highlight_index=0)

    assert chart.to_wire() == {
        "title": "Sales",
        "chartType": "area",
        "labels": ["a"],
        "values": [1],
        "highlightIndex": 0,
    }


def test_ai_response_drops_question_when_chart_is_returned():
    response = AIResponse.model_validate(
        {
            "needsClarification": False,
            "clarificationQuestion": "",
            "chartData": {"title": "Sales", "chartType": "bar", "labels": ["a"], "values": [1]},
        }
    )

    assert response.clarification_question is None
    assert response.to_wire()["chartData"]["title"] == "Sales"
    assert "clarificationQuestion" not in response.to_wire()


def test_ai_response_drops_chart_when_clarification_is_requested():
    response = AIResponse.model_validate(
        {
            "needsClarification": True,
            "clarificationQuestion": "Which year?",
            "chartData": {"title": "Sales", "chartType": "bar", "labels": ["a"], "values": [1]},
        }
    )

    assert response.chart_data is None
    assert response.to_wire() == {"needsClarification": True, "clarificationQuestion": "Which year?"}


def test_ai_response_requires_chart_when_no_clarification():
    with pytest.raises(ValidationError):
        AIResponse.model_validate({"needsClarification": False})


@pytest.mark.parametrize("bad_value", [float("nan"), float("inf"), float("-inf"), True])
def test_chart_data_rejects_non_finite_and_boolean_values(bad_value):
    with pytest.raises(ValidationError):
        ChartData.model_validate(
            {"title": "Sales", "chartType": "bar", "labels": ["a", "b"], "values": [1, bad_value]}
        )


def test_chart_data_keeps_integers_and_floats_apart():
    chart = ChartData.model_validate(
        {"title": "Sales", "chartType": "bar", "labels": ["a", "b"], "values": [3, 2.5]}
    )

    assert chart.values == [3, 2.5]
    assert isinstance(chart.values[0], int)
