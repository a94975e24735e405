import logging
from typing import Any

from fastapi import APIRouter, Request
from pydantic import ValidationError

from app.agent.artifacts import ChartRequest
from app.api.deps import ChartAgentDep, JsonBody
from app.core.errors import InvalidRequestError, MethodNotAllowedError

router = APIRouter()
logger = logging.getLogger(__name__)


@router.api_route("/generate-chart", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
async def generate_chart(request: Request, agent: ChartAgentDep, body: JsonBody) -> Any:
    """
    Turn a natural-language query into chart data.

    Returns the AIResponse as produced by the model: either `chartData` or a single
    `clarificationQuestion`. Nothing is persisted here; clients save through /charts.
    """
    if request.method != "POST":
        raise MethodNotAllowedError()

    try:
        chart_request = ChartRequest.model_validate(body)
    except ValidationError as e:
        raise InvalidRequestError(
            "Invalid request",
            details="; ".join(err["msg"] for err in e.errors()),
            code="INVALID_REQUEST",
        ) from e

    logger.info("Generating chart for query %r", chart_request.query)
    response = await agent.run(chart_request)
    return response.to_wire()
