import logging
from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, Request, Response
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from app.agent.artifacts import ChartData
from app.api.deps import ChartServiceDep, JsonBody
from app.core.errors import InvalidRequestError, MethodNotAllowedError, UpstreamError
from app.services.charts import ChartService

router = APIRouter()
logger = logging.getLogger(__name__)


def _param(request: Request, body: dict[str, Any], name: str) -> str | None:
    value = request.query_params.get(name) or body.get(name)
    if value is None or value == "":
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise InvalidRequestError(f"{name} must be a string")
    return str(value)


def _bool_param(request: Request, body: dict[str, Any], name: str) -> bool:
    value = body.get(name, request.query_params.get(name))
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "1", "yes"):
        return True
    if isinstance(value, str) and value.lower() in ("false", "0", "no"):
        return False
    raise InvalidRequestError(f"{name} must be a boolean")


def _identity(request: Request, body: dict[str, Any]) -> dict[str, str | None]:
    return {
        "user_id": _param(request, body, "userId"),
        "anonymous_id": _param(request, body, "anonymousId"),
    }


def _save(service: ChartService, request: Request, body: dict[str, Any]) -> dict[str, Any]:
    raw_chart = body.get("chartData")
    if not isinstance(raw_chart, dict):
        raise InvalidRequestError("chartData required")
    try:
        chart_data = ChartData.model_validate(raw_chart)
    except ValidationError as e:
        raise InvalidRequestError(
            "Invalid chartData",
            details="; ".join(err["msg"] for err in e.errors()),
        ) from e
    return service.save(chart_data, **_identity(request, body)).to_wire()


def _list(service: ChartService, request: Request, body: dict[str, Any]) -> dict[str, Any]:
    charts = service.list_charts(**_identity(request, body))
    return {"charts": [chart.to_wire() for chart in charts]}


def _delete(service: ChartService, request: Request, body: dict[str, Any]) -> dict[str, Any]:
    service.delete(_param(request, body, "chartId"), **_identity(request, body))
    return {"success": True}


def _get(service: ChartService, request: Request, body: dict[str, Any]) -> dict[str, Any]:
    chart = service.get(
        chart_id=_param(request, body, "chartId"),
        share_id=_param(request, body, "shareId"),
    )
    return {"chart": chart.to_wire()}


def _check_limit(service: ChartService, request: Request, body: dict[str, Any]) -> dict[str, Any]:
    return service.check_limit(**_identity(request, body)).to_wire()


def _migrate(service: ChartService, request: Request, body: dict[str, Any]) -> dict[str, Any]:
    migrated = service.migrate(**_identity(request, body))
    return {"success": True, "migrated": migrated}


def _set_public(service: ChartService, request: Request, body: dict[str, Any]) -> dict[str, Any]:
    chart = service.set_public(
        _param(request, body, "chartId"),
        _bool_param(request, body, "isPublic"),
        **_identity(request, body),
    )
    return {"success": True, "chart": chart.to_wire()}


ActionHandler = Callable[[ChartService, Request, dict[str, Any]], dict[str, Any]]

# action -> (allowed methods or None for any, handler)
ACTIONS: dict[str, tuple[tuple[str, ...] | None, ActionHandler]] = {
    "save": (("POST",), _save),
    "list": (("GET", "POST"), _list),
    "delete": (("DELETE", "POST"), _delete),
    "get": (None, _get),
    "check-limit": (None, _check_limit),
    "migrate": (("POST",), _migrate),
    "set-public": (("POST",), _set_public),
}


@router.api_route("/charts", methods=["GET", "POST", "DELETE", "OPTIONS"])
def charts(
    request: Request,
    service: ChartServiceDep,
    body: JsonBody,
    action: str | None = None,
) -> Any:
    """Chart store operations, selected by the `action` query parameter."""
    if request.method == "OPTIONS":
        return Response(status_code=200)

    entry = ACTIONS.get(action or "")
    if entry is None:
        raise InvalidRequestError("Invalid action")
    methods, handler = entry
    if methods is not None and request.method not in methods:
        raise MethodNotAllowedError()

    try:
        return handler(service, request, body)
    except SQLAlchemyError as e:
        logger.exception("Chart store error during action %s", action)
        raise UpstreamError("Chart store error", details=e.__class__.__name__) from e
