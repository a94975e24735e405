import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from app.agent.artifacts import AIResponse, ChartData, ChartRequest
from app.core.errors import (
    ChartNotFoundError,
    ChartServiceError,
    ConfigurationError,
    GenerationError,
    InvalidRequestError,
    MethodNotAllowedError,
    NotAuthorizedError,
    QuotaExceededError,
    UpstreamError,
)
from app.models import ChartPublic, ChartSaveResponse, QuotaState

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _compact(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def _parse(model: type[ModelT], payload: Any) -> ModelT:
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise UpstreamError(
            "Invalid response from chart service",
            details=f"{model.__name__}: {e.error_count()} error(s)",
            code="INVALID_RESPONSE",
        ) from e


def error_from_response(status_code: int, payload: dict[str, Any]) -> ChartServiceError:
    """Map an error response of the chart service back onto the error taxonomy."""
    message = payload.get("error") or f"HTTP {status_code}"
    details = payload.get("details")
    code = payload.get("code")

    if status_code == 400:
        return InvalidRequestError(message, details=details, code=code)
    if status_code == 403 and "current" in payload:
        return QuotaExceededError(current=payload["current"], limit=payload.get("limit"), message=message)
    if status_code == 403:
        return NotAuthorizedError(message)
    if status_code == 404:
        return ChartNotFoundError(message)
    if status_code == 405:
        return MethodNotAllowedError(message)
    if code == "CONFIGURATION_ERROR" or message.endswith("not configured"):
        return ConfigurationError(message, details=details, code=code)
    return UpstreamError(message, details=details, code=code or status_code)


class ChartsApiClient:
    """Async client for the chart generation and chart store endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        api_prefix: str = "/api",
        timeout: float | None = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.api_prefix = api_prefix.rstrip("/")
        self._client = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self) -> "ChartsApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(
                method,
                f"{self.api_prefix}{path}",
                params=_compact(params or {}),
                json=json,
            )
        except httpx.HTTPError as e:
            logger.error("Request %s %s failed: %s", method, path, e)
            raise UpstreamError("Chart service unreachable", details=str(e)) from e

        try:
            payload = response.json() if response.content else {}
        except ValueError:
            payload = {"error": response.text or f"HTTP {response.status_code}"}
        if not isinstance(payload, dict):
            payload = {}

        if response.is_error:
            raise error_from_response(response.status_code, payload)
        return payload

    async def generate_chart(self, query: str, clarification_answer: str | None = None) -> AIResponse:
        chart_request = ChartRequest(query=query, clarification_answer=clarification_answer)
        payload = await self._request("POST", "/generate-chart", json=chart_request.to_wire())
        try:
            return AIResponse.model_validate(payload)
        except ValidationError as e:
            raise GenerationError(
                "Invalid response from chart service",
                details=str(e),
                code="INVALID_SCHEMA",
            ) from e

    async def save_chart(
        self,
        chart_data: ChartData,
        *,
        user_id: str | None = None,
        anonymous_id: str | None = None,
    ) -> ChartSaveResponse:
        payload = await self._request(
            "POST",
            "/charts",
            params={"action": "save"},
            json=_compact(
                {
                    "userId": user_id,
                    "anonymousId": anonymous_id,
                    "chartData": chart_data.to_wire(),
                }
            ),
        )
        return _parse(ChartSaveResponse, payload)

    async def list_charts(
        self,
        *,
        user_id: str | None = None,
        anonymous_id: str | None = None,
    ) -> list[ChartPublic]:
        payload = await self._request(
            "GET",
            "/charts",
            params={"action": "list", "userId": user_id, "anonymousId": anonymous_id},
        )
        charts = payload.get("charts", [])
        if not isinstance(charts, list):
            raise UpstreamError(
                "Invalid response from chart service",
                details="charts is not a list",
                code="INVALID_RESPONSE",
            )
        return [_parse(ChartPublic, chart) for chart in charts]

    async def get_chart(self, *, chart_id: str | None = None, share_id: str | None = None) -> ChartPublic:
        payload = await self._request(
            "GET",
            "/charts",
            params={"action": "get", "chartId": chart_id, "shareId": share_id},
        )
        return _parse(ChartPublic, payload.get("chart"))

    async def delete_chart(
        self,
        chart_id: str,
        *,
        user_id: str | None = None,
        anonymous_id: str | None = None,
    ) -> None:
        await self._request(
            "DELETE",
            "/charts",
            params={"action": "delete"},
            json=_compact({"chartId": chart_id, "userId": user_id, "anonymousId": anonymous_id}),
        )

    async def check_limit(
        self,
        *,
        user_id: str | None = None,
        anonymous_id: str | None = None,
    ) -> QuotaState:
        payload = await self._request(
            "GET",
            "/charts",
            params={"action": "check-limit", "userId": user_id, "anonymousId": anonymous_id},
        )
        return _parse(QuotaState, payload)

    async def migrate_anonymous_charts(self, *, user_id: str, anonymous_id: str) -> int:
        payload = await self._request(
            "POST",
            "/charts",
            params={"action": "migrate"},
            json={"userId": user_id, "anonymousId": anonymous_id},
        )
        migrated = payload.get("migrated", 0)
        if isinstance(migrated, bool) or not isinstance(migrated, int):
            raise UpstreamError(
                "Invalid response from chart service",
                details="migrated is not an integer",
                code="INVALID_RESPONSE",
            )
        return migrated

    async def set_chart_public(
        self,
        chart_id: str,
        is_public: bool,
        *,
        user_id: str | None = None,
        anonymous_id: str | None = None,
    ) -> ChartPublic:
        payload = await self._request(
            "POST",
            "/charts",
            params={"action": "set-public"},
            json=_compact(
                {
                    "chartId": chart_id,
                    "isPublic": is_public,
                    "userId": user_id,
                    "anonymousId": anonymous_id,
                }
            ),
        )
        return _parse(ChartPublic, payload.get("chart"))
