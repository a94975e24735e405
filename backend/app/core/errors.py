from typing import Any


class ChartServiceError(Exception):
    """Base error converted into a JSON body at the HTTP boundary."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        details: str | None = None,
        code: Any = None,
        **extra: Any,
    ):
        super().__init__(message)
        self.message = message
        self.details = details
        self.code = code
        self.extra = extra

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        if self.code is not None:
            payload["code"] = self.code
        payload.update(self.extra)
        return payload


class ConfigurationError(ChartServiceError):
    """A required credential or service is not configured."""

    status_code = 500


class InvalidRequestError(ChartServiceError):
    status_code = 400


class MethodNotAllowedError(ChartServiceError):
    status_code = 405

    def __init__(self, message: str = "Method not allowed", **kwargs: Any):
        super().__init__(message, **kwargs)


class UpstreamError(ChartServiceError):
    """The generation service or the chart store failed or returned malformed data."""

    status_code = 500


class GenerationError(UpstreamError):
    pass


class QuotaExceededError(ChartServiceError):
    status_code = 403

    def __init__(self, current: int, limit: int | None, message: str = "Chart limit reached"):
        super().__init__(message, current=current, limit=limit)
        self.current = current
        self.limit = limit


class ChartNotFoundError(ChartServiceError):
    status_code = 404

    def __init__(self, message: str = "Chart not found", **kwargs: Any):
        super().__init__(message, **kwargs)


class NotAuthorizedError(ChartServiceError):
    status_code = 403

    def __init__(self, message: str = "Not authorized", **kwargs: Any):
        super().__init__(message, **kwargs)
