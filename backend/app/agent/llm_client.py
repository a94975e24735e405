import json
import logging
import re
from typing import Any

from openai import (
    APIConnectionError,
    APIError,
    AsyncOpenAI,
    InternalServerError,
    RateLimitError,
)

from app.core.config import Settings
from app.core.errors import ConfigurationError, GenerationError, UpstreamError

logger = logging.getLogger(__name__)

# APITimeoutError is a subclass of APIConnectionError.
TRANSIENT_ERRORS = (APIConnectionError, RateLimitError, InternalServerError)

RETRY_INSTRUCTIONS = (
    "RETRY INSTRUCTIONS: Your previous response was invalid or incomplete. "
    "Return ONLY a single JSON object matching the requested structure. "
    "Do not add any prose, headings, markdown fences, or explanations."
)


def _strip_code_fences(text: str) -> str:
    if not text:
        return ""
    fenced = re.match(r"^\s*```[a-zA-Z0-9_-]*\s*([\s\S]*?)\s*```\s*$", text)
    if fenced:
        return fenced.group(1).strip()
    return text.strip()


def _parse_json_object(raw_text: str | None) -> dict[str, Any]:
    text = _strip_code_fences(raw_text or "")
    if not text:
        raise GenerationError(
            "Error processing request",
            details="Model returned empty content",
            code="EMPTY_RESPONSE",
        )
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise GenerationError(
            "Error processing request",
            details=f"Model returned invalid JSON: {e}",
            code="INVALID_JSON",
        ) from e
    if not isinstance(parsed, dict):
        raise GenerationError(
            "Error processing request",
            details=f"Model returned a JSON {type(parsed).__name__} instead of an object",
            code="INVALID_JSON",
        )
    return parsed


def _upstream_error(error: APIError) -> UpstreamError:
    code = getattr(error, "code", None) or getattr(error, "status_code", None) or 500
    message = getattr(error, "message", None) or str(error)
    return UpstreamError("Error processing request", details=message, code=code)


class LLMClient:
    """JSON-mode chat completions against any OpenAI-compatible endpoint."""

    def __init__(
        self,
        model_name: str,
        api_key: str | None,
        base_url: str | None = None,
        *,
        temperature: float | None = 0.7,
        max_attempts: int = 1,
        timeout: float | None = None,
    ):
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY not configured", code="CONFIGURATION_ERROR")
        self.model_name = model_name
        self.temperature = temperature
        self.max_attempts = max(1, max_attempts)

        client_kwargs: dict[str, Any] = {"api_key": api_key, "base_url": base_url, "max_retries": 0}
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        self.client = AsyncOpenAI(**client_kwargs)

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMClient":
        return cls(
            model_name=settings.MODEL_DEFAULT,
            api_key=settings.llm_api_key,
            base_url=settings.LLM_BASE_URL,
            temperature=settings.LLM_TEMPERATURE,
            max_attempts=settings.GENERATION_MAX_ATTEMPTS,
            timeout=settings.LLM_TIMEOUT_SECONDS,
        )

    def _chat_completion_kwargs(self, *, temperature: float | None) -> dict:
        model_name = (self.model_name or "").lower()
        # GPT-5 family rejects non-default temperature values.
        if model_name.startswith("gpt-5") or temperature is None:
            return {}
        return {"temperature": temperature}

    async def generate_json(self, system_prompt: str, user_prompt: str) -> dict[str, Any]:
        """
        Ask the model for a single JSON object and return it parsed.

        Attempts are bounded by `max_attempts`; only transient provider failures and
        unparsable output are retried, auth and other client errors surface immediately.
        """
        attempt_prompts = [system_prompt] + [
            f"{system_prompt}\n\n{RETRY_INSTRUCTIONS}"
        ] * (self.max_attempts - 1)

        for attempt_idx, system_prompt_attempt in enumerate(attempt_prompts, start=1):
            is_last = attempt_idx == len(attempt_prompts)
            try:
                logger.info(
                    "Issuing JSON request to model %s (attempt %s/%s)...",
                    self.model_name,
                    attempt_idx,
                    len(attempt_prompts),
                )
                response = await self.client.chat.completions.create(
                    model=self.model_name,
                    messages=[
                        {"role": "system", "content": system_prompt_attempt},
                        {"role": "user", "content": user_prompt},
                    ],
                    response_format={"type": "json_object"},
                    **self._chat_completion_kwargs(
                        temperature=0 if attempt_idx > 1 else self.temperature
                    ),
                )
                if not getattr(response, "choices", None):
                    logger.error("Received no choices from %s: %s", self.model_name, response)
                    raise GenerationError(
                        "Error processing request",
                        details=f"Provider {self.model_name} returned no output",
                        code="EMPTY_RESPONSE",
                    )
                return _parse_json_object(response.choices[0].message.content)

            except GenerationError as e:
                if not is_last:
                    logger.warning(
                        "Unusable response from %s on attempt %s/%s: %s. Retrying...",
                        self.model_name,
                        attempt_idx,
                        len(attempt_prompts),
                        e.details,
                    )
                    continue
                logger.error("Unusable response from %s: %s", self.model_name, e.details)
                raise
            except TRANSIENT_ERRORS as e:
                if not is_last:
                    logger.warning(
                        "Transient provider error from %s on attempt %s/%s: %s. Retrying...",
                        self.model_name,
                        attempt_idx,
                        len(attempt_prompts),
                        e,
                    )
                    continue
                logger.error("Error calling LLM provider %s: %s", self.model_name, e)
                raise _upstream_error(e) from e
            except APIError as e:
                logger.error("Error calling LLM provider %s: %s", self.model_name, e)
                raise _upstream_error(e) from e

        raise RuntimeError("JSON generation finished without a result")
