from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from app.agent.llm_client import LLMClient
from app.core.errors import ConfigurationError, GenerationError, UpstreamError


def _completion(content: str | None) -> MagicMock:
    mock_message = MagicMock()
    mock_message.content = content

    mock_choice = MagicMock()
    mock_choice.message = mock_message

    mock_response = MagicMock()
    mock_response.choices = [mock_choice]
    return mock_response


def _mock_openai(create: AsyncMock) -> AsyncMock:
    mock_completions = MagicMock()
    mock_completions.create = create

    mock_chat = MagicMock()
    mock_chat.completions = mock_completions

    mock_client_instance = AsyncMock()
    mock_client_instance.chat = mock_chat
    return mock_client_instance


def _status_error(cls: type[openai.APIStatusError], status: int, message: str) -> openai.APIStatusError:
    request = httpx.Request("POST", "https://llm.example.com/v1/chat/completions")
    return cls(message, response=httpx.Response(status, request=request), body=None)


@pytest.mark.asyncio
async def test_llm_client_json_parsing():
    create = AsyncMock(return_value=_completion('{"needsClarification": false, "chartData": {"title": "x"}}'))

    with patch("app.agent.llm_client.AsyncOpenAI", return_value=_mock_openai(create)):
        client = LLMClient(model_name="test-model", api_key="dummy_key")
        result = await client.generate_json(
            system_prompt="You are a helpful assistant.",
            user_prompt="Population of Spain",
        )

    assert result == {"needsClarification": False, "chartData": {"title": "x"}}
    create.assert_called_once()
    kwargs = create.call_args.kwargs
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["temperature"] == 0.7
    assert kwargs["messages"][1] == {"role": "user", "content": "Population of Spain"}


@pytest.mark.asyncio
async def test_llm_client_strips_markdown_fences():
    create = AsyncMock(return_value=_completion('```json\n{"needsClarification": true}\n```'))

    with patch("app.agent.llm_client.AsyncOpenAI", return_value=_mock_openai(create)):
        client = LLMClient(model_name="test-model", api_key="dummy_key")
        result = await client.generate_json("system", "user")

    assert result == {"needsClarification": True}


def test_llm_client_requires_api_key():
    with pytest.raises(ConfigurationError) as exc_info:
        LLMClient(model_name="test-model", api_key=None)
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_llm_client_empty_content_is_a_generation_error_without_retry():
    create = AsyncMock(return_value=_completion(""))

    with patch("app.agent.llm_client.AsyncOpenAI", return_value=_mock_openai(create)):
        client = LLMClient(model_name="test-model", api_key="dummy_key")
        with pytest.raises(GenerationError) as exc_info:
            await client.generate_json("system", "user")

    assert exc_info.value.code == "EMPTY_RESPONSE"
    create.assert_called_once()


@pytest.mark.asyncio
async def test_llm_client_invalid_json_is_a_generation_error():
    create = AsyncMock(return_value=_completion("Sure! Here is your chart."))

    with patch("app.agent.llm_client.AsyncOpenAI", return_value=_mock_openai(create)):
        client = LLMClient(model_name="test-model", api_key="dummy_key")
        with pytest.raises(GenerationError) as exc_info:
            await client.generate_json("system", "user")

    assert exc_info.value.code == "INVALID_JSON"


@pytest.mark.asyncio
async def test_llm_client_retries_unparsable_output_when_attempts_allow():
    create = AsyncMock(side_effect=[_completion("not json"), _completion('{"ok": true}')])

    with patch("app.agent.llm_client.AsyncOpenAI", return_value=_mock_openai(create)):
        client = LLMClient(model_name="test-model", api_key="dummy_key", max_attempts=2)
        result = await client.generate_json("system", "user")

    assert result == {"ok": True}
    assert create.call_count == 2
    retry_kwargs = create.call_args_list[1].kwargs
    assert retry_kwargs["temperature"] == 0
    assert "RETRY INSTRUCTIONS" in retry_kwargs["messages"][0]["content"]


@pytest.mark.asyncio
async def test_llm_client_retries_rate_limits_when_attempts_allow():
    create = AsyncMock(
        side_effect=[
            _status_error(openai.RateLimitError, 429, "Rate limit reached"),
            _completion('{"ok": true}'),
        ]
    )

    with patch("app.agent.llm_client.AsyncOpenAI", return_value=_mock_openai(create)):
        client = LLMClient(model_name="test-model", api_key="dummy_key", max_attempts=3)
        result = await client.generate_json("system", "user")

    assert result == {"ok": True}
    assert create.call_count == 2


@pytest.mark.asyncio
async def test_llm_client_surfaces_upstream_status_without_retry():
    create = AsyncMock(side_effect=_status_error(openai.AuthenticationError, 401, "Incorrect API key provided"))

    with patch("app.agent.llm_client.AsyncOpenAI", return_value=_mock_openai(create)):
        client = LLMClient(model_name="test-model", api_key="dummy_key", max_attempts=3)
        with pytest.raises(UpstreamError) as exc_info:
            await client.generate_json("system", "user")

    assert exc_info.value.code == 401
    assert "Incorrect API key" in exc_info.value.details
    create.assert_called_once()


def test_llm_client_omits_temperature_for_gpt5_models():
    with patch("app.agent.llm_client.AsyncOpenAI"):
        client = LLMClient(model_name="gpt-5-mini", api_key="dummy_key")
    assert client._chat_completion_kwargs(temperature=0.7) == {}
