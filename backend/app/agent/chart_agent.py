import logging

from pydantic import ValidationError

from app.agent.artifacts import AIResponse, ChartRequest
from app.agent.base import BaseAgent
from app.agent.llm_client import LLMClient
from app.agent.prompts.chart import DEFAULT_PROMPT_VERSION, get_chart_system_prompt
from app.core.errors import GenerationError

logger = logging.getLogger(__name__)


class ChartAgent(BaseAgent[ChartRequest, AIResponse]):
    """
    Turns a natural-language query into chart data, or into a single
    clarification question when the query cannot be interpreted.
    """

    def __init__(self, llm: LLMClient, prompt_version: str = DEFAULT_PROMPT_VERSION):
        super().__init__(llm)
        # Resolve eagerly so an unknown version fails at startup.
        self.system_prompt = get_chart_system_prompt(prompt_version)
        self.prompt_version = prompt_version

    def get_system_prompt(self, **kwargs) -> str:
        return self.system_prompt

    async def run(self, input_data: ChartRequest) -> AIResponse:
        raw = await self.llm.generate_json(
            system_prompt=self.get_system_prompt(),
            user_prompt=input_data.effective_query(),
        )
        try:
            response = AIResponse.model_validate(raw)
        except ValidationError as e:
            logger.error("Model response does not match the chart contract: %s", e)
            raise GenerationError(
                "Error processing request",
                details=f"Model response does not match the chart contract: {e.error_count()} error(s)",
                code="INVALID_SCHEMA",
            ) from e

        if response.needs_clarification:
            logger.info("Model asked for clarification on query %r", input_data.query)
        else:
            logger.info(
                "Generated %s chart with %s data points (prompt %s)",
                response.chart_data.chart_type,
                len(response.chart_data.values),
                self.prompt_version,
            )
        return response
