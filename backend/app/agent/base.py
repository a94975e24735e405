from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from pydantic import BaseModel

from app.agent.llm_client import LLMClient

InType = TypeVar("InType", bound=BaseModel | str)
OutType = TypeVar("OutType", bound=BaseModel)


class BaseAgent(ABC, Generic[InType, OutType]):
    """Abstract base class for agents backed by an LLM client."""

    def __init__(self, llm: LLMClient):
        self.llm = llm

    @abstractmethod
    async def run(self, input_data: InType) -> OutType:
        """Run the agent on the given input to produce the output artifact."""
        pass

    def get_system_prompt(self, **kwargs) -> str:
        """Optional helper to format the system prompt."""
        return ""
