import logging
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, FiniteFloat, StrictInt, field_validator, model_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

ChartType = Literal["bar", "line", "pie", "area"]
Trend = Literal["up", "down", "stable"]
# Finite numbers only; booleans are not numbers here.
ChartValue = StrictInt | FiniteFloat

CLARIFICATION_PREFIX = "Additional information: "


class CamelModel(BaseModel):
    """Snake-case attributes, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ChartRequest(CamelModel):
    query: str
    clarification_answer: str | None = None

    @field_validator("query")
    @classmethod
    def _query_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("query must not be empty")
        return value

    @field_validator("clarification_answer")
    @classmethod
    def _blank_answer_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    def effective_query(self) -> str:
        if self.clarification_answer:
            return f"{self.query}\n{CLARIFICATION_PREFIX}{self.clarification_answer}"
        return self.query


class ChartData(CamelModel):
    """Structured chart produced by the generation service."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    title: str = Field(min_length=1, description="Descriptive chart title")
    chart_type: ChartType = Field(description="Visual encoding best suited to the data")
    labels: list[str] = Field(min_length=1, description="Category or time axis labels")
    values: list[ChartValue] = Field(min_length=1, description="One number per label")
    unit: str | None = None
    description: str | None = None
    sources: list[str] | None = None
    insights: list[str] | None = None
    trend: Trend | None = None
    highlight_index: int | None = None

    @field_validator("values", mode="before")
    @classmethod
    def _reject_booleans(cls, value: object) -> object:
        if isinstance(value, list) and any(isinstance(item, bool) for item in value):
            raise ValueError("values must be numbers, not booleans")
        return value

    @model_validator(mode="after")
    def _check_series(self) -> "ChartData":
        if len(self.labels) != len(self.values):
            raise ValueError(
                f"labels and values differ in length ({len(self.labels)} != {len(self.values)})"
            )
        if self.highlight_index is not None and not 0 <= self.highlight_index < len(self.values):
            logger.warning(
                "Dropping out-of-range highlightIndex %s for %s data points.",
                self.highlight_index,
                len(self.values),
            )
            self.highlight_index = None
        return self


class AIResponse(CamelModel):
    needs_clarification: bool
    clarification_question: str | None = None
    chart_data: ChartData | None = None

    @model_validator(mode="after")
    def _check_branch(self) -> "AIResponse":
        if self.needs_clarification:
            if not (self.clarification_question or "").strip():
                raise ValueError("needsClarification is true but clarificationQuestion is missing")
            self.chart_data = None
        else:
            if self.chart_data is None:
                raise ValueError("needsClarification is false but chartData is missing")
            self.clarification_question = None
        return self
