import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Text
from sqlmodel import Field, SQLModel

from app.agent.artifacts import CamelModel, ChartData, ChartType, ChartValue, Trend


def get_datetime_utc() -> datetime:
    return datetime.now(timezone.utc)


# Database model for the chart store
class Chart(SQLModel, table=True):
    __tablename__ = "charts"  # type: ignore

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    # Exactly one of user_id / anonymous_id is set for rows written by the service
    user_id: str | None = Field(default=None, index=True, max_length=255)
    anonymous_id: str | None = Field(default=None, index=True, max_length=255)
    title: str = Field(max_length=500)
    chart_type: str = Field(max_length=10)
    labels: list = Field(default_factory=list, sa_type=JSON)
    values: list = Field(default_factory=list, sa_type=JSON)
    # Legacy copy of `values` kept for rows written by older clients
    data: list | None = Field(default=None, sa_type=JSON)
    unit: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, sa_type=Text)
    sources: list | None = Field(default=None, sa_type=JSON)
    insights: list | None = Field(default=None, sa_type=JSON)
    trend: str | None = Field(default=None, max_length=10)
    highlight_index: int | None = None
    is_public: bool = False
    share_id: str = Field(unique=True, index=True, max_length=16)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
        index=True,
    )
    updated_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
        sa_column_kwargs={"onupdate": get_datetime_utc},
    )


class UserProfile(SQLModel, table=True):
    __tablename__ = "user_profiles"  # type: ignore

    id: str = Field(primary_key=True, max_length=255)
    is_pro: bool = False
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


# Properties to return via API
class ChartPublic(CamelModel):
    id: uuid.UUID
    user_id: str | None = None
    anonymous_id: str | None = None
    title: str
    chart_type: ChartType
    labels: list[str]
    values: list[ChartValue]
    unit: str | None = None
    description: str | None = None
    sources: list[str] | None = None
    insights: list[str] | None = None
    trend: Trend | None = None
    highlight_index: int | None = None
    is_public: bool = False
    share_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, chart: Chart) -> "ChartPublic":
        return cls(
            id=chart.id,
            user_id=chart.user_id,
            anonymous_id=chart.anonymous_id,
            title=chart.title,
            chart_type=chart.chart_type,
            labels=chart.labels or [],
            values=chart.values or chart.data or [],
            unit=chart.unit,
            description=chart.description,
            sources=chart.sources,
            insights=chart.insights,
            trend=chart.trend,
            highlight_index=chart.highlight_index,
            is_public=chart.is_public,
            share_id=chart.share_id,
            created_at=chart.created_at,
            updated_at=chart.updated_at,
        )

    def to_chart_data(self) -> ChartData:
        return ChartData.model_validate(
            self.model_dump(
                include=set(ChartData.model_fields),
                exclude_none=True,
            )
        )


class ChartSaveResponse(CamelModel):
    success: bool = True
    chart: ChartPublic
    share_url: str


class QuotaState(CamelModel):
    allowed: bool
    current: int
    # None means unbounded (pro tier)
    limit: int | None
    is_pro: bool = False

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
