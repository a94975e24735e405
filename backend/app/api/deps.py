import json
from collections.abc import Generator
from typing import Annotated, Any

from fastapi import Depends, Request
from sqlmodel import Session

from app.agent.chart_agent import ChartAgent
from app.core.config import Settings
from app.core.errors import ConfigurationError, InvalidRequestError
from app.services.charts import ChartService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Generator[Session, None, None]:
    engine = request.app.state.engine
    if engine is None:
        raise ConfigurationError("Chart store not configured")
    with Session(engine) as session:
        yield session


def get_chart_agent(request: Request) -> ChartAgent:
    agent = request.app.state.chart_agent
    if agent is None:
        raise ConfigurationError("OPENAI_API_KEY not configured", code="CONFIGURATION_ERROR")
    return agent


async def get_json_body(request: Request) -> dict[str, Any]:
    """Request body as a JSON object; empty for bodiless requests."""
    if request.method in ("GET", "HEAD", "OPTIONS"):
        return {}
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        body = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidRequestError("Invalid JSON body", details=str(e)) from e
    if not isinstance(body, dict):
        raise InvalidRequestError("JSON body must be an object")
    return body


SettingsDep = Annotated[Settings, Depends(get_settings)]
SessionDep = Annotated[Session, Depends(get_db)]
ChartAgentDep = Annotated[ChartAgent, Depends(get_chart_agent)]
JsonBody = Annotated[dict[str, Any], Depends(get_json_body)]


def get_chart_service(session: SessionDep, settings: SettingsDep) -> ChartService:
    return ChartService(session=session, settings=settings)


ChartServiceDep = Annotated[ChartService, Depends(get_chart_service)]
