from collections.abc import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlmodel import Session

from app.agent.artifacts import ChartData
from app.core.config import Settings
from app.core.db import create_db_engine, init_db
from app.main import create_app

BASE_URL = "https://charts.example.com"


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        OPENAI_API_KEY="test-key",
        LLM_API_KEY=None,
        PUBLIC_BASE_URL=BASE_URL,
    )


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine: Engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@pytest.fixture
def application(test_settings: Settings) -> FastAPI:
    return create_app(test_settings)


@pytest.fixture
def client(application: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(application) as c:
        yield c


@pytest.fixture
def population_chart() -> ChartData:
    return ChartData(
        title="Top 5 countries by population",
        chart_type="bar",
        labels=["India", "China", "United States", "Indonesia", "Pakistan"],
        values=[1428, 1425, 340, 277, 240],
        unit="million people",
        description="India recently overtook China as the most populous country.",
        sources=["UN World Population Prospects"],
        insights=["India and China together hold over a third of humanity."],
        trend="down",
        highlight_index=0,
    )
