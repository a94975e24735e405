import logging

from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from app.core.config import Settings

logger = logging.getLogger(__name__)


def create_db_engine(database_url: str) -> Engine:
    connect_args: dict = {}
    engine_kwargs: dict = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        # In-memory databases live on a single connection.
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            engine_kwargs["poolclass"] = StaticPool
    return create_engine(database_url, connect_args=connect_args, **engine_kwargs)


def init_db(engine: Engine) -> None:
    # Tables are registered on SQLModel.metadata when app.models is imported.
    import app.models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def engine_from_settings(settings: Settings) -> Engine | None:
    if not settings.DATABASE_URL:
        logger.warning("DATABASE_URL is not set; chart storage endpoints will fail with a configuration error.")
        return None
    engine = create_db_engine(settings.DATABASE_URL)
    init_db(engine)
    return engine
