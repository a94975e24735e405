import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.agent.chart_agent import ChartAgent
from app.agent.llm_client import LLMClient
from app.api.main import api_router
from app.core.config import Settings, settings
from app.core.db import engine_from_settings
from app.core.errors import ChartServiceError, ConfigurationError

logger = logging.getLogger(__name__)


async def chart_service_error_handler(request: Request, exc: ChartServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.details)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def _build_chart_agent(app_settings: Settings) -> ChartAgent | None:
    try:
        llm = LLMClient.from_settings(app_settings)
    except ConfigurationError:
        logger.warning("No LLM API key configured; chart generation will fail with a configuration error.")
        return None
    return ChartAgent(llm, prompt_version=app_settings.PROMPT_VERSION)


def create_app(app_settings: Settings | None = None) -> FastAPI:
    app_settings = app_settings or settings
    logging.basicConfig(level=app_settings.LOG_LEVEL)

    application = FastAPI(title=app_settings.PROJECT_NAME)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    application.add_exception_handler(ChartServiceError, chart_service_error_handler)

    application.state.settings = app_settings
    application.state.engine = engine_from_settings(app_settings)
    application.state.chart_agent = _build_chart_agent(app_settings)

    application.include_router(api_router, prefix=app_settings.API_PREFIX)
    return application


app = create_app()
