from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "Graficos AI"
    API_PREFIX: str = "/api"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    LOG_LEVEL: str = "INFO"

    # Base URL of the deployed front end; share links are <PUBLIC_BASE_URL>/chart/<share_id>
    PUBLIC_BASE_URL: str = "https://grafic-generator-ai.vercel.app"

    # LLM provider (any OpenAI-compatible endpoint)
    OPENAI_API_KEY: str | None = None
    LLM_API_KEY: str | None = None
    LLM_BASE_URL: str | None = None
    MODEL_DEFAULT: str = "gpt-4o-mini"
    LLM_TEMPERATURE: float = 0.7
    LLM_TIMEOUT_SECONDS: float | None = None
    # 1 means a single attempt with no retry
    GENERATION_MAX_ATTEMPTS: int = 1
    PROMPT_VERSION: Literal["v1", "v2"] = "v2"

    # Chart store
    DATABASE_URL: str | None = None
    ANONYMOUS_CHART_LIMIT: int = 3
    FREE_CHART_LIMIT: int = 8
    SHARE_ID_MAX_ATTEMPTS: int = 5
    ALLOW_ANONYMOUS_DELETE_BY_ID: bool = True

    @property
    def llm_api_key(self) -> str | None:
        return self.LLM_API_KEY or self.OPENAI_API_KEY

    @property
    def share_base_url(self) -> str:
        return self.PUBLIC_BASE_URL.rstrip("/")


settings = Settings()  # type: ignore
