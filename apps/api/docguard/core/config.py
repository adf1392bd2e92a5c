from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # 기본 공급자는 gemini, 필요 시 openai 호환 엔드포인트로 전환
    env: str = "development"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: list[str] = ["http://localhost:3000"]
    log_level: str = "INFO"

    ai_provider: Literal["gemini", "openai"] = "gemini"
    ai_request_timeout_sec: int = 30
    ai_max_concurrency: int = 4
    ai_backpressure_acquire_timeout_ms: int = 200
    ai_max_attempts: int = 2

    gemini_api_key: str = Field(
        default="",
        validation_alias=AliasChoices(
            "GEMINI_API_KEY",
            "GOOGLE_GENERATIVE_AI_API_KEY",
            "GOOGLE_API_KEY",
        ),
    )
    gemini_model: str = "gemini-2.5-flash"

    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str = "https://api.openai.com/v1"

    analysis_score_min: int = 40
    analysis_score_max: int = 85
    upload_max_bytes: int = 10 * 1024 * 1024

    admin_api_key: str = ""

    model_config = SettingsConfigDict(env_file="../../.env", extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
