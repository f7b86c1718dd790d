from functools import lru_cache
import json
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


class Settings(BaseSettings):
    # Resolve to backend/.env so `uvicorn --app-dir backend` works from any cwd.
    model_config = SettingsConfigDict(env_file=str(BACKEND_ENV_FILE), env_file_encoding="utf-8")

    project_name: str = "DeptGrid API"
    api_prefix: str = "/api"

    groq_api_key: str | None = None
    advisor_model: str = "openai/gpt-oss-20b"
    advisor_temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    advisor_timeout_seconds: float = Field(default=30.0, gt=0.0)
    advisor_min_confidence: int = Field(default=70, ge=0, le=100)
    advisor_cache_max_entries: int = Field(default=128, ge=1)
    advisor_cache_ttl_seconds: float = Field(default=3600.0, gt=0.0)

    optimize_distribution: bool = True
    optimizer_max_iterations: int = Field(default=20, ge=0, le=500)

    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_cors_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                try:
                    parsed = json.loads(stripped)
                    if isinstance(parsed, list):
                        return [str(item).strip() for item in parsed if str(item).strip()]
                except json.JSONDecodeError:
                    pass
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @property
    def advisor_enabled(self) -> bool:
        return bool(self.groq_api_key and self.groq_api_key.strip())


@lru_cache
def get_settings() -> Settings:
    return Settings()
