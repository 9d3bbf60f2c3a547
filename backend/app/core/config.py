from typing import Annotated, Any, Literal

from pydantic import AnyUrl, BeforeValidator, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_cors(v: Any) -> list[str] | str:
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    API_V1_STR: str = "/api"
    PROJECT_NAME: str = "Nucleus Site API"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    LOG_LEVEL: str = "INFO"

    BACKEND_CORS_ORIGINS: Annotated[list[AnyUrl] | str, BeforeValidator(parse_cors)] = []

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS]

    SQLALCHEMY_DATABASE_URI: str = "sqlite:///./nucleus.db"

    # Nucleus bearer tokens (HS256 JWTs)
    NUCLEUS_JWT_SECRET: str = "changethis"
    NUCLEUS_JWT_ISSUER: str | None = None
    NUCLEUS_JWT_AUDIENCE: str | None = None
    NUCLEUS_CORS_ORIGINS: str = "*"
    NUCLEUS_RATE_LIMIT_MAX: int = 60
    NUCLEUS_RATE_LIMIT_WINDOW_MS: int = 60_000
    # Redis for a shared sliding-window limiter; in-memory when unset
    NUCLEUS_REDIS_URL: str | None = None

    # Comma-separated list of emails allowed to edit blog posts
    OWNER_EMAILS: str = ""

    @computed_field  # type: ignore[prop-decorator]
    @property
    def owner_emails(self) -> list[str]:
        return [e.strip().lower() for e in self.OWNER_EMAILS.split(",") if e.strip()]

    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_EMBED_MODEL: str = "nomic-embed-text:latest"

    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_SUMMARY_MODEL: str = "gpt-4o-mini"

    ANTHROPIC_API_KEY: str | None = None
    ANTHROPIC_MODEL: str = "claude-sonnet-4-20250514"
    ANTHROPIC_BASE_URL: str = "https://api.anthropic.com/v1/"

    MISTRAL_API_KEY: str | None = None
    MISTRAL_MODEL: str = "mistral-small-latest"
    MISTRAL_BASE_URL: str = "https://api.mistral.ai/v1"

    GEMINI_API_KEY: str | None = None
    GEMINI_MODEL: str = "gemini-3-flash-preview"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta/openai/"

    HF_API_KEY: str | None = None
    HF_MODEL: str = "HuggingFaceH4/zephyr-7b-beta"
    HF_BASE_URL: str = "https://router.huggingface.co/v1"

    XAI_API_KEY: str | None = None
    XAI_MODEL: str = "grok-4-1-fast"
    XAI_BASE_URL: str = "https://api.x.ai/v1"


settings = Settings()  # type: ignore
