"""Application configuration with environment variable loading.

Pydantic models whose defaults are read from the process environment.
A local ``.env`` file, when present, overrides the environment so local
development settings win.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv(override=True)

SUPPORTED_EXTENSIONS = (".txt", ".pdf", ".md", ".csv")


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class AppConfig(BaseModel):
    """Configuration for storage, the document store and the upload pipeline.

    Attributes:
        database_url: SQLAlchemy async database URL.
        upload_dir: Directory holding original copies of accepted documents.
        store_display_name: Display name used when creating the document store.
        store_id: Existing document store to reopen instead of creating one.
        poll_interval: Seconds between import status polls.
        poll_max_attempts: Polls before an import is given up.
        error_locale: Locale of user-facing service error messages.
        reimport_on_startup: Re-import staged documents into the store at startup.
    """

    database_url: str = Field(
        default_factory=lambda: os.getenv(
            "DATABASE_URL", "sqlite+aiosqlite:///data/chat.db"
        ),
        description="SQLAlchemy async database URL",
    )
    upload_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("UPLOAD_DIR", "uploads")),
        description="Local directory for uploaded documents",
    )
    store_display_name: str = Field(
        default_factory=lambda: os.getenv("DOCUMENT_STORE_NAME", "rag-document-store"),
        description="Display name for the document store",
    )
    store_id: str | None = Field(
        default_factory=lambda: os.getenv("DOCUMENT_STORE_ID") or None,
        description="Existing document store id to reuse",
    )
    poll_interval: float = Field(
        default_factory=lambda: int(os.getenv("IMPORT_POLL_INTERVAL_MS", "2000")) / 1000,
        gt=0.0,
        description="Seconds between import status polls",
    )
    poll_max_attempts: int = Field(
        default_factory=lambda: int(os.getenv("IMPORT_POLL_MAX_ATTEMPTS", "150")),
        ge=1,
        description="Maximum number of import status polls",
    )
    error_locale: str = Field(
        default_factory=lambda: os.getenv("ERROR_LOCALE", "en"),
        description="Locale for user-facing error messages",
    )
    reimport_on_startup: bool = Field(
        default_factory=lambda: _env_flag("REIMPORT_ON_STARTUP", True),
        description="Re-import staged documents into the store at startup",
    )

    @field_validator("error_locale")
    @classmethod
    def normalize_locale(cls, v: str) -> str:
        """Lower-case the locale and keep only the language part."""
        return v.strip().lower().split("-")[0].split("_")[0] or "en"


class AgentConfig(BaseModel):
    """Credentials and sampling settings for the OpenAI-backed services.

    The same key is used by the chat agent and the document store client.
    LLM_BASE_URL points both at an OpenAI-compatible endpoint.
    """

    api_key: str = Field(
        default_factory=lambda: os.getenv("LLM_API_KEY", os.getenv("OPENAI_API_KEY", "")),
    )
    base_url: str | None = Field(default_factory=lambda: os.getenv("LLM_BASE_URL") or None)
    model_name: str = Field(default_factory=lambda: os.getenv("LLM_MODEL", "gpt-4o-mini"))
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1024, ge=1, le=128000)
    request_timeout: float = Field(
        default_factory=lambda: float(os.getenv("LLM_TIMEOUT_SECONDS", "600")),
        gt=0.0,
        description="Per-request timeout of the OpenAI client in seconds",
    )

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("API key required. Set LLM_API_KEY or OPENAI_API_KEY in .env")
        return v.strip()


def get_agent_config() -> AgentConfig:
    """Create agent configuration from environment.

    Raises:
        ValueError: If no API key is set.
    """
    return AgentConfig()


def get_app_config() -> AppConfig:
    """Create application configuration from environment.

    Returns:
        Configured AppConfig instance.
    """
    return AppConfig()
