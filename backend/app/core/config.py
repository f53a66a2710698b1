"""
Application configuration using Pydantic Settings.

Environment-based infrastructure switching is controlled by the ENVIRONMENT variable.
"""

from functools import lru_cache
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ===========================================
    # Environment
    # ===========================================
    ENVIRONMENT: Literal["local", "production"] = "local"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # ===========================================
    # Database
    # ===========================================
    # sqlite+aiosqlite for local development, postgresql+asyncpg in production
    DATABASE_URL: str = "sqlite+aiosqlite:///./chat.db"

    # ===========================================
    # LLM Configuration
    # ===========================================
    # Model id used when the client does not send one (or sends an unknown one)
    DEFAULT_CHAT_MODEL: str = "gpt-5"

    # Upper bound of model/tool-call rounds per chat turn
    CHAT_MAX_STEPS: int = 5

    # Stop generating when the client drops the SSE connection.
    # Off by default: the turn runs to completion and is persisted.
    CHAT_ABORT_ON_DISCONNECT: bool = False

    # Provider-native web search (passed through LiteLLM web_search_options)
    CHAT_WEB_SEARCH_ENABLED: bool = False

    # Reasoning toggles per provider family
    OPENAI_REASONING_EFFORT: Literal["minimal", "low", "medium", "high"] = "low"
    O3_REASONING_EFFORT: Literal["low", "medium", "high"] = "high"
    GEMINI_THINKING_BUDGET: int = 2048
    # 0 disables extended thinking for Anthropic models
    ANTHROPIC_THINKING_BUDGET: int = 0

    # LiteLLM custom endpoint (optional, for proxy servers)
    LITELLM_API_BASE: str = ""

    # LiteLLM custom API key (optional, for custom endpoints)
    LITELLM_API_KEY: str = ""

    # ===========================================
    # Document retrieval
    # ===========================================
    DOCUMENT_SEARCH_LIMIT: int = 5

    # ===========================================
    # Auth (JWT)
    # ===========================================
    AUTH_PROVIDER: Literal["mock", "local"] = "mock"
    LOCAL_JWT_SECRET: str = ""
    LOCAL_JWT_ISSUER: str = "chat-local"
    LOCAL_JWT_EXPIRE_MINUTES: int = 60 * 24 * 7

    # ===========================================
    # Server
    # ===========================================
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ALLOWED_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"]
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures settings are loaded only once.
    """
    return Settings()
