"""
AI Gateway - Configuration
==========================

All application settings loaded from environment variables.
Uses pydantic-settings for validation and type conversion.
"""

from functools import lru_cache
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Application
    # ==========================================================================
    APP_NAME: str = "AI Gateway"
    SERVICE_NAME: str = "ai-gateway"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = "development"
    DEBUG: bool = False

    # ==========================================================================
    # API
    # ==========================================================================
    API_PREFIX: str = "/api"
    PORT: int = 3001
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # ==========================================================================
    # Database (supports SQLite and PostgreSQL)
    # ==========================================================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./ai_gateway.db"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_ECHO: bool = False

    @computed_field  # type: ignore[misc]
    @property
    def is_sqlite(self) -> bool:
        return "sqlite" in self.DATABASE_URL

    # ==========================================================================
    # Model Service (Ollama)
    # ==========================================================================
    OLLAMA_HOST: str = "http://localhost:11434"
    DEFAULT_MODEL: str = "llama3"
    MODEL_TIMEOUT: float = 60.0
    MODEL_STREAM_START_TIMEOUT: float = 60.0
    MODERNIZE_TIMEOUT: float = 120.0

    # ==========================================================================
    # GitHub
    # ==========================================================================
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_TOKEN: str | None = None
    GITHUB_TIMEOUT: float = 30.0

    # ==========================================================================
    # Codebase Analysis
    # ==========================================================================
    ANALYSIS_DEFAULT_MAX_FILES: int = 30
    ANALYSIS_MAX_FILES_LIMIT: int = 200
    ANALYSIS_SAMPLE_FILES: int = 15
    ANALYSIS_MAX_FILE_SIZE: int = 100_000  # bytes, as reported by the tree listing
    ANALYSIS_FILE_CONTENT_LIMIT: int = 10_000  # characters kept per fetched file
    ANALYSIS_PROMPT_FILE_CHARS: int = 2_000  # characters per file embedded in the prompt
    ANALYSIS_MODEL_TIMEOUT: float = 300.0
    ANALYSIS_EXCLUDE_PATHS: list[str] = [
        "node_modules",
        ".git",
        "dist",
        "build",
        "target",
        "bin",
        "obj",
        "vendor",
        "__pycache__",
        ".venv",
        "venv",
        ".next",
        "coverage",
    ]

    # ==========================================================================
    # Rate Limiting
    # ==========================================================================
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT: str = "100/15minutes"

    # ==========================================================================
    # Computed Properties
    # ==========================================================================
    @computed_field  # type: ignore[misc]
    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @computed_field  # type: ignore[misc]
    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @computed_field  # type: ignore[misc]
    @property
    def is_test(self) -> bool:
        return self.ENVIRONMENT == "test"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export
settings = get_settings()
