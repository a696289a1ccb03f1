"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Application
    app_name: str = "Prompt Template Engine"
    app_version: str = "0.1.0"
    debug: bool = Field(default=False, env="DEBUG")
    environment: str = Field(default="development", env="ENVIRONMENT")

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_format: str = Field(default="console", env="LOG_FORMAT")  # json or console
    log_file: Optional[str] = Field(default=None, env="LOG_FILE")

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./templates.db",
        env="DATABASE_URL"
    )
    database_echo: bool = Field(default=False, env="DATABASE_ECHO")

    # Validation & scoring
    scoring_weights_file: Optional[str] = Field(
        default=None,
        env="SCORING_WEIGHTS_FILE",
        description="JSON file overriding the default scoring weight table"
    )

    # Search
    search_max_candidates: int = Field(default=5000, env="SEARCH_MAX_CANDIDATES")
    default_page_size: int = Field(default=20, env="DEFAULT_PAGE_SIZE")

    @validator("log_level")
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @validator("log_format")
    def validate_log_format(cls, v):
        """Validate log format."""
        valid_formats = ["json", "console"]
        if v.lower() not in valid_formats:
            raise ValueError(f"Log format must be one of: {valid_formats}")
        return v.lower()

    @validator("search_max_candidates", "default_page_size")
    def validate_positive(cls, v):
        """Search limits must be positive."""
        if v < 1:
            raise ValueError("Search limits must be positive")
        return v

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get application settings (cached)."""
    return Settings()


# Global settings instance
settings = get_settings()
