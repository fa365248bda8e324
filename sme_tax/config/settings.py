"""Configuration settings for the SME tax engine."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings read from ``SME_TAX_*`` environment variables or ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="SME_TAX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Rulebooks
    rules_dir: Optional[str] = Field(
        default=None, description="Directory holding rulebook JSON documents"
    )
    default_jurisdiction: str = Field(
        default="ng_federal", description="Rulebook jurisdiction key"
    )
    default_tax_year: int = Field(default=2024, description="Default tax year")

    # Bookkeeping
    cash_account: str = Field(
        default="1020", description="Account debited/credited for bank movements"
    )

    # AI-assisted classification
    ai_confidence_threshold: float = Field(
        default=0.7, ge=0.0, le=1.0,
        description="Rule confidence below which the AI classifier is consulted",
    )
    ai_timeout_seconds: float = Field(
        default=5.0, gt=0.0, description="Timeout for one AI classification call"
    )

    # Output
    report_dir: str = Field(default="reports", description="Report export directory")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Log output format"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
