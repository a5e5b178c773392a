"""
ThreatsManager Settings
=======================

Settings are read from environment variables prefixed with
``THREATSMANAGER_`` or from a ``.env`` file in the working directory.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Runtime settings of the engine and its command line.

    Attributes:
        log_level: Level of the root logger
        log_format: Format string of log records
        model_file_name: Document looked up when a directory is given as model path
        default_owner: Owner assigned to models created by ``init``
        standard_catalogs: Seed standard severities and strengths on ``init``
    """
    model_config = SettingsConfigDict(
        env_prefix="THREATSMANAGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = Field(
        default="WARNING",
        description="Logging level"
    )
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log record format"
    )
    model_file_name: str = Field(
        default="threat-model.yaml",
        description="Threat model document name inside a model directory"
    )
    default_owner: Optional[str] = Field(
        default=None,
        description="Owner of newly created threat models"
    )
    standard_catalogs: bool = Field(
        default=True,
        description="Seed standard severities and strengths in new models"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return upper_v

    @field_validator("model_file_name")
    @classmethod
    def validate_model_file_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("model_file_name cannot be empty")
        return v.strip()


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance; call ``get_settings.cache_clear()`` to reload."""
    return Settings()
