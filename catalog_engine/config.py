"""
Configuration Module
Version: 1.0

Centralized configuration with validation.
All values have defaults; override through environment or .env file.
"""
import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("configuration")


class Settings(BaseSettings):

    # =========================================================================
    # APPLICATION
    # =========================================================================
    APP_ENV: str = Field(default="development")
    APP_NAME: str = Field(default="catalog-engine")
    APP_VERSION: str = Field(default="1.0.0")

    # =========================================================================
    # INPUT FILES
    # =========================================================================
    CATALOG_PATH: str = Field(
        default="data/tool_index.json",
        description="Flat catalog of operation descriptors"
    )
    DEPENDENCY_GRAPH_PATH: Optional[str] = Field(
        default="data/dependency_graph.json",
        description="Static prerequisite graph; unset to run without one"
    )

    # =========================================================================
    # SEARCH
    # =========================================================================
    SEARCH_MIN_TERM_LENGTH: int = Field(default=2)
    SEARCH_ENABLE_FUZZY: bool = Field(default=True)
    SEARCH_MAX_EDIT_DISTANCE: int = Field(default=2)
    SEARCH_DEFAULT_LIMIT: int = Field(default=10)
    SEARCH_MAX_LIMIT: int = Field(default=50)
    SEARCH_MIN_SCORE: float = Field(default=0.1)

    # =========================================================================
    # PLANNING
    # =========================================================================
    RESOLVER_MAX_DEPTH: int = Field(default=10)

    # =========================================================================
    # LOGGING
    # =========================================================================
    LOG_LEVEL: str = Field(default="INFO")
    LOG_JSON: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    # =========================================================================
    # VALIDATORS
    # =========================================================================
    @field_validator(
        'SEARCH_MIN_TERM_LENGTH', 'SEARCH_DEFAULT_LIMIT',
        'SEARCH_MAX_LIMIT', 'RESOLVER_MAX_DEPTH'
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be >= 1, got {v}")
        return v

    @field_validator('SEARCH_MAX_EDIT_DISTANCE')
    @classmethod
    def validate_edit_distance(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"must be >= 0, got {v}")
        return v

    @field_validator('SEARCH_MIN_SCORE')
    @classmethod
    def validate_score(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"score threshold must be within [0, 1], got {v}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    try:
        return Settings()
    except Exception as e:
        logger.error(f"Could not load settings: {e}")
        raise
