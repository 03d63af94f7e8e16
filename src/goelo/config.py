"""
Configuration management for goelo.

Uses Pydantic Settings to load configuration from environment variables
(prefixed GOELO_) with sensible defaults. A .env file in the working
directory is read as well.

Usage:
    from goelo.config import settings
    print(settings.home_organization)
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from goelo.elo.constants import CORRECTION_RANGE, ESTIMATION_DEFAULTS, HOME_ORGANIZATION, K_DEFAULTS


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables can be set directly or via a .env file
    in the project root directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GOELO_",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # League Configuration
    # ==========================================================================

    home_organization: str = Field(
        default=HOME_ORGANIZATION,
        description="Association whose grades are taken at face value and whose promotions earn a rating floor",
    )
    international: bool = Field(
        default=False,
        description="Treat foreign grades at face value (international rating pool)",
    )

    # ==========================================================================
    # Rating Engine Configuration
    # ==========================================================================

    k_base: float = Field(
        default=K_DEFAULTS["k_base"],
        description="Base K-factor below the strong rating band",
    )
    k_strong: float = Field(
        default=K_DEFAULTS["k_strong"],
        description="Base K-factor at or above the strong rating band",
    )
    k_strong_threshold: float = Field(
        default=K_DEFAULTS["k_strong_threshold"],
        description="Rating where the strong band starts",
    )
    estimation_correction: float = Field(
        default=ESTIMATION_DEFAULTS["correction"],
        description="Share of the performance-estimate gap applied after the first games",
    )

    # ==========================================================================
    # Logging Configuration
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_format: str = Field(
        default="console",
        description="Log format: 'json' for production, 'console' for dev",
    )

    # ==========================================================================
    # Validators
    # ==========================================================================

    @field_validator("home_organization")
    @classmethod
    def normalize_organization(cls, v: str) -> str:
        """Organizations are compared upper-case."""
        v = v.strip().upper()
        if not v:
            raise ValueError("home_organization must not be empty")
        return v

    @field_validator("estimation_correction")
    @classmethod
    def validate_correction(cls, v: float) -> float:
        """Keep the applied share of the estimate gap within bounds."""
        low, high = CORRECTION_RANGE
        if not low <= v <= high:
            raise ValueError(f"estimation_correction must be between {low} and {high}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return upper_v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        lower_v = v.lower()
        if lower_v not in {"json", "console"}:
            raise ValueError("log_format must be 'json' or 'console'")
        return lower_v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only load settings once,
    which is important because loading from .env can be slow.
    """
    return Settings()


# Convenience alias for importing
settings = get_settings()
