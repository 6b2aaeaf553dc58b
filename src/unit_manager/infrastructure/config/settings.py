"""
Application configuration

Settings are loaded from UNIT_MANAGER_* environment variables (or a .env
file) with pydantic-settings.
"""
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Unit manager settings."""

    model_config = SettingsConfigDict(
        env_prefix="UNIT_MANAGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============== Bus ==============
    bus_type: str = Field(default="system", description="D-Bus to connect to: system or session")
    job_mode: str = Field(default="replace", description="Mode used when queueing jobs")

    # ============== Subscriptions ==============
    subscription_interval: float = Field(
        default=1.0, gt=0, description="Seconds between two unit list polls"
    )
    subscription_buffer: int = Field(
        default=10, ge=1, description="Change batches buffered per subscription"
    )

    # ============== Logging ==============
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="text")  # json, text (default: text for human-readable)

    @field_validator("bus_type")
    @classmethod
    def validate_bus_type(cls, v: str) -> str:
        allowed = {"system", "session"}
        if v.lower() not in allowed:
            raise ValueError(f"bus_type must be one of {allowed}")
        return v.lower()

    @field_validator("job_mode")
    @classmethod
    def validate_job_mode(cls, v: str) -> str:
        allowed = {"replace", "fail", "isolate", "ignore-dependencies", "ignore-requirements"}
        if v not in allowed:
            raise ValueError(f"job_mode must be one of {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        allowed = {"json", "text"}
        if v not in allowed:
            raise ValueError(f"log_format must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """
    Get the settings singleton.

    lru_cache makes sure the environment is only read once.
    """
    return Settings()
