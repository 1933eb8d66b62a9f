from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# profile name -> (database file, log file)
PROFILES: dict[str, tuple[str, str]] = {
    "default": ("data.db", "debug.log"),
    "dev": ("dev.db", "dev.log"),
}

LOG_LEVELS = ("debug", "info", "warn", "error")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PLANBOARD_", frozen=True)

    profile: str = "default"
    database_url: Optional[str] = None
    log_level: str = "info"

    # Project management module
    max_lists: int = Field(default=5, ge=1)
    due_soon_days: int = Field(default=3, ge=0)

    @field_validator("profile")
    @classmethod
    def known_profile(cls, value: str) -> str:
        if value not in PROFILES:
            raise ValueError(f"unknown profile {value!r}, expected one of {sorted(PROFILES)}")
        return value

    @field_validator("log_level")
    @classmethod
    def known_log_level(cls, value: str) -> str:
        value = value.lower()
        if value not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return value

    @property
    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        db_file, _ = PROFILES[self.profile]
        return f"sqlite:///./{db_file}"

    @property
    def log_file(self) -> str:
        return PROFILES[self.profile][1]


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, read once at startup."""
    return Settings()
