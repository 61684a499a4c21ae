from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from receptionist.schemas.tenant import TenantConfiguration


class Settings(BaseSettings):
    """Central application configuration."""

    app_name: str = Field(default="Receptionist Agent")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # MongoDB (only needed for tenants with db_type "mongo")
    mongo_uri: str = Field(default="mongodb://localhost:27017")
    mongo_database: str = Field(default="receptionist")
    bookings_collection: str = Field(default="bookings")

    # Tenants, as a JSON list of tenant configurations
    tenants: List[TenantConfiguration] = Field(
        default_factory=list,
        validation_alias=AliasChoices("TENANTS", "RECEPTIONIST_TENANTS"),
    )

    # Input guard
    guard_length_threshold: int = Field(default=1000)
    guard_marker_threshold: int = Field(default=3)

    # Sessions idle longer than this are discarded
    session_idle_timeout_seconds: int = Field(default=1800)

    # Audit and booking defaults
    audit_security_window_days: int = Field(default=7)
    audit_recent_limit: int = Field(default=100)
    first_available_days: int = Field(default=30)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
