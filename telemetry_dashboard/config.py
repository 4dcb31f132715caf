"""
Service configuration.

Uses ``pydantic_settings.BaseSettings`` for automatic environment
variable binding, type coercion, and validation.  A ``.env`` file is
loaded by the app entry point before settings are first read.
"""

from __future__ import annotations

import functools
import pathlib

import pydantic
import pydantic_settings

from telemetry_dashboard.analysis import relationships
from telemetry_dashboard.storage import kv_store


class Settings(pydantic_settings.BaseSettings):
    """Runtime settings for the dashboard service.

    Attributes:
        cache_dir: Directory holding persisted tracker state.
        storage_key: Key of the tracker entry in the store.
        relationship_max_age_ms: Drop domain relationships not seen
            for this long.  Unset keeps them forever.
        relationship_max_related: Cap on related domains per domain.
        optimistic_success: Count requests without a status as
            successful when computing success rates.
    """

    model_config = pydantic_settings.SettingsConfigDict(extra="ignore", populate_by_name=True)

    cache_dir: pathlib.Path = pydantic.Field(
        default=kv_store.DEFAULT_STATE_DIR, validation_alias="TELEMETRY_CACHE_DIR"
    )
    storage_key: str = pydantic.Field(
        default=relationships.STORAGE_KEY, validation_alias="TELEMETRY_STORAGE_KEY"
    )
    relationship_max_age_ms: int | None = pydantic.Field(
        default=None, ge=1, validation_alias="TELEMETRY_RELATIONSHIP_MAX_AGE_MS"
    )
    relationship_max_related: int | None = pydantic.Field(
        default=None, ge=1, validation_alias="TELEMETRY_RELATIONSHIP_MAX_RELATED"
    )
    optimistic_success: bool = pydantic.Field(
        default=True, validation_alias="TELEMETRY_OPTIMISTIC_SUCCESS"
    )
    host: str = pydantic.Field(default="0.0.0.0", validation_alias="UVICORN_HOST")
    port: int = pydantic.Field(default=3001, validation_alias="UVICORN_PORT")
    environment: str = pydantic.Field(default="development", validation_alias="ENVIRONMENT")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def retention_policy(self) -> relationships.RetentionPolicy:
        return relationships.RetentionPolicy(
            max_age_ms=self.relationship_max_age_ms,
            max_related_domains=self.relationship_max_related,
        )


@functools.lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings, read once."""
    return Settings()
