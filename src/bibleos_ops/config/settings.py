"""Environment settings.

Secrets and endpoints come from the environment (or a ``.env`` file);
tuning and named database profiles come from ``ops.toml`` (see
``loader.py``).
"""

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings read from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Supabase (production path)
    supabase_url: str = ""
    supabase_key: str = Field(
        default="",
        validation_alias=AliasChoices("SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_KEY"),
    )

    # Direct Postgres, used instead of Supabase when set
    database_url: str | None = None

    # Backup artifacts
    backup_bucket: str = "company-backups"
    backup_local_dir: str | None = None

    # Email
    resend_api_key: str | None = None
    email_from: str = "Honey Lake Clinic <noreply@honeylake.clinic>"
    app_url: str = ""

    # Scheduler secrets; empty disables the check
    sop_review_scheduler_secret: str = ""
    exit_survey_retention_secret: str = ""
    exit_survey_reminder_secret: str = ""

    # ops.toml profile and location
    bibleos_profile: str | None = None
    ops_config_path: str = "ops.toml"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
