"""Pydantic models for ops configuration (ops.toml)."""

from typing import Literal

from pydantic import BaseModel, Field


# ============================================================================
# Connection Profiles
# ============================================================================


class DatabaseProfile(BaseModel):
    """Database connection profile from ops.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution
    provider: Literal["postgres", "supabase"] = "postgres"
    key: str | None = None  # Service-role key, supabase profiles only


# ============================================================================
# Job Tuning
# ============================================================================


class BackupConfig(BaseModel):
    """Backup exporter limits."""

    row_limit: int = Field(default=10_000, gt=0)
    timeout_seconds: float | None = Field(default=None, gt=0)


class RetentionConfig(BaseModel):
    """Default retention windows, used when a company setting is unusable."""

    submissions_days: int = Field(default=365, gt=0)
    alerts_days: int = Field(default=180, gt=0)
    exports_days: int = Field(default=30, gt=0)


class ReminderConfig(BaseModel):
    """Reminder windows."""

    lead_days: int = Field(default=30, gt=0)           # SOP reminder this many days ahead
    escalation_days: int = Field(default=30, gt=0)     # escalate when this overdue
    cooldown_hours: float = Field(default=48, gt=0)    # minimum gap between reminders
    alert_min_age_hours: float = Field(default=48, ge=0)  # exit-survey alerts younger are ignored


class OpsConfig(BaseModel):
    """Complete ops configuration from ops.toml."""

    profiles: dict[str, DatabaseProfile] = Field(default_factory=dict)
    backup: BackupConfig = Field(default_factory=BackupConfig)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)
    reminders: ReminderConfig = Field(default_factory=ReminderConfig)
