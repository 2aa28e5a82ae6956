"""Retention scan result models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class Capability(str, Enum):
    """What a job is allowed to do to tenant data."""

    READ_ONLY = "read_only"
    DESTRUCTIVE = "destructive"


class CompanyRetention(BaseModel):
    """Candidate counts for one company."""

    company_id: str
    mode: str
    submissions_cutoff: datetime
    alerts_cutoff: datetime
    submissions_days: int | None = None
    alerts_days: int | None = None
    exports_days: int | None = None
    submissions_candidates: int = 0
    alerts_candidates: int = 0
    applied: bool = False
    note: str | None = None


class RetentionScan(BaseModel):
    """Result of one scan over one or more companies."""

    dry_run: bool
    apply_requested: bool
    companies: list[CompanyRetention] = Field(default_factory=list)
