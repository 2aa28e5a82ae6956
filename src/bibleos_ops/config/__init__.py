"""Configuration management: environment settings, TOML loading, and config models.

Usage:
    >>> from bibleos_ops.config import get_settings, load_ops_config, OpsConfig
"""

from bibleos_ops.config.loader import load_ops_config
from bibleos_ops.config.models import (
    BackupConfig,
    DatabaseProfile,
    OpsConfig,
    ReminderConfig,
    RetentionConfig,
)
from bibleos_ops.config.settings import Settings, get_settings

__all__ = [
    "load_ops_config",
    "get_settings",
    "Settings",
    "BackupConfig",
    "DatabaseProfile",
    "OpsConfig",
    "ReminderConfig",
    "RetentionConfig",
]
