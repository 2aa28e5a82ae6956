"""HTTP API for backup, restore and scheduled jobs."""

from bibleos_ops.api.app import create_app

__all__ = ["create_app"]
