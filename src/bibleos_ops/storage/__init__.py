"""Object storage for backup artifacts."""

from bibleos_ops.storage.base import ObjectStorage
from bibleos_ops.storage.local import LocalObjectStorage
from bibleos_ops.storage.supabase import SupabaseObjectStorage

__all__ = ["ObjectStorage", "LocalObjectStorage", "SupabaseObjectStorage"]
