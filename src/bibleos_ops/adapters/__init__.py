"""Database adapters package.

Provides the ``DatabaseClient`` Protocol, the shared filter lookup
language, and concrete async adapters for Supabase (PostgREST) and
direct PostgreSQL.

Usage:
    from bibleos_ops.adapters import DatabaseClient, AsyncSupabaseAdapter
"""

from bibleos_ops.adapters.base import DatabaseClient
from bibleos_ops.adapters.filters import Condition, matches, parse_filters, parse_order
from bibleos_ops.adapters.postgres import AsyncPostgresAdapter
from bibleos_ops.adapters.supabase import AsyncSupabaseAdapter

__all__ = [
    "DatabaseClient",
    "AsyncPostgresAdapter",
    "AsyncSupabaseAdapter",
    "Condition",
    "matches",
    "parse_filters",
    "parse_order",
]
