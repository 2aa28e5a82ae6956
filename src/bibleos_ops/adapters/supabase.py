"""Async Supabase database adapter.

Provides ``AsyncSupabaseAdapter``, an async implementation of the
``DatabaseClient`` protocol using the supabase-py async client (PostgREST
query builder).  This is the production path: the service-role key
bypasses row-level security, so every call must carry its own tenant
filter.

The client is initialized lazily on first use with an ``asyncio.Lock``
to ensure it is created exactly once.

Usage:
    from bibleos_ops.adapters.supabase import AsyncSupabaseAdapter

    adapter = AsyncSupabaseAdapter(
        url="https://xyzproject.supabase.co",
        key="eyJ...",
    )

    rows = await adapter.select("tasks", filters={"company_id": cid})
    await adapter.close()
"""

import asyncio
from datetime import datetime
from typing import Any

from supabase import AsyncClient, acreate_client

from bibleos_ops.adapters.filters import Condition, parse_filters, parse_order


def _jsonable(value: Any) -> Any:
    """Convert datetimes (recursively) to ISO strings for the JSON body."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _literal(value: Any) -> str:
    """Render a value for a PostgREST ``or`` expression."""
    if value is True:
        return "true"
    if value is False:
        return "false"
    if value is None:
        return "null"
    return str(_jsonable(value))


def _apply_filters(query: Any, conditions: list[Condition]) -> Any:
    """Translate parsed conditions onto a PostgREST filter builder."""
    for column, lookup, value in conditions:
        value = _jsonable(value)
        if lookup == "eq":
            query = query.eq(column, value)
        elif lookup == "neq":
            # PostgREST neq drops NULLs; keep them to match SQL IS DISTINCT FROM
            query = query.or_(f"{column}.neq.{_literal(value)},{column}.is.null")
        elif lookup == "lt":
            query = query.lt(column, value)
        elif lookup == "lte":
            query = query.lte(column, value)
        elif lookup == "gt":
            query = query.gt(column, value)
        elif lookup == "gte":
            query = query.gte(column, value)
        elif lookup == "in":
            query = query.in_(column, list(value))
        elif lookup == "is":
            query = query.is_(column, _literal(value))
        elif lookup == "not_null":
            if value:
                query = query.not_.is_(column, "null")
            else:
                query = query.is_(column, "null")
    return query


class AsyncSupabaseAdapter:
    """Async Supabase implementation of the ``DatabaseClient`` protocol.

    Args:
        url: Supabase project URL.
        key: Supabase API key (service-role key for scheduled jobs).

    Example:
        adapter = AsyncSupabaseAdapter(
            url="https://xyzproject.supabase.co",
            key="eyJhbGciOiJIUzI1NiIs...",
        )
        rows = await adapter.select("company_backups", filters={"id": backup_id})
        await adapter.close()
    """

    def __init__(self, url: str, key: str) -> None:
        self._url: str = url
        self._key: str = key
        self._client: AsyncClient | None = None
        self._lock: asyncio.Lock = asyncio.Lock()

    async def _get_client(self) -> AsyncClient:
        """Get or create the async Supabase client.

        Returns:
            Initialized ``AsyncClient``.
        """
        if self._client is None:
            async with self._lock:
                # Double-check after acquiring lock
                if self._client is None:
                    self._client = await acreate_client(self._url, self._key)
        return self._client

    # ------------------------------------------------------------------
    # CRUD Methods
    # ------------------------------------------------------------------

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        """Select rows from table using the PostgREST query builder."""
        conditions = parse_filters(filters)
        order = parse_order(order_by)
        client = await self._get_client()

        query = _apply_filters(client.table(table).select(columns), conditions)
        if order:
            query = query.order(order[0], desc=order[1])
        if limit is not None:
            query = query.limit(limit)

        result = await query.execute()
        return result.data or []

    async def count(self, table: str, filters: dict[str, Any] | None = None) -> int:
        """Count rows with an exact ``HEAD`` count (no rows transferred)."""
        conditions = parse_filters(filters)
        client = await self._get_client()
        query = client.table(table).select("*", count="exact", head=True)
        result = await _apply_filters(query, conditions).execute()
        return result.count or 0

    async def insert(self, table: str, data: dict) -> dict:
        """Insert row and return created row.

        Filters out metadata fields (starting with ``_``) before insertion.
        """
        client = await self._get_client()
        clean_data = {k: _jsonable(v) for k, v in data.items() if not k.startswith("_")}
        result = await client.table(table).insert(clean_data).execute()
        return result.data[0]

    async def update(self, table: str, data: dict, filters: dict[str, Any]) -> list[dict]:
        """Update rows and return them."""
        conditions = parse_filters(filters)
        if not conditions:
            raise ValueError(f"Refusing unfiltered update on {table}")
        client = await self._get_client()
        query = _apply_filters(client.table(table).update(_jsonable(data)), conditions)
        result = await query.execute()
        return result.data or []

    async def upsert(
        self,
        table: str,
        rows: list[dict],
        on_conflict: str = "id",
    ) -> list[dict]:
        """Upsert rows, updating on conflict (duplicates are never ignored)."""
        if not rows:
            return []
        client = await self._get_client()
        result = await (
            client.table(table)
            .upsert(_jsonable(rows), on_conflict=on_conflict, ignore_duplicates=False)
            .execute()
        )
        return result.data or []

    async def delete(self, table: str, filters: dict[str, Any]) -> None:
        """Delete rows matching filters."""
        conditions = parse_filters(filters)
        if not conditions:
            raise ValueError(f"Refusing unfiltered delete on {table}")
        client = await self._get_client()
        await _apply_filters(client.table(table).delete(), conditions).execute()

    async def close(self) -> None:
        """Close the Supabase async client.

        If the client was never initialized (no CRUD calls were made),
        this is a no-op.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None
