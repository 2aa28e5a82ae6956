"""Database client protocol definition.

Defines the ``DatabaseClient`` Protocol that every adapter implements.
All methods are ``async def`` -- each call is one network round trip to
the hosted database, and callers ``await`` every operation.

Filters use the lookup language documented in
``bibleos_ops.adapters.filters``.

Usage:
    from bibleos_ops.adapters.base import DatabaseClient

    async def count_open_alerts(client: DatabaseClient, company_id: str) -> int:
        return await client.count(
            "exit_survey_alerts",
            filters={"company_id": company_id, "status__neq": "resolved"},
        )
"""

from typing import Any, Protocol


class DatabaseClient(Protocol):
    """Database client interface that all adapters must implement."""

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        """Select rows from table.

        Args:
            table: Table name.
            columns: Comma-separated column names, or ``"*"``.
            filters: Optional ``column[__lookup]`` filters (AND-ed).
            order_by: Optional column to sort by; prefix ``-`` for descending.
            limit: Optional maximum number of rows.

        Returns:
            List of dicts, one per row.  Empty list if no matches.

        Example:
            rows = await client.select(
                "tasks",
                filters={"company_id": cid, "is_sample": False},
                limit=10_000,
            )
        """
        ...

    async def count(self, table: str, filters: dict[str, Any] | None = None) -> int:
        """Count matching rows without fetching them."""
        ...

    async def insert(self, table: str, data: dict) -> dict:
        """Insert one row and return the created row."""
        ...

    async def update(self, table: str, data: dict, filters: dict[str, Any]) -> list[dict]:
        """Update matching rows and return them (possibly empty)."""
        ...

    async def upsert(
        self,
        table: str,
        rows: list[dict],
        on_conflict: str = "id",
    ) -> list[dict]:
        """Insert rows, updating existing ones that collide on ``on_conflict``.

        Args:
            table: Table name.
            rows: Row dicts to write.  All rows should share the same keys.
            on_conflict: Comma-separated conflict target columns.

        Returns:
            The written rows.

        Example:
            await client.upsert("task_assignees", rows, on_conflict="task_id,user_id")
        """
        ...

    async def delete(self, table: str, filters: dict[str, Any]) -> None:
        """Delete rows matching filters.

        ``filters`` must not be empty -- adapters refuse unfiltered deletes.
        """
        ...

    async def close(self) -> None:
        """Close the connection and release resources."""
        ...
