"""Shared test doubles: an in-memory database, storage and mailer.

``InMemoryDatabase`` implements the ``DatabaseClient`` protocol on plain
lists of dicts, evaluating filters with ``bibleos_ops.adapters.filters``,
so backup, restore, retention and reminder code runs end to end without a
database.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

import pytest

from bibleos_ops.adapters.filters import matches, parse_filters, parse_order
from bibleos_ops.errors import MailerError, StorageError

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class InMemoryDatabase:
    """``DatabaseClient`` over ``{table: [row, ...]}``.

    ``fail(op, table)`` makes one operation on one table raise;
    ``missing_columns[table]`` makes any filter on those columns raise,
    like PostgREST does for an unknown column.
    """

    def __init__(self, tables: dict[str, list[dict]] | None = None) -> None:
        self.tables: dict[str, list[dict]] = {
            name: [dict(r) for r in rows] for name, rows in (tables or {}).items()
        }
        self.failures: dict[tuple[str, str], Exception] = {}
        self.missing_columns: dict[str, set[str]] = {}
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    def fail(self, op: str, table: str, exc: Exception | None = None) -> None:
        self.failures[(op, table)] = exc or RuntimeError(f"{op} on {table} failed")

    def rows(self, table: str) -> list[dict]:
        return self.tables.setdefault(table, [])

    def _check(self, op: str, table: str, filters: dict[str, Any] | None = None):
        conditions = parse_filters(filters)
        self.calls.append((op, table))
        if (op, table) in self.failures:
            raise self.failures[(op, table)]
        for condition in conditions:
            if condition.column in self.missing_columns.get(table, set()):
                raise ValueError(f"column {table}.{condition.column} does not exist")
        return conditions

    async def select(self, table, columns="*", filters=None, order_by=None, limit=None):
        conditions = self._check("select", table, filters)
        rows = [dict(r) for r in self.rows(table) if matches(r, conditions)]
        order = parse_order(order_by)
        if order:
            column, descending = order
            rows.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        if columns.strip() != "*":
            keep = [c.strip() for c in columns.split(",")]
            rows = [{k: r.get(k) for k in keep} for r in rows]
        return rows

    async def count(self, table, filters=None):
        conditions = self._check("count", table, filters)
        return sum(1 for r in self.rows(table) if matches(r, conditions))

    async def insert(self, table, data):
        self._check("insert", table)
        row = dict(data)
        row.setdefault("id", str(uuid.uuid4()))
        self.rows(table).append(row)
        return dict(row)

    async def update(self, table, data, filters):
        conditions = self._check("update", table, filters)
        if not conditions:
            raise ValueError(f"Refusing unfiltered update on {table}")
        updated = []
        for row in self.rows(table):
            if matches(row, conditions):
                row.update(data)
                updated.append(dict(row))
        return updated

    async def upsert(self, table, rows, on_conflict="id"):
        self._check("upsert", table)
        keys = [c.strip() for c in on_conflict.split(",")]
        existing = self.rows(table)
        for new in rows:
            for row in existing:
                if all(row.get(k) == new.get(k) for k in keys):
                    row.update(new)
                    break
            else:
                existing.append(dict(new))
        return [dict(r) for r in rows]

    async def delete(self, table, filters):
        conditions = self._check("delete", table, filters)
        if not conditions:
            raise ValueError(f"Refusing unfiltered delete on {table}")
        self.tables[table] = [r for r in self.rows(table) if not matches(r, conditions)]

    async def close(self):
        self.closed = True


class InMemoryStorage:
    """``ObjectStorage`` over a dict of path -> bytes."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.fail_uploads = False

    async def upload(self, path, data, content_type="application/json", upsert=True):
        if self.fail_uploads:
            raise StorageError("Storage upload failed: bucket unavailable")
        self.objects[path] = data
        return path

    async def download(self, path):
        if path not in self.objects:
            raise StorageError(f"Failed to download backup file: {path}")
        return self.objects[path]


class RecordingMailer:
    """Mailer that records sends; addresses in ``failing`` raise."""

    def __init__(self, failing: set[str] | None = None) -> None:
        self.sent: list[dict[str, str]] = []
        self.failing = failing or set()

    async def send(self, to, subject, html, sender):
        if to in self.failing:
            raise MailerError("Email provider returned 500: boom", status=500)
        self.sent.append({"to": to, "subject": subject, "html": html, "sender": sender})


@pytest.fixture
def db() -> InMemoryDatabase:
    return InMemoryDatabase()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()
