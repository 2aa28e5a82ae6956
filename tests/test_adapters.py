"""Tests for the adapters, storage backends, mailer and tenant locks.

The Supabase adapter is exercised against a mocked PostgREST builder;
the Postgres adapter's SQL rendering is tested without a connection.
"""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from bibleos_ops.adapters.filters import parse_filters
from bibleos_ops.adapters.postgres import build_where, normalize_url
from bibleos_ops.adapters.supabase import AsyncSupabaseAdapter
from bibleos_ops.backup import TenantLocks
from bibleos_ops.errors import MailerError, StorageError, TenantBusyError
from bibleos_ops.notifications import ResendMailer
from bibleos_ops.storage import LocalObjectStorage

CUTOFF = datetime(2025, 3, 1, tzinfo=timezone.utc)


# ------------------------------------------------------------------
# Postgres SQL rendering
# ------------------------------------------------------------------


class TestBuildWhere:
    """Test build_where() renders each lookup with bound parameters."""

    def test_equality_and_range(self):
        clause, params = build_where(
            parse_filters({"company_id": "c1", "submitted_at__lte": CUTOFF})
        )
        assert clause == "company_id = :w_0 AND submitted_at <= :w_1"
        assert params == {"w_0": "c1", "w_1": CUTOFF}

    def test_neq_is_null_safe(self):
        clause, _ = build_where(parse_filters({"status__neq": "resolved"}))
        assert clause == "status IS DISTINCT FROM :w_0"

    def test_in(self):
        clause, params = build_where(parse_filters({"task_id__in": ["a", "b"]}))
        assert clause == "task_id = ANY(:w_0)"
        assert params == {"w_0": ["a", "b"]}

    def test_empty_in_matches_nothing(self):
        clause, params = build_where(parse_filters({"task_id__in": []}))
        assert clause == "FALSE"
        assert params == {}

    def test_null_checks(self):
        clause, params = build_where(
            parse_filters({"author_id__is": None, "next_review_at__not_null": True})
        )
        assert clause == "author_id IS NULL AND next_review_at IS NOT NULL"
        assert params == {}

    def test_empty(self):
        assert build_where([]) == ("", {})

    def test_rejects_bad_identifier(self):
        with pytest.raises(ValueError, match="Invalid SQL identifier"):
            build_where(parse_filters({"id; DROP TABLE tasks": 1}))


class TestNormalizeUrl:
    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("postgres://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
            ("postgresql://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
            ("postgresql+asyncpg://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
        ],
    )
    def test_schemes(self, url, expected):
        assert normalize_url(url) == expected


# ------------------------------------------------------------------
# Supabase adapter
# ------------------------------------------------------------------


def _make_mock_client(data=None, count=None):
    """Supabase client whose query builder methods all chain to one mock."""
    query = MagicMock()
    for method in ("select", "eq", "or_", "lt", "lte", "gt", "gte", "in_", "is_",
                   "order", "limit", "insert", "update", "upsert", "delete"):
        getattr(query, method).return_value = query
    query.not_ = query
    query.execute = AsyncMock(return_value=MagicMock(data=data, count=count))

    client = MagicMock()
    client.table.return_value = query
    return client, query


def _adapter_with(client) -> AsyncSupabaseAdapter:
    adapter = AsyncSupabaseAdapter(url="https://xyz.supabase.co", key="service")
    adapter._client = client
    return adapter


class TestSupabaseAdapter:
    """Test filter translation onto the PostgREST builder."""

    async def test_select_filters(self):
        client, query = _make_mock_client(data=[{"id": "t1"}])
        adapter = _adapter_with(client)

        rows = await adapter.select(
            "tasks",
            columns="id",
            filters={"company_id": "c1", "submitted_at__lte": CUTOFF, "id__in": ["t1"]},
            order_by="-created_at",
            limit=10,
        )

        assert rows == [{"id": "t1"}]
        client.table.assert_called_with("tasks")
        query.select.assert_called_with("id")
        query.eq.assert_called_with("company_id", "c1")
        query.lte.assert_called_with("submitted_at", CUTOFF.isoformat())
        query.in_.assert_called_with("id", ["t1"])
        query.order.assert_called_with("created_at", desc=True)
        query.limit.assert_called_with(10)

    async def test_neq_keeps_nulls(self):
        client, query = _make_mock_client(data=[])
        await _adapter_with(client).select("exit_survey_alerts", filters={"status__neq": "resolved"})
        query.or_.assert_called_with("status.neq.resolved,status.is.null")

    async def test_boolean_neq(self):
        client, query = _make_mock_client(data=[])
        await _adapter_with(client).select("tasks", filters={"is_sample__neq": True})
        query.or_.assert_called_with("is_sample.neq.true,is_sample.is.null")

    async def test_null_lookups(self):
        client, query = _make_mock_client(data=[])
        await _adapter_with(client).select(
            "sops", filters={"next_review_at__not_null": True, "author_id__is": None}
        )
        query.is_.assert_any_call("next_review_at", "null")
        query.is_.assert_any_call("author_id", "null")

    async def test_select_none_data(self):
        client, _ = _make_mock_client(data=None)
        assert await _adapter_with(client).select("tasks") == []

    async def test_count_uses_head(self):
        client, query = _make_mock_client(count=5)
        assert await _adapter_with(client).count("exit_survey_alerts", {"company_id": "c1"}) == 5
        query.select.assert_called_with("*", count="exact", head=True)

    async def test_insert_serializes_datetimes(self):
        client, query = _make_mock_client(data=[{"id": "n1"}])
        row = await _adapter_with(client).insert(
            "in_app_notifications", {"created_at": CUTOFF, "_local": 1}
        )
        assert row == {"id": "n1"}
        query.insert.assert_called_with({"created_at": CUTOFF.isoformat()})

    async def test_upsert(self):
        client, query = _make_mock_client(data=[{"task_id": "t1", "user_id": "u1"}])
        rows = [{"task_id": "t1", "user_id": "u1"}]
        await _adapter_with(client).upsert("task_assignees", rows, on_conflict="task_id,user_id")
        query.upsert.assert_called_with(rows, on_conflict="task_id,user_id", ignore_duplicates=False)

    async def test_upsert_empty_is_noop(self):
        client, query = _make_mock_client()
        assert await _adapter_with(client).upsert("tasks", []) == []
        query.execute.assert_not_called()

    async def test_unfiltered_delete_refused(self):
        client, query = _make_mock_client()
        with pytest.raises(ValueError, match="unfiltered delete"):
            await _adapter_with(client).delete("tasks", {})
        query.execute.assert_not_called()

    async def test_unfiltered_update_refused(self):
        client, _ = _make_mock_client()
        with pytest.raises(ValueError, match="unfiltered update"):
            await _adapter_with(client).update("tasks", {"x": 1}, {})

    async def test_close(self):
        client, _ = _make_mock_client()
        client.aclose = AsyncMock()
        adapter = _adapter_with(client)
        await adapter.close()
        client.aclose.assert_awaited_once()
        assert adapter._client is None


# ------------------------------------------------------------------
# Local storage
# ------------------------------------------------------------------


class TestLocalObjectStorage:
    async def test_round_trip(self, tmp_path):
        storage = LocalObjectStorage(tmp_path)
        assert await storage.upload("c1/b1.json", b"{}") == "c1/b1.json"
        assert await storage.download("c1/b1.json") == b"{}"
        assert (tmp_path / "c1" / "b1.json").exists()

    async def test_overwrite(self, tmp_path):
        storage = LocalObjectStorage(tmp_path)
        await storage.upload("c1/b1.json", b"old")
        await storage.upload("c1/b1.json", b"new")
        assert await storage.download("c1/b1.json") == b"new"

    async def test_no_overwrite_without_upsert(self, tmp_path):
        storage = LocalObjectStorage(tmp_path)
        await storage.upload("c1/b1.json", b"old")
        with pytest.raises(StorageError, match="already exists"):
            await storage.upload("c1/b1.json", b"new", upsert=False)

    async def test_missing_object(self, tmp_path):
        with pytest.raises(StorageError, match="Object not found"):
            await LocalObjectStorage(tmp_path).download("c1/none.json")

    async def test_path_escape(self, tmp_path):
        with pytest.raises(StorageError, match="escapes storage root"):
            await LocalObjectStorage(tmp_path / "root").upload("../x.json", b"{}")


# ------------------------------------------------------------------
# Resend mailer
# ------------------------------------------------------------------


class TestResendMailer:
    """Test ResendMailer against httpx.MockTransport."""

    async def test_send(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "em_1"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            mailer = ResendMailer("re_test", client=client)
            await mailer.send("o@example.org", "Subject", "<p>Hi</p>", "Clinic <n@example.org>")

        [request] = seen
        assert str(request.url) == "https://api.resend.com/emails"
        assert request.headers["authorization"] == "Bearer re_test"
        assert json.loads(request.content) == {
            "from": "Clinic <n@example.org>",
            "to": ["o@example.org"],
            "subject": "Subject",
            "html": "<p>Hi</p>",
        }

    async def test_provider_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(422, text="bad sender"))
        async with httpx.AsyncClient(transport=transport) as client:
            mailer = ResendMailer("re_test", client=client)
            with pytest.raises(MailerError, match="422") as exc_info:
                await mailer.send("o@example.org", "S", "<p/>", "n@example.org")
        assert exc_info.value.extra == {"status": 422}
        assert exc_info.value.status_code == 502

    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            mailer = ResendMailer("re_test", client=client)
            with pytest.raises(MailerError, match="Email request failed"):
                await mailer.send("o@example.org", "S", "<p/>", "n@example.org")


# ------------------------------------------------------------------
# Tenant locks
# ------------------------------------------------------------------


class TestTenantLocks:
    async def test_second_holder_refused(self):
        locks = TenantLocks()
        async with locks.hold("c1", "backup"):
            assert locks.running("c1") == "backup"
            with pytest.raises(TenantBusyError, match="A backup is already running for company c1"):
                async with locks.hold("c1", "restore"):
                    pass
            async with locks.hold("c2", "restore"):
                assert locks.running("c2") == "restore"
        assert locks.running("c1") is None

    async def test_released_after_error(self):
        locks = TenantLocks()
        with pytest.raises(RuntimeError):
            async with locks.hold("c1", "restore"):
                raise RuntimeError("boom")
        assert locks.running("c1") is None
