"""
Tests for the Supabase record store adapter using mocked query chains.
"""
import httpx
import pytest
from unittest.mock import MagicMock, Mock

from postgrest.exceptions import APIError

from auditgate.core.errors import StoreUnavailable
from auditgate.services.record_store import RecordStore, SupabaseRecordStore


@pytest.fixture
def mock_client():
    return MagicMock()


@pytest.fixture
def record_store(mock_client):
    return SupabaseRecordStore(mock_client)


def test_satisfies_protocol(record_store):
    assert isinstance(record_store, RecordStore)


def test_insert_returns_stored_row(record_store, mock_client):
    row = {"id": "a1", "user_id": "u1", "created_at": "2026-01-01T00:00:00.000000+00:00"}
    mock_client.table.return_value.insert.return_value.execute.return_value = Mock(data=[row])

    assert record_store.insert("audits", {"user_id": "u1"}) == row
    mock_client.table.assert_called_with("audits")


def test_unacknowledged_insert_raises(record_store, mock_client):
    mock_client.table.return_value.insert.return_value.execute.return_value = Mock(data=[])

    with pytest.raises(StoreUnavailable) as exc_info:
        record_store.insert("audits", {"user_id": "u1"})
    assert exc_info.value.details["operation"] == "insert"


def test_select_applies_filters_order_and_limit(record_store, mock_client):
    query = mock_client.table.return_value.select.return_value
    query.eq.return_value = query
    query.lt.return_value = query
    query.order.return_value = query
    query.limit.return_value = query
    query.execute.return_value = Mock(data=[{"id": "s1"}])

    rows = record_store.select(
        "user_subscriptions",
        eq={"status": "cancelled"},
        lt={"current_period_end": "2026-01-01T00:00:00.000000+00:00"},
        order_by="created_at",
        desc=True,
        limit=1,
    )

    assert rows == [{"id": "s1"}]
    mock_client.table.return_value.select.assert_called_with("*")
    query.eq.assert_called_with("status", "cancelled")
    query.lt.assert_called_with("current_period_end", "2026-01-01T00:00:00.000000+00:00")
    query.order.assert_called_with("created_at", desc=True)
    query.limit.assert_called_with(1)


def test_count_uses_exact_count(record_store, mock_client):
    query = mock_client.table.return_value.select.return_value
    query.eq.return_value = query
    query.gte.return_value = query
    query.execute.return_value = Mock(count=3, data=[])

    total = record_store.count("audits", eq={"user_id": "u1"}, gte={"created_at": "2026-01-01"})

    assert total == 3
    mock_client.table.return_value.select.assert_called_with("id", count="exact")
    query.gte.assert_called_with("created_at", "2026-01-01")


def test_count_falls_back_to_rows(record_store, mock_client):
    query = mock_client.table.return_value.select.return_value
    query.eq.return_value = query
    query.execute.return_value = Mock(count=None, data=[{"id": 1}, {"id": 2}])

    assert record_store.count("user_sites", eq={"user_id": "u1"}) == 2


def test_update_returns_changed_rows(record_store, mock_client):
    query = mock_client.table.return_value.update.return_value
    query.eq.return_value = query
    query.execute.return_value = Mock(data=[])

    assert record_store.update("user_subscriptions", {"status": "active"}, eq={"id": "s1"}) == []
    mock_client.table.return_value.update.assert_called_with({"status": "active"})


def test_postgrest_error_becomes_store_unavailable(record_store, mock_client):
    query = mock_client.table.return_value.select.return_value
    query.eq.return_value = query
    query.execute.side_effect = APIError({"message": "boom", "code": "500", "hint": None, "details": None})

    with pytest.raises(StoreUnavailable) as exc_info:
        record_store.count("audits", eq={"user_id": "u1"})
    assert exc_info.value.retryable is True


def test_timeout_becomes_store_unavailable(record_store, mock_client):
    mock_client.table.return_value.insert.return_value.execute.side_effect = httpx.ReadTimeout("timed out")

    with pytest.raises(StoreUnavailable):
        record_store.insert("audits", {"user_id": "u1"})
