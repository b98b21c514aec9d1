"""
SupabaseDatabase tests with a mocked PostgREST client.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from services.exceptions import DatabaseError
from services.supabase_store import LEDGER_RETRIES, SupabaseDatabase


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def store(client):
    return SupabaseDatabase(client)


def _ledger_row(count, history=None):
    return {"user_id": "user-1", "token_count": count, "transaction_history": history or []}


def test_query_failures_become_database_errors(store, client):
    client.table.return_value.select.return_value.eq.return_value.eq.return_value.is_.return_value.limit.return_value \
        .execute.side_effect = RuntimeError("connection reset")

    with pytest.raises(DatabaseError) as exc:
        store.get_valuation("v1", "user-1")

    assert exc.value.message == "Failed to fetch valuation"


def test_list_valuations_uses_exact_count(store, client):
    query = client.table.return_value.select.return_value.eq.return_value.is_.return_value.order.return_value.range.return_value
    query.execute.return_value = SimpleNamespace(data=[{"id": "v1"}], count=7)

    rows, total = store.list_valuations("user-1", offset=10, limit=5)

    assert (rows, total) == ([{"id": "v1"}], 7)
    client.table.return_value.select.assert_called_once_with(
        "id, title, summary, created_at, is_detailed, payment_status", count="exact"
    )
    client.table.return_value.select.return_value.eq.return_value.is_.return_value.order.return_value.range \
        .assert_called_once_with(10, 14)


def test_spend_token_with_empty_balance(store):
    with patch.object(store, "get_user_tokens", return_value=_ledger_row(0)), \
         patch.object(store, "_swap_balance") as swap:
        assert store.spend_token("user-1", "v1") is False

    swap.assert_not_called()


def test_spend_token_retries_on_contention(store):
    rows = [_ledger_row(2), _ledger_row(1)]
    with patch.object(store, "get_user_tokens", side_effect=rows), \
         patch.object(store, "_swap_balance", side_effect=[False, True]) as swap:
        assert store.spend_token("user-1", "v1") is True

    # Second attempt compares against the re-read balance
    args = swap.call_args_list[1].args
    assert args[:3] == ("user-1", 1, 0)
    assert args[3][-1]["type"] == "valuation"


def test_spend_token_gives_up_after_retries(store):
    with patch.object(store, "get_user_tokens", return_value=_ledger_row(3)), \
         patch.object(store, "_swap_balance", return_value=False) as swap:
        with pytest.raises(DatabaseError):
            store.spend_token("user-1", "v1")

    assert swap.call_count == LEDGER_RETRIES


def test_credit_tokens_skips_recorded_payment(store):
    row = _ledger_row(5, [{"type": "purchase", "payment_id": "cs_1", "amount": 5}])
    with patch.object(store, "get_user_tokens", return_value=row), \
         patch.object(store, "_swap_balance") as swap:
        assert store.credit_tokens("user-1", 5, {"payment_id": "cs_1", "amount": 5}) is False

    swap.assert_not_called()


def test_credit_tokens_creates_ledger_row(store, client):
    with patch.object(store, "get_user_tokens", return_value=None):
        assert store.credit_tokens("user-1", 10, {"payment_id": "cs_2", "amount": 10}) is True

    inserted = client.table.return_value.insert.call_args.args[0]
    assert inserted["token_count"] == 10
    assert inserted["transaction_history"] == [{"payment_id": "cs_2", "amount": 10}]


def test_grant_initial_tokens_uses_rpc(store, client):
    with patch.object(store, "get_user_tokens", return_value=None):
        assert store.grant_initial_tokens("user-1", 5) is True

    client.rpc.assert_called_once_with("grant_initial_tokens", {
        "user_id": "user-1",
        "token_count": 5,
        "transaction_type": "signup_bonus",
    })


def test_grant_initial_tokens_existing_row(store, client):
    with patch.object(store, "get_user_tokens", return_value=_ledger_row(2)):
        assert store.grant_initial_tokens("user-1", 5) is False

    client.rpc.assert_not_called()


def _recount_query(client):
    return client.table.return_value.select.return_value.eq.return_value.eq.return_value \
        .gte.return_value.order.return_value.order.return_value


def _free_record():
    return {"id": "v2", "user_id": "user-1", "title": "Clock", "full_description": "Brass", "images": []}


def test_insert_free_valuation_with_used_slot(store):
    with patch.object(store, "get_recent_valuations", return_value=[{"id": "v1"}]), \
         patch.object(store, "insert_valuation") as insert:
        assert store.insert_free_valuation(_free_record(), "2024-01-01T00:00:00.000000+00:00", 1) is None

    insert.assert_not_called()


def test_insert_free_valuation_keeps_first_ranked_row(store, client):
    _recount_query(client).execute.return_value = SimpleNamespace(data=[{"id": "v2"}, {"id": "v3"}])

    with patch.object(store, "get_recent_valuations", return_value=[]), \
         patch.object(store, "insert_valuation", return_value=_free_record()):
        stored = store.insert_free_valuation(_free_record(), "2024-01-01T00:00:00.000000+00:00", 1)

    assert stored["id"] == "v2"
    client.table.return_value.delete.assert_not_called()


def test_insert_free_valuation_loses_race(store, client):
    _recount_query(client).execute.return_value = SimpleNamespace(data=[{"id": "v1"}, {"id": "v2"}])

    with patch.object(store, "get_recent_valuations", return_value=[]), \
         patch.object(store, "insert_valuation", return_value=_free_record()):
        assert store.insert_free_valuation(_free_record(), "2024-01-01T00:00:00.000000+00:00", 1) is None

    client.table.return_value.delete.return_value.eq.assert_called_once_with("id", "v2")


def test_delete_valuation_sets_deleted_at(store, client):
    query = client.table.return_value.update.return_value.eq.return_value.eq.return_value.is_.return_value
    query.execute.return_value = SimpleNamespace(data=[{"id": "v1"}])

    assert store.delete_valuation("v1", "user-1") is True

    assert set(client.table.return_value.update.call_args.args[0]) == {"deleted_at"}
    client.table.return_value.update.return_value.eq.return_value.eq.return_value.is_ \
        .assert_called_once_with("deleted_at", "null")
    client.table.return_value.delete.assert_not_called()
