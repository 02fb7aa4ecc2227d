from __future__ import annotations

from unittest.mock import MagicMock, patch

import psycopg2

from crm_bulk.store.postgres import PostgresRowStore

"""PostgresRowStore SQL generation / transaction handling with a mocked connection."""


def _conn_with_cursor():
    conn = MagicMock()
    cur = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cur
    # 例外を握りつぶさない
    conn.cursor.return_value.__exit__.return_value = False
    return conn, cur


def test_select_with_filters_order_range_and_count():
    conn, cur = _conn_with_cursor()
    cur.fetchall.return_value = [{"id": "a1", "account_name": "Acme"}]
    cur.fetchone.return_value = {"n": 42}

    resp = (
        PostgresRowStore(conn).table("accounts")
        .select("*", count="exact")
        .or_([("account_name", "ilike", "%ac%"), ("country", "ilike", "%ac%")])
        .eq("status", "Active")
        .order("created_time", ascending=False)
        .range(20, 29)
        .execute()
    )

    assert resp.error is None
    assert resp.data == [{"id": "a1", "account_name": "Acme"}]
    assert resp.count == 42
    page_call, count_call = cur.execute.call_args_list
    page_sql, page_params = page_call.args
    assert page_params == ["%ac%", "%ac%", "Active", 10, 20]
    text = repr(page_sql)
    assert "ILIKE" in text and " OR " in text
    assert "NULLS LAST" in text and "DESC" in text
    assert "Identifier('accounts')" in text
    count_sql, count_params = count_call.args
    assert "COUNT(*)" in repr(count_sql)
    assert count_params == ["%ac%", "%ac%", "Active"]
    conn.commit.assert_called_once()


def test_limit_without_offset():
    conn, cur = _conn_with_cursor()
    cur.fetchall.return_value = []
    PostgresRowStore(conn).table("contacts").select("*").ilike("email", "a@x.com").limit(1).execute()
    (sql_obj, params), = [c.args for c in cur.execute.call_args_list]
    assert params == ["a@x.com", 1]
    assert "OFFSET" not in repr(sql_obj)


def test_insert_uses_execute_values_with_returning():
    conn, cur = _conn_with_cursor()
    with patch("crm_bulk.store.postgres.execute_values", return_value=[{"id": "n1", "account_name": "New"}]) as ev:
        resp = (
            PostgresRowStore(conn, page_size=500).table("accounts")
            .insert([{"account_name": "New"}, {"account_name": "Other", "phone": "1"}])
            .execute()
        )
    assert resp.data == [{"id": "n1", "account_name": "New"}]
    args, kwargs = ev.call_args
    assert args[0] is cur
    assert "RETURNING *" in repr(args[1])
    assert args[2] == [["New", None], ["Other", "1"]]
    assert kwargs == {"page_size": 500, "fetch": True}
    conn.commit.assert_called_once()


def test_update_sets_values_then_where_params():
    conn, cur = _conn_with_cursor()
    cur.fetchall.return_value = [{"id": "a1", "status": "Active"}]
    resp = PostgresRowStore(conn).table("accounts").update({"status": "Active"}).eq("id", "a1").execute()
    assert resp.data == [{"id": "a1", "status": "Active"}]
    sql_obj, params = cur.execute.call_args.args
    assert params == ["Active", "a1"]
    assert "UPDATE" in repr(sql_obj)


def test_upsert_builds_on_conflict_clause():
    conn, cur = _conn_with_cursor()
    with patch("crm_bulk.store.postgres.execute_values", return_value=[]) as ev:
        PostgresRowStore(conn).table("accounts").upsert(
            [{"account_name": "Acme", "phone": "1"}], on_conflict="account_name"
        ).execute()
    text = repr(ev.call_args.args[1])
    assert "ON CONFLICT" in text
    assert "EXCLUDED" in text


def test_driver_error_becomes_store_error_and_rolls_back():
    conn, cur = _conn_with_cursor()
    cur.execute.side_effect = psycopg2.Error("relation does not exist")
    resp = PostgresRowStore(conn).table("missing").select("*").execute()
    assert resp.data is None
    assert resp.error is not None
    assert "relation does not exist" in resp.error.message
    conn.rollback.assert_called_once()
    conn.commit.assert_not_called()


def test_empty_insert_is_noop():
    conn, cur = _conn_with_cursor()
    resp = PostgresRowStore(conn).table("accounts").insert([]).execute()
    assert resp.data == []
    cur.execute.assert_not_called()
