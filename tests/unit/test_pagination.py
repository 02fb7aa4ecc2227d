from __future__ import annotations

import pytest

from crm_bulk.db.pagination import default_sort_field, fetch_all, fetch_page
from crm_bulk.models.pagination import ChunkMetrics, PaginationRequest, SortDirection
from crm_bulk.store.base import RemoteQueryError, StoreError
from crm_bulk.store.memory import InMemoryRowStore


def _accounts(n: int) -> InMemoryRowStore:
    rows = [
        {
            "id": f"id-{i:05d}",
            "account_name": f"Account {i:05d}",
            "industry": "Software" if i % 2 else "Retail",
            "status": "Active" if i % 3 else "Inactive",
            "created_time": f"2024-01-01T00:00:{i % 60:02d}+00:00#{i:05d}",
        }
        for i in range(n)
    ]
    return InMemoryRowStore({"accounts": rows})


class TestPaginationRequest:

    def test_offset_window(self):
        assert PaginationRequest(page=1, page_size=25).offset_window == (0, 24)
        assert PaginationRequest(page=3, page_size=10).offset_window == (20, 29)

    @pytest.mark.parametrize("page, size", [(0, 10), (1, 0), (-1, 5)])
    def test_invalid_values_rejected(self, page, size):
        with pytest.raises(ValueError):
            PaginationRequest(page=page, page_size=size)

    def test_string_direction_converted(self):
        req = PaginationRequest(page=1, page_size=5, sort_direction="desc")
        assert req.sort_direction is SortDirection.DESC


class TestFetchPage:

    def test_page_data_and_total(self):
        store = _accounts(57)
        req = PaginationRequest(page=3, page_size=25, sort_field="account_name")
        result = fetch_page(store, "accounts", req)
        assert result.total_count == 57
        assert [r["account_name"] for r in result.data][:2] == ["Account 00050", "Account 00051"]
        assert len(result.data) == 7

    def test_page_past_end_is_empty_with_total(self):
        result = fetch_page(_accounts(5), "accounts", PaginationRequest(page=4, page_size=10))
        assert result.data == []
        assert result.total_count == 5

    def test_search_is_case_insensitive_substring_over_fields(self):
        req = PaginationRequest(
            page=1, page_size=100, search_term="  SOFTWARE ",
            search_fields=("account_name", "industry"),
        )
        result = fetch_page(_accounts(10), "accounts", req)
        assert result.total_count == 5
        assert all(r["industry"] == "Software" for r in result.data)

    def test_search_wildcards_are_literal(self):
        req = PaginationRequest(page=1, page_size=10, search_term="%", search_fields=("account_name",))
        assert fetch_page(_accounts(10), "accounts", req).total_count == 0

    def test_filters_skip_all_and_empty(self):
        req = PaginationRequest(
            page=1, page_size=100,
            filters={"status": "Inactive", "industry": "all", "country": "", "region": None},
        )
        result = fetch_page(_accounts(9), "accounts", req)
        assert result.total_count == 3
        assert {r["status"] for r in result.data} == {"Inactive"}

    def test_default_sort_is_newest_first(self):
        store = InMemoryRowStore({"accounts": [
            {"id": "old", "created_time": "2024-01-01T00:00:00+00:00"},
            {"id": "new", "created_time": "2024-06-01T00:00:00+00:00"},
        ]})
        result = fetch_page(store, "accounts", PaginationRequest(page=1, page_size=10))
        assert [r["id"] for r in result.data] == ["new", "old"]

    def test_explicit_descending_sort(self):
        req = PaginationRequest(page=1, page_size=3, sort_field="account_name", sort_direction=SortDirection.DESC)
        result = fetch_page(_accounts(10), "accounts", req)
        assert [r["account_name"] for r in result.data] == ["Account 00009", "Account 00008", "Account 00007"]

    def test_store_error_raises_without_data(self):
        store = _accounts(3)
        store.inject_error("accounts", "select", StoreError("timeout", code="57014"))
        with pytest.raises(RemoteQueryError) as exc:
            fetch_page(store, "accounts", PaginationRequest(page=1, page_size=10))
        assert exc.value.error.code == "57014"
        assert exc.value.table == "accounts"

    def test_default_sort_field_per_table(self):
        assert default_sort_field("deals") == "modified_at"
        assert default_sort_field("accounts") == "created_time"


class TestFetchAll:

    def test_chunks_until_short_chunk(self):
        store = _accounts(2500)
        metrics: list[ChunkMetrics] = []
        rows = fetch_all(store, "accounts", "account_name", True, chunk_size=1000, metrics_callback=metrics.append)
        assert len(rows) == 2500
        assert [m.rows for m in metrics] == [1000, 1000, 500]
        assert [m.offset for m in metrics] == [0, 1000, 2000]
        assert [m.chunk_index for m in metrics] == [0, 1, 2]
        assert rows[0]["account_name"] == "Account 00000"
        assert rows[-1]["account_name"] == "Account 02499"
        assert len({r["id"] for r in rows}) == 2500

    def test_exact_multiple_needs_one_extra_empty_request(self):
        store = _accounts(2000)
        rows = fetch_all(store, "accounts", chunk_size=1000)
        assert len(rows) == 2000
        assert store.requests.count(("accounts", "select")) == 3

    def test_empty_table_single_request(self):
        store = InMemoryRowStore()
        assert fetch_all(store, "accounts") == []
        assert store.requests == [("accounts", "select")]

    def test_failure_on_later_chunk_returns_nothing(self):
        store = _accounts(1500)
        calls = {"n": 0}
        original = store._take_fault

        def _fail_second(table, op):
            calls["n"] += 1
            if calls["n"] == 2:
                return StoreError("connection reset")
            return original(table, op)

        store._take_fault = _fail_second  # type: ignore[method-assign]
        with pytest.raises(RemoteQueryError, match="connection reset"):
            fetch_all(store, "accounts", chunk_size=1000)

    def test_chunk_size_must_be_positive(self):
        with pytest.raises(ValueError):
            fetch_all(InMemoryRowStore(), "accounts", chunk_size=0)

    def test_store_row_cap_below_chunk_size_stops_early(self):
        store = InMemoryRowStore({"t": [{"id": i} for i in range(10)]}, max_rows_per_request=4)
        rows = fetch_all(store, "t", "id", True, chunk_size=5)
        assert len(rows) == 4
