from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from ..models.pagination import ChunkMetrics, PaginationRequest, PaginationResult, SortDirection
from ..store.base import Record, RowStore, escape_like, raise_for_error

"""Paginated fetch engine.

The remote store only returns bounded pages, addressed by numeric offsets (no
continuation token). Two entry points:

- fetch_page: one bounded page + exact total, for interactive list views
- fetch_all: the complete table, assembled from sequential fixed-size chunks;
  for exports only

fetch_all is deliberately sequential: the next offset depends on the length of
the previous chunk. There is no snapshot isolation, so under concurrent writes
the result may not correspond to any single instant.
"""

__all__ = [
    "FETCH_CHUNK_SIZE",
    "DEFAULT_SORT_FIELDS",
    "default_sort_field",
    "fetch_page",
    "fetch_all",
]

logger = logging.getLogger(__name__)

FETCH_CHUNK_SIZE = 1000

# テーブル別デフォルトソート (未指定は created_time)
DEFAULT_SORT_FIELDS: dict[str, str] = {
    "deals": "modified_at",
}


def default_sort_field(table: str) -> str:
    return DEFAULT_SORT_FIELDS.get(table, "created_time")


def fetch_page(
    store: RowStore,
    table: str,
    request: PaginationRequest,
    *,
    default_sort: str | None = None,
) -> PaginationResult[Record]:
    """Fetch one page with search, filters, sorting and an exact total count.

    - search_term is matched as a case-insensitive substring against any of
      search_fields (OR-combined)
    - every filter except empty / "all" becomes an equality predicate
    - without sort_field the table default is used, newest first

    Raises:
        RemoteQueryError: store reported an error (no partial data is returned)
    """
    query = store.table(table).select("*", count="exact")

    term = (request.search_term or "").strip()
    if term and request.search_fields:
        pattern = f"%{escape_like(term)}%"
        query = query.or_([(f, "ilike", pattern) for f in request.search_fields])

    for column, value in request.filters.items():
        if value is None or value == "" or value == "all":
            continue
        query = query.eq(column, value)

    if request.sort_field:
        query = query.order(
            request.sort_field, ascending=request.sort_direction is SortDirection.ASC
        )
    else:
        query = query.order(default_sort or default_sort_field(table), ascending=False)

    start, end = request.offset_window
    resp = raise_for_error(query.range(start, end).execute(), table)
    data = list(resp.data or [])
    total = resp.count if resp.count is not None else 0
    logger.debug(
        "table=%s page=%d size=%d rows=%d total=%d",
        table, request.page, request.page_size, len(data), total,
    )
    return PaginationResult(data=data, total_count=total)


def fetch_all(
    store: RowStore,
    table: str,
    order_field: str = "created_time",
    ascending: bool = False,
    *,
    chunk_size: int = FETCH_CHUNK_SIZE,
    metrics_callback: Callable[[ChunkMetrics], None] | None = None,
) -> list[Record]:
    """Fetch every row of ``table`` by looping over ranged requests.

    Stops at the first chunk shorter than ``chunk_size``. ``chunk_size`` must not
    exceed the store's own per-request row cap, otherwise every chunk looks
    "short" and the loop ends early.

    Raises:
        RemoteQueryError: any chunk request failed
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1 (got {chunk_size})")

    rows: list[Record] = []
    offset = 0
    index = 0
    while True:
        started = time.perf_counter()
        resp = (
            store.table(table)
            .select("*")
            .order(order_field, ascending=ascending)
            .range(offset, offset + chunk_size - 1)
            .execute()
        )
        raise_for_error(resp, table)
        chunk: list[Any] = list(resp.data or [])
        elapsed = time.perf_counter() - started
        if metrics_callback is not None:
            metrics_callback(ChunkMetrics(
                chunk_index=index, offset=offset, rows=len(chunk), elapsed_seconds=elapsed
            ))
        logger.debug("table=%s chunk=%d offset=%d rows=%d", table, index, offset, len(chunk))
        rows.extend(chunk)
        if len(chunk) < chunk_size:
            break
        offset += chunk_size
        index += 1
    logger.info("fetched %d rows from %s in %d chunk(s)", len(rows), table, index + 1)
    return rows
