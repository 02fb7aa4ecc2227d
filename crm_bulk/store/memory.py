from __future__ import annotations

import re
import uuid
from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from .base import Predicate, Record, StoreError, StoreResponse

"""In-memory row store.

Implements the same chainable query surface as the PostgreSQL store so the
pipeline can run without a database (tests, ``DISABLE_DB_CONNECT=1``).

Behaviour mirrors what the pipeline relies on from the real store:
- ``id`` (uuid4) and ``created_time`` assigned on insert when absent
- NOT NULL / UNIQUE checks reported as errors (SQLSTATE 23502 / 23505),
  a failed insert writes nothing
- ORDER BY with NULLs last, exact counts, inclusive ranges
- optional per-request row cap (like a server-side max-rows setting)
"""

__all__ = [
    "InMemoryRowStore",
    "MemoryQuery",
]

NOT_NULL_VIOLATION = "23502"
UNIQUE_VIOLATION = "23505"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _values_equal(a: Any, b: Any) -> bool:
    if a == b:
        return True
    return a is not None and b is not None and str(a) == str(b)


def _like_to_regex(pattern: str) -> re.Pattern[str]:
    out: list[str] = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\" and i + 1 < len(pattern):
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if ch == "%":
            out.append(".*")
        elif ch == "_":
            out.append(".")
        else:
            out.append(re.escape(ch))
        i += 1
    return re.compile("".join(out), re.IGNORECASE | re.DOTALL)


def _ilike(value: Any, regex: re.Pattern[str]) -> bool:
    if value is None:
        return False
    return regex.fullmatch(str(value)) is not None


def _predicate(column: str, op: str, value: Any) -> Callable[[Record], bool]:
    if op == "eq":
        return lambda r: _values_equal(r.get(column), value)
    if op == "ilike":
        regex = _like_to_regex(value)
        return lambda r: _ilike(r.get(column), regex)
    raise ValueError(f"unsupported operator: {op}")


class MemoryQuery:
    """Single query against one in-memory table. Builder methods return self."""

    def __init__(self, store: InMemoryRowStore, table: str) -> None:
        self._store = store
        self._table = table
        self._op = "select"
        self._columns = "*"
        self._count: str | None = None
        self._filters: list[Callable[[Record], bool]] = []
        self._orders: list[tuple[str, bool]] = []
        self._range: tuple[int, int] | None = None
        self._limit: int | None = None
        self._payload: Any = None
        self._on_conflict: str | None = None

    # builder -----------------------------------------------------------
    def select(self, columns: str = "*", *, count: str | None = None) -> MemoryQuery:
        self._columns = columns
        self._count = count
        return self

    def eq(self, column: str, value: Any) -> MemoryQuery:
        self._filters.append(_predicate(column, "eq", value))
        return self

    def ilike(self, column: str, pattern: str) -> MemoryQuery:
        self._filters.append(_predicate(column, "ilike", pattern))
        return self

    def or_(self, predicates: Sequence[Predicate]) -> MemoryQuery:
        checks = [_predicate(c, op, v) for c, op, v in predicates]
        self._filters.append(lambda r: any(check(r) for check in checks))
        return self

    def order(self, column: str, *, ascending: bool = True) -> MemoryQuery:
        self._orders.append((column, ascending))
        return self

    def range(self, start: int, end: int) -> MemoryQuery:
        self._range = (start, end)
        return self

    def limit(self, n: int) -> MemoryQuery:
        self._limit = n
        return self

    def insert(self, records: Sequence[Mapping[str, Any]]) -> MemoryQuery:
        self._op = "insert"
        self._payload = [dict(r) for r in records]
        return self

    def update(self, values: Mapping[str, Any]) -> MemoryQuery:
        self._op = "update"
        self._payload = dict(values)
        return self

    def upsert(self, records: Sequence[Mapping[str, Any]], *, on_conflict: str) -> MemoryQuery:
        self._op = "upsert"
        self._payload = [dict(r) for r in records]
        self._on_conflict = on_conflict
        return self

    # execution ---------------------------------------------------------
    def execute(self) -> StoreResponse:
        self._store.requests.append((self._table, self._op))
        fault = self._store._take_fault(self._table, self._op)
        if fault is not None:
            return StoreResponse(error=fault)
        handler = getattr(self, f"_execute_{self._op}")
        return handler()

    def _matching(self) -> list[Record]:
        rows = self._store.tables.setdefault(self._table, [])
        return [r for r in rows if all(f(r) for f in self._filters)]

    def _sorted(self, rows: list[Record]) -> list[Record]:
        # apply keys last-to-first; Python's sort is stable (also with reverse=True)
        for column, ascending in reversed(self._orders):
            present = [r for r in rows if r.get(column) is not None]
            missing = [r for r in rows if r.get(column) is None]
            present.sort(key=lambda r: r[column], reverse=not ascending)
            rows = present + missing
        return rows

    def _project(self, row: Record) -> Record:
        if self._columns.strip() == "*":
            return dict(row)
        cols = [c.strip() for c in self._columns.split(",") if c.strip()]
        return {c: row.get(c) for c in cols}

    def _execute_select(self) -> StoreResponse:
        rows = self._sorted(self._matching())
        total = len(rows)
        if self._range is not None:
            start, end = self._range
            rows = rows[start:end + 1]
        if self._limit is not None:
            rows = rows[: self._limit]
        cap = self._store.max_rows_per_request
        if cap is not None:
            rows = rows[:cap]
        data = [self._project(r) for r in rows]
        return StoreResponse(data=data, count=total if self._count == "exact" else None)

    def _execute_insert(self) -> StoreResponse:
        staged: list[Record] = []
        for rec in self._payload:
            row = dict(rec)
            row.setdefault("id", str(uuid.uuid4()))
            row.setdefault("created_time", _now_iso())
            err = self._store._check_constraints(self._table, row, extra=staged)
            if err is not None:
                return StoreResponse(error=err)
            staged.append(row)
        self._store.tables.setdefault(self._table, []).extend(staged)
        return StoreResponse(data=[dict(r) for r in staged])

    def _execute_update(self) -> StoreResponse:
        targets = self._matching()
        for row in targets:
            candidate = {**row, **self._payload}
            err = self._store._check_constraints(self._table, candidate, ignore=row)
            if err is not None:
                return StoreResponse(error=err)
        for row in targets:
            row.update(self._payload)
        return StoreResponse(data=[dict(r) for r in targets])

    def _execute_upsert(self) -> StoreResponse:
        key = self._on_conflict or "id"
        rows = self._store.tables.setdefault(self._table, [])
        out: list[Record] = []
        for rec in self._payload:
            existing = next((r for r in rows if _values_equal(r.get(key), rec.get(key))), None)
            if existing is None:
                row = dict(rec)
                row.setdefault("id", str(uuid.uuid4()))
                row.setdefault("created_time", _now_iso())
                err = self._store._check_constraints(self._table, row)
                if err is not None:
                    return StoreResponse(error=err)
                rows.append(row)
                out.append(dict(row))
            else:
                candidate = {**existing, **rec}
                err = self._store._check_constraints(self._table, candidate, ignore=existing)
                if err is not None:
                    return StoreResponse(error=err)
                existing.update(rec)
                out.append(dict(existing))
        return StoreResponse(data=out)


class InMemoryRowStore:
    """Dictionary-of-lists row store.

    Parameters
    ----------
    tables: 初期データ (table -> rows); rows are copied
    not_null: table -> columns that must not be None
    unique: table -> columns that must be unique (case-sensitive)
    max_rows_per_request: cap on rows returned by a single select
    """

    def __init__(
        self,
        tables: Mapping[str, Sequence[Mapping[str, Any]]] | None = None,
        *,
        not_null: Mapping[str, Sequence[str]] | None = None,
        unique: Mapping[str, Sequence[str]] | None = None,
        max_rows_per_request: int | None = None,
    ) -> None:
        self.tables: dict[str, list[Record]] = {
            name: [dict(r) for r in rows] for name, rows in (tables or {}).items()
        }
        self.not_null = {t: set(cols) for t, cols in (not_null or {}).items()}
        self.unique = {t: set(cols) for t, cols in (unique or {}).items()}
        self.max_rows_per_request = max_rows_per_request
        self.requests: list[tuple[str, str]] = []  # (table, op) call log
        self._faults: list[tuple[str, str, StoreError]] = []

    def table(self, name: str) -> MemoryQuery:
        return MemoryQuery(self, name)

    def rows(self, table: str) -> list[Record]:
        """Copy of the current rows of ``table``."""
        return [dict(r) for r in self.tables.get(table, [])]

    def inject_error(self, table: str, op: str, error: StoreError) -> None:
        """Make the next ``op`` ("select", "insert", ...) on ``table`` fail once."""
        self._faults.append((table, op, error))

    def _take_fault(self, table: str, op: str) -> StoreError | None:
        for i, (t, o, err) in enumerate(self._faults):
            if t == table and o == op:
                del self._faults[i]
                return err
        return None

    def _check_constraints(
        self,
        table: str,
        row: Record,
        *,
        extra: Sequence[Record] = (),
        ignore: Record | None = None,
    ) -> StoreError | None:
        for col in sorted(self.not_null.get(table, ())):
            if row.get(col) is None:
                return StoreError(
                    message=(
                        f'null value in column "{col}" of relation "{table}" '
                        "violates not-null constraint"
                    ),
                    code=NOT_NULL_VIOLATION,
                )
        others = [r for r in self.tables.get(table, []) if r is not ignore]
        others.extend(extra)
        for col in sorted(self.unique.get(table, ())):
            value = row.get(col)
            if value is None:
                continue
            if any(_values_equal(o.get(col), value) for o in others):
                return StoreError(
                    message=(
                        f'duplicate key value violates unique constraint "{table}_{col}_key"'
                    ),
                    code=UNIQUE_VIOLATION,
                    details=f"Key ({col})=({value}) already exists.",
                )
        return None
