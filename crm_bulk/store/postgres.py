from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

import psycopg2
from psycopg2 import sql
from psycopg2.extras import RealDictCursor, execute_values

from .base import Predicate, Record, StoreError, StoreResponse

"""PostgreSQL row store (psycopg2).

Translates the chainable query surface of store/base.py into SQL:
- identifiers always go through ``psycopg2.sql.Identifier``
- multi-row INSERT uses ``psycopg2.extras.execute_values`` with RETURNING *
- ``count="exact"`` runs a separate COUNT(*) with the same WHERE clause
- every call is its own transaction: COMMIT on success, ROLLBACK on error

Driver errors never escape ``execute()``; they come back as
``StoreResponse(error=StoreError(message, pgcode))`` like any other store.
"""

__all__ = [
    "PostgresRowStore",
    "PostgresQuery",
]

logger = logging.getLogger(__name__)


def _where(clauses: list[tuple[sql.Composable, list[Any]]]) -> tuple[sql.Composable, list[Any]]:
    if not clauses:
        return sql.SQL(""), []
    params: list[Any] = []
    for _, p in clauses:
        params.extend(p)
    return sql.SQL(" WHERE ") + sql.SQL(" AND ").join(c for c, _ in clauses), params


def _predicate_sql(column: str, op: str, value: Any) -> tuple[sql.Composable, list[Any]]:
    if op == "eq":
        return sql.SQL("{} = %s").format(sql.Identifier(column)), [value]
    if op == "ilike":
        return sql.SQL("{}::text ILIKE %s").format(sql.Identifier(column)), [value]
    raise ValueError(f"unsupported operator: {op}")


class PostgresQuery:
    """Single query against one table. Builder methods return self."""

    def __init__(self, conn: Any, table: str, *, page_size: int = 1000) -> None:
        self._conn = conn
        self._table = table
        self._page_size = page_size  # execute_values page size
        self._op = "select"
        self._columns = "*"
        self._count: str | None = None
        self._clauses: list[tuple[sql.Composable, list[Any]]] = []
        self._orders: list[tuple[str, bool]] = []
        self._offset: int | None = None
        self._limit: int | None = None
        self._payload: Any = None
        self._on_conflict: str | None = None

    def select(self, columns: str = "*", *, count: str | None = None) -> PostgresQuery:
        self._columns = columns
        self._count = count
        return self

    def eq(self, column: str, value: Any) -> PostgresQuery:
        self._clauses.append(_predicate_sql(column, "eq", value))
        return self

    def ilike(self, column: str, pattern: str) -> PostgresQuery:
        self._clauses.append(_predicate_sql(column, "ilike", pattern))
        return self

    def or_(self, predicates: Sequence[Predicate]) -> PostgresQuery:
        parts = [_predicate_sql(c, op, v) for c, op, v in predicates]
        if not parts:
            return self
        params: list[Any] = []
        for _, p in parts:
            params.extend(p)
        clause = sql.SQL("(") + sql.SQL(" OR ").join(c for c, _ in parts) + sql.SQL(")")
        self._clauses.append((clause, params))
        return self

    def order(self, column: str, *, ascending: bool = True) -> PostgresQuery:
        self._orders.append((column, ascending))
        return self

    def range(self, start: int, end: int) -> PostgresQuery:
        self._offset = start
        size = end - start + 1
        self._limit = size if self._limit is None else min(self._limit, size)
        return self

    def limit(self, n: int) -> PostgresQuery:
        self._limit = n if self._limit is None else min(self._limit, n)
        return self

    def insert(self, records: Sequence[Mapping[str, Any]]) -> PostgresQuery:
        self._op = "insert"
        self._payload = [dict(r) for r in records]
        return self

    def update(self, values: Mapping[str, Any]) -> PostgresQuery:
        self._op = "update"
        self._payload = dict(values)
        return self

    def upsert(self, records: Sequence[Mapping[str, Any]], *, on_conflict: str) -> PostgresQuery:
        self._op = "upsert"
        self._payload = [dict(r) for r in records]
        self._on_conflict = on_conflict
        return self

    # SQL building ------------------------------------------------------
    def _column_list(self) -> sql.Composable:
        if self._columns.strip() == "*":
            return sql.SQL("*")
        cols = [c.strip() for c in self._columns.split(",") if c.strip()]
        return sql.SQL(", ").join(sql.Identifier(c) for c in cols)

    def _order_sql(self) -> sql.Composable:
        if not self._orders:
            return sql.SQL("")
        parts = [
            sql.SQL("{} {} NULLS LAST").format(
                sql.Identifier(col), sql.SQL("ASC" if asc else "DESC")
            )
            for col, asc in self._orders
        ]
        return sql.SQL(" ORDER BY ") + sql.SQL(", ").join(parts)

    def _insert_columns(self) -> list[str]:
        cols: list[str] = []
        for rec in self._payload:
            for c in rec:
                if c not in cols:
                    cols.append(c)
        return cols

    # execution ---------------------------------------------------------
    def execute(self) -> StoreResponse:
        try:
            with self._conn.cursor(cursor_factory=RealDictCursor) as cur:
                resp = getattr(self, f"_execute_{self._op}")(cur)
            self._conn.commit()
            return resp
        except psycopg2.Error as e:
            self._conn.rollback()
            message = (e.pgerror or str(e)).strip()
            detail = getattr(getattr(e, "diag", None), "message_detail", None)
            logger.debug("table=%s op=%s failed: %s", self._table, self._op, message)
            return StoreResponse(error=StoreError(message=message, code=e.pgcode, details=detail))

    def _execute_select(self, cur: Any) -> StoreResponse:
        where_sql, params = _where(self._clauses)
        query = sql.SQL("SELECT {} FROM {}").format(
            self._column_list(), sql.Identifier(self._table)
        ) + where_sql + self._order_sql()
        page_params = list(params)
        if self._limit is not None:
            query += sql.SQL(" LIMIT %s")
            page_params.append(self._limit)
        if self._offset:
            query += sql.SQL(" OFFSET %s")
            page_params.append(self._offset)
        cur.execute(query, page_params)
        data: list[Record] = [dict(r) for r in cur.fetchall()]

        count = None
        if self._count == "exact":
            count_sql = sql.SQL("SELECT COUNT(*) AS n FROM {}").format(
                sql.Identifier(self._table)
            ) + where_sql
            cur.execute(count_sql, params)
            count = int(cur.fetchone()["n"])
        return StoreResponse(data=data, count=count)

    def _execute_insert(self, cur: Any) -> StoreResponse:
        if not self._payload:
            return StoreResponse(data=[])
        cols = self._insert_columns()
        query = sql.SQL("INSERT INTO {} ({}) VALUES %s RETURNING *").format(
            sql.Identifier(self._table),
            sql.SQL(", ").join(sql.Identifier(c) for c in cols),
        )
        rows = [[rec.get(c) for c in cols] for rec in self._payload]
        returned = execute_values(cur, query, rows, page_size=self._page_size, fetch=True)
        return StoreResponse(data=[dict(r) for r in returned])

    def _execute_update(self, cur: Any) -> StoreResponse:
        if not self._payload:
            return StoreResponse(data=[])
        where_sql, params = _where(self._clauses)
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(c)) for c in self._payload
        )
        query = sql.SQL("UPDATE {} SET {}").format(
            sql.Identifier(self._table), assignments
        ) + where_sql + sql.SQL(" RETURNING *")
        cur.execute(query, list(self._payload.values()) + params)
        return StoreResponse(data=[dict(r) for r in cur.fetchall()])

    def _execute_upsert(self, cur: Any) -> StoreResponse:
        if not self._payload:
            return StoreResponse(data=[])
        cols = self._insert_columns()
        key = self._on_conflict or "id"
        updates = [c for c in cols if c != key]
        if updates:
            action = sql.SQL("DO UPDATE SET ") + sql.SQL(", ").join(
                sql.SQL("{} = EXCLUDED.{}").format(sql.Identifier(c), sql.Identifier(c))
                for c in updates
            )
        else:
            action = sql.SQL("DO NOTHING")
        query = sql.SQL("INSERT INTO {} ({}) VALUES %s ON CONFLICT ({}) {} RETURNING *").format(
            sql.Identifier(self._table),
            sql.SQL(", ").join(sql.Identifier(c) for c in cols),
            sql.Identifier(key),
            action,
        )
        rows = [[rec.get(c) for c in cols] for rec in self._payload]
        returned = execute_values(cur, query, rows, page_size=self._page_size, fetch=True)
        return StoreResponse(data=[dict(r) for r in returned])


class PostgresRowStore:
    """Row store over a psycopg2 connection (autocommit off)."""

    def __init__(self, conn: Any, *, page_size: int = 1000) -> None:
        self.conn = conn
        self.page_size = page_size

    def table(self, name: str) -> PostgresQuery:
        return PostgresQuery(self.conn, name, page_size=self.page_size)
