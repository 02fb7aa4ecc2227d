from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

"""Remote row-store boundary.

The pipeline never talks SQL directly; it drives a chainable, row-oriented
query builder (select / eq / ilike / or / order / range / insert / update /
upsert) and gets back ``StoreResponse(data, count, error)``. A non-None
``error`` means the call failed and ``data`` must be treated as absent.

Implementations: store/memory.py (tests, offline CLI) and store/postgres.py.
"""

__all__ = [
    "Record",
    "Predicate",
    "StoreError",
    "StoreResponse",
    "RemoteQueryError",
    "TableQuery",
    "RowStore",
    "raise_for_error",
    "escape_like",
]

Record = dict[str, Any]

# (column, operator, value); operator is "eq" or "ilike"
Predicate = tuple[str, str, Any]


@dataclass(frozen=True)
class StoreError:
    message: str
    code: str | None = None  # SQLSTATE-style code when available
    details: str | None = None


@dataclass(frozen=True)
class StoreResponse:
    data: list[Record] | None = None
    count: int | None = None  # only set when select(count="exact")
    error: StoreError | None = None


class RemoteQueryError(Exception):
    """A store call reported an error; carries the StoreError."""

    def __init__(self, error: StoreError, *, table: str | None = None) -> None:
        prefix = f"{table}: " if table else ""
        super().__init__(f"{prefix}{error.message}")
        self.error = error
        self.table = table


class TableQuery(Protocol):
    """Chainable query against one table. Every builder method returns self."""

    def select(self, columns: str = "*", *, count: str | None = None) -> TableQuery: ...
    def eq(self, column: str, value: Any) -> TableQuery: ...
    def ilike(self, column: str, pattern: str) -> TableQuery: ...
    def or_(self, predicates: Sequence[Predicate]) -> TableQuery: ...
    def order(self, column: str, *, ascending: bool = True) -> TableQuery: ...
    def range(self, start: int, end: int) -> TableQuery: ...
    def limit(self, n: int) -> TableQuery: ...
    def insert(self, records: Sequence[Mapping[str, Any]]) -> TableQuery: ...
    def update(self, values: Mapping[str, Any]) -> TableQuery: ...
    def upsert(self, records: Sequence[Mapping[str, Any]], *, on_conflict: str) -> TableQuery: ...
    def execute(self) -> StoreResponse: ...


class RowStore(Protocol):
    def table(self, name: str) -> TableQuery: ...


def raise_for_error(resp: StoreResponse, table: str | None = None) -> StoreResponse:
    """Return ``resp`` unchanged, or raise RemoteQueryError if it carries an error."""
    if resp.error is not None:
        raise RemoteQueryError(resp.error, table=table)
    return resp


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so ``term`` matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
