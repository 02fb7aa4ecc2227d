from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, Protocol

from ..models.config_models import EntityConfig
from ..normalize.fields import is_valid_uuid
from ..store.base import Record, RowStore, StoreError, escape_like, raise_for_error

"""Record repository: the create-vs-update capability used by the importer.

The import pipeline only needs three operations per row:
``find_existing`` (natural key lookup), ``create`` and ``update``. Keeping them
behind RecordRepository lets a caller swap the two-step check-then-write used
here for an SQL upsert without touching the row classification logic.
"""

__all__ = [
    "RecordRepository",
    "StoreRecordRepository",
    "RowWriteError",
    "SessionExpiredError",
]

logger = logging.getLogger(__name__)

# store error codes / fragments that mean the caller's session is gone
_AUTH_ERROR_CODES = frozenset({"PGRST301", "PGRST302", "401", "28000", "28P01"})
_AUTH_ERROR_FRAGMENTS = ("jwt expired", "invalid jwt", "not authenticated")


class RowWriteError(Exception):
    """Insert / update of a single row failed. Isolated to that row."""


class SessionExpiredError(Exception):
    """The authentication / session context was lost. Aborts the whole import."""


class RecordRepository(Protocol):
    def find_existing(self, record: Record) -> Record | None: ...
    def create(self, record: Record) -> Record | None: ...
    def update(self, existing: Record, record: Record) -> None: ...


def _is_blank(value: Any) -> bool:
    return value is None or not str(value).strip()


def _is_auth_error(err: StoreError) -> bool:
    if err.code and err.code in _AUTH_ERROR_CODES:
        return True
    msg = err.message.lower()
    return any(f in msg for f in _AUTH_ERROR_FRAGMENTS)


def _describe_insert_error(err: StoreError) -> str:
    msg = err.message
    if "uuid" in msg.lower():
        return "Invalid UUID format in record"
    if "violates" in msg or (err.code or "").startswith("23"):
        return f"Constraint violation: {msg}"
    return msg


class StoreRecordRepository:
    """RecordRepository over a RowStore, scoped to one entity and user.

    Natural key matching:
    - ``entity.natural_key`` compared case-insensitively (exact ILIKE with the
      wildcards escaped) unless ``natural_key_case_insensitive`` is False
    - a blank natural key falls back to ``entity.natural_key_fallback``
      (e.g. contacts without an email are matched by name)
    - otherwise, when the row carries a valid UUID ``id``, match by id
    """

    def __init__(self, store: RowStore, entity: EntityConfig, user_id: str) -> None:
        self.store = store
        self.entity = entity
        self.user_id = user_id

    def _check(self, resp: Any) -> Any:
        if resp.error is not None and _is_auth_error(resp.error):
            raise SessionExpiredError(resp.error.message)
        return resp

    def find_existing(self, record: Record) -> Record | None:
        table = self.entity.table
        key = self.entity.natural_key
        value = record.get(key)
        if _is_blank(value) and self.entity.natural_key_fallback:
            key = self.entity.natural_key_fallback
            value = record.get(key)
        if not _is_blank(value):
            query = self.store.table(table).select("*")
            if self.entity.natural_key_case_insensitive:
                query = query.ilike(key, escape_like(str(value).strip()))
            else:
                query = query.eq(key, value)
            resp = raise_for_error(self._check(query.limit(1).execute()), table)
            if resp.data:
                logger.debug("existing %s found by %s=%r -> id %s", table, key, value, resp.data[0].get("id"))
                return resp.data[0]

        rec_id = record.get("id")
        if is_valid_uuid(rec_id):
            resp = raise_for_error(
                self._check(self.store.table(table).select("*").eq("id", rec_id).limit(1).execute()),
                table,
            )
            if resp.data:
                return resp.data[0]
        return None

    def create(self, record: Record) -> Record | None:
        data = dict(record)
        data["created_by"] = self.user_id
        data["modified_by"] = self.user_id
        if not is_valid_uuid(data.get("id")):
            # foreign ids (e.g. "zcrm_2845...") are dropped; the store assigns one
            data.pop("id", None)
        resp = self._check(self.store.table(self.entity.table).insert([data]).execute())
        if resp.error is not None:
            raise RowWriteError(f"Insert failed - {_describe_insert_error(resp.error)}")
        return resp.data[0] if resp.data else None

    def update(self, existing: Record, record: Record) -> None:
        data = dict(record)
        data.pop("id", None)
        data["modified_by"] = self.user_id
        data[self.entity.modified_time_field] = datetime.now(UTC).isoformat()
        resp = self._check(
            self.store.table(self.entity.table).update(data).eq("id", existing["id"]).execute()
        )
        if resp.error is not None:
            raise RowWriteError(f"Update failed - {resp.error.message}")
