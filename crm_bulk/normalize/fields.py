from __future__ import annotations

import re
import warnings
from typing import Any

import pandas as pd

"""Field-level normalizers shared by import and export.

Datetime parsing goes through ``pandas.to_datetime`` so that the many formats
found in CRM exports (ISO with offset, "2024-01-05 10:00", "01/05/2024", ...)
are accepted. Display helpers never raise: an unparseable value degrades to ""
instead of failing the row.
"""

__all__ = [
    "DATETIME_FIELDS",
    "USER_FIELDS",
    "ID_FIELDS",
    "EXPORT_DATETIME_FORMAT",
    "is_datetime_field",
    "is_user_field",
    "is_valid_uuid",
    "format_datetime_for_export",
    "format_id_for_export",
    "normalize_datetime_for_import",
    "normalize_url",
]

DATETIME_FIELDS = frozenset({
    "created_at",
    "modified_at",
    "created_time",
    "modified_time",
    "last_activity_time",
})

USER_FIELDS = frozenset({
    "contact_owner",
    "created_by",
    "modified_by",
    "lead_owner",
    "account_owner",
    "assigned_to",
})

ID_FIELDS = frozenset({"id"})

EXPORT_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


def is_datetime_field(column: str) -> bool:
    return column in DATETIME_FIELDS


def is_user_field(column: str) -> bool:
    return column.lower() in USER_FIELDS


def is_valid_uuid(value: Any) -> bool:
    return isinstance(value, str) and bool(_UUID_RE.match(value.strip()))


def _parse_timestamp(value: Any) -> pd.Timestamp | None:
    """pd.Timestamp or None. Never raises."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        with warnings.catch_warnings():
            # "Could not infer format" noise for free-text values
            warnings.simplefilter("ignore", UserWarning)
            ts = pd.to_datetime(value, errors="coerce")
    except (TypeError, ValueError, OverflowError):
        return None
    if ts is None or pd.isna(ts):
        return None
    return ts


def format_datetime_for_export(value: Any, tz: str = "UTC") -> str:
    """Render a timestamp as ``YYYY-MM-DD HH:MM:SS`` in the local zone ``tz``.

    Offset-aware values are converted to ``tz``; naive values are assumed to be
    local already. Unparseable input -> "".
    """
    ts = _parse_timestamp(value)
    if ts is None:
        return ""
    if ts.tzinfo is not None:
        ts = ts.tz_convert(tz)
    return ts.strftime(EXPORT_DATETIME_FORMAT)


def format_id_for_export(value: Any) -> str:
    """First 8 characters of an identifier (display truncation only)."""
    if value is None:
        return ""
    return str(value)[:8]


def normalize_datetime_for_import(value: Any, tz: str = "UTC") -> Any:
    """ISO-8601 string for parseable input, None for blank input.

    Unparseable text is returned (trimmed) as-is; the store decides whether it is
    acceptable and a rejection becomes a row-level error.
    """
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    ts = _parse_timestamp(value)
    if ts is None:
        return value.strip() if isinstance(value, str) else value
    if ts.tzinfo is None:
        # DST gaps / overlaps: shift forward, take standard time
        ts = ts.tz_localize(tz, ambiguous=False, nonexistent="shift_forward")
    else:
        ts = ts.tz_convert(tz)
    return ts.isoformat()


def normalize_url(value: Any) -> str:
    """Prefix ``https://`` when a URL has no scheme (LinkedIn / website columns)."""
    if value is None:
        return ""
    trimmed = str(value).strip()
    if not trimmed:
        return ""
    if trimmed.startswith(("http://", "https://")):
        return trimmed
    return f"https://{trimmed}"
