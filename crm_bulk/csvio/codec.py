from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from ..models.parsed_table import ParsedTable

"""RFC 4180 CSV parser / serializer.

Hand-written character scanner rather than the csv module because the import
contract needs a few specific behaviours:
- every field is trimmed of surrounding whitespace
- rows that are blank after trimming (e.g. ",, ,") are skipped
- ``\\r\\n``, bare ``\\r`` and bare ``\\n`` all terminate a row
- newlines inside quoted fields are kept verbatim (multi-line fields)

Output always uses ``\\n`` as row separator, no trailing newline.
"""

__all__ = [
    "CSVParseError",
    "parse_csv",
    "escape_field",
    "serialize_csv",
]

logger = logging.getLogger(__name__)

_NEEDS_QUOTING = (",", '"', "\n", "\r")


class CSVParseError(Exception):
    """Raised by parse_csv(strict=True) when a row width differs from the header."""


def _flush_row(row: list[str], out: list[list[str]]) -> None:
    if any(f != "" for f in row):
        out.append(row)


def parse_csv(text: str, *, strict: bool = False) -> ParsedTable:
    """Parse CSV text into headers and rows.

    Parameters
    ----------
    text: CSV 全文 (already decoded)
    strict: raise CSVParseError on the first ragged row instead of returning it

    Examples
    --------
    >>> parse_csv('h1,h2,h3\\na,"b,c","d""e"').rows
    [['a', 'b,c', 'd"e']]
    """
    if not text or not text.strip():
        return ParsedTable(headers=[], rows=[])

    result: list[list[str]] = []
    row: list[str] = []
    buf: list[str] = []
    in_quotes = False
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]
        if ch == '"':
            if not in_quotes:
                in_quotes = True
                i += 1
            elif i + 1 < n and text[i + 1] == '"':
                # escaped quote inside quoted field
                buf.append('"')
                i += 2
            else:
                in_quotes = False
                i += 1
        elif ch == "," and not in_quotes:
            row.append("".join(buf).strip())
            buf = []
            i += 1
        elif (ch == "\n" or ch == "\r") and not in_quotes:
            if ch == "\r" and i + 1 < n and text[i + 1] == "\n":
                i += 1
            row.append("".join(buf).strip())
            _flush_row(row, result)
            row = []
            buf = []
            i += 1
        else:
            buf.append(ch)
            i += 1

    row.append("".join(buf).strip())
    _flush_row(row, result)

    if not result:
        return ParsedTable(headers=[], rows=[])

    table = ParsedTable(headers=result[0], rows=result[1:])
    logger.debug("parsed %d data rows with %d columns", len(table.rows), len(table.headers))

    if strict:
        ragged = table.ragged_rows()
        if ragged:
            row_number, bad = ragged[0]
            raise CSVParseError(
                f"row {row_number} has {len(bad)} fields, expected {len(table.headers)}"
            )
    return table


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def escape_field(value: Any) -> str:
    """Stringify ``value`` and quote it when it contains , " or a newline."""
    s = _stringify(value)
    if any(c in s for c in _NEEDS_QUOTING):
        return '"' + s.replace('"', '""') + '"'
    return s


def serialize_csv(records: Iterable[Mapping[str, Any]], headers: Sequence[str]) -> str:
    """Serialize records to CSV text with a fixed header order.

    Values are looked up by header name; missing keys and None become "".
    """
    lines = [",".join(escape_field(h) for h in headers)]
    for rec in records:
        lines.append(",".join(escape_field(rec.get(h)) for h in headers))
    return "\n".join(lines)
