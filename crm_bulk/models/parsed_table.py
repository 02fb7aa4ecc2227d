from __future__ import annotations

from dataclasses import dataclass, field

"""ParsedTable model: output of the CSV parser.

The first non-blank CSV row becomes ``headers``; the remaining rows are kept in
source order. Rows whose width differs from the header are *not* dropped here;
callers decide how to report them (see ``ragged_rows``).
"""

__all__ = [
    "ParsedTable",
]


@dataclass(frozen=True)
class ParsedTable:
    """Header row plus data rows, every cell already trimmed."""
    headers: list[str] = field(default_factory=list)
    rows: list[list[str]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.headers and not self.rows

    @property
    def is_rectangular(self) -> bool:
        width = len(self.headers)
        return all(len(r) == width for r in self.rows)

    def ragged_rows(self) -> list[tuple[int, list[str]]]:
        """Return ``(row_number, row)`` pairs whose width != header width.

        row_number is 1-based over data rows (header excluded).
        """
        width = len(self.headers)
        return [(i, r) for i, r in enumerate(self.rows, start=1) if len(r) != width]

    def records(self) -> list[dict[str, str]]:
        """Rows as header -> value dicts (ragged rows zip to the shorter side)."""
        return [dict(zip(self.headers, r)) for r in self.rows]
