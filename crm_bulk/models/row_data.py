from __future__ import annotations

from dataclasses import dataclass
from typing import Any

"""RowData model for the CRM bulk pipeline.

RowData represents one CSV data row after header mapping and field
normalization, i.e. the candidate record handed to the repository.
"""

__all__ = [
    "RowData",
]


@dataclass(frozen=True)
class RowData:
    """Logical representation of a single CSV row after normalization.

    row_number is 1-based over data rows (the header line is not counted), which
    is the number quoted back to the user in row-level error messages.
    """
    row_number: int
    values: dict[str, Any]  # column -> normalized value
    raw_values: dict[str, Any] | None = None  # original strings for debug output

    def missing(self, required: tuple[str, ...] | list[str]) -> list[str]:
        """Required columns that are absent or blank in ``values``."""
        out = []
        for col in required:
            v = self.values.get(col)
            if v is None or str(v).strip() == "":
                out.append(col)
        return out
