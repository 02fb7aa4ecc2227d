from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for row-level error logging.

Every row that fails during an import produces one ErrorRecord. The end user is
shown only a short sample of messages; the full list is flushed as JSON Lines by
crm_bulk.logging.error_log for diagnostics. ``row=-1`` marks an error that
cannot be tied to a single row.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        source: Uploaded filename (or "<text>" when imported from a string)
        entity: Entity name (accounts, contacts, ...)
        row: 1-based data row number. -1 when the row is unknown
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Store error message or description
    """
    timestamp: str
    source: str
    entity: str
    row: int
    error_type: str
    message: str

    @staticmethod
    def create(source: str, entity: str, row: int, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord with current UTC timestamp."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            source=source,
            entity=entity,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        """Serialize to one JSON line (fixed key set)."""
        return json.dumps(asdict(self), ensure_ascii=False)
