from __future__ import annotations

from dataclasses import dataclass, field

from .error_record import ErrorRecord

"""Aggregated result of one bulk import.

Every processed data row lands in exactly one of created / updated / error.
Blank CSV lines never reach this model (the parser discards them), so
``processed`` equals the number of data rows in the parsed table.
"""

__all__ = [
    "ImportOutcome",
]


@dataclass
class ImportOutcome:
    """Counts plus per-row error messages for one import call."""
    success_count: int = 0  # rows created
    update_count: int = 0  # rows matched by natural key and updated
    error_count: int = 0
    errors: list[str] = field(default_factory=list)
    error_records: list[ErrorRecord] = field(default_factory=list)
    user_resolution: dict[str, int] = field(
        default_factory=lambda: {"resolved": 0, "fallback": 0}
    )

    @property
    def processed(self) -> int:
        return self.success_count + self.update_count + self.error_count

    @property
    def has_changes(self) -> bool:
        return self.success_count > 0 or self.update_count > 0

    def record_created(self) -> None:
        self.success_count += 1

    def record_updated(self) -> None:
        self.update_count += 1

    def record_error(self, message: str, record: ErrorRecord | None = None) -> None:
        self.error_count += 1
        self.errors.append(message)
        if record is not None:
            self.error_records.append(record)

    def error_sample(self, limit: int = 3) -> list[str]:
        """First ``limit`` error messages (what the end user gets to see)."""
        return self.errors[:limit]
