from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

"""Pagination request / result models for the fetch engine."""

__all__ = [
    "SortDirection",
    "PaginationRequest",
    "PaginationResult",
    "ChunkMetrics",
]

T = TypeVar("T")


class SortDirection(Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class PaginationRequest:
    """One bounded page query for interactive list views.

    ``filters`` values equal to "all" (or empty) are ignored, matching the
    dropdown convention of the list views.
    """
    page: int
    page_size: int
    sort_field: str | None = None
    sort_direction: SortDirection = SortDirection.ASC
    search_term: str | None = None
    search_fields: tuple[str, ...] = ()
    filters: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError(f"page must be >= 1 (got {self.page})")
        if self.page_size < 1:
            raise ValueError(f"page_size must be >= 1 (got {self.page_size})")
        if isinstance(self.sort_direction, str):
            # "asc"/"desc" strings from the CLI / callers
            object.__setattr__(self, "sort_direction", SortDirection(self.sort_direction))

    @property
    def offset_window(self) -> tuple[int, int]:
        """Inclusive ``(from, to)`` row offsets for this page."""
        start = (self.page - 1) * self.page_size
        return start, start + self.page_size - 1


@dataclass(frozen=True)
class PaginationResult(Generic[T]):
    data: list[T]
    total_count: int  # exact count of all matching rows, independent of page


@dataclass(frozen=True)
class ChunkMetrics:
    """Timing for a single ranged request made by fetch_all."""
    chunk_index: int  # 0-based
    offset: int
    rows: int
    elapsed_seconds: float
