"""Domain models for the CRM bulk CSV pipeline.

This package contains the value types passed between the CSV codec, the fetch
engine and the import / export services.
"""

from .config_models import DatabaseConfig, EntityConfig, PipelineConfig
from .error_record import ErrorRecord
from .import_outcome import ImportOutcome
from .pagination import ChunkMetrics, PaginationRequest, PaginationResult, SortDirection
from .parsed_table import ParsedTable
from .row_data import RowData

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "EntityConfig",
    "PipelineConfig",
    # Processing models
    "ParsedTable",
    "RowData",
    "ImportOutcome",
    "ErrorRecord",
    # Pagination
    "PaginationRequest",
    "PaginationResult",
    "SortDirection",
    "ChunkMetrics",
]
