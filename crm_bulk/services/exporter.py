from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any

from ..csvio.codec import serialize_csv
from ..db.pagination import FETCH_CHUNK_SIZE, fetch_all
from ..models.config_models import EntityConfig
from ..normalize.fields import (
    ID_FIELDS,
    format_datetime_for_export,
    format_id_for_export,
    is_datetime_field,
    is_user_field,
)
from ..store.base import Record, RowStore
from .errors import NoDataError

"""Bulk CSV export pipeline.

fetch_all (sequential chunks) -> display normalization -> serialize with the
entity's fixed export column list -> UTF-8 CSV artifact.

Display normalization is one-way: ids are shortened and datetimes are rendered
for people, so an exported file re-imports by natural key, never by id.
"""

__all__ = [
    "CSV_MIME_TYPE",
    "ExportArtifact",
    "export_filename",
    "prepare_export_rows",
    "export_table",
    "write_artifact",
]

logger = logging.getLogger(__name__)

CSV_MIME_TYPE = "text/csv;charset=utf-8"


@dataclass(frozen=True)
class ExportArtifact:
    filename: str
    content: bytes
    mime_type: str = CSV_MIME_TYPE
    row_count: int = 0


def export_filename(entity_name: str, today: date | None = None) -> str:
    """``<entity>_export_<YYYY-MM-DD>.csv``"""
    day = today or date.today()
    return f"{entity_name}_export_{day.isoformat()}.csv"


def prepare_export_rows(
    records: Iterable[Mapping[str, Any]],
    entity: EntityConfig,
    timezone: str = "UTC",
    user_names: Mapping[str, str] | None = None,
) -> list[dict[str, Any]]:
    """Display-normalize raw store rows, restricted to the export columns."""
    names = user_names or {}
    out: list[dict[str, Any]] = []
    for rec in records:
        row: dict[str, Any] = {}
        for col in entity.export_fields:
            value = rec.get(col)
            if col in ID_FIELDS:
                value = format_id_for_export(value)
            elif is_datetime_field(col):
                value = format_datetime_for_export(value, timezone)
            elif is_user_field(col) and value is not None:
                value = names.get(str(value), value)
            row[col] = value
        out.append(row)
    return out


def export_table(
    store: RowStore,
    entity: EntityConfig,
    *,
    timezone: str = "UTC",
    user_names: Mapping[str, str] | None = None,
    today: date | None = None,
    chunk_size: int = FETCH_CHUNK_SIZE,
) -> ExportArtifact:
    """Export every row of ``entity`` as one CSV artifact.

    Raises:
        NoDataError: the table is empty
        RemoteQueryError: a chunk fetch failed (no partial file is produced)
    """
    started = time.perf_counter()
    records: list[Record] = fetch_all(
        store,
        entity.table,
        entity.default_order,
        entity.default_ascending,
        chunk_size=chunk_size,
    )
    if not records:
        raise NoDataError(f"No {entity.name} data to export")

    rows = prepare_export_rows(records, entity, timezone, user_names)
    text = serialize_csv(rows, entity.export_fields)
    artifact = ExportArtifact(
        filename=export_filename(entity.name, today),
        content=text.encode("utf-8"),
        row_count=len(rows),
    )
    logger.info(
        "%s export: %d rows -> %s (%.2fs)",
        entity.name, artifact.row_count, artifact.filename, time.perf_counter() - started,
    )
    return artifact


def write_artifact(artifact: ExportArtifact, directory: Path) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / artifact.filename
    path.write_bytes(artifact.content)
    return path
