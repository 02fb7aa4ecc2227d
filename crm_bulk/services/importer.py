from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable, Sequence

from ..csvio.codec import parse_csv
from ..db.repository import RecordRepository, RowWriteError, SessionExpiredError
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import EntityConfig
from ..models.error_record import ErrorRecord
from ..models.import_outcome import ImportOutcome
from ..models.row_data import RowData
from ..normalize.country import normalize_country_name, region_for_country
from ..normalize.fields import is_datetime_field, is_user_field, normalize_datetime_for_import, normalize_url
from ..normalize.users import UserDirectory
from ..store.base import RemoteQueryError
from .errors import (
    AuthenticationRequiredError,
    EmptyInputError,
    InvalidFileTypeError,
    MissingRequiredColumnError,
    NoHeadersError,
    NoMappedColumnsError,
    UnreadableFileError,
)
from .events import EventBus, ImportCompleted, default_bus

"""Bulk CSV import pipeline.

parse -> map headers -> normalize each row -> find existing by natural key ->
create or update -> aggregate counts and row errors -> progress / completion
event.

Rows are processed strictly one after another. Each row's existence check sees
the writes of every earlier row in the same file, so a natural key repeated in
one file is created once and then updated. Row failures are isolated; only
structural problems (empty file, no header, lost session, ...) abort the call.
"""

__all__ = [
    "ProgressCallback",
    "validate_upload_name",
    "decode_payload",
    "map_headers",
    "build_row",
    "import_csv",
    "import_file",
]

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

_NON_WORD = re.compile(r"[^0-9a-z]+")


def validate_upload_name(filename: str) -> None:
    """Reject anything that is not a .csv upload (case-insensitive)."""
    if not filename or not filename.lower().endswith(".csv"):
        raise InvalidFileTypeError(f"Please select a valid CSV file (got '{filename}')")


def decode_payload(payload: bytes | str) -> str:
    """UTF-8 text of an uploaded payload, BOM stripped."""
    if isinstance(payload, str):
        return payload.lstrip("\ufeff")
    try:
        return payload.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise UnreadableFileError(f"CSV file is not valid UTF-8: {e}") from e


def _snake(label: str) -> str:
    return _NON_WORD.sub("_", label.strip().lower()).strip("_")


def map_headers(headers: Sequence[str], entity: EntityConfig) -> list[str | None]:
    """Target column for every header position (None = not imported).

    Lookup order: ``entity.header_aliases`` (lower-cased label), then the
    snake_cased label if it is a known column of the entity.
    """
    known = entity.known_columns
    columns: list[str | None] = []
    for header in headers:
        col = entity.header_aliases.get(header.strip().lower())
        if col is None:
            snake = _snake(header)
            col = snake if snake in known else None
        columns.append(col)
    return columns


def build_row(
    row_number: int,
    cells: Sequence[str],
    columns: Sequence[str | None],
    entity: EntityConfig,
    *,
    user_id: str,
    user_directory: UserDirectory | None = None,
    timezone: str = "UTC",
) -> RowData:
    """Map one parsed row onto entity columns and normalize it.

    - blank cells become None
    - datetime columns -> ISO-8601 in ``timezone``
    - URL columns get a scheme
    - country columns -> canonical name; region filled from country when blank
    - user-reference columns -> user ids (names / emails resolved through
      ``user_directory``, unknown names fall back to ``user_id``)
    """
    raw: dict[str, str] = {}
    values: dict[str, object] = {}
    for idx, col in enumerate(columns):
        if col is None or idx >= len(cells):
            continue
        cell = cells[idx]
        if col in raw and cell == "":
            # 同一列に複数ヘッダ: 空セルで上書きしない
            continue
        raw[col] = cell
        values[col] = cell if cell != "" else None

    for col in entity.url_fields:
        if values.get(col):
            values[col] = normalize_url(values[col])

    for col in list(values):
        if is_datetime_field(col):
            values[col] = normalize_datetime_for_import(values[col], timezone)

    for col in entity.country_fields:
        if values.get(col):
            values[col] = normalize_country_name(str(values[col]))

    if entity.region_field and entity.country_fields:
        country = values.get(entity.country_fields[0])
        if country and not values.get(entity.region_field):
            values[entity.region_field] = region_for_country(str(country))

    if user_directory is not None:
        for col in list(values):
            if is_user_field(col) and values[col] is not None:
                values[col] = user_directory.resolve(values[col], user_id)

    return RowData(row_number=row_number, values=values, raw_values=raw)


def import_csv(
    text: str,
    entity: EntityConfig,
    repository: RecordRepository,
    *,
    user_id: str | None,
    on_progress: ProgressCallback | None = None,
    user_directory: UserDirectory | None = None,
    source: str = "csv-import",
    source_name: str = "<text>",
    events: EventBus | None = None,
    timezone: str = "UTC",
    error_log: ErrorLogBuffer | None = None,
) -> ImportOutcome:
    """Import CSV text into ``entity`` through ``repository``.

    Args:
        text: CSV content (decoded)
        entity: entity settings (natural key, required fields, normalized columns)
        repository: find_existing / create / update capability
        user_id: importing user; stamped on created / updated records
        on_progress: called as ``on_progress(processed, total)`` after every data
            row. An exception raised by the callback stops the import (rows
            already written stay written).
        user_directory: resolves owner names / emails to user ids
        source: tag carried by the ImportCompleted event
        source_name: file name recorded in ErrorRecords
        events: bus for the completion event (module default bus if None)
        timezone: zone for naive datetimes
        error_log: optional buffer receiving one ErrorRecord per failed row

    Returns:
        ImportOutcome; every data row is counted exactly once

    Raises:
        AuthenticationRequiredError: no user_id
        EmptyInputError: text empty / whitespace only
        NoHeadersError: nothing parsed (not even a header row)
        NoMappedColumnsError: no header maps to an entity column
        MissingRequiredColumnError: a required column has no header
        SessionExpiredError: the store rejected the session mid-import
    """
    if not user_id:
        raise AuthenticationRequiredError("User not authenticated. Please log in and try again.")
    if text is None or not text.strip():
        raise EmptyInputError("CSV file is empty")

    started = time.perf_counter()
    table = parse_csv(text)
    if not table.headers:
        raise NoHeadersError("No headers found in CSV file")

    columns = map_headers(table.headers, entity)
    mapped = {c for c in columns if c is not None}
    if not mapped:
        raise NoMappedColumnsError(
            "No CSV columns could be mapped to database fields. Please check your CSV headers."
        )
    missing_required = [c for c in entity.required_fields if c not in mapped]
    if missing_required:
        raise MissingRequiredColumnError(
            f"Required column(s) {missing_required} not found in CSV. "
            f"Available headers: {', '.join(table.headers)}"
        )
    unmapped = [h for h, c in zip(table.headers, columns) if c is None]
    if unmapped:
        logger.info("%s: headers not imported: %s", entity.name, unmapped)

    outcome = ImportOutcome()
    total = len(table.rows)
    if total == 0:
        logger.warning("%s: no data rows found in CSV", entity.name)
        return outcome

    stats_before = user_directory.stats() if user_directory is not None else None
    width = len(table.headers)

    def _fail(row_number: int, error_type: str, reason: str) -> None:
        message = f"Row {row_number}: {reason}"
        record = ErrorRecord.create(
            source=source_name, entity=entity.name, row=row_number,
            error_type=error_type, message=reason,
        )
        outcome.record_error(message, record)
        if error_log is not None:
            error_log.append(record)
        logger.warning("%s %s", entity.name, message)

    for row_number, cells in enumerate(table.rows, start=1):
        try:
            if len(cells) != width:
                _fail(
                    row_number, "RAGGED_ROW",
                    f"Column count mismatch - expected {width} fields, got {len(cells)}",
                )
            else:
                row = build_row(
                    row_number, cells, columns, entity,
                    user_id=user_id, user_directory=user_directory, timezone=timezone,
                )
                missing = row.missing(entity.required_fields)
                if missing:
                    _fail(
                        row_number, "VALIDATION_ERROR",
                        f"Validation failed. Missing required: {', '.join(missing)}",
                    )
                else:
                    existing = repository.find_existing(row.values)
                    if existing is not None:
                        repository.update(existing, row.values)
                        outcome.record_updated()
                    else:
                        repository.create(row.values)
                        outcome.record_created()
        except SessionExpiredError:
            raise
        except RowWriteError as e:
            _fail(row_number, "WRITE_ERROR", str(e))
        except RemoteQueryError as e:
            _fail(row_number, "LOOKUP_ERROR", f"Lookup failed - {e}")
        except Exception as e:
            _fail(row_number, "PROCESSING_ERROR", f"Processing error - {e}")

        if on_progress is not None:
            on_progress(row_number, total)

    if user_directory is not None and stats_before is not None:
        after = user_directory.stats()
        outcome.user_resolution = {k: after[k] - stats_before[k] for k in after}

    elapsed = time.perf_counter() - started
    logger.info(
        "%s import done: created=%d updated=%d errors=%d rows=%d (%.2fs)",
        entity.name, outcome.success_count, outcome.update_count,
        outcome.error_count, total, elapsed,
    )

    if outcome.has_changes:
        (events if events is not None else default_bus).publish(ImportCompleted(
            entity=entity.name,
            success_count=outcome.success_count,
            update_count=outcome.update_count,
            source=source,
        ))
    return outcome


def import_file(
    filename: str,
    payload: bytes | str,
    entity: EntityConfig,
    repository: RecordRepository,
    **kwargs: object,
) -> ImportOutcome:
    """Validate an uploaded file (name + encoding) and import it.

    Keyword arguments are passed through to import_csv.
    """
    validate_upload_name(filename)
    if payload is None or len(payload) == 0:
        raise EmptyInputError("CSV file is empty")
    text = decode_payload(payload)
    kwargs.setdefault("source_name", filename)
    return import_csv(text, entity, repository, **kwargs)  # type: ignore[arg-type]
