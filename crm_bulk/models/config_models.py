from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the CRM bulk pipeline.

These describe *what* an entity looks like to the import / export pipeline
(table, natural key, export column order, normalized fields). The YAML loader in
crm_bulk/config/loader.py builds them; the built-in definitions live in
crm_bulk/config/entities.py.
"""


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class EntityConfig:
    """Import / export settings for one record type (accounts, contacts, ...).

    The natural key decides create-vs-update during import until the store has
    assigned an ``id``.
    """
    name: str  # entity name used in filenames / events (e.g. "accounts")
    table: str  # store table name
    natural_key: str  # column compared against existing records
    export_fields: tuple[str, ...]  # fixed CSV header order for export
    required_fields: tuple[str, ...] = ()
    natural_key_case_insensitive: bool = True
    # matched instead of natural_key when the natural key cell is blank
    natural_key_fallback: str | None = None
    modified_time_field: str = "modified_time"  # stamped on update
    default_order: str = "created_time"
    default_ascending: bool = False
    search_fields: tuple[str, ...] = ()
    country_fields: tuple[str, ...] = ()
    region_field: str | None = None  # auto-filled from country when empty
    url_fields: tuple[str, ...] = ()
    # CSV header label (lower-cased) -> column
    header_aliases: dict[str, str] = field(default_factory=dict)

    @property
    def known_columns(self) -> set[str]:
        """Columns a CSV header may map onto."""
        cols = set(self.export_fields)
        cols.update(self.required_fields)
        cols.add(self.natural_key)
        if self.natural_key_fallback:
            cols.add(self.natural_key_fallback)
        cols.update(self.header_aliases.values())
        return cols


@dataclass(frozen=True)
class PipelineConfig:
    """Root configuration object for the pipeline."""
    entities: dict[str, EntityConfig]  # entity name -> settings
    timezone: str = "UTC"  # local zone for datetime display / import
    fetch_chunk_size: int = 1000  # rows per ranged request in fetch_all
    error_sample_size: int = 3  # row errors shown to the end user
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    def entity(self, name: str) -> EntityConfig:
        try:
            return self.entities[name]
        except KeyError:
            known = ", ".join(sorted(self.entities))
            raise KeyError(f"unknown entity '{name}' (known: {known})") from None
