from __future__ import annotations

import pytest

from crm_bulk.models.import_outcome import ImportOutcome
from crm_bulk.models.parsed_table import ParsedTable
from crm_bulk.models.row_data import RowData


def test_row_data_missing_required():
    row = RowData(row_number=3, values={"account_name": "  ", "email": None, "phone": "1"})
    assert row.missing(("account_name", "email", "phone", "website")) == ["account_name", "email", "website"]
    assert row.missing(()) == []


def test_row_data_is_frozen():
    row = RowData(row_number=1, values={})
    with pytest.raises(AttributeError):
        row.row_number = 2  # type: ignore[misc]


def test_parsed_table_records_and_shape():
    table = ParsedTable(headers=["a", "b"], rows=[["1", "2"], ["3"]])
    assert table.records() == [{"a": "1", "b": "2"}, {"a": "3"}]
    assert not table.is_rectangular
    assert table.ragged_rows() == [(2, ["3"])]
    assert not table.is_empty
    assert ParsedTable().is_empty


def test_import_outcome_counts():
    outcome = ImportOutcome()
    assert not outcome.has_changes
    outcome.record_created()
    outcome.record_updated()
    outcome.record_error("Row 3: boom")
    assert outcome.processed == 3
    assert outcome.has_changes
    assert outcome.errors == ["Row 3: boom"]
    assert outcome.error_records == []


def test_error_sample_is_bounded():
    outcome = ImportOutcome()
    for i in range(1, 6):
        outcome.record_error(f"Row {i}: x")
    assert outcome.error_sample() == ["Row 1: x", "Row 2: x", "Row 3: x"]
    assert outcome.error_sample(1) == ["Row 1: x"]
    assert len(outcome.errors) == 5
