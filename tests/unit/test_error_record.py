from __future__ import annotations

import json

from crm_bulk.models.error_record import ErrorRecord


def test_create_stamps_utc_z_timestamp():
    rec = ErrorRecord.create("upload.csv", "contacts", 7, "LOOKUP_ERROR", "Lookup failed - timeout")
    assert rec.timestamp.endswith("Z")
    assert "+00:00" not in rec.timestamp
    assert (rec.source, rec.entity, rec.row, rec.error_type) == ("upload.csv", "contacts", 7, "LOOKUP_ERROR")


def test_json_line_has_fixed_keys_and_keeps_unicode():
    rec = ErrorRecord.create("取引先.csv", "accounts", -1, "PROCESSING_ERROR", "失敗")
    line = rec.to_json_line()
    assert "\n" not in line
    data = json.loads(line)
    assert list(data) == ["timestamp", "source", "entity", "row", "error_type", "message"]
    assert data["source"] == "取引先.csv"
    assert data["row"] == -1
    assert "取引先" in line
