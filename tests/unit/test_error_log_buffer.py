from __future__ import annotations
import json
import re
from pathlib import Path
from crm_bulk.logging.error_log import ErrorLogBuffer, ErrorRecord

KEYS = {"timestamp", "source", "entity", "row", "error_type", "message"}


def test_error_log_buffer_flush(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("a.csv", "accounts", 1, "VALIDATION_ERROR", "Missing required: account_name"))
    buf.append(ErrorRecord.create("a.csv", "accounts", 2, "WRITE_ERROR", "Insert failed - dup"))
    path = buf.flush()
    assert path.exists()
    assert path.parent == Path("logs")
    assert re.fullmatch(r"import-errors-\d{8}-\d{6}\.log", path.name)
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    for raw in lines:
        assert set(json.loads(raw).keys()) == KEYS
    # flush 後バッファクリア
    assert len(buf) == 0


def test_error_log_buffer_multiple_flushes_append(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("a.csv", "accounts", 1, "WRITE_ERROR", "dup"))
    path = buf.flush()
    size1 = path.stat().st_size
    buf.append(ErrorRecord.create("a.csv", "accounts", 2, "WRITE_ERROR", "dup2"))
    path2 = buf.flush()
    assert path == path2
    assert path2.stat().st_size > size1


def test_flush_empty_buffer_writes_nothing(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()


def test_records_returns_copy(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path)
    buf.append(ErrorRecord.create("a.csv", "accounts", 1, "WRITE_ERROR", "x"))
    buf.records.clear()
    assert len(buf) == 1
