from __future__ import annotations
import json
import re
from pathlib import Path
from validation_wizard.logging.error_log import ErrorRecord, ErrorLogBuffer
from validation_wizard.models.error_location import ErrorIndex, ErrorLocation
from validation_wizard.models.session_state import Phase

KEYS = {"timestamp", "template", "sheet", "column", "phase", "row", "value", "rule_failed", "reason_code", "reason"}


def _loc(row: int, **kw) -> ErrorLocation:
    return ErrorLocation(row, kw.get("value", "x"), kw.get("rule", "Int"), "msg", kw.get("code", "NonNumericCharacters"), kw.get("resolved", False))


def test_error_log_buffer_flush(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("7", "S", "qty", "generic", _loc(1)))
    buf.append(ErrorRecord.create("7", "S", "qty", "generic", _loc(2)))
    path = buf.flush()
    assert path.exists()
    assert path.parent.resolve() == (temp_workdir / "logs").resolve()
    assert re.fullmatch(r"errors-\d{8}-\d{6}\.log", path.name)
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    for raw in lines:
        assert set(json.loads(raw).keys()) == KEYS
    # flush 後バッファクリア
    assert len(buf) == 0


def test_flush_appends_to_same_file(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "reports")
    buf.append(ErrorRecord.create("7", "", "qty", "generic", _loc(1)))
    first = buf.flush()
    buf.append(ErrorRecord.create("7", "", "qty", "custom", _loc(1)))
    assert buf.flush() == first
    assert len(first.read_text(encoding="utf-8").splitlines()) == 2


def test_empty_flush_creates_no_file(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "reports")
    assert buf.flush() is None
    assert not (tmp_path / "reports").exists()


def test_extend_from_index_skips_resolved(tmp_path: Path):
    index = ErrorIndex()
    index.add("qty", _loc(2))
    index.add("qty", _loc(3, resolved=True))
    index.add("email", _loc(4, value="d@x", rule="Email", code="InvalidEmailFormat"))

    buf = ErrorLogBuffer(tmp_path)
    assert buf.extend_from_index(7, "Orders", Phase.GENERIC, index) == 2
    records = [json.loads(line) for line in buf.flush().read_text(encoding="utf-8").splitlines()]
    assert [(r["column"], r["row"]) for r in records] == [("qty", 2), ("email", 4)]
    assert records[1]["template"] == "7"
    assert records[1]["phase"] == "generic"
    assert records[1]["reason_code"] == "InvalidEmailFormat"
