# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pandas as pd
import pytest

from validation_wizard.logging.init import reset_logging

DIRTY_CSV = """id,qty,email,joined
1,10,alice@example.com,01-12-2025
2,12a,bob@example.com,15-06-2024
3,,carol@example.com,12-25-2025
4,250,dave@example,03-03-2023
"""

CLEAN_CSV = """id,qty,email,joined
1,10,alice@example.com,01-12-2025
2,12,bob@example.com,15-06-2024
"""


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def sample_config_yaml() -> str:
    return """template_id: 7
source_file: ../data/upload.csv
output_directory: ../output
batch_size: 2
null_sentinels: ["N/A"]
columns:
  id: [Required, Int]
  qty: [Required, Int, qty_cap]
  email: [Required, Email]
  joined: [Required, "Date(DD-MM-YYYY)", "Transform-Date(MM/DD/YYYY)"]
custom_rules:
  - rule_name: qty_cap
    column_name: qty
    formula: ["<=", "200"]
    description: at most 200 units
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "wizard.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def dirty_csv(temp_workdir: Path) -> Path:
    f = temp_workdir / "data" / "upload.csv"
    f.write_text(DIRTY_CSV, encoding="utf-8")
    return f


@pytest.fixture()
def clean_csv(temp_workdir: Path) -> Path:
    f = temp_workdir / "data" / "upload.csv"
    f.write_text(CLEAN_CSV, encoding="utf-8")
    return f


@pytest.fixture()
def sample_workbook(temp_workdir: Path) -> Path:
    """Excel upload with a title line above the header (header_row=2)."""
    p = temp_workdir / "data" / "upload.xlsx"
    rows = [
        ["Monthly upload", None, None],
        ["qty", "email", "joined"],
        [10, "alice@example.com", "01-12-2025"],
        [None, None, None],
        ["N/A", "bob@example.com", "12-25-2025"],
    ]
    with pd.ExcelWriter(p, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name="Orders", header=False, index=False)
    return p

