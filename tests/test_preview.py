"""Tests for the mapping preview."""
from __future__ import annotations

from pathlib import Path

from conftest import write_csv
from payequity.services.preview import generate_preview

HEADER = ["Emp ID", "Title", "Lvl", "Ctry", "Ccy", "Base", "Period"]
MAPPING = {
    "employeeId": "Emp ID",
    "roleTitle": "Title",
    "level": "Lvl",
    "country": "Ctry",
    "currency": "Ccy",
    "baseSalary": "Base",
    "salaryPeriod": "Period",
}


def test_preview_normalizes_values_and_flags_problems(tmp_path: Path) -> None:
    path = write_csv(
        tmp_path / "export.csv",
        HEADER,
        [
            ["E1", "Engineer", "L3", "Ireland", "EUR", "5000", "monthly"],
            ["E2", "", "L2", "IE", "EUR", "lots", ""],
            ["E3", "Analyst", "L1", "IRL", "EUR", "60000", ""],
        ],
    )

    preview = generate_preview(path, MAPPING, sample_size=5)

    assert preview.total_rows == 3
    assert preview.warning_rows == 1
    assert preview.valid_rows == 2
    first, second, third = preview.rows
    assert first.row_number == 1
    assert first.data["country"] == "IE"
    assert first.data["baseSalary"] == 60000
    assert second.row_number == 2
    assert second.data["roleTitle"] is None
    assert second.data["baseSalary"] == "lots"
    assert "Missing required field: roleTitle" in second.warnings
    assert any("baseSalary" in warning for warning in second.warnings)
    assert third.warnings == []


def test_preview_counts_rows_beyond_the_sample(tmp_path: Path) -> None:
    rows = [[f"E{i}", "Engineer", "L1", "IE", "EUR", "50000", ""] for i in range(12)]
    path = write_csv(tmp_path / "export.csv", HEADER, rows)

    preview = generate_preview(path, MAPPING, sample_size=5)

    assert len(preview.rows) == 5
    assert preview.total_rows == 12
    assert preview.valid_rows == 12
