"""Tests for CSV header and sample extraction."""
from __future__ import annotations

from pathlib import Path

import pytest

from payequity.core.errors import EmptyInputError, SourceFileError
from payequity.services.extraction import iter_rows, parse_headers, parse_sample_rows


def test_headers_are_trimmed_and_bom_is_dropped(tmp_path: Path) -> None:
    path = tmp_path / "export.csv"
    path.write_bytes("\ufeff Emp ID , Title\n1,Engineer\n".encode("utf-8"))

    assert parse_headers(path) == ["Emp ID", "Title"]


def test_sample_keeps_first_rows_and_counts_all(tmp_path: Path) -> None:
    path = tmp_path / "export.csv"
    body = "id,salary\n" + "\n".join(f"{i}, {i * 1000} " for i in range(1, 9)) + "\n"
    path.write_text(body, encoding="utf-8")

    sample = parse_sample_rows(path, 5)

    assert sample.total_rows == 8
    assert len(sample.rows) == 5
    assert sample.rows[0] == {"id": "1", "salary": "1000"}


def test_blank_lines_are_skipped(tmp_path: Path) -> None:
    path = tmp_path / "export.csv"
    path.write_text("id,name\n1,a\n\n2,b\n", encoding="utf-8")

    assert [row["id"] for row in iter_rows(path)] == ["1", "2"]


def test_empty_file_raises(tmp_path: Path) -> None:
    path = tmp_path / "empty.csv"
    path.write_text("", encoding="utf-8")

    with pytest.raises(EmptyInputError):
        parse_headers(path)


def test_missing_file_raises_source_error(tmp_path: Path) -> None:
    with pytest.raises(SourceFileError):
        parse_headers(tmp_path / "nope.csv")


def test_non_utf8_export_raises_source_error(tmp_path: Path) -> None:
    path = tmp_path / "latin1.csv"
    path.write_bytes("Emp ID,Title\nE1,Ingénieur\n".encode("latin-1"))

    with pytest.raises(SourceFileError, match="UTF-8"):
        parse_headers(path)
    with pytest.raises(SourceFileError):
        list(iter_rows(path))
    with pytest.raises(SourceFileError):
        parse_sample_rows(path)
