"""Read-only preview of a mapping applied to the first rows of a file."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from .extraction import parse_sample_rows
from .mapping import REQUIRED_FIELDS
from .normalization import annualize_salary, normalize_country, normalize_salary

NUMERIC_FIELDS = frozenset({"baseSalary", "bonusTarget", "ltiTarget"})

PreviewValue = str | float | None


@dataclass
class PreviewRow:
    row_number: int
    data: dict[str, PreviewValue]
    warnings: list[str] = field(default_factory=list)


@dataclass
class PreviewResult:
    rows: list[PreviewRow]
    total_rows: int
    valid_rows: int
    warning_rows: int


def preview_row(
    row: Mapping[str, str], mapping: Mapping[str, str | None], row_number: int
) -> PreviewRow:
    data: dict[str, PreviewValue] = {}
    warnings: list[str] = []
    period_column = mapping.get("salaryPeriod")
    period = row.get(period_column) if period_column else None

    for canonical, column in mapping.items():
        if not column:
            continue
        raw = row.get(column)
        if not raw:
            if canonical in REQUIRED_FIELDS:
                warnings.append(f"Missing required field: {canonical}")
            data[canonical] = None
            continue

        if canonical == "country":
            data[canonical] = normalize_country(raw)
        elif canonical in NUMERIC_FIELDS:
            amount = normalize_salary(raw)
            if amount is None:
                warnings.append(f'Could not parse {canonical}: "{raw}"')
                data[canonical] = raw
            elif canonical == "baseSalary" and period:
                data[canonical] = annualize_salary(amount, period)
            else:
                data[canonical] = amount
        else:
            data[canonical] = raw

    return PreviewRow(row_number=row_number, data=data, warnings=warnings)


def generate_preview(
    path: str | Path,
    mapping: Mapping[str, str | None],
    sample_size: int = 5,
) -> PreviewResult:
    """Normalize up to ``sample_size`` rows without touching persisted state.

    ``total_rows`` comes from a full scan of the file; ``valid_rows`` assumes
    every row beyond the sample is clean.
    """

    sample = parse_sample_rows(path, sample_size)
    rows = [
        preview_row(raw_row, mapping, index)
        for index, raw_row in enumerate(sample.rows, start=1)
    ]

    warning_rows = sum(1 for row in rows if row.warnings)
    return PreviewResult(
        rows=rows,
        total_rows=sample.total_rows,
        valid_rows=sample.total_rows - warning_rows,
        warning_rows=warning_rows,
    )
