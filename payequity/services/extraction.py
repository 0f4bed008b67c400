"""Header and sample extraction for uploaded CSV exports."""
from __future__ import annotations

import csv
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Iterator

from payequity.core.errors import EmptyInputError, SourceFileError

# utf-8-sig drops the byte-order mark spreadsheet tools prepend to exports.
ENCODING = "utf-8-sig"


@dataclass(frozen=True)
class SampleResult:
    rows: list[dict[str, str]]
    total_rows: int


@contextmanager
def _open_source(path: str | Path) -> Iterator[IO[str]]:
    try:
        handle = Path(path).open(newline="", encoding=ENCODING)
    except OSError as exc:
        raise SourceFileError(f"Cannot open source file {path}: {exc}") from exc
    with handle:
        try:
            yield handle
        except UnicodeDecodeError as exc:
            raise SourceFileError(
                f"{Path(path).name} is not UTF-8 encoded (byte {exc.start}); re-export it as UTF-8 CSV"
            ) from exc
        except csv.Error as exc:
            raise SourceFileError(f"{Path(path).name} is not a readable CSV file: {exc}") from exc


def _clean_row(row: dict[str | None, object]) -> dict[str, str]:
    cleaned: dict[str, str] = {}
    for key, value in row.items():
        # Surplus cells land under the ``None`` key; they belong to no column.
        if key is None:
            continue
        cleaned[key.strip()] = value.strip() if isinstance(value, str) else ""
    return cleaned


def parse_headers(path: str | Path) -> list[str]:
    """Return the trimmed header row of ``path``."""

    with _open_source(path) as handle:
        first = next(csv.reader(handle), None)
    if first is None:
        raise EmptyInputError(f"{Path(path).name} is empty")
    return [header.strip() for header in first]


def iter_rows(path: str | Path) -> Iterator[dict[str, str]]:
    """Stream data rows keyed by trimmed header, skipping blank lines."""

    with _open_source(path) as handle:
        reader = csv.DictReader(handle)
        for row in reader:
            yield _clean_row(row)


def parse_sample_rows(path: str | Path, count: int = 5) -> SampleResult:
    """Count every data row in one pass while keeping only the first ``count``."""

    rows: list[dict[str, str]] = []
    total = 0
    for row in iter_rows(path):
        total += 1
        if len(rows) < count:
            rows.append(row)
    return SampleResult(rows=rows, total_rows=total)
