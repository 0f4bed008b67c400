"""Tests for country, salary and pay period normalization."""
from __future__ import annotations

import pytest

from payequity.services.normalization import (
    annualize_salary,
    normalize_country,
    normalize_salary,
    period_factor,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Ireland", "IE"),
        ("  ireland ", "IE"),
        ("IRL", "IE"),
        ("ie", "IE"),
        ("U.K.", "GB"),
        ("Deutschland", "DE"),
        ("United States of America", "US"),
    ],
)
def test_normalize_country_known_aliases(raw: str, expected: str) -> None:
    assert normalize_country(raw) == expected


def test_normalize_country_unknown_is_returned_unchanged() -> None:
    assert normalize_country("Atlantis") == "Atlantis"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("1,000.50", 1000.5),
        ("€1.234,50", 1234.5),
        ("1 234", 1234.0),
        ("CHF 1'234", 1234.0),
        ("$95,000", 95000.0),
        ("1.000.000", 1000000.0),
        ("1000,5", 1000.5),
        ("(1,000)", -1000.0),
        (72000, 72000.0),
    ],
)
def test_normalize_salary_handles_locale_formats(raw, expected: float) -> None:
    assert normalize_salary(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", ["", "   ", "n/a", None, "abc"])
def test_normalize_salary_returns_none_for_garbage(raw) -> None:
    assert normalize_salary(raw) is None


def test_annualize_monthly_amount_from_formatted_text() -> None:
    assert annualize_salary(normalize_salary("1,000.50"), "monthly") == pytest.approx(12006)


@pytest.mark.parametrize(
    ("period", "factor"),
    [("Bi-Weekly", 26), ("Per Month", 12), ("hourly", 2080), ("Annual", 1), ("semi-monthly", 24)],
)
def test_period_factor_ignores_case_and_punctuation(period: str, factor: int) -> None:
    assert period_factor(period) == factor


def test_annualize_unknown_period_passes_amount_through() -> None:
    assert annualize_salary(5000.0, "per quarter-ish") == 5000.0
    assert annualize_salary(5000.0, None) == 5000.0
