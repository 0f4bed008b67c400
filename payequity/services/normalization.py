"""Value normalization for imported compensation data.

All helpers are total: unrecognized input is passed through (countries,
pay periods) or reported as ``None`` (amounts), never raised.
"""
from __future__ import annotations

import math
import re
from typing import Any

_COUNTRY_CODES: dict[str, tuple[str, ...]] = {
    "AT": ("austria", "aut", "österreich", "osterreich"),
    "AU": ("australia", "aus"),
    "BE": ("belgium", "bel", "belgique", "belgie"),
    "BG": ("bulgaria", "bgr"),
    "BR": ("brazil", "bra", "brasil"),
    "CA": ("canada", "can"),
    "CH": ("switzerland", "che", "schweiz", "suisse"),
    "CN": ("china", "chn"),
    "CY": ("cyprus", "cyp"),
    "CZ": ("czech republic", "czechia", "cze"),
    "DE": ("germany", "deu", "deutschland"),
    "DK": ("denmark", "dnk", "danmark"),
    "EE": ("estonia", "est"),
    "ES": ("spain", "esp", "españa", "espana"),
    "FI": ("finland", "fin", "suomi"),
    "FR": ("france", "fra"),
    "GB": ("united kingdom", "gbr", "uk", "great britain", "britain", "england", "scotland", "wales"),
    "GR": ("greece", "grc"),
    "HR": ("croatia", "hrv"),
    "HU": ("hungary", "hun"),
    "IE": ("ireland", "irl", "eire", "éire", "republic of ireland"),
    "IN": ("india", "ind"),
    "IT": ("italy", "ita", "italia"),
    "JP": ("japan", "jpn"),
    "LT": ("lithuania", "ltu"),
    "LU": ("luxembourg", "lux"),
    "LV": ("latvia", "lva"),
    "MT": ("malta", "mlt"),
    "MX": ("mexico", "mex"),
    "NL": ("netherlands", "nld", "the netherlands", "holland"),
    "NO": ("norway", "nor", "norge"),
    "NZ": ("new zealand", "nzl"),
    "PL": ("poland", "pol", "polska"),
    "PT": ("portugal", "prt"),
    "RO": ("romania", "rou"),
    "SE": ("sweden", "swe", "sverige"),
    "SG": ("singapore", "sgp"),
    "SI": ("slovenia", "svn"),
    "SK": ("slovakia", "svk"),
    "US": ("united states", "usa", "us", "united states of america", "america"),
}

COUNTRY_LOOKUP: dict[str, str] = {
    alias: code for code, aliases in _COUNTRY_CODES.items() for alias in (code.lower(), *aliases)
}

PERIOD_FACTORS: dict[str, int] = {
    "annual": 1,
    "annually": 1,
    "yearly": 1,
    "year": 1,
    "pa": 1,
    "semimonthly": 24,
    "monthly": 12,
    "month": 12,
    "biweekly": 26,
    "fortnightly": 26,
    "fortnight": 26,
    "weekly": 52,
    "week": 52,
    "daily": 260,
    "day": 260,
    "hourly": 2080,
    "hour": 2080,
}

_COUNTRY_NOISE = re.compile(r"[.\s]+")
_NON_NUMERIC = re.compile(r"[^0-9,.]")
_NON_LETTERS = re.compile(r"[^a-z]")


def normalize_country(raw: str) -> str:
    """Return the ISO alpha-2 code for ``raw``, or ``raw`` unchanged if unknown."""

    if not isinstance(raw, str):
        return raw
    key = _COUNTRY_NOISE.sub(" ", raw.strip().lower()).strip()
    code = COUNTRY_LOOKUP.get(key) or COUNTRY_LOOKUP.get(key.replace(" ", ""))
    return code if code is not None else raw


def _resolve_single_separator(text: str, separator: str) -> str:
    parts = text.split(separator)
    if len(parts) > 2:
        # Repeated separators can only be grouping: 1,000,000 or 1.000.000
        return "".join(parts)
    head, tail = parts
    if len(tail) == 3 and head and head != "0" and len(head) <= 3:
        return head + tail
    return f"{head or '0'}.{tail}"


def normalize_salary(raw: Any) -> float | None:
    """Parse a money amount tolerant of currency symbols and locale punctuation.

    ``"€1.234,50"``, ``"1,234.50"``, ``"1 234"``, ``"CHF 1'234"`` and
    ``"(1,000)"`` are all understood. Returns ``None`` on anything unparseable.
    """

    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
        return value if math.isfinite(value) else None

    text = str(raw).strip()
    if not text:
        return None
    negative = text.startswith("-") or (text.startswith("(") and text.endswith(")"))
    cleaned = _NON_NUMERIC.sub("", text)
    if not any(char.isdigit() for char in cleaned):
        return None

    comma, dot = cleaned.rfind(","), cleaned.rfind(".")
    if comma >= 0 and dot >= 0:
        decimal_sep, group_sep = (",", ".") if comma > dot else (".", ",")
        cleaned = cleaned.replace(group_sep, "")
        if cleaned.count(decimal_sep) != 1:
            return None
        cleaned = cleaned.replace(decimal_sep, ".")
    elif comma >= 0:
        cleaned = _resolve_single_separator(cleaned, ",")
    elif dot >= 0:
        cleaned = _resolve_single_separator(cleaned, ".")

    try:
        value = float(cleaned)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return -value if negative else value


def period_factor(period: str | None) -> int | None:
    """Multiplier that converts an amount paid per ``period`` into an annual amount."""

    if not period:
        return None
    key = _NON_LETTERS.sub("", str(period).lower())
    for prefix in ("per", "every", "each"):
        if key.startswith(prefix) and key[len(prefix):] in PERIOD_FACTORS:
            key = key[len(prefix):]
            break
    return PERIOD_FACTORS.get(key)


def annualize_salary(amount: float, period: str | None) -> float:
    """Scale ``amount`` to an annual figure; unknown periods pass through unchanged."""

    factor = period_factor(period)
    if factor is None:
        return amount
    return amount * factor
