"""Resolve source columns to canonical employee fields.

Two strategies are available and never blended: a deterministic synonym
heuristic, and an assisted mapping produced by the text-generation
collaborator. The assisted path is bounded by a timeout and any failure on it
falls back to the heuristic result as a whole.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterable, Mapping, Sequence

from payequity.core.errors import MappingValidationError
from payequity.core.log import get_logger
from payequity.llm import LLMError, LLMResponseError, TextGenerationClient

LOGGER = get_logger(__name__)

CANONICAL_FIELDS: tuple[str, ...] = (
    "employeeId",
    "roleTitle",
    "jobFamily",
    "level",
    "country",
    "location",
    "currency",
    "baseSalary",
    "salaryPeriod",
    "bonusTarget",
    "ltiTarget",
    "hireDate",
    "employmentType",
    "gender",
    "performanceRating",
)

REQUIRED_FIELDS: frozenset[str] = frozenset(
    {"employeeId", "roleTitle", "level", "country", "currency", "baseSalary"}
)

FIELD_SYNONYMS: dict[str, tuple[str, ...]] = {
    "employeeId": (
        "employee_id", "emp_id", "emp id", "id", "staff_id", "staff id", "employee number",
        "employee no", "emp no", "personnel number", "worker id", "badge",
    ),
    "roleTitle": ("role_title", "role", "title", "job_title", "job title", "position", "job name"),
    "jobFamily": (
        "job_family", "job family", "family", "function", "job function", "department", "dept",
    ),
    "level": ("level", "lvl", "grade", "band", "job_level", "job level", "career level"),
    "country": ("country", "ctry", "cntry", "country_code", "country code", "nation"),
    "location": ("location", "city", "office", "site", "work location"),
    "currency": ("currency", "ccy", "cur", "currency_code", "currency code"),
    "baseSalary": (
        "base_salary", "base salary", "base", "salary", "annual_salary", "annual salary",
        "base_pay", "base pay", "basic salary", "gross salary",
    ),
    "salaryPeriod": (
        "salary_period", "salary period", "pay period", "period", "pay frequency", "frequency",
        "pay basis",
    ),
    "bonusTarget": ("bonus_target", "bonus target", "bonus", "target_bonus", "target bonus", "bonus pct"),
    "ltiTarget": ("lti_target", "lti target", "lti", "long_term_incentive", "long term incentive", "equity"),
    "hireDate": (
        "hire_date", "hire date", "start_date", "start date", "date_of_hire", "date of hire",
        "join date", "date joined",
    ),
    "employmentType": (
        "employment_type", "employment type", "emp_type", "contract_type", "contract type",
        "employment status",
    ),
    "gender": ("gender", "sex"),
    "performanceRating": (
        "performance_rating", "performance rating", "rating", "perf_rating", "performance",
        "perf", "performance score",
    ),
}

FIELD_DESCRIPTIONS: dict[str, str] = {
    "employeeId": 'Unique employee identifier (e.g. EMP001, staff number)',
    "roleTitle": 'Job title or role name (e.g. "Software Engineer", "HR Manager")',
    "jobFamily": 'Job family, function or department grouping (e.g. "Engineering")',
    "level": 'Job level, grade or band (e.g. "L3", "Senior", "Band 5")',
    "country": 'Country as ISO code or full name (e.g. "IE", "Ireland")',
    "location": 'City, office or site (e.g. "Dublin", "London HQ")',
    "currency": 'Currency code (e.g. "EUR", "USD", "GBP")',
    "baseSalary": "Base salary amount (numeric)",
    "salaryPeriod": 'Pay period of the salary amount (e.g. "monthly", "annual")',
    "bonusTarget": "Target bonus amount or percentage (numeric)",
    "ltiTarget": "Long-term incentive or equity target (numeric)",
    "hireDate": "Date of hire or start date",
    "employmentType": 'Employment type (e.g. "Full-time", "Contractor")',
    "gender": 'Gender (e.g. "Male", "Female", "Non-binary")',
    "performanceRating": 'Performance rating or score (e.g. "Exceeds", "3.5")',
}

HEURISTIC_CONFIDENCE = 0.7
MIN_PARTIAL_LENGTH = 3

_LABEL_NOISE = re.compile(r"[^a-z0-9]")
_CODE_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


class MappingSource(str, Enum):
    """Which strategy produced a mapping."""

    AI = "ai"
    DETERMINISTIC = "deterministic"


class MatchTier(IntEnum):
    """How closely a column name resembles a canonical field."""

    NONE = 0
    SYNONYM_PARTIAL = 1
    FIELD_PARTIAL = 2
    SYNONYM_EXACT = 3
    FIELD_EXACT = 4


TIER_CONFIDENCE: dict[MatchTier, float] = {
    MatchTier.FIELD_EXACT: 0.98,
    MatchTier.SYNONYM_EXACT: 0.95,
    MatchTier.FIELD_PARTIAL: 0.85,
    MatchTier.SYNONYM_PARTIAL: 0.75,
    MatchTier.NONE: 0.6,
}


@dataclass(frozen=True)
class MappingResult:
    """A complete mapping tagged with the strategy that produced it."""

    source: MappingSource
    mapping: dict[str, str | None]
    confidence: dict[str, float]


def normalize_label(value: str) -> str:
    return _LABEL_NOISE.sub("", value.lower())


_NORMALIZED_SYNONYMS: dict[str, frozenset[str]] = {
    field: frozenset(normalize_label(s) for s in synonyms)
    for field, synonyms in FIELD_SYNONYMS.items()
}


def _partial(left: str, right: str) -> bool:
    if len(left) < MIN_PARTIAL_LENGTH or len(right) < MIN_PARTIAL_LENGTH:
        return False
    return left in right or right in left


def match_tier(field: str, column: str) -> MatchTier:
    """Score ``column`` against ``field`` ignoring case, punctuation and whitespace."""

    label = normalize_label(column)
    if not label:
        return MatchTier.NONE
    field_label = normalize_label(field)
    synonyms = _NORMALIZED_SYNONYMS.get(field, frozenset())
    if label == field_label:
        return MatchTier.FIELD_EXACT
    if label in synonyms:
        return MatchTier.SYNONYM_EXACT
    if _partial(label, field_label):
        return MatchTier.FIELD_PARTIAL
    if any(_partial(label, synonym) for synonym in synonyms):
        return MatchTier.SYNONYM_PARTIAL
    return MatchTier.NONE


def _exact_owners(columns: Sequence[str]) -> dict[str, set[str]]:
    owners: dict[str, set[str]] = {}
    for column in columns:
        for field in CANONICAL_FIELDS:
            if match_tier(field, column) >= MatchTier.SYNONYM_EXACT:
                owners.setdefault(column, set()).add(field)
    return owners


def suggest_mapping(columns: Sequence[str]) -> dict[str, str | None]:
    """Pick the best-scoring column per field; earlier columns win ties."""

    owners = _exact_owners(columns)
    mapping: dict[str, str | None] = {}
    for field in CANONICAL_FIELDS:
        best_column: str | None = None
        best_tier = MatchTier.NONE
        for column in columns:
            tier = match_tier(field, column)
            if tier < MatchTier.SYNONYM_EXACT and owners.get(column, set()) - {field}:
                # The column is an exact hit for another field; partial matches yield.
                continue
            if tier > best_tier:
                best_column, best_tier = column, tier
        mapping[field] = best_column
    return mapping


def deterministic_mapping(columns: Sequence[str]) -> MappingResult:
    mapping = suggest_mapping(columns)
    confidence = {
        field: HEURISTIC_CONFIDENCE if column else 0.0 for field, column in mapping.items()
    }
    return MappingResult(source=MappingSource.DETERMINISTIC, mapping=mapping, confidence=confidence)


def compute_confidence(
    mapping: Mapping[str, str | None], columns: Sequence[str]
) -> dict[str, float]:
    """Confidence from column-name similarity; never taken from the model."""

    confidence: dict[str, float] = {}
    for field in CANONICAL_FIELDS:
        column = mapping.get(field)
        if not column or column not in columns:
            confidence[field] = 0.0
            continue
        confidence[field] = TIER_CONFIDENCE[match_tier(field, column)]
    return confidence


def extract_json_object(text: str) -> dict:
    """Pull the first balanced ``{...}`` out of ``text``, ignoring code fences and prose."""

    body = text.strip()
    fenced = _CODE_FENCE.search(body)
    if fenced:
        body = fenced.group(1).strip()

    start = body.find("{")
    if start < 0:
        raise ValueError("response contains no JSON object")

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(body)):
        char = body[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                parsed = json.loads(body[start : index + 1])
                if not isinstance(parsed, dict):
                    raise ValueError("response JSON is not an object")
                return parsed
    raise ValueError("response JSON object is not balanced")


def parse_assisted_mapping(text: str, columns: Sequence[str]) -> dict[str, str | None]:
    """Parse a model response into a mapping restricted to real columns."""

    payload = extract_json_object(text)
    raw_mapping = payload.get("mapping")
    if not isinstance(raw_mapping, dict):
        raise LLMResponseError("response JSON has no 'mapping' object")

    known = set(columns)
    mapping: dict[str, str | None] = {}
    for field in CANONICAL_FIELDS:
        column = raw_mapping.get(field)
        if column is not None and (not isinstance(column, str) or column not in known):
            LOGGER.info("Dropping assisted mapping %s -> %r (not a source column)", field, column)
            column = None
        mapping[field] = column
    return mapping


def build_mapping_prompt(columns: Sequence[str], sample_rows: Iterable[Mapping[str, str]]) -> str:
    sample = next(iter(sample_rows), None) or {}
    sample_lines = "\n".join(f'  "{key}": "{value}"' for key, value in sample.items())
    field_lines = "\n".join(f"- {field}: {FIELD_DESCRIPTIONS[field]}" for field in CANONICAL_FIELDS)
    template = ",\n".join(f'    "{field}": "<column name or null>"' for field in CANONICAL_FIELDS)

    return f"""You map spreadsheet columns to standard employee compensation fields.

Standard fields:
{field_lines}

Columns: {json.dumps(list(columns))}

Sample row:
{sample_lines or "  (no data)"}

Reply with a single JSON object in exactly this shape and nothing else:
{{
  "mapping": {{
{template}
  }}
}}

Rules:
- Use the EXACT column name from the list above, or null when nothing fits.
- Never invent column names.
- Map each column to at most one field."""


class MappingResolver:
    """Produce a field-to-column mapping, assisted when the collaborator answers in time."""

    SYSTEM_PROMPT = "You are a data mapping assistant. Respond with JSON only."

    def __init__(
        self,
        client: TextGenerationClient | None,
        *,
        timeout_seconds: float = 60.0,
    ) -> None:
        self._client = client
        self._timeout_seconds = timeout_seconds

    async def resolve(
        self,
        columns: Sequence[str],
        sample_rows: Sequence[Mapping[str, str]],
        *,
        timeout_seconds: float | None = None,
    ) -> MappingResult:
        if self._client is None:
            return deterministic_mapping(columns)

        timeout = timeout_seconds if timeout_seconds is not None else self._timeout_seconds
        request = self._client.build_request(
            build_mapping_prompt(columns, sample_rows),
            timeout_seconds=timeout,
            system_prompt=self.SYSTEM_PROMPT,
            json_mode=True,
        )
        try:
            response = await self._client.generate(request)
            mapping = parse_assisted_mapping(response.content, columns)
        except (LLMError, ValueError) as exc:
            LOGGER.warning("Assisted mapping unavailable, using deterministic mapping: %s", exc)
            return deterministic_mapping(columns)

        return MappingResult(
            source=MappingSource.AI,
            mapping=mapping,
            confidence=compute_confidence(mapping, columns),
        )


def validate_mapping(mapping: Mapping[str, object], columns: Sequence[str]) -> dict[str, str]:
    """Check a caller-submitted mapping and drop unmapped fields.

    Raises:
        MappingValidationError: unknown field names or columns absent from the file.
    """

    known_columns = set(columns)
    cleaned: dict[str, str] = {}
    problems: list[str] = []
    for field, column in mapping.items():
        if field not in FIELD_SYNONYMS:
            problems.append(f"unknown field '{field}'")
            continue
        if column is None or column == "":
            continue
        if not isinstance(column, str) or column not in known_columns:
            problems.append(f"column {column!r} for '{field}' is not in the file")
            continue
        cleaned[field] = column
    if problems:
        raise MappingValidationError("; ".join(problems))
    return cleaned
