"""Tests for deterministic and assisted column mapping."""
from __future__ import annotations

import asyncio
import json

import pytest

from conftest import ScriptedProvider, scripted_client
from payequity.core.errors import MappingValidationError
from payequity.llm import LLMRequestError
from payequity.services.mapping import (
    CANONICAL_FIELDS,
    MappingResolver,
    MappingSource,
    compute_confidence,
    extract_json_object,
    suggest_mapping,
    validate_mapping,
)

ABBREVIATED = ["Emp ID", "Title", "Lvl", "Ctry", "Ccy", "Base"]
SAMPLE = [{"Emp ID": "E1", "Title": "Engineer", "Lvl": "L3", "Ctry": "IE", "Ccy": "EUR", "Base": "70000"}]

EXPECTED = {
    "employeeId": "Emp ID",
    "roleTitle": "Title",
    "level": "Lvl",
    "country": "Ctry",
    "currency": "Ccy",
    "baseSalary": "Base",
}


def _resolve(provider: ScriptedProvider | None, columns=ABBREVIATED, timeout: float = 5.0):
    client = scripted_client(provider) if provider is not None else None
    resolver = MappingResolver(client, timeout_seconds=timeout)
    return asyncio.run(resolver.resolve(columns, SAMPLE))


def _assisted_reply(mapping: dict) -> str:
    return json.dumps({"mapping": mapping})


def test_failed_assist_falls_back_to_heuristic_for_abbreviations() -> None:
    result = _resolve(ScriptedProvider(error=LLMRequestError("boom")))

    assert result.source is MappingSource.DETERMINISTIC
    for field, column in EXPECTED.items():
        assert result.mapping[field] == column
        assert result.confidence[field] == 0.7


def test_without_client_the_heuristic_is_used() -> None:
    result = _resolve(None)

    assert result.source is MappingSource.DETERMINISTIC
    assert {f: result.mapping[f] for f in EXPECTED} == EXPECTED


def test_heuristic_only_maps_real_columns() -> None:
    columns = ["Employee Number", "Job Title", "Department", "Grade", "Country", "Gross Salary", "Sex"]
    mapping = suggest_mapping(columns)

    assert set(mapping) == set(CANONICAL_FIELDS)
    assert all(column in columns for column in mapping.values() if column is not None)
    assert mapping["jobFamily"] == "Department"
    assert mapping["gender"] == "Sex"


def test_unmatched_fields_get_zero_confidence() -> None:
    result = _resolve(None)

    assert result.confidence["gender"] == 0.0
    assert result.mapping["gender"] is None


def test_assisted_mapping_nulls_fabricated_columns() -> None:
    reply = _assisted_reply({**EXPECTED, "gender": "Sex", "jobFamily": "Department"})
    result = _resolve(ScriptedProvider(reply))

    assert result.source is MappingSource.AI
    assert result.mapping["gender"] is None
    assert result.mapping["jobFamily"] is None
    assert result.mapping["employeeId"] == "Emp ID"
    assert result.confidence["gender"] == 0.0


def test_assisted_mapping_accepts_fenced_json() -> None:
    reply = "Here you go:\n```json\n" + _assisted_reply(EXPECTED) + "\n```"
    result = _resolve(ScriptedProvider(reply))

    assert result.source is MappingSource.AI
    assert result.mapping["baseSalary"] == "Base"


def test_timeout_falls_back_without_waiting_for_the_reply() -> None:
    provider = ScriptedProvider(_assisted_reply(EXPECTED), delay=2.0)
    result = _resolve(provider, timeout=0.05)

    assert result.source is MappingSource.DETERMINISTIC
    assert provider.requests[0].timeout_ms == 50


@pytest.mark.parametrize("reply", ["not json at all", "{broken", '{"fields": {}}', "[1, 2]"])
def test_unusable_replies_fall_back(reply: str) -> None:
    result = _resolve(ScriptedProvider(reply))

    assert result.source is MappingSource.DETERMINISTIC


def test_confidence_follows_name_similarity() -> None:
    columns = ["employee_id", "Base", "Country Name", "Job Title Text", "Column X"]
    mapping = {
        "employeeId": "employee_id",
        "baseSalary": "Base",
        "country": "Country Name",
        "roleTitle": "Job Title Text",
        "gender": "Column X",
    }

    confidence = compute_confidence(mapping, columns)

    assert confidence["employeeId"] == 0.98
    assert confidence["baseSalary"] == 0.95
    assert confidence["country"] == 0.85
    assert confidence["roleTitle"] == 0.75
    assert confidence["gender"] == 0.6
    assert confidence["level"] == 0.0


def test_extract_json_object_skips_prose_and_nested_braces() -> None:
    text = 'Sure! {"mapping": {"level": "Grade {x}"}} trailing words'

    assert extract_json_object(text) == {"mapping": {"level": "Grade {x}"}}


def test_validate_mapping_drops_empty_fields() -> None:
    cleaned = validate_mapping({"employeeId": "Emp ID", "gender": None, "location": ""}, ABBREVIATED)

    assert cleaned == {"employeeId": "Emp ID"}


@pytest.mark.parametrize(
    "mapping",
    [{"employeeId": "Missing Column"}, {"favouriteColour": "Title"}],
)
def test_validate_mapping_rejects_unknown_fields_and_columns(mapping: dict) -> None:
    with pytest.raises(MappingValidationError):
        validate_mapping(mapping, ABBREVIATED)
