"""Tests for the narrative report builder."""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from conftest import ScriptedProvider, scripted_client
from payequity.llm import LLMTimeoutError
from payequity.models import RiskGroupResult
from payequity.services.narrative import (
    NarrativeReportBuilder,
    build_report_prompt,
    partition_groups,
    strip_code_fence,
)

REPORT = "## Executive Summary\nTwo comparator groups were analysed and one warrants review."


def _group(key: str, state: str, women: int, men: int, gap: float, notes: str | None = None) -> RiskGroupResult:
    country, family, level = key.split(":")
    return RiskGroupResult(
        risk_run_id="run-1",
        group_key=key,
        country=country,
        job_family=family,
        level=level,
        women_count=women,
        men_count=men,
        gap_pct=gap,
        risk_state=state,
        notes=notes,
        computed_at=datetime.now(timezone.utc),
    )


GROUPS = [
    _group("IE:Engineering:Senior", "REQUIRES_REVIEW", 3, 4, 4.9),
    _group("FR:Sales:L2", "WITHIN_EXPECTED_RANGE", 0, 3, 0.0, "insufficient data"),
    _group("DE:Ops:L1", "THRESHOLD_ALERT", 1, 2, 8.1, "low sample size"),
]


def _generate(provider: ScriptedProvider, groups=GROUPS, timeout: float = 5.0):
    builder = NarrativeReportBuilder(scripted_client(provider), timeout_seconds=timeout)
    return asyncio.run(builder.generate(groups, "Acme"))


def test_partitions_separate_states_and_notes() -> None:
    parts = partition_groups(GROUPS)

    assert [g.group_key for g in parts.reviews] == ["IE:Engineering:Senior"]
    assert [g.group_key for g in parts.alerts] == ["DE:Ops:L1"]
    assert [g.group_key for g in parts.insufficient] == ["FR:Sales:L2"]
    assert [g.group_key for g in parts.low_sample] == ["DE:Ops:L1"]
    assert len(parts.measurable) == 2
    assert parts.measurable_within == []


def test_prompt_mentions_blind_spots() -> None:
    prompt = build_report_prompt(GROUPS, "Acme")

    assert "Acme" in prompt
    assert "INSUFFICIENT DATA" in prompt
    assert "FR / Sales / L2" in prompt


def test_report_is_returned_with_fences_removed() -> None:
    provider = ScriptedProvider("```markdown\n" + REPORT + "\n```")

    result = _generate(provider)

    assert result.summary == REPORT
    assert result.model == "test-model"
    assert provider.requests[0].timeout_ms == 5000


def test_short_reply_means_no_report() -> None:
    assert _generate(ScriptedProvider("Too short.")) is None


def test_collaborator_failure_means_no_report() -> None:
    assert _generate(ScriptedProvider(error=LLMTimeoutError("slow"))) is None
    assert _generate(ScriptedProvider(REPORT, delay=2.0), timeout=0.05) is None


def test_empty_group_list_skips_the_request() -> None:
    provider = ScriptedProvider(REPORT)

    assert _generate(provider, groups=[]) is None
    assert provider.requests == []


def test_strip_code_fence_leaves_plain_text() -> None:
    assert strip_code_fence("  plain text  ") == "plain text"
