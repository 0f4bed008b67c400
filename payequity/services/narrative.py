"""Narrative summary of a completed risk run, written by the text-generation collaborator."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence

from payequity.core.log import get_logger
from payequity.llm import LLMError, TextGenerationClient
from payequity.models import RiskGroupResult, RiskState
from payequity.models.base import utcnow

from .risk_engine import NOTE_INSUFFICIENT_DATA, NOTE_LOW_SAMPLE

LOGGER = get_logger(__name__)

_FENCE = re.compile(r"```(?:markdown|md)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)

SYSTEM_PROMPT = (
    "You are a senior compensation analyst. Write clear, structured reports using markdown."
)


@dataclass
class GroupPartitions:
    alerts: list[RiskGroupResult] = field(default_factory=list)
    reviews: list[RiskGroupResult] = field(default_factory=list)
    within: list[RiskGroupResult] = field(default_factory=list)
    measurable_within: list[RiskGroupResult] = field(default_factory=list)
    insufficient: list[RiskGroupResult] = field(default_factory=list)
    low_sample: list[RiskGroupResult] = field(default_factory=list)
    measurable: list[RiskGroupResult] = field(default_factory=list)


def partition_groups(groups: Sequence[RiskGroupResult]) -> GroupPartitions:
    parts = GroupPartitions()
    for group in groups:
        if group.risk_state == RiskState.THRESHOLD_ALERT.value:
            parts.alerts.append(group)
        elif group.risk_state == RiskState.REQUIRES_REVIEW.value:
            parts.reviews.append(group)
        else:
            parts.within.append(group)

        if group.notes == NOTE_INSUFFICIENT_DATA:
            parts.insufficient.append(group)
            continue
        if group.notes == NOTE_LOW_SAMPLE:
            parts.low_sample.append(group)
        if group.women_count > 0 and group.men_count > 0:
            parts.measurable.append(group)
            if group.risk_state == RiskState.WITHIN_EXPECTED_RANGE.value:
                parts.measurable_within.append(group)
    return parts


def _format_group(group: RiskGroupResult) -> str:
    label = group.job_family or group.role_title_fallback or "Unknown"
    note = f" [{group.notes}]" if group.notes else ""
    return (
        f"  {group.country} / {label} / {group.level}: gap {group.gap_pct}%, "
        f"{group.women_count}W/{group.men_count}M{note}"
    )


def _section(title: str, groups: Sequence[RiskGroupResult]) -> str:
    if not groups:
        return ""
    lines = "\n".join(_format_group(group) for group in groups)
    return f"\n{title}:\n{lines}\n"


def build_report_prompt(groups: Sequence[RiskGroupResult], organization_name: str | None = None) -> str:
    parts = partition_groups(groups)
    data = "".join(
        (
            _section("THRESHOLD ALERTS (gap >= 5%, action needed)", parts.alerts),
            _section("REQUIRES REVIEW (gap 4-5%, monitor closely)", parts.reviews),
            _section("WITHIN RANGE (gap < 4%, both genders present)", parts.measurable_within),
            _section(
                "INSUFFICIENT DATA (only one gender present, gap cannot be computed)",
                parts.insufficient,
            ),
        )
    )
    organization = organization_name or "the organisation"
    if parts.alerts or parts.reviews:
        concerns = (
            "List each group at THRESHOLD_ALERT or REQUIRES_REVIEW with its gap % and gender "
            "counts. Explain why each warrants attention."
        )
    else:
        concerns = (
            "There are no alerts or reviews. State that clearly and note this may reflect "
            "limited data rather than true equity."
        )
    if parts.measurable:
        measurable = (
            f"Summarize the {len(parts.measurable)} groups where both genders are present. "
            "Note which have the smallest and largest gaps."
        )
    else:
        measurable = (
            "No group currently has both genders represented, so an organisation-wide pay gap "
            "analysis is not possible."
        )

    return f"""You are writing a pay equity risk report for {organization}.

CONTEXT:
- {len(groups)} comparator groups (country + job family + level)
- {len(parts.alerts)} threshold alerts (gap >= 5%)
- {len(parts.reviews)} requiring review (gap 4-5%)
- {len(parts.within)} within expected range (gap < 4%)
- {len(parts.insufficient)} groups with only one gender present (gap cannot be computed)
- {len(parts.low_sample)} groups with fewer than 3 per gender (mean instead of median)
- {len(parts.measurable)} groups with both genders represented

DATA:
{data}
Write the report with these sections:

## Executive Summary
2-3 sentences on the number of groups, actionable gaps and overall risk posture.

## Key Concerns
{concerns}

## Data Coverage Assessment
{len(parts.insufficient)} of {len(groups)} groups have a single gender. These are blind spots, not
positive findings. Name the countries and job families affected and recommend data collection.

## Measurable Groups
{measurable}

## Recommended Actions
3-5 specific next steps.

Rules:
- Never say "compliant", "non-compliant", "illegal" or "legal"; use "may warrant review".
- No legal advice.
- Do not present insufficient-data groups as positive findings.
- Keep under 600 words and use markdown ## headers."""


def strip_code_fence(text: str) -> str:
    text = text.strip()
    match = _FENCE.search(text)
    return match.group(1).strip() if match else text


@dataclass(frozen=True)
class NarrativeResult:
    summary: str
    model: str
    generated_at: datetime


class NarrativeReportBuilder:
    """Ask for a prose report; any failure yields ``None`` rather than an error."""

    def __init__(
        self,
        client: TextGenerationClient | None,
        *,
        timeout_seconds: float = 300.0,
        min_length: int = 50,
    ) -> None:
        self._client = client
        self._timeout_seconds = timeout_seconds
        self._min_length = min_length

    async def generate(
        self, groups: Sequence[RiskGroupResult], organization_name: str | None = None
    ) -> NarrativeResult | None:
        if not groups or self._client is None:
            return None

        request = self._client.build_request(
            build_report_prompt(groups, organization_name),
            timeout_seconds=self._timeout_seconds,
            system_prompt=SYSTEM_PROMPT,
            temperature=0.2,
        )
        try:
            response = await self._client.generate(request)
        except LLMError as exc:
            LOGGER.warning("Narrative report unavailable: %s", exc)
            return None

        summary = strip_code_fence(response.content or "")
        if len(summary) < self._min_length:
            LOGGER.warning("Narrative response too short (%d chars), discarding", len(summary))
            return None
        return NarrativeResult(summary=summary, model=response.model or request.model, generated_at=utcnow())
