"""Schemas for risk runs, comparator groups and narrative reports."""
from __future__ import annotations

from datetime import datetime

from .base import CamelModel


class RunStarted(CamelModel):
    run_id: str
    status: str


class RiskRunSchema(CamelModel):
    id: str
    status: str
    triggered_by: str
    import_job_id: str | None = None
    started_at: datetime
    finished_at: datetime | None = None


class RiskGroupSchema(CamelModel):
    """Gap metrics for one comparator group; a positive gap means men are paid more."""

    group_key: str
    country: str
    job_family: str | None = None
    level: str
    role_title_fallback: str | None = None
    women_count: int
    men_count: int
    gap_pct: float
    risk_state: str
    notes: str | None = None
    computed_at: datetime


class RunWithGroups(CamelModel):
    run: RiskRunSchema | None = None
    groups: list[RiskGroupSchema]


class NarrativeReportSchema(CamelModel):
    id: str
    risk_run_id: str
    summary: str
    model: str
    generated_at: datetime


class ReportEnvelope(CamelModel):
    report: NarrativeReportSchema | None = None
