"""Gender pay gap computation over comparator groups.

Employees are grouped by ``country:jobFamily:level``; when the job family is
missing the key falls back to ``country:level:roleTitle`` and the role title
is recorded on the result. Groups with at least three members of each gender
compare medians, smaller groups compare means and carry a "low sample size"
note.
"""
from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from payequity.core.config import RiskSettings
from payequity.core.errors import NotFoundError
from payequity.core.log import get_logger, log_context, timeit
from payequity.models import (
    Employee,
    RiskGroupResult,
    RiskRun,
    RiskRunStatus,
    RiskState,
)
from payequity.models.base import utcnow

from .audit import AuditAction, AuditTrail
from .background import BackgroundRunner

LOGGER = get_logger(__name__)

FEMALE_LABELS = frozenset({"female", "f", "woman", "w"})
MALE_LABELS = frozenset({"male", "m", "man"})

MEDIAN_MIN_COUNT = 3
ALERT_THRESHOLD_PCT = 5.0
REVIEW_THRESHOLD_PCT = 4.0

NOTE_INSUFFICIENT_DATA = "insufficient data"
NOTE_LOW_SAMPLE = "low sample size"


class Gender(str, Enum):
    FEMALE = "female"
    MALE = "male"
    UNKNOWN = "unknown"


def classify_gender(value: str | None) -> Gender:
    if not value:
        return Gender.UNKNOWN
    label = value.strip().lower()
    if label in FEMALE_LABELS:
        return Gender.FEMALE
    if label in MALE_LABELS:
        return Gender.MALE
    return Gender.UNKNOWN


def median(values: Sequence[float]) -> float:
    ordered = sorted(values)
    middle = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[middle]
    return (ordered[middle - 1] + ordered[middle]) / 2


def mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def round_one_decimal(value: float) -> float:
    """Round half up to one decimal place."""

    return math.floor(value * 10 + 0.5) / 10


@dataclass(frozen=True)
class EmployeePayRecord:
    base_salary: float
    gender: str | None
    country: str
    level: str
    role_title: str
    job_family: str | None = None


@dataclass(frozen=True)
class GroupKey:
    key: str
    country: str
    level: str
    job_family: str | None
    role_title_fallback: str | None


def comparator_key(record: EmployeePayRecord) -> GroupKey:
    if record.job_family:
        return GroupKey(
            key=f"{record.country}:{record.job_family}:{record.level}",
            country=record.country,
            level=record.level,
            job_family=record.job_family,
            role_title_fallback=None,
        )
    return GroupKey(
        key=f"{record.country}:{record.level}:{record.role_title}",
        country=record.country,
        level=record.level,
        job_family=None,
        role_title_fallback=record.role_title,
    )


@dataclass
class GroupOutcome:
    group: GroupKey
    women: list[float] = field(default_factory=list)
    men: list[float] = field(default_factory=list)
    gap_pct: float = 0.0
    risk_state: RiskState = RiskState.WITHIN_EXPECTED_RANGE
    notes: str | None = None

    def to_model(self, run_id: str, computed_at: datetime) -> RiskGroupResult:
        return RiskGroupResult(
            risk_run_id=run_id,
            group_key=self.group.key,
            country=self.group.country,
            job_family=self.group.job_family,
            level=self.group.level,
            role_title_fallback=self.group.role_title_fallback,
            women_count=len(self.women),
            men_count=len(self.men),
            gap_pct=self.gap_pct,
            risk_state=self.risk_state.value,
            notes=self.notes,
            computed_at=computed_at,
        )


def classify_gap(gap_pct: float) -> RiskState:
    magnitude = abs(gap_pct)
    if magnitude >= ALERT_THRESHOLD_PCT:
        return RiskState.THRESHOLD_ALERT
    if magnitude >= REVIEW_THRESHOLD_PCT:
        return RiskState.REQUIRES_REVIEW
    return RiskState.WITHIN_EXPECTED_RANGE


def evaluate_group(outcome: GroupOutcome) -> GroupOutcome:
    # A group missing either gender is reported as within range with a note.
    if not outcome.women or not outcome.men:
        outcome.gap_pct = 0.0
        outcome.risk_state = RiskState.WITHIN_EXPECTED_RANGE
        outcome.notes = NOTE_INSUFFICIENT_DATA
        return outcome

    if len(outcome.women) >= MEDIAN_MIN_COUNT and len(outcome.men) >= MEDIAN_MIN_COUNT:
        female_metric, male_metric = median(outcome.women), median(outcome.men)
    else:
        female_metric, male_metric = mean(outcome.women), mean(outcome.men)
        outcome.notes = NOTE_LOW_SAMPLE

    gap = (male_metric - female_metric) / male_metric * 100 if male_metric else 0.0
    outcome.risk_state = classify_gap(gap)
    outcome.gap_pct = round_one_decimal(gap)
    return outcome


def compute_group_results(records: Iterable[EmployeePayRecord]) -> list[GroupOutcome]:
    """Group and evaluate pay records; employees of unknown gender are excluded."""

    groups: dict[str, GroupOutcome] = {}
    for record in records:
        gender = classify_gender(record.gender)
        if gender is Gender.UNKNOWN:
            continue
        key = comparator_key(record)
        outcome = groups.setdefault(key.key, GroupOutcome(group=key))
        if gender is Gender.FEMALE:
            outcome.women.append(record.base_salary)
        else:
            outcome.men.append(record.base_salary)
    return [evaluate_group(outcome) for outcome in groups.values()]


class RiskEngine:
    """Create risk runs and compute them on the background runner."""

    def __init__(
        self,
        session_factory: sessionmaker,
        runner: BackgroundRunner,
        audit: AuditTrail,
        settings: RiskSettings | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._runner = runner
        self._audit = audit
        self._settings = settings or RiskSettings()

    def start_run(
        self, organization_id: str, triggered_by: str, import_job_id: str | None = None
    ) -> str:
        """Persist a RUNNING run and schedule its computation. Returns immediately."""

        session = self._session_factory()
        try:
            run = RiskRun(
                organization_id=organization_id,
                triggered_by=triggered_by,
                import_job_id=import_job_id,
                status=RiskRunStatus.RUNNING.value,
            )
            session.add(run)
            session.commit()
            run_id = run.id
        finally:
            session.close()

        LOGGER.info("Risk run %s created for organization %s", run_id, organization_id)
        self._audit.record(
            organization_id=organization_id,
            action=AuditAction.RISK_RUN_TRIGGERED,
            entity_type="RiskRun",
            entity_id=run_id,
            user_id=triggered_by,
            details={"importJobId": import_job_id},
        )
        self._runner.submit(f"risk-run:{run_id}", self.execute_run, run_id)
        return run_id

    def run_synchronously(
        self, organization_id: str, triggered_by: str, import_job_id: str | None = None
    ) -> str:
        """Start a run and poll until it finishes or the attempts run out.

        The run may still be RUNNING when this returns.
        """

        run_id = self.start_run(organization_id, triggered_by, import_job_id)
        for _ in range(self._settings.poll_attempts):
            status = self.get_status(run_id)
            if status is not RiskRunStatus.RUNNING:
                return run_id
            time.sleep(self._settings.poll_interval_seconds)
        LOGGER.warning("Risk run %s still running after polling", run_id)
        return run_id

    def get_status(self, run_id: str) -> RiskRunStatus:
        session = self._session_factory()
        try:
            status = session.scalar(select(RiskRun.status).where(RiskRun.id == run_id))
        finally:
            session.close()
        if status is None:
            raise NotFoundError(f"Risk run {run_id} not found")
        return RiskRunStatus(status)

    def execute_run(self, run_id: str) -> None:
        session = self._session_factory()
        organization_id = None
        try:
            run = session.get(RiskRun, run_id)
            if run is None:
                raise NotFoundError(f"Risk run {run_id} not found")
            organization_id = run.organization_id
            with log_context.scoped(org_id=organization_id, run_id=run_id):
                with timeit(f"Risk run {run_id}", logger=LOGGER, unit="groups") as timer:
                    records = self._load_records(session, organization_id)
                    outcomes = compute_group_results(records)
                    timer.set_total(len(outcomes))
                    computed_at = utcnow()
                    session.add_all(outcome.to_model(run_id, computed_at) for outcome in outcomes)
                    session.flush()
                    self._complete_run(session, run_id)
                    session.commit()
        except Exception as exc:
            session.rollback()
            self._mark_failed(run_id)
            if organization_id is not None:
                self._audit.record(
                    organization_id=organization_id,
                    action=AuditAction.RISK_RUN_FAILED,
                    entity_type="RiskRun",
                    entity_id=run_id,
                    details={"error": str(exc)},
                )
            raise
        finally:
            session.close()

        self._audit.record(
            organization_id=organization_id,
            action=AuditAction.RISK_RUN_COMPLETED,
            entity_type="RiskRun",
            entity_id=run_id,
            details={"groupCount": len(outcomes)},
        )

    def _load_records(self, session: Session, organization_id: str) -> list[EmployeePayRecord]:
        rows = session.execute(
            select(
                Employee.base_salary,
                Employee.gender,
                Employee.country,
                Employee.level,
                Employee.role_title,
                Employee.job_family,
            ).where(Employee.organization_id == organization_id)
        )
        return [
            EmployeePayRecord(
                base_salary=row.base_salary,
                gender=row.gender,
                country=row.country,
                level=row.level,
                role_title=row.role_title,
                job_family=row.job_family,
            )
            for row in rows
        ]

    def _complete_run(self, session: Session, run_id: str) -> None:
        run = session.get(RiskRun, run_id)
        run.finish(RiskRunStatus.COMPLETED)

    def _mark_failed(self, run_id: str) -> None:
        session = self._session_factory()
        try:
            run = session.get(RiskRun, run_id)
            if run is not None and not run.is_finished:
                run.finish(RiskRunStatus.FAILED)
                session.commit()
        except Exception:
            session.rollback()
            LOGGER.exception("Could not record FAILED status for risk run %s", run_id)
        finally:
            session.close()
