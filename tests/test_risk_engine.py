"""Tests for comparator grouping, gap classification and risk run lifecycle."""
from __future__ import annotations

import pytest
from sqlalchemy import func, select

from payequity.core.config import RiskSettings
from payequity.db import session_scope
from payequity.models import Employee, RiskGroupResult, RiskRun, RiskRunStatus, RiskState
from payequity.services.risk_engine import (
    EmployeePayRecord,
    Gender,
    RiskEngine,
    classify_gap,
    classify_gender,
    compute_group_results,
    median,
    round_one_decimal,
)

ORG = "org-1"


def _records(women: list[float], men: list[float], **dims) -> list[EmployeePayRecord]:
    base = {"country": "IE", "level": "Senior", "role_title": "Engineer", "job_family": "Engineering"}
    base.update(dims)
    return [EmployeePayRecord(base_salary=s, gender="F", **base) for s in women] + [
        EmployeePayRecord(base_salary=s, gender="M", **base) for s in men
    ]


def test_median_group_requires_review() -> None:
    records = _records([88000, 87000, 85000], [95000, 92000, 89000, 91000])

    (group,) = compute_group_results(records)

    assert group.group.key == "IE:Engineering:Senior"
    assert (len(group.women), len(group.men)) == (3, 4)
    assert median(group.women) == 87000
    assert median(group.men) == 91500
    assert group.gap_pct == pytest.approx(4.9)
    assert group.risk_state is RiskState.REQUIRES_REVIEW
    assert group.notes is None


def test_small_groups_use_means_and_are_flagged() -> None:
    (group,) = compute_group_results(_records([80000, 90000], [100000] * 5))

    assert group.notes == "low sample size"
    assert group.gap_pct == pytest.approx(15.0)
    assert group.risk_state is RiskState.THRESHOLD_ALERT


def test_single_gender_group_is_insufficient_data() -> None:
    (group,) = compute_group_results(_records([], [100000, 120000, 90000]))

    assert group.notes == "insufficient data"
    assert group.gap_pct == 0
    assert group.risk_state is RiskState.WITHIN_EXPECTED_RANGE


def test_unknown_gender_is_excluded_everywhere() -> None:
    records = _records([50000], [50000]) + [
        EmployeePayRecord(base_salary=1.0, gender="non-binary", country="IE", level="Senior", role_title="Engineer", job_family="Engineering"),
        EmployeePayRecord(base_salary=1.0, gender=None, country="FR", level="L1", role_title="Ops"),
    ]

    groups = compute_group_results(records)

    assert len(groups) == 1
    assert (len(groups[0].women), len(groups[0].men)) == (1, 1)


def test_missing_job_family_falls_back_to_role_title() -> None:
    (group,) = compute_group_results(_records([50000], [52000], job_family=None))

    assert group.group.key == "IE:Senior:Engineer"
    assert group.group.role_title_fallback == "Engineer"
    assert group.group.job_family is None


def test_women_paid_more_gives_negative_gap() -> None:
    (group,) = compute_group_results(_records([110000] * 3, [100000] * 3))

    assert group.gap_pct == pytest.approx(-10.0)
    assert group.risk_state is RiskState.THRESHOLD_ALERT


@pytest.mark.parametrize(
    ("gap", "state"),
    [(3.99, RiskState.WITHIN_EXPECTED_RANGE), (4.0, RiskState.REQUIRES_REVIEW), (-4.5, RiskState.REQUIRES_REVIEW), (5.0, RiskState.THRESHOLD_ALERT)],
)
def test_classify_gap_thresholds(gap: float, state: RiskState) -> None:
    assert classify_gap(gap) is state


def test_classification_uses_unrounded_gap() -> None:
    # 3.96% rounds to 4.0 for display but stays within range.
    (group,) = compute_group_results(_records([96040] * 3, [100000] * 3))

    assert group.gap_pct == pytest.approx(4.0)
    assert group.risk_state is RiskState.WITHIN_EXPECTED_RANGE


@pytest.mark.parametrize(
    ("label", "gender"),
    [("Female", Gender.FEMALE), (" w ", Gender.FEMALE), ("MAN", Gender.MALE), ("x", Gender.UNKNOWN), (None, Gender.UNKNOWN)],
)
def test_classify_gender(label, gender: Gender) -> None:
    assert classify_gender(label) is gender


def test_round_one_decimal_rounds_half_up() -> None:
    assert round_one_decimal(4.25) == 4.3
    assert round_one_decimal(-4.25) == -4.2


def _seed(session_factory, women: list[float], men: list[float]) -> None:
    with session_scope(session_factory) as session:
        for index, (gender, salary) in enumerate([("F", s) for s in women] + [("M", s) for s in men]):
            session.add(
                Employee(
                    organization_id=ORG,
                    employee_id=f"E{index}",
                    role_title="Engineer",
                    job_family="Engineering",
                    level="Senior",
                    country="IE",
                    currency="EUR",
                    base_salary=salary,
                    gender=gender,
                )
            )


def test_run_synchronously_completes_and_persists_groups(session_factory, risk_engine) -> None:
    _seed(session_factory, [88000, 87000, 85000], [95000, 92000, 89000, 91000])

    run_id = risk_engine.run_synchronously(ORG, "user-1")

    assert risk_engine.get_status(run_id) is RiskRunStatus.COMPLETED
    session = session_factory()
    try:
        run = session.get(RiskRun, run_id)
        assert run.finished_at is not None
        (group,) = session.scalars(select(RiskGroupResult).where(RiskGroupResult.risk_run_id == run_id))
        assert group.gap_pct == pytest.approx(4.9)
        assert group.risk_state == RiskState.REQUIRES_REVIEW.value
    finally:
        session.close()


def test_start_run_returns_before_computation(session_factory, runner, audit) -> None:
    engine = RiskEngine(session_factory, runner, audit)

    run_id = engine.start_run(ORG, "user-1")

    session = session_factory()
    try:
        assert session.get(RiskRun, run_id) is not None
    finally:
        session.close()
    assert runner.drain(timeout=10)
    assert engine.get_status(run_id) is RiskRunStatus.COMPLETED


class ExplodingRiskEngine(RiskEngine):
    def _complete_run(self, session, run_id):
        raise RuntimeError("disk full")


def test_failed_computation_marks_run_failed_without_groups(session_factory, runner, audit) -> None:
    _seed(session_factory, [50000] * 3, [52000] * 3)
    engine = ExplodingRiskEngine(session_factory, runner, audit)
    with session_scope(session_factory) as session:
        run = RiskRun(organization_id=ORG, triggered_by="user-1")
        session.add(run)
        session.flush()
        run_id = run.id

    with pytest.raises(RuntimeError, match="disk full"):
        engine.execute_run(run_id)

    session = session_factory()
    try:
        run = session.get(RiskRun, run_id)
        assert run.status == RiskRunStatus.FAILED.value
        assert run.finished_at is not None
        count = session.scalar(
            select(func.count()).select_from(RiskGroupResult).where(RiskGroupResult.risk_run_id == run_id)
        )
        assert count == 0
    finally:
        session.close()


def test_run_synchronously_can_return_while_still_running(session_factory, audit) -> None:
    class IdleRunner:
        def submit(self, label, fn, *args, **kwargs):
            return None

    engine = RiskEngine(session_factory, IdleRunner(), audit, RiskSettings(poll_interval_seconds=0.01, poll_attempts=3))

    run_id = engine.run_synchronously(ORG, "user-1")

    assert engine.get_status(run_id) is RiskRunStatus.RUNNING
