"""Access to risk runs and group results, and storage of narrative reports."""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from payequity.core.errors import NotFoundError
from payequity.models import NarrativeReport, RiskGroupResult, RiskRun, RiskRunStatus

from .narrative import NarrativeResult


class RiskResultsService:
    """Organization-scoped queries over persisted risk output."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_run(self, organization_id: str, run_id: str) -> RiskRun:
        run = self.session.get(RiskRun, run_id)
        if run is None or run.organization_id != organization_id:
            raise NotFoundError(f"Risk run {run_id} not found")
        return run

    def get_run_with_groups(
        self, organization_id: str, run_id: str
    ) -> tuple[RiskRun, list[RiskGroupResult]]:
        """Return the run and, once it has completed, its group results."""

        run = self.get_run(organization_id, run_id)
        if run.status != RiskRunStatus.COMPLETED.value:
            return run, []
        return run, self._groups_for(run.id)

    def latest_completed_run(self, organization_id: str) -> RiskRun | None:
        return self.session.scalars(
            select(RiskRun)
            .where(
                RiskRun.organization_id == organization_id,
                RiskRun.status == RiskRunStatus.COMPLETED.value,
            )
            .order_by(RiskRun.finished_at.desc(), RiskRun.started_at.desc())
            .limit(1)
        ).first()

    def save_report(self, organization_id: str, run_id: str, narrative: NarrativeResult) -> NarrativeReport:
        report = NarrativeReport(
            organization_id=organization_id,
            risk_run_id=run_id,
            summary=narrative.summary,
            model=narrative.model,
            generated_at=narrative.generated_at,
        )
        self.session.add(report)
        self.session.commit()
        self.session.refresh(report)
        return report

    def list_groups(
        self,
        organization_id: str,
        *,
        run_id: str | None = None,
        risk_state: str | None = None,
        country: str | None = None,
        job_family: str | None = None,
        level: str | None = None,
    ) -> tuple[RiskRun | None, list[RiskGroupResult]]:
        """Filter the groups of ``run_id`` or, by default, the latest completed run."""

        run = self.get_run(organization_id, run_id) if run_id else self.latest_completed_run(organization_id)
        if run is None:
            return None, []

        stmt = select(RiskGroupResult).where(RiskGroupResult.risk_run_id == run.id)
        if risk_state:
            stmt = stmt.where(RiskGroupResult.risk_state == risk_state)
        if country:
            stmt = stmt.where(RiskGroupResult.country == country)
        if job_family:
            stmt = stmt.where(RiskGroupResult.job_family == job_family)
        if level:
            stmt = stmt.where(RiskGroupResult.level == level)
        return run, list(self.session.scalars(stmt.order_by(RiskGroupResult.group_key)))

    def get_group(self, organization_id: str, group_key: str) -> RiskGroupResult:
        run = self.latest_completed_run(organization_id)
        group = None
        if run is not None:
            group = self.session.scalars(
                select(RiskGroupResult).where(
                    RiskGroupResult.risk_run_id == run.id,
                    RiskGroupResult.group_key == group_key,
                )
            ).first()
        if group is None:
            raise NotFoundError(f"Comparator group {group_key} not found")
        return group

    def latest_report(self, organization_id: str) -> NarrativeReport | None:
        return self.session.scalars(
            select(NarrativeReport)
            .where(NarrativeReport.organization_id == organization_id)
            .order_by(NarrativeReport.generated_at.desc())
            .limit(1)
        ).first()

    def _groups_for(self, run_id: str) -> list[RiskGroupResult]:
        return list(
            self.session.scalars(
                select(RiskGroupResult)
                .where(RiskGroupResult.risk_run_id == run_id)
                .order_by(RiskGroupResult.group_key)
            )
        )
