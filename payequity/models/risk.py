"""ORM models for risk runs and their per-comparator-group results."""
from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payequity.core.errors import InvalidTransitionError

from .base import ID_TYPE, Base, new_id, utcnow

SYSTEM_TRIGGER = "SYSTEM"


class RiskRunStatus(str, Enum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class RiskState(str, Enum):
    """Risk classification of a comparator group's pay gap."""

    WITHIN_EXPECTED_RANGE = "WITHIN_EXPECTED_RANGE"
    REQUIRES_REVIEW = "REQUIRES_REVIEW"
    THRESHOLD_ALERT = "THRESHOLD_ALERT"


class RiskRun(Base):
    """One execution of the risk computation for an organization."""

    __tablename__ = "risk_run"

    id: Mapped[str] = mapped_column(ID_TYPE, primary_key=True, default=new_id)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    triggered_by: Mapped[str] = mapped_column(String(64), nullable=False)
    import_job_id: Mapped[str | None] = mapped_column(ForeignKey("import_job.id"))
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=RiskRunStatus.RUNNING.value
    )
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    groups: Mapped[list["RiskGroupResult"]] = relationship(back_populates="run")

    @property
    def is_finished(self) -> bool:
        return self.status != RiskRunStatus.RUNNING.value

    def finish(self, status: RiskRunStatus) -> None:
        """Record the single terminal transition of the run."""

        if self.is_finished or status is RiskRunStatus.RUNNING:
            raise InvalidTransitionError("RiskRun", self.status, status.value)
        self.status = status.value
        self.finished_at = utcnow()


class RiskGroupResult(Base):
    """Computed gap metrics for one comparator group within a run."""

    __tablename__ = "risk_group_result"

    id: Mapped[str] = mapped_column(ID_TYPE, primary_key=True, default=new_id)
    risk_run_id: Mapped[str] = mapped_column(ForeignKey("risk_run.id"), nullable=False, index=True)
    group_key: Mapped[str] = mapped_column(String(512), nullable=False)
    country: Mapped[str] = mapped_column(String(64), nullable=False)
    job_family: Mapped[str | None] = mapped_column(String(255))
    level: Mapped[str] = mapped_column(String(64), nullable=False)
    role_title_fallback: Mapped[str | None] = mapped_column(String(255))
    women_count: Mapped[int] = mapped_column(Integer, nullable=False)
    men_count: Mapped[int] = mapped_column(Integer, nullable=False)
    gap_pct: Mapped[float] = mapped_column(Float, nullable=False)
    risk_state: Mapped[str] = mapped_column(String(32), nullable=False)
    notes: Mapped[str | None] = mapped_column(String(64))
    computed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    run: Mapped[RiskRun] = relationship(back_populates="groups")
