"""ORM models for canonical employee records and their import-time snapshots."""
from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import ID_TYPE, Base, TimestampMixin, new_id, utcnow

# Attributes shared by ``Employee`` and ``EmployeeSnapshot``.
EMPLOYEE_ATTRIBUTES: tuple[str, ...] = (
    "role_title",
    "job_family",
    "level",
    "country",
    "location",
    "currency",
    "base_salary",
    "bonus_target",
    "lti_target",
    "hire_date",
    "employment_type",
    "gender",
    "performance_rating",
)


class Employee(TimestampMixin, Base):
    """Current compensation record for an employee; last import wins."""

    __tablename__ = "employee"
    __table_args__ = (
        UniqueConstraint("organization_id", "employee_id", name="uniq_org_employee"),
    )

    id: Mapped[str] = mapped_column(ID_TYPE, primary_key=True, default=new_id)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    employee_id: Mapped[str] = mapped_column(String(128), nullable=False)
    role_title: Mapped[str] = mapped_column(String(255), nullable=False)
    job_family: Mapped[str | None] = mapped_column(String(255))
    level: Mapped[str] = mapped_column(String(64), nullable=False)
    country: Mapped[str] = mapped_column(String(64), nullable=False)
    location: Mapped[str | None] = mapped_column(String(255))
    currency: Mapped[str] = mapped_column(String(8), nullable=False)
    base_salary: Mapped[float] = mapped_column(Float, nullable=False)
    bonus_target: Mapped[float | None] = mapped_column(Float)
    lti_target: Mapped[float | None] = mapped_column(Float)
    hire_date: Mapped[date | None] = mapped_column(Date)
    employment_type: Mapped[str | None] = mapped_column(String(64))
    gender: Mapped[str | None] = mapped_column(String(32))
    performance_rating: Mapped[str | None] = mapped_column(String(64))

    snapshots: Mapped[list["EmployeeSnapshot"]] = relationship(
        back_populates="employee", order_by="EmployeeSnapshot.snapshot_at"
    )


class EmployeeSnapshot(Base):
    """Immutable copy of an employee's attributes captured by an import."""

    __tablename__ = "employee_snapshot"

    id: Mapped[str] = mapped_column(ID_TYPE, primary_key=True, default=new_id)
    employee_pk: Mapped[str] = mapped_column(ForeignKey("employee.id"), nullable=False, index=True)
    import_job_id: Mapped[str | None] = mapped_column(ForeignKey("import_job.id"), index=True)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False)
    employee_external_id: Mapped[str] = mapped_column(String(128), nullable=False)
    role_title: Mapped[str] = mapped_column(String(255), nullable=False)
    job_family: Mapped[str | None] = mapped_column(String(255))
    level: Mapped[str] = mapped_column(String(64), nullable=False)
    country: Mapped[str] = mapped_column(String(64), nullable=False)
    location: Mapped[str | None] = mapped_column(String(255))
    currency: Mapped[str] = mapped_column(String(8), nullable=False)
    base_salary: Mapped[float] = mapped_column(Float, nullable=False)
    bonus_target: Mapped[float | None] = mapped_column(Float)
    lti_target: Mapped[float | None] = mapped_column(Float)
    hire_date: Mapped[date | None] = mapped_column(Date)
    employment_type: Mapped[str | None] = mapped_column(String(64))
    gender: Mapped[str | None] = mapped_column(String(32))
    performance_rating: Mapped[str | None] = mapped_column(String(64))
    snapshot_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    employee: Mapped[Employee] = relationship(back_populates="snapshots")

    @classmethod
    def capture(cls, employee: Employee, *, import_job_id: str | None) -> "EmployeeSnapshot":
        """Build a snapshot from the current state of ``employee``."""

        return cls(
            employee_pk=employee.id,
            import_job_id=import_job_id,
            organization_id=employee.organization_id,
            employee_external_id=employee.employee_id,
            **{name: getattr(employee, name) for name in EMPLOYEE_ATTRIBUTES},
        )
