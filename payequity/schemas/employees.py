"""Schemas for employee records and snapshots."""
from __future__ import annotations

from datetime import date, datetime

from .base import CamelModel


class EmployeeAttributes(CamelModel):
    role_title: str
    job_family: str | None = None
    level: str
    country: str
    location: str | None = None
    currency: str
    base_salary: float
    bonus_target: float | None = None
    lti_target: float | None = None
    hire_date: date | None = None
    employment_type: str | None = None
    gender: str | None = None
    performance_rating: str | None = None


class EmployeeSchema(EmployeeAttributes):
    id: str
    employee_id: str
    updated_at: datetime | None = None


class EmployeeList(CamelModel):
    items: list[EmployeeSchema]
    total: int
    page: int
    page_size: int


class SnapshotSchema(EmployeeAttributes):
    id: str
    employee_external_id: str
    import_job_id: str | None = None
    snapshot_at: datetime
