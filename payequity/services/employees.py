"""Read access to canonical employee records and their snapshots."""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from payequity.core.errors import NotFoundError
from payequity.models import Employee, EmployeeSnapshot


@dataclass
class EmployeePage:
    items: list[Employee]
    total: int
    page: int
    page_size: int


class EmployeesService:
    """Organization-scoped employee queries."""

    MAX_PAGE_SIZE = 200

    def __init__(self, session: Session) -> None:
        self.session = session

    def list_employees(
        self,
        organization_id: str,
        *,
        country: str | None = None,
        job_family: str | None = None,
        level: str | None = None,
        query: str | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> EmployeePage:
        page = max(page, 1)
        page_size = min(max(page_size, 1), self.MAX_PAGE_SIZE)

        stmt = select(Employee).where(Employee.organization_id == organization_id)
        if country:
            stmt = stmt.where(Employee.country == country)
        if job_family:
            stmt = stmt.where(Employee.job_family == job_family)
        if level:
            stmt = stmt.where(Employee.level == level)
        if query:
            pattern = f"%{query}%"
            stmt = stmt.where(
                or_(Employee.employee_id.ilike(pattern), Employee.role_title.ilike(pattern))
            )

        total = self.session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        items = self.session.scalars(
            stmt.order_by(Employee.employee_id).offset((page - 1) * page_size).limit(page_size)
        ).all()
        return EmployeePage(items=list(items), total=total, page=page, page_size=page_size)

    def get_employee(self, organization_id: str, employee_pk: str) -> Employee:
        employee = self.session.get(Employee, employee_pk)
        if employee is None or employee.organization_id != organization_id:
            raise NotFoundError(f"Employee {employee_pk} not found")
        return employee

    def list_snapshots(self, organization_id: str, employee_pk: str) -> list[EmployeeSnapshot]:
        """Snapshots of one employee, newest first."""

        self.get_employee(organization_id, employee_pk)
        return list(
            self.session.scalars(
                select(EmployeeSnapshot)
                .where(EmployeeSnapshot.employee_pk == employee_pk)
                .order_by(EmployeeSnapshot.snapshot_at.desc())
            )
        )

    def latest_snapshot(self, organization_id: str, employee_pk: str) -> EmployeeSnapshot:
        snapshots = self.list_snapshots(organization_id, employee_pk)
        if not snapshots:
            raise NotFoundError(f"No snapshots for employee {employee_pk}")
        return snapshots[0]
