"""Apply a confirmed mapping to a whole file and upsert employee records."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from payequity.core.log import get_logger, log_context, timeit
from payequity.models import (
    EMPLOYEE_ATTRIBUTES,
    SYSTEM_TRIGGER,
    Employee,
    EmployeeSnapshot,
    ImportJob,
    ImportJobStatus,
)

from .audit import AuditAction, AuditTrail
from .extraction import iter_rows
from .normalization import annualize_salary, normalize_country, normalize_salary

if TYPE_CHECKING:
    from .risk_engine import RiskEngine

LOGGER = get_logger(__name__)

_REQUIRED_LABELS: tuple[tuple[str, str], ...] = (
    ("employeeId", "employee ID"),
    ("roleTitle", "role title"),
    ("level", "level"),
    ("country", "country"),
    ("currency", "currency"),
    ("baseSalary", "base salary"),
)

DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d.%m.%Y", "%Y/%m/%d", "%d-%m-%Y", "%d %b %Y", "%d-%b-%Y")


@dataclass(frozen=True)
class RowError:
    row: int
    field: str | None
    message: str

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ImportOutcome:
    import_id: str
    status: ImportJobStatus
    created_count: int = 0
    updated_count: int = 0
    errors: list[RowError] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)


def parse_date(raw: str) -> date | None:
    text = raw.strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _value(row: Mapping[str, str], mapping: Mapping[str, str | None], canonical: str) -> str | None:
    column = mapping.get(canonical)
    if not column:
        return None
    raw = row.get(column)
    if raw is None:
        return None
    raw = raw.strip()
    return raw or None


def map_row(
    row: Mapping[str, str],
    mapping: Mapping[str, str | None],
    row_number: int,
    errors: list[RowError],
) -> dict[str, Any] | None:
    """Build employee attributes for one row, or ``None`` when the row must be skipped.

    Problems are appended to ``errors``. A bad hire date is reported but does
    not reject the row.
    """

    values: dict[str, str] = {}
    for canonical, label in _REQUIRED_LABELS:
        value = _value(row, mapping, canonical)
        if value is None:
            errors.append(RowError(row_number, canonical, f"Missing {label}"))
            return None
        values[canonical] = value

    base_salary = normalize_salary(values["baseSalary"])
    if base_salary is None:
        errors.append(
            RowError(row_number, "baseSalary", f'Invalid salary value: "{values["baseSalary"]}"')
        )
        return None
    period = _value(row, mapping, "salaryPeriod")
    if period:
        base_salary = annualize_salary(base_salary, period)

    bonus_raw = _value(row, mapping, "bonusTarget")
    lti_raw = _value(row, mapping, "ltiTarget")

    hire_date = None
    hire_raw = _value(row, mapping, "hireDate")
    if hire_raw:
        hire_date = parse_date(hire_raw)
        if hire_date is None:
            errors.append(RowError(row_number, "hireDate", f'Invalid date: "{hire_raw}"'))

    return {
        "employee_id": values["employeeId"],
        "role_title": values["roleTitle"],
        "job_family": _value(row, mapping, "jobFamily"),
        "level": values["level"],
        "country": normalize_country(values["country"]),
        "location": _value(row, mapping, "location"),
        "currency": values["currency"].upper(),
        "base_salary": base_salary,
        "bonus_target": normalize_salary(bonus_raw) if bonus_raw else None,
        "lti_target": normalize_salary(lti_raw) if lti_raw else None,
        "hire_date": hire_date,
        "employment_type": _value(row, mapping, "employmentType"),
        "gender": _value(row, mapping, "gender"),
        "performance_rating": _value(row, mapping, "performanceRating"),
    }


class ImportExecutor:
    """Process an import job row by row.

    Rows are committed one at a time: a crash mid-file leaves the rows already
    processed in place. Row-level problems are collected and never abort the
    job; only failures outside the per-row block mark the job FAILED.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        audit: AuditTrail,
        risk_engine: "RiskEngine | None" = None,
    ) -> None:
        self._session_factory = session_factory
        self._audit = audit
        self._risk_engine = risk_engine

    def run(
        self, import_id: str, mapping: Mapping[str, str | None], organization_id: str
    ) -> ImportOutcome | None:
        with log_context.scoped(org_id=organization_id, import_id=import_id):
            return self._run(import_id, mapping, organization_id)

    def _run(
        self, import_id: str, mapping: Mapping[str, str | None], organization_id: str
    ) -> ImportOutcome | None:
        outcome = ImportOutcome(import_id=import_id, status=ImportJobStatus.PROCESSING)
        session = self._session_factory()
        try:
            job = session.get(ImportJob, import_id)
            if job is None or job.organization_id != organization_id:
                LOGGER.error("Import job %s not found for organization", import_id)
                return None
            if job.status_enum is not ImportJobStatus.PROCESSING:
                LOGGER.warning("Import job %s is %s, not processing it", import_id, job.status)
                outcome.status = job.status_enum
                return outcome
            if not job.file_path:
                raise FileNotFoundError(f"Import job {import_id} has no source file")

            with timeit(f"Import {import_id}", logger=LOGGER, unit="rows") as timer:
                for row_number, row in enumerate(iter_rows(job.file_path), start=1):
                    timer.add()
                    created = self._process_row(session, row, row_number, mapping, outcome)
                    if created is None:
                        timer.fail()
                    elif created:
                        outcome.created_count += 1
                    else:
                        outcome.updated_count += 1

                job = session.get(ImportJob, import_id)
                job.transition_to(ImportJobStatus.COMPLETED)
                job.created_count = outcome.created_count
                job.updated_count = outcome.updated_count
                job.error_count = outcome.error_count
                job.errors_json = [error.as_dict() for error in outcome.errors]
                job.mapping_json = dict(mapping)
                session.commit()
            outcome.status = ImportJobStatus.COMPLETED
        except Exception as exc:
            session.rollback()
            LOGGER.exception("Import processing failed for %s", import_id)
            self._mark_failed(organization_id, outcome, exc)
            return outcome
        finally:
            session.close()

        self._audit.record(
            organization_id=organization_id,
            action=AuditAction.IMPORT_COMPLETED,
            entity_type="ImportJob",
            entity_id=import_id,
            details={
                "createdCount": outcome.created_count,
                "updatedCount": outcome.updated_count,
                "errorCount": outcome.error_count,
            },
        )
        self._trigger_risk_run(organization_id, import_id)
        return outcome

    def _process_row(
        self,
        session: Session,
        row: Mapping[str, str],
        row_number: int,
        mapping: Mapping[str, str | None],
        outcome: ImportOutcome,
    ) -> bool | None:
        """Return True if created, False if updated, None if the row was skipped."""

        try:
            attributes = map_row(row, mapping, row_number, outcome.errors)
            if attributes is None:
                return None
            created = self._upsert(session, attributes, outcome.import_id)
            session.commit()
            return created
        except Exception as exc:
            session.rollback()
            LOGGER.warning("Row %s failed: %s", row_number, exc)
            outcome.errors.append(RowError(row_number, None, f"Unexpected error: {exc}"))
            return None

    def _upsert(self, session: Session, attributes: dict[str, Any], import_id: str) -> bool:
        job = session.get(ImportJob, import_id)
        organization_id = job.organization_id
        employee = session.scalars(
            select(Employee).where(
                Employee.organization_id == organization_id,
                Employee.employee_id == attributes["employee_id"],
            )
        ).one_or_none()

        created = employee is None
        if employee is None:
            employee = Employee(organization_id=organization_id, employee_id=attributes["employee_id"])
            session.add(employee)
        for name in EMPLOYEE_ATTRIBUTES:
            setattr(employee, name, attributes[name])
        session.flush()

        session.add(EmployeeSnapshot.capture(employee, import_job_id=import_id))
        session.flush()
        return created

    def _mark_failed(self, organization_id: str, outcome: ImportOutcome, exc: Exception) -> None:
        outcome.status = ImportJobStatus.FAILED
        session = self._session_factory()
        try:
            job = session.get(ImportJob, outcome.import_id)
            if job is not None and not job.status_enum.is_terminal:
                job.transition_to(ImportJobStatus.FAILED)
                job.created_count = outcome.created_count
                job.updated_count = outcome.updated_count
                job.error_count = outcome.error_count + 1
                job.errors_json = [error.as_dict() for error in outcome.errors]
                session.commit()
        except Exception:
            session.rollback()
            LOGGER.exception("Could not record FAILED status for import %s", outcome.import_id)
        finally:
            session.close()

        self._audit.record(
            organization_id=organization_id,
            action=AuditAction.IMPORT_FAILED,
            entity_type="ImportJob",
            entity_id=outcome.import_id,
            details={"error": str(exc)},
        )

    def _trigger_risk_run(self, organization_id: str, import_id: str) -> None:
        if self._risk_engine is None:
            return
        try:
            self._risk_engine.start_run(organization_id, SYSTEM_TRIGGER, import_id)
        except Exception:
            LOGGER.exception("Risk computation after import %s could not be started", import_id)
