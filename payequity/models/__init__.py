"""Database models for the pay equity domain."""
from __future__ import annotations

from .audit import AuditLog
from .base import Base
from .employees import EMPLOYEE_ATTRIBUTES, Employee, EmployeeSnapshot
from .imports import ImportJob, ImportJobStatus
from .reports import NarrativeReport
from .risk import SYSTEM_TRIGGER, RiskGroupResult, RiskRun, RiskRunStatus, RiskState

__all__ = [
    "AuditLog",
    "Base",
    "EMPLOYEE_ATTRIBUTES",
    "Employee",
    "EmployeeSnapshot",
    "ImportJob",
    "ImportJobStatus",
    "NarrativeReport",
    "RiskGroupResult",
    "RiskRun",
    "RiskRunStatus",
    "RiskState",
    "SYSTEM_TRIGGER",
]
