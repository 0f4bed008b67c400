"""Service layer entrypoints for the import pipeline and risk computation."""

from .audit import AuditAction, AuditTrail
from .background import BackgroundRunner, TaskHandle
from .employees import EmployeesService
from .import_executor import ImportExecutor, ImportOutcome
from .imports import ImportService, UploadResult
from .mapping import MappingResolver, MappingResult, MappingSource
from .narrative import NarrativeReportBuilder, NarrativeResult
from .risk_engine import RiskEngine
from .risk_results import RiskResultsService

__all__ = [
    "AuditAction",
    "AuditTrail",
    "BackgroundRunner",
    "EmployeesService",
    "ImportExecutor",
    "ImportOutcome",
    "ImportService",
    "MappingResolver",
    "MappingResult",
    "MappingSource",
    "NarrativeReportBuilder",
    "NarrativeResult",
    "RiskEngine",
    "RiskResultsService",
    "TaskHandle",
    "UploadResult",
]
