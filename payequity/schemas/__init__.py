"""Pydantic schemas for request and response payloads."""

from .employees import EmployeeList, EmployeeSchema, SnapshotSchema
from .imports import (
    ConfirmResponse,
    ImportDetail,
    ImportSummary,
    MappingPayload,
    PreviewResponse,
    PreviewRowSchema,
    RowErrorSchema,
    UploadResponse,
)
from .risk import (
    NarrativeReportSchema,
    ReportEnvelope,
    RiskGroupSchema,
    RiskRunSchema,
    RunStarted,
    RunWithGroups,
)

__all__ = [
    "ConfirmResponse",
    "EmployeeList",
    "EmployeeSchema",
    "ImportDetail",
    "ImportSummary",
    "MappingPayload",
    "NarrativeReportSchema",
    "PreviewResponse",
    "PreviewRowSchema",
    "ReportEnvelope",
    "RiskGroupSchema",
    "RiskRunSchema",
    "RowErrorSchema",
    "RunStarted",
    "RunWithGroups",
    "SnapshotSchema",
    "UploadResponse",
]
