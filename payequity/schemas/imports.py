"""Schemas for the upload, preview and confirmation endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from .base import CamelModel


class MappingPayload(CamelModel):
    mapping: dict[str, str | None]


class UploadResponse(CamelModel):
    """Returned after a file is accepted and a mapping suggested."""

    import_id: str
    file_name: str
    status: str
    row_count: int
    detected_columns: list[str]
    sample_data: list[dict[str, str]]
    suggested_mapping: dict[str, str | None]
    mapping_source: str
    confidence: dict[str, float]


class PreviewRowSchema(CamelModel):
    row_number: int
    data: dict[str, str | float | None]
    warnings: list[str] = Field(default_factory=list)


class PreviewResponse(CamelModel):
    rows: list[PreviewRowSchema]
    total_rows: int
    valid_rows: int
    warning_rows: int


class ConfirmResponse(CamelModel):
    import_id: str
    status: str
    message: str


class RowErrorSchema(CamelModel):
    row: int
    field: str | None = None
    message: str


class ImportSummary(CamelModel):
    import_id: str
    file_name: str
    status: str
    created_at: datetime | None = None
    created_count: int | None = None
    updated_count: int | None = None
    error_count: int | None = None


class ImportDetail(ImportSummary):
    mapping: dict[str, Any] | None = None
    errors: list[RowErrorSchema] = Field(default_factory=list)
