"""Upload, preview and confirmation workflow for employee imports."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from payequity.core.config import ImportSettings
from payequity.core.errors import (
    EmptyInputError,
    InvalidTransitionError,
    NotFoundError,
    SourceFileError,
)
from payequity.core.log import get_logger, log_context
from payequity.db import session_scope
from payequity.models import ImportJob, ImportJobStatus
from payequity.models.base import new_id

from .audit import AuditAction, AuditTrail
from .background import BackgroundRunner
from .extraction import SampleResult, parse_headers, parse_sample_rows
from .import_executor import ImportExecutor
from .mapping import MappingResolver, MappingResult, validate_mapping
from .preview import PreviewResult, generate_preview

LOGGER = get_logger(__name__)


@dataclass
class UploadResult:
    job: ImportJob
    headers: list[str]
    sample: SampleResult
    mapping: MappingResult


class ImportService:
    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        resolver: MappingResolver,
        executor: ImportExecutor,
        runner: BackgroundRunner,
        audit: AuditTrail,
        settings: ImportSettings | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._resolver = resolver
        self._executor = executor
        self._runner = runner
        self._audit = audit
        self._settings = settings or ImportSettings()

    def store_upload(self, file_name: str, content: bytes) -> Path:
        """Write uploaded bytes under the upload directory with a unique name."""

        directory = Path(self._settings.upload_dir)
        directory.mkdir(parents=True, exist_ok=True)
        suffix = Path(file_name).suffix or ".csv"
        path = directory / f"{new_id()}{suffix}"
        path.write_bytes(content)
        return path

    async def create_upload(
        self,
        *,
        organization_id: str,
        user_id: str,
        file_name: str,
        file_path: str | Path,
    ) -> UploadResult:
        """Read headers and a sample, resolve a mapping and open a PENDING_MAPPING job.

        File and database work runs on the thread pool; only the mapping
        request is awaited on the event loop.
        """

        headers, sample = await run_in_threadpool(self._inspect, file_name, file_path)
        mapping = await self._resolver.resolve(headers, sample.rows)
        job = await run_in_threadpool(
            self._open_job, organization_id, user_id, file_name, file_path
        )

        with log_context.scoped(org_id=organization_id, import_id=job.id):
            LOGGER.info(
                "Import %s uploaded: %d columns, %d rows, %s mapping",
                file_name,
                len(headers),
                sample.total_rows,
                mapping.source.value,
            )
        self._audit.record(
            organization_id=organization_id,
            action=AuditAction.IMPORT_UPLOADED,
            entity_type="ImportJob",
            entity_id=job.id,
            user_id=user_id,
            details={"fileName": file_name, "rowCount": sample.total_rows},
        )
        return UploadResult(job=job, headers=headers, sample=sample, mapping=mapping)

    def _inspect(self, file_name: str, file_path: str | Path) -> tuple[list[str], SampleResult]:
        headers = parse_headers(file_path)
        if not any(headers):
            raise EmptyInputError(f"{file_name} has no columns")
        sample = parse_sample_rows(file_path, self._settings.sample_size)
        if sample.total_rows == 0:
            raise EmptyInputError(f"{file_name} has no data rows")
        return headers, sample

    def _open_job(
        self, organization_id: str, user_id: str, file_name: str, file_path: str | Path
    ) -> ImportJob:
        with session_scope(self._session_factory) as session:
            job = ImportJob(
                organization_id=organization_id,
                uploaded_by_user_id=user_id,
                file_name=file_name,
                file_path=str(file_path),
                status=ImportJobStatus.PENDING_MAPPING.value,
            )
            session.add(job)
            session.flush()
        return job

    def preview(
        self, organization_id: str, import_id: str, mapping: Mapping[str, object]
    ) -> PreviewResult:
        job = self.get_import(organization_id, import_id)
        path = self._source_path(job)
        cleaned = validate_mapping(mapping, parse_headers(path))
        return generate_preview(path, cleaned, self._settings.sample_size)

    def confirm_mapping(
        self,
        organization_id: str,
        import_id: str,
        mapping: Mapping[str, object],
        user_id: str | None = None,
    ) -> ImportJob:
        """Lock in the mapping, move the job to PROCESSING and dispatch the executor.

        Raises:
            NotFoundError: the job does not belong to the organization.
            InvalidTransitionError: the job is no longer awaiting a mapping.
            MappingValidationError: the mapping references unknown fields or columns.
        """

        with session_scope(self._session_factory) as session:
            job = self._load(session, organization_id, import_id)
            if job.status_enum is not ImportJobStatus.PENDING_MAPPING:
                raise InvalidTransitionError("ImportJob", job.status, ImportJobStatus.PROCESSING.value)
            cleaned = validate_mapping(mapping, parse_headers(self._source_path(job)))
            job.transition_to(ImportJobStatus.PROCESSING)
            job.mapping_json = cleaned

        self._audit.record(
            organization_id=organization_id,
            action=AuditAction.IMPORT_MAPPING_CONFIRMED,
            entity_type="ImportJob",
            entity_id=import_id,
            user_id=user_id,
            details={"mapping": cleaned},
        )
        self._runner.submit(f"import:{import_id}", self._executor.run, import_id, cleaned, organization_id)
        return job

    def list_imports(self, organization_id: str) -> list[ImportJob]:
        session = self._session_factory()
        try:
            return list(
                session.scalars(
                    select(ImportJob)
                    .where(ImportJob.organization_id == organization_id)
                    .order_by(ImportJob.created_at.desc())
                )
            )
        finally:
            session.close()

    def get_import(self, organization_id: str, import_id: str) -> ImportJob:
        session = self._session_factory()
        try:
            return self._load(session, organization_id, import_id)
        finally:
            session.close()

    @staticmethod
    def _load(session: Session, organization_id: str, import_id: str) -> ImportJob:
        job = session.get(ImportJob, import_id)
        if job is None or job.organization_id != organization_id:
            raise NotFoundError(f"Import {import_id} not found")
        return job

    @staticmethod
    def _source_path(job: ImportJob) -> Path:
        if not job.file_path:
            raise SourceFileError(f"Import {job.id} has no source file")
        return Path(job.file_path)
