"""Routes for uploading employee files and driving the mapping workflow."""
from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from payequity.core.errors import (
    ImportPipelineError,
    InvalidTransitionError,
    NotFoundError,
)
from payequity.core.log import get_logger
from payequity.models import ImportJob
from payequity.schemas import (
    ConfirmResponse,
    ImportDetail,
    ImportSummary,
    MappingPayload,
    PreviewResponse,
    PreviewRowSchema,
    RowErrorSchema,
    UploadResponse,
)
from payequity.services import ImportService
from payequity.web.dependencies import RequestContext, get_import_service, get_request_context

router = APIRouter(prefix="/imports", tags=["imports"])
LOGGER = get_logger(__name__)


def _summary(job: ImportJob) -> dict:
    return dict(
        import_id=job.id,
        file_name=job.file_name,
        status=job.status,
        created_at=job.created_at,
        created_count=job.created_count,
        updated_count=job.updated_count,
        error_count=job.error_count,
    )


@router.post(
    "/employees/csv",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload an employee CSV export",
)
async def upload_employees_csv(
    file: UploadFile = File(...),
    context: RequestContext = Depends(get_request_context),
    service: ImportService = Depends(get_import_service),
) -> UploadResponse:
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if not file.filename.lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="Only CSV files are supported")

    path = await run_in_threadpool(service.store_upload, file.filename, await file.read())
    try:
        result = await service.create_upload(
            organization_id=context.organization_id,
            user_id=context.user_id,
            file_name=file.filename,
            file_path=path,
        )
    except ImportPipelineError as exc:
        await run_in_threadpool(path.unlink, missing_ok=True)
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return UploadResponse(
        import_id=result.job.id,
        file_name=result.job.file_name,
        status=result.job.status,
        row_count=result.sample.total_rows,
        detected_columns=result.headers,
        sample_data=result.sample.rows,
        suggested_mapping=result.mapping.mapping,
        mapping_source=result.mapping.source.value,
        confidence=result.mapping.confidence,
    )


@router.post("/{import_id}/preview", response_model=PreviewResponse, summary="Preview a mapping")
def preview_import(
    import_id: str,
    payload: MappingPayload,
    context: RequestContext = Depends(get_request_context),
    service: ImportService = Depends(get_import_service),
) -> PreviewResponse:
    try:
        preview = service.preview(context.organization_id, import_id, payload.mapping)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ImportPipelineError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return PreviewResponse(
        rows=[
            PreviewRowSchema(row_number=row.row_number, data=row.data, warnings=row.warnings)
            for row in preview.rows
        ],
        total_rows=preview.total_rows,
        valid_rows=preview.valid_rows,
        warning_rows=preview.warning_rows,
    )


@router.post(
    "/{import_id}/confirm-mapping",
    response_model=ConfirmResponse,
    summary="Confirm the mapping and start processing",
)
def confirm_mapping(
    import_id: str,
    payload: MappingPayload,
    context: RequestContext = Depends(get_request_context),
    service: ImportService = Depends(get_import_service),
) -> ConfirmResponse:
    try:
        job = service.confirm_mapping(
            context.organization_id, import_id, payload.mapping, user_id=context.user_id
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except (InvalidTransitionError, ImportPipelineError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return ConfirmResponse(
        import_id=job.id,
        status=job.status,
        message="Import processing started",
    )


@router.get("", response_model=list[ImportSummary], summary="List imports")
def list_imports(
    context: RequestContext = Depends(get_request_context),
    service: ImportService = Depends(get_import_service),
) -> list[ImportSummary]:
    return [ImportSummary(**_summary(job)) for job in service.list_imports(context.organization_id)]


@router.get("/{import_id}", response_model=ImportDetail, summary="Import status and row errors")
def get_import(
    import_id: str,
    context: RequestContext = Depends(get_request_context),
    service: ImportService = Depends(get_import_service),
) -> ImportDetail:
    try:
        job = service.get_import(context.organization_id, import_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    return ImportDetail(
        **_summary(job),
        mapping=job.mapping_json,
        errors=[RowErrorSchema(**error) for error in job.errors_json or []],
    )
