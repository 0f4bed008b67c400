"""Routes for browsing canonical employee records and their history."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from payequity.core.errors import NotFoundError
from payequity.schemas import EmployeeList, EmployeeSchema, SnapshotSchema
from payequity.services import EmployeesService
from payequity.web.dependencies import RequestContext, get_employees_service, get_request_context

router = APIRouter(prefix="/employees", tags=["employees"])


@router.get("", response_model=EmployeeList, summary="List employees")
def list_employees(
    country: str | None = None,
    job_family: str | None = Query(default=None, alias="jobFamily"),
    level: str | None = None,
    q: str | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=EmployeesService.MAX_PAGE_SIZE, alias="pageSize"),
    context: RequestContext = Depends(get_request_context),
    service: EmployeesService = Depends(get_employees_service),
) -> EmployeeList:
    result = service.list_employees(
        context.organization_id,
        country=country,
        job_family=job_family,
        level=level,
        query=q,
        page=page,
        page_size=page_size,
    )
    return EmployeeList(
        items=[EmployeeSchema.model_validate(employee) for employee in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
    )


@router.get("/{employee_id}", response_model=EmployeeSchema, summary="One employee")
def get_employee(
    employee_id: str,
    context: RequestContext = Depends(get_request_context),
    service: EmployeesService = Depends(get_employees_service),
) -> EmployeeSchema:
    try:
        employee = service.get_employee(context.organization_id, employee_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return EmployeeSchema.model_validate(employee)


@router.get("/{employee_id}/snapshots", response_model=list[SnapshotSchema], summary="Snapshot history")
def list_snapshots(
    employee_id: str,
    context: RequestContext = Depends(get_request_context),
    service: EmployeesService = Depends(get_employees_service),
) -> list[SnapshotSchema]:
    try:
        snapshots = service.list_snapshots(context.organization_id, employee_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return [SnapshotSchema.model_validate(snapshot) for snapshot in snapshots]


@router.get(
    "/{employee_id}/snapshots/latest", response_model=SnapshotSchema, summary="Most recent snapshot"
)
def latest_snapshot(
    employee_id: str,
    context: RequestContext = Depends(get_request_context),
    service: EmployeesService = Depends(get_employees_service),
) -> SnapshotSchema:
    try:
        snapshot = service.latest_snapshot(context.organization_id, employee_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return SnapshotSchema.model_validate(snapshot)
