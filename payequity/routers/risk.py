"""Routes for triggering risk runs and reading their results."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.concurrency import run_in_threadpool

from payequity.core.errors import NotFoundError
from payequity.core.log import get_logger, log_context
from payequity.models import RiskRunStatus
from payequity.schemas import (
    NarrativeReportSchema,
    ReportEnvelope,
    RiskGroupSchema,
    RiskRunSchema,
    RunStarted,
    RunWithGroups,
)
from payequity.services import (
    AuditAction,
    AuditTrail,
    NarrativeReportBuilder,
    RiskEngine,
    RiskResultsService,
)
from payequity.web.dependencies import (
    RequestContext,
    get_audit_trail,
    get_narrative_builder,
    get_request_context,
    get_risk_engine,
    get_risk_results,
)

router = APIRouter(prefix="/risk", tags=["risk"])
LOGGER = get_logger(__name__)


def _run_with_groups(run, groups) -> RunWithGroups:
    return RunWithGroups(
        run=RiskRunSchema.model_validate(run) if run is not None else None,
        groups=[RiskGroupSchema.model_validate(group) for group in groups],
    )


@router.post(
    "/run",
    response_model=RunStarted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start a risk computation",
)
def start_risk_run(
    context: RequestContext = Depends(get_request_context),
    engine: RiskEngine = Depends(get_risk_engine),
) -> RunStarted:
    run_id = engine.start_run(context.organization_id, context.user_id)
    return RunStarted(run_id=run_id, status=RiskRunStatus.RUNNING.value)


@router.get("/runs/{run_id}", response_model=RunWithGroups, summary="Run status and groups")
def get_risk_run(
    run_id: str,
    context: RequestContext = Depends(get_request_context),
    results: RiskResultsService = Depends(get_risk_results),
) -> RunWithGroups:
    try:
        run, groups = results.get_run_with_groups(context.organization_id, run_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _run_with_groups(run, groups)


@router.get("/latest", response_model=RunWithGroups, summary="Latest completed run")
def get_latest_run(
    context: RequestContext = Depends(get_request_context),
    results: RiskResultsService = Depends(get_risk_results),
) -> RunWithGroups:
    run = results.latest_completed_run(context.organization_id)
    if run is None:
        return RunWithGroups(run=None, groups=[])
    _, groups = results.get_run_with_groups(context.organization_id, run.id)
    return _run_with_groups(run, groups)


@router.get("/groups", response_model=RunWithGroups, summary="Filter comparator groups")
def list_groups(
    run_id: str | None = Query(default=None, alias="runId"),
    risk_state: str | None = Query(default=None, alias="riskState"),
    country: str | None = None,
    job_family: str | None = Query(default=None, alias="jobFamily"),
    level: str | None = None,
    context: RequestContext = Depends(get_request_context),
    results: RiskResultsService = Depends(get_risk_results),
) -> RunWithGroups:
    try:
        run, groups = results.list_groups(
            context.organization_id,
            run_id=run_id,
            risk_state=risk_state,
            country=country,
            job_family=job_family,
            level=level,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _run_with_groups(run, groups)


@router.get("/groups/{group_key:path}", response_model=RiskGroupSchema, summary="One comparator group")
def get_group(
    group_key: str,
    context: RequestContext = Depends(get_request_context),
    results: RiskResultsService = Depends(get_risk_results),
) -> RiskGroupSchema:
    try:
        group = results.get_group(context.organization_id, group_key)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return RiskGroupSchema.model_validate(group)


@router.post("/runs/{run_id}/report", response_model=ReportEnvelope, summary="Generate a narrative report")
async def generate_report(
    run_id: str,
    context: RequestContext = Depends(get_request_context),
    results: RiskResultsService = Depends(get_risk_results),
    builder: NarrativeReportBuilder = Depends(get_narrative_builder),
    audit: AuditTrail = Depends(get_audit_trail),
) -> ReportEnvelope:
    try:
        run, groups = await run_in_threadpool(results.get_run_with_groups, context.organization_id, run_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if run.status != RiskRunStatus.COMPLETED.value:
        raise HTTPException(status_code=400, detail=f"Risk run {run_id} is {run.status}")

    with log_context.scoped(org_id=context.organization_id, run_id=run_id):
        narrative = await builder.generate(groups)
        if narrative is None:
            LOGGER.info("No narrative report produced")
            return ReportEnvelope(report=None)

        report = await run_in_threadpool(results.save_report, context.organization_id, run_id, narrative)

    audit.record(
        organization_id=context.organization_id,
        action=AuditAction.NARRATIVE_REPORT_GENERATED,
        entity_type="NarrativeReport",
        entity_id=report.id,
        user_id=context.user_id,
        details={"riskRunId": run_id, "model": narrative.model},
    )
    return ReportEnvelope(report=NarrativeReportSchema.model_validate(report))


@router.get("/reports/latest", response_model=ReportEnvelope, summary="Latest narrative report")
def get_latest_report(
    context: RequestContext = Depends(get_request_context),
    results: RiskResultsService = Depends(get_risk_results),
) -> ReportEnvelope:
    report = results.latest_report(context.organization_id)
    if report is None:
        return ReportEnvelope(report=None)
    return ReportEnvelope(report=NarrativeReportSchema.model_validate(report))
