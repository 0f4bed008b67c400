"""Shared FastAPI dependency definitions."""
from __future__ import annotations

from collections.abc import Generator
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session, sessionmaker

from payequity.services import (
    EmployeesService,
    ImportService,
    NarrativeReportBuilder,
    RiskEngine,
    RiskResultsService,
)
from payequity.services.audit import AuditTrail


@dataclass(frozen=True)
class RequestContext:
    """Caller identity supplied by the upstream authentication layer."""

    organization_id: str
    user_id: str


def get_request_context(
    organization_id: str | None = Header(default=None, alias="X-Organization-Id"),
    user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> RequestContext:
    if not organization_id or not user_id:
        raise HTTPException(status_code=401, detail="Missing organization or user context")
    return RequestContext(organization_id=organization_id, user_id=user_id)


def get_session_factory(request: Request) -> sessionmaker:
    return request.app.state.session_factory


def get_db_session(
    factory: sessionmaker = Depends(get_session_factory),
) -> Generator[Session, None, None]:
    """Yield a database session for the request lifecycle."""

    session = factory()
    try:
        yield session
    finally:
        session.close()


def get_import_service(request: Request) -> ImportService:
    return request.app.state.import_service


def get_risk_engine(request: Request) -> RiskEngine:
    return request.app.state.risk_engine


def get_narrative_builder(request: Request) -> NarrativeReportBuilder:
    return request.app.state.narrative_builder


def get_audit_trail(request: Request) -> AuditTrail:
    return request.app.state.audit


def get_risk_results(session: Session = Depends(get_db_session)) -> RiskResultsService:
    return RiskResultsService(session)


def get_employees_service(session: Session = Depends(get_db_session)) -> EmployeesService:
    return EmployeesService(session)
