"""Composition root shared by the HTTP app and the CLI."""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from payequity.core.config import Settings
from payequity.core.log import get_logger
from payequity.db import create_sync_engine, get_sessionmaker
from payequity.llm import LLMProvider, TextGenerationClient
from payequity.models import Base
from payequity.services import (
    AuditTrail,
    BackgroundRunner,
    ImportExecutor,
    ImportService,
    MappingResolver,
    NarrativeReportBuilder,
    RiskEngine,
)

LOGGER = get_logger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    session_factory: sessionmaker
    runner: BackgroundRunner
    audit: AuditTrail
    risk_engine: RiskEngine
    import_executor: ImportExecutor
    import_service: ImportService
    narrative_builder: NarrativeReportBuilder

    def create_schema(self) -> None:
        engine: Engine = self.session_factory.kw["bind"]
        Base.metadata.create_all(engine)

    def shutdown(self, wait: bool = True) -> None:
        self.runner.shutdown(wait=wait)


def build_container(
    settings: Settings,
    *,
    session_factory: sessionmaker | None = None,
    llm_provider: LLMProvider | None = None,
) -> ServiceContainer:
    """Wire every service against one session factory and one worker pool."""

    if session_factory is None:
        engine = create_sync_engine(settings.database, echo=settings.sqlalchemy_echo)
        session_factory = get_sessionmaker(engine)

    client = None
    if settings.llm.enabled or llm_provider is not None:
        client = TextGenerationClient(settings.llm, provider=llm_provider)
    else:
        LOGGER.info("Text generation disabled; deterministic mapping only")

    runner = BackgroundRunner(max_workers=settings.background_workers)
    audit = AuditTrail(session_factory, runner)
    risk_engine = RiskEngine(session_factory, runner, audit, settings.risk)
    executor = ImportExecutor(session_factory, audit=audit, risk_engine=risk_engine)
    import_service = ImportService(
        session_factory,
        resolver=MappingResolver(client, timeout_seconds=settings.llm.mapping_timeout_seconds),
        executor=executor,
        runner=runner,
        audit=audit,
        settings=settings.imports,
    )
    narrative_builder = NarrativeReportBuilder(
        client,
        timeout_seconds=settings.llm.report_timeout_seconds,
        min_length=settings.llm.report_min_length,
    )
    return ServiceContainer(
        settings=settings,
        session_factory=session_factory,
        runner=runner,
        audit=audit,
        risk_engine=risk_engine,
        import_executor=executor,
        import_service=import_service,
        narrative_builder=narrative_builder,
    )
