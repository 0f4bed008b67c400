"""FastAPI application instance and startup hooks."""
from __future__ import annotations

from fastapi import FastAPI

from payequity.container import ServiceContainer, build_container
from payequity.core import get_logger, get_settings
from payequity.routers import employees_router, imports_router, risk_router

LOGGER = get_logger(__name__)


def create_app(container: ServiceContainer | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""

    container = container or build_container(get_settings())

    app = FastAPI(title="Pay Equity Platform", version="0.1.0")
    app.state.container = container
    app.state.session_factory = container.session_factory
    app.state.import_service = container.import_service
    app.state.risk_engine = container.risk_engine
    app.state.narrative_builder = container.narrative_builder
    app.state.audit = container.audit

    app.include_router(imports_router)
    app.include_router(risk_router)
    app.include_router(employees_router)

    @app.on_event("startup")
    def create_schema() -> None:
        LOGGER.info("Ensuring database schema on %s", container.settings.database.masked_url)
        container.create_schema()

    @app.on_event("shutdown")
    def stop_background_work() -> None:
        LOGGER.info("Waiting for background tasks to finish")
        container.shutdown(wait=True)

    @app.get("/health", include_in_schema=False)
    def health() -> dict[str, str]:
        return {"status": "ok"}

    LOGGER.info("FastAPI application initialised")
    return app
