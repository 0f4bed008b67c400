"""Shared fixtures: a sqlite database per test and a scripted text-generation provider."""
from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from payequity.core.config import DatabaseSettings, LLMSettings, RiskSettings
from payequity.db import create_sync_engine, get_sessionmaker
from payequity.llm import LLMProvider, LLMResponse, TextGenerationClient, TextGenerationRequest
from payequity.models import Base
from payequity.services import AuditTrail, BackgroundRunner, RiskEngine


class ScriptedProvider(LLMProvider):
    """Return a canned reply, raise a canned error or stall past the timeout."""

    name = "scripted"

    def __init__(self, content: str = "", *, error: Exception | None = None, delay: float = 0.0):
        super().__init__(LLMSettings())
        self.content = content
        self.error = error
        self.delay = delay
        self.requests: list[TextGenerationRequest] = []

    async def generate(self, request: TextGenerationRequest) -> LLMResponse:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return LLMResponse(content=self.content, model=request.model, provider=self.name, usage={})


def scripted_client(provider: ScriptedProvider) -> TextGenerationClient:
    return TextGenerationClient(LLMSettings(model="test-model"), provider=provider)


@pytest.fixture
def session_factory(tmp_path: Path):
    database = DatabaseSettings(url_override=f"sqlite:///{tmp_path / 'payequity.db'}")
    engine = create_sync_engine(database)
    Base.metadata.create_all(engine)
    yield get_sessionmaker(engine)
    engine.dispose()


@pytest.fixture
def runner():
    pool = BackgroundRunner(max_workers=2)
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def audit(session_factory) -> AuditTrail:
    return AuditTrail(session_factory)


@pytest.fixture
def risk_engine(session_factory, runner, audit) -> RiskEngine:
    return RiskEngine(
        session_factory,
        runner,
        audit,
        RiskSettings(poll_interval_seconds=0.05, poll_attempts=100),
    )


def write_csv(path: Path, header: list[str], rows: list[list[str]]) -> Path:
    lines = [",".join(header)] + [",".join(row) for row in rows]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path
