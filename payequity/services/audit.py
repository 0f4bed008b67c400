"""Audit trail sink.

Writes are dispatched to the background runner and never raise into the
caller; a failed write is logged and dropped.
"""
from __future__ import annotations

from enum import Enum
from typing import Any

from sqlalchemy.orm import sessionmaker

from payequity.core.log import get_logger
from payequity.db import session_scope
from payequity.models import SYSTEM_TRIGGER, AuditLog

from .background import BackgroundRunner

LOGGER = get_logger(__name__)


class AuditAction(str, Enum):
    IMPORT_UPLOADED = "IMPORT_UPLOADED"
    IMPORT_MAPPING_CONFIRMED = "IMPORT_MAPPING_CONFIRMED"
    IMPORT_COMPLETED = "IMPORT_COMPLETED"
    IMPORT_FAILED = "IMPORT_FAILED"
    RISK_RUN_TRIGGERED = "RISK_RUN_TRIGGERED"
    RISK_RUN_COMPLETED = "RISK_RUN_COMPLETED"
    RISK_RUN_FAILED = "RISK_RUN_FAILED"
    NARRATIVE_REPORT_GENERATED = "NARRATIVE_REPORT_GENERATED"


class AuditTrail:
    def __init__(self, session_factory: sessionmaker, runner: BackgroundRunner | None = None) -> None:
        self._session_factory = session_factory
        self._runner = runner

    def record(
        self,
        *,
        organization_id: str,
        action: AuditAction,
        entity_type: str,
        entity_id: str | None = None,
        user_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        entry = dict(
            organization_id=organization_id,
            user_id=None if user_id == SYSTEM_TRIGGER else user_id,
            action=action.value,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
        )
        if self._runner is None:
            self._write(entry)
            return
        try:
            self._runner.submit(f"audit:{action.value}", self._write, entry)
        except RuntimeError:
            # Runner already shut down; the entry is dropped.
            LOGGER.warning("Audit entry %s dropped: background runner unavailable", action.value)

    def _write(self, entry: dict[str, Any]) -> None:
        try:
            with session_scope(self._session_factory) as session:
                session.add(AuditLog(**entry))
        except Exception:
            LOGGER.exception("Failed to write audit log entry %s", entry["action"])
