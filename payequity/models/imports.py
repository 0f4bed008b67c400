"""ORM model for uploaded compensation files and their processing state."""
from __future__ import annotations

from enum import Enum
from typing import Any

from sqlalchemy import JSON, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from payequity.core.errors import InvalidTransitionError

from .base import ID_TYPE, Base, TimestampMixin, new_id


class ImportJobStatus(str, Enum):
    """Lifecycle of an import job."""

    PENDING_MAPPING = "PENDING_MAPPING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in {ImportJobStatus.COMPLETED, ImportJobStatus.FAILED}


_ALLOWED_TRANSITIONS: dict[ImportJobStatus, set[ImportJobStatus]] = {
    ImportJobStatus.PENDING_MAPPING: {ImportJobStatus.PROCESSING, ImportJobStatus.FAILED},
    ImportJobStatus.PROCESSING: {ImportJobStatus.COMPLETED, ImportJobStatus.FAILED},
    ImportJobStatus.COMPLETED: set(),
    ImportJobStatus.FAILED: set(),
}


class ImportJob(TimestampMixin, Base):
    """A single uploaded file moving through mapping, processing and completion."""

    __tablename__ = "import_job"

    id: Mapped[str] = mapped_column(ID_TYPE, primary_key=True, default=new_id)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    uploaded_by_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_path: Mapped[str | None] = mapped_column(String(1024))
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=ImportJobStatus.PENDING_MAPPING.value
    )
    mapping_json: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    created_count: Mapped[int | None] = mapped_column(Integer)
    updated_count: Mapped[int | None] = mapped_column(Integer)
    error_count: Mapped[int | None] = mapped_column(Integer)
    errors_json: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON)

    @property
    def status_enum(self) -> ImportJobStatus:
        return ImportJobStatus(self.status)

    def transition_to(self, target: ImportJobStatus) -> None:
        """Move to ``target``, refusing anything but the forward state machine."""

        current = self.status_enum
        if target not in _ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError("ImportJob", current.value, target.value)
        self.status = target.value
