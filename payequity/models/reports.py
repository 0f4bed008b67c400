"""ORM model for generated narrative risk reports."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import ID_TYPE, Base, new_id, utcnow


class NarrativeReport(Base):
    """Prose summary of a completed risk run."""

    __tablename__ = "narrative_report"

    id: Mapped[str] = mapped_column(ID_TYPE, primary_key=True, default=new_id)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    risk_run_id: Mapped[str] = mapped_column(ForeignKey("risk_run.id"), nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    model: Mapped[str] = mapped_column(String(128), nullable=False)
    generated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
