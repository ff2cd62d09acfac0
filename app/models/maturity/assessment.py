from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.ext.mutable import MutableDict
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.database import Base
from app.models.maturity.enums import AssessmentStatus

__all__ = [
    "AssessmentResponse",
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AssessmentResponse(Base):
    __tablename__ = "assessment_responses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    version_id: Mapped[int] = mapped_column(ForeignKey("questionnaire_versions.id"), index=True)
    user_email: Mapped[str] = mapped_column(String(320))
    user_name: Mapped[Optional[str]] = mapped_column(String(200))
    consent_given: Mapped[bool] = mapped_column(Boolean, default=False)
    user_token: Mapped[str] = mapped_column(String(128), unique=True)
    status: Mapped[AssessmentStatus] = mapped_column(
        Enum(AssessmentStatus), default=AssessmentStatus.DRAFT, index=True
    )
    answers: Mapped[dict[str, int]] = mapped_column(MutableDict.as_mutable(JSON), default=dict)
    calculated_scores: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)
    delivery_attempts: Mapped[int] = mapped_column(Integer, default=0)
    last_delivery_error: Mapped[Optional[str]] = mapped_column(String(500))
    email_message_id: Mapped[Optional[str]] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    pdf_generated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    email_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    data_retention_until: Mapped[datetime] = mapped_column(DateTime)

    version: Mapped["QuestionnaireVersion"] = relationship(back_populates="assessments")


if TYPE_CHECKING:  # pragma: no cover
    from app.models.maturity.questionnaire import QuestionnaireVersion
