from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, Enum, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.database import Base
from app.models.maturity.enums import VersionStatus

__all__ = [
    "QuestionnaireVersion",
    "Area",
    "Element",
    "Question",
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuestionnaireVersion(Base):
    __tablename__ = "questionnaire_versions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    version_number: Mapped[int] = mapped_column(Integer, unique=True, index=True)
    status: Mapped[VersionStatus] = mapped_column(Enum(VersionStatus), default=VersionStatus.DRAFT, index=True)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    areas: Mapped[list["Area"]] = relationship(
        back_populates="version",
        cascade="all, delete-orphan",
        order_by="Area.order",
    )
    assessments: Mapped[list["AssessmentResponse"]] = relationship(back_populates="version")

    __table_args__ = (
        # At most one PUBLISHED version, enforced by the store itself.
        Index(
            "uq_questionnaire_single_published",
            "status",
            unique=True,
            sqlite_where=text("status = 'PUBLISHED'"),
            postgresql_where=text("status = 'PUBLISHED'"),
        ),
    )

    @property
    def is_draft(self) -> bool:
        return self.status == VersionStatus.DRAFT


class Area(Base):
    __tablename__ = "areas"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    version_id: Mapped[int] = mapped_column(ForeignKey("questionnaire_versions.id", ondelete="CASCADE"), index=True)
    code: Mapped[str] = mapped_column(String(20))
    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text)
    weight: Mapped[float] = mapped_column(Float)
    order: Mapped[int] = mapped_column(Integer, default=0)

    version: Mapped[QuestionnaireVersion] = relationship(back_populates="areas")
    elements: Mapped[list["Element"]] = relationship(
        back_populates="area",
        cascade="all, delete-orphan",
        order_by="Element.order",
    )

    __table_args__ = (
        UniqueConstraint("version_id", "code", name="uq_area_code_per_version"),
    )


class Element(Base):
    __tablename__ = "elements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    area_id: Mapped[int] = mapped_column(ForeignKey("areas.id", ondelete="CASCADE"), index=True)
    code: Mapped[str] = mapped_column(String(20))
    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text)
    weight: Mapped[float] = mapped_column(Float)
    order: Mapped[int] = mapped_column(Integer, default=0)

    area: Mapped[Area] = relationship(back_populates="elements")
    questions: Mapped[list["Question"]] = relationship(
        back_populates="element",
        cascade="all, delete-orphan",
        order_by="Question.order",
    )


class Question(Base):
    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    element_id: Mapped[int] = mapped_column(ForeignKey("elements.id", ondelete="CASCADE"), index=True)
    code: Mapped[str] = mapped_column(String(30))
    question_text: Mapped[str] = mapped_column(Text)
    levels_description: Mapped[str] = mapped_column(Text, default="")
    order: Mapped[int] = mapped_column(Integer, default=0)
    scale_min: Mapped[int] = mapped_column(Integer, default=0)
    scale_max: Mapped[int] = mapped_column(Integer, default=5)

    element: Mapped[Element] = relationship(back_populates="questions")


if TYPE_CHECKING:  # pragma: no cover
    from app.models.maturity.assessment import AssessmentResponse
