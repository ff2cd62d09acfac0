from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import EmailStr, Field, StrictInt, field_validator

from app.core.config import settings
from app.i18n.messages import AssessmentMessages
from app.models.maturity.enums import AssessmentStatus
from app.schemas.questionnaire import CamelModel


class AssessmentCreate(CamelModel):
    email: EmailStr
    name: Optional[str] = Field(default=None, max_length=200)
    consent: bool

    @field_validator("consent")
    @classmethod
    def _consent_required(cls, value: bool) -> bool:
        if value is not True:
            raise ValueError(AssessmentMessages.CONSENT_REQUIRED)
        return value

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class AssessmentCreated(CamelModel):
    id: str
    token: str


class AnswersPatch(CamelModel):
    answers: dict[str, StrictInt]

    @field_validator("answers")
    @classmethod
    def _answer_range(cls, value: dict[str, int]) -> dict[str, int]:
        for code, score in value.items():
            if not code or len(code) > 30:
                raise ValueError(f"Invalid question code: {code!r}")
            if not settings.answer_min <= score <= settings.answer_max:
                raise ValueError(
                    AssessmentMessages.ANSWER_OUT_OF_RANGE.format(
                        code=code, low=settings.answer_min, high=settings.answer_max
                    )
                )
        return value


class AnswersPatched(CamelModel):
    id: str
    answers_count: int


class AssessmentOut(CamelModel):
    id: str
    version_id: int
    status: AssessmentStatus
    user_email: str
    user_name: Optional[str] = None
    answers: dict[str, int] = {}
    created_at: datetime
    updated_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    data_retention_until: datetime


class AssessmentAdminOut(CamelModel):
    id: str
    version_id: int
    status: AssessmentStatus
    user_email: str
    user_name: Optional[str] = None
    answers_count: int = 0
    total_score: Optional[float] = None
    maturity_level: Optional[str] = None
    delivery_attempts: int = 0
    last_delivery_error: Optional[str] = None
    created_at: datetime
    submitted_at: Optional[datetime] = None
    pdf_generated_at: Optional[datetime] = None
    email_sent_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, assessment: Any) -> "AssessmentAdminOut":
        scores = assessment.calculated_scores or {}
        return cls(
            id=assessment.id,
            version_id=assessment.version_id,
            status=assessment.status,
            user_email=assessment.user_email,
            user_name=assessment.user_name,
            answers_count=len(assessment.answers or {}),
            total_score=scores.get("totalScore"),
            maturity_level=scores.get("maturityLevel"),
            delivery_attempts=assessment.delivery_attempts or 0,
            last_delivery_error=assessment.last_delivery_error,
            created_at=assessment.created_at,
            submitted_at=assessment.submitted_at,
            pdf_generated_at=assessment.pdf_generated_at,
            email_sent_at=assessment.email_sent_at,
        )


class ElementScoreOut(CamelModel):
    code: str
    answer_a: int
    answer_b: int
    average: float
    percentage: float


class AreaScoreOut(CamelModel):
    code: str
    name: str
    area_percentage: float
    weight: float
    contribution: float
    elements: list[ElementScoreOut]


class TotalScoreOut(CamelModel):
    total_score: float
    maturity_level: str
    areas: list[AreaScoreOut]
    skipped: list[str] = []
