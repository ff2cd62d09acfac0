from __future__ import annotations

from .assessment import AssessmentResponse
from .enums import PENDING_DELIVERY_STATUSES, AssessmentStatus, VersionStatus
from .questionnaire import Area, Element, Question, QuestionnaireVersion

__all__ = [
    "AssessmentStatus",
    "VersionStatus",
    "PENDING_DELIVERY_STATUSES",
    "QuestionnaireVersion",
    "Area",
    "Element",
    "Question",
    "AssessmentResponse",
]
