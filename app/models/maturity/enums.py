from __future__ import annotations

import enum

__all__ = [
    "VersionStatus",
    "AssessmentStatus",
    "PENDING_DELIVERY_STATUSES",
]


class VersionStatus(enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class AssessmentStatus(enum.Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    PDF_GENERATED = "PDF_GENERATED"
    PDF_FAILED = "PDF_FAILED"
    EMAIL_SENT = "EMAIL_SENT"
    EMAIL_FAILED = "EMAIL_FAILED"

    @property
    def is_submitted(self) -> bool:
        """Every status past DRAFT carries a frozen score snapshot."""
        return self is not AssessmentStatus.DRAFT


# Statuses whose report still has to reach the respondent.
PENDING_DELIVERY_STATUSES: tuple[AssessmentStatus, ...] = (
    AssessmentStatus.SUBMITTED,
    AssessmentStatus.PDF_GENERATED,
    AssessmentStatus.PDF_FAILED,
    AssessmentStatus.EMAIL_FAILED,
)
