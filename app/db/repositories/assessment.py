from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional, Sequence

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.db.repositories.base import Repository
from app.models.maturity.assessment import AssessmentResponse
from app.models.maturity.enums import PENDING_DELIVERY_STATUSES, AssessmentStatus


@dataclass
class AssessmentRepository(Repository[Session]):
    """Repository for respondent assessments."""

    def add(self, assessment: AssessmentResponse) -> AssessmentResponse:
        self.db.add(assessment)
        self.db.flush()
        return assessment

    def get(self, assessment_id: str) -> Optional[AssessmentResponse]:
        return self.db.get(AssessmentResponse, assessment_id)

    def get_for_update(self, assessment_id: str) -> Optional[AssessmentResponse]:
        """Row-locked fetch; a no-op lock on SQLite, ``SELECT ... FOR UPDATE`` elsewhere."""
        return (
            self.db.query(AssessmentResponse)
            .filter(AssessmentResponse.id == assessment_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def list_recent(self, *, limit: int = 100, offset: int = 0) -> List[AssessmentResponse]:
        return (
            self.db.query(AssessmentResponse)
            .order_by(AssessmentResponse.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    def list_by_status(self, statuses: Sequence[AssessmentStatus] = PENDING_DELIVERY_STATUSES) -> List[AssessmentResponse]:
        return (
            self.db.query(AssessmentResponse)
            .filter(AssessmentResponse.status.in_(list(statuses)))
            .order_by(AssessmentResponse.submitted_at.asc())
            .all()
        )

    def mark_submitted(self, assessment_id: str, *, scores: dict[str, Any], submitted_at: datetime) -> bool:
        """Freeze the score snapshot; only a DRAFT row can move to SUBMITTED."""
        return self._compare_and_set(
            update(AssessmentResponse)
            .where(AssessmentResponse.id == assessment_id)
            .where(AssessmentResponse.status == AssessmentStatus.DRAFT)
            .values(
                status=AssessmentStatus.SUBMITTED,
                calculated_scores=scores,
                submitted_at=submitted_at,
                updated_at=submitted_at,
            )
        )
