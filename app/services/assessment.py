"""Respondent workflow: create, accumulate answers, submit, read results.

Submit is the only step with a durable side effect: the computed snapshot
and the ``SUBMITTED`` status are committed together before report delivery
is handed off. Delivery problems are logged and recorded on the assessment
by the delivery pipeline; they never turn a successful submit into an error.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from app.assessments.maturity.formulas import calculate_full_assessment
from app.assessments.maturity.types import TotalScore
from app.core.config import Settings, settings
from app.core.errors import (
    AssessmentNotFoundError,
    AssessmentStateError,
    ResultsNotReadyError,
    ValidationError,
    VersionNotFoundError,
)
from app.core.logging import get_logger
from app.core.metrics import inc_counter, timer
from app.db.repositories import AssessmentRepository, QuestionnaireRepository
from app.i18n.messages import AssessmentMessages, VersionMessages
from app.models.maturity import PENDING_DELIVERY_STATUSES, AssessmentResponse, AssessmentStatus
from app.services.delivery import DeliveryPipeline, ReportRenderer, TaskSubmitter
from app.services.questionnaire import build_scoring_config, get_latest_published
from app.services.report import Respondent

logger = get_logger("maturity.services.assessment", component="service")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_assessment(repo: AssessmentRepository, assessment_id: str, *, for_update: bool = False) -> AssessmentResponse:
    assessment = repo.get_for_update(assessment_id) if for_update else repo.get(assessment_id)
    if assessment is None:
        raise AssessmentNotFoundError(AssessmentMessages.NOT_FOUND, detail={"assessment_id": assessment_id})
    return assessment


def create_assessment(
    db: Session,
    *,
    email: str,
    consent: bool,
    name: Optional[str] = None,
    config: Settings = settings,
) -> AssessmentResponse:
    """Start a DRAFT assessment bound to the latest published version."""
    if consent is not True:
        raise ValidationError(AssessmentMessages.CONSENT_REQUIRED, detail={"field": "consent"})
    version = get_latest_published(db)
    now = _utcnow()
    assessment = AssessmentResponse(
        version_id=version.id,
        user_email=email,
        user_name=name,
        consent_given=True,
        user_token=secrets.token_hex(config.access_token_bytes),
        status=AssessmentStatus.DRAFT,
        answers={},
        created_at=now,
        updated_at=now,
        data_retention_until=now + timedelta(days=config.data_retention_days),
    )
    repo = AssessmentRepository(db)
    try:
        repo.add(assessment)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("assessment_create_failed", extra={"structured_data": {"version_id": version.id}})
        raise
    inc_counter("assessment.created")
    logger.event("assessment_created", assessment_id=assessment.id, version_id=version.id)
    return assessment


def get_assessment(db: Session, assessment_id: str) -> AssessmentResponse:
    return _require_assessment(AssessmentRepository(db), assessment_id)


def list_assessments(db: Session, *, limit: int = 100, offset: int = 0) -> list[AssessmentResponse]:
    return AssessmentRepository(db).list_recent(limit=limit, offset=offset)


def pending_deliveries(db: Session) -> list[AssessmentResponse]:
    """Submitted assessments whose report has not reached the respondent yet."""
    return AssessmentRepository(db).list_by_status(PENDING_DELIVERY_STATUSES)


def _validate_answers(
    db: Session,
    assessment: AssessmentResponse,
    answers: Mapping[str, Any],
    config: Settings,
) -> dict[str, int]:
    version = QuestionnaireRepository(db).get_with_tree(assessment.version_id)
    if version is None:
        raise VersionNotFoundError(VersionMessages.NOT_FOUND, detail={"version_id": assessment.version_id})
    scales = build_scoring_config(version).questions_by_code()

    accepted: dict[str, int] = {}
    errors: list[dict[str, Any]] = []
    for code, value in answers.items():
        question = scales.get(code)
        low, high = (question.scale_min, question.scale_max) if question else (config.answer_min, config.answer_max)
        if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
            errors.append(
                {
                    "field": code,
                    "message": AssessmentMessages.ANSWER_OUT_OF_RANGE.format(code=code, low=low, high=high),
                }
            )
            continue
        accepted[code] = value
    if errors:
        raise ValidationError(errors[0]["message"], detail={"errors": errors})
    return accepted


def patch_answers(
    db: Session,
    assessment_id: str,
    answers: Mapping[str, Any],
    *,
    config: Settings = settings,
) -> AssessmentResponse:
    """Merge ``answers`` into the stored map; later values for a code overwrite earlier ones."""
    repo = AssessmentRepository(db)
    assessment = _require_assessment(repo, assessment_id, for_update=True)
    if assessment.status is not AssessmentStatus.DRAFT:
        raise AssessmentStateError(
            AssessmentMessages.ALREADY_SUBMITTED_UPDATE,
            detail={"assessment_id": assessment_id, "status": assessment.status.value},
        )
    accepted = _validate_answers(db, assessment, answers, config)
    try:
        if assessment.answers is None:
            assessment.answers = {}
        assessment.answers.update(accepted)
        assessment.updated_at = _utcnow()
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("assessment_patch_failed", extra={"structured_data": {"assessment_id": assessment_id}})
        raise
    logger.event("answers_patched", assessment_id=assessment_id, patched=len(accepted), total=len(assessment.answers))
    return assessment


def submit_assessment(
    db: Session,
    assessment_id: str,
    *,
    pipeline: Optional[DeliveryPipeline] = None,
    submitter: Optional[TaskSubmitter] = None,
) -> TotalScore:
    """Score, freeze and persist; then hand the report off for delivery."""
    repo = AssessmentRepository(db)
    assessment = _require_assessment(repo, assessment_id)
    if assessment.status is not AssessmentStatus.DRAFT:
        raise AssessmentStateError(
            AssessmentMessages.ALREADY_SUBMITTED,
            detail={"assessment_id": assessment_id, "status": assessment.status.value},
        )

    version = QuestionnaireRepository(db).get_with_tree(assessment.version_id)
    if version is None:
        raise VersionNotFoundError(VersionMessages.NOT_FOUND, detail={"version_id": assessment.version_id})
    with timer("assessment.score"):
        score = calculate_full_assessment(dict(assessment.answers or {}), build_scoring_config(version))

    submitted_at = _utcnow()
    try:
        swapped = repo.mark_submitted(assessment_id, scores=score.as_dict(), submitted_at=submitted_at)
        if swapped:
            db.commit()
        else:
            db.rollback()
    except Exception:
        db.rollback()
        logger.exception("assessment_submit_failed", extra={"structured_data": {"assessment_id": assessment_id}})
        raise
    if not swapped:
        raise AssessmentStateError(AssessmentMessages.ALREADY_SUBMITTED, detail={"assessment_id": assessment_id})

    db.refresh(assessment)
    inc_counter("assessment.submitted")
    logger.event(
        "assessment_submitted",
        assessment_id=assessment_id,
        version_id=assessment.version_id,
        total_score=round(score.total_score, 2),
        maturity_level=score.maturity_level,
        skipped=len(score.skipped),
    )

    if pipeline is not None and submitter is not None:
        try:
            pipeline.dispatch(submitter, assessment_id)
        except Exception:
            # The snapshot is committed; the retry script picks this one up.
            inc_counter("delivery.handoff_failed")
            logger.exception("delivery_handoff_failed", extra={"structured_data": {"assessment_id": assessment_id}})
    return score


def get_results(db: Session, assessment_id: str) -> TotalScore:
    assessment = _require_assessment(AssessmentRepository(db), assessment_id)
    if not assessment.status.is_submitted or not assessment.calculated_scores:
        raise ResultsNotReadyError(AssessmentMessages.NOT_SUBMITTED, detail={"assessment_id": assessment_id})
    return TotalScore.from_dict(assessment.calculated_scores)


def render_report(db: Session, assessment_id: str, renderer: ReportRenderer) -> bytes:
    """Render the PDF of a submitted assessment on demand."""
    assessment = _require_assessment(AssessmentRepository(db), assessment_id)
    if not assessment.status.is_submitted or not assessment.calculated_scores:
        raise ResultsNotReadyError(AssessmentMessages.NOT_SUBMITTED, detail={"assessment_id": assessment_id})
    respondent = Respondent(
        assessment_id=assessment.id,
        email=assessment.user_email,
        name=assessment.user_name,
        submitted_at=assessment.submitted_at,
    )
    return renderer.render(assessment.calculated_scores, respondent)
