"""Questionnaire version store: lifecycle transitions and draft-only edits.

State machine of a version::

    DRAFT --publish--> PUBLISHED --archive--> ARCHIVED
    DRAFT --delete---> (removed, only while unreferenced)

Publishing archives the previously published version in the same
transaction, so at most one version is PUBLISHED at any time. The partial
unique index on ``questionnaire_versions.status`` backs this up when two
publishes race.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.assessments.maturity.formulas import check_weights
from app.assessments.maturity.types import (
    AreaConfig,
    ElementConfig,
    QuestionConfig,
    QuestionnaireConfig,
    WeightCheck,
)
from app.core.config import settings
from app.core.errors import (
    NoPublishedVersionError,
    StructureNotFoundError,
    ValidationError,
    VersionNotFoundError,
    VersionStateError,
    WeightValidationError,
)
from app.core.logging import get_logger
from app.core.metrics import inc_counter
from app.db.repositories import QuestionnaireRepository
from app.i18n.messages import StructureMessages, VersionMessages
from app.models.maturity import (
    Area,
    AssessmentStatus,
    Element,
    Question,
    QuestionnaireVersion,
    VersionStatus,
)

logger = get_logger("maturity.services.questionnaire", component="service")

AREA_FIELDS = frozenset({"name", "description", "weight", "order"})
ELEMENT_FIELDS = frozenset({"name", "description", "weight", "order"})
QUESTION_FIELDS = frozenset({"question_text", "levels_description", "order", "scale_min", "scale_max"})
NULLABLE_FIELDS = frozenset({"description"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_version(repo: QuestionnaireRepository, version_id: int, *, with_tree: bool = False) -> QuestionnaireVersion:
    version = repo.get_with_tree(version_id) if with_tree else repo.get(version_id)
    if version is None:
        raise VersionNotFoundError(VersionMessages.NOT_FOUND, detail={"version_id": version_id})
    return version


def _require_draft(version: QuestionnaireVersion) -> None:
    if version.status != VersionStatus.DRAFT:
        raise VersionStateError(
            VersionMessages.IMMUTABLE,
            detail={"version_id": version.id, "status": version.status.value},
        )


def build_scoring_config(version: QuestionnaireVersion) -> QuestionnaireConfig:
    """Convert a hydrated version into the typed tree consumed by the formula engine."""
    return QuestionnaireConfig(
        version_id=version.id,
        version_number=version.version_number,
        areas=tuple(
            AreaConfig(
                code=area.code,
                name=area.name,
                weight=float(area.weight),
                order=area.order,
                elements=tuple(
                    ElementConfig(
                        code=element.code,
                        name=element.name,
                        weight=float(element.weight),
                        order=element.order,
                        questions=tuple(
                            QuestionConfig(
                                code=question.code,
                                order=question.order,
                                scale_min=question.scale_min,
                                scale_max=question.scale_max,
                            )
                            for question in sorted(element.questions, key=lambda q: q.order)
                        ),
                    )
                    for element in sorted(area.elements, key=lambda e: e.order)
                ),
            )
            for area in sorted(version.areas, key=lambda a: a.order)
        ),
    )


def list_versions(db: Session) -> list[dict[str, Any]]:
    repo = QuestionnaireRepository(db)
    return [
        {
            "id": version.id,
            "version_number": version.version_number,
            "status": version.status,
            "published_at": version.published_at,
            "created_at": version.created_at,
            "updated_at": version.updated_at,
            "area_count": area_count,
            "assessment_count": assessment_count,
        }
        for version, area_count, assessment_count in repo.list_with_counts()
    ]


def get_version(db: Session, version_id: int) -> Optional[QuestionnaireVersion]:
    """Full tree fetch; ``None`` when the version does not exist."""
    return QuestionnaireRepository(db).get_with_tree(version_id)


def get_latest_published(db: Session) -> QuestionnaireVersion:
    version = QuestionnaireRepository(db).latest_published(with_tree=True)
    if version is None:
        raise NoPublishedVersionError(VersionMessages.NO_PUBLISHED)
    return version


def validate_weights(db: Session, version_id: int, *, tolerance: Optional[float] = None) -> WeightCheck:
    version = _require_version(QuestionnaireRepository(db), version_id, with_tree=True)
    return check_weights(
        [area.weight for area in version.areas],
        settings.weight_tolerance if tolerance is None else tolerance,
    )


def clone_version(db: Session, source_id: int) -> QuestionnaireVersion:
    """Deep-copy a version of any status into a new DRAFT with the next version number."""
    repo = QuestionnaireRepository(db)
    source = _require_version(repo, source_id, with_tree=True)
    version_number = repo.max_version_number() + 1
    try:
        cloned = repo.clone(source, version_number=version_number)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning(
            "version_clone_conflict",
            extra={"structured_data": {"source_id": source_id, "version_number": version_number}},
        )
        raise VersionStateError(
            "Version number already taken, retry the clone",
            detail={"version_number": version_number},
        ) from exc
    except Exception:
        db.rollback()
        logger.exception("version_clone_failed", extra={"structured_data": {"source_id": source_id}})
        raise

    inc_counter("questionnaire.clone")
    logger.event(
        "version_cloned",
        source_id=source_id,
        version_id=cloned.id,
        version_number=cloned.version_number,
    )
    return repo.get_with_tree(cloned.id) or cloned


def publish_version(db: Session, version_id: int, *, tolerance: Optional[float] = None) -> QuestionnaireVersion:
    repo = QuestionnaireRepository(db)
    version = _require_version(repo, version_id, with_tree=True)
    if version.status == VersionStatus.PUBLISHED:
        raise VersionStateError(VersionMessages.ALREADY_PUBLISHED, detail={"version_id": version_id})
    if version.status == VersionStatus.ARCHIVED:
        raise VersionStateError(VersionMessages.PUBLISH_ARCHIVED, detail={"version_id": version_id})

    check = check_weights(
        [area.weight for area in version.areas],
        settings.weight_tolerance if tolerance is None else tolerance,
    )
    if not check.valid:
        raise WeightValidationError(
            VersionMessages.WEIGHT_TOTAL.format(total=check.total_weight),
            detail=check.as_dict(),
        )

    # Archive + publish run in one transaction; the CAS on DRAFT makes a
    # concurrent publish of the same version lose instead of double-stamping.
    published_at = _utcnow()
    try:
        archived = repo.archive_published_except(version.id)
        swapped = repo.compare_and_set_status(
            version.id,
            expected=VersionStatus.DRAFT,
            new=VersionStatus.PUBLISHED,
            published_at=published_at,
        )
        if swapped:
            db.commit()
        else:
            db.rollback()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("version_publish_conflict", extra={"structured_data": {"version_id": version_id}})
        raise VersionStateError(VersionMessages.PUBLISH_RACE, detail={"version_id": version_id}) from exc
    except Exception:
        db.rollback()
        logger.exception("version_publish_failed", extra={"structured_data": {"version_id": version_id}})
        raise

    if not swapped:
        raise VersionStateError(VersionMessages.PUBLISH_RACE, detail={"version_id": version_id})

    db.refresh(version)
    inc_counter("questionnaire.publish")
    logger.event(
        "version_published",
        version_id=version.id,
        version_number=version.version_number,
        archived_previous=archived,
    )
    return version


def archive_version(db: Session, version_id: int) -> QuestionnaireVersion:
    repo = QuestionnaireRepository(db)
    version = _require_version(repo, version_id)
    if version.status == VersionStatus.ARCHIVED:
        raise VersionStateError(VersionMessages.ALREADY_ARCHIVED, detail={"version_id": version_id})
    if version.status == VersionStatus.DRAFT:
        raise VersionStateError(VersionMessages.ARCHIVE_DRAFT, detail={"version_id": version_id})

    active_drafts = repo.count_assessments(version_id, AssessmentStatus.DRAFT)
    if active_drafts:
        raise VersionStateError(
            VersionMessages.ARCHIVE_ACTIVE_DRAFTS,
            detail={"version_id": version_id, "active_drafts": active_drafts},
        )

    try:
        swapped = repo.compare_and_set_status(
            version.id,
            expected=VersionStatus.PUBLISHED,
            new=VersionStatus.ARCHIVED,
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("version_archive_failed", extra={"structured_data": {"version_id": version_id}})
        raise
    if not swapped:
        raise VersionStateError(VersionMessages.ALREADY_ARCHIVED, detail={"version_id": version_id})

    db.refresh(version)
    logger.event("version_archived", version_id=version.id, version_number=version.version_number)
    return version


def delete_version(db: Session, version_id: int) -> None:
    repo = QuestionnaireRepository(db)
    version = _require_version(repo, version_id)
    if version.status != VersionStatus.DRAFT:
        raise VersionStateError(
            VersionMessages.DELETE_NOT_DRAFT,
            detail={"version_id": version_id, "status": version.status.value},
        )
    bound = repo.count_assessments(version_id)
    if bound:
        raise VersionStateError(
            VersionMessages.DELETE_HAS_ASSESSMENTS,
            detail={"version_id": version_id, "assessments": bound},
        )

    try:
        repo.delete(version)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("version_delete_failed", extra={"structured_data": {"version_id": version_id}})
        raise
    logger.event("version_deleted", version_id=version_id)


def _apply_changes(target: Any, changes: Mapping[str, Any], allowed: frozenset[str]) -> dict[str, Any]:
    applied = {key: value for key, value in changes.items() if key in allowed}
    if not applied:
        raise ValidationError(StructureMessages.EMPTY_UPDATE, detail={"allowed": sorted(allowed)})
    nulled = sorted(key for key, value in applied.items() if value is None and key not in NULLABLE_FIELDS)
    if nulled:
        raise ValidationError(StructureMessages.NULL_FIELD, detail={"fields": nulled})
    if "weight" in applied and not 0 <= float(applied["weight"]) <= 1:
        raise ValidationError("weight must be between 0 and 1", detail={"field": "weight"})
    if "order" in applied and int(applied["order"]) < 0:
        raise ValidationError("order must be >= 0", detail={"field": "order"})
    for key, value in applied.items():
        setattr(target, key, value)
    return applied


def _commit_update(db: Session, target: Any, event: str, **fields: Any) -> Any:
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(f"{event}_failed", extra={"structured_data": fields})
        raise
    db.refresh(target)
    logger.event(event, **fields)
    return target


def update_area(db: Session, version_id: int, area_id: int, changes: Mapping[str, Any]) -> Area:
    repo = QuestionnaireRepository(db)
    _require_draft(_require_version(repo, version_id))
    area = repo.get_area(version_id, area_id)
    if area is None:
        raise StructureNotFoundError(StructureMessages.AREA_NOT_FOUND, detail={"area_id": area_id})
    applied = _apply_changes(area, changes, AREA_FIELDS)
    return _commit_update(db, area, "area_updated", version_id=version_id, area_id=area_id, fields=sorted(applied))


def update_element(db: Session, version_id: int, element_id: int, changes: Mapping[str, Any]) -> Element:
    repo = QuestionnaireRepository(db)
    _require_draft(_require_version(repo, version_id))
    element = repo.get_element(version_id, element_id)
    if element is None:
        raise StructureNotFoundError(StructureMessages.ELEMENT_NOT_FOUND, detail={"element_id": element_id})
    applied = _apply_changes(element, changes, ELEMENT_FIELDS)
    return _commit_update(
        db, element, "element_updated", version_id=version_id, element_id=element_id, fields=sorted(applied)
    )


def update_question(db: Session, version_id: int, question_id: int, changes: Mapping[str, Any]) -> Question:
    repo = QuestionnaireRepository(db)
    _require_draft(_require_version(repo, version_id))
    question = repo.get_question(version_id, question_id)
    if question is None:
        raise StructureNotFoundError(StructureMessages.QUESTION_NOT_FOUND, detail={"question_id": question_id})

    # The resulting pair is checked, so a lone bound cannot cross the other one.
    scale_min = changes.get("scale_min", question.scale_min)
    scale_max = changes.get("scale_max", question.scale_max)
    if scale_min is None or scale_max is None or int(scale_min) >= int(scale_max):
        raise ValidationError(
            StructureMessages.SCALE_ORDER,
            detail={"scale_min": scale_min, "scale_max": scale_max},
        )

    applied = _apply_changes(question, changes, QUESTION_FIELDS)
    return _commit_update(
        db, question, "question_updated", version_id=version_id, question_id=question_id, fields=sorted(applied)
    )
