from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from app.assessments.constants import DEFAULT_SCALE_MAX, DEFAULT_SCALE_MIN
from app.assessments.maturity import load_reference_questionnaire
from app.core.logging import get_logger
from app.models.maturity import Area, Element, Question, QuestionnaireVersion, VersionStatus

logger = get_logger("maturity.services.seeds", component="service")


def _build_version(raw: Mapping[str, Any]) -> QuestionnaireVersion:
    status = VersionStatus(raw.get("status", VersionStatus.DRAFT.value))
    version = QuestionnaireVersion(
        version_number=int(raw["version_number"]),
        status=status,
        published_at=datetime.now(timezone.utc) if status == VersionStatus.PUBLISHED else None,
    )
    for area in raw.get("areas", []):
        version.areas.append(
            Area(
                code=str(area["code"]),
                name=area["name"],
                description=area.get("description"),
                weight=float(area["weight"]),
                order=int(area.get("order", 0)),
                elements=[
                    Element(
                        code=str(element["code"]),
                        name=element["name"],
                        description=element.get("description"),
                        weight=float(element["weight"]),
                        order=int(element.get("order", 0)),
                        questions=[
                            Question(
                                code=str(question["code"]),
                                question_text=question["question_text"],
                                levels_description=question.get("levels_description", ""),
                                order=int(question.get("order", 0)),
                                scale_min=int(question.get("scale_min", DEFAULT_SCALE_MIN)),
                                scale_max=int(question.get("scale_max", DEFAULT_SCALE_MAX)),
                            )
                            for question in element.get("questions", [])
                        ],
                    )
                    for element in area.get("elements", [])
                ],
            )
        )
    return version


def seed_reference_questionnaire(db: Session, raw: Optional[Mapping[str, Any]] = None) -> Optional[QuestionnaireVersion]:
    """Create the reference questionnaire unless its version number already exists.

    Returns the new version, or ``None`` when nothing was seeded.
    """
    raw = raw or load_reference_questionnaire()
    version_number = int(raw["version_number"])
    if db.query(QuestionnaireVersion).filter(QuestionnaireVersion.version_number == version_number).first():
        return None

    status = VersionStatus(raw.get("status", VersionStatus.DRAFT.value))
    if status == VersionStatus.PUBLISHED and (
        db.query(QuestionnaireVersion).filter(QuestionnaireVersion.status == VersionStatus.PUBLISHED).first()
    ):
        # Never create a second PUBLISHED version.
        raw = {**raw, "status": VersionStatus.DRAFT.value}

    version = _build_version(raw)
    db.add(version)
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("seed_questionnaire_failed", extra={"structured_data": {"version_number": version_number}})
        raise
    logger.event(
        "questionnaire_seeded",
        version_id=version.id,
        version_number=version.version_number,
        areas=len(version.areas),
    )
    return version
