from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.errors import VersionNotFoundError
from app.db.database import get_db
from app.i18n.messages import VersionMessages
from app.schemas.assessment import AssessmentAdminOut
from app.schemas.questionnaire import (
    AreaOut,
    AreaUpdate,
    ElementOut,
    ElementUpdate,
    QuestionOut,
    QuestionUpdate,
    ValidationChecks,
    ValidationReport,
    VersionOut,
    VersionSummary,
    WeightCheckOut,
)
from app.services import assessment as assessment_service
from app.services import questionnaire as questionnaire_service
from app.services.security import require_admin

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/questionnaire", response_model=list[VersionSummary])
def list_versions(db: Session = Depends(get_db)):
    return questionnaire_service.list_versions(db)


@router.get("/questionnaire/{version_id}", response_model=VersionOut)
def get_version(version_id: int, db: Session = Depends(get_db)):
    version = questionnaire_service.get_version(db, version_id)
    if version is None:
        raise VersionNotFoundError(VersionMessages.NOT_FOUND, detail={"version_id": version_id})
    return version


@router.delete("/questionnaire/{version_id}", status_code=status.HTTP_200_OK)
def delete_version(version_id: int, db: Session = Depends(get_db)):
    questionnaire_service.delete_version(db, version_id)
    return {"success": True}


@router.post("/questionnaire/{version_id}/clone", response_model=VersionOut, status_code=status.HTTP_201_CREATED)
def clone_version(version_id: int, db: Session = Depends(get_db)):
    return questionnaire_service.clone_version(db, version_id)


@router.post("/questionnaire/{version_id}/publish", response_model=VersionOut)
def publish_version(version_id: int, db: Session = Depends(get_db)):
    return questionnaire_service.publish_version(db, version_id)


@router.post("/questionnaire/{version_id}/archive", response_model=VersionOut)
def archive_version(version_id: int, db: Session = Depends(get_db)):
    archived = questionnaire_service.archive_version(db, version_id)
    return questionnaire_service.get_version(db, archived.id)


@router.get("/questionnaire/{version_id}/validate", response_model=ValidationReport)
def validate_version(version_id: int, db: Session = Depends(get_db)):
    check = questionnaire_service.validate_weights(db, version_id)
    return ValidationReport(
        valid=check.valid,
        checks=ValidationChecks(area_weights=WeightCheckOut.model_validate(check)),
    )


@router.patch("/questionnaire/{version_id}/area/{area_id}", response_model=AreaOut)
def update_area(version_id: int, area_id: int, payload: AreaUpdate, db: Session = Depends(get_db)):
    return questionnaire_service.update_area(db, version_id, area_id, payload.changes())


@router.patch("/questionnaire/{version_id}/element/{element_id}", response_model=ElementOut)
def update_element(version_id: int, element_id: int, payload: ElementUpdate, db: Session = Depends(get_db)):
    return questionnaire_service.update_element(db, version_id, element_id, payload.changes())


@router.patch("/questionnaire/{version_id}/question/{question_id}", response_model=QuestionOut)
def update_question(version_id: int, question_id: int, payload: QuestionUpdate, db: Session = Depends(get_db)):
    return questionnaire_service.update_question(db, version_id, question_id, payload.changes())


@router.get("/assessments", response_model=list[AssessmentAdminOut])
def list_assessments(
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return [
        AssessmentAdminOut.from_model(assessment)
        for assessment in assessment_service.list_assessments(db, limit=limit, offset=offset)
    ]
