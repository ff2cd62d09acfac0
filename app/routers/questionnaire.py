from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.database import get_db
from app.schemas.questionnaire import VersionOut
from app.services import questionnaire as questionnaire_service

router = APIRouter(prefix="/questionnaire", tags=["questionnaire"])


@router.get("/latest", response_model=VersionOut)
def latest_published(db: Session = Depends(get_db)):
    """Questionnaire that new assessments are bound to."""
    return questionnaire_service.get_latest_published(db)
