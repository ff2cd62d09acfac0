from fastapi import APIRouter, BackgroundTasks, Depends, Response, status
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings
from app.db.database import get_db, get_session_factory
from app.schemas.assessment import (
    AnswersPatch,
    AnswersPatched,
    AssessmentCreate,
    AssessmentCreated,
    AssessmentOut,
    TotalScoreOut,
)
from app.services import assessment as assessment_service
from app.services.delivery import (
    DeliveryPipeline,
    TaskSubmitter,
    build_default_pipeline,
    task_submitter_for,
)
from app.services.report import ReportlabRenderer

router = APIRouter(prefix="/assessment", tags=["assessment"])


def get_delivery_pipeline(
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> DeliveryPipeline:
    return build_default_pipeline(session_factory)


def get_task_submitter(background: BackgroundTasks) -> TaskSubmitter:
    return task_submitter_for(settings.delivery_mode, background)


@router.post("", response_model=AssessmentCreated, status_code=status.HTTP_201_CREATED)
def create_assessment(payload: AssessmentCreate, db: Session = Depends(get_db)):
    assessment = assessment_service.create_assessment(
        db,
        email=payload.email,
        name=payload.name,
        consent=payload.consent,
    )
    return AssessmentCreated(id=assessment.id, token=assessment.user_token)


@router.get("/{assessment_id}", response_model=AssessmentOut)
def get_assessment(assessment_id: str, db: Session = Depends(get_db)):
    return assessment_service.get_assessment(db, assessment_id)


@router.patch("/{assessment_id}", response_model=AnswersPatched)
def patch_answers(assessment_id: str, payload: AnswersPatch, db: Session = Depends(get_db)):
    assessment = assessment_service.patch_answers(db, assessment_id, payload.answers)
    return AnswersPatched(id=assessment.id, answers_count=len(assessment.answers))


@router.post("/{assessment_id}/submit", response_model=TotalScoreOut)
def submit_assessment(
    assessment_id: str,
    db: Session = Depends(get_db),
    pipeline: DeliveryPipeline = Depends(get_delivery_pipeline),
    submitter: TaskSubmitter = Depends(get_task_submitter),
):
    score = assessment_service.submit_assessment(db, assessment_id, pipeline=pipeline, submitter=submitter)
    return TotalScoreOut.model_validate(score)


@router.get("/{assessment_id}/results", response_model=TotalScoreOut)
def get_results(assessment_id: str, db: Session = Depends(get_db)):
    return TotalScoreOut.model_validate(assessment_service.get_results(db, assessment_id))


@router.get("/{assessment_id}/pdf", response_class=Response)
def download_pdf(assessment_id: str, db: Session = Depends(get_db)):
    pdf = assessment_service.render_report(db, assessment_id, ReportlabRenderer())
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="ai-maturity-report-{assessment_id}.pdf"'},
    )
