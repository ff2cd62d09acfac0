from app.db.repositories.assessment import AssessmentRepository
from app.db.repositories.questionnaire import QuestionnaireRepository

__all__ = [
    "AssessmentRepository",
    "QuestionnaireRepository",
]
