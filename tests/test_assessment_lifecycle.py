from datetime import timedelta

import pytest

from app.core.config import settings
from app.core.errors import (
    AssessmentNotFoundError,
    AssessmentStateError,
    ComputationError,
    NoPublishedVersionError,
    ResultsNotReadyError,
    ValidationError,
)
from app.models.maturity import AssessmentResponse, AssessmentStatus, VersionStatus
from app.services import assessment as assessment_service
from app.services import questionnaire as questionnaire_service
from app.services.delivery import InlineTaskSubmitter, NullTaskSubmitter


class RecordingPipeline:
    def __init__(self, fail=False):
        self.fail = fail
        self.dispatched = []

    def dispatch(self, submitter, assessment_id):
        if self.fail:
            raise RuntimeError("queue unavailable")
        self.dispatched.append(assessment_id)
        submitter.submit(lambda _id: None, assessment_id)


def test_create_requires_consent(db, reference_version):
    with pytest.raises(ValidationError, match="Consent"):
        assessment_service.create_assessment(db, email="a@example.com", consent=False)


def test_create_without_published_version(db):
    with pytest.raises(NoPublishedVersionError):
        assessment_service.create_assessment(db, email="a@example.com", consent=True)


def test_create_binds_latest_published_version(db, reference_version):
    assessment = assessment_service.create_assessment(db, email="a@example.com", consent=True, name="Ada")

    assert assessment.version_id == reference_version.id
    assert assessment.status is AssessmentStatus.DRAFT
    assert assessment.answers == {}
    assert assessment.consent_given is True
    assert len(assessment.user_token) == settings.access_token_bytes * 2
    assert assessment.data_retention_until - assessment.created_at == timedelta(days=settings.data_retention_days)

    other = assessment_service.create_assessment(db, email="b@example.com", consent=True)
    assert other.user_token != assessment.user_token
    assert other.id != assessment.id


def test_version_binding_survives_republish(db, reference_version):
    assessment = assessment_service.create_assessment(db, email="a@example.com", consent=True)
    draft = questionnaire_service.clone_version(db, reference_version.id)
    questionnaire_service.publish_version(db, draft.id)

    db.expire_all()
    assert assessment_service.get_assessment(db, assessment.id).version_id == reference_version.id


def test_patch_merges_answers(db, reference_version):
    assessment = assessment_service.create_assessment(db, email="a@example.com", consent=True)

    assessment_service.patch_answers(db, assessment.id, {"1.1.a": 3})
    assessment_service.patch_answers(db, assessment.id, {"1.1.b": 4})
    assessment_service.patch_answers(db, assessment.id, {"1.1.a": 5})

    db.expire_all()
    stored = assessment_service.get_assessment(db, assessment.id)
    assert stored.answers == {"1.1.a": 5, "1.1.b": 4}


def test_patch_rejects_values_outside_question_scale(db, reference_version):
    assessment = assessment_service.create_assessment(db, email="a@example.com", consent=True)

    with pytest.raises(ValidationError, match="1.1.a must be between 0 and 5"):
        assessment_service.patch_answers(db, assessment.id, {"1.1.a": 6})
    with pytest.raises(ValidationError):
        assessment_service.patch_answers(db, assessment.id, {"1.1.a": True})

    db.expire_all()
    assert assessment_service.get_assessment(db, assessment.id).answers == {}


def test_patch_unknown_code_uses_configured_range(db, reference_version):
    assessment = assessment_service.create_assessment(db, email="a@example.com", consent=True)

    patched = assessment_service.patch_answers(db, assessment.id, {"extra": 2})
    assert patched.answers["extra"] == 2
    with pytest.raises(ValidationError):
        assessment_service.patch_answers(db, assessment.id, {"extra": settings.answer_max + 1})


def test_patch_unknown_assessment(db, reference_version):
    with pytest.raises(AssessmentNotFoundError):
        assessment_service.patch_answers(db, "missing", {"1.1.a": 1})


def test_submit_freezes_snapshot(db, reference_version, reference_answers):
    assessment = assessment_service.create_assessment(db, email="a@example.com", consent=True)
    assessment_service.patch_answers(db, assessment.id, reference_answers(5))

    score = assessment_service.submit_assessment(db, assessment.id)

    assert score.total_score == pytest.approx(100.0)
    assert score.maturity_level == "Leader"
    assert len(score.areas) == 5
    db.expire_all()
    stored = assessment_service.get_assessment(db, assessment.id)
    assert stored.status is AssessmentStatus.SUBMITTED
    assert stored.submitted_at is not None
    assert stored.calculated_scores["totalScore"] == pytest.approx(100.0)
    assert assessment_service.get_results(db, assessment.id) == score


def test_reference_weighting(db, reference_version, reference_answers):
    answers = reference_answers(0)
    # Area 1 (weight 0.25) fully answered at the top of the scale.
    answers.update({code: 5 for code in answers if code.startswith("1.")})
    assessment = assessment_service.create_assessment(db, email="a@example.com", consent=True)
    assessment_service.patch_answers(db, assessment.id, answers)

    score = assessment_service.submit_assessment(db, assessment.id)

    assert score.total_score == pytest.approx(25.0)
    assert score.maturity_level == "Consapevole"


def test_submit_twice_conflicts(db, reference_version, reference_answers):
    assessment = assessment_service.create_assessment(db, email="a@example.com", consent=True)
    assessment_service.patch_answers(db, assessment.id, reference_answers(3))
    first = assessment_service.submit_assessment(db, assessment.id)

    with pytest.raises(AssessmentStateError, match="already submitted"):
        assessment_service.submit_assessment(db, assessment.id)
    with pytest.raises(AssessmentStateError, match="Cannot update submitted"):
        assessment_service.patch_answers(db, assessment.id, {"1.1.a": 1})

    assert assessment_service.get_results(db, assessment.id) == first


def test_submit_with_partial_answers(db, reference_version):
    assessment = assessment_service.create_assessment(db, email="a@example.com", consent=True)
    assessment_service.patch_answers(db, assessment.id, {"1.1.a": 3, "1.1.b": 4})

    score = assessment_service.submit_assessment(db, assessment.id)

    assert [area.code for area in score.areas] == ["1"]
    assert score.total_score == pytest.approx(70.0 * 0.25)
    assert "1.2" in score.skipped
    assert "area:5" in score.skipped


def test_submit_without_answers_raises_and_stays_draft(db, reference_version):
    assessment = assessment_service.create_assessment(db, email="a@example.com", consent=True)

    with pytest.raises(ComputationError):
        assessment_service.submit_assessment(db, assessment.id)

    db.expire_all()
    assert assessment_service.get_assessment(db, assessment.id).status is AssessmentStatus.DRAFT


def test_results_not_found_vs_not_ready(db, reference_version):
    assessment = assessment_service.create_assessment(db, email="a@example.com", consent=True)

    with pytest.raises(AssessmentNotFoundError):
        assessment_service.get_results(db, "missing")
    with pytest.raises(ResultsNotReadyError):
        assessment_service.get_results(db, assessment.id)


def test_submit_dispatches_delivery(db, reference_version, reference_answers):
    assessment = assessment_service.create_assessment(db, email="a@example.com", consent=True)
    assessment_service.patch_answers(db, assessment.id, reference_answers(4))
    pipeline = RecordingPipeline()
    submitter = NullTaskSubmitter()

    assessment_service.submit_assessment(db, assessment.id, pipeline=pipeline, submitter=submitter)

    assert pipeline.dispatched == [assessment.id]
    assert len(submitter.dropped) == 1


def test_handoff_failure_does_not_fail_submit(db, reference_version, reference_answers):
    assessment = assessment_service.create_assessment(db, email="a@example.com", consent=True)
    assessment_service.patch_answers(db, assessment.id, reference_answers(2))

    score = assessment_service.submit_assessment(
        db, assessment.id, pipeline=RecordingPipeline(fail=True), submitter=InlineTaskSubmitter()
    )

    assert score.total_score == pytest.approx(40.0)
    db.expire_all()
    stored = assessment_service.get_assessment(db, assessment.id)
    assert stored.status is AssessmentStatus.SUBMITTED
    assert [item.id for item in assessment_service.pending_deliveries(db)] == [assessment.id]


def test_pending_deliveries_excludes_drafts_and_sent(db, reference_version, make_assessment):
    snapshot = {"areas": [], "totalScore": 0.0, "maturityLevel": "Iniziale"}
    make_assessment(reference_version)
    sent = make_assessment(reference_version, status=AssessmentStatus.EMAIL_SENT)
    failed = make_assessment(reference_version, status=AssessmentStatus.PDF_FAILED)
    for item in (sent, failed):
        item.calculated_scores = snapshot
    db.commit()

    assert [item.id for item in assessment_service.pending_deliveries(db)] == [failed.id]


def test_list_assessments_most_recent_first(db, reference_version):
    first = assessment_service.create_assessment(db, email="a@example.com", consent=True)
    second = assessment_service.create_assessment(db, email="b@example.com", consent=True)
    second.created_at = first.created_at + timedelta(seconds=1)
    db.commit()

    ids = [item.id for item in assessment_service.list_assessments(db)]
    assert ids == [second.id, first.id]
    assert [item.id for item in assessment_service.list_assessments(db, limit=1, offset=1)] == [first.id]


def test_archived_version_keeps_scoring_submitted_assessments(db, reference_version, reference_answers):
    assessment = assessment_service.create_assessment(db, email="a@example.com", consent=True)
    assessment_service.patch_answers(db, assessment.id, reference_answers(1))
    draft = questionnaire_service.clone_version(db, reference_version.id)
    questionnaire_service.publish_version(db, draft.id)

    score = assessment_service.submit_assessment(db, assessment.id)

    assert score.total_score == pytest.approx(20.0)
    db.expire_all()
    stored = db.get(AssessmentResponse, assessment.id)
    assert stored.version.status == VersionStatus.ARCHIVED
