import pytest
from sqlalchemy.exc import IntegrityError

from app.core.errors import (
    NoPublishedVersionError,
    StructureNotFoundError,
    ValidationError,
    VersionNotFoundError,
    VersionStateError,
    WeightValidationError,
)
from app.models.maturity import AssessmentStatus, QuestionnaireVersion, VersionStatus
from app.services import questionnaire as questionnaire_service
from app.services.seeds import seed_reference_questionnaire


BALANCED = {"A1": (0.5, {"E1": ["Q1", "Q2"]}), "A2": (0.5, {"E2": ["Q3", "Q4"]})}


def _published(db):
    return db.query(QuestionnaireVersion).filter(QuestionnaireVersion.status == VersionStatus.PUBLISHED).all()


def test_reference_seed_shape(db, reference_version):
    version = questionnaire_service.get_latest_published(db)

    assert version.id == reference_version.id
    assert version.version_number == 1
    assert len(version.areas) == 5
    assert sum(len(area.elements) for area in version.areas) == 15
    assert sum(len(element.questions) for area in version.areas for element in area.elements) == 30
    assert [area.code for area in version.areas] == ["1", "2", "3", "4", "5"]
    assert questionnaire_service.validate_weights(db, version.id).valid is True


def test_reference_seed_is_idempotent(db, reference_version):
    assert seed_reference_questionnaire(db) is None
    assert db.query(QuestionnaireVersion).count() == 1


def test_latest_published_missing_raises(db):
    with pytest.raises(NoPublishedVersionError):
        questionnaire_service.get_latest_published(db)


def test_get_version_unknown_returns_none(db):
    assert questionnaire_service.get_version(db, 999) is None


def test_publish_archives_previous_version(db, make_version):
    first = make_version(BALANCED, status=VersionStatus.PUBLISHED)
    second = make_version(BALANCED)

    published = questionnaire_service.publish_version(db, second.id)

    assert published.status == VersionStatus.PUBLISHED
    assert published.published_at is not None
    assert first.status == VersionStatus.ARCHIVED
    assert db.get(QuestionnaireVersion, first.id).status == VersionStatus.ARCHIVED
    statuses = {row["id"]: row["status"] for row in questionnaire_service.list_versions(db)}
    assert statuses == {first.id: VersionStatus.ARCHIVED, second.id: VersionStatus.PUBLISHED}
    assert [v.id for v in _published(db)] == [second.id]
    assert questionnaire_service.get_latest_published(db).id == second.id


def test_publish_rejects_invalid_weights(db, make_version):
    version = make_version({"A1": (0.3, {"E1": ["Q1", "Q2"]}), "A2": (0.3, {"E2": ["Q3", "Q4"]})})

    with pytest.raises(WeightValidationError) as excinfo:
        questionnaire_service.publish_version(db, version.id)

    assert "current: 0.6" in excinfo.value.message
    db.expire_all()
    assert db.get(QuestionnaireVersion, version.id).status == VersionStatus.DRAFT


def test_publish_state_guards(db, make_version):
    published = make_version(BALANCED, status=VersionStatus.PUBLISHED)
    archived = make_version(BALANCED, status=VersionStatus.ARCHIVED)

    with pytest.raises(VersionStateError, match="already published"):
        questionnaire_service.publish_version(db, published.id)
    with pytest.raises(VersionStateError, match="archived"):
        questionnaire_service.publish_version(db, archived.id)
    with pytest.raises(VersionNotFoundError):
        questionnaire_service.publish_version(db, 4242)


def test_single_published_enforced_by_store(db, make_version):
    make_version(BALANCED, status=VersionStatus.PUBLISHED)

    db.add(QuestionnaireVersion(version_number=99, status=VersionStatus.PUBLISHED))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_clone_copies_tree_into_new_draft(db, reference_version):
    cloned = questionnaire_service.clone_version(db, reference_version.id)

    assert cloned.id != reference_version.id
    assert cloned.status == VersionStatus.DRAFT
    assert cloned.version_number == 2
    assert cloned.published_at is None

    def shape(version):
        return [
            (
                area.code,
                area.weight,
                [(element.code, [(q.code, q.question_text, q.scale_min, q.scale_max) for q in element.questions]) for element in area.elements],
            )
            for area in version.areas
        ]

    source = questionnaire_service.get_version(db, reference_version.id)
    assert shape(cloned) == shape(source)
    source_ids = {q.id for area in source.areas for element in area.elements for q in element.questions}
    cloned_ids = {q.id for area in cloned.areas for element in area.elements for q in element.questions}
    assert source_ids.isdisjoint(cloned_ids)
    # source left untouched
    assert source.status == VersionStatus.PUBLISHED


def test_clone_unknown_version(db):
    with pytest.raises(VersionNotFoundError):
        questionnaire_service.clone_version(db, 123)


def test_list_versions_reports_counts(db, reference_version, make_assessment):
    make_assessment(reference_version)
    draft = questionnaire_service.clone_version(db, reference_version.id)

    rows = questionnaire_service.list_versions(db)

    assert [row["id"] for row in rows] == [draft.id, reference_version.id]
    assert rows[0]["area_count"] == 5
    assert rows[0]["assessment_count"] == 0
    assert rows[1]["assessment_count"] == 1


def test_delete_guards(db, make_version, make_assessment):
    published = make_version(BALANCED, status=VersionStatus.PUBLISHED)
    bound_draft = make_version(BALANCED)
    make_assessment(bound_draft)
    free_draft = make_version(BALANCED)

    with pytest.raises(VersionStateError, match="Only DRAFT"):
        questionnaire_service.delete_version(db, published.id)
    with pytest.raises(VersionStateError, match="with assessments"):
        questionnaire_service.delete_version(db, bound_draft.id)

    questionnaire_service.delete_version(db, free_draft.id)
    assert questionnaire_service.get_version(db, free_draft.id) is None
    with pytest.raises(VersionNotFoundError):
        questionnaire_service.delete_version(db, free_draft.id)


def test_archive_guards(db, make_version, make_assessment):
    draft = make_version(BALANCED)
    with pytest.raises(VersionStateError, match="draft version"):
        questionnaire_service.archive_version(db, draft.id)

    published = make_version(BALANCED, status=VersionStatus.PUBLISHED)
    active = make_assessment(published)
    with pytest.raises(VersionStateError, match="active draft"):
        questionnaire_service.archive_version(db, published.id)

    active.status = AssessmentStatus.SUBMITTED
    db.commit()
    archived = questionnaire_service.archive_version(db, published.id)
    assert archived.status == VersionStatus.ARCHIVED

    with pytest.raises(VersionStateError, match="already archived"):
        questionnaire_service.archive_version(db, published.id)


def test_structure_updates_only_on_drafts(db, reference_version):
    area = reference_version.areas[0]
    with pytest.raises(VersionStateError, match="published or archived"):
        questionnaire_service.update_area(db, reference_version.id, area.id, {"name": "Renamed"})


def test_update_area_and_element(db, make_version):
    version = make_version(BALANCED)
    area = version.areas[0]
    element = area.elements[0]

    updated = questionnaire_service.update_area(db, version.id, area.id, {"name": "Strategia", "weight": 0.4})
    assert (updated.name, updated.weight) == ("Strategia", 0.4)

    updated_element = questionnaire_service.update_element(db, version.id, element.id, {"description": "Nuova"})
    assert updated_element.description == "Nuova"

    check = questionnaire_service.validate_weights(db, version.id)
    assert check.valid is False
    assert check.total_weight == pytest.approx(0.9)


def test_update_validation(db, make_version):
    version = make_version(BALANCED)
    area = version.areas[0]

    with pytest.raises(ValidationError, match="No fields"):
        questionnaire_service.update_area(db, version.id, area.id, {})
    with pytest.raises(ValidationError):
        questionnaire_service.update_area(db, version.id, area.id, {"weight": 1.5})
    with pytest.raises(ValidationError):
        questionnaire_service.update_area(db, version.id, area.id, {"order": -1})


@pytest.mark.parametrize("field", ["name", "weight", "order"])
def test_update_area_rejects_null_for_required_fields(db, make_version, field):
    version = make_version(BALANCED)
    area = version.areas[0]

    with pytest.raises(ValidationError, match="cannot be null") as excinfo:
        questionnaire_service.update_area(db, version.id, area.id, {field: None})

    assert excinfo.value.detail == {"fields": [field]}
    assert (area.name, area.weight, area.order) == ("Area A1", 0.5, 1)


def test_update_null_question_text_and_nullable_description(db, make_version):
    version = make_version(BALANCED)
    element = version.areas[0].elements[0]
    question = element.questions[0]

    with pytest.raises(ValidationError, match="cannot be null"):
        questionnaire_service.update_question(db, version.id, question.id, {"question_text": None})

    cleared = questionnaire_service.update_element(db, version.id, element.id, {"description": None})
    assert cleared.description is None


def test_update_structure_scoped_to_version(db, make_version):
    first = make_version(BALANCED)
    second = make_version(BALANCED)
    foreign_area = second.areas[0]
    foreign_question = second.areas[0].elements[0].questions[0]

    with pytest.raises(StructureNotFoundError):
        questionnaire_service.update_area(db, first.id, foreign_area.id, {"name": "x"})
    with pytest.raises(StructureNotFoundError):
        questionnaire_service.update_question(db, first.id, foreign_question.id, {"order": 3})


def test_update_question_scale_pair(db, make_version):
    version = make_version(BALANCED)
    question = version.areas[0].elements[0].questions[0]

    with pytest.raises(ValidationError, match="scaleMin must be less than scaleMax"):
        questionnaire_service.update_question(db, version.id, question.id, {"scale_min": 5})
    with pytest.raises(ValidationError, match="scaleMin must be less than scaleMax"):
        questionnaire_service.update_question(db, version.id, question.id, {"scale_min": 3, "scale_max": 2})

    updated = questionnaire_service.update_question(
        db, version.id, question.id, {"scale_max": 10, "question_text": "Quanto?"}
    )
    assert (updated.scale_min, updated.scale_max, updated.question_text) == (0, 10, "Quanto?")


def test_build_scoring_config_orders_tree(db, reference_version):
    config = questionnaire_service.build_scoring_config(reference_version)

    assert config.version_number == 1
    assert config.question_count() == 30
    assert [area.code for area in config.areas] == ["1", "2", "3", "4", "5"]
    assert [q.code for q in config.areas[0].elements[0].questions] == ["1.1.a", "1.1.b"]
