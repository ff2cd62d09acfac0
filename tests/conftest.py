import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-pytest")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("RUN_STARTUP_SEED", "false")
os.environ.setdefault("DELIVERY_MODE", "disabled")
os.environ.setdefault("ADMIN_PASSWORD", "test-admin-secret")

from datetime import datetime, timedelta, timezone  # noqa: E402
from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.db.database import Base, build_engine, build_session_factory, get_db, get_session_factory  # noqa: E402
from app.main import app  # noqa: E402
from app.models.maturity import (  # noqa: E402
    Area,
    AssessmentResponse,
    AssessmentStatus,
    Element,
    Question,
    QuestionnaireVersion,
    VersionStatus,
)
from app.routers.assessments import get_task_submitter  # noqa: E402
from app.services.delivery import NullTaskSubmitter  # noqa: E402
from app.services.seeds import seed_reference_questionnaire  # noqa: E402

ADMIN_PASSWORD = os.environ["ADMIN_PASSWORD"]


@pytest.fixture()
def session_factory():
    engine = build_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    factory = build_session_factory(engine)
    yield factory
    engine.dispose()


@pytest.fixture()
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture()
def reference_version(db):
    return seed_reference_questionnaire(db)


@pytest.fixture()
def make_version(db):
    """Build a version from ``{area_code: (weight, {element_code: [question_codes]})}``."""

    def _make(spec, *, status=VersionStatus.DRAFT, version_number=None, scale=(0, 5)):
        if version_number is None:
            existing = db.query(QuestionnaireVersion.version_number).all()
            version_number = max((row[0] for row in existing), default=0) + 1
        version = QuestionnaireVersion(
            version_number=version_number,
            status=status,
            published_at=datetime.now(timezone.utc) if status == VersionStatus.PUBLISHED else None,
        )
        for area_order, (area_code, (weight, elements)) in enumerate(spec.items(), start=1):
            area = Area(code=area_code, name=f"Area {area_code}", weight=weight, order=area_order)
            for element_order, (element_code, question_codes) in enumerate(elements.items(), start=1):
                element = Element(
                    code=element_code,
                    name=f"Element {element_code}",
                    weight=round(1 / len(elements), 4),
                    order=element_order,
                )
                for question_order, question_code in enumerate(question_codes, start=1):
                    element.questions.append(
                        Question(
                            code=question_code,
                            question_text=f"Question {question_code}?",
                            order=question_order,
                            scale_min=scale[0],
                            scale_max=scale[1],
                        )
                    )
                area.elements.append(element)
            version.areas.append(area)
        db.add(version)
        db.commit()
        return version

    return _make


@pytest.fixture()
def make_assessment(db):
    def _make(version, *, status=AssessmentStatus.DRAFT, answers=None, email="respondent@example.com"):
        now = datetime.now(timezone.utc)
        assessment = AssessmentResponse(
            id=str(uuid4()),
            version_id=version.id,
            user_email=email,
            consent_given=True,
            user_token=uuid4().hex + uuid4().hex,
            status=status,
            answers=dict(answers or {}),
            created_at=now,
            data_retention_until=now + timedelta(days=730),
        )
        db.add(assessment)
        db.commit()
        return assessment

    return _make


@pytest.fixture()
def reference_answers():
    """Answer map covering all 30 reference questions with one value."""

    def _answers(value=5):
        return {
            f"{area}.{element}.{letter}": value
            for area in range(1, 6)
            for element in range(1, 4)
            for letter in ("a", "b")
        }

    return _answers


@pytest.fixture()
def client(session_factory):
    def _get_db():
        with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_task_submitter] = lambda: NullTaskSubmitter()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def admin_headers(client):
    response = client.post("/auth/admin-token", json={"password": ADMIN_PASSWORD})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
