import pytest


def _start(client, **overrides):
    payload = {"email": "ada@example.com", "name": "Ada", "consent": True, **overrides}
    return client.post("/assessment", json=payload)


def test_latest_questionnaire_uses_camel_case(client, reference_version):
    response = client.get("/questionnaire/latest")

    assert response.status_code == 200
    body = response.json()
    assert body["versionNumber"] == 1
    assert body["status"] == "PUBLISHED"
    assert len(body["areas"]) == 5
    question = body["areas"][0]["elements"][0]["questions"][0]
    assert question["code"] == "1.1.a"
    assert {"questionText", "levelsDescription", "scaleMin", "scaleMax"} <= set(question)


def test_latest_questionnaire_without_published_version(client):
    response = client.get("/questionnaire/latest")

    assert response.status_code == 404
    assert response.json()["error"] == "no_published_version"


def test_full_respondent_flow(client, reference_version, reference_answers):
    created = _start(client)
    assert created.status_code == 201
    assessment_id = created.json()["id"]
    assert len(created.json()["token"]) == 64

    patched = client.patch(f"/assessment/{assessment_id}", json={"answers": reference_answers(3)})
    assert patched.status_code == 200
    assert patched.json() == {"id": assessment_id, "answersCount": 30}

    fetched = client.get(f"/assessment/{assessment_id}")
    assert fetched.status_code == 200
    assert fetched.json()["status"] == "DRAFT"
    assert fetched.json()["answers"]["1.1.a"] == 3

    not_ready = client.get(f"/assessment/{assessment_id}/results")
    assert not_ready.status_code == 409
    assert not_ready.json()["error"] == "results_not_ready"

    submitted = client.post(f"/assessment/{assessment_id}/submit")
    assert submitted.status_code == 200
    score = submitted.json()
    assert score["totalScore"] == pytest.approx(60.0)
    assert score["maturityLevel"] in {"In Sviluppo", "Avanzato"}
    assert score["areas"][0]["elements"][0]["answerA"] == 3
    assert score["skipped"] == []

    results = client.get(f"/assessment/{assessment_id}/results")
    assert results.status_code == 200
    assert results.json() == score

    again = client.post(f"/assessment/{assessment_id}/submit")
    assert again.status_code == 409
    late_patch = client.patch(f"/assessment/{assessment_id}", json={"answers": {"1.1.a": 1}})
    assert late_patch.status_code == 409
    assert late_patch.json()["detail"]["message"] == "Cannot update submitted assessment"

    pdf = client.get(f"/assessment/{assessment_id}/pdf")
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")


def test_consent_is_mandatory(client, reference_version):
    response = _start(client, consent=False)
    assert response.status_code == 422


def test_invalid_email_is_rejected(client, reference_version):
    response = _start(client, email="not-an-email")
    assert response.status_code == 422


def test_answer_out_of_range_is_rejected(client, reference_version):
    assessment_id = _start(client).json()["id"]

    too_high = client.patch(f"/assessment/{assessment_id}", json={"answers": {"1.1.a": 6}})
    not_int = client.patch(f"/assessment/{assessment_id}", json={"answers": {"1.1.a": "3"}})

    assert too_high.status_code == 422
    assert not_int.status_code == 422


def test_submit_without_answers_is_unprocessable(client, reference_version):
    assessment_id = _start(client).json()["id"]

    response = client.post(f"/assessment/{assessment_id}/submit")

    assert response.status_code == 422
    assert response.json()["error"] == "computation_error"


def test_unknown_assessment_is_404(client, reference_version):
    for response in (
        client.get("/assessment/missing"),
        client.get("/assessment/missing/results"),
        client.post("/assessment/missing/submit"),
        client.patch("/assessment/missing", json={"answers": {"1.1.a": 1}}),
    ):
        assert response.status_code == 404
        assert response.json()["error"] == "assessment_not_found"


def test_correlation_id_round_trip(client, reference_version):
    response = client.get("/assessment/missing", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"
    assert response.json()["correlation_id"] == "req-123"


def test_health_reports_database(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"]["status"] == "connected"
    assert "counters" in body
