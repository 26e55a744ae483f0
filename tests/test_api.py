"""HTTP tests for the FastAPI application."""

from datetime import date, timedelta

from conftest import (
    ADMIN,
    CAMPUS_ID,
    COORDINATOR,
    EMPLOYER,
    HOST_ORGANIZATION_ID,
    PROGRAM_ID,
    STUDENT,
    SUPERVISOR,
    auth_headers,
)
from ipms.auth.middleware import hash_gateway_token
from ipms.config import settings
from ipms.engine.scoring import EMPLOYER_CRITERIA
from ipms.errors import PersistenceError
from ipms.storage import repositories as repo

END = date.today() - timedelta(days=2)


def _practice_body(**overrides) -> dict:
    body = {
        "student_id": STUDENT.user_id,
        "program_id": PROGRAM_ID,
        "campus_id": CAMPUS_ID,
        "kind": "LABOR",
        "start_date": (END - timedelta(days=90)).isoformat(),
        "end_date": END.isoformat(),
        "host_organization_id": HOST_ORGANIZATION_ID,
    }
    body.update(overrides)
    return body


def _employer_body(score: int = 6) -> dict:
    return {"criteria": [{"criterion_id": c.id, "score": score} for c in EMPLOYER_CRITERIA]}


async def _create(client) -> int:
    response = await client.post("/v1/practices", json=_practice_body(), headers=auth_headers(COORDINATOR))
    assert response.status_code == 201
    return response.json()["id"]


async def _to_pending_eval(client) -> int:
    practice_id = await _create(client)
    await client.post(
        f"/v1/practices/{practice_id}/supervisor",
        json={"supervisor_id": SUPERVISOR.user_id},
        headers=auth_headers(COORDINATOR),
    )
    await client.post(f"/v1/practices/{practice_id}/supervisor/accept", headers=auth_headers(SUPERVISOR))
    response = await client.post(
        f"/v1/practices/{practice_id}/report",
        json={"report_document_ref": "docs/informe.pdf"},
        headers=auth_headers(STUDENT),
    )
    assert response.status_code == 200
    return practice_id


async def test_health(client):
    """Health check endpoint."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_missing_identity_headers(client):
    """Requests without identity headers are rejected."""
    response = await client.get("/v1/practices")
    assert response.status_code == 401


async def test_invalid_role_header(client):
    """Unknown roles are rejected."""
    response = await client.get("/v1/practices", headers={"X-User-Id": "1", "X-User-Role": "JANITOR"})
    assert response.status_code == 401


async def test_gateway_token_required_when_configured(client, monkeypatch):
    """A configured gateway token hash must match the bearer token."""
    monkeypatch.setattr(settings, "gateway_token_hash", hash_gateway_token("gateway-secret"))
    headers = auth_headers(ADMIN)

    response = await client.get("/v1/practices", headers=headers)
    assert response.status_code == 401
    response = await client.get("/v1/practices", headers={**headers, "Authorization": "Bearer wrong"})
    assert response.status_code == 401
    response = await client.get("/v1/practices", headers={**headers, "Authorization": "Bearer gateway-secret"})
    assert response.status_code == 200


async def test_full_lifecycle_over_http(client):
    """A practice goes from creation to closing through the API."""
    practice_id = await _to_pending_eval(client)

    response = await client.post(
        f"/v1/practices/{practice_id}/evaluations/employer",
        json=_employer_body(6),
        headers=auth_headers(EMPLOYER),
    )
    assert response.status_code == 201
    assert response.json()["final_score"] == 6.0
    assert len(response.json()["criteria"]) == len(EMPLOYER_CRITERIA)

    response = await client.post(
        f"/v1/practices/{practice_id}/evaluations/report",
        json={"score": 5.0, "comments": "Buen informe"},
        headers=auth_headers(SUPERVISOR),
    )
    assert response.status_code == 201

    response = await client.get(f"/v1/practices/{practice_id}", headers=auth_headers(STUDENT))
    assert response.json()["state"] == "EVALUACION_COMPLETA"
    assert response.json()["computed_grade"] == 5.5

    response = await client.get(f"/v1/practices/{practice_id}/evaluations", headers=auth_headers(COORDINATOR))
    assert response.json()["employer"]["final_score"] == 6.0
    assert response.json()["report"]["score"] == 5.0

    response = await client.post(f"/v1/practices/{practice_id}/close", headers=auth_headers(COORDINATOR))
    assert response.status_code == 200
    record = response.json()
    assert record["final_grade"] == 5.5
    assert record["policy_version"] == 1

    response = await client.get(f"/v1/practices/{practice_id}/final-record", headers=auth_headers(STUDENT))
    assert response.json()["record_hash"] == record["record_hash"]

    response = await client.post(f"/v1/practices/{practice_id}/close", headers=auth_headers(COORDINATOR))
    assert response.status_code == 409
    assert response.json()["error_code"] == "premature_close"


async def test_invalid_transition_is_conflict(client):
    """Events illegal in the current state map to 409."""
    practice_id = await _create(client)
    response = await client.post(f"/v1/practices/{practice_id}/supervisor/accept", headers=auth_headers(SUPERVISOR))
    assert response.status_code == 409
    body = response.json()
    assert body["error_code"] == "invalid_state_transition"
    assert body["current_state"] == "PENDIENTE"


async def test_unauthorized_caller(client):
    """Guard failures map to 403."""
    practice_id = await _create(client)
    response = await client.post(
        f"/v1/practices/{practice_id}/supervisor",
        json={"supervisor_id": SUPERVISOR.user_id},
        headers=auth_headers(STUDENT),
    )
    assert response.status_code == 403
    assert response.json()["error_code"] == "unauthorized"


async def test_practice_not_found(client):
    """Unknown practices map to 404."""
    response = await client.get("/v1/practices/999", headers=auth_headers(ADMIN))
    assert response.status_code == 404
    assert response.json()["error_code"] == "not_found"


async def test_incomplete_criteria(client):
    """Missing employer criteria map to 422 with the missing ids."""
    practice_id = await _to_pending_eval(client)
    body = _employer_body(6)
    body["criteria"] = body["criteria"][1:]
    response = await client.post(
        f"/v1/practices/{practice_id}/evaluations/employer", json=body, headers=auth_headers(EMPLOYER)
    )
    assert response.status_code == 422
    assert response.json()["error_code"] == "incomplete_criteria"
    assert response.json()["missing"] == ["puntualidad"]


async def test_report_evaluation_needs_score_or_rubric(client):
    """Report evaluation payload carries exactly one of score or rubric."""
    practice_id = await _to_pending_eval(client)
    response = await client.post(
        f"/v1/practices/{practice_id}/evaluations/report", json={}, headers=auth_headers(SUPERVISOR)
    )
    assert response.status_code == 422


async def test_list_practices(client):
    """Listing is filtered to what the caller can see."""
    await _create(client)
    response = await client.get("/v1/practices", headers=auth_headers(COORDINATOR))
    assert response.json()["total"] == 1
    response = await client.get("/v1/practices", headers=auth_headers(SUPERVISOR))
    assert response.json()["total"] == 0
    response = await client.get("/v1/practices?state=EN_CURSO", headers=auth_headers(ADMIN))
    assert response.json()["total"] == 0


async def test_audit_requires_super_admin(client):
    """Only SUPER_ADMIN may read the audit log."""
    await _create(client)
    response = await client.get("/v1/audit", headers=auth_headers(COORDINATOR))
    assert response.status_code == 403

    response = await client.get("/v1/audit?limit=1000", headers=auth_headers(ADMIN))
    assert response.status_code == 200
    page = response.json()
    assert page["limit"] == 100
    assert page["total"] == 1
    assert page["items"][0]["action"] == "PRACTICE_CREATED"


async def test_audit_records_forwarded_origin(client):
    """The request origin comes from X-Forwarded-For."""
    headers = {**auth_headers(COORDINATOR), "X-Forwarded-For": "203.0.113.7, 10.0.0.1"}
    await client.post("/v1/practices", json=_practice_body(), headers=headers)
    response = await client.get("/v1/audit", headers=auth_headers(ADMIN))
    assert response.json()["items"][0]["request_origin"] == "203.0.113.7"


async def test_evaluation_policy_endpoints(client):
    """Policy reads seed the default; updates are validated and versioned."""
    response = await client.get("/v1/admin/evaluation-policy", headers=auth_headers(COORDINATOR))
    assert response.status_code == 200
    assert response.json()["version"] == 1

    response = await client.put(
        "/v1/admin/evaluation-policy",
        json={"employer_weight_pct": 70, "report_weight_pct": 40},
        headers=auth_headers(ADMIN),
    )
    assert response.status_code == 422
    assert response.json()["error_code"] == "invalid_policy"

    response = await client.put(
        "/v1/admin/evaluation-policy",
        json={"employer_weight_pct": 60, "report_weight_pct": 40},
        headers=auth_headers(COORDINATOR),
    )
    assert response.status_code == 403

    response = await client.put(
        "/v1/admin/evaluation-policy",
        json={"employer_weight_pct": 60, "report_weight_pct": 40},
        headers=auth_headers(ADMIN),
    )
    assert response.status_code == 200
    assert response.json()["version"] == 2


async def test_criteria_catalog(client):
    """Criteria catalogs are exposed for form builders."""
    response = await client.get("/v1/admin/criteria", headers=auth_headers(EMPLOYER))
    assert len(response.json()["employer"]) == 7
    assert len(response.json()["report_rubric"]) == 7


async def test_alert_endpoints(client):
    """Coordinators see alerts for their campus; students cannot."""
    await _create(client)
    response = await client.get("/v1/alerts", headers=auth_headers(COORDINATOR))
    assert response.status_code == 200
    assert [a["id"] for a in response.json()] == ["practices-without-supervisor"]

    response = await client.get("/v1/alerts/pending-closure", headers=auth_headers(COORDINATOR))
    assert response.status_code == 200
    assert response.json()["total"] == 0

    response = await client.get("/v1/alerts", headers=auth_headers(STUDENT))
    assert response.status_code == 403


async def test_manual_alert_endpoint(client, accounts, notifier):
    """Manual alerts are sent once per subject within the window."""
    practice_id = await _create(client)
    body = {
        "practice_id": practice_id,
        "subject": "Informe pendiente",
        "message": "Recuerda subir tu informe final a la plataforma.",
    }
    response = await client.post("/v1/alerts/manual", json=body, headers=auth_headers(COORDINATOR))
    assert response.status_code == 201
    assert response.json()["recipient_user_id"] == STUDENT.user_id
    assert len(notifier.sent) == 1

    response = await client.post("/v1/alerts/manual", json=body, headers=auth_headers(COORDINATOR))
    assert response.status_code == 422
    assert response.json()["error_code"] == "duplicate_alert"

    response = await client.get(f"/v1/practices/{practice_id}/alerts", headers=auth_headers(COORDINATOR))
    assert len(response.json()) == 1


async def test_manual_alert_not_sent_when_write_fails(client, accounts, notifier, monkeypatch):
    """No notification leaves when the dispatch cannot be persisted."""
    practice_id = await _create(client)

    async def failing_audit(session, **values):
        raise PersistenceError("audit store unavailable")

    monkeypatch.setattr(repo, "create_audit_entry", failing_audit)
    body = {
        "practice_id": practice_id,
        "subject": "Informe pendiente",
        "message": "Recuerda subir tu informe final a la plataforma.",
    }
    response = await client.post("/v1/alerts/manual", json=body, headers=auth_headers(COORDINATOR))
    assert response.status_code == 503
    assert response.json()["error_code"] == "persistence_error"
    assert notifier.sent == []
