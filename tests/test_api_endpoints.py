"""Integration tests for API endpoints.

These tests verify API endpoints work correctly end-to-end.
"""

from datetime import timedelta

import pytest


ENTITY_ACTOR = {"X-Actor-Id": "entity-user"}
AUTHORITY_ACTOR = {"X-Actor-Id": "authority-1"}
EVALUATOR_ACTOR = {"X-Actor-Id": "evaluator-1"}


@pytest.fixture
def api_entity(test_client):
    response = test_client.post("/entities", json={"name": "Acme Hospital", "evaluator_id": "eval-org-1"})
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def api_case(test_client, api_entity):
    response = test_client.post("/cases", json={"entity_id": api_entity["id"]}, headers=ENTITY_ACTOR)
    assert response.status_code == 201
    return response.json()


def _planning_case(test_client, api_case):
    case_id = api_case["id"]
    assert test_client.post(f"/cases/{case_id}/approve", headers=AUTHORITY_ACTOR).status_code == 200
    response = test_client.post(
        f"/cases/{case_id}/evaluator-response", json={"accepted": True}, headers=EVALUATOR_ACTOR
    )
    assert response.status_code == 200
    return response.json()


class TestHealthAndEntities:
    """Test service health and entity endpoints."""

    def test_health(self, test_client):
        response = test_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_create_entity(self, api_entity):
        assert api_entity["name"] == "Acme Hospital"
        assert api_entity["evaluator_id"] == "eval-org-1"

    def test_create_entity_requires_name(self, test_client):
        response = test_client.post("/entities", json={"name": ""})
        assert response.status_code == 422

    def test_documentary_review_ready_unknown_entity(self, test_client):
        response = test_client.post("/entities/missing/documentary-review-ready", headers=ENTITY_ACTOR)
        assert response.status_code == 404


class TestCaseEndpoints:
    """Test case submission and reads."""

    def test_create_case(self, api_case, api_entity):
        assert api_case["status"] == "PENDING_CASE_APPROVAL"
        assert api_case["case_type"] == "INITIAL"
        assert api_case["evaluator_id"] == api_entity["evaluator_id"]

    def test_create_case_requires_actor(self, test_client, api_entity):
        response = test_client.post("/cases", json={"entity_id": api_entity["id"]})
        assert response.status_code == 401

    def test_create_case_unknown_entity(self, test_client):
        response = test_client.post("/cases", json={"entity_id": "missing"}, headers=ENTITY_ACTOR)
        assert response.status_code == 404

    def test_get_case(self, test_client, api_case):
        response = test_client.get(f"/cases/{api_case['id']}")
        assert response.status_code == 200
        assert response.json()["id"] == api_case["id"]

    def test_get_unknown_case(self, test_client):
        assert test_client.get("/cases/does-not-exist").status_code == 404

    def test_case_tasks_and_events(self, test_client, api_case):
        tasks = test_client.get(f"/cases/{api_case['id']}/tasks").json()
        assert [t["type"] for t in tasks] == ["AUTHORITY_VALIDATE_CASE_SUBMISSION"]
        assert tasks[0]["assigned_roles"] == ["AUTHORITY"]

        events = test_client.get(f"/cases/{api_case['id']}/events").json()
        assert [e["type"] for e in events] == ["CASE_SUBMITTED"]
        assert events[0]["performed_by"] == "entity-user"


class TestTransitionEndpoint:
    """Rejected transitions map to 409 with the blocking guard."""

    def test_guard_failure_returns_409(self, test_client, api_case):
        response = test_client.post(
            f"/cases/{api_case['id']}/transition",
            json={"target": "PENDING_EVALUATOR_ACCEPTANCE"},
            headers=AUTHORITY_ACTOR,
        )
        assert response.status_code == 409
        assert response.json() == {
            "error": "GuardFailedError",
            "guard": "case_approved",
            "message": "guard failed: case_approved",
        }
        assert test_client.get(f"/cases/{api_case['id']}").json()["status"] == "PENDING_CASE_APPROVAL"

    def test_undeclared_transition_returns_409(self, test_client, api_case):
        response = test_client.post(
            f"/cases/{api_case['id']}/transition", json={"target": "COMPLETED"}, headers=AUTHORITY_ACTOR
        )
        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "TransitionNotPermittedError"
        assert body["guard"] is None

    def test_same_status_is_noop(self, test_client, api_case):
        response = test_client.post(
            f"/cases/{api_case['id']}/transition",
            json={"target": "PENDING_CASE_APPROVAL"},
            headers=AUTHORITY_ACTOR,
        )
        assert response.status_code == 200
        assert response.json()["created_task_ids"] == []

    def test_unknown_target_is_rejected(self, test_client, api_case):
        response = test_client.post(
            f"/cases/{api_case['id']}/transition", json={"target": "NOWHERE"}, headers=AUTHORITY_ACTOR
        )
        assert response.status_code == 422

    def test_command_in_wrong_status_returns_409(self, test_client, api_case):
        response = test_client.post(
            f"/cases/{api_case['id']}/opinion", json={"comment": "too early"}, headers=EVALUATOR_ACTOR
        )
        assert response.status_code == 409
        assert response.json()["error"] == "CaseStateError"


class TestWorkflowEndpoints:
    """Drive a case through planning over HTTP."""

    def test_approve_and_accept(self, test_client, api_case):
        case = _planning_case(test_client, api_case)
        assert case["status"] == "PLANNING"

        pending = test_client.get(f"/cases/{case['id']}/tasks", params={"task_status": "PENDING"}).json()
        assert sorted(t["type"] for t in pending) == ["SET_AUDIT_DATES", "UPLOAD_AUDIT_PLAN"]

    def test_refusal_without_reason_returns_400(self, test_client, api_case):
        case_id = api_case["id"]
        assert test_client.post(f"/cases/{case_id}/approve", headers=AUTHORITY_ACTOR).status_code == 200

        response = test_client.post(
            f"/cases/{case_id}/evaluator-response", json={"accepted": False}, headers=EVALUATOR_ACTOR
        )

        assert response.status_code == 400
        assert "reason" in response.json()["detail"]
        assert test_client.get(f"/cases/{case_id}").json()["status"] == "PENDING_EVALUATOR_ACCEPTANCE"

    def test_dates_and_plan_schedule_the_audit(self, test_client, api_case, sample_audit_dates_base):
        case = _planning_case(test_client, api_case)

        response = test_client.put(
            f"/cases/{case['id']}/audit-dates", json=sample_audit_dates_base, headers=EVALUATOR_ACTOR
        )
        assert response.status_code == 200
        assert response.json()["actual_start_date"] == sample_audit_dates_base["start_date"]

        response = test_client.post(
            f"/cases/{case['id']}/documents",
            json={"category": "PLAN", "storage_key": "plans/p.pdf", "file_name": "plan.pdf"},
            headers=EVALUATOR_ACTOR,
        )
        assert response.status_code == 201
        assert response.json()["category"] == "PLAN"
        assert test_client.get(f"/cases/{case['id']}").json()["status"] == "SCHEDULED"

    def test_inverted_audit_dates(self, test_client, api_case, clock):
        case = _planning_case(test_client, api_case)
        today = clock().date()
        response = test_client.put(
            f"/cases/{case['id']}/audit-dates",
            json={"start_date": today.isoformat(), "end_date": (today - timedelta(days=1)).isoformat()},
            headers=EVALUATOR_ACTOR,
        )
        assert response.status_code == 400

    def test_attestation_upload_rejected(self, test_client, api_case):
        response = test_client.post(
            f"/cases/{api_case['id']}/documents",
            json={"category": "ATTESTATION", "storage_key": "x.pdf"},
            headers=EVALUATOR_ACTOR,
        )
        assert response.status_code == 400

    def test_score_out_of_range(self, test_client, api_case):
        response = test_client.put(
            f"/cases/{api_case['id']}/score", json={"global_score": 120}, headers=EVALUATOR_ACTOR
        )
        assert response.status_code == 422

    def test_recheck_endpoint(self, test_client, api_case):
        response = test_client.post(f"/cases/{api_case['id']}/recheck", headers=AUTHORITY_ACTOR)
        assert response.status_code == 200
        body = response.json()
        assert body["completed_task_ids"] == []
        assert body["final_status"] == "PENDING_CASE_APPROVAL"


class TestTaskEndpoints:
    """Manual task completion."""

    def test_complete_task(self, test_client, api_case):
        task = test_client.get(f"/cases/{api_case['id']}/tasks").json()[0]

        response = test_client.post(f"/tasks/{task['id']}/complete", headers=AUTHORITY_ACTOR)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "COMPLETED"
        assert body["completed_by"] == "authority-1"
        # Completion alone does not approve the case.
        assert test_client.get(f"/cases/{api_case['id']}").json()["status"] == "PENDING_CASE_APPROVAL"

    def test_complete_unknown_task(self, test_client):
        response = test_client.post("/tasks/missing/complete", headers=AUTHORITY_ACTOR)
        assert response.status_code == 404

    def test_complete_requires_actor(self, test_client, api_case):
        task = test_client.get(f"/cases/{api_case['id']}/tasks").json()[0]
        assert test_client.post(f"/tasks/{task['id']}/complete").status_code == 401
