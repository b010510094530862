"""
API Tests for the workflow, document and auth routers.

Runs the routers in-process against in-memory collaborators:
1. POST /api/auth/login and GET /api/auth/me
2. POST /api/workflows/{number}/transition - success and typed failures
3. GET /api/workflows/{number}/allowed and /history
4. GET /api/workflows/queue
5. POST /api/workflows/sweeps/* - role check
6. GET /api/documents/{number}
"""
import pytest
from decimal import Decimal
from fastapi import FastAPI
from fastapi.testclient import TestClient

from conftest import make_doc
from routes import (
    auth_router, documents_router, set_documents_store, workflows_router, set_workflows_deps,
)
from routes.auth import create_token
from services.auto_cancellation import AutoCancellationSweep
from services.reminders import ReminderSweep


@pytest.fixture
def client(workflow):
    auto_cancel = AutoCancellationSweep(workflow.engine, workflow.schedule, workflow.notifications, workflow.config)
    reminders = ReminderSweep(workflow.store, workflow.schedule, workflow.notifications, workflow.config)
    set_workflows_deps(workflow.engine, workflow.audit, auto_cancel, reminders)
    set_documents_store(workflow.store)

    app = FastAPI()
    app.include_router(auth_router, prefix="/api")
    app.include_router(workflows_router, prefix="/api")
    app.include_router(documents_router, prefix="/api")
    with TestClient(app) as test_client:
        yield test_client


def auth_header(username="buyer", roles=("procurement",)):
    return {"Authorization": f"Bearer {create_token(username, list(roles))}"}


class TestAuthEndpoints:

    def test_login_and_me(self, client):
        response = client.post("/api/auth/login", json={"username": "buyer", "password": "buyer"})
        assert response.status_code == 200
        token = response.json()["token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["roles"] == ["procurement"]

    def test_bad_credentials(self, client):
        response = client.post("/api/auth/login", json={"username": "buyer", "password": "nope"})
        assert response.status_code == 401

    def test_invalid_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401


class TestTransitionEndpoint:
    """POST /api/workflows/{number}/transition"""

    def test_success(self, client, workflow):
        workflow.store.add(make_doc())
        response = client.post(
            "/api/workflows/PR-1001/transition",
            json={"new_status": "In Queue", "notes": "queued"},
            headers=auth_header(),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["status"] == "In Queue"
        assert data["previousStatus"] == "Submitted"
        assert data["timestamp"]

    def test_requires_token(self, client, workflow):
        workflow.store.add(make_doc())
        response = client.post("/api/workflows/PR-1001/transition", json={"new_status": "In Queue"})
        assert response.status_code == 401

    def test_unauthorized_role(self, client, workflow):
        workflow.store.add(make_doc())
        response = client.post(
            "/api/workflows/PR-1001/transition",
            json={"new_status": "In Queue"},
            headers=auth_header("viewer", ("viewer",)),
        )
        assert response.status_code == 403
        assert response.json()["errorKind"] == "Unauthorized"

    def test_not_found(self, client):
        response = client.post(
            "/api/workflows/PR-404/transition", json={"new_status": "In Queue"}, headers=auth_header()
        )
        assert response.status_code == 404
        assert response.json()["errorKind"] == "NotFound"

    def test_invalid_transition(self, client, workflow):
        workflow.store.add(make_doc())
        response = client.post(
            "/api/workflows/PR-1001/transition", json={"new_status": "Ordered"}, headers=auth_header()
        )
        assert response.status_code == 409
        assert "In Queue" in response.json()["allowed"]

    def test_missing_fields(self, client, workflow):
        workflow.store.add(make_doc(status="In Queue", amount=Decimal("60000"), vendor="Unknown Co"))
        response = client.post(
            "/api/workflows/PR-1001/transition", json={"new_status": "PR Ready"}, headers=auth_header()
        )
        assert response.status_code == 422
        data = response.json()
        assert data["success"] is False
        assert data["errorKind"] == "MissingFields"
        assert "quotes_link" in data["missingFields"]


class TestReadEndpoints:

    def test_allowed(self, client, workflow):
        workflow.store.add(make_doc(status="Revision Required"))
        response = client.get("/api/workflows/PR-1001/allowed")
        assert response.json()["allowed"] == ["Canceled", "In Queue", "Submitted"]

    def test_allowed_not_found(self, client):
        assert client.get("/api/workflows/PR-404/allowed").status_code == 404

    def test_history(self, client, workflow):
        workflow.store.add(make_doc())
        client.post("/api/workflows/PR-1001/transition", json={"new_status": "In Queue"}, headers=auth_header())

        history = client.get("/api/workflows/PR-1001/history").json()["history"]
        assert len(history) == 1
        assert history[0]["detail"] == "PR-1001: Submitted -> In Queue"

    def test_queue(self, client, workflow):
        workflow.store.add(make_doc(number="PR-1"))
        workflow.store.add(make_doc(number="PR-2", urgent=True))
        for number in ("PR-1", "PR-2"):
            client.post(f"/api/workflows/{number}/transition", json={"new_status": "In Queue"},
                        headers=auth_header())

        data = client.get("/api/workflows/queue", params={"kind": "PR"}).json()
        assert data["total"] == 2
        assert [d["number"] for d in data["documents"]] == ["PR-2", "PR-1"]
        assert [d["queue_position"] for d in data["documents"]] == [1, 2]

    def test_get_document(self, client, workflow):
        workflow.store.add(make_doc())
        response = client.get("/api/documents/PR-1001")
        assert response.status_code == 200
        assert response.json()["amount"] == "1200.00"
        assert client.get("/api/documents/PR-404").status_code == 404


class TestSweepEndpoints:

    def test_requires_procurement_role(self, client):
        response = client.post("/api/workflows/sweeps/reminders", headers=auth_header("viewer", ("viewer",)))
        assert response.status_code == 403

    def test_runs_sweeps(self, client):
        reminders = client.post("/api/workflows/sweeps/reminders", headers=auth_header())
        assert reminders.status_code == 200
        assert reminders.json()["checked"] == 0

        auto_cancel = client.post("/api/workflows/sweeps/auto-cancel", headers=auth_header())
        assert auto_cancel.status_code == 200
        assert auto_cancel.json()["canceled"] == []
