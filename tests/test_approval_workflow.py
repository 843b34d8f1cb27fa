from fastapi.testclient import TestClient
from src.api.deps import get_engine
from src.api.main import app
from src.services.approval_rules import create_approval_rules
from src.services.engine import ApprovalEngine
from src.services.storage import approval_store
import pytest

client = TestClient(app)

ADMIN_A = {"X-Actor-Id": "admin-a", "X-Actor-Name": "Admin A"}
ADMIN_B = {"X-Actor-Id": "admin-b", "X-Actor-Name": "Admin B"}
REQUESTER = {"X-Actor-Id": "u-100", "X-Actor-Name": "Ayse Demir"}


@pytest.fixture(autouse=True)
def api_engine():
    # Clear any existing approvals
    approval_store._records.clear()
    engine = ApprovalEngine(approval_store, base_currency="TRY", rules=create_approval_rules(0))
    app.dependency_overrides[get_engine] = lambda: engine
    yield engine
    app.dependency_overrides.clear()
    approval_store._records.clear()


def submit(**overrides):
    payload = {
        "scope": "facility-1",
        "module": "finance",
        "type": "budget_transfer",
        "title": "Q3 budget transfer",
    }
    payload.update(overrides)
    r = client.post("/approvals", json=payload, headers=REQUESTER)
    assert r.status_code == 201, r.text
    return r.json()


def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_approval_workflow_end_to_end():
    """Test complete approval workflow"""
    # Step 1: Submit a foreign-currency request
    created = submit(amount="500", currency="USD", exchange_rate="32")
    approval_id = created["id"]
    assert created["status"] == "pending"
    assert created["amount_in_base_currency"] == "16000.00"
    assert created["exchange_rate"] == "32"
    assert created["priority"] == "high"
    assert created["history"][0]["action"] == "submitted"
    assert created["requested_by"] == {"id": "u-100", "name": "Ayse Demir"}

    # Step 2: Check it shows up in the pending list
    r = client.get("/approvals", params={"scope": "facility-1", "status": "pending"})
    assert r.status_code == 200
    assert r.json()["total"] == 1
    assert r.json()["approvals"][0]["id"] == approval_id

    # Step 3: Admin A approves
    r = client.post(f"/approvals/{approval_id}/approve", json={"comment": "ok"}, headers=ADMIN_A)
    assert r.status_code == 200
    assert r.json()["status"] == "approved"
    assert r.json()["history"][-1]["actor"]["id"] == "admin-a"

    # Step 4: Admin B is too late
    r = client.post(f"/approvals/{approval_id}/approve", headers=ADMIN_B)
    assert r.status_code == 409
    assert r.json()["error"] == "AlreadyProcessed"

    # Step 5: The stored amount did not change
    r = client.get(f"/approvals/{approval_id}")
    assert r.json()["amount_in_base_currency"] == "16000.00"
    assert len(r.json()["history"]) == 2


def test_reject_workflow():
    """Test rejection workflow"""
    approval_id = submit()["id"]

    r = client.post(f"/approvals/{approval_id}/reject", json={"comment": "   "}, headers=ADMIN_A)
    assert r.status_code == 422
    assert r.json()["error"] == "ValidationError"

    r = client.post(f"/approvals/{approval_id}/reject", json={"comment": "Insufficient documentation"}, headers=ADMIN_A)
    assert r.status_code == 200
    assert r.json()["status"] == "rejected"
    assert r.json()["history"][-1]["comment"] == "Insufficient documentation"


def test_cancel_comment_and_reassign():
    approval_id = submit()["id"]

    r = client.post(f"/approvals/{approval_id}/comment", json={"comment": "Need details"}, headers=ADMIN_A)
    assert r.status_code == 200
    assert r.json()["history"][-1]["action"] == "commented"

    r = client.post(
        f"/approvals/{approval_id}/reassign",
        json={"approver": {"id": "cfo", "name": "CFO"}},
        headers=ADMIN_A
    )
    assert r.status_code == 200
    assert r.json()["current_approver"]["id"] == "cfo"

    r = client.post(f"/approvals/{approval_id}/cancel", headers=REQUESTER)
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"

    r = client.post(f"/approvals/{approval_id}/comment", json={"comment": "late"}, headers=ADMIN_A)
    assert r.status_code == 409


def test_unknown_approval_returns_404():
    r = client.get("/approvals/does-not-exist")
    assert r.status_code == 404
    assert r.json()["error"] == "NotFound"

    r = client.post("/approvals/does-not-exist/approve", headers=ADMIN_A)
    assert r.status_code == 404


def test_missing_actor_header():
    approval_id = submit()["id"]
    r = client.post(f"/approvals/{approval_id}/approve")
    assert r.status_code == 422


def test_invalid_draft_rejected():
    r = client.post(
        "/approvals",
        json={"module": "finance", "type": "transaction", "title": "x", "amount": "10"},
        headers=REQUESTER
    )
    assert r.status_code == 422
    assert r.json()["error"] == "ValidationError"

    r = client.post("/approvals", json={"module": "marketing", "type": "x", "title": "x"}, headers=REQUESTER)
    assert r.status_code == 422


def test_bulk_approve_partial_failure():
    a, b, c = (submit(title=t)["id"] for t in ("A", "B", "C"))
    client.post(f"/approvals/{b}/approve", headers=ADMIN_B)

    r = client.post("/approvals/bulk/approve", json={"ids": [a, b, c]}, headers=ADMIN_A)

    assert r.status_code == 200
    body = r.json()
    assert body["succeeded"] == [a, c]
    assert body["failed"][0]["id"] == b
    assert body["failed"][0]["reason"] == "AlreadyProcessed"
    assert body["processed"] == 2
    assert body["total"] == 3


def test_bulk_reject_requires_comment():
    a = submit()["id"]

    r = client.post("/approvals/bulk/reject", json={"ids": [a], "comment": ""}, headers=ADMIN_A)
    assert r.status_code == 422

    r = client.post("/approvals/bulk/reject", json={"ids": [a], "comment": "Duplicate"}, headers=ADMIN_A)
    assert r.json()["succeeded"] == [a]


def test_stats_ignore_list_filters():
    submit(priority="urgent")
    submit(module="hr", type="leave", title="Leave")
    done = submit(title="Done")["id"]
    client.post(f"/approvals/{done}/approve", headers=ADMIN_A)

    r = client.get("/approvals", params={"scope": "facility-1", "module": "hr"})
    assert r.json()["total"] == 1

    r = client.get("/approvals/stats", params={"scope": "facility-1"})
    assert r.status_code == 200
    assert r.json() == {"pending": 2, "approved": 1, "rejected": 0, "urgent": 1}


def test_list_filters():
    submit(title="Printer toner", amount="100", currency="TRY")
    submit(title="Laptop", amount="50", currency="USD", exchange_rate="32")

    r = client.get("/approvals", params={"min_amount": "1000"})
    assert [a["title"] for a in r.json()["approvals"]] == ["Laptop"]

    r = client.get("/approvals", params={"search": "TONER"})
    assert [a["title"] for a in r.json()["approvals"]] == ["Printer toner"]
