"""Integration tests for API endpoints"""

import uuid
import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from fintara_gateway.domain.models import NotificationChannel


def _headers(actor) -> dict:
    return {"X-User-Id": str(actor.id)}


@pytest.fixture
def application() -> dict:
    """Loan of 10,000,000 over 12 months applied for from central Jakarta"""
    return {"amount": 10000000, "tenor": 12, "latitude": -6.2088, "longitude": 106.8456}


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "fintara_loan_requests_created_total" in response.text


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "trace-123"})
    assert response.headers["X-Request-ID"] == "trace-123"


def test_simulate_default_needs_no_identity(client: TestClient, seed):
    response = client.post("/v1/loan-requests/simulate/default", json={"amount": 10000000, "tenor": 12})

    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["total_repayment"]) == Decimal("10300000")
    assert Decimal(data["estimated_installment"]) == Decimal("858334")


def test_simulate_unknown_plafond(client: TestClient, seed):
    response = client.post(
        "/v1/loan-requests/simulate",
        json={"plafond_name": "Platinum", "amount": 10000000, "tenor": 12},
    )

    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_preview_for_customer(client: TestClient, seed):
    response = client.post(
        "/v1/loan-requests/preview",
        json={"amount": 10000000, "tenor": 12},
        headers=_headers(seed.customer),
    )

    assert response.status_code == 200
    assert Decimal(response.json()["disbursed_amount"]) == Decimal("9900000")


def test_preview_unavailable_tenor(client: TestClient, seed):
    response = client.post(
        "/v1/loan-requests/preview",
        json={"amount": 10000000, "tenor": 9},
        headers=_headers(seed.customer),
    )

    assert response.status_code == 400
    assert response.json()["code"] == "tenor_unavailable"


def test_full_approval_flow(client: TestClient, seed, dispatcher, application):
    """Customer applies, marketing recommends, BM approves, back office disburses"""
    created = client.post("/v1/loan-requests", json=application, headers=_headers(seed.customer))
    assert created.status_code == 201
    loan_request = created.json()
    assert loan_request["status"] == "MARKETING_REVIEW"
    assert loan_request["marketing_id"] == str(seed.marketing_a.id)
    loan_id = loan_request["id"]

    queue = client.get("/v1/loan-requests/marketing/queue", headers=_headers(seed.marketing_a))
    assert [item["loan_request"]["id"] for item in queue.json()] == [loan_id]
    assert queue.json()[0]["customer_name"] == "Dewi Lestari"

    reviewed = client.put(
        f"/v1/loan-requests/{loan_id}/marketing-review",
        json={"status": "MARKETING_RECOMMENDED", "notes": "Documents complete", "summary_notes": "Stable income"},
        headers=_headers(seed.marketing_a),
    )
    assert reviewed.status_code == 200
    assert reviewed.json()["from_status"] == "MARKETING_REVIEW"
    assert reviewed.json()["status"] == "MARKETING_RECOMMENDED"

    approved = client.put(
        f"/v1/loan-requests/{loan_id}/branch-manager-review",
        json={"status": "BM_APPROVED"},
        headers=_headers(seed.branch_manager),
    )
    assert approved.status_code == 200

    detail = client.get(f"/v1/loan-requests/{loan_id}", headers=_headers(seed.back_office))
    assert detail.status_code == 200
    assert detail.json()["marketing_notes"]["summary_notes"] == "Stable income"
    assert detail.json()["branch_manager_notes"]["status"] == "BM_APPROVED"

    disbursed = client.put(
        f"/v1/loan-requests/{loan_id}/disbursement",
        json={"status": "DISBURSED"},
        headers=_headers(seed.back_office),
    )
    assert disbursed.status_code == 200
    assert disbursed.json()["status"] == "DISBURSED"

    schedule = client.get(f"/v1/loan-requests/{loan_id}/schedule", headers=_headers(seed.customer))
    assert schedule.status_code == 200
    installments = schedule.json()["installments"]
    assert len(installments) == 12
    assert sum(Decimal(i["amount"]) for i in installments) == Decimal("12400000")

    history = client.get("/v1/loan-requests/history?group=APPROVED", headers=_headers(seed.customer))
    assert [lr["id"] for lr in history.json()] == [loan_id]

    # BM approval push, then disbursement push and email
    assert [n.channel for n in dispatcher.sent] == [
        NotificationChannel.PUSH,
        NotificationChannel.PUSH,
        NotificationChannel.EMAIL,
    ]


def test_duplicate_open_request_returns_conflict(client: TestClient, seed, application):
    client.post("/v1/loan-requests", json=application, headers=_headers(seed.customer))

    response = client.post("/v1/loan-requests", json=application, headers=_headers(seed.customer))

    assert response.status_code == 409
    assert response.json()["code"] == "duplicate_open_request"


def test_in_progress_lists_open_requests(client: TestClient, seed, application):
    created = client.post("/v1/loan-requests", json=application, headers=_headers(seed.customer)).json()

    response = client.get("/v1/loan-requests/in-progress", headers=_headers(seed.customer))

    assert response.status_code == 200
    assert [lr["id"] for lr in response.json()] == [created["id"]]


def test_unassigned_agent_gets_forbidden_envelope(client: TestClient, seed, application):
    loan_id = client.post("/v1/loan-requests", json=application, headers=_headers(seed.customer)).json()["id"]

    response = client.put(
        f"/v1/loan-requests/{loan_id}/marketing-review",
        json={"status": "MARKETING_RECOMMENDED"},
        headers=_headers(seed.marketing_b),
    )

    assert response.status_code == 403
    body = response.json()
    assert body["code"] == "forbidden"
    assert set(body) == {"code", "message", "details"}


def test_disbursement_before_approval_is_not_ready(client: TestClient, seed, application):
    loan_id = client.post("/v1/loan-requests", json=application, headers=_headers(seed.customer)).json()["id"]

    response = client.put(
        f"/v1/loan-requests/{loan_id}/disbursement",
        json={"status": "DISBURSED"},
        headers=_headers(seed.back_office),
    )

    assert response.status_code == 409
    assert response.json()["code"] == "not_ready"


def test_invalid_target_status(client: TestClient, seed, application):
    loan_id = client.post("/v1/loan-requests", json=application, headers=_headers(seed.customer)).json()["id"]

    response = client.put(
        f"/v1/loan-requests/{loan_id}/marketing-review",
        json={"status": "APPROVED"},
        headers=_headers(seed.marketing_a),
    )

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_input"


def test_unknown_loan_request(client: TestClient, seed):
    response = client.get(f"/v1/loan-requests/{uuid.uuid4()}", headers=_headers(seed.branch_manager))

    assert response.status_code == 404


def test_unknown_user_is_forbidden(client: TestClient, seed):
    response = client.get("/v1/loan-requests/in-progress", headers={"X-User-Id": str(uuid.uuid4())})

    assert response.status_code == 403


def test_malformed_user_id(client: TestClient, seed):
    response = client.get("/v1/loan-requests/in-progress", headers={"X-User-Id": "not-a-uuid"})

    assert response.status_code == 400


def test_missing_identity_header(client: TestClient, seed):
    response = client.get("/v1/loan-requests/in-progress")

    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


@pytest.mark.parametrize("tenor", [0, -1])
def test_non_positive_tenor_is_rejected_as_invalid_input(client: TestClient, seed, tenor):
    response = client.post("/v1/loan-requests/simulate/default", json={"amount": 10000000, "tenor": tenor})

    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "validation_error"
    assert body["details"]["errors"][0]["loc"] == ["body", "tenor"]
