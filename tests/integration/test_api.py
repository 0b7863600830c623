"""Integration tests for API endpoints"""

import pytest
from fastapi.testclient import TestClient
from loan_tracker.api.main import create_app
from loan_tracker.domain.exceptions import StorageUnavailableError
from loan_tracker.infrastructure.storage.memory import InMemoryBackend
from loan_tracker.infrastructure.storage.selector import StorageSelector


LOAN_PAYLOAD = {
    "name": "Ana Reyes",
    "contact": "+63 912 345 6789",
    "address": "12 Mabini St",
    "loanAmount": 10000,
    "term": 12,
    "interestRate": 5,
    "interestType": "monthly",
    "nextDueDate": "2024-01-15",
    "monthlyPayment": 200,
}


@pytest.fixture(params=["client", "db_client"])
def api(request) -> TestClient:
    """Run each API test against both storage backends"""
    return request.getfixturevalue(request.param)


def create_loan(api: TestClient, **overrides) -> dict:
    response = api.post("/api/loans", json={**LOAN_PAYLOAD, **overrides})
    assert response.status_code == 201
    return response.json()


def get_loan(api: TestClient, loan_id: str) -> dict:
    return next(loan for loan in api.get("/api/loans").json() if loan["_id"] == loan_id)


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["storage"] == "memory"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    create_loan(client)
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "loan_events_total" in response.text


def test_request_id_header(client: TestClient):
    response = client.get("/api/loans", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
    assert client.get("/api/loans").headers["X-Request-ID"]


def test_cors_preflight(client: TestClient):
    response = client.options(
        "/api/loans",
        headers={"Origin": "http://example.com", "Access-Control-Request-Method": "PUT"},
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"


# Create / list


def test_create_loan_initial_balance(api: TestClient):
    """10000 at 5% monthly over 12 months"""
    loan = create_loan(api)

    assert loan["_id"]
    assert loan["remainingBalance"] == 16000
    assert loan["loanAmount"] == 10000
    assert loan["interestType"] == "monthly"
    assert loan["nextDueDate"] == "2024-01-15"
    assert loan["payments"] == []
    assert loan["penalties"] == []
    assert loan["totalPenalties"] == 0
    assert loan["createdAt"]


def test_create_loan_zero_term_doubles_principal(api: TestClient):
    loan = create_loan(api, loanAmount=500, interestRate=10, term=0)
    assert loan["remainingBalance"] == 1000


def test_create_loan_coerces_malformed_numbers(api: TestClient):
    loan = create_loan(api, loanAmount="abc", term="", interestRate=None, monthlyPayment="x")

    assert loan["loanAmount"] == 0
    assert loan["term"] == 0
    assert loan["monthlyPayment"] == 0
    assert loan["remainingBalance"] == 0


@pytest.mark.parametrize("amount", ["Infinity", "-Infinity"])
def test_create_loan_non_finite_amount_becomes_zero(api: TestClient, amount: str):
    loan = create_loan(api, loanAmount=amount, interestRate=0, monthlyPayment=amount)

    assert loan["loanAmount"] == 0
    assert loan["monthlyPayment"] == 0
    assert loan["remainingBalance"] == 0
    assert get_loan(api, loan["_id"])["remainingBalance"] == 0


@pytest.mark.parametrize("missing", ["name", "contact", "address"])
def test_create_loan_requires_borrower_fields(api: TestClient, missing: str):
    payload = {k: v for k, v in LOAN_PAYLOAD.items() if k != missing}
    response = api.post("/api/loans", json=payload)

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing required borrower fields."
    assert api.get("/api/loans").json() == []


def test_list_loans_newest_first(api: TestClient):
    first = create_loan(api, name="First")
    second = create_loan(api, name="Second")

    loans = api.get("/api/loans").json()
    assert [loan["_id"] for loan in loans] == [second["_id"], first["_id"]]


# Payments


def test_record_payment(api: TestClient):
    loan = create_loan(api)

    response = api.put(f"/api/loans?id={loan['_id']}", json={"payment": {"amount": 2000, "note": "cash"}})

    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Payment added successfully."
    assert data["remainingBalance"] == 14000

    stored = get_loan(api, loan["_id"])
    assert stored["remainingBalance"] == 14000
    assert [p["amount"] for p in stored["payments"]] == [2000]
    assert stored["payments"][0]["note"] == "cash"
    assert stored["nextDueDate"] == "2024-01-15"


def test_record_payment_clamps_overpayment(api: TestClient):
    loan = create_loan(api, loanAmount=1000, interestRate=0)
    url = f"/api/loans?id={loan['_id']}"

    assert api.put(url, json={"payment": {"amount": 1000}}).json()["remainingBalance"] == 0
    assert api.put(url, json={"payment": {"amount": 50}}).json()["remainingBalance"] == 0


def test_record_advance_payment(api: TestClient):
    """450 against a 200 installment moves the due date two months"""
    loan = create_loan(api)

    response = api.put(
        f"/api/loans?id={loan['_id']}",
        json={"payment": {"amount": 450, "date": "2024-01-10T09:00:00Z"}, "updateDueDate": True},
    )

    data = response.json()
    assert response.status_code == 200
    assert data["nextDueDate"] == "2024-03-15"
    assert data["lastAdvancePayment"]["monthsCovered"] == 2
    assert data["lastAdvancePayment"]["originalDueDate"] == "2024-01-15"

    stored = get_loan(api, loan["_id"])
    assert stored["nextDueDate"] == "2024-03-15"
    assert stored["lastAdvancePayment"]["newDueDate"] == "2024-03-15"


def test_advance_flag_inside_payment(api: TestClient):
    loan = create_loan(api)

    response = api.put(
        f"/api/loans?id={loan['_id']}",
        json={"payment": {"amount": 200, "updateDueDate": True}},
    )

    assert response.json()["nextDueDate"] == "2024-02-15"


def test_advance_payment_beyond_calendar_is_recorded(api: TestClient):
    loan = create_loan(api, loanAmount=200000, interestRate=0, monthlyPayment=1)

    response = api.put(
        f"/api/loans?id={loan['_id']}",
        json={"payment": {"amount": 120000}, "updateDueDate": True},
    )

    assert response.status_code == 200
    assert response.json()["remainingBalance"] == 80000
    assert response.json()["nextDueDate"] == "9999-12-31"

    stored = get_loan(api, loan["_id"])
    assert [p["amount"] for p in stored["payments"]] == [120000]
    assert stored["nextDueDate"] == "9999-12-31"


def test_partial_payment_keeps_due_date(api: TestClient):
    loan = create_loan(api)

    response = api.put(
        f"/api/loans?id={loan['_id']}",
        json={"payment": {"amount": 150}, "updateDueDate": True},
    )

    assert "nextDueDate" not in response.json()
    stored = get_loan(api, loan["_id"])
    assert stored["nextDueDate"] == "2024-01-15"
    assert stored["lastAdvancePayment"] is None


@pytest.mark.parametrize("amount", [-5, 0, 2_000_000_000, "abc", None])
def test_record_payment_rejects_invalid_amount(api: TestClient, amount):
    loan = create_loan(api)

    response = api.put(f"/api/loans?id={loan['_id']}", json={"payment": {"amount": amount}})

    assert response.status_code == 400
    stored = get_loan(api, loan["_id"])
    assert stored["payments"] == []
    assert stored["remainingBalance"] == 16000


def test_record_payment_rejects_nan(client: TestClient):
    loan = create_loan(client)

    response = client.put(
        f"/api/loans?id={loan['_id']}",
        content='{"payment": {"amount": NaN}}',
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Payment amount must be a valid number."


# Penalties


def test_record_penalties(api: TestClient):
    loan = create_loan(api)
    url = f"/api/loans?id={loan['_id']}"

    api.put(url, json={"penalty": {"amount": 100}})
    response = api.put(url, json={"penalty": {"amount": 50, "reason": "Late fee"}})

    data = response.json()
    assert data["message"] == "Penalty added successfully."
    assert data["totalPenalties"] == 150
    assert data["remainingBalance"] == 16150

    stored = get_loan(api, loan["_id"])
    assert [(p["amount"], p["reason"]) for p in stored["penalties"]] == [(100, "Penalty"), (50, "Late fee")]
    assert stored["penalties"][0]["type"] == "penalty"


def test_penalty_reopens_settled_loan(api: TestClient):
    loan = create_loan(api, loanAmount=1000, interestRate=0)
    url = f"/api/loans?id={loan['_id']}"

    api.put(url, json={"payment": {"amount": 1000}})
    response = api.put(url, json={"penalty": {"amount": 40}})

    assert response.json()["remainingBalance"] == 40


# Borrower updates


def test_borrower_update_recomputes_balance(api: TestClient):
    loan = create_loan(api)
    url = f"/api/loans?id={loan['_id']}"
    api.put(url, json={"payment": {"amount": 1000}})

    response = api.put(url, json={"borrowerUpdate": {"interestRate": 2}})

    assert response.status_code == 200
    assert response.json()["message"] == "Borrower updated successfully."
    # 10000 + 10000 * 0.02 * 12 - 1000
    assert response.json()["remainingBalance"] == pytest.approx(11400)

    stored = get_loan(api, loan["_id"])
    assert stored["loanAmount"] == 10000
    assert stored["term"] == 12
    assert stored["interestRate"] == 2
    assert len(stored["payments"]) == 1


def test_borrower_update_details_only(api: TestClient):
    loan = create_loan(api)
    url = f"/api/loans?id={loan['_id']}"

    response = api.put(url, json={"borrowerUpdate": {"name": "Ana R. Cruz", "nextDueDate": "2024-06-01", "contact": ""}})

    assert response.json()["remainingBalance"] == 16000
    stored = get_loan(api, loan["_id"])
    assert stored["name"] == "Ana R. Cruz"
    assert stored["contact"] == LOAN_PAYLOAD["contact"]
    assert stored["nextDueDate"] == "2024-06-01"


def test_empty_borrower_update_is_idempotent(api: TestClient):
    loan = create_loan(api)
    url = f"/api/loans?id={loan['_id']}"
    api.put(url, json={"payment": {"amount": 123.45}})
    before = get_loan(api, loan["_id"])["remainingBalance"]

    response = api.put(url, json={"borrowerUpdate": {}})

    assert response.json()["remainingBalance"] == before


# Request errors


def test_update_requires_id(api: TestClient):
    response = api.put("/api/loans", json={"payment": {"amount": 10}})
    assert response.status_code == 400
    assert response.json()["detail"] == "Missing borrower id."


def test_update_requires_known_intent(api: TestClient):
    loan = create_loan(api)
    response = api.put(f"/api/loans?id={loan['_id']}", json={"refund": {"amount": 10}})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid request."


@pytest.mark.parametrize(
    "body",
    [
        {"payment": {"amount": 10, "date": "not-a-date"}},
        {"payment": {"amount": 10}, "updateDueDate": "sometimes"},
        {"borrowerUpdate": {"name": ["Ana"]}},
    ],
)
def test_malformed_update_body_is_bad_request(api: TestClient, body: dict):
    loan = create_loan(api)

    response = api.put(f"/api/loans?id={loan['_id']}", json=body)

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid request."
    assert get_loan(api, loan["_id"])["payments"] == []


def test_malformed_create_body_is_bad_request(api: TestClient):
    response = api.post("/api/loans", json={**LOAN_PAYLOAD, "name": {"first": "Ana"}, "nextDueDate": "soon"})

    assert response.status_code == 400
    assert api.get("/api/loans").json() == []


def test_update_unknown_loan(api: TestClient):
    fake_id = "00000000-0000-0000-0000-000000000000"
    response = api.put(f"/api/loans?id={fake_id}", json={"penalty": {"amount": 10}})
    assert response.status_code == 404
    assert response.json()["detail"] == "Borrower not found."


def test_delete_loan(api: TestClient):
    loan = create_loan(api)

    response = api.delete(f"/api/loans?id={loan['_id']}")
    assert response.status_code == 200
    assert response.json()["message"] == "Borrower deleted successfully."

    assert api.get("/api/loans").json() == []
    assert api.delete(f"/api/loans?id={loan['_id']}").status_code == 404
    assert api.delete("/api/loans").status_code == 400


# Storage failover


class BrokenBackend(InMemoryBackend):
    """Primary that answers pings but fails every read"""

    name = "database"

    def list_loans(self):
        raise StorageUnavailableError("connection reset by peer")


def test_storage_failure_switches_to_fallback():
    fallback = InMemoryBackend()
    selector = StorageSelector(fallback=fallback, primary=BrokenBackend(), reconnect_interval=60)
    client = TestClient(create_app(storage_selector=selector))

    response = client.get("/api/loans")
    assert response.status_code == 503

    response = client.get("/api/loans")
    assert response.status_code == 200
    assert response.json() == []
    assert client.get("/health").json()["storage"] == "memory"
