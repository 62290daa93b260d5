import json
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.core.auth import get_current_user
from app.db.api_client import api_connection, get_api
from app.main import app, lifespan

BILLING_MODULE = {"id": "m1", "key": "billing", "name": "Billing", "actions": ["read", "write"]}


def _bill(**overrides):
    bill = {
        "id": "bill-1",
        "studentId": "student-1",
        "studentName": "Ana Perez",
        "tuitionTypeSnapshot": {"lateFeeType": "fixed", "lateFeeValue": 25.0},
        "effectiveTuitionAmount": 500.0,
        "scholarshipAmount": 50.0,
        "discountAdjustments": [{"type": "percentage", "value": 10}],
        "extraCharges": [{"amount": 20.0, "description": "Books"}],
        "lateFeeAmount": 0.0,
        "finalAmount": 425.0,
        # Far enough ahead that no late fee is pending
        "dueDate": (datetime.now(timezone.utc) + timedelta(days=30)).isoformat(),
        "billStatus": "required",
        "paymentStatus": "pending",
    }
    bill.update(overrides)
    return bill


@pytest_asyncio.fixture
async def client(school_api, current_user, transport):
    transport.add("GET", "/modules/me", body=[BILLING_MODULE])
    app.dependency_overrides[get_current_user] = lambda: current_user
    app.dependency_overrides[get_api] = lambda: school_api
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_get_billing_amounts(client, transport):
    transport.add("GET", "/billing/bill-1", body=_bill())

    response = await client.get("/api/v1/billing/bill-1/amounts")

    assert response.status_code == 200
    data = response.json()
    assert data["discountAmount"] == pytest.approx(45.0)
    assert data["finalAmount"] == pytest.approx(425.0)
    assert data["remainingAmount"] == pytest.approx(425.0)
    assert data["hasPendingLateFee"] is False


@pytest.mark.asyncio
async def test_missing_billing_module_looks_like_not_found(client, transport):
    transport.add("GET", "/modules/me", body=[{"id": "m2", "key": "students", "name": "Students", "actions": ["read"]}])

    response = await client.get("/api/v1/billing/bill-1")

    assert response.status_code == 404
    assert response.json() == {"detail": "Not Found"}


@pytest.mark.asyncio
async def test_forbidden_from_api_is_reported_as_not_found(client, transport):
    transport.add("GET", "/billing/bill-1", status_code=403, body={"error": "Forbidden"})

    response = await client.get("/api/v1/billing/bill-1")

    assert response.status_code == 404
    assert response.json() == {"detail": "Not Found"}


@pytest.mark.asyncio
async def test_partial_payment_over_remaining_is_rejected(client, transport):
    transport.add("GET", "/billing/bill-1", body=_bill())

    response = await client.post(
        "/api/v1/billing/bill-1/record-partial-payment",
        json={"amount": 425.01, "paymentMethod": "manual"}
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Amount exceeds the remaining balance of 425.00"
    assert transport.sent("POST", "/billing/bill-1/record-partial-payment") == []


@pytest.mark.asyncio
async def test_partial_payment_is_forwarded(client, transport):
    transport.add("GET", "/billing/bill-1", body=_bill())
    transport.add(
        "POST", "/billing/bill-1/record-partial-payment",
        body=_bill(paidAmount=200.0, paymentStatus="partial_payment")
    )

    response = await client.post(
        "/api/v1/billing/bill-1/record-partial-payment",
        json={"amount": "200", "paymentMethod": "online"}
    )

    assert response.status_code == 200
    assert response.json()["paymentStatus"] == "partial_payment"
    sent = transport.sent("POST", "/billing/bill-1/record-partial-payment")[0]
    assert json.loads(sent.content) == {"amount": 200.0, "paymentMethod": "online"}


@pytest.mark.asyncio
async def test_editing_locked_bill_is_rejected(client, transport):
    transport.add("GET", "/billing/bill-1", body=_bill(isLocked=True))

    response = await client.put("/api/v1/billing/bill-1", json={"effectiveTuitionAmount": 400})

    assert response.status_code == 400
    assert "locked" in response.json()["detail"]


@pytest.mark.asyncio
async def test_api_validation_error_is_passed_through(client, transport):
    transport.add("GET", "/billing/bill-1", body=_bill())
    transport.add("PUT", "/billing/bill-1", status_code=400, body={"error": "Bill already sent"})

    response = await client.put("/api/v1/billing/bill-1", json={"billStatus": "sent"})

    assert response.status_code == 400
    assert response.json() == {"detail": "Bill already sent"}


@pytest.mark.asyncio
async def test_api_server_error_is_bad_gateway(client, transport):
    transport.add("GET", "/billing", status_code=500, body={"error": "Database unavailable"})

    response = await client.get("/api/v1/billing")

    assert response.status_code == 502
    assert response.json() == {"detail": "Database unavailable"}


@pytest.mark.asyncio
async def test_dashboard(client, transport):
    transport.add("GET", "/billing", body=[
        _bill(id="a", studentId="s1", isPaid=True, paymentStatus="paid", paidAmount=425.0),
        _bill(id="b", studentId="s2"),
    ])

    response = await client.get("/api/v1/billing/dashboard", params={"schoolYearId": "year-2024"})

    assert response.status_code == 200
    data = response.json()
    assert data["totalIncome"] == pytest.approx(425.0)
    assert data["expectedIncome"] == pytest.approx(850.0)
    assert data["totalStudentsNotPaid"] == 1
    assert transport.requests[-1].url.params["schoolYearId"] == "year-2024"


@pytest.mark.asyncio
async def test_preview_billing_update(client, transport):
    transport.add("GET", "/billing/bill-1", body=_bill())

    response = await client.post(
        "/api/v1/billing/bill-1/preview",
        json={"effectiveTuitionAmount": 600, "extraCharges": []}
    )

    assert response.status_code == 200
    # 600 - 50 - 55
    assert response.json()["finalAmount"] == pytest.approx(495.0)


@pytest.mark.asyncio
async def test_tuition_types_route_is_not_shadowed_by_record_id(client, transport):
    transport.add("GET", "/billing/tuition-types", body=[
        {"id": "tt-1", "name": "Primary", "baseAmount": 500, "lateFeeType": "fixed", "lateFeeValue": 25},
    ])

    response = await client.get("/api/v1/billing/tuition-types")

    assert response.status_code == 200
    assert response.json()[0]["baseAmount"] == 500


@pytest.mark.asyncio
async def test_create_scholarship_rejects_out_of_range_percentage(client, transport):
    response = await client.post(
        "/api/v1/billing/students/student-1/scholarship",
        json={"scholarshipType": "percentage", "scholarshipValue": "150"}
    )

    assert response.status_code == 400
    assert response.json() == {"detail": "Percentage must be between 0 and 100"}


@pytest.mark.asyncio
async def test_lifespan_opens_and_closes_api_client():
    async with lifespan(app):
        assert api_connection.client is not None
        assert str(api_connection.client.client.base_url).startswith("http")

    assert api_connection.client is None


@pytest.mark.asyncio
async def test_partial_payment_on_paid_bill_is_rejected(client, transport):
    transport.add("GET", "/billing/bill-1", body=_bill(isPaid=True, paymentStatus="paid"))

    response = await client.post(
        "/api/v1/billing/bill-1/record-partial-payment",
        json={"amount": 425, "paymentMethod": "manual"}
    )

    assert response.status_code == 400
    assert response.json() == {"detail": "This bill is already paid"}
    assert transport.sent("POST", "/billing/bill-1/record-partial-payment") == []


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [True, False])
async def test_boolean_payment_amount_is_rejected(client, transport, amount):
    transport.add("GET", "/billing/bill-1", body=_bill())

    response = await client.post(
        "/api/v1/billing/bill-1/record-partial-payment",
        json={"amount": amount, "paymentMethod": "manual"}
    )

    assert response.status_code == 422
    assert transport.sent("POST", "/billing/bill-1/record-partial-payment") == []


@pytest.mark.asyncio
async def test_amounts_report_delayed_status_once_overdue(client, transport):
    overdue = (datetime.now(timezone.utc) - timedelta(days=30)).isoformat()
    transport.add("GET", "/billing/bill-1", body=_bill(dueDate=overdue))

    response = await client.get("/api/v1/billing/bill-1/amounts")

    data = response.json()
    assert data["paymentStatus"] == "delayed"
    assert data["pendingLateFee"] == pytest.approx(25.0)
