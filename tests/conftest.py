import json
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio

from app.db.api_client import SchoolApiClient
from app.db.cache import ListCache
from app.models.billing import BillingRecord
from app.models.user import CurrentUser

TEST_API_URL = "http://school-api.test/api/v1"


@pytest.fixture
def make_record():
    """Factory for billing records with sensible defaults."""
    def _make(**overrides):
        data = {
            "id": "bill-1",
            "studentId": "student-1",
            "studentName": "Ana Perez",
            "schoolYearId": "year-2024",
            "billingMonth": 1,
            "billingYear": 2024,
            "tuitionTypeSnapshot": {
                "tuitionTypeId": "tt-1",
                "tuitionTypeName": "Primary",
                "baseAmount": 500.0,
                "lateFeeType": "fixed",
                "lateFeeValue": 25.0,
            },
            "effectiveTuitionAmount": 500.0,
            "scholarshipAmount": 0.0,
            "discountAdjustments": [],
            "extraCharges": [],
            "lateFeeAmount": 0.0,
            "finalAmount": 500.0,
            "dueDate": datetime(2024, 1, 10),
            "billStatus": "required",
            "paymentStatus": "pending",
        }
        data.update(overrides)
        return BillingRecord(**data)
    return _make


@pytest.fixture
def current_user():
    return CurrentUser(id="user-1", email="admin@school.test", school_id="school-1", token="test-token")


class RecordingTransport:
    """Routes requests to canned responses and keeps every request seen."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, path, status_code=200, body=None):
        self.routes[(method, path)] = (status_code, body)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.replace("/api/v1", "", 1)
        status_code, body = self.routes.get((request.method, path), (404, {"error": "Not found"}))
        if body is None:
            return httpx.Response(status_code)
        return httpx.Response(status_code, content=json.dumps(body).encode(), headers={"Content-Type": "application/json"})

    def sent(self, method, path):
        return [
            r for r in self.requests
            if r.method == method and r.url.path.replace("/api/v1", "", 1) == path
        ]


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest_asyncio.fixture
async def school_api(transport):
    """SchoolApiClient talking to the recording transport."""
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(transport),
        base_url=TEST_API_URL
    )
    api = SchoolApiClient(http_client, cache=ListCache(ttl_seconds=30))
    yield api
    await api.aclose()


@pytest.fixture
def mock_repo():
    """Repository double; every coroutine method is an AsyncMock."""
    repo = MagicMock()
    for name in (
        "list_records", "get_record", "create_record", "bulk_create", "bulk_update",
        "update_record", "record_payment", "record_partial_payment", "apply_late_fee",
        "bulk_apply_late_fee",
        "get_scholarship", "create_scholarship", "update_scholarship",
        "list_recurring_charges", "create_recurring_charge", "update_recurring_charge",
        "delete_recurring_charge", "list_students_config",
        "list_tuition_types", "get_tuition_type", "create_tuition_type",
        "update_tuition_type", "delete_tuition_type",
    ):
        setattr(repo, name, AsyncMock())
    return repo
