"""
BillingRepository - billing records as served by the school API.

Every call is made with the caller's token; list reads go through the
shared cache and writes invalidate the /billing prefix.
"""

from typing import Any, Dict, List, Optional

from app.db.api_client import SchoolApiClient
from app.models.billing import BillingRecord

BILLING_PREFIX = "/billing"


class BillingRepository:
    """Repository for billing records."""

    def __init__(self, api: SchoolApiClient, token: str):
        self.api = api
        self.token = token

    async def list_records(self, filters: Optional[Dict[str, Any]] = None) -> List[BillingRecord]:
        """List bills, optionally filtered (studentId, billingMonth, ...)."""
        docs = await self.api.get_cached(BILLING_PREFIX, self.token, params=filters)
        return [BillingRecord(**doc) for doc in docs or []]

    async def get_record(self, record_id: str) -> Optional[BillingRecord]:
        doc = await self.api.get(f"{BILLING_PREFIX}/{record_id}", self.token)
        if doc:
            return BillingRecord(**doc)
        return None

    async def create_record(self, payload: dict) -> Optional[BillingRecord]:
        doc = await self._write("POST", BILLING_PREFIX, payload)
        return BillingRecord(**doc) if doc else None

    async def bulk_create(self, payload: dict) -> dict:
        return await self._write("POST", f"{BILLING_PREFIX}/bulk", payload) or {}

    async def bulk_update(self, payload: dict) -> dict:
        return await self._write("PUT", f"{BILLING_PREFIX}/bulk-update", payload) or {}

    async def update_record(self, record_id: str, payload: dict) -> Optional[BillingRecord]:
        doc = await self._write("PUT", f"{BILLING_PREFIX}/{record_id}", payload)
        return BillingRecord(**doc) if doc else None

    async def record_payment(self, record_id: str, payload: dict) -> Optional[BillingRecord]:
        doc = await self._write("POST", f"{BILLING_PREFIX}/{record_id}/record-payment", payload)
        return BillingRecord(**doc) if doc else None

    async def record_partial_payment(self, record_id: str, payload: dict) -> Optional[BillingRecord]:
        doc = await self._write(
            "POST", f"{BILLING_PREFIX}/{record_id}/record-partial-payment", payload
        )
        return BillingRecord(**doc) if doc else None

    async def apply_late_fee(self, record_id: str, payload: dict) -> Optional[BillingRecord]:
        doc = await self._write("POST", f"{BILLING_PREFIX}/{record_id}/apply-late-fee", payload)
        return BillingRecord(**doc) if doc else None

    async def bulk_apply_late_fee(self, payload: dict) -> dict:
        return await self._write("POST", f"{BILLING_PREFIX}/bulk-apply-late-fee", payload) or {}

    async def _write(self, method: str, path: str, payload: dict) -> Any:
        return await self.api.mutate(
            method, path, self.token, json_body=payload, invalidate=BILLING_PREFIX
        )
