from typing import Any, Dict, List, Optional

from app.db.api_client import SchoolApiClient
from app.models.scholarship import RecurringCharge, Scholarship, TuitionType
from app.schemas.scholarship import StudentBillingConfigPage

STUDENTS_PREFIX = "/billing/students"
TUITION_TYPES_PREFIX = "/billing/tuition-types"
# Tuition type changes alter amounts shown in every billing listing
BILLING_PREFIX = "/billing"


class ScholarshipRepository:
    """Per-student billing configuration: scholarship and recurring charges."""

    def __init__(self, api: SchoolApiClient, token: str):
        self.api = api
        self.token = token

    async def get_scholarship(self, student_id: str) -> Optional[Scholarship]:
        doc = await self.api.get(f"{STUDENTS_PREFIX}/{student_id}/scholarship", self.token)
        if doc:
            return Scholarship(**doc)
        return None

    async def create_scholarship(self, student_id: str, payload: dict) -> Optional[Scholarship]:
        doc = await self.api.mutate(
            "POST", f"{STUDENTS_PREFIX}/{student_id}/scholarship", self.token,
            json_body=payload, invalidate=STUDENTS_PREFIX
        )
        return Scholarship(**doc) if doc else None

    async def update_scholarship(self, student_id: str, payload: dict) -> Optional[Scholarship]:
        doc = await self.api.mutate(
            "PUT", f"{STUDENTS_PREFIX}/{student_id}/scholarship", self.token,
            json_body=payload, invalidate=STUDENTS_PREFIX
        )
        return Scholarship(**doc) if doc else None

    async def list_recurring_charges(self, student_id: str) -> List[RecurringCharge]:
        docs = await self.api.get(f"{STUDENTS_PREFIX}/{student_id}/recurring-charges", self.token)
        return [RecurringCharge(**doc) for doc in docs or []]

    async def create_recurring_charge(self, student_id: str, charge: RecurringCharge) -> Optional[RecurringCharge]:
        doc = await self.api.mutate(
            "POST", f"{STUDENTS_PREFIX}/{student_id}/recurring-charges", self.token,
            json_body=charge.to_api(exclude={"id"}), invalidate=STUDENTS_PREFIX
        )
        return RecurringCharge(**doc) if doc else None

    async def update_recurring_charge(
        self, student_id: str, charge_id: str, charge: RecurringCharge
    ) -> Optional[RecurringCharge]:
        doc = await self.api.mutate(
            "PUT", f"{STUDENTS_PREFIX}/{student_id}/recurring-charges/{charge_id}", self.token,
            json_body=charge.to_api(exclude={"id"}), invalidate=STUDENTS_PREFIX
        )
        return RecurringCharge(**doc) if doc else None

    async def delete_recurring_charge(self, student_id: str, charge_id: str) -> None:
        await self.api.mutate(
            "DELETE", f"{STUDENTS_PREFIX}/{student_id}/recurring-charges/{charge_id}", self.token,
            invalidate=STUDENTS_PREFIX
        )

    async def list_students_config(self, params: Dict[str, Any]) -> StudentBillingConfigPage:
        doc = await self.api.get_cached(f"{STUDENTS_PREFIX}/config", self.token, params=params)
        return StudentBillingConfigPage(**(doc or {}))


class TuitionTypeRepository:
    """Tuition types: base amount and late fee rules."""

    def __init__(self, api: SchoolApiClient, token: str):
        self.api = api
        self.token = token

    async def list_tuition_types(self) -> List[TuitionType]:
        docs = await self.api.get_cached(TUITION_TYPES_PREFIX, self.token)
        return [TuitionType(**doc) for doc in docs or []]

    async def get_tuition_type(self, tuition_type_id: str) -> Optional[TuitionType]:
        doc = await self.api.get(f"{TUITION_TYPES_PREFIX}/{tuition_type_id}", self.token)
        if doc:
            return TuitionType(**doc)
        return None

    async def create_tuition_type(self, payload: dict) -> Optional[TuitionType]:
        doc = await self.api.mutate(
            "POST", TUITION_TYPES_PREFIX, self.token,
            json_body=payload, invalidate=BILLING_PREFIX
        )
        return TuitionType(**doc) if doc else None

    async def update_tuition_type(self, tuition_type_id: str, payload: dict) -> Optional[TuitionType]:
        doc = await self.api.mutate(
            "PUT", f"{TUITION_TYPES_PREFIX}/{tuition_type_id}", self.token,
            json_body=payload, invalidate=BILLING_PREFIX
        )
        return TuitionType(**doc) if doc else None

    async def delete_tuition_type(self, tuition_type_id: str) -> None:
        await self.api.mutate(
            "DELETE", f"{TUITION_TYPES_PREFIX}/{tuition_type_id}", self.token,
            invalidate=BILLING_PREFIX
        )
