import logging
from datetime import date
from typing import Any, Dict, List, Optional

from app.models.scholarship import RecurringCharge, Scholarship, TuitionType
from app.repositories.scholarship_repo import ScholarshipRepository, TuitionTypeRepository
from app.schemas.scholarship import (
    RecurringChargeForm,
    ScholarshipForm,
    ScholarshipSaveResponse,
    StudentBillingConfigPage,
    TuitionTypeCreate,
    TuitionTypeUpdate,
)
from app.services.billing_calculator import school_today
from app.utils.billing_validation import (
    BillingValidationError,
    clean_recurring_charges,
    validate_scholarship_value,
    validate_tuition_type,
)

logger = logging.getLogger(__name__)

# Query values meaning "no filter" in the students listing
ALL_FILTER = "all"


def build_scholarship_payload(form: ScholarshipForm, value: Optional[float]) -> dict:
    """
    Body sent to create or update a student's scholarship.

    Without a scholarship type both type and value are sent as explicit
    nulls: the API reads that as "remove the scholarship", while omitting
    the keys would leave the current one in place.
    """
    payload: Dict[str, Any] = {}
    if form.tuition_type_id:
        payload["tuitionTypeId"] = form.tuition_type_id

    if form.scholarship_type is not None:
        if value is None:
            raise BillingValidationError("Scholarship value is required")
        payload["scholarshipType"] = form.scholarship_type.value
        payload["scholarshipValue"] = value
    else:
        payload["scholarshipType"] = None
        payload["scholarshipValue"] = None

    payload["taxableBillRequired"] = form.taxable_bill_required
    return payload


class ScholarshipService:
    """Student scholarships and recurring charges."""

    def __init__(self, repo: ScholarshipRepository):
        self.repo = repo

    async def get_scholarship(self, student_id: str) -> Optional[Scholarship]:
        return await self.repo.get_scholarship(student_id)

    async def list_recurring_charges(self, student_id: str) -> List[RecurringCharge]:
        return await self.repo.list_recurring_charges(student_id)

    async def save_scholarship(
        self,
        student_id: str,
        form: ScholarshipForm,
        create: Optional[bool] = None,
        today: Optional[date] = None
    ) -> ScholarshipSaveResponse:
        """
        Create or update the scholarship, then sync recurring charges.

        ``create`` forces the verb; by default the current scholarship is
        looked up and updated when it exists.
        """
        value = validate_scholarship_value(form.scholarship_type, form.scholarship_value)
        payload = build_scholarship_payload(form, value)

        if create is None:
            existing = await self.repo.get_scholarship(student_id)
            create = existing is None or existing.id is None

        if create:
            saved = await self.repo.create_scholarship(student_id, payload)
        else:
            saved = await self.repo.update_scholarship(student_id, payload)
        logger.info("%s scholarship for student %s", "Created" if create else "Updated", student_id)

        if saved is None:
            saved = Scholarship(
                student_id=student_id,
                tuition_type_id=payload.get("tuitionTypeId"),
                scholarship_type=payload["scholarshipType"],
                scholarship_value=payload["scholarshipValue"],
                taxable_bill_required=payload["taxableBillRequired"]
            )

        if form.recurring_charges is None:
            charges = await self.repo.list_recurring_charges(student_id)
        else:
            charges = await self.sync_recurring_charges(
                student_id, form.recurring_charges, today or school_today()
            )

        return ScholarshipSaveResponse(scholarship=saved, recurring_charges=charges)

    async def sync_recurring_charges(
        self,
        student_id: str,
        forms: List[RecurringChargeForm],
        today: date
    ) -> List[RecurringCharge]:
        """
        Make the student's recurring charges match ``forms``.

        Known ids are updated, rows without an id are created and existing
        charges missing from ``forms`` are deleted. Incomplete rows are
        skipped; an existing charge whose row is incomplete is kept as is.
        """
        existing = await self.repo.list_recurring_charges(student_id)
        existing_ids = {charge.id for charge in existing if charge.id}
        kept_ids = {form.id for form in forms if form.id}

        result: List[RecurringCharge] = []
        for charge_id, charge in clean_recurring_charges(forms, today):
            if charge_id and charge_id in existing_ids:
                saved = await self.repo.update_recurring_charge(student_id, charge_id, charge)
            elif not charge_id:
                saved = await self.repo.create_recurring_charge(student_id, charge)
            else:
                # Unknown id: nothing to update
                continue
            result.append(saved or charge)

        for charge_id in existing_ids - kept_ids:
            await self.repo.delete_recurring_charge(student_id, charge_id)

        saved_ids = {charge.id for charge in result if charge.id}
        result.extend(
            charge for charge in existing
            if charge.id in kept_ids and charge.id not in saved_ids
        )
        return result

    async def list_students_config(
        self,
        search: Optional[str] = None,
        tuition_type_id: Optional[str] = None,
        has_scholarship: Optional[str] = None,
        sort_field: Optional[str] = None,
        sort_direction: str = "asc",
        offset: int = 0,
        limit: int = 10
    ) -> StudentBillingConfigPage:
        params = {
            "search": search or None,
            "tuitionTypeId": tuition_type_id if tuition_type_id != ALL_FILTER else None,
            "hasScholarship": has_scholarship if has_scholarship != ALL_FILTER else None,
            "sortField": sort_field,
            "sortDirection": sort_direction,
            "offset": offset,
            "limit": limit,
        }
        return await self.repo.list_students_config(params)


class TuitionTypeService:
    """Tuition types with their late fee rules."""

    def __init__(self, repo: TuitionTypeRepository):
        self.repo = repo

    async def list_tuition_types(self) -> List[TuitionType]:
        types = await self.repo.list_tuition_types()
        return sorted(types, key=lambda t: (t.display_order, t.name))

    async def get_tuition_type(self, tuition_type_id: str) -> Optional[TuitionType]:
        return await self.repo.get_tuition_type(tuition_type_id)

    async def create_tuition_type(self, data: TuitionTypeCreate) -> Optional[TuitionType]:
        validate_tuition_type(data)
        return await self.repo.create_tuition_type(data.to_api(exclude_none=True))

    async def update_tuition_type(
        self, tuition_type_id: str, data: TuitionTypeUpdate
    ) -> Optional[TuitionType]:
        if data.late_fee_value is not None and data.late_fee_type is None:
            # The percentage cap depends on the stored type
            current = await self.repo.get_tuition_type(tuition_type_id)
            if current is not None:
                data = data.model_copy(update={"late_fee_type": current.late_fee_type})
                validate_tuition_type(data)
                payload = data.to_api(exclude_unset=True, exclude={"late_fee_type"})
                return await self.repo.update_tuition_type(tuition_type_id, payload)

        validate_tuition_type(data)
        return await self.repo.update_tuition_type(
            tuition_type_id, data.to_api(exclude_unset=True)
        )

    async def delete_tuition_type(self, tuition_type_id: str) -> None:
        await self.repo.delete_tuition_type(tuition_type_id)
        logger.info("Deleted tuition type %s", tuition_type_id)
