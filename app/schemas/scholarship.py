from typing import List, Optional, Union
from datetime import date, datetime

from pydantic import Field

from app.models.base import CamelModel
from app.models.billing import LateFeeType, ScholarshipType
from app.models.scholarship import RecurringCharge, Scholarship, StudentBillingRow


class RecurringChargeForm(CamelModel):
    """A recurring charge as typed in the scholarship form.

    Incomplete rows are skipped on save rather than rejected.
    """
    id: Optional[str] = None
    description: str = ""
    amount: Union[float, str, None] = None
    expires_at: Union[date, datetime, str, None] = None


class ScholarshipForm(CamelModel):
    """Scholarship and recurring charges for one student, saved together."""
    tuition_type_id: Optional[str] = None
    scholarship_type: Optional[ScholarshipType] = None
    scholarship_value: Union[float, str, None] = None
    taxable_bill_required: bool = False
    # None leaves the student's recurring charges untouched
    recurring_charges: Optional[List[RecurringChargeForm]] = None


class ScholarshipSaveResponse(CamelModel):
    scholarship: Scholarship
    recurring_charges: List[RecurringCharge] = []


class TuitionTypeCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    base_amount: float
    currency: str = "USD"
    late_fee_type: LateFeeType
    late_fee_value: float
    display_order: Optional[int] = None


class TuitionTypeUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    base_amount: Optional[float] = None
    currency: Optional[str] = None
    late_fee_type: Optional[LateFeeType] = None
    late_fee_value: Optional[float] = None
    display_order: Optional[int] = None


class StudentBillingConfigPage(CamelModel):
    students: List[StudentBillingRow] = []
    total: int = 0
