from datetime import datetime
from typing import Optional

from app.models.base import CamelModel
from app.models.billing import LateFeeType, ScholarshipType


class Scholarship(CamelModel):
    """Per-student billing configuration. One per student."""
    id: Optional[str] = None
    student_id: Optional[str] = None
    tuition_type_id: Optional[str] = None
    scholarship_type: Optional[ScholarshipType] = None
    scholarship_value: Optional[float] = None
    taxable_bill_required: bool = False

    def has_scholarship(self) -> bool:
        return self.scholarship_type is not None and self.scholarship_value is not None


class RecurringCharge(CamelModel):
    """Charge added to every bill of a student until it expires."""
    id: Optional[str] = None
    description: str
    amount: float
    expires_at: datetime


class TuitionType(CamelModel):
    id: Optional[str] = None
    name: str
    base_amount: float
    currency: str = "USD"
    late_fee_type: LateFeeType = LateFeeType.FIXED
    late_fee_value: float = 0.0
    display_order: int = 0


class StudentBillingRow(CamelModel):
    """A row of the students billing configuration listing."""
    student_id: str
    full_name: str
    email: Optional[str] = None
    tuition_type_id: Optional[str] = None
    tuition_type_name: str = ""
    tuition_amount: float = 0.0
    scholarship_type: Optional[ScholarshipType] = None
    scholarship_value: Optional[float] = None
    scholarship_display: str = ""
    recurring_charges_total: float = 0.0
    total_amount: float = 0.0
    taxable_bill_required: bool = False
