from datetime import date, datetime
from typing import List, Optional, Union

from pydantic import Field, StrictFloat, StrictInt

from app.models.base import CamelModel
from app.models.billing import (
    BillStatus,
    DiscountAdjustment,
    ExtraCharge,
    PaymentMethod,
    PaymentStatus,
)


class PartialPaymentRequest(CamelModel):
    """Request body to record part of a bill as paid.

    ``amount`` is accepted as text too so a non-numeric value gets the same
    "invalid amount" message as a non-positive one.
    """
    amount: Union[StrictFloat, StrictInt, str, None] = None
    payment_method: PaymentMethod = PaymentMethod.MANUAL
    payment_note: Optional[str] = None


class RecordPaymentRequest(CamelModel):
    """Request body to mark a bill fully paid."""
    payment_method: PaymentMethod = PaymentMethod.MANUAL
    payment_note: Optional[str] = None


class BillingRecordUpdate(CamelModel):
    """Edit of a bill. Unset fields are left untouched."""
    bill_status: Optional[BillStatus] = None
    effective_tuition_amount: Optional[float] = None
    discount_adjustments: Optional[List[DiscountAdjustment]] = None
    extra_charges: Optional[List[ExtraCharge]] = None
    payment_note: Optional[str] = None


class ApplyLateFeeRequest(CamelModel):
    late_fee_amount: Optional[float] = Field(None, ge=0)


class BulkApplyLateFeeRequest(CamelModel):
    billing_record_ids: Optional[List[str]] = None
    due_date: Optional[str] = None


class BillCreate(CamelModel):
    student_id: str = ""
    school_year_id: str = ""
    billing_month: int
    billing_year: int
    base_amount: Optional[float] = None


class BulkBillCreate(CamelModel):
    school_year_id: str = ""
    billing_month: int
    billing_year: int
    student_ids: Optional[List[str]] = None


class BulkBillUpdate(CamelModel):
    school_year_id: str = ""
    billing_month: int
    billing_year: int


class BillingBreakdown(CamelModel):
    """Every term of the amount owed on a bill, as of ``as_of``."""
    record_id: Optional[str] = None
    as_of: date
    effective_tuition_amount: float
    scholarship_amount: float
    discount_amount: float
    extra_amount: float
    amount_after_discounts: float
    applied_late_fee: float
    pending_late_fee: float
    final_amount: float
    paid_amount: float
    remaining_amount: float
    is_overdue: bool
    has_pending_late_fee: bool
    payment_status: PaymentStatus


class DashboardSummary(CamelModel):
    total_income: float = 0.0
    expected_income: float = 0.0
    missing_income: float = 0.0
    total_students_paid: int = 0
    total_students_not_paid: int = 0
    late_fees_applied: float = 0.0  # applied + pending


class PaymentHistoryEntry(CamelModel):
    date: datetime
    amount: float
    payment_method: PaymentMethod = PaymentMethod.MANUAL
    payment_note: Optional[str] = None
    paid_by: Optional[str] = None


class LateFeeSweepResult(CamelModel):
    """Outcome of applying late fees to every overdue bill."""
    overdue_count: int = 0
    applied: bool = False
