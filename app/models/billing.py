"""
Billing record model - one monthly tuition bill for a student.

Design principles:
- Records are produced by the school API; this service reads them and
  sends mutations (payments, edits, late fees) back
- The stored finalAmount may lag behind reality: a late fee that is due
  but not yet applied is only visible through the calculator
- Amounts are plain currency units (floats), as the API sends them
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field, field_validator

from app.models.base import CamelModel


class AdjustmentType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


# Late fees and scholarships share the same two kinds
LateFeeType = AdjustmentType
ScholarshipType = AdjustmentType


class BillStatus(str, Enum):
    NOT_REQUIRED = "not_required"
    REQUIRED = "required"
    SENT = "sent"
    CANCELLED = "cancelled"  # legacy, still emitted by older records


class PaymentStatus(str, Enum):
    PENDING = "pending"
    DELAYED = "delayed"
    PARTIAL_PAYMENT = "partial_payment"
    PAID = "paid"


class PaymentMethod(str, Enum):
    MANUAL = "manual"
    ONLINE = "online"
    OTHER = "other"


class DiscountAdjustment(CamelModel):
    type: AdjustmentType
    value: float
    description: Optional[str] = None


class ExtraCharge(CamelModel):
    amount: float
    description: Optional[str] = None


class TuitionTypeSnapshot(CamelModel):
    """Tuition type as it was when the bill was generated."""
    tuition_type_id: Optional[str] = None
    tuition_type_name: Optional[str] = None
    base_amount: Optional[float] = None
    late_fee_type: LateFeeType = LateFeeType.FIXED
    late_fee_value: float = 0.0


class PaymentTransaction(CamelModel):
    id: Optional[str] = None
    amount: float
    payment_method: PaymentMethod = PaymentMethod.MANUAL
    payment_note: Optional[str] = None
    paid_by: Optional[str] = None
    paid_by_name: Optional[str] = None
    paid_at: datetime
    created_at: Optional[datetime] = None


class AuditMetadata(CamelModel):
    paid_by: Optional[str] = None
    paid_by_name: Optional[str] = None


class BillingRecord(CamelModel):
    """
    Monthly bill.

    Invariants (enforced by the calculator, not stored):
    - actual final amount = tuition - scholarship - discounts + extras
      + applied late fee + pending late fee
    - remaining = actual final amount - paid amount
    """
    id: Optional[str] = None
    student_id: Optional[str] = None
    student_name: Optional[str] = None
    school_year_id: Optional[str] = None
    billing_month: Optional[int] = None
    billing_year: Optional[int] = None

    tuition_type_snapshot: TuitionTypeSnapshot = Field(default_factory=TuitionTypeSnapshot)

    # Financial
    effective_tuition_amount: float
    scholarship_amount: float = 0.0
    discount_adjustments: List[DiscountAdjustment] = []
    extra_charges: List[ExtraCharge] = []
    late_fee_amount: float = 0.0  # already applied; 0 until applied
    final_amount: float = 0.0     # as stored by the API
    paid_amount: Optional[float] = None

    # Tracking
    due_date: datetime
    is_paid: bool = False
    is_locked: bool = False
    bill_status: BillStatus = BillStatus.REQUIRED
    payment_status: PaymentStatus = PaymentStatus.PENDING
    paid_at: Optional[datetime] = None
    payment_method: Optional[PaymentMethod] = None
    payment_note: Optional[str] = None
    audit_metadata: Optional[AuditMetadata] = None
    payment_transactions: List[PaymentTransaction] = []

    @field_validator("payment_status", mode="before")
    @classmethod
    def _legacy_unpaid(cls, value):
        # Older records report "unpaid" instead of pending/delayed
        if value == "unpaid":
            return PaymentStatus.PENDING
        return value

    def paid_so_far(self) -> float:
        return self.paid_amount or 0.0
