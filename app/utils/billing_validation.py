"""Billing validation utilities."""
import math
from datetime import date, datetime
from typing import Any, List, Optional, Tuple

from app.models.billing import AdjustmentType, BillingRecord, BillStatus, PaymentStatus
from app.models.scholarship import RecurringCharge
from app.schemas.billing import BillCreate, BillingRecordUpdate
from app.schemas.scholarship import (
    RecurringChargeForm,
    TuitionTypeCreate,
    TuitionTypeUpdate,
)


class BillingValidationError(Exception):
    """Custom exception for billing validation errors."""
    pass


def parse_amount(value: Any, message: str = "Invalid amount") -> float:
    """Parse a user-typed number, raising with ``message`` when it isn't one."""
    if value is None or isinstance(value, bool):
        raise BillingValidationError(message)
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise BillingValidationError(message)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise BillingValidationError(message)
    if math.isnan(number) or math.isinf(number):
        raise BillingValidationError(message)
    return number


def validate_payable(record: BillingRecord) -> None:
    """Payments are only taken on bills that are still open."""
    if record.is_paid or record.payment_status == PaymentStatus.PAID:
        raise BillingValidationError("This bill is already paid")
    if record.bill_status == BillStatus.CANCELLED:
        raise BillingValidationError("Cannot record a payment on a cancelled bill")


def validate_partial_payment_amount(raw_amount: Any, remaining: float) -> float:
    """
    A partial payment must satisfy 0 < amount <= remaining.

    Returns the parsed amount.
    """
    amount = parse_amount(raw_amount, "Invalid amount")
    if amount <= 0:
        raise BillingValidationError("Invalid amount")
    if amount > remaining:
        raise BillingValidationError(
            f"Amount exceeds the remaining balance of {remaining:.2f}"
        )
    return amount


def validate_scholarship_value(
    scholarship_type: Optional[AdjustmentType],
    raw_value: Any
) -> Optional[float]:
    """
    Check a scholarship value against its type.

    Empty input means "no value". Any value must be >= 0 and percentages
    must also be <= 100.
    """
    if raw_value is None or (isinstance(raw_value, str) and not raw_value.strip()):
        return None

    value = parse_amount(raw_value, "Scholarship value must be a non-negative number")
    if value < 0:
        raise BillingValidationError("Scholarship value must be a non-negative number")

    if scholarship_type == AdjustmentType.PERCENTAGE and value > 100:
        raise BillingValidationError("Percentage must be between 0 and 100")

    return value


def validate_record_edit(record: BillingRecord, update: BillingRecordUpdate) -> None:
    """Reject edits of locked or paid bills and out-of-range amounts."""
    if record.is_locked:
        raise BillingValidationError("Cannot edit a locked billing record")

    if record.payment_status == PaymentStatus.PAID or record.is_paid:
        raise BillingValidationError("Cannot edit a paid billing record")

    if update.effective_tuition_amount is not None and update.effective_tuition_amount < 0:
        raise BillingValidationError("Invalid tuition amount")

    for adjustment in update.discount_adjustments or []:
        if adjustment.value < 0:
            raise BillingValidationError("Invalid discount value")
        if adjustment.type == AdjustmentType.PERCENTAGE and adjustment.value > 100:
            raise BillingValidationError("Discount percentage cannot exceed 100%")

    for charge in update.extra_charges or []:
        if charge.amount < 0:
            raise BillingValidationError("Invalid extra charge amount")


def default_charge_expiry(today: date) -> date:
    """New recurring charges run for one year."""
    try:
        return today.replace(year=today.year + 1)
    except ValueError:
        # Feb 29 has no counterpart next year
        return today.replace(year=today.year + 1, day=28)


def _parse_expiry(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def clean_recurring_charges(
    forms: List[RecurringChargeForm],
    today: date
) -> List[Tuple[Optional[str], RecurringCharge]]:
    """
    Keep only complete recurring charge rows.

    A new row (no id) without an expiry runs for one year from ``today``.
    Other rows without description, amount or expiry, or with a
    non-positive amount, are dropped silently.
    Returns (existing id or None, charge).
    """
    cleaned = []
    for form in forms:
        expires_at = form.expires_at
        if not expires_at and form.id is None:
            expires_at = default_charge_expiry(today)

        if not form.description or form.amount in (None, "") or not expires_at:
            continue

        try:
            amount = parse_amount(form.amount)
        except BillingValidationError:
            continue
        if amount <= 0:
            continue

        expires_at = _parse_expiry(expires_at)
        if expires_at is None:
            continue

        cleaned.append((
            form.id,
            RecurringCharge(
                id=form.id,
                description=form.description,
                amount=amount,
                expires_at=expires_at
            )
        ))
    return cleaned


def validate_tuition_type(data: TuitionTypeCreate | TuitionTypeUpdate) -> None:
    if data.name is not None and not data.name.strip():
        raise BillingValidationError("Tuition type name is required")

    if data.base_amount is not None and data.base_amount < 0:
        raise BillingValidationError("Base amount must be a non-negative number")

    if data.late_fee_value is not None:
        if data.late_fee_value < 0:
            raise BillingValidationError("Late fee value must be a non-negative number")
        if data.late_fee_type == AdjustmentType.PERCENTAGE and data.late_fee_value > 100:
            raise BillingValidationError("Late fee percentage cannot exceed 100%")


def validate_bill_period(billing_month: int, billing_year: int) -> None:
    if not 1 <= billing_month <= 12:
        raise BillingValidationError("Billing month must be between 1 and 12")
    if billing_year < 2000:
        raise BillingValidationError("Invalid billing year")


def validate_bill_create(data: BillCreate) -> None:
    if not data.student_id or not data.school_year_id:
        raise BillingValidationError("Please select a student and school year")
    validate_bill_period(data.billing_month, data.billing_year)
    if data.base_amount is not None and data.base_amount < 0:
        raise BillingValidationError("Base amount must be a non-negative number")
