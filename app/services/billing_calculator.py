"""
Billing calculator - derives what is owed on a bill right now.

Core algorithm (order matters):
1. Discounts: percentage adjustments apply to tuition minus scholarship,
   fixed adjustments add their raw value
2. Extra charges are summed
3. A bill is overdue when today (date only) is after its due date (date only)
4. A late fee is pending when the bill is overdue, unpaid, billable and
   no late fee has been applied yet
5. Pending fee: fixed value, or a percentage of the amount after discounts
6. final = tuition - scholarship - discounts + extras + applied fee + pending fee
7. remaining = final - paid

All functions are pure; ``today`` defaults to the current date in the
school's timezone.
"""

from datetime import date, datetime, timezone
from typing import Iterable, List, Optional
from zoneinfo import ZoneInfo

from app.core.config import settings
from app.models.billing import (
    AdjustmentType,
    BillingRecord,
    BillStatus,
    DiscountAdjustment,
    ExtraCharge,
    PaymentStatus,
    PaymentTransaction,
)
from app.schemas.billing import BillingBreakdown, DashboardSummary, PaymentHistoryEntry
from app.utils.billing_validation import validate_partial_payment_amount, validate_payable

# Amounts within this distance of zero count as settled
SETTLED_EPSILON = 1e-9


def school_timezone() -> ZoneInfo:
    return ZoneInfo(settings.SCHOOL_TIMEZONE)


def school_today(now: Optional[datetime] = None) -> date:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(school_timezone()).date()


def normalize_date(value: date | datetime) -> date:
    """Drop the time of day. Aware datetimes are read in the school timezone."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(school_timezone())
        return value.date()
    return value


def discount_amount_for(
    adjustments: Iterable[DiscountAdjustment],
    effective_tuition_amount: float,
    scholarship_amount: float
) -> float:
    total = 0.0
    for adjustment in adjustments:
        if adjustment.type == AdjustmentType.PERCENTAGE:
            total += (effective_tuition_amount - scholarship_amount) * (adjustment.value / 100)
        else:
            total += adjustment.value
    return total


def extra_amount_for(charges: Iterable[ExtraCharge]) -> float:
    total = 0.0
    for charge in charges:
        total += charge.amount
    return total


def discount_amount(record: BillingRecord) -> float:
    return discount_amount_for(
        record.discount_adjustments,
        record.effective_tuition_amount,
        record.scholarship_amount
    )


def extra_amount(record: BillingRecord) -> float:
    return extra_amount_for(record.extra_charges)


def is_overdue(record: BillingRecord, today: Optional[date] = None) -> bool:
    today = normalize_date(today or school_today())
    return today > normalize_date(record.due_date)


def has_pending_late_fee(record: BillingRecord, today: Optional[date] = None) -> bool:
    return (
        is_overdue(record, today)
        and not record.is_paid
        and record.bill_status != BillStatus.NOT_REQUIRED
        and record.late_fee_amount == 0
    )


def late_fee_for(record: BillingRecord, amount_after_discounts: float) -> float:
    snapshot = record.tuition_type_snapshot
    if snapshot.late_fee_type == AdjustmentType.FIXED:
        return snapshot.late_fee_value
    return amount_after_discounts * (snapshot.late_fee_value / 100)


def calculate_breakdown(
    record: BillingRecord,
    today: Optional[date] = None,
    include_pending_late_fee: bool = True
) -> BillingBreakdown:
    """Compute every term of the amount owed on ``record``."""
    today = normalize_date(today or school_today())

    discount = discount_amount(record)
    extra = extra_amount(record)
    overdue = is_overdue(record, today)
    amount_after_discounts = (
        record.effective_tuition_amount - record.scholarship_amount - discount
    )

    pending = include_pending_late_fee and has_pending_late_fee(record, today)
    pending_fee = late_fee_for(record, amount_after_discounts) if pending else 0.0

    final = (
        record.effective_tuition_amount
        - record.scholarship_amount
        - discount
        + extra
        + record.late_fee_amount
        + pending_fee
    )
    paid = record.paid_so_far()

    return BillingBreakdown(
        record_id=record.id,
        as_of=today,
        effective_tuition_amount=record.effective_tuition_amount,
        scholarship_amount=record.scholarship_amount,
        discount_amount=discount,
        extra_amount=extra,
        amount_after_discounts=amount_after_discounts,
        applied_late_fee=record.late_fee_amount,
        pending_late_fee=pending_fee,
        final_amount=final,
        paid_amount=paid,
        remaining_amount=final - paid,
        is_overdue=overdue,
        has_pending_late_fee=pending,
        payment_status=derive_payment_status(record, today)
    )


def calculate_final_amount(record: BillingRecord, today: Optional[date] = None) -> float:
    return calculate_breakdown(record, today).final_amount


def remaining_amount(record: BillingRecord, today: Optional[date] = None) -> float:
    return calculate_breakdown(record, today).remaining_amount


def preview_final_amount(
    record: BillingRecord,
    effective_tuition_amount: float,
    discount_adjustments: List[DiscountAdjustment],
    extra_charges: List[ExtraCharge]
) -> float:
    """
    Amount shown while editing a bill.

    Uses the edited tuition, adjustments and charges with the scholarship
    and the applied late fee of ``record``. Pending late fees are left out.
    """
    discount = discount_amount_for(
        discount_adjustments, effective_tuition_amount, record.scholarship_amount
    )
    amount_after_discounts = effective_tuition_amount - record.scholarship_amount - discount
    return amount_after_discounts + extra_amount_for(extra_charges) + record.late_fee_amount


def derive_payment_status(record: BillingRecord, today: Optional[date] = None) -> PaymentStatus:
    if record.is_paid:
        return PaymentStatus.PAID
    if record.paid_so_far() > 0:
        return PaymentStatus.PARTIAL_PAYMENT
    if is_overdue(record, today):
        return PaymentStatus.DELAYED
    return PaymentStatus.PENDING


def register_partial_payment(
    record: BillingRecord,
    amount: float,
    today: Optional[date] = None,
    paid_at: Optional[datetime] = None,
    payment_method=None,
    payment_note: Optional[str] = None,
    paid_by: Optional[str] = None
) -> BillingRecord:
    """
    Return a copy of ``record`` with ``amount`` paid.

    The amount is checked against the remaining balance first. When the
    payment settles the bill, a pending late fee is folded into the applied
    fee so the settled total stays what the payer was asked for.
    """
    validate_payable(record)
    breakdown = calculate_breakdown(record, today)
    amount = validate_partial_payment_amount(amount, breakdown.remaining_amount)
    paid_at = paid_at or datetime.now(timezone.utc)

    transaction = PaymentTransaction(
        amount=amount,
        payment_method=payment_method or record.payment_method or "manual",
        payment_note=payment_note,
        paid_by=paid_by,
        paid_at=paid_at
    )
    new_paid = breakdown.paid_amount + amount
    update = {
        "paid_amount": new_paid,
        "paid_at": paid_at,
        "payment_transactions": [*record.payment_transactions, transaction],
    }

    if breakdown.final_amount - new_paid <= SETTLED_EPSILON:
        update.update({
            "is_paid": True,
            "payment_status": PaymentStatus.PAID,
            "late_fee_amount": record.late_fee_amount + breakdown.pending_late_fee,
            "final_amount": breakdown.final_amount,
        })
    else:
        update["payment_status"] = derive_payment_status(record.model_copy(update=update), today)

    return record.model_copy(update=update)


def _is_settled(record: BillingRecord) -> bool:
    return record.is_paid or record.payment_status == PaymentStatus.PAID


def find_overdue_records(
    records: Iterable[BillingRecord],
    today: Optional[date] = None
) -> List[BillingRecord]:
    """Bills that should get a late fee applied now."""
    today = normalize_date(today or school_today())
    return [
        record for record in records
        if is_overdue(record, today)
        and not _is_settled(record)
        and record.bill_status not in (BillStatus.CANCELLED, BillStatus.NOT_REQUIRED)
        and record.late_fee_amount == 0
    ]


def summarize_records(
    records: Iterable[BillingRecord],
    today: Optional[date] = None
) -> DashboardSummary:
    """
    Dashboard totals over a set of bills.

    - total income: stored final amount of paid bills
    - expected income: current final amount (pending fees included) of
      billable or paid bills
    - late fees: applied plus pending
    """
    today = normalize_date(today or school_today())
    billable = (BillStatus.REQUIRED, BillStatus.SENT)

    total_income = 0.0
    expected_income = 0.0
    late_fees = 0.0
    paid_students = set()
    unpaid_students = set()

    for record in records:
        breakdown = calculate_breakdown(
            record,
            today,
            include_pending_late_fee=record.bill_status != BillStatus.CANCELLED
        )
        settled = _is_settled(record)

        if settled:
            total_income += record.final_amount
            paid_students.add(record.student_id)

        if record.bill_status in billable or settled:
            expected_income += breakdown.final_amount

        if record.bill_status in billable and not settled:
            unpaid_students.add(record.student_id)

        late_fees += breakdown.applied_late_fee + breakdown.pending_late_fee

    return DashboardSummary(
        total_income=total_income,
        expected_income=expected_income,
        missing_income=expected_income - total_income,
        total_students_paid=len(paid_students),
        total_students_not_paid=len(unpaid_students),
        late_fees_applied=late_fees
    )


def build_payment_history(
    record: BillingRecord,
    now: Optional[datetime] = None
) -> List[PaymentHistoryEntry]:
    """
    Payments made against a bill, newest first.

    Records created before payment transactions existed only carry
    paidAt/paidAmount; a single entry is derived from those.
    """
    history: List[PaymentHistoryEntry] = []

    if record.payment_transactions:
        for tx in record.payment_transactions:
            history.append(PaymentHistoryEntry(
                date=tx.paid_at,
                amount=tx.amount,
                payment_method=tx.payment_method,
                payment_note=tx.payment_note,
                paid_by=tx.paid_by_name or tx.paid_by
            ))
    else:
        audit = record.audit_metadata
        paid_by = (audit.paid_by_name or audit.paid_by) if audit else None
        method = record.payment_method or "manual"

        if record.payment_status == PaymentStatus.PAID and record.paid_at:
            history.append(PaymentHistoryEntry(
                date=record.paid_at,
                amount=record.paid_so_far(),
                payment_method=method,
                payment_note=record.payment_note,
                paid_by=paid_by
            ))
        elif record.payment_status == PaymentStatus.PARTIAL_PAYMENT and record.paid_so_far() > 0:
            history.append(PaymentHistoryEntry(
                date=record.paid_at or now or datetime.now(timezone.utc),
                amount=record.paid_so_far(),
                payment_method=method,
                payment_note=record.payment_note,
                paid_by=paid_by
            ))

    history.sort(key=lambda entry: _sortable(entry.date), reverse=True)
    return history


def _sortable(value: datetime) -> datetime:
    # Mixed naive/aware timestamps cannot be compared directly
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
