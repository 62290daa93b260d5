import logging
from datetime import date
from typing import Any, Dict, List, Optional

from app.db.api_client import ApiError
from app.models.billing import BillingRecord
from app.repositories.billing_repo import BillingRepository
from app.schemas.billing import (
    ApplyLateFeeRequest,
    BillCreate,
    BillingBreakdown,
    BillingRecordUpdate,
    BulkApplyLateFeeRequest,
    BulkBillCreate,
    BulkBillUpdate,
    DashboardSummary,
    LateFeeSweepResult,
    PartialPaymentRequest,
    PaymentHistoryEntry,
    RecordPaymentRequest,
)
from app.services import billing_calculator as calculator
from app.utils.billing_validation import (
    BillingValidationError,
    validate_bill_create,
    validate_bill_period,
    validate_partial_payment_amount,
    validate_payable,
    validate_record_edit,
)

logger = logging.getLogger(__name__)


class RecordNotFound(Exception):
    """The requested billing record does not exist (or is not visible)."""


class BillingService:
    """Billing record operations on top of the school API."""

    def __init__(self, repo: BillingRepository, user_id: Optional[str] = None):
        self.repo = repo
        self.user_id = user_id

    async def list_records(self, filters: Optional[Dict[str, Any]] = None) -> List[BillingRecord]:
        return await self.repo.list_records(filters)

    async def get_record(self, record_id: str) -> BillingRecord:
        record = await self.repo.get_record(record_id)
        if record is None:
            raise RecordNotFound(record_id)
        return record

    async def get_record_amounts(self, record_id: str, today: Optional[date] = None) -> BillingBreakdown:
        record = await self.get_record(record_id)
        return calculator.calculate_breakdown(record, today)

    async def get_payment_history(self, record_id: str) -> List[PaymentHistoryEntry]:
        record = await self.get_record(record_id)
        return calculator.build_payment_history(record)

    async def record_partial_payment(
        self,
        record_id: str,
        request: PartialPaymentRequest,
        today: Optional[date] = None
    ) -> BillingRecord:
        """
        Record part of a bill as paid.

        The amount is checked against the balance as it stands today,
        pending late fee included, before anything is sent.
        """
        record = await self.get_record(record_id)
        validate_payable(record)
        breakdown = calculator.calculate_breakdown(record, today)
        amount = validate_partial_payment_amount(request.amount, breakdown.remaining_amount)

        payload = {
            "amount": amount,
            "paymentMethod": request.payment_method.value,
        }
        if request.payment_note:
            payload["paymentNote"] = request.payment_note

        updated = await self.repo.record_partial_payment(record_id, payload)
        logger.info(
            "Recorded partial payment of %.2f on bill %s (remaining %.2f)",
            amount, record_id, breakdown.remaining_amount - amount
        )
        if updated is not None:
            return updated

        # No body from the API: reflect the payment locally
        return calculator.register_partial_payment(
            record,
            amount,
            today,
            payment_method=request.payment_method,
            payment_note=request.payment_note,
            paid_by=self.user_id
        )

    async def record_payment(self, record_id: str, request: RecordPaymentRequest) -> BillingRecord:
        record = await self.get_record(record_id)
        validate_payable(record)

        payload = request.to_api(exclude_none=True)
        updated = await self.repo.record_payment(record_id, payload)
        logger.info("Recorded full payment on bill %s", record_id)
        return updated if updated is not None else await self.get_record(record_id)

    async def update_record(self, record_id: str, update: BillingRecordUpdate) -> BillingRecord:
        record = await self.get_record(record_id)
        validate_record_edit(record, update)

        payload = update.to_api(exclude_unset=True)
        updated = await self.repo.update_record(record_id, payload)
        return updated if updated is not None else await self.get_record(record_id)

    def preview_update(self, record: BillingRecord, update: BillingRecordUpdate) -> float:
        """Final amount the edit would produce, without pending late fees."""
        return calculator.preview_final_amount(
            record,
            update.effective_tuition_amount
            if update.effective_tuition_amount is not None
            else record.effective_tuition_amount,
            update.discount_adjustments
            if update.discount_adjustments is not None
            else record.discount_adjustments,
            update.extra_charges
            if update.extra_charges is not None
            else record.extra_charges
        )

    async def apply_late_fee(self, record_id: str, request: ApplyLateFeeRequest) -> BillingRecord:
        updated = await self.repo.apply_late_fee(record_id, request.to_api(exclude_none=True))
        return updated if updated is not None else await self.get_record(record_id)

    async def bulk_apply_late_fee(self, request: BulkApplyLateFeeRequest) -> dict:
        return await self.repo.bulk_apply_late_fee(request.to_api(exclude_none=True))

    async def apply_overdue_late_fees(
        self,
        records: Optional[List[BillingRecord]] = None,
        today: Optional[date] = None
    ) -> LateFeeSweepResult:
        """
        Apply late fees to every overdue bill.

        A failure here is not fatal: the fees are applied on the next sweep.
        """
        if records is None:
            records = await self.repo.list_records()

        overdue = calculator.find_overdue_records(records, today)
        if not overdue:
            return LateFeeSweepResult(overdue_count=0, applied=False)

        try:
            await self.repo.bulk_apply_late_fee({})
        except ApiError as exc:
            logger.warning("Failed to apply late fees to %d overdue bills: %s", len(overdue), exc)
            return LateFeeSweepResult(overdue_count=len(overdue), applied=False)

        logger.info("Applied late fees to %d overdue bills", len(overdue))
        return LateFeeSweepResult(overdue_count=len(overdue), applied=True)

    async def get_dashboard(
        self,
        filters: Optional[Dict[str, Any]] = None,
        today: Optional[date] = None
    ) -> DashboardSummary:
        records = await self.repo.list_records(filters)
        return calculator.summarize_records(records, today)

    async def create_bill(self, data: BillCreate) -> Optional[BillingRecord]:
        validate_bill_create(data)
        return await self.repo.create_record(data.to_api(exclude_none=True))

    async def bulk_create_bills(self, data: BulkBillCreate) -> dict:
        if not data.school_year_id:
            raise BillingValidationError("Please select a school year")
        validate_bill_period(data.billing_month, data.billing_year)
        result = await self.repo.bulk_create(data.to_api(exclude_none=True))
        logger.info(
            "Created %s bills for %02d/%d",
            result.get("count", 0), data.billing_month, data.billing_year
        )
        return result

    async def bulk_update_bills(self, data: BulkBillUpdate) -> dict:
        validate_bill_period(data.billing_month, data.billing_year)
        return await self.repo.bulk_update(data.to_api())
