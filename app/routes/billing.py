from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.core.permissions import require_billing_module
from app.db.api_client import SchoolApiClient, get_api
from app.models.billing import BillingRecord, BillStatus, PaymentStatus
from app.models.user import CurrentUser
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
from app.services.billing_service import BillingService

router = APIRouter(prefix="/billing", tags=["billing"])


def get_billing_service(
    current_user: CurrentUser = Depends(require_billing_module),
    api: SchoolApiClient = Depends(get_api)
) -> BillingService:
    return BillingService(BillingRepository(api, current_user.token), current_user.id)


@router.get("", response_model=List[BillingRecord], response_model_by_alias=True)
async def list_billing_records(
    student_id: Optional[str] = Query(None, alias="studentId"),
    school_year_id: Optional[str] = Query(None, alias="schoolYearId"),
    billing_month: Optional[int] = Query(None, alias="billingMonth", ge=1, le=12),
    billing_year: Optional[int] = Query(None, alias="billingYear"),
    bill_status: Optional[BillStatus] = Query(None, alias="billStatus"),
    payment_status: Optional[PaymentStatus] = Query(None, alias="paymentStatus"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    service: BillingService = Depends(get_billing_service)
):
    """List bills."""
    filters = {
        "studentId": student_id,
        "schoolYearId": school_year_id,
        "billingMonth": billing_month,
        "billingYear": billing_year,
        "billStatus": bill_status.value if bill_status else None,
        "paymentStatus": payment_status.value if payment_status else None,
        "startDate": start_date.isoformat() if start_date else None,
        "endDate": end_date.isoformat() if end_date else None,
    }
    return await service.list_records(filters)


@router.get("/dashboard", response_model=DashboardSummary, response_model_by_alias=True)
async def get_billing_dashboard(
    school_year_id: Optional[str] = Query(None, alias="schoolYearId"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    service: BillingService = Depends(get_billing_service)
):
    """Income and late fee totals, pending late fees included."""
    filters = {
        "schoolYearId": school_year_id,
        "startDate": start_date.isoformat() if start_date else None,
        "endDate": end_date.isoformat() if end_date else None,
    }
    return await service.get_dashboard(filters)


@router.post("", response_model=Optional[BillingRecord], response_model_by_alias=True)
async def create_bill(
    data: BillCreate,
    service: BillingService = Depends(get_billing_service)
):
    """Create a single bill."""
    return await service.create_bill(data)


@router.post("/bulk")
async def bulk_create_bills(
    data: BulkBillCreate,
    service: BillingService = Depends(get_billing_service)
):
    """Generate bills for every student for a month."""
    return await service.bulk_create_bills(data)


@router.put("/bulk-update")
async def bulk_update_bills(
    data: BulkBillUpdate,
    service: BillingService = Depends(get_billing_service)
):
    """Recompute the bills of a month from current configuration."""
    return await service.bulk_update_bills(data)


@router.post("/bulk-apply-late-fee")
async def bulk_apply_late_fee(
    data: Optional[BulkApplyLateFeeRequest] = None,
    service: BillingService = Depends(get_billing_service)
):
    """Apply late fees to the given bills (all overdue bills by default)."""
    return await service.bulk_apply_late_fee(data or BulkApplyLateFeeRequest())


@router.post("/apply-overdue-late-fees", response_model=LateFeeSweepResult, response_model_by_alias=True)
async def apply_overdue_late_fees(service: BillingService = Depends(get_billing_service)):
    """Apply late fees to overdue bills, if there are any."""
    return await service.apply_overdue_late_fees()


@router.get("/{record_id}", response_model=BillingRecord, response_model_by_alias=True)
async def get_billing_record(
    record_id: str,
    service: BillingService = Depends(get_billing_service)
):
    """Get a bill by ID."""
    return await service.get_record(record_id)


@router.get("/{record_id}/amounts", response_model=BillingBreakdown, response_model_by_alias=True)
async def get_billing_amounts(
    record_id: str,
    service: BillingService = Depends(get_billing_service)
):
    """Amount owed today, pending late fee included, and remaining balance."""
    return await service.get_record_amounts(record_id)


@router.post("/{record_id}/preview")
async def preview_billing_update(
    record_id: str,
    update: BillingRecordUpdate,
    service: BillingService = Depends(get_billing_service)
):
    """Final amount an edit would produce, before saving it."""
    record = await service.get_record(record_id)
    return {"finalAmount": service.preview_update(record, update)}


@router.get("/{record_id}/payments", response_model=List[PaymentHistoryEntry], response_model_by_alias=True)
async def get_payment_history(
    record_id: str,
    service: BillingService = Depends(get_billing_service)
):
    """Payments made against a bill, newest first."""
    return await service.get_payment_history(record_id)


@router.put("/{record_id}", response_model=BillingRecord, response_model_by_alias=True)
async def update_billing_record(
    record_id: str,
    update: BillingRecordUpdate,
    service: BillingService = Depends(get_billing_service)
):
    """Edit tuition, discounts, extra charges or status of an unpaid bill."""
    return await service.update_record(record_id, update)


@router.post("/{record_id}/record-payment", response_model=BillingRecord, response_model_by_alias=True)
async def record_payment(
    record_id: str,
    data: RecordPaymentRequest,
    service: BillingService = Depends(get_billing_service)
):
    """Mark a bill as fully paid."""
    return await service.record_payment(record_id, data)


@router.post("/{record_id}/record-partial-payment", response_model=BillingRecord, response_model_by_alias=True)
async def record_partial_payment(
    record_id: str,
    data: PartialPaymentRequest,
    service: BillingService = Depends(get_billing_service)
):
    """Record part of a bill as paid (0 < amount <= remaining)."""
    return await service.record_partial_payment(record_id, data)


@router.post("/{record_id}/apply-late-fee", response_model=BillingRecord, response_model_by_alias=True)
async def apply_late_fee(
    record_id: str,
    data: Optional[ApplyLateFeeRequest] = None,
    service: BillingService = Depends(get_billing_service)
):
    """Apply the late fee to one bill."""
    return await service.apply_late_fee(record_id, data or ApplyLateFeeRequest())
