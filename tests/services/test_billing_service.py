from datetime import date

import pytest

from app.db.api_client import ApiError
from app.models.billing import PaymentStatus
from app.schemas.billing import (
    BillCreate,
    BillingRecordUpdate,
    BulkBillCreate,
    PartialPaymentRequest,
    RecordPaymentRequest,
)
from app.services.billing_service import BillingService, RecordNotFound
from app.utils.billing_validation import BillingValidationError

AFTER_DUE = date(2024, 1, 20)


@pytest.mark.asyncio
async def test_get_record_raises_when_missing(mock_repo):
    mock_repo.get_record.return_value = None
    service = BillingService(mock_repo)

    with pytest.raises(RecordNotFound):
        await service.get_record("missing")


@pytest.mark.asyncio
async def test_record_amounts_include_pending_late_fee(mock_repo, make_record):
    mock_repo.get_record.return_value = make_record()
    service = BillingService(mock_repo)

    breakdown = await service.get_record_amounts("bill-1", today=AFTER_DUE)

    assert breakdown.pending_late_fee == pytest.approx(25.0)
    assert breakdown.remaining_amount == pytest.approx(525.0)


@pytest.mark.asyncio
async def test_partial_payment_is_checked_against_live_remaining(mock_repo, make_record):
    mock_repo.get_record.return_value = make_record(paidAmount=100.0, paymentStatus="partial_payment")
    service = BillingService(mock_repo)

    # 525 - 100 owed today; 425.01 is too much
    with pytest.raises(BillingValidationError, match="425.00"):
        await service.record_partial_payment(
            "bill-1", PartialPaymentRequest(amount=425.01), today=AFTER_DUE
        )
    mock_repo.record_partial_payment.assert_not_called()


@pytest.mark.asyncio
async def test_partial_payment_sends_amount_and_method(mock_repo, make_record):
    record = make_record()
    mock_repo.get_record.return_value = record
    mock_repo.record_partial_payment.return_value = make_record(
        paidAmount=200.0, paymentStatus="partial_payment"
    )
    service = BillingService(mock_repo, user_id="user-1")

    result = await service.record_partial_payment(
        "bill-1",
        PartialPaymentRequest(amount="200", payment_method="online", payment_note="Transfer"),
        today=AFTER_DUE
    )

    mock_repo.record_partial_payment.assert_called_once_with(
        "bill-1", {"amount": 200.0, "paymentMethod": "online", "paymentNote": "Transfer"}
    )
    assert result.payment_status == PaymentStatus.PARTIAL_PAYMENT


@pytest.mark.asyncio
async def test_partial_payment_without_response_body_is_applied_locally(mock_repo, make_record):
    mock_repo.get_record.return_value = make_record()
    mock_repo.record_partial_payment.return_value = None
    service = BillingService(mock_repo, user_id="user-1")

    result = await service.record_partial_payment(
        "bill-1", PartialPaymentRequest(amount=525), today=AFTER_DUE
    )

    assert result.is_paid
    assert result.late_fee_amount == pytest.approx(25.0)
    assert result.payment_transactions[0].paid_by == "user-1"


@pytest.mark.asyncio
async def test_update_record_sends_only_changed_fields(mock_repo, make_record):
    mock_repo.get_record.return_value = make_record()
    mock_repo.update_record.return_value = make_record(effectiveTuitionAmount=450.0)
    service = BillingService(mock_repo)

    result = await service.update_record(
        "bill-1", BillingRecordUpdate(effective_tuition_amount=450.0)
    )

    mock_repo.update_record.assert_called_once_with("bill-1", {"effectiveTuitionAmount": 450.0})
    assert result.effective_tuition_amount == 450.0


@pytest.mark.asyncio
async def test_update_of_paid_record_is_rejected(mock_repo, make_record):
    mock_repo.get_record.return_value = make_record(isPaid=True, paymentStatus="paid")
    service = BillingService(mock_repo)

    with pytest.raises(BillingValidationError):
        await service.update_record("bill-1", BillingRecordUpdate(payment_note="late"))
    mock_repo.update_record.assert_not_called()


@pytest.mark.asyncio
async def test_record_payment_refetches_when_api_returns_nothing(mock_repo, make_record):
    mock_repo.record_payment.return_value = None
    mock_repo.get_record.side_effect = [
        make_record(),
        make_record(isPaid=True, paymentStatus="paid"),
    ]
    service = BillingService(mock_repo)

    result = await service.record_payment("bill-1", RecordPaymentRequest(payment_method="manual"))

    mock_repo.record_payment.assert_called_once_with("bill-1", {"paymentMethod": "manual"})
    assert result.is_paid


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides, message", [
    ({"isPaid": True, "paymentStatus": "paid"}, "already paid"),
    ({"paymentStatus": "paid"}, "already paid"),
    ({"billStatus": "cancelled"}, "cancelled bill"),
])
async def test_payments_on_closed_bills_are_rejected(mock_repo, make_record, overrides, message):
    mock_repo.get_record.return_value = make_record(**overrides)
    service = BillingService(mock_repo)

    with pytest.raises(BillingValidationError, match=message):
        await service.record_partial_payment(
            "bill-1", PartialPaymentRequest(amount=500), today=AFTER_DUE
        )
    with pytest.raises(BillingValidationError, match=message):
        await service.record_payment("bill-1", RecordPaymentRequest())

    mock_repo.record_partial_payment.assert_not_called()
    mock_repo.record_payment.assert_not_called()


@pytest.mark.asyncio
async def test_overdue_sweep_applies_fees_when_needed(mock_repo, make_record):
    service = BillingService(mock_repo)

    result = await service.apply_overdue_late_fees(
        [make_record(id="a"), make_record(id="b", lateFeeAmount=25.0)], today=AFTER_DUE
    )

    assert result.overdue_count == 1
    assert result.applied
    mock_repo.bulk_apply_late_fee.assert_called_once_with({})


@pytest.mark.asyncio
async def test_overdue_sweep_skips_api_when_nothing_is_overdue(mock_repo, make_record):
    service = BillingService(mock_repo)

    result = await service.apply_overdue_late_fees([make_record()], today=date(2024, 1, 5))

    assert result.overdue_count == 0
    mock_repo.bulk_apply_late_fee.assert_not_called()


@pytest.mark.asyncio
async def test_overdue_sweep_failure_is_not_fatal(mock_repo, make_record):
    mock_repo.bulk_apply_late_fee.side_effect = ApiError("boom", 500)
    service = BillingService(mock_repo)

    result = await service.apply_overdue_late_fees([make_record()], today=AFTER_DUE)

    assert result.overdue_count == 1
    assert not result.applied


@pytest.mark.asyncio
async def test_dashboard_is_computed_from_listed_records(mock_repo, make_record):
    mock_repo.list_records.return_value = [
        make_record(studentId="s1", isPaid=True, paymentStatus="paid", paidAmount=500.0),
        make_record(studentId="s2"),
    ]
    service = BillingService(mock_repo)

    summary = await service.get_dashboard({"schoolYearId": "year-2024"}, today=AFTER_DUE)

    mock_repo.list_records.assert_called_once_with({"schoolYearId": "year-2024"})
    assert summary.expected_income == pytest.approx(1025.0)
    assert summary.total_students_not_paid == 1


@pytest.mark.asyncio
async def test_create_bill_requires_student_and_year(mock_repo):
    service = BillingService(mock_repo)

    with pytest.raises(BillingValidationError, match="select a student"):
        await service.create_bill(BillCreate(billing_month=1, billing_year=2024))
    mock_repo.create_record.assert_not_called()


@pytest.mark.asyncio
async def test_bulk_create_requires_school_year(mock_repo):
    service = BillingService(mock_repo)

    with pytest.raises(BillingValidationError, match="school year"):
        await service.bulk_create_bills(BulkBillCreate(billing_month=1, billing_year=2024))

    mock_repo.bulk_create.return_value = {"count": 12}
    result = await service.bulk_create_bills(
        BulkBillCreate(school_year_id="year-2024", billing_month=1, billing_year=2024)
    )
    assert result == {"count": 12}
    mock_repo.bulk_create.assert_called_once_with(
        {"schoolYearId": "year-2024", "billingMonth": 1, "billingYear": 2024}
    )
