from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.core.permissions import not_found, require_billing_module
from app.db.api_client import SchoolApiClient, get_api
from app.models.scholarship import RecurringCharge, Scholarship
from app.models.user import CurrentUser
from app.repositories.scholarship_repo import ScholarshipRepository
from app.schemas.scholarship import ScholarshipForm, ScholarshipSaveResponse, StudentBillingConfigPage
from app.services.scholarship_service import ScholarshipService

router = APIRouter(prefix="/billing/students", tags=["scholarships"])


def get_scholarship_service(
    current_user: CurrentUser = Depends(require_billing_module),
    api: SchoolApiClient = Depends(get_api)
) -> ScholarshipService:
    return ScholarshipService(ScholarshipRepository(api, current_user.token))


@router.get("/config", response_model=StudentBillingConfigPage, response_model_by_alias=True)
async def list_students_config(
    search: Optional[str] = None,
    tuition_type_id: Optional[str] = Query(None, alias="tuitionTypeId"),
    has_scholarship: Optional[str] = Query(None, alias="hasScholarship"),
    sort_field: Optional[str] = Query(None, alias="sortField"),
    sort_direction: str = Query("asc", alias="sortDirection", pattern="^(asc|desc)$"),
    offset: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    service: ScholarshipService = Depends(get_scholarship_service)
):
    """Students with their tuition type and scholarship, paginated."""
    return await service.list_students_config(
        search=search,
        tuition_type_id=tuition_type_id,
        has_scholarship=has_scholarship,
        sort_field=sort_field,
        sort_direction=sort_direction,
        offset=offset,
        limit=limit
    )


@router.get("/{student_id}/scholarship", response_model=Scholarship, response_model_by_alias=True)
async def get_scholarship(
    student_id: str,
    service: ScholarshipService = Depends(get_scholarship_service)
):
    scholarship = await service.get_scholarship(student_id)
    if scholarship is None:
        raise not_found()
    return scholarship


@router.post("/{student_id}/scholarship", response_model=ScholarshipSaveResponse, response_model_by_alias=True)
async def create_scholarship(
    student_id: str,
    form: ScholarshipForm,
    service: ScholarshipService = Depends(get_scholarship_service)
):
    """Create a scholarship and the student's recurring charges."""
    return await service.save_scholarship(student_id, form, create=True)


@router.put("/{student_id}/scholarship", response_model=ScholarshipSaveResponse, response_model_by_alias=True)
async def update_scholarship(
    student_id: str,
    form: ScholarshipForm,
    service: ScholarshipService = Depends(get_scholarship_service)
):
    """
    Update (or remove, with no scholarship type) the student's scholarship.

    When ``recurringCharges`` is sent the stored charges are replaced by it.
    """
    return await service.save_scholarship(student_id, form, create=False)


@router.get("/{student_id}/recurring-charges", response_model=List[RecurringCharge], response_model_by_alias=True)
async def list_recurring_charges(
    student_id: str,
    service: ScholarshipService = Depends(get_scholarship_service)
):
    return await service.list_recurring_charges(student_id)
