from typing import List

from fastapi import APIRouter, Depends, status

from app.core.permissions import not_found, require_billing_module
from app.db.api_client import SchoolApiClient, get_api
from app.models.scholarship import TuitionType
from app.models.user import CurrentUser
from app.repositories.scholarship_repo import TuitionTypeRepository
from app.schemas.scholarship import TuitionTypeCreate, TuitionTypeUpdate
from app.services.scholarship_service import TuitionTypeService

router = APIRouter(prefix="/billing/tuition-types", tags=["tuition-types"])


def get_tuition_type_service(
    current_user: CurrentUser = Depends(require_billing_module),
    api: SchoolApiClient = Depends(get_api)
) -> TuitionTypeService:
    return TuitionTypeService(TuitionTypeRepository(api, current_user.token))


@router.get("", response_model=List[TuitionType], response_model_by_alias=True)
async def list_tuition_types(service: TuitionTypeService = Depends(get_tuition_type_service)):
    return await service.list_tuition_types()


@router.post("", response_model=TuitionType, status_code=status.HTTP_201_CREATED, response_model_by_alias=True)
async def create_tuition_type(
    data: TuitionTypeCreate,
    service: TuitionTypeService = Depends(get_tuition_type_service)
):
    created = await service.create_tuition_type(data)
    if created is None:
        return TuitionType(**data.model_dump(exclude_none=True))
    return created


@router.get("/{tuition_type_id}", response_model=TuitionType, response_model_by_alias=True)
async def get_tuition_type(
    tuition_type_id: str,
    service: TuitionTypeService = Depends(get_tuition_type_service)
):
    tuition_type = await service.get_tuition_type(tuition_type_id)
    if tuition_type is None:
        raise not_found()
    return tuition_type


@router.put("/{tuition_type_id}", response_model=TuitionType, response_model_by_alias=True)
async def update_tuition_type(
    tuition_type_id: str,
    data: TuitionTypeUpdate,
    service: TuitionTypeService = Depends(get_tuition_type_service)
):
    updated = await service.update_tuition_type(tuition_type_id, data)
    if updated is None:
        updated = await service.get_tuition_type(tuition_type_id)
    if updated is None:
        raise not_found()
    return updated


@router.delete("/{tuition_type_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tuition_type(
    tuition_type_id: str,
    service: TuitionTypeService = Depends(get_tuition_type_service)
):
    await service.delete_tuition_type(tuition_type_id)
