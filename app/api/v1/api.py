from fastapi import APIRouter
from app.routes import billing, scholarships, tuition_types

api_router = APIRouter()

# Fixed /billing/* paths go before the /billing/{record_id} routes
api_router.include_router(tuition_types.router)
api_router.include_router(scholarships.router)
api_router.include_router(billing.router)
