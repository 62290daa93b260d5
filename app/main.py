import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.api import api_router
from app.core.config import settings
from app.core.logging import setup_logging
from app.db.api_client import ApiError, close_api_client, connect_to_api
from app.services.billing_service import RecordNotFound
from app.utils.billing_validation import BillingValidationError

logger = logging.getLogger(__name__)

setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await connect_to_api()
    try:
        yield
    finally:
        await close_api_client()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    description=settings.DESCRIPTION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BillingValidationError)
async def billing_validation_error_handler(request: Request, exc: BillingValidationError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(RecordNotFound)
async def record_not_found_handler(request: Request, exc: RecordNotFound):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": "Billing record not found"})


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    # Forbidden and missing resources look the same to the caller
    if exc.is_permission_denied or exc.is_not_found:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": "Not Found"})
    if 400 <= exc.status_code < 500:
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})
    logger.error("School API error on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": exc.message})


@app.get("/")
async def root():
    return {"message": "Welcome to the School Billing API"}

app.include_router(api_router, prefix=settings.API_V1_STR)
