import logging

from fastapi import Depends, HTTPException, status

from app.core.auth import get_current_user
from app.core.config import settings
from app.db.api_client import ApiError, SchoolApiClient, get_api
from app.models.user import CurrentUser
from app.repositories.module_repo import ModuleRepository

logger = logging.getLogger(__name__)


def not_found() -> HTTPException:
    """Access-control failures are reported as a plain 404."""
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")


async def require_billing_module(
    current_user: CurrentUser = Depends(get_current_user),
    api: SchoolApiClient = Depends(get_api)
) -> CurrentUser:
    """Let the request through only when the caller has the billing module."""
    repo = ModuleRepository(api, current_user.token)
    try:
        allowed = await repo.has_module(settings.BILLING_MODULE_KEY)
    except ApiError as exc:
        if exc.is_permission_denied or exc.is_not_found:
            raise not_found()
        raise

    if not allowed:
        logger.info("User %s lacks the %s module", current_user.id, settings.BILLING_MODULE_KEY)
        raise not_found()
    return current_user
