"""HTTP client for the school REST API, which owns all persistence."""

import json
import logging
from typing import Any, Optional

import httpx

from app.core.config import settings
from app.db.cache import ListCache

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Raised when the school API answers with a non-success status."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def is_permission_denied(self) -> bool:
        return self.status_code == 403

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


def error_message_from_response(response: httpx.Response) -> str:
    """Build the user-facing message for a failed response."""
    try:
        body = response.json()
    except ValueError:
        body = {"error": response.reason_phrase}

    if not isinstance(body, dict):
        body = {}

    error = body.get("error")
    if isinstance(error, list):
        return json.dumps({"error": "Validation error", "issues": error})
    if isinstance(body.get("issues"), list):
        return json.dumps({
            "error": error or "Validation error",
            "issues": body["issues"]
        })
    if isinstance(error, str) and error:
        return error
    return f"API request failed: {response.status_code} {response.reason_phrase}"


class SchoolApiClient:
    """Thin async wrapper that forwards the caller's bearer token."""

    def __init__(self, client: httpx.AsyncClient, cache: Optional[ListCache] = None):
        self.client = client
        self.cache = cache or ListCache(settings.CACHE_TTL_SECONDS)

    async def request(
        self,
        method: str,
        path: str,
        token: str,
        params: Optional[dict] = None,
        json_body: Any = None
    ) -> Any:
        if not token:
            raise ApiError("Authentication token required", 401)

        clean_params = {k: v for k, v in (params or {}).items() if v is not None}
        response = await self.client.request(
            method,
            path,
            params=clean_params or None,
            json=json_body,
            headers={"Authorization": f"Bearer {token}"}
        )

        if response.status_code in (204, 304):
            return None

        if response.is_error:
            message = error_message_from_response(response)
            logger.warning(
                "School API %s %s failed with %s: %s",
                method, path, response.status_code, message
            )
            raise ApiError(message, response.status_code)

        if not response.content:
            return None
        return response.json()

    async def get(self, path: str, token: str, params: Optional[dict] = None) -> Any:
        return await self.request("GET", path, token, params=params)

    async def get_cached(self, path: str, token: str, params: Optional[dict] = None) -> Any:
        """GET a list resource through the in-memory cache."""
        key = self.cache.make_key(token, path, params)
        hit, value = self.cache.get(key)
        if hit:
            return value
        value = await self.get(path, token, params=params)
        self.cache.set(key, value)
        return value

    async def mutate(
        self,
        method: str,
        path: str,
        token: str,
        json_body: Any = None,
        invalidate: str = ""
    ) -> Any:
        """Send a write and drop cached lists under ``invalidate``."""
        result = await self.request(method, path, token, json_body=json_body)
        self.cache.invalidate(invalidate or path)
        return result

    async def aclose(self) -> None:
        await self.client.aclose()


class ApiConnection:
    """Holds the process-wide client."""

    client: Optional[SchoolApiClient] = None

api_connection = ApiConnection()

async def connect_to_api():
    """Open the shared HTTP client."""
    http_client = httpx.AsyncClient(
        base_url=settings.SCHOOL_API_URL,
        timeout=settings.SCHOOL_API_TIMEOUT_SECONDS,
        headers={"Content-Type": "application/json"}
    )
    api_connection.client = SchoolApiClient(http_client)
    logger.info("Connected to school API at %s", settings.SCHOOL_API_URL)

async def close_api_client():
    """Close the shared HTTP client."""
    if api_connection.client is not None:
        await api_connection.client.aclose()
        api_connection.client = None
        logger.info("Closed school API client")

def get_api() -> SchoolApiClient:
    """Get the shared client instance."""
    return api_connection.client
