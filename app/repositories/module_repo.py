from typing import List

from app.db.api_client import SchoolApiClient
from app.models.user import ModuleAccess


class ModuleRepository:
    """Dashboard modules enabled for the caller."""

    def __init__(self, api: SchoolApiClient, token: str):
        self.api = api
        self.token = token

    async def list_my_modules(self) -> List[ModuleAccess]:
        docs = await self.api.get_cached("/modules/me", self.token)
        return [ModuleAccess(**doc) for doc in docs or []]

    async def has_module(self, module_key: str) -> bool:
        modules = await self.list_my_modules()
        return any(m.key == module_key and m.is_accessible() for m in modules)
