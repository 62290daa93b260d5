from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional

class CurrentUser(BaseModel):
    """Caller identity taken from the identity provider's token."""
    id: str
    email: Optional[str] = None
    school_id: Optional[str] = None
    token: str = Field(..., repr=False)

class ModuleAccess(BaseModel):
    """A dashboard module enabled for the caller, with the actions they hold."""
    id: str
    key: str
    name: str
    description: Optional[str] = None
    display_order: int = Field(0, alias="displayOrder")
    actions: List[str] = []

    model_config = ConfigDict(populate_by_name=True)

    def is_accessible(self) -> bool:
        return len(self.actions) > 0
