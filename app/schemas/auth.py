from enum import Enum
from typing import List
from pydantic import BaseModel, Field


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class Principal(BaseModel):
    """The already-authenticated actor, supplied by the identity layer."""
    user_id: str
    role: Role = Role.USER
    outlet_ids: List[str] = Field(default_factory=list, description="Outlets assigned to an admin.")

    @property
    def is_operator(self) -> bool:
        return self.role in (Role.ADMIN, Role.SUPER_ADMIN)
