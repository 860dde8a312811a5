"""
User Schemas

Pydantic models describing the authenticated caller.
"""

import uuid

from pydantic import BaseModel, ConfigDict

from app.models.enums import UserRole


class SessionUser(BaseModel):
    """Identity supplied by the session provider for the current request."""

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    email: str
    name: str
    roles: frozenset[UserRole] = frozenset({UserRole.USER})

    def has_role(self, role: UserRole) -> bool:
        return role in self.roles

    @property
    def is_admin(self) -> bool:
        return self.has_role(UserRole.ADMIN)
