from datetime import datetime
from typing import List, Optional

from pydantic import EmailStr, Field

from stockroom.core.permissions import has_permission
from stockroom.security import MIN_PASSWORD_LENGTH

from .common import CamelModel, Pagination


class RoleRef(CamelModel):
    id: int
    name: str


class RoleRead(RoleRef):
    permissions: List[str] = Field(default_factory=list)
    created_at: datetime


class Principal(CamelModel):
    """The authenticated user acting on a request."""

    id: int
    name: str
    email: str
    role: RoleRef
    permissions: List[str] = Field(default_factory=list)
    is_active: bool = True

    def can(self, permission: str) -> bool:
        return has_permission(self.permissions, permission)


class LoginRequest(CamelModel):
    email: str
    password: str


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)


class UserCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=128)
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=128)
    role_id: int
    is_active: bool = True


class UserUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=128)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=MIN_PASSWORD_LENGTH, max_length=128)
    role_id: Optional[int] = None
    is_active: Optional[bool] = None


class UserRead(CamelModel):
    id: int
    name: str
    email: str
    role: Optional[RoleRef] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class UserList(CamelModel):
    users: List[UserRead]
    pagination: Pagination


class CurrentUser(CamelModel):
    user: Principal
