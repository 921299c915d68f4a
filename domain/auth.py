"""Domain Entities - Auth"""
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from typing import Optional

from domain.enums import AdminRole


class AdminUser(BaseModel):
    """Back-office user Entity"""
    user_id: UUID = Field(default_factory=uuid4)
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: AdminRole = AdminRole.ADMIN
    disabled: bool = False

    class Config:
        from_attributes = True


class AdminUserInDB(AdminUser):
    """Admin user with hashed password for DB storage"""
    hashed_password: str
