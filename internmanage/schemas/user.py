"""Schemas for users and the resolved request actor"""
from typing import Optional

from pydantic import BaseModel

from internmanage.models import UserType


class UserSummary(BaseModel):
    id: int
    name: str
    email: str
    type: UserType
    company: Optional[str] = None

    class Config:
        from_attributes = True


class Actor(BaseModel):
    """Identity of the caller as resolved by the auth layer.

    The assignment engine trusts these claims as-is when authorizing an
    operation. Only the notification fan-out re-reads the user row.
    """

    user_id: int
    type: UserType
    company: Optional[str] = None
    email: Optional[str] = None
    verified: bool = False
    is_approved: bool = False

    @property
    def is_admin(self) -> bool:
        return self.type == UserType.ADMIN

    @property
    def is_hr(self) -> bool:
        return self.type == UserType.HR

    def can_manage_company(self, company: Optional[str]) -> bool:
        """Admins manage every company, HR only their own."""
        if self.is_admin:
            return True
        return self.is_hr and bool(self.company) and self.company == company
