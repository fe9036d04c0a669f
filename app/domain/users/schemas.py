"""User schemas - public projections of accounts"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ...models import User


class UserSummary(BaseModel):
    """Minimal author/party projection embedded in other responses"""

    id: str
    username: str
    role: str

    @classmethod
    def from_user(cls, user: Optional[User]) -> Optional["UserSummary"]:
        if user is None:
            return None
        return cls(id=user.id, username=user.username, role=user.role)


class UserResponse(BaseModel):
    id: str
    username: str
    email: Optional[str] = None
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    role: str
    isAdmin: bool
    isPaid: bool
    depositSettings: Optional[dict] = None
    notifications: bool = True
    portfolio: list[str] = []
    createdAt: Optional[datetime] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            firstName=user.first_name,
            lastName=user.last_name,
            role=user.role,
            isAdmin=user.is_admin,
            isPaid=user.is_paid,
            depositSettings=user.deposit_settings,
            notifications=user.notifications_enabled is not False,
            portfolio=user.portfolio or [],
            createdAt=user.created_at,
        )


class ProfileUpdate(BaseModel):
    """Omitted fields are left unchanged"""

    firstName: Optional[str] = None
    lastName: Optional[str] = None
    notifications: Optional[bool] = None
