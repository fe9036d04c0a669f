"""User router - Current account and admin user management"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_admin
from ...database import get_db
from ...errors import BadRequestError, NotFoundError
from ...models import User
from ...utils.sanitization import clean_text
from .schemas import ProfileUpdate, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return UserResponse.from_user(current_user)


@router.put("/me", response_model=UserResponse)
async def update_me(
    data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if data.firstName is not None:
        current_user.first_name = clean_text(data.firstName, "First name", 255)
    if data.lastName is not None:
        current_user.last_name = clean_text(data.lastName, "Last name", 255)
    if data.notifications is not None:
        current_user.notifications_enabled = data.notifications

    db.commit()
    db.refresh(current_user)
    logger.info(f"✅ Profile updated for user {current_user.id}")
    return UserResponse.from_user(current_user)


@router.get("", response_model=list[UserResponse])
async def list_users(_: User = Depends(require_admin), db: Session = Depends(get_db)):
    users = db.query(User).order_by(User.created_at.desc()).all()
    return [UserResponse.from_user(user) for user in users]


@router.delete("/{user_id}")
async def delete_user(user_id: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    """Hard-delete an account and everything it owns"""
    if user_id == admin.id:
        raise BadRequestError("Admins cannot delete their own account")

    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")

    db.delete(user)
    db.commit()
    logger.info(f"🗑️ User {user_id} deleted by admin {admin.id}")
    return {"message": "User deleted"}
