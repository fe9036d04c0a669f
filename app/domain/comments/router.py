"""Comment router - Pitches, offers and replies"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...config import COMMENT_RATE_LIMIT
from ...database import get_db
from ...dependencies import get_notifier
from ...models import User
from ...rate_limiter import create_user_rate_limiter
from ...services.notification_service import Notifier
from .schemas import CommentCreate, CommentResponse, CommentUpdate
from .service import CommentService

router = APIRouter(tags=["Comments"])

comment_rate_limit = create_user_rate_limiter(limit=COMMENT_RATE_LIMIT, window_seconds=60, key_prefix="comments")


def get_comment_service(db: Session = Depends(get_db), notifier: Notifier = Depends(get_notifier)) -> CommentService:
    """Dependency injection for CommentService"""
    return CommentService(db, notifier)


@router.post("/posts/{post_id}/comments", response_model=CommentResponse, status_code=201)
async def submit_comment(
    post_id: str,
    data: CommentCreate,
    current_user: User = Depends(get_current_user),
    service: CommentService = Depends(get_comment_service),
    _: None = Depends(comment_rate_limit),
):
    comment = await service.submit_comment(current_user, post_id, data)
    return CommentResponse.from_comment(comment)


@router.put("/comments/{comment_id}", response_model=CommentResponse)
async def edit_comment(
    comment_id: str,
    data: CommentUpdate,
    current_user: User = Depends(get_current_user),
    service: CommentService = Depends(get_comment_service),
):
    return CommentResponse.from_comment(service.edit_comment(current_user, comment_id, data))


@router.post("/comments/{comment_id}/withdraw", response_model=CommentResponse)
async def withdraw_pitch(
    comment_id: str,
    current_user: User = Depends(get_current_user),
    service: CommentService = Depends(get_comment_service),
):
    return CommentResponse.from_comment(service.withdraw_pitch(current_user, comment_id))
