"""Message router - Direct messaging"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...config import MESSAGE_RATE_LIMIT
from ...database import get_db
from ...dependencies import get_notifier
from ...models import User
from ...rate_limiter import create_user_rate_limiter
from ...services.notification_service import Notifier
from ..users.schemas import UserSummary
from .schemas import MessageCreate, MessageResponse
from .service import MessageService

router = APIRouter(prefix="/messages", tags=["Messages"])

message_rate_limit = create_user_rate_limiter(limit=MESSAGE_RATE_LIMIT, window_seconds=60, key_prefix="messages")


def get_message_service(db: Session = Depends(get_db), notifier: Notifier = Depends(get_notifier)) -> MessageService:
    """Dependency injection for MessageService"""
    return MessageService(db, notifier)


@router.get("/inbox", response_model=list[MessageResponse])
async def get_inbox(
    current_user: User = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
):
    return [MessageResponse.from_message(m) for m in service.get_inbox(current_user)]


@router.get("/sent", response_model=list[MessageResponse])
async def get_sent(
    current_user: User = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
):
    return [MessageResponse.from_message(m) for m in service.get_sent(current_user)]


@router.get("/users")
async def get_contacts(
    current_user: User = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
):
    """Users the current user is allowed to message"""
    return {"users": [UserSummary.from_user(u) for u in service.get_contacts(current_user)]}


@router.post("/send", response_model=MessageResponse, status_code=201)
async def send_message(
    data: MessageCreate,
    current_user: User = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
    _: None = Depends(message_rate_limit),
):
    return MessageResponse.from_message(await service.send_message(current_user, data))


@router.post("/{message_id}/read", response_model=MessageResponse)
async def mark_message_read(
    message_id: str,
    current_user: User = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
):
    return MessageResponse.from_message(service.mark_read(current_user, message_id))
