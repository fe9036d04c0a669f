"""Message schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ...models import Message
from ..users.schemas import UserSummary


class MessageCreate(BaseModel):
    receiverId: str
    content: str


class MessageResponse(BaseModel):
    id: str
    senderId: str
    receiverId: str
    content: str
    designId: Optional[str] = None
    stage: Optional[str] = None
    isRead: bool
    createdAt: Optional[datetime] = None
    sender: Optional[UserSummary] = None
    receiver: Optional[UserSummary] = None

    @classmethod
    def from_message(cls, message: Message) -> "MessageResponse":
        return cls(
            id=message.id,
            senderId=message.sender_id,
            receiverId=message.receiver_id,
            content=message.content,
            designId=message.design_id,
            stage=message.stage,
            isRead=message.is_read,
            createdAt=message.created_at,
            sender=UserSummary.from_user(message.sender),
            receiver=UserSummary.from_user(message.receiver),
        )
