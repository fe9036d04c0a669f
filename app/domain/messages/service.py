"""Message service - Direct messages between role pairs"""

import logging

from sqlalchemy.orm import Session

from ...errors import ForbiddenError, NotFoundError
from ...models import Message, User
from ...services.notification_service import NotificationDispatcher, Notifier
from ...utils.sanitization import clean_text
from .repository import MessageRepository
from .schemas import MessageCreate, MessageResponse

logger = logging.getLogger(__name__)

# Directed sender → receiver role pairs; admins are excluded entirely
VALID_PAIRS = {
    "shop": ("designer", "fan"),
    "designer": ("shop",),
    "fan": ("shop",),
}


def is_admin(user: User) -> bool:
    return user.is_admin or user.role == "admin"


class MessageService:
    """Service layer for direct messaging"""

    def __init__(self, db: Session, notifier: Notifier):
        self.db = db
        self.repo = MessageRepository()
        self.dispatcher = NotificationDispatcher(db, notifier)

    def get_inbox(self, user: User) -> list[Message]:
        return self.repo.get_inbox(self.db, user.id)

    def get_sent(self, user: User) -> list[Message]:
        return self.repo.get_sent(self.db, user.id)

    def get_contacts(self, user: User) -> list[User]:
        """Users the current user may message"""
        if is_admin(user):
            return []
        if user.is_shop:
            designers = self.repo.get_users_by_roles(self.db, ("designer",))
            return [*designers, *self.repo.get_pitched_fans(self.db, user.id)]
        return self.repo.get_users_by_roles(self.db, ("shop", "elite"))

    def check_can_message(self, sender: User, receiver: User) -> None:
        if is_admin(sender) or is_admin(receiver):
            raise ForbiddenError("Admin cannot send or receive messages")
        if receiver.role_group not in VALID_PAIRS.get(sender.role_group, ()):
            logger.info(f"❌ Invalid sender-receiver pair: {sender.role} to {receiver.role}")
            raise ForbiddenError("Invalid sender-receiver pair")
        if sender.is_shop and receiver.role == "fan" and not self.repo.shop_has_pitched_fan(
            self.db, sender.id, receiver.id
        ):
            raise ForbiddenError("Shop must pitch to Fan's booking request first")

    async def send_message(self, sender: User, data: MessageCreate) -> Message:
        receiver = self.db.get(User, data.receiverId)
        if not receiver:
            raise NotFoundError("Receiver not found")
        self.check_can_message(sender, receiver)

        message = self.repo.add_message(
            self.db, sender_id=sender.id, receiver_id=receiver.id, content=clean_text(data.content)
        )
        self.db.commit()
        self.db.refresh(message)
        logger.info(f"✅ Message {message.id} sent {sender.id} → {receiver.id}")

        await self.dispatcher.push(
            receiver.id, {"type": "message", "data": MessageResponse.from_message(message).model_dump(mode="json")}
        )
        await self.dispatcher.notify(receiver, f"New message from {sender.username}")
        return message

    def mark_read(self, user: User, message_id: str) -> Message:
        message = self.repo.get_message(self.db, message_id)
        if not message:
            raise NotFoundError("Message not found")
        if message.receiver_id != user.id:
            raise ForbiddenError("Only the receiver can mark a message read")

        if self.repo.mark_read(self.db, message.id):
            self.db.commit()
        self.db.refresh(message)
        return message
