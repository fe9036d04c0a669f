"""Message repository - Database operations for direct messages"""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from ...models import BookingPost, Comment, Message, User

messages_table = Message.__table__


class MessageRepository:
    """Repository for message database operations"""

    @staticmethod
    def get_message(db: Session, message_id: str) -> Optional[Message]:
        return db.query(Message).filter(Message.id == message_id).first()

    @staticmethod
    def get_inbox(db: Session, user_id: str) -> list[Message]:
        return (
            db.query(Message)
            .filter(Message.receiver_id == user_id)
            .options(selectinload(Message.sender), selectinload(Message.receiver))
            .order_by(Message.created_at.desc())
            .all()
        )

    @staticmethod
    def get_sent(db: Session, user_id: str) -> list[Message]:
        return (
            db.query(Message)
            .filter(Message.sender_id == user_id)
            .options(selectinload(Message.sender), selectinload(Message.receiver))
            .order_by(Message.created_at.desc())
            .all()
        )

    @staticmethod
    def add_message(db: Session, **message_data) -> Message:
        """Stage a message in the current transaction"""
        message = Message(**message_data)
        db.add(message)
        return message

    @staticmethod
    def mark_read(db: Session, message_id: str) -> int:
        result = db.execute(
            update(messages_table)
            .where(messages_table.c.id == message_id, messages_table.c.is_read.is_(False))
            .values(is_read=True)
        )
        return result.rowcount

    @staticmethod
    def shop_has_pitched_fan(db: Session, shop_id: str, fan_id: str) -> bool:
        """True when the shop has a top-level comment on one of the fan's booking requests"""
        return (
            db.query(Comment.id)
            .join(BookingPost, BookingPost.id == Comment.post_id)
            .filter(
                BookingPost.client_id == fan_id,
                Comment.user_id == shop_id,
                Comment.parent_id.is_(None),
            )
            .first()
            is not None
        )

    @staticmethod
    def get_pitched_fans(db: Session, shop_id: str) -> list[User]:
        fan_ids = (
            select(BookingPost.client_id)
            .join(Comment, Comment.post_id == BookingPost.id)
            .where(Comment.user_id == shop_id, Comment.parent_id.is_(None))
        )
        return db.query(User).filter(User.id.in_(fan_ids), User.role == "fan").all()

    @staticmethod
    def get_users_by_roles(db: Session, roles: tuple[str, ...]) -> list[User]:
        return (
            db.query(User)
            .filter(User.role.in_(roles), User.is_admin.is_(False))
            .order_by(User.username)
            .all()
        )
