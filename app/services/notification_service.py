"""
Notification Service
Durable notification records plus best-effort real-time push over websockets.
The notification row is always written before any push is attempted.
"""

import logging
from typing import Iterable, Optional, Protocol

from fastapi import WebSocket
from sqlalchemy.orm import Session
from starlette.websockets import WebSocketState

from ..models import Notification, User

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def push(self, user_id: str, event: dict) -> bool: ...


class ConnectionRegistry:
    """Live websocket per user id; a newer connection replaces the older one"""

    def __init__(self):
        self._connections: dict[str, WebSocket] = {}

    def register(self, user_id: str, websocket: WebSocket) -> None:
        self._connections[user_id] = websocket
        logger.info(f"🔌 Websocket registered for user {user_id} ({len(self._connections)} live)")

    def unregister(self, user_id: str, websocket: Optional[WebSocket] = None) -> None:
        current = self._connections.get(user_id)
        if current is not None and (websocket is None or current is websocket):
            del self._connections[user_id]
            logger.info(f"🔌 Websocket closed for user {user_id}")

    async def push(self, user_id: str, event: dict) -> bool:
        websocket = self._connections.get(user_id)
        if websocket is None:
            logger.debug(f"ℹ️ No live connection for user {user_id}, {event.get('type')} stays stored")
            return False

        if websocket.application_state != WebSocketState.CONNECTED:
            self.unregister(user_id, websocket)
            return False

        await websocket.send_json(event)
        return True


registry = ConnectionRegistry()


def serialize_notification(notification: Notification) -> dict:
    return {
        "id": notification.id,
        "message": notification.message,
        "isRead": notification.is_read,
        "createdAt": notification.created_at.isoformat() if notification.created_at else None,
    }


class NotificationDispatcher:
    """Persists notifications and pushes them through the injected notifier"""

    def __init__(self, db: Session, notifier: Notifier):
        self.db = db
        self.notifier = notifier

    async def push(self, user_id: str, event: dict) -> None:
        """Fire-and-forget push; failures never reach the caller"""
        try:
            await self.notifier.push(user_id, event)
        except Exception as e:
            logger.warning(f"⚠️ Push of {event.get('type')} to user {user_id} failed: {e}")

    async def notify(self, user: Optional[User], message: str) -> Optional[Notification]:
        if user is None or not user.receives_notifications:
            return None

        notification = Notification(user_id=user.id, message=message)
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        logger.info(f"🔔 Notification stored for user {user.id}")

        await self.push(user.id, {"type": "notification", "data": serialize_notification(notification)})
        return notification

    async def notify_many(self, users: Iterable[User], message: str) -> list[Notification]:
        """Broadcast one message to many users with a single commit"""
        notifications = [
            Notification(user_id=user.id, message=message) for user in users if user.receives_notifications
        ]
        if not notifications:
            return []

        self.db.add_all(notifications)
        self.db.commit()
        logger.info(f"🔔 Broadcast notification stored for {len(notifications)} users")

        for notification in notifications:
            self.db.refresh(notification)
            await self.push(
                notification.user_id, {"type": "notification", "data": serialize_notification(notification)}
            )
        return notifications
