import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from ...auth import decode_access_token, get_current_user, resolve_user
from ...database import get_db
from ...errors import AppError
from ...models import User
from ...services.notification_service import registry, serialize_notification
from .service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])
ws_router = APIRouter(tags=["Realtime"])


def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


@router.get("")
async def get_notifications(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    notifications = service.list_notifications(current_user)
    return {
        "notifications": [serialize_notification(n) for n in notifications],
        "unreadCount": sum(1 for n in notifications if not n.is_read),
    }


@router.put("/mark-read")
async def mark_all_read(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    count = service.mark_all_read(current_user)
    return {"message": "Notifications marked as read", "count": count}


@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return serialize_notification(service.mark_read(current_user, notification_id))


@ws_router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, token: str = Query(""), db: Session = Depends(get_db)):
    """Live channel for notification and message pushes, authenticated by ?token="""
    try:
        user_id = resolve_user(db, decode_access_token(token)).id
    except AppError as e:
        logger.warning(f"⚠️ Websocket rejected: {e.message}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    finally:
        db.close()

    await websocket.accept()
    registry.register(user_id, websocket)
    try:
        while True:
            text = await websocket.receive_text()
            if text == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.debug(f"🔌 Client disconnected: {user_id}")
    finally:
        registry.unregister(user_id, websocket)
