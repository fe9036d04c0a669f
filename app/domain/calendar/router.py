"""
Calendar Integration Routes
Handles Google Calendar OAuth connection so bookings sync to the user's calendar
"""

import logging
from datetime import timedelta
from urllib.parse import urlencode

import httpx
from cryptography.fernet import InvalidToken
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_REDIRECT_URI
from ...database import get_db
from ...errors import AppError, BadRequestError, NotFoundError
from ...models import CalendarIntegration, User
from ...services.calendar_service import GOOGLE_TOKEN_URL, decrypt_token, encrypt_token, utc_now

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["Calendar"])

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/userinfo.email",
]


class CallbackRequest(BaseModel):
    code: str


def get_integration(db: Session, user: User):
    return (
        db.query(CalendarIntegration)
        .filter(CalendarIntegration.user_id == user.id, CalendarIntegration.provider == "google")
        .first()
    )


@router.get("/status")
async def get_calendar_status(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Get Google Calendar connection status"""
    integration = get_integration(db, current_user)
    if not integration:
        return {"connected": False, "accountEmail": None, "calendarId": None, "autoSyncEnabled": None}

    return {
        "connected": True,
        "accountEmail": integration.account_email,
        "calendarId": integration.calendar_id,
        "autoSyncEnabled": integration.auto_sync_enabled,
    }


@router.get("/connect")
async def initiate_calendar_oauth(current_user: User = Depends(get_current_user)):
    """Initiate Google Calendar OAuth flow"""
    if not GOOGLE_CLIENT_ID or not GOOGLE_CLIENT_SECRET:
        raise AppError("Google Calendar not configured")

    query = urlencode(
        {
            "client_id": GOOGLE_CLIENT_ID,
            "redirect_uri": GOOGLE_REDIRECT_URI,
            "response_type": "code",
            "scope": " ".join(GOOGLE_CALENDAR_SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "state": current_user.id,
        }
    )
    logger.info(f"Google Calendar OAuth initiated for user: {current_user.id}")
    return {"authorizationUrl": f"{GOOGLE_AUTH_URL}?{query}"}


@router.post("/callback")
async def handle_calendar_callback(
    data: CallbackRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Exchange the OAuth code and store encrypted tokens"""
    try:
        async with httpx.AsyncClient() as client:
            token_response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "code": data.code,
                    "client_id": GOOGLE_CLIENT_ID,
                    "client_secret": GOOGLE_CLIENT_SECRET,
                    "redirect_uri": GOOGLE_REDIRECT_URI,
                    "grant_type": "authorization_code",
                },
            )
            if token_response.status_code != 200:
                logger.error(f"Token exchange failed: {token_response.text}")
                raise BadRequestError("Failed to exchange authorization code")

            tokens = token_response.json()
            access_token = tokens.get("access_token")
            refresh_token = tokens.get("refresh_token")
            if not access_token or not refresh_token:
                raise BadRequestError("Invalid token response")

            user_info_response = await client.get(
                "https://www.googleapis.com/oauth2/v2/userinfo",
                headers={"Authorization": f"Bearer {access_token}"},
            )
            account_email = user_info_response.json().get("email") if user_info_response.status_code == 200 else None
    except httpx.HTTPError as e:
        logger.error(f"❌ Google Calendar callback error: {str(e)}")
        raise BadRequestError("Failed to reach Google") from e

    integration = get_integration(db, current_user)
    if not integration:
        integration = CalendarIntegration(user_id=current_user.id, provider="google")
        db.add(integration)

    integration.access_token = encrypt_token(access_token)
    integration.refresh_token = encrypt_token(refresh_token)
    integration.token_expires_at = utc_now() + timedelta(seconds=tokens.get("expires_in", 3600))
    integration.account_email = account_email
    integration.calendar_id = "primary"
    integration.auto_sync_enabled = True
    db.commit()

    logger.info(f"✅ Google Calendar connected for user: {current_user.id}")
    return {"success": True, "message": "Google Calendar connected successfully", "accountEmail": account_email}


@router.post("/disconnect")
async def disconnect_calendar(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Disconnect Google Calendar integration"""
    integration = get_integration(db, current_user)
    if not integration:
        raise NotFoundError("Google Calendar not connected")

    # Revoke Google tokens
    try:
        access_token = decrypt_token(integration.access_token)
        async with httpx.AsyncClient() as client:
            await client.post("https://oauth2.googleapis.com/revoke", params={"token": access_token})
    except (httpx.HTTPError, InvalidToken) as e:
        logger.warning(f"Failed to revoke Google tokens: {str(e)}")

    db.delete(integration)
    db.commit()

    logger.info(f"✅ Google Calendar disconnected for user: {current_user.id}")
    return {"success": True, "message": "Google Calendar disconnected"}
