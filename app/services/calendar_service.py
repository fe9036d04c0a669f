"""
Calendar Service
Builds iCalendar appointments for bookings and mirrors them into Google Calendar
for users who connected it
"""

import base64
import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx
from cryptography.fernet import Fernet, InvalidToken
from icalendar import Calendar, Event
from sqlalchemy.orm import Session

from ..config import APPOINTMENT_DURATION_MINUTES, GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, SECRET_KEY
from ..errors import UnprocessableEntityError
from ..models import CalendarIntegration, User

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"  # noqa: S105 - OAuth endpoint URL
GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"


def utc_now() -> datetime:
    """Naive UTC timestamp, matching the naive DateTime columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_cipher() -> Fernet:
    """Fernet cipher for OAuth tokens at rest, keyed from SECRET_KEY"""
    key = base64.urlsafe_b64encode(hashlib.sha256(SECRET_KEY.encode()).digest())
    return Fernet(key)


def encrypt_token(token: str) -> str:
    return get_cipher().encrypt(token.encode()).decode()


def decrypt_token(token: str) -> str:
    return get_cipher().decrypt(token.encode()).decode()


@dataclass
class Appointment:
    """A booking appointment as seen by one participant"""

    uid: str
    summary: str
    description: str
    location: str
    start: datetime
    duration_minutes: int = APPOINTMENT_DURATION_MINUTES

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)


@dataclass
class CalendarEventResult:
    ics: str
    external_refs: dict = field(default_factory=dict)


def build_ics(appointment: Appointment) -> str:
    """Render an appointment as an .ics document"""
    cal = Calendar()
    cal.add("prodid", "-//RightArtist//Bookings//EN")
    cal.add("version", "2.0")

    event = Event()
    event.add("uid", appointment.uid)
    event.add("summary", appointment.summary)
    event.add("description", appointment.description)
    event.add("location", appointment.location)
    event.add("dtstart", appointment.start)
    event.add("dtend", appointment.end)
    event.add("dtstamp", datetime.now(timezone.utc))
    cal.add_component(event)

    return cal.to_ical().decode("utf-8")


async def get_valid_access_token(integration: CalendarIntegration, db: Session) -> Optional[str]:
    """
    Get a valid access token, refreshing if necessary
    Returns None if refresh fails
    """
    try:
        # Refresh when expired or about to expire (within 5 minutes)
        if integration.token_expires_at > utc_now() + timedelta(minutes=5):
            return decrypt_token(integration.access_token)

        logger.info("🔄 Google Calendar token expired, refreshing...")
        refresh_token = decrypt_token(integration.refresh_token)

        async with httpx.AsyncClient() as client:
            response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": GOOGLE_CLIENT_ID,
                    "client_secret": GOOGLE_CLIENT_SECRET,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
            )

        if response.status_code != 200:
            logger.error(f"❌ Token refresh failed: {response.text}")
            return None

        tokens = response.json()
        new_access_token = tokens.get("access_token")
        if not new_access_token:
            logger.error("❌ No access token in refresh response")
            return None

        integration.access_token = encrypt_token(new_access_token)
        integration.token_expires_at = utc_now() + timedelta(seconds=tokens.get("expires_in", 3600))
        db.commit()

        logger.info("✅ Google Calendar token refreshed successfully")
        return new_access_token

    except (httpx.HTTPError, InvalidToken) as e:
        logger.error(f"❌ Error getting valid access token: {str(e)}")
        return None


async def create_google_event(
    integration: CalendarIntegration, appointment: Appointment, db: Session
) -> Optional[str]:
    """
    Create a Google Calendar event for an appointment
    Returns the Google Calendar event ID if successful, None otherwise
    """
    access_token = await get_valid_access_token(integration, db)
    if not access_token:
        logger.error("❌ Failed to get valid access token")
        return None

    event_data = {
        "summary": appointment.summary,
        "description": appointment.description,
        "location": appointment.location,
        "start": {"dateTime": appointment.start.isoformat(), "timeZone": "UTC"},
        "end": {"dateTime": appointment.end.isoformat(), "timeZone": "UTC"},
    }

    calendar_id = integration.calendar_id or "primary"
    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events",
                headers={"Authorization": f"Bearer {access_token}"},
                json=event_data,
            )
    except httpx.HTTPError as e:
        logger.error(f"❌ Error creating calendar event: {str(e)}")
        return None

    if response.status_code not in [200, 201]:
        logger.error(f"❌ Failed to create calendar event: {response.text}")
        return None

    event_id = response.json().get("id")
    logger.info(f"✅ Google Calendar event created: {event_id}")
    return event_id


async def delete_google_event(integration: CalendarIntegration, event_id: str, db: Session) -> bool:
    """
    Delete a Google Calendar event
    Returns True if successful, False otherwise
    """
    access_token = await get_valid_access_token(integration, db)
    if not access_token:
        logger.error("❌ Failed to get valid access token")
        return False

    calendar_id = integration.calendar_id or "primary"
    try:
        async with httpx.AsyncClient() as client:
            response = await client.delete(
                f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events/{event_id}",
                headers={"Authorization": f"Bearer {access_token}"},
            )
    except httpx.HTTPError as e:
        logger.error(f"❌ Error deleting calendar event: {str(e)}")
        return False

    # 410: already deleted on Google's side
    if response.status_code not in [200, 204, 410]:
        logger.error(f"❌ Failed to delete calendar event: {response.text}")
        return False

    logger.info(f"✅ Google Calendar event deleted: {event_id}")
    return True


class CalendarService:
    """Calendar collaborator: .ics always, external sync only when the user opted in"""

    @staticmethod
    def get_integration(db: Session, user: User) -> Optional[CalendarIntegration]:
        return (
            db.query(CalendarIntegration)
            .filter(CalendarIntegration.user_id == user.id, CalendarIntegration.auto_sync_enabled.is_(True))
            .first()
        )

    async def create_event(self, db: Session, user: User, appointment: Appointment) -> CalendarEventResult:
        result = CalendarEventResult(ics=build_ics(appointment))

        integration = self.get_integration(db, user)
        if not integration:
            logger.debug(f"ℹ️ No calendar sync for user {user.id}, .ics only")
            return result

        event_id = await create_google_event(integration, appointment, db)
        if not event_id:
            raise UnprocessableEntityError("Failed to sync appointment to your calendar")

        result.external_refs[integration.provider] = event_id
        return result

    async def delete_event(self, db: Session, user: User, external_refs: Optional[dict]) -> None:
        """Remove synced events. Failures are logged; the booking change stands."""
        if not external_refs:
            return

        integration = self.get_integration(db, user)
        event_id = external_refs.get(integration.provider) if integration else None
        if not event_id:
            return

        if not await delete_google_event(integration, event_id, db):
            logger.warning(f"⚠️ Calendar event {event_id} for user {user.id} could not be removed")
