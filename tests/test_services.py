import asyncio
import importlib
import io
import warnings
from datetime import datetime, timedelta

import pytest
from conftest import auth
from PIL import Image

import app.domain.designs.schemas as design_schemas
from app.errors import UnprocessableEntityError
from app.models import CalendarIntegration
from app.rate_limiter import check_rate_limit
from app.services.calendar_service import (
    Appointment,
    CalendarService,
    build_ics,
    decrypt_token,
    encrypt_token,
    get_valid_access_token,
    utc_now,
)
from app.services.payment_service import PaymentGateway, to_cents
from app.services.storage_service import apply_watermark


def test_build_ics_describes_the_appointment():
    appointment = Appointment(
        uid="post-1-client@rightartist",
        summary="Tattoo appointment: Rose",
        description="Booking with Ink House",
        location="Austin",
        start=datetime(2026, 11, 20, 15, 0),
        duration_minutes=90,
    )
    ics = build_ics(appointment)

    assert ics.startswith("BEGIN:VCALENDAR")
    assert "UID:post-1-client@rightartist" in ics
    assert "DTSTART:20261120T150000" in ics
    assert "DTEND:20261120T163000" in ics


def test_tokens_are_encrypted_at_rest():
    encrypted = encrypt_token("ya29.secret")
    assert encrypted != "ya29.secret"
    assert decrypt_token(encrypted) == "ya29.secret"


@pytest.mark.parametrize("image_format,content_type", [("PNG", "image/png"), ("JPEG", "image/jpeg")])
def test_watermark_keeps_format(image_format, content_type):
    buffer = io.BytesIO()
    Image.new("RGB", (120, 80), color=(255, 255, 255)).save(buffer, format=image_format)

    stamped = Image.open(io.BytesIO(apply_watermark(buffer.getvalue())))
    assert stamped.format == image_format
    assert stamped.size == (120, 80)


def test_watermark_rejects_unreadable_images():
    with pytest.raises(UnprocessableEntityError):
        apply_watermark(b"not an image")


def test_rate_limit_counts_per_key():
    results = [check_rate_limit("test:user-1", limit=2, window_seconds=60)[0] for _ in range(3)]
    assert results == [True, True, False]
    assert check_rate_limit("test:user-2", limit=2, window_seconds=60)[0] is True


def test_unconfigured_gateway_refuses_to_charge():
    gateway = PaymentGateway()
    gateway.merchant_id = None

    with pytest.raises(UnprocessableEntityError):
        asyncio.run(gateway.charge("tok", to_cents(12.5), "ref"))
    assert to_cents(12.5) == 1250


def test_calendar_without_integration_only_builds_ics(db, fan):
    appointment = Appointment(
        uid="x", summary="s", description="d", location="l", start=datetime(2026, 1, 1, 9, 0)
    )
    result = asyncio.run(CalendarService().create_event(db, fan, appointment))
    assert "BEGIN:VCALENDAR" in result.ics
    assert result.external_refs == {}


def test_calendar_status(client, db, fan):
    assert client.get("/calendar/status", headers=auth(fan)).json()["connected"] is False

    db.add(
        CalendarIntegration(
            user_id=fan.id,
            provider="google",
            access_token=encrypt_token("access"),
            refresh_token=encrypt_token("refresh"),
            token_expires_at=datetime(2030, 1, 1),
            account_email="fan@gmail.com",
            calendar_id="primary",
        )
    )
    db.commit()

    status = client.get("/calendar/status", headers=auth(fan)).json()
    assert status["connected"] is True
    assert status["accountEmail"] == "fan@gmail.com"


def test_fresh_calendar_token_skips_refresh(db, fan):
    integration = CalendarIntegration(
        user_id=fan.id,
        provider="google",
        access_token=encrypt_token("access"),
        refresh_token=encrypt_token("refresh"),
        token_expires_at=utc_now() + timedelta(hours=1),
    )
    db.add(integration)
    db.commit()

    with warnings.catch_warnings():
        warnings.simplefilter("error", DeprecationWarning)
        assert asyncio.run(get_valid_access_token(integration, db)) == "access"
    assert utc_now().tzinfo is None


def test_design_schemas_use_current_pydantic_config():
    with warnings.catch_warnings():
        warnings.simplefilter("error", DeprecationWarning)
        importlib.reload(design_schemas)
