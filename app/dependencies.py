"""Collaborator providers. Tests swap them through app.dependency_overrides."""

from functools import lru_cache

from .services.calendar_service import CalendarService
from .services.notification_service import Notifier, registry
from .services.payment_service import PaymentGateway
from .services.storage_service import BlobStorage


def get_notifier() -> Notifier:
    return registry


@lru_cache
def get_calendar_service() -> CalendarService:
    return CalendarService()


@lru_cache
def get_payment_gateway() -> PaymentGateway:
    return PaymentGateway()


@lru_cache
def get_blob_storage() -> BlobStorage:
    return BlobStorage()
