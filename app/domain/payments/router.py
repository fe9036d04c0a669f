"""Payment router - Subscriptions and booking deposits"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...dependencies import get_notifier, get_payment_gateway
from ...models import User
from ...services.notification_service import Notifier
from ...services.payment_service import PaymentGateway
from .schemas import ChargeRequest, PaymentResponse
from .service import PaymentService

router = APIRouter(tags=["Payments"])


def get_payment_service(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> PaymentService:
    """Dependency injection for PaymentService"""
    return PaymentService(db, notifier, gateway)


@router.post("/payments/subscribe", status_code=201)
async def subscribe(
    data: ChargeRequest,
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Pay the monthly shop subscription that unlocks posting"""
    payment = await service.subscribe(current_user, data.cardToken)
    return {"message": "Subscription successful", "payment": PaymentResponse.from_payment(payment)}


@router.post("/posts/{post_id}/deposit", status_code=201)
async def pay_deposit(
    post_id: str,
    data: ChargeRequest,
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    payment = await service.pay_deposit(current_user, post_id, data.cardToken)
    return {"message": "Deposit paid", "payment": PaymentResponse.from_payment(payment)}
