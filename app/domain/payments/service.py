"""Payment service - Shop subscriptions and booking deposits"""

import logging

from sqlalchemy.orm import Session

from ...config import SUBSCRIPTION_PRICES
from ...errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from ...models import BookingPost, Payment, User
from ...services.notification_service import NotificationDispatcher, Notifier
from ...services.payment_service import PaymentGateway, to_cents
from ..posts.repository import PostRepository

logger = logging.getLogger(__name__)


class PaymentService:
    def __init__(self, db: Session, notifier: Notifier, gateway: PaymentGateway):
        self.db = db
        self.gateway = gateway
        self.post_repo = PostRepository()
        self.dispatcher = NotificationDispatcher(db, notifier)

    async def subscribe(self, actor: User, card_token: str) -> Payment:
        if not actor.is_shop:
            raise ForbiddenError("Only shops can subscribe")
        if actor.is_paid:
            raise ConflictError("Subscription already active")

        amount = SUBSCRIPTION_PRICES[actor.role]
        charge = await self.gateway.charge(card_token, to_cents(amount), f"sub-{actor.id}")

        payment = Payment(
            user_id=actor.id,
            amount=amount,
            type="subscription",
            status="completed",
            transaction_ref=charge.transaction_ref,
        )
        self.db.add(payment)
        actor.is_paid = True
        self.db.commit()
        self.db.refresh(payment)
        logger.info(f"✅ Subscription processed for {actor.id}, amount: {amount}")
        return payment

    async def pay_deposit(self, actor: User, post_id: str, card_token: str) -> Payment:
        post = self.post_repo.get_post(self.db, post_id)
        if not isinstance(post, BookingPost):
            raise NotFoundError("Booking not found")
        if actor.id != post.client_id:
            raise ForbiddenError("Only the client can pay the deposit")
        if post.status != "scheduled" or not post.deposit_amount:
            raise BadRequestError("No deposit is due for this booking")
        if post.deposit_status == "paid":
            raise ConflictError("Deposit already paid")

        updated = self.post_repo.conditional_update(
            self.db, post.id, {"status": "scheduled", "deposit_status": "pending"}, deposit_status="paid"
        )
        if updated == 0:
            self.db.rollback()
            raise ConflictError("Deposit already paid")

        try:
            charge = await self.gateway.charge(card_token, to_cents(post.deposit_amount), f"deposit-{post.id}")
        except Exception:
            self.db.rollback()
            raise

        payment = Payment(
            user_id=actor.id,
            amount=post.deposit_amount,
            type="deposit",
            status="completed",
            transaction_ref=charge.transaction_ref,
            post_id=post.id,
        )
        self.db.add(payment)
        self.db.commit()
        self.db.refresh(payment)
        self.db.refresh(post)
        logger.info(f"✅ Deposit of {post.deposit_amount} paid for booking {post.id}")

        await self.dispatcher.notify(
            post.shop, f"{actor.username} paid the ${post.deposit_amount:.2f} deposit for '{post.title}'"
        )
        return payment
