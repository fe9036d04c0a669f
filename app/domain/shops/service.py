"""Shop service - Booking calendar, deposit stats and deposit settings"""

import logging

from sqlalchemy.orm import Session

from ...errors import ForbiddenError
from ...models import BookingPost, User
from ..posts.repository import PostRepository

logger = logging.getLogger(__name__)

DEPOSIT_STATES = ("scheduled", "completed")


class ShopService:
    def __init__(self, db: Session):
        self.db = db
        self.post_repo = PostRepository()

    @staticmethod
    def require_shop(user: User) -> None:
        if not user.is_shop:
            raise ForbiddenError("Only shops can access this endpoint")

    def get_bookings(self, shop: User) -> list[BookingPost]:
        self.require_shop(shop)
        return self.post_repo.get_shop_bookings(self.db, shop.id)

    def get_deposit_stats(self, shop: User) -> dict:
        self.require_shop(shop)
        bookings = [b for b in self.post_repo.get_shop_bookings(self.db, shop.id) if b.status in DEPOSIT_STATES]

        stats = {"totalDepositAmount": 0.0, "paidDeposits": 0, "pendingDeposits": 0, "bookings": []}
        for booking in bookings:
            amount = booking.deposit_amount or 0
            if not amount:
                continue
            stats["totalDepositAmount"] += amount
            if booking.deposit_status == "paid":
                stats["paidDeposits"] += 1
            else:
                stats["pendingDeposits"] += 1
            stats["bookings"].append(
                {
                    "id": booking.id,
                    "title": booking.title,
                    "scheduledDate": booking.scheduled_date,
                    "depositAmount": amount,
                    "depositStatus": booking.deposit_status or "pending",
                }
            )
        return stats

    def update_deposit_settings(self, shop: User, amount: float) -> User:
        self.require_shop(shop)
        shop.deposit_settings = {**(shop.deposit_settings or {}), "amount": round(amount, 2)}
        self.db.commit()
        self.db.refresh(shop)
        logger.info(f"✅ Deposit settings updated for shop {shop.id}: {amount}")
        return shop
