"""Designer service - Portfolio, badges and earnings"""

import logging
from datetime import datetime, timedelta, timezone

from fastapi import UploadFile
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config import DESIGNER_PAYOUT_RATE, TOP_DESIGNER_SALES
from ...errors import ForbiddenError, NotFoundError
from ...models import Badge, Design, Payment, User
from ...services.storage_service import BlobStorage

logger = logging.getLogger(__name__)

TOP_DESIGNER = "Top Designer"
HOT_STREAK_SALES = 5


class DesignerService:
    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def require_designer(user: User) -> None:
        if user.role != "designer":
            raise ForbiddenError("Designers only")

    def _sales_query(self, designer_id: str):
        """Completed design purchases of this designer's work"""
        return (
            self.db.query(Payment)
            .join(Design, Payment.design_id == Design.id)
            .filter(
                Design.designer_id == designer_id,
                Payment.type == "design_purchase",
                Payment.status == "completed",
            )
        )

    # ------------------------------------------------------------------
    # Portfolio
    # ------------------------------------------------------------------

    def get_portfolio(self, user_id: str) -> list[str]:
        user = self.db.get(User, user_id)
        if not user or user.role != "designer":
            raise NotFoundError("Designer not found")
        return list(user.portfolio or [])

    async def add_portfolio_image(self, designer: User, image: UploadFile, storage: BlobStorage) -> str:
        self.require_designer(designer)
        image_url = await storage.store(image, folder=f"portfolio/{designer.id}", watermark=True)

        # Reassign so the JSON column is flagged dirty
        designer.portfolio = [*(designer.portfolio or []), image_url]
        self.db.commit()
        logger.info(f"✅ Portfolio image uploaded for designer {designer.id}")
        return image_url

    # ------------------------------------------------------------------
    # Badges
    # ------------------------------------------------------------------

    def list_badges(self, user: User) -> list[Badge]:
        return self.db.query(Badge).filter(Badge.user_id == user.id).order_by(Badge.created_at).all()

    def award_badges(self, user: User) -> list[Badge]:
        """Grant any badge the user now qualifies for. Returns only the new ones."""
        if user.role != "designer":
            return []
        if self._sales_query(user.id).count() < TOP_DESIGNER_SALES:
            return []
        if self.db.query(Badge).filter(Badge.user_id == user.id, Badge.name == TOP_DESIGNER).first():
            return []

        badge = Badge(user_id=user.id, name=TOP_DESIGNER)
        self.db.add(badge)
        try:
            self.db.commit()
        except IntegrityError:
            # Awarded by a concurrent purchase
            self.db.rollback()
            return []
        self.db.refresh(badge)
        logger.info(f"🏅 {TOP_DESIGNER} badge awarded to {user.id}")
        return [badge]

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def get_stats(self, designer: User) -> dict:
        self.require_designer(designer)
        sales = self._sales_query(designer.id)

        designs_sold = sales.count()
        gross = sales.with_entities(func.coalesce(func.sum(Payment.amount), 0)).scalar()
        since = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=30)
        recent = sales.filter(Payment.created_at >= since).count()

        return {
            "totalEarnings": round(float(gross) * DESIGNER_PAYOUT_RATE, 2),
            "designsSold": designs_sold,
            "trends": {"monthly": "Hot Streak" if recent > HOT_STREAK_SALES else "Steady"},
        }
