"""Design service - Commission stages and purchase"""

import logging
from typing import Optional

from fastapi import UploadFile
from sqlalchemy.orm import Session

from ...errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from ...models import DESIGN_STAGES, Design, DesignPost, Payment, User
from ...services.notification_service import NotificationDispatcher, Notifier
from ...services.payment_service import PaymentGateway, to_cents
from ...services.storage_service import BlobStorage
from ..comments.repository import CommentRepository
from ..designers.service import DesignerService
from ..messages.repository import MessageRepository
from ..messages.schemas import MessageResponse
from ..posts.repository import PostRepository
from ..posts.service import PostService
from .repository import DesignRepository

logger = logging.getLogger(__name__)


def stage_label(stage: str) -> str:
    return stage.replace("_", " ")


class DesignService:
    """Service layer for design commissions"""

    def __init__(self, db: Session, notifier: Notifier):
        self.db = db
        self.notifier = notifier
        self.repo = DesignRepository()
        self.comment_repo = CommentRepository()
        self.message_repo = MessageRepository()
        self.post_repo = PostRepository()
        self.dispatcher = NotificationDispatcher(db, notifier)

    def get_design(self, design_id: str) -> Design:
        design = self.repo.get_design(self.db, design_id)
        if not design:
            raise NotFoundError("Design not found")
        return design

    def list_pending(self, actor: User) -> list[Design]:
        if actor.role == "designer":
            return self.repo.list_designs(self.db, "pending", designer_id=actor.id)
        if actor.is_shop:
            return self.repo.list_designs(self.db, "pending", shop_id=actor.id)
        raise ForbiddenError("Only designers and shops have designs")

    def list_purchased(self, actor: User) -> list[Design]:
        if not actor.is_shop:
            raise ForbiddenError("Only shops purchase designs")
        return self.repo.list_designs(self.db, "purchased", shop_id=actor.id)

    def list_sold(self, actor: User) -> list[Design]:
        if actor.role != "designer":
            raise ForbiddenError("Only designers sell designs")
        return self.repo.list_designs(self.db, "purchased", designer_id=actor.id)

    async def accept_design(self, actor: User, comment_id: str) -> Design:
        """Accept a designer's pitch from the comment side"""
        comment = self.comment_repo.get_comment(self.db, comment_id)
        if not comment:
            raise NotFoundError("Comment not found")
        if not isinstance(comment.post, DesignPost):
            raise BadRequestError("Designs can only be accepted on design posts")

        _, design = await PostService(self.db, self.notifier).accept_pitch(actor, comment.post_id, comment.id)
        return design

    async def advance_stage(
        self,
        actor: User,
        design_id: str,
        new_stage: str,
        files: Optional[list[UploadFile]] = None,
        storage: Optional[BlobStorage] = None,
    ) -> Design:
        design = self.get_design(design_id)
        if actor.id != design.designer_id:
            raise ForbiddenError("Only the designer can update the design stage")
        if design.status != "pending":
            raise BadRequestError("Design has already been purchased")
        if design.post.status != "accepted":
            raise BadRequestError(f"Design post is {design.post.status}")
        if new_stage not in DESIGN_STAGES:
            raise BadRequestError(f"Invalid stage. Must be one of: {', '.join(DESIGN_STAGES)}")
        if DESIGN_STAGES.index(new_stage) <= DESIGN_STAGES.index(design.stage):
            raise BadRequestError(f"Stage can only move forward from {design.stage}")

        current_stage = design.stage
        new_images = []
        if files:
            new_images = await storage.store_many(files, folder=f"designs/{design.id}", watermark=True)

        images = [*(design.images or []), *new_images]
        if self.repo.advance_stage(self.db, design.id, current_stage, new_stage, images) == 0:
            self.db.rollback()
            raise ConflictError("Design changed while updating, try again")

        post_title = design.post.title
        message = self.message_repo.add_message(
            self.db,
            sender_id=design.designer_id,
            receiver_id=design.shop_id,
            content=f"Design for '{post_title}' moved to {stage_label(new_stage)}",
            design_id=design.id,
            stage=new_stage,
        )
        self.db.commit()
        self.db.refresh(design)
        self.db.refresh(message)
        logger.info(f"✅ Design {design.id} advanced {current_stage} → {new_stage}")

        await self.dispatcher.push(
            design.shop_id, {"type": "message", "data": MessageResponse.from_message(message).model_dump(mode="json")}
        )
        await self.dispatcher.notify(
            design.shop, f"{actor.username} updated the design for '{post_title}' to {stage_label(new_stage)}"
        )
        return design

    async def purchase(self, actor: User, design_id: str, card_token: str, gateway: PaymentGateway) -> Design:
        design = self.get_design(design_id)
        if actor.id != design.shop_id:
            raise ForbiddenError("Only the commissioning shop can purchase this design")
        if design.status != "pending":
            raise BadRequestError("Design has already been purchased")
        if design.stage != "final_design":
            raise BadRequestError("Design must reach final_design before purchase")
        if design.post.status != "accepted":
            raise BadRequestError(f"Design post is {design.post.status}")

        if self.repo.mark_purchased(self.db, design.id) == 0:
            self.db.rollback()
            raise ConflictError("Design has already been purchased or its post has closed")
        if self.post_repo.conditional_update(self.db, design.post_id, {"status": "accepted"}, status="completed") == 0:
            self.db.rollback()
            raise ConflictError("Design post is no longer accepted")

        transaction_ref = None
        if design.price > 0:
            try:
                charge = await gateway.charge(card_token, to_cents(design.price), f"design-{design.id}")
            except Exception:
                # Release the purchased flag and the post; the decline surfaces to the caller
                self.db.rollback()
                raise
            transaction_ref = charge.transaction_ref

        self.db.add(
            Payment(
                user_id=actor.id,
                amount=design.price,
                type="design_purchase",
                status="completed",
                transaction_ref=transaction_ref,
                design_id=design.id,
                post_id=design.post_id,
            )
        )
        self.db.commit()
        self.db.refresh(design)
        logger.info(f"✅ Design {design.id} purchased by {actor.id} for {design.price}")

        await self.dispatcher.notify(
            design.designer, f"{actor.username} purchased your design for '{design.post.title}'"
        )
        for badge in DesignerService(self.db).award_badges(design.designer):
            await self.dispatcher.notify(design.designer, f"You earned the {badge.name} badge")
        return design
