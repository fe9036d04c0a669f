"""Design schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ...models import Design
from ..users.schemas import UserSummary


class PurchaseRequest(BaseModel):
    cardToken: str


class DesignResponse(BaseModel):
    id: str
    designerId: str
    shopId: str
    postId: str
    commentId: str
    stage: str
    status: str
    price: float
    images: list[str] = []
    postTitle: Optional[str] = None
    designer: Optional[UserSummary] = None
    shop: Optional[UserSummary] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @classmethod
    def from_design(cls, design: Design) -> "DesignResponse":
        return cls(
            id=design.id,
            designerId=design.designer_id,
            shopId=design.shop_id,
            postId=design.post_id,
            commentId=design.comment_id,
            stage=design.stage,
            status=design.status,
            price=design.price,
            images=design.images or [],
            postTitle=design.post.title if design.post else None,
            designer=UserSummary.from_user(design.designer),
            shop=UserSummary.from_user(design.shop),
            createdAt=design.created_at,
            updatedAt=design.updated_at,
        )
