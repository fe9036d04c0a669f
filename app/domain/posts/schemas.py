"""Post domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel

from ...models import BookingPost, DesignPost, Post
from ..comments.schemas import CommentResponse
from ..users.schemas import UserSummary


class PostCreate(BaseModel):
    title: str
    description: str
    location: str
    feedType: Literal["design", "booking"]


class AcceptPitchRequest(BaseModel):
    commentId: str


class ContactInfo(BaseModel):
    # Presence and format are checked by the service so the error reads as a 400
    phone: Optional[str] = None
    email: Optional[str] = None


class ScheduleRequest(BaseModel):
    scheduledDate: datetime
    contactInfo: ContactInfo


class RescheduleRequest(BaseModel):
    scheduledDate: datetime


class PostResponse(BaseModel):
    id: str
    feedType: str
    title: str
    description: str
    location: str
    status: str
    images: list[str] = []
    userId: str
    shopId: Optional[str] = None
    artistId: Optional[str] = None
    clientId: Optional[str] = None
    scheduledDate: Optional[datetime] = None
    contactInfo: Optional[dict] = None
    depositAmount: Optional[float] = None
    depositStatus: Optional[str] = None
    createdAt: Optional[datetime] = None
    creator: Optional[UserSummary] = None
    comments: list[CommentResponse] = []

    @classmethod
    def from_post(cls, post: Post, include_comments: bool = False) -> "PostResponse":
        response = cls(
            id=post.id,
            feedType=post.feed_type,
            title=post.title,
            description=post.description,
            location=post.location,
            status=post.status,
            images=post.images or [],
            userId=post.user_id,
            shopId=post.shop_id,
            createdAt=post.created_at,
            creator=UserSummary.from_user(post.creator),
        )
        if isinstance(post, DesignPost):
            response.artistId = post.artist_id
        elif isinstance(post, BookingPost):
            response.clientId = post.client_id
            response.scheduledDate = post.scheduled_date
            response.contactInfo = post.contact_info
            response.depositAmount = post.deposit_amount
            response.depositStatus = post.deposit_status

        if include_comments:
            response.comments = [
                CommentResponse.from_comment(comment, include_replies=True)
                for comment in post.comments
                if comment.parent_id is None
            ]
        return response
