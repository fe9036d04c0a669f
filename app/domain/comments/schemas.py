"""Comment schemas - pitches, offers and booking replies"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models import Comment
from ..users.schemas import UserSummary


class CommentCreate(BaseModel):
    content: str
    parentId: Optional[str] = None
    price: Optional[float] = None

    @field_validator("price")
    @classmethod
    def validate_price(cls, v):
        if v is not None and v < 0:
            raise ValueError("Price cannot be negative")
        return v


class CommentUpdate(BaseModel):
    content: str
    price: Optional[float] = None

    @field_validator("price")
    @classmethod
    def validate_price(cls, v):
        if v is not None and v < 0:
            raise ValueError("Price cannot be negative")
        return v


class CommentResponse(BaseModel):
    id: str
    postId: str
    userId: str
    parentId: Optional[str] = None
    content: str
    images: list[str] = []
    price: Optional[float] = None
    withdrawn: bool = False
    createdAt: Optional[datetime] = None
    author: Optional[UserSummary] = None
    replies: list["CommentResponse"] = []

    @classmethod
    def from_comment(cls, comment: Comment, include_replies: bool = False) -> "CommentResponse":
        return cls(
            id=comment.id,
            postId=comment.post_id,
            userId=comment.user_id,
            parentId=comment.parent_id,
            content=comment.content,
            images=comment.images or [],
            price=comment.price,
            withdrawn=comment.withdrawn,
            createdAt=comment.created_at,
            author=UserSummary.from_user(comment.author),
            replies=[cls.from_comment(reply) for reply in comment.replies] if include_replies else [],
        )
