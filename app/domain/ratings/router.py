"""Rating router"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Rating, User
from ..users.schemas import UserSummary
from .service import RatingService

router = APIRouter(prefix="/ratings", tags=["Ratings"])


class RatingCreate(BaseModel):
    postId: str
    rateeId: str
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = ""


class RatingResponse(BaseModel):
    id: str
    postId: str
    rating: int
    comment: Optional[str] = None
    rater: Optional[UserSummary] = None
    ratee: Optional[UserSummary] = None
    createdAt: Optional[datetime] = None

    @classmethod
    def from_rating(cls, rating: Rating) -> "RatingResponse":
        return cls(
            id=rating.id,
            postId=rating.post_id,
            rating=rating.rating,
            comment=rating.comment,
            rater=UserSummary.from_user(rating.rater),
            ratee=UserSummary.from_user(rating.ratee),
            createdAt=rating.created_at,
        )


def get_rating_service(db: Session = Depends(get_db)) -> RatingService:
    return RatingService(db)


@router.post("", status_code=201, response_model=RatingResponse)
async def create_rating(
    data: RatingCreate,
    current_user: User = Depends(get_current_user),
    service: RatingService = Depends(get_rating_service),
):
    rating = service.create_rating(current_user, data.postId, data.rateeId, data.rating, data.comment or "")
    return RatingResponse.from_rating(rating)


@router.get("/post/{post_id}")
async def get_post_ratings(
    post_id: str,
    _: User = Depends(get_current_user),
    service: RatingService = Depends(get_rating_service),
):
    return {"ratings": [RatingResponse.from_rating(r) for r in service.for_post(post_id)]}


@router.get("/user/{user_id}")
async def get_user_ratings(
    user_id: str,
    _: User = Depends(get_current_user),
    service: RatingService = Depends(get_rating_service),
):
    """Ratings received by a user, with their average"""
    ratings = service.for_user(user_id)
    average = round(sum(r.rating for r in ratings) / len(ratings), 2) if ratings else None
    return {"ratings": [RatingResponse.from_rating(r) for r in ratings], "average": average}
