"""Rating service - Post-completion ratings between the two bound parties"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ...errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from ...models import BookingPost, DesignPost, Post, Rating, User
from ...utils.sanitization import escape_text
from ..posts.repository import PostRepository

logger = logging.getLogger(__name__)


def post_parties(post: Post) -> set:
    if isinstance(post, BookingPost):
        return {post.client_id, post.shop_id} - {None}
    if isinstance(post, DesignPost):
        return {post.shop_id, post.artist_id} - {None}
    return set()


class RatingService:
    def __init__(self, db: Session):
        self.db = db
        self.post_repo = PostRepository()

    def create_rating(self, rater: User, post_id: str, ratee_id: str, score: int, comment: str = "") -> Rating:
        post = self.post_repo.get_post(self.db, post_id)
        if not post:
            raise NotFoundError("Post not found")

        parties = post_parties(post)
        if rater.id not in parties:
            raise ForbiddenError("Only the parties of a post can rate each other")
        if ratee_id == rater.id or ratee_id not in parties:
            raise BadRequestError("You can only rate the other party of this post")
        if post.status != "completed":
            raise BadRequestError("Ratings open once the post is completed")

        rating = Rating(
            rater_id=rater.id,
            ratee_id=ratee_id,
            post_id=post.id,
            rating=score,
            comment=escape_text(comment) or "",
        )
        self.db.add(rating)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("You have already rated this user for this post") from e

        self.db.refresh(rating)
        logger.info(f"⭐ {rater.id} rated {ratee_id} {score}/5 on post {post.id}")
        return rating

    def _query(self):
        return self.db.query(Rating).options(selectinload(Rating.rater), selectinload(Rating.ratee))

    def for_post(self, post_id: str) -> list[Rating]:
        return self._query().filter(Rating.post_id == post_id).order_by(Rating.created_at.desc()).all()

    def for_user(self, user_id: str) -> list[Rating]:
        return self._query().filter(Rating.ratee_id == user_id).order_by(Rating.created_at.desc()).all()
