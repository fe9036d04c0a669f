"""Comment service - Engagement rules for pitches, offers and replies"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from ...models import Comment, DesignPost, Post, User
from ...services.notification_service import NotificationDispatcher, Notifier
from ...utils.sanitization import clean_text
from ..posts.repository import PostRepository
from .repository import CommentRepository
from .schemas import CommentCreate, CommentUpdate

logger = logging.getLogger(__name__)

# Roles allowed to author a comment, per feed
AUTHORING_ROLES = {
    "design": ("designer", "shop"),
    "booking": ("shop",),
}


class CommentService:
    """Service layer for comment business logic"""

    def __init__(self, db: Session, notifier: Notifier):
        self.db = db
        self.repo = CommentRepository()
        self.post_repo = PostRepository()
        self.dispatcher = NotificationDispatcher(db, notifier)

    def get_comment(self, comment_id: str) -> Comment:
        comment = self.repo.get_comment(self.db, comment_id)
        if not comment:
            raise NotFoundError("Comment not found")
        return comment

    def get_post(self, post_id: str) -> Post:
        post = self.post_repo.get_post(self.db, post_id)
        if not post:
            raise NotFoundError("Post not found")
        return post

    async def submit_comment(self, actor: User, post_id: str, data: CommentCreate) -> Comment:
        post = self.get_post(post_id)
        is_design = isinstance(post, DesignPost)

        if actor.role_group not in AUTHORING_ROLES[post.feed_type]:
            logger.warning(f"⚠️ {actor.role} {actor.id} may not comment on {post.feed_type} post {post.id}")
            raise ForbiddenError(
                "Only designers and shops can pitch on design posts"
                if is_design
                else "Only shops can pitch on booking requests"
            )

        if is_design and data.parentId:
            raise ForbiddenError("Sub-comments not allowed in Design Feed")

        if data.parentId:
            parent = self.repo.get_comment(self.db, data.parentId)
            if (
                not parent
                or parent.post_id != post.id
                or parent.user_id != actor.id
                or parent.parent_id is not None
            ):
                raise BadRequestError("Invalid parent comment")

        content = clean_text(data.content)

        try:
            comment = self.repo.create_comment(
                self.db,
                post_id=post.id,
                user_id=actor.id,
                parent_id=data.parentId,
                content=content,
                price=data.price if is_design else None,
                images=[],
            )
            self.db.commit()
        except IntegrityError as e:
            # The partial unique index allows one top-level comment per author per post
            self.db.rollback()
            logger.info(f"ℹ️ Duplicate pitch by {actor.id} on post {post.id} rejected")
            raise ConflictError("You've already responded to this post") from e

        self.db.refresh(comment)
        logger.info(f"✅ Comment {comment.id} created on {post.feed_type} post {post.id}")

        owner_id = post.counterpart_owner_id
        if owner_id and owner_id != actor.id:
            owner = self.db.get(User, owner_id)
            await self.dispatcher.notify(
                owner, f"New comment on your {post.feed_type} post '{post.title}' by {actor.username}"
            )

        return comment

    def edit_comment(self, actor: User, comment_id: str, data: CommentUpdate) -> Comment:
        comment = self.get_comment(comment_id)
        if comment.user_id != actor.id:
            raise ForbiddenError("You can only edit your own comments")

        is_design = isinstance(comment.post, DesignPost)
        comment = self.repo.update_comment(
            self.db,
            comment,
            content=clean_text(data.content),
            price=data.price if is_design else None,
        )
        logger.info(f"✅ Comment updated: {comment.id}")
        return comment

    def withdraw_pitch(self, actor: User, comment_id: str) -> Comment:
        comment = self.get_comment(comment_id)
        if comment.user_id != actor.id:
            raise ForbiddenError("You can only withdraw your own pitch")
        if comment.parent_id is not None:
            raise BadRequestError("Only top-level pitches can be withdrawn")
        if isinstance(comment.post, DesignPost):
            raise BadRequestError("Design pitches cannot be withdrawn")
        if comment.withdrawn:
            raise BadRequestError("Pitch already withdrawn")
        if comment.post.shop_id is not None:
            raise ConflictError("Pitch already accepted")

        if self.repo.mark_withdrawn(self.db, comment.id) == 0:
            # Lost a race with acceptance or a second withdrawal
            self.db.rollback()
            self.db.refresh(comment.post)
            raise ConflictError("Pitch already accepted" if comment.post.shop_id else "Pitch already withdrawn")

        self.db.commit()
        self.db.refresh(comment)
        logger.info(f"✅ Pitch {comment.id} withdrawn by {actor.id}")
        return comment
