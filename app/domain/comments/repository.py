"""Comment repository - Database operations for pitches and replies"""

from typing import Optional

from sqlalchemy import exists, update
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from ...models import Comment, Post

comments_table = Comment.__table__
posts_table = Post.__table__


class CommentRepository:
    """Repository for comment database operations"""

    @staticmethod
    def get_comment(db: Session, comment_id: str) -> Optional[Comment]:
        return db.query(Comment).filter(Comment.id == comment_id).first()

    @staticmethod
    def create_comment(db: Session, **comment_data) -> Comment:
        """Insert without committing; the caller maps uniqueness violations"""
        comment = Comment(**comment_data)
        db.add(comment)
        db.flush()
        return comment

    @staticmethod
    def update_comment(db: Session, comment: Comment, **updates) -> Comment:
        for key, value in updates.items():
            setattr(comment, key, value)
        db.commit()
        db.refresh(comment)
        return comment

    @staticmethod
    def mark_withdrawn(db: Session, comment_id: str) -> int:
        """Flip withdrawn on a live top-level pitch whose post has no bound shop. Returns affected rows."""
        post_is_bound = exists().where(
            posts_table.c.id == comments_table.c.post_id, posts_table.c.shop_id.is_not(None)
        )
        result = db.execute(
            update(comments_table)
            .where(
                comments_table.c.id == comment_id,
                comments_table.c.parent_id.is_(None),
                comments_table.c.withdrawn.is_(False),
                ~post_is_bound,
            )
            .values(withdrawn=True, updated_at=func.now())
        )
        return result.rowcount
