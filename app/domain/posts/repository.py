"""Post repository - Database operations for feed posts"""

from typing import Optional

from sqlalchemy import exists, update
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.sql import func

from ...models import BookingPost, Comment, DesignPost, Post, User

posts_table = Post.__table__
comments_table = Comment.__table__


def _match(column, expected):
    if expected is None:
        return column.is_(None)
    if isinstance(expected, (tuple, list, set)):
        return column.in_(expected)
    return column == expected


class PostRepository:
    """Repository for post database operations"""

    @staticmethod
    def get_post(db: Session, post_id: str) -> Optional[Post]:
        return db.query(Post).filter(Post.id == post_id).first()

    @staticmethod
    def get_feed(db: Session, feed_type: str) -> list[Post]:
        return (
            db.query(Post)
            .filter(Post.feed_type == feed_type)
            .options(
                selectinload(Post.creator),
                selectinload(Post.comments).selectinload(Comment.author),
                selectinload(Post.comments).selectinload(Comment.replies),
            )
            .order_by(Post.created_at.desc())
            .all()
        )

    @staticmethod
    def get_design_posts_by_user(db: Session, user_id: str) -> list[DesignPost]:
        return (
            db.query(DesignPost)
            .filter(DesignPost.user_id == user_id)
            .order_by(DesignPost.created_at.desc())
            .all()
        )

    @staticmethod
    def get_shop_bookings(db: Session, shop_id: str) -> list[BookingPost]:
        return (
            db.query(BookingPost)
            .filter(BookingPost.shop_id == shop_id)
            .order_by(BookingPost.scheduled_date.desc(), BookingPost.created_at.desc())
            .all()
        )

    @staticmethod
    def get_users_by_roles(db: Session, roles: tuple[str, ...]) -> list[User]:
        return db.query(User).filter(User.role.in_(roles), User.is_admin.is_(False)).all()

    @staticmethod
    def create_post(db: Session, post: Post) -> Post:
        db.add(post)
        db.commit()
        db.refresh(post)
        return post

    @staticmethod
    def conditional_update(db: Session, post_id: str, expected: dict, **values) -> int:
        """
        Compare-and-swap on a post row.

        ``expected`` maps column names to the value the row must still hold
        (None means IS NULL, a tuple means IN). Returns the affected row count;
        the caller commits or rolls back.
        """
        conditions = [posts_table.c.id == post_id]
        conditions.extend(_match(posts_table.c[column], value) for column, value in expected.items())
        result = db.execute(
            update(posts_table).where(*conditions).values(updated_at=func.now(), **values)
        )
        return result.rowcount

    @staticmethod
    def bind_pitch(db: Session, post_id: str, slot: str, comment_id: str, user_id: str) -> int:
        """Bind the pitch author into ``slot`` iff the slot is empty, the post open and the pitch live"""
        pitch_is_live = exists().where(
            comments_table.c.id == comment_id,
            comments_table.c.post_id == post_id,
            comments_table.c.parent_id.is_(None),
            comments_table.c.withdrawn.is_(False),
        )
        result = db.execute(
            update(posts_table)
            .where(
                posts_table.c.id == post_id,
                posts_table.c[slot].is_(None),
                posts_table.c.status == "open",
                pitch_is_live,
            )
            .values(**{slot: user_id}, status="accepted", updated_at=func.now())
        )
        return result.rowcount

    @staticmethod
    def delete_post(db: Session, post: Post) -> None:
        db.delete(post)
        db.commit()
