import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

ROLES = ("fan", "designer", "shop", "admin", "elite")
# elite is the premium shop tier and acts as a shop everywhere
SHOP_ROLES = ("shop", "elite")
FEED_TYPES = ("design", "booking")
POST_STATUSES = ("open", "accepted", "scheduled", "completed", "cancelled")
# Ordered: a design only moves forward through this tuple
DESIGN_STAGES = (
    "initial_sketch",
    "revision_1",
    "revision_2",
    "revision_3",
    "final_draft",
    "final_design",
)
DESIGN_STATUSES = ("pending", "purchased")
PAYMENT_TYPES = ("subscription", "design_purchase", "deposit")


def generate_id():
    """Generate a UUID primary key"""
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    # Same id as the identity provider's subject claim
    id = Column(String(36), primary_key=True, default=generate_id)
    username = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, index=True)  # fan, designer, shop, admin, elite
    is_admin = Column(Boolean, default=False, nullable=False)
    is_paid = Column(Boolean, default=False, nullable=False)  # shop/elite must pay before posting
    deposit_settings = Column(JSON, nullable=True)  # {"amount": 50.0} for shops
    portfolio = Column(JSON, default=list, nullable=False)  # designer work samples, image URLs
    notifications_enabled = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    posts = relationship(
        "Post", back_populates="creator", foreign_keys="Post.user_id", cascade="all, delete-orphan"
    )
    comments = relationship("Comment", back_populates="author", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="user", cascade="all, delete-orphan")
    sent_messages = relationship(
        "Message", foreign_keys="Message.sender_id", back_populates="sender", cascade="all, delete-orphan"
    )
    received_messages = relationship(
        "Message",
        foreign_keys="Message.receiver_id",
        back_populates="receiver",
        cascade="all, delete-orphan",
    )
    calendar_integrations = relationship(
        "CalendarIntegration", back_populates="user", cascade="all, delete-orphan"
    )
    badges = relationship("Badge", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (CheckConstraint(f"role IN {ROLES}", name="ck_users_role"),)

    @property
    def display_name(self) -> str:
        full_name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return full_name or self.username

    @property
    def is_shop(self) -> bool:
        return self.role in SHOP_ROLES

    @property
    def role_group(self) -> str:
        """Role with the elite tier folded into shop"""
        return "shop" if self.is_shop else self.role

    @property
    def receives_notifications(self) -> bool:
        if self.is_admin or self.role == "admin":
            return False
        return self.notifications_enabled is not False


class Post(Base):
    """Feed post. Concrete rows are DesignPost or BookingPost, tagged by feed_type."""

    __tablename__ = "posts"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    feed_type = Column(String(20), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    location = Column(String(255), nullable=False)
    # Workflow: open → accepted → scheduled → completed; cancelled from any non-terminal state
    status = Column(String(20), default="open", nullable=False, index=True)
    images = Column(JSON, default=list, nullable=False)
    # Design posts: the creating shop. Booking posts: the shop whose pitch was accepted.
    shop_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    creator = relationship("User", foreign_keys=[user_id], back_populates="posts")
    shop = relationship("User", foreign_keys=[shop_id])
    comments = relationship(
        "Comment",
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="Comment.created_at",
    )
    ratings = relationship("Rating", back_populates="post", cascade="all, delete-orphan")

    __table_args__ = (CheckConstraint(f"status IN {POST_STATUSES}", name="ck_posts_status"),)
    __mapper_args__ = {"polymorphic_on": feed_type}

    @property
    def counterpart_owner_id(self):
        """User who receives pitches on this post"""
        raise NotImplementedError

    @property
    def bound_party_id(self):
        """User bound to the post by pitch acceptance, if any"""
        raise NotImplementedError


class DesignPost(Post):
    """Design request posted by a shop; designers pitch, the accepted designer becomes the artist."""

    __mapper_args__ = {"polymorphic_identity": "design"}

    artist_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    artist = relationship("User", foreign_keys=[artist_id])

    @property
    def counterpart_owner_id(self):
        return self.shop_id

    @property
    def bound_party_id(self):
        return self.artist_id


class BookingPost(Post):
    """Booking request posted by a fan; shops pitch, the accepted shop is bound to the booking."""

    __mapper_args__ = {"polymorphic_identity": "booking"}

    client_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    scheduled_date = Column(DateTime, nullable=True)
    contact_info = Column(JSON, nullable=True)  # {"phone": ..., "email": ...}
    deposit_amount = Column(Float, nullable=True)
    deposit_status = Column(String(20), nullable=True)  # pending, paid
    external_event_ids = Column(JSON, nullable=True)  # {"client": {...}, "shop": {...}}
    ics_content = Column(JSON, nullable=True)  # {"client": "...", "shop": "..."}

    client = relationship("User", foreign_keys=[client_id])

    @property
    def counterpart_owner_id(self):
        return self.client_id

    @property
    def bound_party_id(self):
        return self.shop_id


class Comment(Base):
    """A pitch/offer on a post, or a booking pitch's follow-up reply"""

    __tablename__ = "comments"

    id = Column(String(36), primary_key=True, default=generate_id)
    post_id = Column(String(36), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_id = Column(String(36), ForeignKey("comments.id", ondelete="CASCADE"), nullable=True)
    content = Column(Text, nullable=False)
    images = Column(JSON, default=list, nullable=False)
    price = Column(Float, nullable=True)  # design feed only
    withdrawn = Column(Boolean, default=False, nullable=False)  # booking feed only
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    post = relationship("Post", back_populates="comments")
    author = relationship("User", back_populates="comments")
    parent = relationship("Comment", remote_side=[id], back_populates="replies")
    replies = relationship(
        "Comment", back_populates="parent", cascade="all, delete-orphan", order_by="Comment.created_at"
    )
    design = relationship("Design", back_populates="comment", uselist=False, cascade="all, delete-orphan")

    __table_args__ = (
        # One top-level pitch per author per post; replies are unrestricted
        Index(
            "uq_comments_top_level_author",
            "post_id",
            "user_id",
            unique=True,
            sqlite_where=text("parent_id IS NULL"),
            postgresql_where=text("parent_id IS NULL"),
        ),
    )


class Design(Base):
    """Commission spawned by accepting a designer's pitch on a design post"""

    __tablename__ = "designs"

    id = Column(String(36), primary_key=True, default=generate_id)
    designer_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    shop_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    post_id = Column(String(36), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    comment_id = Column(
        String(36), ForeignKey("comments.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    stage = Column(String(30), default="initial_sketch", nullable=False)
    status = Column(String(20), default="pending", nullable=False, index=True)  # pending, purchased
    price = Column(Float, default=0, nullable=False)
    images = Column(JSON, default=list, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    designer = relationship("User", foreign_keys=[designer_id])
    shop = relationship("User", foreign_keys=[shop_id])
    post = relationship("Post")
    comment = relationship("Comment", back_populates="design")

    __table_args__ = (
        CheckConstraint(f"stage IN {DESIGN_STAGES}", name="ck_designs_stage"),
        CheckConstraint(f"status IN {DESIGN_STATUSES}", name="ck_designs_status"),
    )


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=generate_id)
    sender_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    receiver_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    # Set when the message reports design progress
    design_id = Column(String(36), ForeignKey("designs.id", ondelete="SET NULL"), nullable=True)
    stage = Column(String(30), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    sender = relationship("User", foreign_keys=[sender_id], back_populates="sent_messages")
    receiver = relationship("User", foreign_keys=[receiver_id], back_populates="received_messages")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    message = Column(String(500), nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)  # flips false → true only
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="notifications")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    type = Column(String(30), nullable=False)  # subscription, design_purchase, deposit
    status = Column(String(20), default="pending", nullable=False)  # pending, completed, failed
    transaction_ref = Column(String(255), nullable=True)
    design_id = Column(String(36), ForeignKey("designs.id", ondelete="SET NULL"), nullable=True)
    post_id = Column(String(36), ForeignKey("posts.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="payments")


class Rating(Base):
    __tablename__ = "ratings"

    id = Column(String(36), primary_key=True, default=generate_id)
    rater_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    ratee_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    post_id = Column(String(36), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, default="", nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    rater = relationship("User", foreign_keys=[rater_id])
    ratee = relationship("User", foreign_keys=[ratee_id])
    post = relationship("Post", back_populates="ratings")

    __table_args__ = (
        UniqueConstraint("rater_id", "ratee_id", "post_id", name="uq_ratings_once_per_post"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_ratings_range"),
    )


class CalendarIntegration(Base):
    """External calendar sync opted into by a user"""

    __tablename__ = "calendar_integrations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    provider = Column(String(30), default="google", nullable=False)

    # OAuth tokens (encrypted)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=False)
    token_expires_at = Column(DateTime, nullable=False)

    account_email = Column(String(255), nullable=True)
    calendar_id = Column(String(500), nullable=True)
    auto_sync_enabled = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="calendar_integrations")

    __table_args__ = (UniqueConstraint("user_id", "provider", name="uq_calendar_user_provider"),)


class Badge(Base):
    """Achievement shown on a profile, e.g. Top Designer"""

    __tablename__ = "badges"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="badges")

    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_badges_user_name"),)
