"""Post service - Post lifecycle: creation, pitch acceptance, scheduling, completion"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import UploadFile
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from ...models import SHOP_ROLES, BookingPost, Design, DesignPost, Post, User
from ...services.calendar_service import Appointment, CalendarEventResult, CalendarService
from ...services.notification_service import NotificationDispatcher, Notifier
from ...services.storage_service import BlobStorage
from ...shared.validators import validate_email, validate_phone
from ...utils.sanitization import clean_text
from ..comments.repository import CommentRepository
from ..designs.repository import DesignRepository
from ..messages.repository import MessageRepository
from ..messages.schemas import MessageResponse
from .repository import PostRepository
from .schemas import ContactInfo, PostCreate, ScheduleRequest

logger = logging.getLogger(__name__)

OPEN_STATES = ("open", "accepted", "scheduled")


class PostService:
    """Service layer for the post state machine"""

    def __init__(self, db: Session, notifier: Notifier, calendar: Optional[CalendarService] = None):
        self.db = db
        self.repo = PostRepository()
        self.comment_repo = CommentRepository()
        self.design_repo = DesignRepository()
        self.message_repo = MessageRepository()
        self.dispatcher = NotificationDispatcher(db, notifier)
        self.calendar = calendar

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_feed(self, feed_type: str) -> list[Post]:
        return self.repo.get_feed(self.db, feed_type)

    def get_post(self, post_id: str) -> Post:
        post = self.repo.get_post(self.db, post_id)
        if not post:
            raise NotFoundError("Post not found")
        return post

    def get_booking(self, post_id: str) -> BookingPost:
        post = self.get_post(post_id)
        if not isinstance(post, BookingPost):
            raise BadRequestError("This operation applies to booking requests only")
        return post

    def get_user_design_posts(self, user_id: str) -> list[DesignPost]:
        return self.repo.get_design_posts_by_user(self.db, user_id)

    def get_ics(self, actor: User, post_id: str) -> str:
        post = self.get_booking(post_id)
        if actor.id == post.client_id:
            party = "client"
        elif actor.id == post.shop_id:
            party = "shop"
        else:
            raise ForbiddenError("Only the booking's client or shop can download its calendar file")

        ics = (post.ics_content or {}).get(party)
        if not ics:
            raise NotFoundError("No calendar file for this booking")
        return ics

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_post(self, actor: User, data: PostCreate) -> Post:
        if data.feedType == "design" and not actor.is_shop:
            raise ForbiddenError("Only shops can create design posts")
        if data.feedType == "booking" and actor.role != "fan":
            raise ForbiddenError("Only fans can create booking requests")
        if actor.is_shop and not actor.is_paid:
            raise ForbiddenError("A paid subscription is required to post")

        fields = {
            "user_id": actor.id,
            "title": clean_text(data.title, "Title", 255),
            "description": clean_text(data.description, "Description"),
            "location": clean_text(data.location, "Location", 255),
            "images": [],
        }
        if data.feedType == "design":
            post = DesignPost(shop_id=actor.id, **fields)
            audience = ("designer",)
        else:
            post = BookingPost(client_id=actor.id, **fields)
            audience = SHOP_ROLES

        post = self.repo.create_post(self.db, post)
        logger.info(f"✅ {data.feedType.capitalize()} post {post.id} created by {actor.id}")

        recipients = [u for u in self.repo.get_users_by_roles(self.db, audience) if u.id != actor.id]
        await self.dispatcher.notify_many(recipients, f"New {data.feedType} post: '{post.title}'")
        return post

    async def add_images(self, actor: User, post_id: str, files: list[UploadFile], storage: BlobStorage) -> Post:
        post = self.get_post(post_id)
        if post.user_id != actor.id:
            raise ForbiddenError("Only the post creator can add images")
        if not files:
            raise BadRequestError("No images uploaded")

        urls = await storage.store_many(files, folder=f"posts/{post.id}")
        post.images = [*(post.images or []), *urls]
        self.db.commit()
        self.db.refresh(post)
        return post

    # ------------------------------------------------------------------
    # Acceptance
    # ------------------------------------------------------------------

    async def accept_pitch(self, actor: User, post_id: str, comment_id: str) -> tuple[Post, Optional[Design]]:
        """
        Bind a pitch's author to the post.

        Booking posts bind the pitching shop; design posts bind the designer
        and spawn the Design commission in the same transaction. The binding is
        a conditional update, so of two concurrent acceptances exactly one wins.
        """
        post = self.get_post(post_id)
        if actor.id != post.user_id:
            raise ForbiddenError("Only the post creator can accept a pitch")

        comment = self.comment_repo.get_comment(self.db, comment_id)
        if not comment or comment.post_id != post.id:
            raise NotFoundError("Comment not found")
        if comment.parent_id is not None:
            raise BadRequestError("Only top-level pitches can be accepted")
        if comment.withdrawn:
            raise BadRequestError("This pitch has been withdrawn")
        if post.bound_party_id is not None:
            raise ConflictError("A pitch has already been accepted for this post")
        if post.status != "open":
            raise ConflictError(f"Post is {post.status}, not open")

        author = comment.author
        is_design = isinstance(post, DesignPost)
        if is_design and author.role != "designer":
            raise BadRequestError("Only a designer's pitch can be accepted on a design post")
        if not is_design and not author.is_shop:
            raise BadRequestError("Only a shop's pitch can be accepted on a booking request")

        slot = "artist_id" if is_design else "shop_id"
        if self.repo.bind_pitch(self.db, post.id, slot, comment.id, author.id) == 0:
            self.db.rollback()
            logger.warning(f"⚠️ Lost acceptance race on post {post.id}")
            raise ConflictError("A pitch has already been accepted for this post")

        design = None
        if is_design:
            design = self.design_repo.add_design(
                self.db,
                designer_id=author.id,
                shop_id=post.shop_id,
                post_id=post.id,
                comment_id=comment.id,
                price=comment.price or 0,
                images=list(comment.images or []),
            )

        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("A design already exists for this pitch") from e

        self.db.refresh(post)
        if design is not None:
            self.db.refresh(design)
        logger.info(f"✅ Pitch {comment.id} accepted on post {post.id}; {slot}={author.id}")

        await self.dispatcher.notify(author, f"Your pitch on '{post.title}' was accepted by {actor.username}")
        return post, design

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_contact(contact: ContactInfo) -> dict:
        if not contact.phone or not contact.email:
            raise BadRequestError("Contact phone and email are required")
        try:
            return {"phone": validate_phone(contact.phone), "email": validate_email(contact.email)}
        except ValueError as e:
            raise BadRequestError(str(e)) from e

    async def _create_events(self, post: BookingPost, when: datetime) -> dict[str, CalendarEventResult]:
        """Create the appointment in both parties' calendars; undo the first if the second fails"""
        created: dict[str, CalendarEventResult] = {}
        parties = {"client": post.client, "shop": post.shop}
        try:
            for party, user in parties.items():
                counterpart = post.shop if party == "client" else post.client
                appointment = Appointment(
                    uid=f"{post.id}-{party}@rightartist",
                    summary=f"Tattoo appointment: {post.title}",
                    description=f"Booking with {counterpart.display_name}. {post.description}",
                    location=post.location,
                    start=when,
                )
                created[party] = await self.calendar.create_event(self.db, user, appointment)
        except Exception:
            for party, result in created.items():
                await self.calendar.delete_event(self.db, parties[party], result.external_refs)
            raise
        return created

    async def _remove_events(self, post: BookingPost, refs: Optional[dict]) -> None:
        refs = refs or {}
        for party, user in (("client", post.client), ("shop", post.shop)):
            if user is not None and refs.get(party):
                await self.calendar.delete_event(self.db, user, refs[party])

    async def schedule(self, actor: User, post_id: str, data: ScheduleRequest) -> BookingPost:
        post = self.get_booking(post_id)
        if actor.id != post.user_id:
            raise ForbiddenError("Only the client can schedule this booking")
        if post.status == "scheduled":
            raise ConflictError("Booking is already scheduled")
        if post.status != "accepted" or post.shop_id is None:
            raise BadRequestError("A pitch must be accepted before scheduling")

        contact = self._validate_contact(data.contactInfo)
        shop = post.shop
        deposit_amount = float((shop.deposit_settings or {}).get("amount") or 0)

        events = await self._create_events(post, data.scheduledDate)

        updated = self.repo.conditional_update(
            self.db,
            post.id,
            {"status": "accepted", "shop_id": shop.id},
            status="scheduled",
            scheduled_date=data.scheduledDate,
            contact_info=contact,
            deposit_amount=deposit_amount,
            deposit_status="pending" if deposit_amount > 0 else None,
            external_event_ids={party: result.external_refs for party, result in events.items()},
            ics_content={party: result.ics for party, result in events.items()},
        )
        if updated == 0:
            self.db.rollback()
            for party, result in events.items():
                user = post.client if party == "client" else shop
                await self.calendar.delete_event(self.db, user, result.external_refs)
            raise ConflictError("Booking is already scheduled")

        when = data.scheduledDate.strftime("%Y-%m-%d %H:%M")
        intro = self.message_repo.add_message(
            self.db,
            sender_id=post.client_id,
            receiver_id=shop.id,
            content=(
                f"Hi {shop.display_name}, my appointment for '{post.title}' is booked for {when}. "
                f"You can reach me at {contact['phone']} or {contact['email']}."
            ),
        )
        self.db.commit()
        self.db.refresh(post)
        self.db.refresh(intro)
        logger.info(f"✅ Booking {post.id} scheduled for {when}")

        await self.dispatcher.push(
            shop.id, {"type": "message", "data": MessageResponse.from_message(intro).model_dump(mode="json")}
        )
        await self.dispatcher.notify(shop, f"Booking '{post.title}' scheduled for {when}")
        await self.dispatcher.notify(post.client, f"Your booking '{post.title}' is scheduled for {when}")
        if deposit_amount > 0:
            await self.dispatcher.notify(
                post.client, f"A deposit of ${deposit_amount:.2f} is due for '{post.title}'"
            )
        return post

    async def reschedule(self, actor: User, post_id: str, scheduled_date: datetime) -> BookingPost:
        post = self.get_booking(post_id)
        if actor.id not in (post.client_id, post.shop_id):
            raise ForbiddenError("Only the booking's client or shop can reschedule")
        if post.status != "scheduled":
            raise BadRequestError("Only scheduled bookings can be rescheduled")

        previous_refs = post.external_event_ids
        events = await self._create_events(post, scheduled_date)

        updated = self.repo.conditional_update(
            self.db,
            post.id,
            {"status": "scheduled"},
            scheduled_date=scheduled_date,
            external_event_ids={party: result.external_refs for party, result in events.items()},
            ics_content={party: result.ics for party, result in events.items()},
        )
        if updated == 0:
            self.db.rollback()
            for party, result in events.items():
                user = post.client if party == "client" else post.shop
                await self.calendar.delete_event(self.db, user, result.external_refs)
            raise ConflictError("Booking changed while rescheduling, try again")
        self.db.commit()

        await self._remove_events(post, previous_refs)
        self.db.refresh(post)

        when = scheduled_date.strftime("%Y-%m-%d %H:%M")
        logger.info(f"✅ Booking {post.id} rescheduled to {when}")
        counterpart = post.shop if actor.id == post.client_id else post.client
        await self.dispatcher.notify(counterpart, f"Booking '{post.title}' was rescheduled to {when}")
        return post

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    async def complete(self, actor: User, post_id: str) -> Post:
        post = self.get_post(post_id)
        if not isinstance(post, BookingPost) or actor.id != post.shop_id:
            raise ForbiddenError("Only the booked shop can complete this booking")
        if post.status != "scheduled":
            raise BadRequestError("Only scheduled bookings can be completed")

        if self.repo.conditional_update(self.db, post.id, {"status": "scheduled"}, status="completed") == 0:
            self.db.rollback()
            raise ConflictError("Booking is no longer scheduled")
        self.db.commit()
        self.db.refresh(post)
        logger.info(f"✅ Booking {post.id} completed")

        await self.dispatcher.notify(post.client, f"Your booking '{post.title}' was marked complete")
        return post

    async def cancel(self, actor: User, post_id: str) -> Post:
        post = self.get_post(post_id)
        bound_party_id = post.bound_party_id
        if actor.id not in (post.user_id, bound_party_id):
            raise ForbiddenError("Only the post creator or the accepted party can cancel")
        if post.status not in OPEN_STATES:
            raise BadRequestError(f"Cannot cancel a {post.status} post")

        if self.repo.conditional_update(self.db, post.id, {"status": OPEN_STATES}, status="cancelled") == 0:
            self.db.rollback()
            raise ConflictError("Post was completed or cancelled concurrently")
        self.db.commit()
        self.db.refresh(post)
        logger.info(f"✅ Post {post.id} cancelled by {actor.id}")

        if isinstance(post, BookingPost) and self.calendar is not None:
            await self._remove_events(post, post.external_event_ids)

        counterpart_id = bound_party_id if actor.id == post.user_id else post.user_id
        if counterpart_id:
            await self.dispatcher.notify(
                self.db.get(User, counterpart_id), f"'{post.title}' was cancelled by {actor.username}"
            )
        return post

    def delete_post(self, post_id: str) -> dict:
        post = self.get_post(post_id)
        self.repo.delete_post(self.db, post)
        logger.info(f"🗑️ Post {post_id} deleted by admin")
        return {"message": "Post deleted"}
