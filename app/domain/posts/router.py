"""Post router - Feed, post creation and the booking/design lifecycle"""

import logging
from typing import Literal

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_admin
from ...database import get_db
from ...dependencies import get_blob_storage, get_calendar_service, get_notifier
from ...models import User
from ...services.calendar_service import CalendarService
from ...services.notification_service import Notifier
from ...services.storage_service import BlobStorage
from ..designs.schemas import DesignResponse
from .schemas import AcceptPitchRequest, PostCreate, PostResponse, RescheduleRequest, ScheduleRequest
from .service import PostService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Posts"])


def get_post_service(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    calendar: CalendarService = Depends(get_calendar_service),
) -> PostService:
    """Dependency injection for PostService"""
    return PostService(db, notifier, calendar)


# ============================================================================
# FEED & READS
# ============================================================================


@router.get("/feed", response_model=list[PostResponse])
async def get_feed(
    feedType: Literal["design", "booking"] = Query("design"),
    _: User = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
):
    """Posts of one feed with their pitches and replies"""
    return [PostResponse.from_post(post, include_comments=True) for post in service.get_feed(feedType)]


@router.get("/posts/user/{user_id}/design", response_model=list[PostResponse])
async def get_user_design_posts(
    user_id: str,
    _: User = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
):
    return [PostResponse.from_post(post) for post in service.get_user_design_posts(user_id)]


@router.get("/posts/{post_id}", response_model=PostResponse)
async def get_post(
    post_id: str,
    _: User = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
):
    return PostResponse.from_post(service.get_post(post_id), include_comments=True)


@router.get("/posts/{post_id}/ics")
async def download_ics(
    post_id: str,
    current_user: User = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
):
    """The current participant's .ics file for a scheduled booking"""
    return Response(
        content=service.get_ics(current_user, post_id),
        media_type="text/calendar",
        headers={"Content-Disposition": f'attachment; filename="booking-{post_id}.ics"'},
    )


# ============================================================================
# CREATION
# ============================================================================


@router.post("/posts", response_model=PostResponse, status_code=201)
async def create_post(
    data: PostCreate,
    current_user: User = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
):
    post = await service.create_post(current_user, data)
    return PostResponse.from_post(post)


@router.post("/posts/{post_id}/images", response_model=PostResponse)
async def upload_post_images(
    post_id: str,
    images: list[UploadFile] = File(...),
    current_user: User = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
    storage: BlobStorage = Depends(get_blob_storage),
):
    post = await service.add_images(current_user, post_id, images, storage)
    return PostResponse.from_post(post)


# ============================================================================
# LIFECYCLE
# ============================================================================


@router.post("/posts/{post_id}/accept-pitch")
async def accept_pitch(
    post_id: str,
    data: AcceptPitchRequest,
    current_user: User = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
):
    post, design = await service.accept_pitch(current_user, post_id, data.commentId)
    return {
        "message": "Pitch accepted",
        "post": PostResponse.from_post(post),
        "design": DesignResponse.from_design(design) if design else None,
    }


@router.post("/posts/{post_id}/schedule", response_model=PostResponse)
async def schedule_booking(
    post_id: str,
    data: ScheduleRequest,
    current_user: User = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
):
    return PostResponse.from_post(await service.schedule(current_user, post_id, data))


@router.post("/posts/{post_id}/reschedule", response_model=PostResponse)
async def reschedule_booking(
    post_id: str,
    data: RescheduleRequest,
    current_user: User = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
):
    return PostResponse.from_post(await service.reschedule(current_user, post_id, data.scheduledDate))


@router.post("/posts/{post_id}/complete", response_model=PostResponse)
async def complete_booking(
    post_id: str,
    current_user: User = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
):
    return PostResponse.from_post(await service.complete(current_user, post_id))


@router.post("/posts/{post_id}/cancel", response_model=PostResponse)
async def cancel_post(
    post_id: str,
    current_user: User = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
):
    return PostResponse.from_post(await service.cancel(current_user, post_id))


@router.delete("/posts/{post_id}")
async def delete_post(
    post_id: str,
    _: User = Depends(require_admin),
    service: PostService = Depends(get_post_service),
):
    return service.delete_post(post_id)
