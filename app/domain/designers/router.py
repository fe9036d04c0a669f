"""Designer router - Portfolio, badges and earnings stats"""

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...dependencies import get_blob_storage
from ...models import User
from ...services.storage_service import BlobStorage
from .service import DesignerService

router = APIRouter(tags=["Designers"])


def get_designer_service(db: Session = Depends(get_db)) -> DesignerService:
    return DesignerService(db)


@router.get("/portfolio")
async def get_my_portfolio(
    current_user: User = Depends(get_current_user),
    service: DesignerService = Depends(get_designer_service),
):
    service.require_designer(current_user)
    return {"portfolio": service.get_portfolio(current_user.id)}


@router.get("/portfolio/user/{user_id}")
async def get_designer_portfolio(
    user_id: str,
    _: User = Depends(get_current_user),
    service: DesignerService = Depends(get_designer_service),
):
    return {"portfolio": service.get_portfolio(user_id)}


@router.post("/portfolio/upload", status_code=201)
async def upload_portfolio_image(
    image: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    service: DesignerService = Depends(get_designer_service),
    storage: BlobStorage = Depends(get_blob_storage),
):
    image_url = await service.add_portfolio_image(current_user, image, storage)
    return {"message": "Image uploaded", "imageUrl": image_url}


@router.get("/badges")
async def get_badges(
    current_user: User = Depends(get_current_user),
    service: DesignerService = Depends(get_designer_service),
):
    # Catches up on badges earned before awarding ran at purchase time
    service.award_badges(current_user)
    badges = service.list_badges(current_user)
    return {"badges": [{"id": b.id, "name": b.name, "createdAt": b.created_at} for b in badges]}


@router.get("/stats/designer")
async def get_designer_stats(
    current_user: User = Depends(get_current_user),
    service: DesignerService = Depends(get_designer_service),
):
    return service.get_stats(current_user)
