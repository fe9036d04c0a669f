"""Design router - Commission stages, purchase and listings"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...dependencies import get_blob_storage, get_notifier, get_payment_gateway
from ...models import User
from ...services.notification_service import Notifier
from ...services.payment_service import PaymentGateway
from ...services.storage_service import BlobStorage
from .schemas import DesignResponse, PurchaseRequest
from .service import DesignService

router = APIRouter(prefix="/designs", tags=["Designs"])


def get_design_service(db: Session = Depends(get_db), notifier: Notifier = Depends(get_notifier)) -> DesignService:
    """Dependency injection for DesignService"""
    return DesignService(db, notifier)


@router.get("/pending", response_model=list[DesignResponse])
async def get_pending_designs(
    current_user: User = Depends(get_current_user),
    service: DesignService = Depends(get_design_service),
):
    return [DesignResponse.from_design(d) for d in service.list_pending(current_user)]


@router.get("/purchased", response_model=list[DesignResponse])
async def get_purchased_designs(
    current_user: User = Depends(get_current_user),
    service: DesignService = Depends(get_design_service),
):
    return [DesignResponse.from_design(d) for d in service.list_purchased(current_user)]


@router.get("/sold", response_model=list[DesignResponse])
async def get_sold_designs(
    current_user: User = Depends(get_current_user),
    service: DesignService = Depends(get_design_service),
):
    return [DesignResponse.from_design(d) for d in service.list_sold(current_user)]


@router.post("/accept/{comment_id}", response_model=DesignResponse, status_code=201)
async def accept_design(
    comment_id: str,
    current_user: User = Depends(get_current_user),
    service: DesignService = Depends(get_design_service),
):
    """Accept a designer's pitch; starts the commission at initial_sketch"""
    return DesignResponse.from_design(await service.accept_design(current_user, comment_id))


@router.put("/{design_id}/stage", response_model=DesignResponse)
async def update_design_stage(
    design_id: str,
    stage: str = Form(...),
    images: Optional[list[UploadFile]] = File(None),
    current_user: User = Depends(get_current_user),
    service: DesignService = Depends(get_design_service),
    storage: BlobStorage = Depends(get_blob_storage),
):
    """Advance the design; uploaded progress images are watermarked"""
    design = await service.advance_stage(current_user, design_id, stage, images, storage)
    return DesignResponse.from_design(design)


@router.post("/{design_id}/purchase", response_model=DesignResponse)
async def purchase_design(
    design_id: str,
    data: PurchaseRequest,
    current_user: User = Depends(get_current_user),
    service: DesignService = Depends(get_design_service),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    return DesignResponse.from_design(await service.purchase(current_user, design_id, data.cardToken, gateway))
