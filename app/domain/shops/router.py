"""Shop router - Shop dashboards"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ..posts.schemas import PostResponse
from .service import ShopService

router = APIRouter(prefix="/shops", tags=["Shops"])


class DepositSettingsUpdate(BaseModel):
    amount: float

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v):
        if v < 0:
            raise ValueError("Deposit amount cannot be negative")
        return v


def get_shop_service(db: Session = Depends(get_db)) -> ShopService:
    return ShopService(db)


@router.get("/bookings", response_model=list[PostResponse])
async def get_bookings(
    current_user: User = Depends(get_current_user),
    service: ShopService = Depends(get_shop_service),
):
    """Bookings bound to the current shop, newest appointment first"""
    return [PostResponse.from_post(post) for post in service.get_bookings(current_user)]


@router.get("/deposits")
async def get_deposits(
    current_user: User = Depends(get_current_user),
    service: ShopService = Depends(get_shop_service),
):
    return service.get_deposit_stats(current_user)


@router.put("/deposit-settings")
async def update_deposit_settings(
    data: DepositSettingsUpdate,
    current_user: User = Depends(get_current_user),
    service: ShopService = Depends(get_shop_service),
):
    shop = service.update_deposit_settings(current_user, data.amount)
    return {"message": "Deposit settings updated", "depositSettings": shop.deposit_settings}
