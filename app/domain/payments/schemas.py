"""Payment schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models import Payment


class ChargeRequest(BaseModel):
    cardToken: str

    @field_validator("cardToken")
    @classmethod
    def validate_token(cls, v):
        if not v.strip():
            raise ValueError("Card token required")
        return v.strip()


class PaymentResponse(BaseModel):
    id: str
    userId: str
    amount: float
    type: str
    status: str
    transactionRef: Optional[str] = None
    designId: Optional[str] = None
    postId: Optional[str] = None
    createdAt: Optional[datetime] = None

    @classmethod
    def from_payment(cls, payment: Payment) -> "PaymentResponse":
        return cls(
            id=payment.id,
            userId=payment.user_id,
            amount=payment.amount,
            type=payment.type,
            status=payment.status,
            transactionRef=payment.transaction_ref,
            designId=payment.design_id,
            postId=payment.post_id,
            createdAt=payment.created_at,
        )
