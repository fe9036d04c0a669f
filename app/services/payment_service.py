"""Card payment gateway - TransactAPI sale requests over httpx"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx

from ..config import PAYMENT_GATEWAY_TOKEN, PAYMENT_GATEWAY_URL, PAYMENT_MERCHANT_ID, PAYMENT_TIMEOUT_SECONDS
from ..errors import UnprocessableEntityError

logger = logging.getLogger(__name__)

SALE_TRANSACTION_TYPE = 1


@dataclass
class ChargeResult:
    transaction_ref: str
    rrn: Optional[str] = None


def to_cents(amount: float) -> int:
    return int(round(amount * 100))


class PaymentGateway:
    """Payment collaborator: charge a tokenized card or raise UnprocessableEntityError"""

    def __init__(self):
        self.url = PAYMENT_GATEWAY_URL
        self.merchant_id = PAYMENT_MERCHANT_ID
        self.token = PAYMENT_GATEWAY_TOKEN

        if not self.merchant_id or not self.token:
            logger.warning("PAYMENT_MERCHANT_ID/PAYMENT_GATEWAY_TOKEN not set; charges will fail until configured")

    def is_available(self) -> bool:
        return bool(self.merchant_id and self.token)

    async def charge(self, card_token: str, amount_cents: int, reference: str) -> ChargeResult:
        if not self.is_available():
            raise UnprocessableEntityError("Payment processing is not configured")

        payload = {
            "merchantAuthentication": {
                "merchantId": self.merchant_id,
                "transactionReferenceId": f"{reference}-{int(time.time() * 1000)}",
            },
            "transactionRequest": {
                "transactionType": SALE_TRANSACTION_TYPE,
                "amount": str(amount_cents),
                "cardToken": card_token,
                "applySteamSettingTipFeeTax": False,
            },
            "preferences": {"eReceipt": False},
        }

        logger.info(f"💳 Charging {amount_cents} cents for {reference}")
        try:
            async with httpx.AsyncClient(timeout=PAYMENT_TIMEOUT_SECONDS) as client:
                response = await client.post(
                    self.url,
                    json=payload,
                    headers={"token": self.token, "Content-Type": "application/json"},
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"❌ Payment gateway request failed for {reference}: {e}")
            raise UnprocessableEntityError("Payment could not be processed") from e

        result = response.json().get("iposTransactResponse") or {}
        if result.get("responseCode") != "200":
            logger.warning(f"⚠️ Payment declined for {reference}: {result.get('responseMessage')}")
            raise UnprocessableEntityError(result.get("responseMessage") or "Payment declined")

        logger.info(f"✅ Payment approved for {reference}: {result.get('transactionId')}")
        return ChargeResult(transaction_ref=str(result.get("transactionId")), rrn=result.get("RRN"))
