"""
Payment gateway boundary.

The orchestrator only sees ``PaymentGateway``; Razorpay is the production
implementation. Amounts cross this boundary in major units and are converted
to paise here.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import razorpay

from app.core.config import settings
from app.core.errors import GatewayError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayOrder:
    order_id: str
    amount_minor: int
    currency: str
    receipt: str


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1")))


class PaymentGateway(ABC):
    key_id: Optional[str] = None

    @abstractmethod
    def create_order(self, amount: Decimal, currency: str, receipt: str, notes: Optional[dict] = None) -> GatewayOrder:
        """Create a gateway order; raises GatewayError on failure."""

    @abstractmethod
    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """True when the checkout callback signature matches the order/payment pair."""


class RazorpayGateway(PaymentGateway):
    def __init__(self, key_id: str = settings.RAZORPAY_KEY_ID, key_secret: str = settings.RAZORPAY_KEY_SECRET):
        self.key_id = key_id
        self._key_secret = key_secret
        self._client = None

    @property
    def client(self) -> razorpay.Client:
        if not self.key_id or not self._key_secret:
            raise GatewayError("Payment gateway is not configured")
        if self._client is None:
            self._client = razorpay.Client(auth=(self.key_id, self._key_secret))
        return self._client

    def create_order(self, amount: Decimal, currency: str, receipt: str, notes: Optional[dict] = None) -> GatewayOrder:
        amount_minor = to_minor_units(amount)
        try:
            order = self.client.order.create(
                {
                    "amount": amount_minor,
                    "currency": currency,
                    "receipt": receipt,
                    "notes": notes or {},
                }
            )
        except (
            razorpay.errors.BadRequestError,
            razorpay.errors.ServerError,
            razorpay.errors.GatewayError,
            OSError,  # requests' connection/timeout errors
        ) as exc:
            logger.error("Razorpay order creation failed for receipt %s: %s", receipt, exc)
            raise GatewayError("Failed to create payment order") from exc

        order_id = order.get("id")
        if not order_id:
            logger.error("Razorpay returned an order without id for receipt %s", receipt)
            raise GatewayError("Failed to create payment order")
        return GatewayOrder(order_id=order_id, amount_minor=amount_minor, currency=currency, receipt=receipt)

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        try:
            verified = self.client.utility.verify_payment_signature(
                {
                    "razorpay_order_id": order_id,
                    "razorpay_payment_id": payment_id,
                    "razorpay_signature": signature,
                }
            )
        except razorpay.errors.SignatureVerificationError:
            logger.warning("Signature mismatch for order %s payment %s", order_id, payment_id)
            return False
        return bool(verified)
