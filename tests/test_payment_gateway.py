import hashlib
import hmac
from decimal import Decimal
from types import SimpleNamespace

import pytest
import razorpay

from app.core.errors import GatewayError
from app.services.payment_gateway import RazorpayGateway, to_minor_units

KEY_ID = "rzp_test_key"
KEY_SECRET = "rzp_test_secret"


def razorpay_signature(order_id, payment_id, secret=KEY_SECRET):
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


@pytest.mark.parametrize("amount,expected", [
    (Decimal("500.00"), 50000),
    (Decimal("0.01"), 1),
    (Decimal("1234.567"), 123457),
])
def test_minor_units(amount, expected):
    assert to_minor_units(amount) == expected


def test_signature_verification():
    gateway = RazorpayGateway(KEY_ID, KEY_SECRET)
    assert gateway.verify_signature("order_1", "pay_1", razorpay_signature("order_1", "pay_1"))
    assert not gateway.verify_signature("order_1", "pay_2", razorpay_signature("order_1", "pay_1"))
    assert not gateway.verify_signature("order_1", "pay_1", razorpay_signature("order_1", "pay_1", "other"))


def test_create_order_sends_paise():
    sent = []

    def create(data):
        sent.append(data)
        return {"id": "order_abc", "amount": data["amount"]}

    gateway = RazorpayGateway(KEY_ID, KEY_SECRET)
    gateway._client = SimpleNamespace(order=SimpleNamespace(create=create))

    order = gateway.create_order(Decimal("1000.00"), "INR", "rcpt_1", notes={"listing_id": "x"})
    assert order.order_id == "order_abc"
    assert sent == [{"amount": 100000, "currency": "INR", "receipt": "rcpt_1", "notes": {"listing_id": "x"}}]


def test_create_order_gateway_refusal():
    def create(data):
        raise razorpay.errors.BadRequestError("amount exceeds maximum")

    gateway = RazorpayGateway(KEY_ID, KEY_SECRET)
    gateway._client = SimpleNamespace(order=SimpleNamespace(create=create))

    with pytest.raises(GatewayError, match="Failed to create payment order"):
        gateway.create_order(Decimal("10.00"), "INR", "rcpt_1")


def test_unconfigured_gateway():
    gateway = RazorpayGateway("", "")
    with pytest.raises(GatewayError, match="not configured"):
        gateway.create_order(Decimal("10.00"), "INR", "rcpt_1")
