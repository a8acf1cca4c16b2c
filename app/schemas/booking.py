from typing import Optional, List, Dict
from pydantic import BaseModel, Field, UUID4, field_validator
from decimal import Decimal
from datetime import date, datetime


# Payment order - Create (POST /bookings/orders)
class OrderCreate(BaseModel):
    listing_id: UUID4
    slot_date: date
    start_time: str
    end_time: str
    quantity: Optional[int] = None               # recurring mode
    tickets: Optional[Dict[str, int]] = None     # fixed mode: {tierName: qty}
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("tickets", mode="before")
    @classmethod
    def drop_empty_tiers(cls, v):
        if isinstance(v, dict):
            return {k: q for k, q in v.items() if q}
        return v


# Payment order - what the client needs to open the gateway checkout
class Order(BaseModel):
    id: UUID4
    listing_id: UUID4
    gateway_order_id: Optional[str] = None
    key_id: Optional[str] = None
    receipt: str
    amount: Decimal
    amount_minor: int                            # paise
    currency: str
    quantity: int
    tickets: Optional[Dict[str, int]] = None
    status: str
    failure_reason: Optional[str] = None
    booking_id: Optional[UUID4] = None
    expires_at: datetime

    class Config:
        from_attributes = True


# Gateway success callback (POST /bookings/orders/{id}/confirm)
class PaymentConfirm(BaseModel):
    payment_id: str = Field(min_length=1)
    signature: str = Field(min_length=1)


# Gateway failure / user cancel callback (POST /bookings/orders/{id}/fail)
class PaymentFail(BaseModel):
    reason: str = "Payment cancelled"


# Booking - Full response (GET /bookings/{id}, confirm result)
class Booking(BaseModel):
    id: UUID4
    booking_number: str
    listing_id: UUID4
    occurrence_id: Optional[UUID4] = None
    slot_date: date
    start_time: str
    end_time: str
    tickets: Optional[Dict[str, int]] = None
    ticket_type: Optional[str] = None
    quantity: int
    amount: Optional[Decimal] = None
    currency: str = "INR"
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    payment_id: Optional[str] = None
    order_id: Optional[str] = None
    payment_status: str
    status: str
    checked_in: bool = False
    check_in_time: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Outcome of the failure callback
class OrderOutcome(BaseModel):
    order: Order
    booking: Optional[Booking] = None
