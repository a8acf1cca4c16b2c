"""Domain error codes for the booking engine.

Services raise these; routers translate them into HTTP responses with
``to_http_exception``.
"""

from dataclasses import dataclass
from enum import Enum

from fastapi import HTTPException, status


class ErrorCode(Enum):
    """Domain error codes."""

    INVALID_QUANTITY = "INVALID_QUANTITY"
    INVALID_PRICE = "INVALID_PRICE"
    FREE_BOOKING_NOT_SUPPORTED = "FREE_BOOKING_NOT_SUPPORTED"
    INVALID_SLOT = "INVALID_SLOT"
    AMOUNT_OUT_OF_RANGE = "AMOUNT_OUT_OF_RANGE"
    UNSUPPORTED_CURRENCY = "UNSUPPORTED_CURRENCY"
    SLOT_SOLD_OUT = "SLOT_SOLD_OUT"
    INSUFFICIENT_CAPACITY = "INSUFFICIENT_CAPACITY"
    CAPACITY_CONFLICT = "CAPACITY_CONFLICT"
    DUPLICATE_PAYMENT = "DUPLICATE_PAYMENT"
    PAYMENT_VERIFICATION_FAILED = "PAYMENT_VERIFICATION_FAILED"
    GATEWAY_ERROR = "GATEWAY_ERROR"
    ORDER_NOT_PENDING = "ORDER_NOT_PENDING"
    ACCESS_DENIED = "ACCESS_DENIED"
    LISTING_NOT_FOUND = "LISTING_NOT_FOUND"
    BOOKING_NOT_FOUND = "BOOKING_NOT_FOUND"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    EMPTY_EXPORT = "EMPTY_EXPORT"
    CHECK_IN_NOT_ALLOWED = "CHECK_IN_NOT_ALLOWED"


@dataclass(frozen=True)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


# --- Input validation -------------------------------------------------------


class InvalidQuantityError(DomainError):
    def __init__(self, quantity: int) -> None:
        super().__init__(
            code=ErrorCode.INVALID_QUANTITY,
            message="Ticket quantity must be at least 1",
        )
        self.quantity = quantity


class InvalidPriceError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.INVALID_PRICE,
            message="This listing has an invalid price configuration. Please contact support.",
        )


class FreeBookingNotSupportedError(DomainError):
    """Zero-amount bookings cannot go through the payment path."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.FREE_BOOKING_NOT_SUPPORTED,
            message="Bookings for free listings are not supported via this payment flow.",
        )


class InvalidSlotError(DomainError):
    def __init__(self, message: str = "Selected slot is not offered on this date") -> None:
        super().__init__(code=ErrorCode.INVALID_SLOT, message=message)


class AmountOutOfRangeError(DomainError):
    def __init__(self, maximum: int) -> None:
        super().__init__(
            code=ErrorCode.AMOUNT_OUT_OF_RANGE,
            message=f"Order amount must be greater than 0 and at most {maximum}",
        )


class UnsupportedCurrencyError(DomainError):
    def __init__(self, currency: str) -> None:
        super().__init__(
            code=ErrorCode.UNSUPPORTED_CURRENCY,
            message=f"Currency '{currency}' is not supported",
        )


# --- Staleness / capacity ---------------------------------------------------


class StaleAvailabilityError(DomainError):
    """The selection no longer fits the last-known availability."""

    def __init__(self, available: int, requested: int) -> None:
        if available == 0:
            code, message = ErrorCode.SLOT_SOLD_OUT, "This slot is sold out. Please refresh availability."
        else:
            code, message = (
                ErrorCode.INSUFFICIENT_CAPACITY,
                f"Only {available} ticket(s) left. Please refresh availability.",
            )
        super().__init__(code=code, message=message)
        self.available = available
        self.requested = requested


class CapacityConflictError(DomainError):
    """Another booking committed first and consumed the capacity."""

    def __init__(self, available: int, requested: int) -> None:
        super().__init__(
            code=ErrorCode.CAPACITY_CONFLICT,
            message="The slot filled up while your payment was processing.",
        )
        self.available = available
        self.requested = requested


# --- Gateway ----------------------------------------------------------------


class DuplicatePaymentError(DomainError):
    def __init__(self, payment_id: str) -> None:
        super().__init__(
            code=ErrorCode.DUPLICATE_PAYMENT,
            message="Payment has already been processed",
        )
        self.payment_id = payment_id


class PaymentVerificationError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.PAYMENT_VERIFICATION_FAILED,
            message="Payment verification failed",
        )


class GatewayError(DomainError):
    def __init__(self, reason: str) -> None:
        super().__init__(code=ErrorCode.GATEWAY_ERROR, message=reason)


class OrderNotPendingError(DomainError):
    def __init__(self, order_status: str) -> None:
        super().__init__(
            code=ErrorCode.ORDER_NOT_PENDING,
            message=f"Payment order is no longer pending (current status: '{order_status}')",
        )


# --- Authorization / lookup -------------------------------------------------


class AccessDeniedError(DomainError):
    def __init__(self, message: str = "You do not have access to this dashboard") -> None:
        super().__init__(code=ErrorCode.ACCESS_DENIED, message=message)


class ListingNotFoundError(DomainError):
    def __init__(self) -> None:
        super().__init__(code=ErrorCode.LISTING_NOT_FOUND, message="Listing not found")


class BookingNotFoundError(DomainError):
    def __init__(self) -> None:
        super().__init__(code=ErrorCode.BOOKING_NOT_FOUND, message="Booking not found")


class OrderNotFoundError(DomainError):
    def __init__(self) -> None:
        super().__init__(code=ErrorCode.ORDER_NOT_FOUND, message="Payment order not found")


# --- Dashboard --------------------------------------------------------------


class EmptyExportError(DomainError):
    def __init__(self) -> None:
        super().__init__(code=ErrorCode.EMPTY_EXPORT, message="No attendees to export")


class CheckInNotAllowedError(DomainError):
    def __init__(self, reason: str) -> None:
        super().__init__(code=ErrorCode.CHECK_IN_NOT_ALLOWED, message=reason)


_STATUS_BY_CODE = {
    ErrorCode.INVALID_QUANTITY: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.INVALID_PRICE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.FREE_BOOKING_NOT_SUPPORTED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.INVALID_SLOT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.AMOUNT_OUT_OF_RANGE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.UNSUPPORTED_CURRENCY: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.SLOT_SOLD_OUT: status.HTTP_409_CONFLICT,
    ErrorCode.INSUFFICIENT_CAPACITY: status.HTTP_409_CONFLICT,
    ErrorCode.CAPACITY_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.DUPLICATE_PAYMENT: status.HTTP_409_CONFLICT,
    ErrorCode.ORDER_NOT_PENDING: status.HTTP_409_CONFLICT,
    ErrorCode.PAYMENT_VERIFICATION_FAILED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.GATEWAY_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.ACCESS_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorCode.LISTING_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.BOOKING_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.ORDER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.EMPTY_EXPORT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.CHECK_IN_NOT_ALLOWED: status.HTTP_409_CONFLICT,
}


def to_http_exception(exc: DomainError) -> HTTPException:
    """Map a domain error to an HTTPException carrying the ErrorResponse shape."""
    detail = {"error": exc.code.value, "message": exc.message}
    if isinstance(exc, (StaleAvailabilityError, CapacityConflictError)):
        detail["available"] = exc.available
        detail["requested"] = exc.requested
    return HTTPException(status_code=_STATUS_BY_CODE[exc.code], detail=detail)
