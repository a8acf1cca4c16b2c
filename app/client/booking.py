"""
Client half of the booking transaction.

``BookingFlow`` is one attempt, scoped to one buyer and one listing. It gates
the selection against the scheduler's last-known snapshot, opens the payment
order, and reports the gateway outcome back to the server. A second attempt on
the same flow is rejected while one is in progress.
"""

import logging
from typing import Callable, Dict, Optional
from uuid import UUID

from app.client.api import ApiError, CapacityApiClient
from app.client.refresh import RefreshScheduler
from app.core.errors import InvalidSlotError
from app.utils.selection import Selection, check_selection

logger = logging.getLogger(__name__)

IDLE = "idle"
ORDERING = "ordering"
AWAITING_PAYMENT = "awaiting_payment"
CONFIRMING = "confirming"
CONFIRMED = "confirmed"
FAILED = "failed"

IN_PROGRESS = (ORDERING, AWAITING_PAYMENT, CONFIRMING)


class BookingInProgressError(Exception):
    """A second attempt was started while the first one is still running."""


class BookingFlow:
    def __init__(
        self,
        api: CapacityApiClient,
        scheduler: RefreshScheduler,
        listing_id: UUID,
        tiered: bool,
        price=None,
    ):
        self.api = api
        self.scheduler = scheduler
        self.listing_id = listing_id
        self.tiered = tiered
        self.price = price

        self.state = IDLE
        self.selection: Optional[Selection] = None
        self.order: Optional[dict] = None
        self.booking: Optional[dict] = None
        self.failure_reason: Optional[str] = None

    @classmethod
    def from_listing(cls, api: CapacityApiClient, scheduler: RefreshScheduler, listing: dict) -> "BookingFlow":
        """Build from a ``GET /listings/{id}`` payload."""
        return cls(
            api,
            scheduler,
            listing_id=listing["id"],
            tiered=listing.get("mode") == "fixed",
            price=listing.get("price"),
        )

    @property
    def in_progress(self) -> bool:
        return self.state in IN_PROGRESS

    def _guard(self) -> None:
        if self.in_progress:
            raise BookingInProgressError(f"A booking attempt is already {self.state}")

    # ------------------------------------------------------------------
    # 1. Selection
    # ------------------------------------------------------------------

    def validate_selection(
        self,
        start_time: str,
        end_time: str,
        quantity: Optional[int] = None,
        tickets: Optional[Dict[str, int]] = None,
    ) -> Selection:
        """
        Gate the selection on the last-known availability.
        Raises the same domain errors as the server; ``StaleAvailabilityError``
        means the user should refresh.
        """
        self._guard()
        snapshot = self.scheduler.snapshot
        if snapshot is None:
            raise InvalidSlotError("Availability has not been loaded for a date yet")
        self.selection = check_selection(
            snapshot.slots,
            tiered=self.tiered,
            flat_price=self.price,
            slot_date=snapshot.slot_date,
            start_time=start_time,
            end_time=end_time,
            quantity=quantity,
            tickets=tickets,
        )
        return self.selection

    # ------------------------------------------------------------------
    # 2. Order
    # ------------------------------------------------------------------

    async def create_order(
        self,
        name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> dict:
        self._guard()
        if self.selection is None:
            raise InvalidSlotError("Select a slot first")

        sel = self.selection
        payload = {
            "listing_id": str(self.listing_id),
            "slot_date": sel.slot_date.isoformat(),
            "start_time": sel.start_time,
            "end_time": sel.end_time,
            "quantity": sel.quantity,
            "tickets": sel.tickets or None,
            "name": name,
            "email": email,
            "phone": phone,
        }
        self.state = ORDERING
        try:
            self.order = await self.api.create_order(payload)
        except ApiError as exc:
            self.state = FAILED
            self.failure_reason = exc.message or exc.error
            logger.warning("Order creation failed: %s", exc)
            raise
        self.state = AWAITING_PAYMENT
        return self.order

    # ------------------------------------------------------------------
    # 3./4. Gateway outcome
    # ------------------------------------------------------------------

    async def payment_succeeded(
        self,
        payment_id: str,
        signature: str,
        on_success: Optional[Callable[[dict], None]] = None,
    ) -> dict:
        if self.state != AWAITING_PAYMENT or not self.order:
            raise BookingInProgressError(f"No payment is awaited (state: {self.state})")
        self.state = CONFIRMING
        try:
            self.booking = await self.api.confirm_order(self.order["id"], payment_id, signature)
        except ApiError as exc:
            self.state = FAILED
            self.failure_reason = exc.message or exc.error
            logger.warning("Booking confirmation failed: %s", exc)
            raise
        self.state = CONFIRMED
        if on_success:
            on_success(self.booking)
        return self.booking

    async def payment_failed(
        self,
        reason: str,
        on_failure: Optional[Callable[[str], None]] = None,
    ) -> dict:
        if not self.order:
            raise InvalidSlotError("No payment order to fail")
        outcome = await self.api.fail_order(self.order["id"], reason)
        order = outcome.get("order") or {}
        if order.get("status") == "paid":
            # the payment went through after all
            self.state = CONFIRMED
            self.booking = outcome.get("booking")
            return outcome
        self.state = FAILED
        self.failure_reason = order.get("failure_reason") or reason
        if on_failure:
            on_failure(self.failure_reason)
        return outcome

    def reset(self) -> None:
        """Start over after a finished attempt."""
        self._guard()
        self.state = IDLE
        self.selection = None
        self.order = None
        self.booking = None
        self.failure_reason = None

