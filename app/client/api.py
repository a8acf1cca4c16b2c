"""
app/client/api.py

Async HTTP client for the public booking API.

Used by the refresh scheduler (availability polling) and the booking flow
(order create / confirm / fail). Errors are raised, not swallowed: the callers
decide whether a failure is a retryable banner or a user-facing message.
"""

import os
import logging
from datetime import date
from typing import Optional
from uuid import UUID

import httpx

logger = logging.getLogger(__name__)

API_URL = os.getenv("SLOT_LEDGER_API_URL", "http://localhost:8000/api/v1")


class ApiError(Exception):
    """Non-2xx response. ``error``/``message`` mirror the server's ErrorResponse."""

    def __init__(self, status_code: int, error: Optional[str] = None, message: Optional[str] = None, detail=None):
        super().__init__(f"{status_code}: {message or error or 'request failed'}")
        self.status_code = status_code
        self.error = error
        self.message = message
        self.detail = detail

    @classmethod
    def from_response(cls, resp: httpx.Response) -> "ApiError":
        try:
            detail = resp.json().get("detail")
        except ValueError:
            detail = resp.text
        if isinstance(detail, dict):
            return cls(resp.status_code, detail.get("error"), detail.get("message"), detail)
        return cls(resp.status_code, None, detail if isinstance(detail, str) else None, detail)


class CapacityApiClient:
    """Async client for the public booking API, authenticated as one buyer."""

    def __init__(
        self,
        base_url: str = API_URL,
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport

    async def _request(self, method: str, path: str, **kwargs) -> Optional[dict]:
        """Base HTTP request; raises ApiError on non-2xx."""
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        ) as client:
            resp = await client.request(method, path, headers=headers, **kwargs)

        if resp.status_code == 204:
            return None
        if resp.status_code >= 400:
            logger.error("API error: %s %s -> %s", method, path, resp.status_code)
            raise ApiError.from_response(resp)
        return resp.json()

    # ------------------------------------------------------------------
    # Catalog / availability
    # ------------------------------------------------------------------

    async def get_listing(self, listing_id: UUID) -> dict:
        """GET /listings/{id}"""
        return await self._request("GET", f"/listings/{listing_id}")

    async def get_dates(self, listing_id: UUID) -> list:
        """GET /listings/{id}/dates"""
        result = await self._request("GET", f"/listings/{listing_id}/dates")
        return [date.fromisoformat(d) for d in (result or {}).get("dates", [])]

    async def get_availability(self, listing_id: UUID, slot_date: date) -> dict:
        """GET /listings/{id}/availability?date="""
        return await self._request(
            "GET", f"/listings/{listing_id}/availability", params={"date": slot_date.isoformat()}
        )

    # ------------------------------------------------------------------
    # Booking attempts
    # ------------------------------------------------------------------

    async def create_order(self, payload: dict) -> dict:
        """POST /bookings/orders"""
        return await self._request("POST", "/bookings/orders", json=payload)

    async def confirm_order(self, order_id: str, payment_id: str, signature: str) -> dict:
        """POST /bookings/orders/{id}/confirm"""
        return await self._request(
            "POST",
            f"/bookings/orders/{order_id}/confirm",
            json={"payment_id": payment_id, "signature": signature},
        )

    async def fail_order(self, order_id: str, reason: str) -> dict:
        """POST /bookings/orders/{id}/fail"""
        return await self._request("POST", f"/bookings/orders/{order_id}/fail", json={"reason": reason})
