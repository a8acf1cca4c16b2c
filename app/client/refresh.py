"""
Availability refresh scheduler.

Keeps the client's view of one listing's availability fresh while a date is
selected:

    idle    --select_date-->  active   (immediate fetch, then every ``interval`` s)
    active  --select_date-->  active   (date change: restart timer, immediate fetch)
    active  --clear/close-->  idle     (timer cancelled; late responses dropped)

While active, ``visibility_changed(True)`` and ``refresh()`` fetch immediately.
Refreshes are not coalesced. Every response carries the listing's
``ledger_version``; a response is applied only if it is for the current date
and its ledger version is not older than the snapshot already applied. The
request sequence only breaks ties between responses at the same version.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Awaitable, Callable, List, Optional

from app.core.config import settings

logger = logging.getLogger(__name__)

IDLE = "idle"
ACTIVE = "active"

Fetcher = Callable[[date], Awaitable[dict]]


@dataclass(frozen=True)
class AvailabilitySnapshot:
    slot_date: date
    ledger_version: int
    seq: int
    slots: List[dict] = field(default_factory=list)
    fetched_at: Optional[datetime] = None

    def slot(self, start_time: str, end_time: str) -> Optional[dict]:
        return next(
            (s for s in self.slots if s["start_time"] == start_time and s["end_time"] == end_time),
            None,
        )


class RefreshScheduler:
    def __init__(
        self,
        fetch: Fetcher,
        interval: float = settings.REFRESH_INTERVAL_SECONDS,
        on_update: Optional[Callable[[AvailabilitySnapshot], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self._fetch = fetch
        self.interval = interval
        self.on_update = on_update
        self.on_error = on_error

        self.state = IDLE
        self.current_date: Optional[date] = None
        self.snapshot: Optional[AvailabilitySnapshot] = None
        self.last_error: Optional[Exception] = None

        self._seq = 0
        self._generation = 0
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def for_listing(cls, api, listing_id, **kwargs) -> "RefreshScheduler":
        """Scheduler polling ``GET /listings/{id}/availability`` through a CapacityApiClient."""
        async def fetch(slot_date: date) -> dict:
            return await api.get_availability(listing_id, slot_date)

        return cls(fetch, **kwargs)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def select_date(self, slot_date: date) -> Optional[AvailabilitySnapshot]:
        if slot_date != self.current_date:
            self.snapshot = None
        self.current_date = slot_date
        self.state = ACTIVE
        # Responses requested for the previous selection must not land
        self._generation += 1
        await self._stop_timer()
        self._task = asyncio.create_task(self._run())
        return await self.refresh()

    async def clear(self) -> None:
        self.state = IDLE
        self.current_date = None
        self.snapshot = None
        self._generation += 1
        await self._stop_timer()

    async def close(self) -> None:
        await self.clear()

    async def visibility_changed(self, visible: bool) -> Optional[AvailabilitySnapshot]:
        if visible and self.state == ACTIVE:
            return await self.refresh()
        return None

    # ------------------------------------------------------------------
    # Fetch / apply
    # ------------------------------------------------------------------

    async def refresh(self) -> Optional[AvailabilitySnapshot]:
        """One fetch. Returns the applied snapshot, or None if nothing was applied."""
        if self.state != ACTIVE:
            return None
        self._seq += 1
        seq = self._seq
        generation = self._generation
        requested_date = self.current_date

        try:
            payload = await self._fetch(requested_date)
        except Exception as exc:
            # keep the last-known snapshot; the caller shows a retryable banner
            logger.warning("Availability refresh for %s failed: %s", requested_date, exc)
            self.last_error = exc
            if self.on_error:
                self.on_error(exc)
            return None

        return self._apply(payload, seq, generation, requested_date)

    def _apply(self, payload: dict, seq: int, generation: int, requested_date: date) -> Optional[AvailabilitySnapshot]:
        if self.state != ACTIVE or generation != self._generation or requested_date != self.current_date:
            logger.debug("Dropping availability response for %s (selection changed)", requested_date)
            return None

        version = int(payload.get("ledger_version", 0))
        current = self.snapshot
        if current is not None and (version, seq) < (current.ledger_version, current.seq):
            logger.info(
                "Dropping stale availability response (version %d seq %d, have version %d seq %d)",
                version, seq, current.ledger_version, current.seq,
            )
            return None

        self.snapshot = AvailabilitySnapshot(
            slot_date=requested_date,
            ledger_version=version,
            seq=seq,
            slots=list(payload.get("slots", [])),
            fetched_at=datetime.now(timezone.utc),
        )
        self.last_error = None
        if self.on_update:
            self.on_update(self.snapshot)
        return self.snapshot

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.refresh()
            except Exception:
                logger.exception("Error during availability refresh.")

    async def _stop_timer(self) -> None:
        task, self._task = self._task, None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
