import asyncio
from datetime import date

import pytest

from app.client.refresh import ACTIVE, IDLE, RefreshScheduler

DAY = date(2026, 11, 7)
OTHER_DAY = date(2026, 11, 8)


def payload(version, available=5):
    return {
        "ledger_version": version,
        "slots": [{"start_time": "10:00", "end_time": "12:00", "capacity": 10, "available_capacity": available}],
    }


class ScriptedFetch:
    """Each call parks on a future the test resolves, so responses can arrive out of order."""

    def __init__(self):
        self.calls = []

    async def __call__(self, slot_date):
        future = asyncio.get_running_loop().create_future()
        self.calls.append((slot_date, future))
        return await future


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_late_response_with_older_version_is_dropped():
    fetch = ScriptedFetch()
    scheduler = RefreshScheduler(fetch, interval=3600)

    first = asyncio.create_task(scheduler.select_date(DAY))
    await settle()
    second = asyncio.create_task(scheduler.refresh())
    await settle()
    assert len(fetch.calls) == 2

    fetch.calls[1][1].set_result(payload(3, available=2))
    assert (await second).ledger_version == 3

    fetch.calls[0][1].set_result(payload(2, available=5))
    assert await first is None
    assert scheduler.snapshot.ledger_version == 3
    assert scheduler.snapshot.slot("10:00", "12:00")["available_capacity"] == 2

    await scheduler.close()


@pytest.mark.asyncio
async def test_late_response_with_newer_version_is_applied():
    fetch = ScriptedFetch()
    scheduler = RefreshScheduler(fetch, interval=3600)

    first = asyncio.create_task(scheduler.select_date(DAY))
    await settle()
    second = asyncio.create_task(scheduler.refresh())
    await settle()

    # The manual refresh is answered first; the earlier request saw a later booking
    fetch.calls[1][1].set_result(payload(5, available=3))
    assert (await second).ledger_version == 5
    fetch.calls[0][1].set_result(payload(6, available=2))
    snapshot = await first

    assert snapshot.ledger_version == 6
    assert scheduler.snapshot.slot("10:00", "12:00")["available_capacity"] == 2

    await scheduler.close()


@pytest.mark.asyncio
async def test_same_version_keeps_latest_request():
    fetch = ScriptedFetch()
    scheduler = RefreshScheduler(fetch, interval=3600)

    first = asyncio.create_task(scheduler.select_date(DAY))
    await settle()
    second = asyncio.create_task(scheduler.refresh())
    await settle()

    fetch.calls[1][1].set_result(payload(4, available=3))
    await second
    fetch.calls[0][1].set_result(payload(4, available=7))

    assert await first is None
    assert scheduler.snapshot.seq == 2
    assert scheduler.snapshot.slot("10:00", "12:00")["available_capacity"] == 3

    await scheduler.close()


@pytest.mark.asyncio
async def test_older_ledger_version_is_dropped():
    versions = iter([4, 3])

    async def fetch(slot_date):
        return payload(next(versions))

    updates = []
    scheduler = RefreshScheduler(fetch, interval=3600, on_update=updates.append)
    await scheduler.select_date(DAY)
    assert await scheduler.refresh() is None
    assert scheduler.snapshot.ledger_version == 4
    assert [s.ledger_version for s in updates] == [4]

    await scheduler.close()


@pytest.mark.asyncio
async def test_failed_refresh_keeps_snapshot():
    responses = [payload(1), RuntimeError("connection reset")]

    async def fetch(slot_date):
        item = responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    errors = []
    scheduler = RefreshScheduler(fetch, interval=3600, on_error=errors.append)
    await scheduler.select_date(DAY)

    assert await scheduler.refresh() is None
    assert scheduler.snapshot.ledger_version == 1
    assert isinstance(scheduler.last_error, RuntimeError)
    assert len(errors) == 1
    assert scheduler.state == ACTIVE

    await scheduler.close()


@pytest.mark.asyncio
async def test_date_change_drops_late_response():
    fetch = ScriptedFetch()
    scheduler = RefreshScheduler(fetch, interval=3600)

    first = asyncio.create_task(scheduler.select_date(DAY))
    await settle()
    second = asyncio.create_task(scheduler.select_date(OTHER_DAY))
    await settle()

    fetch.calls[0][1].set_result(payload(9))
    fetch.calls[1][1].set_result(payload(1))
    assert await first is None
    snapshot = await second
    assert snapshot.slot_date == OTHER_DAY
    assert scheduler.snapshot.ledger_version == 1

    await scheduler.close()


@pytest.mark.asyncio
async def test_clear_stops_refreshing():
    fetch = ScriptedFetch()
    scheduler = RefreshScheduler(fetch, interval=3600)

    pending = asyncio.create_task(scheduler.select_date(DAY))
    await settle()
    await scheduler.clear()
    fetch.calls[0][1].set_result(payload(1))

    assert await pending is None
    assert scheduler.state == IDLE
    assert scheduler.snapshot is None
    assert await scheduler.refresh() is None
    assert await scheduler.visibility_changed(True) is None
    assert len(fetch.calls) == 1


@pytest.mark.asyncio
async def test_timer_polls_until_closed():
    calls = []

    async def fetch(slot_date):
        calls.append(slot_date)
        return payload(len(calls))

    scheduler = RefreshScheduler(fetch, interval=0.01)
    await scheduler.select_date(DAY)
    await asyncio.sleep(0.1)
    assert len(calls) >= 3

    await scheduler.close()
    polled = len(calls)
    await asyncio.sleep(0.05)
    assert len(calls) == polled


@pytest.mark.asyncio
async def test_becoming_visible_refreshes_immediately():
    calls = []

    async def fetch(slot_date):
        calls.append(slot_date)
        return payload(len(calls))

    scheduler = RefreshScheduler(fetch, interval=3600)
    await scheduler.select_date(DAY)
    assert await scheduler.visibility_changed(False) is None
    snapshot = await scheduler.visibility_changed(True)
    assert snapshot.seq == 2
    assert calls == [DAY, DAY]

    await scheduler.close()


@pytest.mark.asyncio
async def test_timer_survives_failing_callback():
    calls = []

    async def fetch(slot_date):
        calls.append(slot_date)
        return payload(len(calls))

    def on_update(snapshot):
        if snapshot.seq > 1:
            raise RuntimeError("render failed")

    scheduler = RefreshScheduler(fetch, interval=0.01, on_update=on_update)
    await scheduler.select_date(DAY)
    await asyncio.sleep(0.1)

    assert len(calls) >= 3
    assert scheduler.state == ACTIVE
    assert not scheduler._task.done()

    await scheduler.close()
