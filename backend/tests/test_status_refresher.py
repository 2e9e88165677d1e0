import asyncio
import time
from datetime import datetime, timezone

import pytest

from courtbook.models import Bookings
from courtbook.services import status_refresher
from courtbook.services.slots import create_single_slot
from courtbook.services.status_refresher import StatusRefresher, refresh_upcoming

NOW = datetime(2025, 6, 1, 0, 0, tzinfo=timezone.utc)


def test_refresh_upcoming_repairs_stale_flags(db, make_locations, make_client, calendar, config):
    court = make_locations(1)[0]
    client = make_client()
    near, far = (
        create_single_slot(db, civil_date, "10:00", [court.id], capacity=1,
                           calendar=calendar, config=config)[0]
        for civil_date in ("2025-06-10", "2025-07-30")
    )
    for row in (near, far):
        db.add(Bookings(client_id=client.id, location_id=court.id,
                        start_time=row.start_time, end_time=row.end_time, credit_cost=0))
    db.commit()

    changed = refresh_upcoming(db, now=NOW, config=config)

    assert changed == [near.id]
    db.refresh(near)
    db.refresh(far)
    assert near.is_full == 1
    assert far.is_full == 0  # beyond the horizon


def test_refresh_clears_flag_when_booking_removed(db, make_locations, calendar, config):
    court = make_locations(1)[0]
    row = create_single_slot(db, "2025-06-10", "10:00", [court.id], capacity=1,
                             calendar=calendar, config=config)[0]
    row.is_full = 1
    db.commit()

    assert refresh_upcoming(db, now=NOW, config=config) == [row.id]
    db.refresh(row)
    assert row.is_full == 0


def test_refresher_rejects_bad_interval():
    with pytest.raises(ValueError):
        StatusRefresher(0)


def test_tick_counts(session_factory):
    refresher = StatusRefresher(60, session_factory=session_factory)
    refresher._tick()
    refresher._tick()
    assert refresher.ticks == 2


def test_start_and_stop(session_factory):
    async def scenario():
        refresher = StatusRefresher(0.01, session_factory=session_factory)
        refresher.start()
        await asyncio.sleep(0.2)
        assert refresher.running
        await refresher.stop()
        return refresher

    refresher = asyncio.run(scenario())
    assert refresher.ticks >= 1
    assert not refresher.running


def test_stop_waits_for_running_tick(session_factory, monkeypatch):
    finished = []

    def slow_refresh(db, now=None, config=None):
        time.sleep(0.5)
        finished.append(True)
        return []

    monkeypatch.setattr(status_refresher, "refresh_upcoming", slow_refresh)

    async def scenario():
        refresher = StatusRefresher(60, session_factory=session_factory)
        refresher.start()
        await asyncio.sleep(0.05)
        await refresher.stop()
        return list(finished)

    assert asyncio.run(scenario()) == [True]
