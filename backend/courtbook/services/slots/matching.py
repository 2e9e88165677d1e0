# backend/courtbook/services/slots/matching.py
"""
Capacity/matching engine.

Matches candidate instants against availability rows and counts the
bookings that overlap them. Two ranges overlap when

    booking_start < availability_end AND booking_end > availability_start

(half-open intervals). Exact-equality matching is never used, because one
booking may span several abutting availability rows.

Sibling rows (same start/end, different location) are evaluated per
location: each location has its own capacity and booked count.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..civil_time import (
    CivilCalendar,
    format_instant,
    get_civil_calendar,
    parse_instant,
)

logger = logging.getLogger(__name__)


class SlotState(str, Enum):
    OPEN = "open"
    PARTIAL = "partial"
    FULL = "full"
    PAST = "past"


@dataclass(frozen=True)
class SlotStatus:
    status: SlotState
    booked_count: int
    capacity: int
    location_id: int
    availability_id: Optional[int] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @property
    def is_selectable(self) -> bool:
        return self.status in (SlotState.OPEN, SlotState.PARTIAL)


# ── Pure matching ────────────────────────────────────────────────────────


def overlaps(a_start, a_end, b_start, b_end) -> bool:
    """Half-open interval overlap: [a_start, a_end) ∩ [b_start, b_end) ≠ ∅."""
    return parse_instant(a_start) < parse_instant(b_end) and parse_instant(a_end) > parse_instant(b_start)


def contains(row, instant) -> bool:
    """True if instant falls in [row.start_time, row.end_time)."""
    moment = parse_instant(instant)
    return parse_instant(row.start_time) <= moment < parse_instant(row.end_time)


def count_overlapping(
    start,
    end,
    location_id: int,
    booking_rows: Iterable,
) -> int:
    """Number of bookings at location_id overlapping [start, end)."""
    return sum(
        1
        for booking in booking_rows
        if booking.location_id == location_id
        and overlaps(booking.start_time, booking.end_time, start, end)
    )


def derive_state(
    booked_count: int,
    capacity: int,
    start,
    now: datetime,
) -> SlotState:
    """
    Tri-state status plus "past".

    past: slot starts before now (never selectable, whatever the count)
    full: booked_count >= capacity
    partial: 0 < booked_count < capacity
    open: booked_count == 0
    """
    if parse_instant(start) < now:
        return SlotState.PAST
    if booked_count >= capacity:
        return SlotState.FULL
    if booked_count > 0:
        return SlotState.PARTIAL
    return SlotState.OPEN


def status_of(
    candidate,
    location_id: int,
    availability_rows: Sequence,
    booking_rows: Iterable,
    now: datetime | None = None,
) -> SlotStatus:
    """
    Status of a candidate instant at one location.

    The candidate is matched to the availability row of that location whose
    range contains it; capacity comes from that row. When no row matches,
    the candidate has zero capacity and reports as full (or past).
    """
    moment = parse_instant(candidate)
    now = parse_instant(now) if now is not None else datetime.now(timezone.utc)

    matches = [
        row for row in availability_rows
        if row.location_id == location_id and contains(row, moment)
    ]

    if not matches:
        state = SlotState.PAST if moment < now else SlotState.FULL
        return SlotStatus(status=state, booked_count=0, capacity=0, location_id=location_id)

    # Prefer the row that starts exactly at the candidate
    row = next(
        (r for r in matches if parse_instant(r.start_time) == moment),
        matches[0],
    )
    booked = count_overlapping(row.start_time, row.end_time, location_id, booking_rows)
    capacity = row.max_capacity

    return SlotStatus(
        status=derive_state(booked, capacity, row.start_time, now),
        booked_count=booked,
        capacity=capacity,
        location_id=location_id,
        availability_id=row.id,
        start=parse_instant(row.start_time),
        end=parse_instant(row.end_time),
    )


def statuses_by_location(
    candidate,
    availability_rows: Sequence,
    booking_rows: Sequence,
    now: datetime | None = None,
) -> dict[int, SlotStatus]:
    """Evaluate every location that has a row containing the candidate, independently."""
    location_ids = []
    for row in availability_rows:
        if row.location_id not in location_ids and contains(row, candidate):
            location_ids.append(row.location_id)

    return {
        location_id: status_of(candidate, location_id, availability_rows, booking_rows, now)
        for location_id in location_ids
    }


def representative_row(rows: Sequence):
    """
    Pick one row to stand for a (date, time) offered at several locations.

    A row already marked full wins; otherwise the first by insertion order.
    Display convenience only.
    """
    if not rows:
        return None
    for row in rows:
        if row.is_full:
            return row
    return rows[0]


# ── Database helpers ─────────────────────────────────────────────────────


def load_availabilities(
    db: Session,
    window_start,
    window_end,
    location_ids: Iterable[int] | None = None,
) -> list:
    """Availability rows overlapping [window_start, window_end), by start then id."""
    from ...models.generated import Availabilities

    query = db.query(Availabilities).filter(
        Availabilities.start_time < format_instant(window_end),
        Availabilities.end_time > format_instant(window_start),
    )
    if location_ids is not None:
        query = query.filter(Availabilities.location_id.in_(list(location_ids)))

    return query.order_by(Availabilities.start_time, Availabilities.id).all()


def load_bookings(
    db: Session,
    window_start,
    window_end,
    location_ids: Iterable[int] | None = None,
) -> list:
    """Bookings overlapping [window_start, window_end)."""
    from ...models.generated import Bookings

    query = db.query(Bookings).filter(
        Bookings.start_time < format_instant(window_end),
        Bookings.end_time > format_instant(window_start),
    )
    if location_ids is not None:
        query = query.filter(Bookings.location_id.in_(list(location_ids)))

    return query.all()


def booked_count_for(db: Session, row) -> int:
    """Count bookings at row's location overlapping row's range (SQL side)."""
    from ...models.generated import Bookings

    return (
        db.query(func.count(Bookings.id))
        .filter(
            Bookings.location_id == row.location_id,
            Bookings.start_time < row.end_time,
            Bookings.end_time > row.start_time,
        )
        .scalar()
    ) or 0


def refresh_full_flags(db: Session, rows: Iterable) -> list[int]:
    """
    Recompute is_full for rows from live booking counts.

    Flushes but does not commit. Returns ids whose flag changed.
    """
    changed = []
    for row in rows:
        should_be_full = 1 if booked_count_for(db, row) >= row.max_capacity else 0
        if (row.is_full or 0) != should_be_full:
            row.is_full = should_be_full
            changed.append(row.id)

    if changed:
        db.flush()
        logger.info(f"is_full updated for availabilities {changed}")
    return changed


def day_view(
    db: Session,
    civil_date: str,
    location_ids: Iterable[int] | None = None,
    now: datetime | None = None,
    calendar: CivilCalendar | None = None,
) -> list[dict]:
    """
    Every availability row starting on a civil day, with live counts and status.

    Returns:
        List of dicts ordered by start then insertion order.
    """
    calendar = calendar or get_civil_calendar()
    now = parse_instant(now) if now is not None else datetime.now(timezone.utc)
    day_start, day_end = calendar.day_bounds(civil_date)

    rows = [
        row for row in load_availabilities(db, day_start, day_end, location_ids)
        if parse_instant(row.start_time) >= day_start
    ]
    if not rows:
        return []

    window_start = min(parse_instant(r.start_time) for r in rows)
    window_end = max(parse_instant(r.end_time) for r in rows)
    bookings = load_bookings(db, window_start, window_end, {r.location_id for r in rows})

    result = []
    for row in rows:
        booked = count_overlapping(row.start_time, row.end_time, row.location_id, bookings)
        result.append({
            "availability_id": row.id,
            "location_id": row.location_id,
            "start_time": row.start_time,
            "end_time": row.end_time,
            "civil_date": calendar.to_civil_date(row.start_time),
            "civil_time": calendar.to_civil_time(row.start_time),
            "service_name": row.service_name,
            "capacity": row.max_capacity,
            "booked_count": booked,
            "is_full": bool(row.is_full),
            "status": derive_state(booked, row.max_capacity, row.start_time, now).value,
            "batch_id": row.batch_id,
        })
    return result
