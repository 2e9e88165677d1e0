# backend/courtbook/services/slots/generator.py
"""
Slot generation: materialize a weekly pattern into availability rows.

Input:  civil date range, weekdays (0=Sunday..6=Saturday), daily window,
        capacity, optional service label, one or more locations.
Output: one SlotDraft per (date, time, location).

generate_slots() is pure: no DB access and no existence checks; callers
that re-run a pattern are responsible for detecting duplicates.
materialize_slots() is the separate storage step.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..civil_time import (
    CivilCalendar,
    add_days,
    day_of_week,
    format_civil_time,
    format_instant,
    get_civil_calendar,
    parse_civil_date,
    parse_civil_time,
    time_str_to_minutes,
    minutes_to_time_str,
)
from ..errors import NoSlotsProduced, PersistenceFailure, ValidationError
from .config import BookingConfig, get_booking_config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotDraft:
    """One availability row ready to be stored."""
    location_id: int
    start: datetime
    end: datetime
    capacity: int
    service_name: Optional[str]
    civil_date: str
    civil_time: str


def generate_slots(
    start_date: str,
    end_date: str,
    weekdays: Iterable[int],
    start_time: str,
    end_time: str,
    location_ids: Iterable[int],
    capacity: int | None = None,
    service_name: str | None = None,
    calendar: CivilCalendar | None = None,
    config: BookingConfig | None = None,
) -> list[SlotDraft]:
    """
    Expand a weekly pattern into slot drafts.

    Algorithm:
    1. Walk civil dates from start_date to end_date (inclusive)
    2. Skip dates whose weekday is not selected
    3. Step from window start in slot_step_minutes; a step that would end
       past the window end is dropped
    4. For each (date, time) and each location, emit start/end instants

    Raises:
        ValidationError: malformed dates/times, empty location list,
            inverted date range, non-positive capacity
        NoSlotsProduced: no weekdays selected, inverted time window,
            or the pattern yields zero rows
    """
    calendar = calendar or get_civil_calendar()
    config = config or get_booking_config()
    capacity = config.default_capacity if capacity is None else capacity
    step = config.slot_step_minutes

    selected = set(weekdays or ())
    locations = list(dict.fromkeys(location_ids or ()))

    # Step 1: Validate inputs (before anything is produced)
    parse_civil_date(start_date)
    parse_civil_date(end_date)
    if end_date < start_date:
        raise ValidationError(f"End date {end_date} is before start date {start_date}")
    if any(isinstance(d, bool) or not isinstance(d, int) or not 0 <= d <= 6 for d in selected):
        raise ValidationError(f"Weekdays must be integers 0..6, got {sorted(selected, key=str)}")
    if not locations:
        raise ValidationError("At least one location is required")
    if not isinstance(capacity, int) or capacity < 1:
        raise ValidationError(f"Capacity must be a positive integer, got {capacity!r}")

    window_start = time_str_to_minutes(start_time)
    window_end = time_str_to_minutes(end_time)

    if not selected:
        raise NoSlotsProduced("No weekdays selected")
    if window_end <= window_start:
        raise NoSlotsProduced(f"Time window {start_time}-{end_time} is empty or inverted")

    # Step 2: Walk the calendar
    drafts: list[SlotDraft] = []
    current = start_date
    while current <= end_date:
        if day_of_week(current) in selected:
            t = window_start
            while t + step <= window_end:
                hour, minute = divmod(t, 60)
                slot_start = calendar.to_absolute(current, hour, minute)
                slot_end = slot_start + timedelta(minutes=step)

                for location_id in locations:
                    drafts.append(SlotDraft(
                        location_id=location_id,
                        start=slot_start,
                        end=slot_end,
                        capacity=capacity,
                        service_name=service_name,
                        civil_date=current,
                        civil_time=minutes_to_time_str(t),
                    ))

                t += step

        current = add_days(current, 1)

    if not drafts:
        raise NoSlotsProduced(
            f"No slots produced for {start_date}..{end_date} "
            f"on weekdays {sorted(selected)} between {start_time} and {end_time}"
        )

    return drafts


def new_batch_id() -> str:
    """Identifier shared by every row of one generator run."""
    return uuid.uuid4().hex


def materialize_slots(
    db: Session,
    drafts: list[SlotDraft],
    batch_id: str | None = None,
) -> list:
    """
    Persist drafts as availability rows in one transaction.

    Returns:
        Created Availabilities rows (refreshed, with ids)

    Raises:
        PersistenceFailure: the insert failed; nothing is stored
    """
    from ...models.generated import Availabilities

    if not drafts:
        raise NoSlotsProduced("Nothing to store")

    rows = [
        Availabilities(
            location_id=draft.location_id,
            start_time=format_instant(draft.start),
            end_time=format_instant(draft.end),
            max_capacity=draft.capacity,
            service_name=draft.service_name,
            is_full=0,
            batch_id=batch_id,
        )
        for draft in drafts
    ]

    try:
        db.add_all(rows)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to store {len(rows)} availability rows: {e}")
        raise PersistenceFailure("Failed to store availability rows", cause=e) from e

    for row in rows:
        db.refresh(row)

    logger.info(f"Stored {len(rows)} availability rows (batch={batch_id})")
    return rows


def create_single_slot(
    db: Session,
    civil_date: str,
    start_time: str,
    location_ids: Iterable[int],
    capacity: int | None = None,
    service_name: str | None = None,
    calendar: CivilCalendar | None = None,
    config: BookingConfig | None = None,
) -> list:
    """
    Manually publish one slot (one granularity step) at one or more locations.

    All rows share start/end, so they are siblings of one published slot.
    """
    calendar = calendar or get_civil_calendar()
    config = config or get_booking_config()
    capacity = config.default_capacity if capacity is None else capacity
    locations = list(dict.fromkeys(location_ids or ()))

    hour, minute = parse_civil_time(start_time)
    if not locations:
        raise ValidationError("At least one location is required")
    if not isinstance(capacity, int) or capacity < 1:
        raise ValidationError(f"Capacity must be a positive integer, got {capacity!r}")

    slot_start = calendar.to_absolute(civil_date, hour, minute)
    slot_end = slot_start + timedelta(minutes=config.slot_step_minutes)

    drafts = [
        SlotDraft(
            location_id=location_id,
            start=slot_start,
            end=slot_end,
            capacity=capacity,
            service_name=service_name,
            civil_date=civil_date,
            civil_time=format_civil_time(hour, minute),
        )
        for location_id in locations
    ]
    return materialize_slots(db, drafts, batch_id=new_batch_id())
