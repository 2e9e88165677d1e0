# backend/courtbook/routers/availabilities.py
"""
Availability API endpoints.

Admin:  POST /availabilities/bulk      - materialize a weekly pattern
        POST /availabilities/          - publish one slot at one or more locations
        PATCH /availabilities/{id}     - relabel / re-target a published slot
        DELETE /availabilities/{id}    - delete unbooked siblings of a slot
        DELETE /availabilities/batch/{batch_id}
Client: GET /availabilities/day        - rows of a civil day with live counts
        GET /availabilities/status     - status of one candidate instant
"""

from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..context import require_admin
from ..database import get_db
from ..models.generated import Locations as DBLocations
from ..schemas.availabilities import (
    AvailabilityDayResponse,
    AvailabilityDeleteResponse,
    AvailabilityRead,
    AvailabilityUpdate,
    AvailabilityUpdateResponse,
    BulkSlotRequest,
    BulkSlotResponse,
    SingleSlotCreate,
    SlotStatusRead,
)
from ..services.civil_time import parse_civil_date, parse_instant
from ..services.errors import ValidationError
from ..services.slots import (
    create_single_slot,
    day_view,
    delete_batch,
    delete_slot,
    generate_slots,
    materialize_slots,
    new_batch_id,
    status_of,
    update_slot,
)
from ..services.slots.matching import load_availabilities, load_bookings


router = APIRouter(prefix="/availabilities", tags=["availabilities"])


def _ensure_locations(db: Session, location_ids: list[int]) -> None:
    """Raise ValidationError unless every location exists and is not deleted."""
    active = {
        loc.id
        for loc in db.query(DBLocations).filter(
            DBLocations.id.in_(location_ids),
            DBLocations.is_deleted == 0,
        )
    }
    missing = [loc_id for loc_id in location_ids if loc_id not in active]
    if missing:
        raise ValidationError(f"Unknown or deleted locations: {missing}")


@router.post(
    "/bulk",
    response_model=BulkSlotResponse,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
def create_bulk_availability(data: BulkSlotRequest, db: Session = Depends(get_db)):
    """Materialize a weekly pattern (Slot Generator + storage)."""
    drafts = generate_slots(
        start_date=data.start_date,
        end_date=data.end_date,
        weekdays=data.weekdays,
        start_time=data.start_time,
        end_time=data.end_time,
        location_ids=data.location_ids,
        capacity=data.capacity,
        service_name=data.service_name,
    )
    _ensure_locations(db, data.location_ids)

    batch_id = new_batch_id()
    rows = materialize_slots(db, drafts, batch_id=batch_id)

    return BulkSlotResponse(
        created=len(rows),
        batch_id=batch_id,
        availability_ids=[row.id for row in rows],
    )


@router.post(
    "/",
    response_model=list[AvailabilityRead],
    status_code=201,
    dependencies=[Depends(require_admin)],
)
def create_availability(data: SingleSlotCreate, db: Session = Depends(get_db)):
    """Publish one slot manually."""
    parse_civil_date(data.date)
    _ensure_locations(db, data.location_ids)
    return create_single_slot(
        db,
        civil_date=data.date,
        start_time=data.start_time,
        location_ids=data.location_ids,
        capacity=data.capacity,
        service_name=data.service_name,
    )


@router.get("/day", response_model=AvailabilityDayResponse)
def get_availability_day(
    target_date: str = Query(..., alias="date"),
    location_id: Optional[list[int]] = Query(None),
    db: Session = Depends(get_db),
):
    """Every availability row on a civil day, with booked/capacity and status."""
    parse_civil_date(target_date)
    slots = day_view(db, target_date, location_id)
    return AvailabilityDayResponse(date=target_date, slots=slots)


@router.get("/status", response_model=SlotStatusRead)
def get_slot_status(
    start: str,
    location_id: int,
    db: Session = Depends(get_db),
):
    """Status of one candidate instant at one location."""
    moment = parse_instant(start)
    rows = load_availabilities(db, moment, moment + timedelta(seconds=1), [location_id])
    bookings = []
    if rows:
        window_start = min(parse_instant(r.start_time) for r in rows)
        window_end = max(parse_instant(r.end_time) for r in rows)
        bookings = load_bookings(db, window_start, window_end, [location_id])

    result = status_of(moment, location_id, rows, bookings)
    return SlotStatusRead(
        status=result.status.value,
        booked_count=result.booked_count,
        capacity=result.capacity,
        location_id=result.location_id,
        availability_id=result.availability_id,
    )


@router.patch(
    "/{id}",
    response_model=AvailabilityUpdateResponse,
    dependencies=[Depends(require_admin)],
)
def patch_availability(id: int, data: AvailabilityUpdate, db: Session = Depends(get_db)):
    """Relabel and/or re-target the locations of a published slot."""
    report = update_slot(db, id, data.model_dump(exclude_unset=True))
    return AvailabilityUpdateResponse(
        updated_ids=report.updated_ids,
        added_ids=report.added_ids,
        removed_ids=report.removed_ids,
        skipped_ids=report.skipped_ids,
    )


@router.delete(
    "/batch/{batch_id}",
    response_model=AvailabilityDeleteResponse,
    dependencies=[Depends(require_admin)],
)
def delete_availability_batch(batch_id: str, db: Session = Depends(get_db)):
    report = delete_batch(db, batch_id)
    return AvailabilityDeleteResponse(
        removed=report.removed,
        skipped=report.skipped,
        removed_ids=report.removed_ids,
        skipped_ids=report.skipped_ids,
    )


@router.delete(
    "/{id}",
    response_model=AvailabilityDeleteResponse,
    dependencies=[Depends(require_admin)],
)
def delete_availability(
    id: int,
    location_ids: Optional[list[int]] = Query(None),
    db: Session = Depends(get_db),
):
    """Delete a published slot; booked siblings are skipped."""
    report = delete_slot(db, id, location_ids)
    return AvailabilityDeleteResponse(
        removed=report.removed,
        skipped=report.skipped,
        removed_ids=report.removed_ids,
        skipped_ids=report.skipped_ids,
    )
