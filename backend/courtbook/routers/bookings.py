# backend/courtbook/routers/bookings.py
# PATCH = 405, DELETE = 405 (cancellation is a separate admin flow)

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from ..context import get_request_context
from ..database import get_db
from ..models.generated import Bookings as DBBookings
from ..schemas.bookings import (
    BookingRead,
    ReservationCreate,
    ReservationResponse,
)
from ..services.booking_saga import (
    RequestContext,
    RequestedRange,
    ReservationRequest,
    reserve,
)
from ..services.errors import http_status_for

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("/", response_model=list[BookingRead])
def list_bookings(
    client_id: int | None = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    query = db.query(DBBookings)
    if not ctx.is_staff:
        client_id = ctx.user_id
    if client_id is not None:
        query = query.filter(DBBookings.client_id == client_id)
    return query.order_by(DBBookings.start_time).offset(offset).limit(limit).all()


@router.get("/{id}", response_model=BookingRead)
def get_booking(
    id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    obj = db.get(DBBookings, id)
    if not obj or (not ctx.is_staff and obj.client_id != ctx.user_id):
        raise HTTPException(status_code=404, detail="Not found")
    return obj


@router.post("/", response_model=ReservationResponse)
def create_booking(
    data: ReservationCreate,
    response: Response,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """
    Run the booking saga for every requested range.

    Per-range failures are reported in the body; the status code is 201 if
    at least one booking was created, otherwise the status of the first
    failure (409 slot unavailable, 402 insufficient balance, ...).
    """
    request = ReservationRequest(
        client_id=data.client_id,
        ranges=[
            RequestedRange.from_values(r.location_id, r.start_time, r.end_time)
            for r in data.ranges
        ],
        coach_id=data.coach_id,
    )
    outcome = reserve(db, ctx, request)
    if outcome.created:
        response.status_code = status.HTTP_201_CREATED
    else:
        response.status_code = http_status_for(outcome.failures[0].code)

    return ReservationResponse(
        created=outcome.created,
        failed=outcome.failed,
        total_charged=outcome.total_charged,
        booking_ids=outcome.booking_ids,
        failures=[asdict(f) for f in outcome.failures],
        needs_reconciliation=outcome.needs_reconciliation,
    )


@router.patch("/{id}")
def patch_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )


@router.delete("/{id}")
def delete_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )
