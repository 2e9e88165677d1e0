# backend/courtbook/services/booking_saga.py
"""
Booking saga: reserve slots against a prepaid balance.

Per requested range:

    Pending → BalanceChecked → Debited → Persisted
                                 └─────→ DebitRolledBack

1. Resolve the availability rows covering the range (contiguous, same
   location, union equal to the range). None, full or past → SlotUnavailable.
2. Charge = flat price of the service label.
3. charge > 0: balance < charge → InsufficientBalance, nothing mutated.
4. Debit the balance (the only mutation before the insert).
5. Insert the booking. On any failure credit the charge back, then surface
   the insert error. If the credit fails too → ReconciliationRequired.
6. Recount bookings; rows that reached capacity are marked full.

Bulk requests repeat 1–6 per range; ranges are independent resources, so
the outcome reports created/failed counts instead of all-or-nothing.

Caller identity is explicit (RequestContext); nothing reads session state.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.generated import (
    Availabilities as DBAvailability,
    Bookings as DBBooking,
    Users as DBUser,
)
from . import wallet_ledger
from .civil_time import format_instant, parse_instant
from .errors import (
    CourtbookError,
    InsufficientBalance,
    NotFound,
    PersistenceFailure,
    ReconciliationRequired,
    SlotUnavailable,
    ValidationError,
)
from .events import emit_event
from .slots.config import BookingConfig, get_booking_config
from .slots.matching import booked_count_for, refresh_full_flags

logger = logging.getLogger(__name__)

STAFF_ROLES = ("admin", "coach")


class SagaState(str, Enum):
    PENDING = "pending"
    BALANCE_CHECKED = "balance_checked"
    DEBITED = "debited"
    PERSISTED = "persisted"
    DEBIT_ROLLED_BACK = "debit_rolled_back"
    FAILED = "failed"


@dataclass(frozen=True)
class RequestContext:
    """Who is calling: passed into every core operation."""
    user_id: int
    role: str = "client"

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


@dataclass(frozen=True)
class RequestedRange:
    location_id: int
    start: datetime
    end: datetime

    @classmethod
    def from_values(cls, location_id: int, start, end) -> "RequestedRange":
        return cls(location_id=location_id, start=parse_instant(start), end=parse_instant(end))


@dataclass(frozen=True)
class ReservationRequest:
    client_id: int
    ranges: Sequence[RequestedRange]
    coach_id: Optional[int] = None


@dataclass(frozen=True)
class FailureDetail:
    index: int
    location_id: int
    start_time: str
    end_time: str
    code: str
    message: str
    needs_reconciliation: bool = False


@dataclass
class ReservationOutcome:
    created: int = 0
    failed: int = 0
    total_charged: float = 0.0
    booking_ids: list[int] = field(default_factory=list)
    failures: list[FailureDetail] = field(default_factory=list)

    @property
    def needs_reconciliation(self) -> bool:
        return any(f.needs_reconciliation for f in self.failures)


@dataclass
class _Item:
    """Per-range saga bookkeeping."""
    index: int
    client_id: int
    range: RequestedRange
    state: SagaState = SagaState.PENDING
    charge: float = 0.0

    @property
    def label(self) -> str:
        return (
            f"client={self.client_id} loc={self.range.location_id} "
            f"{format_instant(self.range.start)}..{format_instant(self.range.end)}"
        )

    def transition(self, state: SagaState) -> None:
        logger.info(f"Saga [{self.label}]: {self.state.value} → {state.value}")
        self.state = state


# ── Public entry point ───────────────────────────────────────────────────


def reserve(
    db: Session,
    ctx: RequestContext,
    request: ReservationRequest,
    config: BookingConfig | None = None,
    now: datetime | None = None,
) -> ReservationOutcome:
    """
    Reserve every requested range for request.client_id.

    Validation problems with the request as a whole raise before anything
    is touched. Per-range failures are returned in the outcome.

    Raises:
        ValidationError: empty request, inverted range, client acting for
            someone else, invalid assigned staff
        NotFound: client does not exist
    """
    config = config or get_booking_config()
    now = parse_instant(now) if now is not None else datetime.now(timezone.utc)

    _validate_request(db, ctx, request)

    outcome = ReservationOutcome()
    for index, rng in enumerate(request.ranges):
        item = _Item(index=index, client_id=request.client_id, range=rng)
        try:
            booking = _reserve_one(db, ctx, item, request.coach_id, config, now)
        except CourtbookError as e:
            if item.state != SagaState.DEBIT_ROLLED_BACK:
                item.transition(SagaState.FAILED)
            outcome.failed += 1
            outcome.failures.append(FailureDetail(
                index=index,
                location_id=rng.location_id,
                start_time=format_instant(rng.start),
                end_time=format_instant(rng.end),
                code=e.code,
                message=e.message,
                needs_reconciliation=isinstance(e, ReconciliationRequired),
            ))
            continue

        outcome.created += 1
        outcome.total_charged = round(outcome.total_charged + item.charge, 2)
        outcome.booking_ids.append(booking.id)

    logger.info(
        f"Reservation for client {request.client_id} by user {ctx.user_id} ({ctx.role}): "
        f"created={outcome.created} failed={outcome.failed} charged={outcome.total_charged:.2f}"
    )
    return outcome


def _validate_request(db: Session, ctx: RequestContext, request: ReservationRequest) -> None:
    if not request.ranges:
        raise ValidationError("At least one range is required")

    if not ctx.is_staff and ctx.user_id != request.client_id:
        raise ValidationError("Clients can only reserve for themselves")

    for rng in request.ranges:
        if rng.end <= rng.start:
            raise ValidationError(
                f"Range end {format_instant(rng.end)} is not after start {format_instant(rng.start)}"
            )

    if not db.get(DBUser, request.client_id):
        raise NotFound(f"User {request.client_id} not found")

    if request.coach_id is not None:
        coach = db.get(DBUser, request.coach_id)
        if not coach or coach.role not in STAFF_ROLES:
            raise ValidationError(f"User {request.coach_id} cannot be assigned as staff")


# ── One range ────────────────────────────────────────────────────────────


def _reserve_one(
    db: Session,
    ctx: RequestContext,
    item: _Item,
    coach_id: Optional[int],
    config: BookingConfig,
    now: datetime,
) -> DBBooking:
    rng = item.range

    # Step 1: Covering availability
    rows = resolve_covering_rows(db, rng, config, now)
    service_name = rows[0].service_name

    # Step 2: Flat price per booking
    item.charge = config.price_for(service_name)

    # Step 3: Balance check, no mutation yet
    if item.charge > 0:
        balance = wallet_ledger.get_balance(db, item.client_id)
        if balance < item.charge:
            raise InsufficientBalance(balance, item.charge)
    item.transition(SagaState.BALANCE_CHECKED)

    # Step 4: Debit
    debit_tx = None
    if item.charge > 0:
        debit_tx = wallet_ledger.debit(
            db,
            item.client_id,
            item.charge,
            description=f"Booking: {service_name or 'session'} {format_instant(rng.start)}",
            created_by=ctx.user_id,
        )
    item.transition(SagaState.DEBITED)

    # Step 5: Persist, compensating on any failure
    try:
        booking = _insert_booking(db, item, service_name, coach_id)
        _check_capacity_after_insert(db, rows)
        if debit_tx is not None:
            debit_tx.booking_id = booking.id
        db.commit()
    except Exception as e:
        db.rollback()
        _compensate(db, item, e)
        if isinstance(e, CourtbookError):
            raise
        raise PersistenceFailure(f"Failed to store booking: {e}", cause=e) from e

    db.refresh(booking)
    item.transition(SagaState.PERSISTED)

    # Step 6: Derived full flags
    try:
        refresh_full_flags(db, rows)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Saga [{item.label}]: is_full refresh failed, left to status refresher")

    emit_event("booking_created", {
        "booking_id": booking.id,
        "client_id": booking.client_id,
        "location_id": booking.location_id,
        "start_time": booking.start_time,
        "end_time": booking.end_time,
        "credit_cost": booking.credit_cost,
    })
    return booking


def resolve_covering_rows(
    db: Session,
    rng: RequestedRange,
    config: BookingConfig,
    now: datetime,
) -> list[DBAvailability]:
    """
    Availability rows whose contiguous union is exactly the requested range.

    Raises:
        SlotUnavailable: range in the past, not covered, or any row full
    """
    if rng.start < now:
        raise SlotUnavailable("Cannot book a time that has already passed")

    tolerance = timedelta(seconds=config.sibling_tolerance_seconds)
    candidates = (
        db.query(DBAvailability)
        .filter(
            DBAvailability.location_id == rng.location_id,
            DBAvailability.start_time >= format_instant(rng.start - tolerance),
            DBAvailability.end_time <= format_instant(rng.end + tolerance),
        )
        .order_by(DBAvailability.start_time, DBAvailability.id)
        .all()
    )

    # Walk from the range start, chaining abutting rows
    chain: list[DBAvailability] = []
    cursor = rng.start
    for row in candidates:
        row_start = parse_instant(row.start_time)
        if abs(row_start - cursor) > tolerance:
            continue
        chain.append(row)
        cursor = parse_instant(row.end_time)
        if abs(cursor - rng.end) <= tolerance:
            break

    if not chain or abs(cursor - rng.end) > tolerance:
        raise SlotUnavailable(
            f"No availability covers {format_instant(rng.start)}..{format_instant(rng.end)} "
            f"at location {rng.location_id}"
        )

    for row in chain:
        booked = booked_count_for(db, row)
        if row.is_full or booked >= row.max_capacity:
            raise SlotUnavailable(
                f"Slot {row.start_time} at location {row.location_id} is full "
                f"({booked}/{row.max_capacity})",
                availability_id=row.id,
                booked_count=booked,
                capacity=row.max_capacity,
            )
    return chain


def _insert_booking(
    db: Session,
    item: _Item,
    service_name: Optional[str],
    coach_id: Optional[int],
) -> DBBooking:
    booking = DBBooking(
        client_id=item.client_id,
        location_id=item.range.location_id,
        start_time=format_instant(item.range.start),
        end_time=format_instant(item.range.end),
        credit_cost=item.charge,
        service_name=service_name,
        coach_id=coach_id,
    )
    db.add(booking)
    db.flush()
    return booking


def _check_capacity_after_insert(db: Session, rows: Sequence[DBAvailability]) -> None:
    """A concurrent writer may have taken the last place between check and insert."""
    for row in rows:
        booked = booked_count_for(db, row)
        if booked > row.max_capacity:
            raise SlotUnavailable(
                f"Slot {row.start_time} at location {row.location_id} filled up "
                f"during booking ({booked}/{row.max_capacity})",
                availability_id=row.id,
            )


def _compensate(db: Session, item: _Item, error: BaseException) -> None:
    """
    Credit the debited charge back after a failed insert.

    Best-effort, never retried: a failed credit raises ReconciliationRequired
    carrying both errors so an operator can fix the balance by hand.
    """
    if item.state != SagaState.DEBITED or item.charge <= 0:
        return

    logger.warning(f"Saga [{item.label}]: insert failed ({error!r}), refunding {item.charge:.2f}")
    try:
        wallet_ledger.credit(
            db,
            item.client_id,
            item.charge,
            tx_type="refund",
            description=f"Refund: booking failed at {format_instant(item.range.start)}",
        )
    except Exception as compensation_error:
        logger.critical(
            f"Saga [{item.label}]: refund of {item.charge:.2f} FAILED "
            f"({compensation_error!r}) after insert error ({error!r}); manual reconciliation required"
        )
        emit_event("balance_reconciliation_required", {
            "client_id": item.client_id,
            "amount": item.charge,
            "location_id": item.range.location_id,
            "start_time": format_instant(item.range.start),
        })
        raise ReconciliationRequired(
            f"Booking failed and refund of {item.charge:.2f} failed; manual reconciliation required",
            cause=error,
            compensation_error=compensation_error,
            client_id=item.client_id,
            amount=item.charge,
        ) from error

    item.transition(SagaState.DEBIT_ROLLED_BACK)
