# backend/courtbook/services/slots/coordinator.py
"""
Edit/delete coordination for published slots.

A bulk-created pattern produces sibling rows: same start/end, different
location. Siblings are re-identified by start and end falling within
±sibling_tolerance_seconds of the anchor row, optionally restricted to a
caller-supplied location set. Rows from one generator run also share a
batch_id, which delete_batch() uses instead of the time window.

A row with at least one overlapping booking is never deleted.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..civil_time import format_instant, parse_instant
from ..errors import IdentityAmbiguity, NotFound, PersistenceFailure, ValidationError
from .config import BookingConfig, get_booking_config
from .matching import booked_count_for

logger = logging.getLogger(__name__)

MUTABLE_FIELDS = {"service_name", "location_ids"}
IMMUTABLE_FIELDS = {"start_time", "end_time", "max_capacity", "capacity"}


@dataclass
class DeletionReport:
    removed_ids: list[int] = field(default_factory=list)
    skipped_ids: list[int] = field(default_factory=list)

    @property
    def removed(self) -> int:
        return len(self.removed_ids)

    @property
    def skipped(self) -> int:
        return len(self.skipped_ids)


@dataclass
class UpdateReport:
    updated_ids: list[int] = field(default_factory=list)
    added_ids: list[int] = field(default_factory=list)
    removed_ids: list[int] = field(default_factory=list)
    skipped_ids: list[int] = field(default_factory=list)


def find_siblings(
    db: Session,
    availability_id: int,
    location_ids: Optional[Iterable[int]] = None,
    config: BookingConfig | None = None,
) -> list:
    """
    Rows belonging to the same published slot as availability_id.

    Raises:
        NotFound: anchor row does not exist
        ValidationError: an empty location set was supplied
        IdentityAmbiguity: a location has more than one row within tolerance
    """
    from ...models.generated import Availabilities

    config = config or get_booking_config()

    anchor = db.get(Availabilities, availability_id)
    if not anchor:
        raise NotFound(f"Availability {availability_id} not found")

    tolerance = timedelta(seconds=config.sibling_tolerance_seconds)
    start = parse_instant(anchor.start_time)
    end = parse_instant(anchor.end_time)

    query = db.query(Availabilities).filter(
        Availabilities.start_time >= format_instant(start - tolerance),
        Availabilities.start_time <= format_instant(start + tolerance),
        Availabilities.end_time >= format_instant(end - tolerance),
        Availabilities.end_time <= format_instant(end + tolerance),
    )

    if location_ids is not None:
        wanted = list(dict.fromkeys(location_ids))
        if not wanted:
            raise ValidationError("Location set must not be empty")
        query = query.filter(Availabilities.location_id.in_(wanted))

    rows = query.order_by(Availabilities.id).all()
    _ensure_unique_per_location(rows, availability_id)
    return rows


def _ensure_unique_per_location(rows: list, availability_id: int) -> None:
    seen: dict[int, int] = {}
    for row in rows:
        if row.location_id in seen:
            raise IdentityAmbiguity(
                f"Availability {availability_id}: location {row.location_id} has "
                f"several rows within tolerance",
                location_id=row.location_id,
                availability_ids=[seen[row.location_id], row.id],
            )
        seen[row.location_id] = row.id


def _delete_unbooked(db: Session, rows: Iterable) -> DeletionReport:
    report = DeletionReport()
    for row in rows:
        if booked_count_for(db, row) > 0:
            report.skipped_ids.append(row.id)
            continue
        report.removed_ids.append(row.id)
        db.delete(row)
    return report


def _commit(db: Session, what: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to {what}: {e}")
        raise PersistenceFailure(f"Failed to {what}", cause=e) from e


def delete_slot(
    db: Session,
    availability_id: int,
    location_ids: Optional[Iterable[int]] = None,
    config: BookingConfig | None = None,
) -> DeletionReport:
    """
    Delete one published slot across its sibling locations.

    Booked siblings are skipped; every unbooked sibling is removed.
    """
    siblings = find_siblings(db, availability_id, location_ids, config)
    report = _delete_unbooked(db, siblings)
    _commit(db, f"delete availability {availability_id}")

    logger.info(
        f"Availability {availability_id}: removed {report.removed}, "
        f"skipped {report.skipped} (booked)"
    )
    return report


def delete_batch(db: Session, batch_id: str) -> DeletionReport:
    """Delete every unbooked row produced by one generator run."""
    from ...models.generated import Availabilities

    rows = (
        db.query(Availabilities)
        .filter(Availabilities.batch_id == batch_id)
        .order_by(Availabilities.id)
        .all()
    )
    if not rows:
        raise NotFound(f"Batch {batch_id} not found")

    report = _delete_unbooked(db, rows)
    _commit(db, f"delete batch {batch_id}")

    logger.info(f"Batch {batch_id}: removed {report.removed}, skipped {report.skipped} (booked)")
    return report


def update_slot(
    db: Session,
    availability_id: int,
    changes: dict,
    config: BookingConfig | None = None,
) -> UpdateReport:
    """
    Change the service label and/or location set of a published slot.

    changes:
        service_name: applied to every sibling
        location_ids: new location set: missing locations get a new sibling
                       row (same start/end/capacity), dropped locations lose
                       their row unless it is booked

    start/end/capacity cannot be changed on this path.
    """
    from ...models.generated import Availabilities, Locations

    immutable = IMMUTABLE_FIELDS & set(changes)
    if immutable:
        raise ValidationError(f"Fields cannot be changed: {sorted(immutable)}")
    unknown = set(changes) - MUTABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown fields: {sorted(unknown)}")

    siblings = find_siblings(db, availability_id, None, config)
    anchor = next(row for row in siblings if row.id == availability_id)
    report = UpdateReport()

    if "service_name" in changes:
        for row in siblings:
            row.service_name = changes["service_name"]
            report.updated_ids.append(row.id)

    if changes.get("location_ids") is not None:
        wanted = list(dict.fromkeys(changes["location_ids"]))
        if not wanted:
            raise ValidationError("Location set must not be empty")

        active = {
            loc.id
            for loc in db.query(Locations).filter(
                Locations.id.in_(wanted),
                Locations.is_deleted == 0,
            )
        }
        missing = [loc_id for loc_id in wanted if loc_id not in active]
        if missing:
            raise ValidationError(f"Unknown or deleted locations: {missing}")

        current = {row.location_id: row for row in siblings}

        dropped = [row for loc_id, row in current.items() if loc_id not in wanted]
        deletion = _delete_unbooked(db, dropped)
        report.removed_ids.extend(deletion.removed_ids)
        report.skipped_ids.extend(deletion.skipped_ids)
        report.updated_ids = [i for i in report.updated_ids if i not in deletion.removed_ids]

        added = []
        for loc_id in wanted:
            if loc_id in current:
                continue
            row = Availabilities(
                location_id=loc_id,
                start_time=anchor.start_time,
                end_time=anchor.end_time,
                max_capacity=anchor.max_capacity,
                service_name=changes.get("service_name", anchor.service_name),
                is_full=0,
                batch_id=anchor.batch_id,
            )
            db.add(row)
            added.append(row)

        db.flush()
        report.added_ids.extend(row.id for row in added)

    _commit(db, f"update availability {availability_id}")
    logger.info(
        f"Availability {availability_id} updated: {len(report.updated_ids)} relabelled, "
        f"{len(report.added_ids)} added, {len(report.removed_ids)} removed, "
        f"{len(report.skipped_ids)} skipped (booked)"
    )
    return report
