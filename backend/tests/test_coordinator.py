import pytest

from courtbook.models import Availabilities, Bookings
from courtbook.services.errors import IdentityAmbiguity, NotFound, ValidationError
from courtbook.services.slots import (
    create_single_slot,
    delete_batch,
    delete_slot,
    find_siblings,
    generate_slots,
    materialize_slots,
    new_batch_id,
    update_slot,
)


def _book(db, client_id, row):
    db.add(Bookings(
        client_id=client_id,
        location_id=row.location_id,
        start_time=row.start_time,
        end_time=row.end_time,
        credit_cost=0,
    ))
    db.commit()


@pytest.fixture
def three_courts(make_locations):
    return make_locations(3)


@pytest.fixture
def slot_rows(db, three_courts, calendar, config):
    return create_single_slot(
        db, "2025-06-10", "10:00", [loc.id for loc in three_courts],
        service_name="Boot Camp", calendar=calendar, config=config,
    )


def test_find_siblings_returns_every_location(db, slot_rows, config):
    siblings = find_siblings(db, slot_rows[1].id, config=config)
    assert [row.id for row in siblings] == [row.id for row in slot_rows]


def test_find_siblings_within_tolerance(db, slot_rows, three_courts, config):
    extra_court = three_courts[0]
    shifted = Availabilities(
        location_id=extra_court.id,
        start_time="2025-06-10T00:00:00.500Z",
        end_time="2025-06-10T00:30:00.500Z",
        max_capacity=10,
        is_full=0,
    )
    db.add(shifted)
    db.commit()

    with pytest.raises(IdentityAmbiguity):
        find_siblings(db, slot_rows[0].id, config=config)

    # Restricting to the other courts resolves it
    siblings = find_siblings(db, slot_rows[1].id, [three_courts[1].id, three_courts[2].id], config=config)
    assert len(siblings) == 2


def test_find_siblings_errors(db, slot_rows, config):
    with pytest.raises(NotFound):
        find_siblings(db, 9999, config=config)
    with pytest.raises(ValidationError):
        find_siblings(db, slot_rows[0].id, [], config=config)


def test_delete_skips_booked_sibling(db, slot_rows, make_client, config):
    client = make_client()
    _book(db, client.id, slot_rows[1])
    booked_id = slot_rows[1].id

    report = delete_slot(db, slot_rows[0].id, config=config)

    assert report.removed == 2
    assert report.skipped == 1
    assert report.skipped_ids == [booked_id]
    assert [row.id for row in db.query(Availabilities).all()] == [booked_id]


def test_delete_restricted_to_location_set(db, slot_rows, three_courts, config):
    report = delete_slot(db, slot_rows[0].id, [three_courts[0].id], config=config)

    assert report.removed == 1
    assert db.query(Availabilities).count() == 2


def test_delete_batch(db, three_courts, make_client, calendar, config):
    drafts = generate_slots(
        "2025-06-09", "2025-06-10", {1, 2}, "09:00", "10:00", [three_courts[0].id],
        calendar=calendar, config=config,
    )
    batch_id = new_batch_id()
    rows = materialize_slots(db, drafts, batch_id=batch_id)
    client = make_client()
    _book(db, client.id, rows[0])

    report = delete_batch(db, batch_id)

    assert report.removed == 3
    assert report.skipped_ids == [rows[0].id]

    with pytest.raises(NotFound):
        delete_batch(db, "no-such-batch")


def test_update_relabels_all_siblings(db, slot_rows, config):
    report = update_slot(db, slot_rows[0].id, {"service_name": "Stroke Clinic"}, config=config)

    assert sorted(report.updated_ids) == sorted(row.id for row in slot_rows)
    labels = {row.service_name for row in db.query(Availabilities).all()}
    assert labels == {"Stroke Clinic"}


def test_update_retargets_locations(db, slot_rows, three_courts, make_locations, make_client, config):
    fourth = make_locations(1)[0]
    client = make_client()
    _book(db, client.id, slot_rows[2])
    kept, dropped, booked = (row.id for row in slot_rows)

    report = update_slot(
        db, kept, {"location_ids": [three_courts[0].id, fourth.id]}, config=config,
    )

    assert report.removed_ids == [dropped]
    assert report.skipped_ids == [booked]
    assert len(report.added_ids) == 1

    added = db.get(Availabilities, report.added_ids[0])
    anchor = db.get(Availabilities, kept)
    assert added.location_id == fourth.id
    assert (added.start_time, added.end_time) == (anchor.start_time, anchor.end_time)
    assert added.service_name == "Boot Camp"


@pytest.mark.parametrize(
    "changes",
    [
        {"start_time": "2025-06-10T01:00:00Z"},
        {"max_capacity": 5},
        {"colour": "red"},
        {"location_ids": []},
        {"location_ids": [9999]},
    ],
)
def test_update_rejects_invalid_changes(db, slot_rows, config, changes):
    with pytest.raises(ValidationError):
        update_slot(db, slot_rows[0].id, changes, config=config)
