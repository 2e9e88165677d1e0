import pytest

from courtbook.models import Availabilities
from courtbook.services.civil_time import format_instant
from courtbook.services.errors import NoSlotsProduced, ValidationError
from courtbook.services.slots import (
    create_single_slot,
    generate_slots,
    materialize_slots,
    new_batch_id,
)

ALL_WEEK = {0, 1, 2, 3, 4, 5, 6}


def test_one_week_single_slot_per_day(calendar, config):
    drafts = generate_slots(
        "2025-06-01", "2025-06-07", ALL_WEEK, "09:00", "09:30", [1],
        calendar=calendar, config=config,
    )
    assert len(drafts) == 7
    assert [d.civil_date for d in drafts] == [f"2025-06-0{i}" for i in range(1, 8)]
    assert all(d.civil_time == "09:00" for d in drafts)


def test_rows_scale_with_locations_and_window(calendar, config):
    drafts = generate_slots(
        "2025-06-01", "2025-06-07", ALL_WEEK, "09:00", "10:00", [1, 2, 3],
        calendar=calendar, config=config,
    )
    assert len(drafts) == 7 * 2 * 3


def test_weekday_filter(calendar, config):
    # 2025-03-01 is a Saturday, 2025-03-02 a Sunday
    drafts = generate_slots(
        "2025-03-01", "2025-03-02", {6}, "09:00", "09:30", [1],
        calendar=calendar, config=config,
    )
    assert len(drafts) == 1
    assert drafts[0].civil_date == "2025-03-01"


def test_partial_step_at_window_end_is_dropped(calendar, config):
    drafts = generate_slots(
        "2025-06-02", "2025-06-02", ALL_WEEK, "09:00", "10:15", [1],
        calendar=calendar, config=config,
    )
    assert [d.civil_time for d in drafts] == ["09:00", "09:30"]


def test_slot_instants_follow_civil_calendar(calendar, config):
    drafts = generate_slots(
        "2025-10-04", "2025-10-05", ALL_WEEK, "09:00", "09:30", [7],
        capacity=4, service_name="Boot Camp",
        calendar=calendar, config=config,
    )
    assert [format_instant(d.start) for d in drafts] == [
        "2025-10-03T23:00:00.000Z",
        "2025-10-04T22:00:00.000Z",
    ]
    for draft in drafts:
        assert (draft.end - draft.start).total_seconds() == 30 * 60
        assert draft.capacity == 4
        assert draft.service_name == "Boot Camp"
        assert draft.location_id == 7


def test_default_capacity(calendar, config):
    drafts = generate_slots(
        "2025-06-02", "2025-06-02", ALL_WEEK, "09:00", "09:30", [1],
        calendar=calendar, config=config,
    )
    assert drafts[0].capacity == config.default_capacity


@pytest.mark.parametrize(
    "weekdays, start_time, end_time",
    [
        (set(), "09:00", "10:00"),
        (ALL_WEEK, "10:00", "09:00"),
        (ALL_WEEK, "09:00", "09:00"),
        (ALL_WEEK, "09:00", "09:15"),
    ],
)
def test_no_slots_produced(calendar, config, weekdays, start_time, end_time):
    with pytest.raises(NoSlotsProduced):
        generate_slots(
            "2025-06-01", "2025-06-07", weekdays, start_time, end_time, [1],
            calendar=calendar, config=config,
        )


def test_no_matching_weekday_in_range(calendar, config):
    # Mon 2025-06-02 .. Tue 2025-06-03, Saturdays only
    with pytest.raises(NoSlotsProduced):
        generate_slots(
            "2025-06-02", "2025-06-03", {6}, "09:00", "10:00", [1],
            calendar=calendar, config=config,
        )


@pytest.mark.parametrize(
    "kwargs",
    [
        {"start_date": "2025-06-07", "end_date": "2025-06-01"},
        {"start_date": "2025-6-1"},
        {"start_time": "9am"},
        {"location_ids": []},
        {"capacity": 0},
        {"weekdays": {7}},
        {"weekdays": {True}},
    ],
)
def test_invalid_inputs_raise_validation_error(calendar, config, kwargs):
    params = dict(
        start_date="2025-06-01",
        end_date="2025-06-07",
        weekdays=ALL_WEEK,
        start_time="09:00",
        end_time="10:00",
        location_ids=[1],
    )
    params.update(kwargs)
    with pytest.raises(ValidationError):
        generate_slots(**params, calendar=calendar, config=config)


def test_materialize_stores_rows_with_batch(db, make_locations, calendar, config):
    locations = make_locations(2)
    drafts = generate_slots(
        "2025-06-02", "2025-06-03", ALL_WEEK, "09:00", "10:00",
        [loc.id for loc in locations],
        calendar=calendar, config=config,
    )
    batch_id = new_batch_id()

    rows = materialize_slots(db, drafts, batch_id=batch_id)

    assert len(rows) == 8
    assert db.query(Availabilities).filter(Availabilities.batch_id == batch_id).count() == 8
    assert all(row.is_full == 0 for row in rows)
    assert rows[0].start_time == "2025-06-01T23:00:00.000Z"


def test_create_single_slot_shares_start_across_locations(db, make_locations, calendar, config):
    locations = make_locations(3)
    rows = create_single_slot(
        db, "2025-06-02", "23:30", [loc.id for loc in locations],
        service_name="Stroke Clinic", calendar=calendar, config=config,
    )
    assert len(rows) == 3
    assert {row.start_time for row in rows} == {"2025-06-02T13:30:00.000Z"}
    assert {row.end_time for row in rows} == {"2025-06-02T14:00:00.000Z"}
    assert len({row.batch_id for row in rows}) == 1
