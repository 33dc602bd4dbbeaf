from datetime import date, datetime, time

import pytest

from clinic_backend.core.errors import InvalidQueryError
from clinic_backend.models.schedule import Schedule
from clinic_backend.services.pagination import calculate_pagination
from clinic_backend.services.slot_generator import generate_slots
from clinic_backend.services.slot_registry import generate_schedules, list_schedules, register_slots


def test_registering_the_same_range_twice_creates_rows_once(db) -> None:
    candidates = generate_slots(date(2024, 1, 1), date(2024, 1, 1), time(9, 0), time(10, 0))

    first = register_slots(db, candidates)
    db.commit()
    second = register_slots(db, candidates)
    db.commit()

    assert first.created == 2
    assert second.created == 0
    assert [slot.id for slot in first.slots] == [slot.id for slot in second.slots]
    assert db.query(Schedule).count() == 2


def test_overlapping_ranges_share_slots(db) -> None:
    generate_schedules(db, date(2024, 1, 1), date(2024, 1, 1), time(9, 0), time(10, 0))
    registration = generate_schedules(db, date(2024, 1, 1), date(2024, 1, 1), time(9, 30), time(10, 30))

    assert registration.count == 2
    assert registration.created == 1
    assert db.query(Schedule).count() == 3
    assert db.query(Schedule).filter(
        Schedule.start_date_time == datetime(2024, 1, 1, 9, 30),
        Schedule.end_date_time == datetime(2024, 1, 1, 10, 0),
    ).count() == 1


def test_registration_returns_slots_in_candidate_order(db, make_schedule) -> None:
    existing = make_schedule(datetime(2024, 1, 1, 9, 30))

    registration = register_slots(
        db,
        generate_slots(date(2024, 1, 1), date(2024, 1, 1), time(9, 0), time(10, 30)),
    )
    db.commit()

    assert [slot.start_date_time for slot in registration.slots] == [
        datetime(2024, 1, 1, 9, 0),
        datetime(2024, 1, 1, 9, 30),
        datetime(2024, 1, 1, 10, 0),
    ]
    assert registration.slots[1].id == existing.id
    assert registration.created == 2


def test_generation_range_is_capped(db) -> None:
    with pytest.raises(InvalidQueryError):
        generate_schedules(db, date(2024, 1, 1), date(2024, 12, 31), time(9, 0), time(10, 0))

    assert db.query(Schedule).count() == 0


def test_list_schedules_hides_slots_the_doctor_already_offers(db, make_doctor, make_schedule, offer_slot) -> None:
    doctor = make_doctor()
    offered = make_schedule(datetime(2024, 1, 1, 9, 0))
    free = make_schedule(datetime(2024, 1, 1, 9, 30))
    offer_slot(doctor, offered)

    total, rows = list_schedules(
        db,
        calculate_pagination(1, 10, None, 'asc'),
        exclude_doctor_id=doctor.id,
    )

    assert total == 1
    assert [row.id for row in rows] == [free.id]


def test_list_schedules_filters_by_window(db, make_schedule) -> None:
    make_schedule(datetime(2024, 1, 1, 9, 0))
    inside = make_schedule(datetime(2024, 1, 2, 9, 0))
    make_schedule(datetime(2024, 1, 3, 9, 0))

    total, rows = list_schedules(
        db,
        calculate_pagination(1, 10, 'start_date_time', 'asc'),
        date_from=datetime(2024, 1, 2, 0, 0),
        date_to=datetime(2024, 1, 2, 23, 59),
    )

    assert total == 1
    assert rows[0].id == inside.id
