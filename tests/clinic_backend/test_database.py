from datetime import datetime

import pytest
from sqlalchemy.exc import IntegrityError

from clinic_backend.database import insert_ignoring_duplicates, transaction
from clinic_backend.models.schedule import DoctorSchedule, Schedule
from clinic_backend.models.specialty import Specialty


def test_duplicate_insert_is_absorbed_and_session_stays_usable(db, make_schedule) -> None:
    existing = make_schedule(datetime(2024, 1, 1, 9, 0))

    inserted = insert_ignoring_duplicates(
        db,
        [
            Schedule(start_date_time=existing.start_date_time, end_date_time=existing.end_date_time),
            Schedule(start_date_time=datetime(2024, 1, 1, 9, 30), end_date_time=datetime(2024, 1, 1, 10, 0)),
        ],
    )
    db.commit()

    assert len(inserted) == 1
    assert inserted[0].start_date_time == datetime(2024, 1, 1, 9, 30)
    assert db.query(Schedule).count() == 2


def test_racing_link_insert_is_treated_as_already_present(db, make_doctor, make_schedule, offer_slot) -> None:
    doctor = make_doctor()
    schedule = make_schedule(datetime(2024, 1, 1, 9, 0))
    offer_slot(doctor, schedule)

    inserted = insert_ignoring_duplicates(db, [DoctorSchedule(doctor_id=doctor.id, schedule_id=schedule.id)])
    db.commit()

    assert inserted == []
    assert db.query(DoctorSchedule).count() == 1


def test_transaction_rolls_back_every_write_on_error(db) -> None:
    with pytest.raises(RuntimeError):
        with transaction(db):
            db.add(Specialty(title='Cardiology', icon='heart.svg'))
            db.flush()
            raise RuntimeError('boom')

    assert db.query(Specialty).count() == 0


def test_link_to_a_missing_slot_is_not_absorbed(db, make_doctor) -> None:
    doctor = make_doctor()

    with pytest.raises(IntegrityError):
        insert_ignoring_duplicates(db, [DoctorSchedule(doctor_id=doctor.id, schedule_id='deleted-slot')])

    db.rollback()
    assert db.query(DoctorSchedule).count() == 0


def test_check_constraint_failure_is_not_absorbed(db) -> None:
    with pytest.raises(IntegrityError):
        insert_ignoring_duplicates(
            db,
            [Schedule(start_date_time=datetime(2024, 1, 1, 10, 0), end_date_time=datetime(2024, 1, 1, 9, 0))],
        )

    db.rollback()
    assert db.query(Schedule).count() == 0
