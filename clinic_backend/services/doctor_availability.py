"""Assignment, listing and removal of the slots a doctor offers."""

import logging
import operator
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy.orm import Session

from clinic_backend.core.errors import (
    ConflictError,
    InvalidQueryError,
    InvalidReferenceError,
    NotFoundError,
)
from clinic_backend.database import insert_ignoring_duplicates, transaction
from clinic_backend.models.doctor import Doctor
from clinic_backend.models.schedule import DoctorSchedule, Schedule
from clinic_backend.models.user import User
from clinic_backend.services.pagination import PageOptions, order_clause

logger = logging.getLogger(__name__)

# Permitted filter keys -> (column, comparison). Nothing else reaches the query.
AVAILABILITY_FILTERS = {
    'doctor_id': (DoctorSchedule.doctor_id, operator.eq),
    'is_booked': (DoctorSchedule.is_booked, operator.eq),
    'date_from': (Schedule.start_date_time, operator.ge),
    'date_to': (Schedule.end_date_time, operator.le),
}

SORTABLE_AVAILABILITY_COLUMNS = {
    'start_date_time': Schedule.start_date_time,
    'end_date_time': Schedule.end_date_time,
    'created_at': DoctorSchedule.created_at,
    'is_booked': DoctorSchedule.is_booked,
}


def get_active_doctor(db: Session, doctor_id: str) -> Doctor:
    doctor = db.query(Doctor).filter(Doctor.id == doctor_id, Doctor.is_deleted.is_(False)).first()
    if doctor is None:
        raise NotFoundError('doctor', doctor_id)
    return doctor


def resolve_doctor_for_user(db: Session, user: User) -> Doctor:
    doctor = db.query(Doctor).filter(Doctor.user_id == user.id, Doctor.is_deleted.is_(False)).first()
    if doctor is None:
        raise NotFoundError('doctor', user.email)
    return doctor


def assign_schedules(db: Session, doctor_id: str, schedule_ids: Iterable[str]) -> int:
    """Offer the given slots for the doctor. Slots already offered are skipped."""
    schedule_ids = set(schedule_ids)

    with transaction(db):
        get_active_doctor(db, doctor_id)
        if not schedule_ids:
            return 0

        found = {
            schedule_id
            for (schedule_id,) in db.query(Schedule.id).filter(Schedule.id.in_(schedule_ids)).all()
        }
        if len(found) < len(schedule_ids):
            raise InvalidReferenceError('schedule', schedule_ids - found)

        already_offered = {
            schedule_id
            for (schedule_id,) in db.query(DoctorSchedule.schedule_id).filter(
                DoctorSchedule.doctor_id == doctor_id,
                DoctorSchedule.schedule_id.in_(schedule_ids),
            ).all()
        }
        inserted = insert_ignoring_duplicates(
            db,
            (
                DoctorSchedule(doctor_id=doctor_id, schedule_id=schedule_id, is_booked=False)
                for schedule_id in sorted(schedule_ids - already_offered)
            ),
        )

    logger.info(
        'Assigned %s slots to doctor %s (%s already offered).',
        len(inserted),
        doctor_id,
        len(schedule_ids) - len(inserted),
    )
    return len(inserted)


def list_availability(
    db: Session,
    filters: dict,
    options: PageOptions,
) -> tuple[int, list[DoctorSchedule]]:
    """Page through doctor-schedule links matching ``filters``.

    ``filters`` keys must come from ``AVAILABILITY_FILTERS``; ``None`` values
    are ignored.
    """
    unknown = set(filters) - set(AVAILABILITY_FILTERS)
    if unknown:
        raise InvalidQueryError(
            f'Unknown filter(s): {", ".join(sorted(unknown))}.',
            allowed=sorted(AVAILABILITY_FILTERS),
        )

    query = db.query(DoctorSchedule).join(DoctorSchedule.schedule)
    for key, value in filters.items():
        if value is None:
            continue
        column, compare = AVAILABILITY_FILTERS[key]
        query = query.filter(compare(column, value))

    total = query.count()
    rows = (
        query.order_by(order_clause(options, SORTABLE_AVAILABILITY_COLUMNS, default='start_date_time'))
        .offset(options.skip)
        .limit(options.limit)
        .all()
    )
    return total, rows


def unassign_schedule(db: Session, doctor_id: str, schedule_id: str) -> DoctorSchedule:
    """Withdraw an unbooked slot. A booked slot is never detached."""
    with transaction(db):
        link = db.query(DoctorSchedule).filter(
            DoctorSchedule.doctor_id == doctor_id,
            DoctorSchedule.schedule_id == schedule_id,
        ).first()

        if link is None:
            raise NotFoundError('doctor schedule', schedule_id)

        if link.is_booked:
            raise ConflictError(
                'Slot already booked, cannot remove.',
                doctor_id=doctor_id,
                schedule_id=schedule_id,
                appointment_id=link.appointment_id,
            )

        db.delete(link)

    logger.info('Doctor %s withdrew slot %s.', doctor_id, schedule_id)
    return link


def slot_window(date_from: datetime | None, date_to: datetime | None) -> dict:
    if date_from and date_to and date_from > date_to:
        raise InvalidQueryError('date_from must not be after date_to.')
    return {'date_from': date_from, 'date_to': date_to}
