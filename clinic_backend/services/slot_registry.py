"""Persistence of generated slots, de-duplicated by their exact bounds."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, time

from sqlalchemy import select
from sqlalchemy.orm import Session

from clinic_backend.core import config
from clinic_backend.core.errors import InvalidQueryError
from clinic_backend.database import insert_ignoring_duplicates, transaction
from clinic_backend.models.schedule import DoctorSchedule, Schedule
from clinic_backend.services.pagination import PageOptions, order_clause
from clinic_backend.services.slot_generator import Slot, generate_slots

logger = logging.getLogger(__name__)

SORTABLE_SCHEDULE_COLUMNS = {
    'start_date_time': Schedule.start_date_time,
    'end_date_time': Schedule.end_date_time,
    'created_at': Schedule.created_at,
}


@dataclass
class SlotRegistration:
    slots: list[Schedule] = field(default_factory=list)
    created: int = 0

    @property
    def count(self) -> int:
        return len(self.slots)


def _find_by_bounds(db: Session, start: datetime, end: datetime) -> Schedule | None:
    return db.query(Schedule).filter(
        Schedule.start_date_time == start,
        Schedule.end_date_time == end,
    ).first()


def register_slots(db: Session, candidates: Iterable[Slot]) -> SlotRegistration:
    """Make sure a Schedule row exists for every candidate interval.

    Runs inside the caller's transaction. Returns the slots backing the
    candidates, pre-existing and new alike, in candidate order.
    """
    bounds = list(dict.fromkeys(candidates))
    if not bounds:
        return SlotRegistration()

    window_start = min(start for start, _ in bounds)
    window_end = max(end for _, end in bounds)

    by_bounds = {
        (slot.start_date_time, slot.end_date_time): slot
        for slot in db.query(Schedule).filter(
            Schedule.start_date_time >= window_start,
            Schedule.end_date_time <= window_end,
        )
    }

    missing_bounds = [pair for pair in bounds if pair not in by_bounds]
    missing_rows = [Schedule(start_date_time=start, end_date_time=end) for start, end in missing_bounds]
    inserted = insert_ignoring_duplicates(db, missing_rows)
    written = {id(row) for row in inserted}

    for pair, row in zip(missing_bounds, missing_rows):
        if id(row) in written:
            by_bounds[pair] = row
            continue
        # Another request registered the same interval first.
        existing = _find_by_bounds(db, *pair)
        if existing is None:
            raise RuntimeError(f'Schedule {pair[0]} - {pair[1]} vanished after a duplicate insert.')
        by_bounds[pair] = existing

    logger.info('Registered %s slots (%s new) between %s and %s.', len(bounds), len(inserted), window_start, window_end)

    return SlotRegistration(slots=[by_bounds[pair] for pair in bounds], created=len(inserted))


def generate_schedules(
    db: Session,
    start_date: date | str,
    end_date: date | str,
    daily_start: time | str,
    daily_end: time | str,
) -> SlotRegistration:
    try:
        slot_range = generate_slots(start_date, end_date, daily_start, daily_end)
    except ValueError as exc:
        raise InvalidQueryError(f'Invalid slot window: {exc}') from exc

    if slot_range.days > config.MAX_SLOT_RANGE_DAYS:
        raise InvalidQueryError(
            f'Slots can be generated for at most {config.MAX_SLOT_RANGE_DAYS} days at a time.',
            days=slot_range.days,
        )

    with transaction(db):
        return register_slots(db, slot_range)


def list_schedules(
    db: Session,
    options: PageOptions,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    exclude_doctor_id: str | None = None,
) -> tuple[int, list[Schedule]]:
    query = db.query(Schedule)

    if date_from is not None:
        query = query.filter(Schedule.start_date_time >= date_from)
    if date_to is not None:
        query = query.filter(Schedule.end_date_time <= date_to)
    if exclude_doctor_id is not None:
        offered = select(DoctorSchedule.schedule_id).where(DoctorSchedule.doctor_id == exclude_doctor_id)
        query = query.filter(Schedule.id.not_in(offered))

    total = query.count()
    rows = (
        query.order_by(order_clause(options, SORTABLE_SCHEDULE_COLUMNS, default='start_date_time'))
        .offset(options.skip)
        .limit(options.limit)
        .all()
    )
    return total, rows
