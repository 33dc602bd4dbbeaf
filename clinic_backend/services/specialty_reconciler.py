"""Add/remove reconciliation of a doctor's specialty links.

Every function here runs inside a transaction owned by the caller: rows are
flushed so later reads see them, but nothing is committed. Any error leaves
the caller to roll the whole transaction back.
"""

import logging
from collections.abc import Iterable

from sqlalchemy.orm import Session

from clinic_backend.core.errors import InvalidReferenceError
from clinic_backend.database import insert_ignoring_duplicates
from clinic_backend.models.specialty import DoctorSpecialty, Specialty

logger = logging.getLogger(__name__)


def doctor_specialty_ids(db: Session, doctor_id: str) -> set[str]:
    rows = db.query(DoctorSpecialty.specialty_id).filter(DoctorSpecialty.doctor_id == doctor_id).all()
    return {specialty_id for (specialty_id,) in rows}


def _held_links(db: Session, doctor_id: str, specialty_ids: set[str]) -> list[DoctorSpecialty]:
    return db.query(DoctorSpecialty).filter(
        DoctorSpecialty.doctor_id == doctor_id,
        DoctorSpecialty.specialty_id.in_(specialty_ids),
    ).all()


def _check_removable(db: Session, doctor_id: str, remove_ids: set[str]) -> list[DoctorSpecialty]:
    links = _held_links(db, doctor_id, remove_ids)
    if len(links) < len(remove_ids):
        raise InvalidReferenceError('specialty', remove_ids - {link.specialty_id for link in links})
    return links


def _check_addable(db: Session, add_ids: set[str]) -> None:
    found = {specialty_id for (specialty_id,) in db.query(Specialty.id).filter(Specialty.id.in_(add_ids)).all()}
    if len(found) < len(add_ids):
        raise InvalidReferenceError('specialty', add_ids - found)


def _insert_links(db: Session, doctor_id: str, add_ids: set[str]) -> int:
    already_held = {link.specialty_id for link in _held_links(db, doctor_id, add_ids)}
    new_ids = add_ids - already_held
    if already_held:
        logger.debug('Doctor %s already holds specialties %s.', doctor_id, sorted(already_held))

    inserted = insert_ignoring_duplicates(
        db,
        (DoctorSpecialty(doctor_id=doctor_id, specialty_id=specialty_id) for specialty_id in sorted(new_ids)),
    )
    return len(inserted)


def remove_specialties(db: Session, doctor_id: str, remove_ids: Iterable[str]) -> int:
    """Delete the given links. Removing a link the doctor does not hold is an error."""
    remove_ids = set(remove_ids)
    if not remove_ids:
        return 0

    links = _check_removable(db, doctor_id, remove_ids)
    for link in links:
        db.delete(link)
    db.flush()

    logger.info('Removed %s specialties from doctor %s.', len(links), doctor_id)
    return len(links)


def add_specialties(db: Session, doctor_id: str, add_ids: Iterable[str]) -> int:
    """Link the given specialties. Specialties the doctor already holds are skipped."""
    add_ids = set(add_ids)
    if not add_ids:
        return 0

    _check_addable(db, add_ids)
    created = _insert_links(db, doctor_id, add_ids)

    logger.info('Added %s specialties to doctor %s.', created, doctor_id)
    return created


def reconcile_specialties(
    db: Session,
    doctor_id: str,
    add_ids: Iterable[str] = (),
    remove_ids: Iterable[str] = (),
) -> None:
    """Apply removals then additions so the doctor ends at ``(current - remove) | add``.

    Both id sets are validated before the first write. An id present in both
    sets is removed and then re-added, so the doctor ends up holding it.
    """
    add_ids = set(add_ids)
    remove_ids = set(remove_ids)

    removable = _check_removable(db, doctor_id, remove_ids) if remove_ids else []
    if add_ids:
        _check_addable(db, add_ids)

    for link in removable:
        db.delete(link)
    if removable:
        db.flush()
        logger.info('Removed %s specialties from doctor %s.', len(removable), doctor_id)

    if add_ids:
        created = _insert_links(db, doctor_id, add_ids)
        logger.info('Added %s specialties to doctor %s.', created, doctor_id)
