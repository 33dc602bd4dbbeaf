"""Doctor creation and profile updates, each run as one transaction."""

import logging
import operator
from collections.abc import Iterable

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from clinic_backend.auth.passwords import hash_password
from clinic_backend.core.errors import ConflictError, InvalidQueryError, NotFoundError
from clinic_backend.database import transaction
from clinic_backend.models.doctor import PROFILE_FIELDS, Doctor
from clinic_backend.models.specialty import DoctorSpecialty, Specialty
from clinic_backend.models.user import ROLE_DOCTOR, STATUS_DELETED, User
from clinic_backend.services.doctor_availability import get_active_doctor
from clinic_backend.services.pagination import PageOptions, order_clause
from clinic_backend.services.specialty_reconciler import add_specialties, reconcile_specialties

logger = logging.getLogger(__name__)

DOCTOR_FILTERS = {
    'email': (Doctor.email, operator.eq),
    'gender': (Doctor.gender, operator.eq),
    'contact_number': (Doctor.contact_number, operator.eq),
    'designation': (Doctor.designation, operator.eq),
}

SORTABLE_DOCTOR_COLUMNS = {
    'name': Doctor.name,
    'experience': Doctor.experience,
    'appointment_fee': Doctor.appointment_fee,
    'created_at': Doctor.created_at,
}


def _with_specialties(query):
    return query.options(selectinload(Doctor.specialty_links).joinedload(DoctorSpecialty.specialty))


def _check_profile_fields(fields: dict) -> None:
    unknown = set(fields) - set(PROFILE_FIELDS)
    if unknown:
        raise InvalidQueryError(f'Unknown profile field(s): {", ".join(sorted(unknown))}.')


def _email_taken(db: Session, email: str) -> bool:
    return (
        db.query(User.id).filter(User.email == email).first() is not None
        or db.query(Doctor.id).filter(Doctor.email == email).first() is not None
    )


def get_doctor(db: Session, doctor_id: str, include_deleted: bool = False) -> Doctor:
    query = _with_specialties(db.query(Doctor)).filter(Doctor.id == doctor_id)
    if not include_deleted:
        query = query.filter(Doctor.is_deleted.is_(False))

    doctor = query.first()
    if doctor is None:
        raise NotFoundError('doctor', doctor_id)
    return doctor


def create_doctor(
    db: Session,
    password: str,
    profile: dict,
    specialty_ids: Iterable[str] = (),
) -> Doctor:
    """Create the credential, the profile and the initial specialty set together.

    An unknown specialty id aborts everything: no user, profile or link rows
    survive.
    """
    profile = dict(profile)
    email = profile.pop('email').strip().lower()
    _check_profile_fields(profile)
    hashed_password = hash_password(password)

    try:
        with transaction(db):
            if db.query(User.id).filter(User.email == email).first() is not None:
                raise ConflictError('A user with this email already exists.', email=email)

            user = User(
                email=email,
                hashed_password=hashed_password,
                role=ROLE_DOCTOR,
                needs_password_change=True,
            )
            db.add(user)
            db.flush()

            doctor = Doctor(user_id=user.id, email=email, **profile)
            db.add(doctor)
            db.flush()

            add_specialties(db, doctor.id, specialty_ids)
            doctor_id = doctor.id
    except IntegrityError as exc:
        # Only a racing insert of the same email is a conflict.
        if not _email_taken(db, email):
            raise
        raise ConflictError('A user with this email already exists.', email=email) from exc

    logger.info('Created doctor %s for %s.', doctor_id, email)
    return get_doctor(db, doctor_id)


def update_doctor(
    db: Session,
    doctor_id: str,
    profile_patch: dict | None = None,
    add_specialty_ids: Iterable[str] = (),
    remove_specialty_ids: Iterable[str] = (),
) -> Doctor:
    """Patch profile fields and reconcile specialties; a failure in either undoes both."""
    profile_patch = dict(profile_patch or {})
    _check_profile_fields(profile_patch)

    with transaction(db):
        doctor = get_active_doctor(db, doctor_id)

        if profile_patch:
            for key, value in profile_patch.items():
                setattr(doctor, key, value)
            db.flush()

        reconcile_specialties(db, doctor.id, add_specialty_ids, remove_specialty_ids)

    logger.info('Updated doctor %s (fields: %s).', doctor_id, sorted(profile_patch) or 'none')
    return get_doctor(db, doctor_id)


def soft_delete_doctor(db: Session, doctor_id: str) -> Doctor:
    with transaction(db):
        doctor = get_active_doctor(db, doctor_id)
        doctor.is_deleted = True
        db.query(User).filter(User.id == doctor.user_id).update(
            {User.status: STATUS_DELETED},
            synchronize_session=False,
        )

    logger.info('Soft deleted doctor %s.', doctor_id)
    return get_doctor(db, doctor_id, include_deleted=True)


def list_doctors(
    db: Session,
    options: PageOptions,
    search_term: str | None = None,
    specialty: str | None = None,
    filters: dict | None = None,
) -> tuple[int, list[Doctor]]:
    filters = filters or {}
    unknown = set(filters) - set(DOCTOR_FILTERS)
    if unknown:
        raise InvalidQueryError(
            f'Unknown filter(s): {", ".join(sorted(unknown))}.',
            allowed=sorted(DOCTOR_FILTERS),
        )

    query = db.query(Doctor).filter(Doctor.is_deleted.is_(False))

    if search_term:
        pattern = f'%{search_term.strip()}%'
        query = query.filter(
            or_(
                Doctor.name.ilike(pattern),
                Doctor.email.ilike(pattern),
                Doctor.designation.ilike(pattern),
            )
        )

    if specialty:
        query = query.filter(
            Doctor.specialty_links.any(
                DoctorSpecialty.specialty.has(Specialty.title.ilike(f'%{specialty.strip()}%'))
            )
        )

    for key, value in filters.items():
        if value is None:
            continue
        column, compare = DOCTOR_FILTERS[key]
        query = query.filter(compare(column, value))

    total = query.count()
    rows = (
        _with_specialties(query)
        .order_by(order_clause(options, SORTABLE_DOCTOR_COLUMNS, default='created_at'))
        .offset(options.skip)
        .limit(options.limit)
        .all()
    )
    return total, rows
