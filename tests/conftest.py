import itertools
import os
from datetime import datetime, timedelta

os.environ['DATABASE_URL'] = 'sqlite://'
os.environ.setdefault('BCRYPT_ROUNDS', '4')

import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from clinic_backend.database import Base, build_engine  # noqa: E402
from clinic_backend.models.appointment import Appointment  # noqa: E402
from clinic_backend.models.doctor import Doctor  # noqa: E402
from clinic_backend.models.schedule import DoctorSchedule, Schedule  # noqa: E402
from clinic_backend.models.specialty import Specialty  # noqa: E402
from clinic_backend.models.user import ROLE_ADMIN, ROLE_DOCTOR, User  # noqa: E402


@pytest.fixture
def db():
    engine = build_engine('sqlite://')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def make_admin(db):
    def _make_admin(email: str = 'admin@clinic.test') -> User:
        admin = User(email=email, hashed_password='unused', role=ROLE_ADMIN)
        db.add(admin)
        db.commit()
        return admin

    return _make_admin


@pytest.fixture
def make_doctor(db):
    counter = itertools.count(1)

    def _make_doctor(email: str | None = None, **overrides) -> Doctor:
        number = next(counter)
        email = email or f'doctor{number}@clinic.test'

        user = User(email=email, hashed_password='unused', role=ROLE_DOCTOR)
        db.add(user)
        db.flush()

        fields = {
            'name': f'Dr. Number {number}',
            'contact_number': '+1 555 0100',
            'registration_number': f'REG-{number:04d}',
            'gender': 'female',
            'appointment_fee': 100,
            'qualification': 'MBBS',
            'current_working_place': 'City Clinic',
            'designation': 'Consultant',
        }
        fields.update(overrides)

        doctor = Doctor(user_id=user.id, email=email, **fields)
        db.add(doctor)
        db.commit()
        return doctor

    return _make_doctor


@pytest.fixture
def make_specialty(db):
    def _make_specialty(title: str) -> Specialty:
        specialty = Specialty(title=title, icon=f'{title.lower()}.svg')
        db.add(specialty)
        db.commit()
        return specialty

    return _make_specialty


@pytest.fixture
def make_schedule(db):
    def _make_schedule(start: datetime, minutes: int = 30) -> Schedule:
        schedule = Schedule(start_date_time=start, end_date_time=start + timedelta(minutes=minutes))
        db.add(schedule)
        db.commit()
        return schedule

    return _make_schedule


@pytest.fixture
def offer_slot(db):
    def _offer_slot(doctor: Doctor, schedule: Schedule, booked: bool = False) -> DoctorSchedule:
        appointment_id = None
        if booked:
            appointment = Appointment(doctor_id=doctor.id, schedule_id=schedule.id, status='scheduled')
            db.add(appointment)
            db.flush()
            appointment_id = appointment.id

        link = DoctorSchedule(
            doctor_id=doctor.id,
            schedule_id=schedule.id,
            is_booked=booked,
            appointment_id=appointment_id,
        )
        db.add(link)
        db.commit()
        return link

    return _offer_slot
