"""Doctor profile model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from clinic_backend.database import Base
from clinic_backend.models import schedule, specialty  # noqa: F401
from clinic_backend.models.user import new_id

# Columns a profile patch may touch. Email and ownership stay with the credential.
PROFILE_FIELDS = (
    'name',
    'profile_photo',
    'contact_number',
    'address',
    'registration_number',
    'experience',
    'gender',
    'appointment_fee',
    'qualification',
    'current_working_place',
    'designation',
)


class Doctor(Base):
    """Public profile of a doctor, one per doctor credential."""
    __tablename__ = "doctors"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    profile_photo = Column(String)
    contact_number = Column(String, nullable=False)
    address = Column(String)
    registration_number = Column(String, nullable=False)
    experience = Column(Integer, nullable=False, default=0)
    gender = Column(String, nullable=False)
    appointment_fee = Column(Integer, nullable=False)
    qualification = Column(String, nullable=False)
    current_working_place = Column(String, nullable=False)
    designation = Column(String, nullable=False)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User")
    specialty_links = relationship(
        "DoctorSpecialty",
        back_populates="doctor",
        passive_deletes=True,
    )
    schedule_links = relationship(
        "DoctorSchedule",
        back_populates="doctor",
        passive_deletes=True,
    )
