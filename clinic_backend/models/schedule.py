"""Schedule slot and doctor-schedule link model definitions."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from clinic_backend.database import Base
from clinic_backend.models import appointment  # noqa: F401
from clinic_backend.models.user import new_id


class Schedule(Base):
    """A bookable interval shared by every doctor. Bounds identify the slot."""
    __tablename__ = "schedules"

    id = Column(String(36), primary_key=True, default=new_id)
    start_date_time = Column(DateTime, nullable=False)
    end_date_time = Column(DateTime, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    doctor_links = relationship("DoctorSchedule", back_populates="schedule")

    __table_args__ = (
        UniqueConstraint("start_date_time", "end_date_time", name="uq_schedules_bounds"),
        CheckConstraint("start_date_time < end_date_time", name="ck_schedules_ordered"),
    )


class DoctorSchedule(Base):
    """Join row: the doctor offers the slot, and once booked, the appointment holding it."""
    __tablename__ = "doctor_schedules"

    doctor_id = Column(String(36), ForeignKey("doctors.id", ondelete="CASCADE"), primary_key=True)
    schedule_id = Column(String(36), ForeignKey("schedules.id", ondelete="CASCADE"), primary_key=True)
    is_booked = Column(Boolean, nullable=False, default=False)
    appointment_id = Column(String(36), ForeignKey("appointments.id"), unique=True)
    created_at = Column(DateTime, server_default=func.now())

    doctor = relationship("Doctor", back_populates="schedule_links")
    schedule = relationship("Schedule", back_populates="doctor_links", lazy="joined")

    __table_args__ = (
        CheckConstraint(
            "(is_booked AND appointment_id IS NOT NULL) OR (NOT is_booked AND appointment_id IS NULL)",
            name="ck_doctor_schedules_booking",
        ),
        Index("idx_doctor_schedules_doctor_booked", "doctor_id", "is_booked"),
        Index("idx_doctor_schedules_schedule", "schedule_id"),
    )
