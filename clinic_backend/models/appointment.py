"""Appointment model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, String, func
from clinic_backend.database import Base
from clinic_backend.models.user import new_id


class Appointment(Base):
    """Represents a booked appointment holding a doctor's slot."""
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=new_id)
    patient_id = Column(String(36), ForeignKey("users.id"))
    doctor_id = Column(String(36), ForeignKey("doctors.id"), nullable=False)
    schedule_id = Column(String(36), ForeignKey("schedules.id"), nullable=False)
    status = Column(String, nullable=False, default='scheduled')
    created_at = Column(DateTime, server_default=func.now())
