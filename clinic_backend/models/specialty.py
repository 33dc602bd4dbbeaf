"""Specialty and doctor-specialty link model definitions."""

from sqlalchemy import Column, ForeignKey, String
from sqlalchemy.orm import relationship

from clinic_backend.database import Base
from clinic_backend.models.user import new_id


class Specialty(Base):
    """A medical specialty a doctor can practise."""
    __tablename__ = "specialties"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String, nullable=False)
    icon = Column(String, nullable=False)


class DoctorSpecialty(Base):
    """Join row: the doctor practises the specialty. No identity of its own."""
    __tablename__ = "doctor_specialties"

    specialty_id = Column(String(36), ForeignKey("specialties.id"), primary_key=True)
    doctor_id = Column(String(36), ForeignKey("doctors.id", ondelete="CASCADE"), primary_key=True)

    specialty = relationship("Specialty", lazy="joined")
    doctor = relationship("Doctor", back_populates="specialty_links")
