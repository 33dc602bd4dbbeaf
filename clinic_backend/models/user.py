"""User model definitions."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, String, func
from clinic_backend.database import Base

ROLE_ADMIN = 'admin'
ROLE_DOCTOR = 'doctor'
ROLE_PATIENT = 'patient'

STATUS_ACTIVE = 'active'
STATUS_BLOCKED = 'blocked'
STATUS_DELETED = 'deleted'


def new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """Login credential and role for an admin, doctor or patient."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default=ROLE_PATIENT)
    status = Column(String, nullable=False, default=STATUS_ACTIVE)
    needs_password_change = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
