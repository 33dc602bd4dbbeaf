from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from clinic_backend.auth.dependencies import require_roles
from clinic_backend.core import config
from clinic_backend.database import get_db
from clinic_backend.models.user import ROLE_ADMIN, ROLE_DOCTOR, User
from clinic_backend.routes.common import PageMeta, ensure_database_ready, service_errors
from clinic_backend.routes.schedule_routes import ScheduleResponse
from clinic_backend.services import doctor_availability
from clinic_backend.services.pagination import calculate_pagination, page_payload

router = APIRouter(tags=['doctor-schedules'])


class AssignSchedulesRequest(BaseModel):
    schedule_ids: list[str]
    doctor_id: str | None = None

    @field_validator('schedule_ids')
    @classmethod
    def validate_schedule_ids(cls, value: list[str]) -> list[str]:
        normalized = [schedule_id.strip() for schedule_id in value]
        if not normalized or any(not schedule_id for schedule_id in normalized):
            raise ValueError('At least one schedule id is required and ids cannot be blank.')
        return normalized


class AssignSchedulesResponse(BaseModel):
    count: int


class DoctorScheduleResponse(BaseModel):
    doctor_id: str
    schedule_id: str
    is_booked: bool
    appointment_id: str | None = None
    created_at: datetime | None = None
    schedule: ScheduleResponse

    class Config:
        from_attributes = True


class DoctorSchedulePageResponse(BaseModel):
    meta: PageMeta
    data: list[DoctorScheduleResponse]


def resolve_target_doctor_id(db: Session, user: User, doctor_id: str | None) -> str:
    """Doctors act on their own slots; admins must name the doctor."""
    if user.role == ROLE_DOCTOR:
        own_id = doctor_availability.resolve_doctor_for_user(db, user).id
        if doctor_id and doctor_id != own_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Doctors can only manage their own availability.',
            )
        return own_id

    if not doctor_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='doctor_id is required.',
        )
    return doctor_id


def _list_page(db, filters, page, limit, sort_by, sort_order):
    options = calculate_pagination(page, limit, sort_by, sort_order)
    total, rows = doctor_availability.list_availability(db, filters, options)
    return page_payload(total, options, [DoctorScheduleResponse.model_validate(row) for row in rows])


@router.post('', response_model=AssignSchedulesResponse, status_code=status.HTTP_201_CREATED)
def assign_schedules(
    data: AssignSchedulesRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(ROLE_ADMIN, ROLE_DOCTOR)),
):
    ensure_database_ready()

    with service_errors(db):
        doctor_id = resolve_target_doctor_id(db, user, data.doctor_id)
        created = doctor_availability.assign_schedules(db, doctor_id, data.schedule_ids)

    return AssignSchedulesResponse(count=created)


@router.get('/my', response_model=DoctorSchedulePageResponse)
def list_my_schedules(
    is_booked: bool | None = Query(default=None),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_LIMIT, ge=1),
    sort_by: str | None = Query(default=None),
    sort_order: str = Query(default='asc'),
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(ROLE_DOCTOR)),
):
    ensure_database_ready()

    with service_errors(db):
        doctor = doctor_availability.resolve_doctor_for_user(db, user)
        filters = {
            'doctor_id': doctor.id,
            'is_booked': is_booked,
            **doctor_availability.slot_window(date_from, date_to),
        }
        return _list_page(db, filters, page, limit, sort_by, sort_order)


@router.get('', response_model=DoctorSchedulePageResponse)
def list_doctor_schedules(
    doctor_id: str | None = Query(default=None),
    is_booked: bool | None = Query(default=None),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_LIMIT, ge=1),
    sort_by: str | None = Query(default=None),
    sort_order: str = Query(default='asc'),
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(ROLE_ADMIN)),
):
    ensure_database_ready()

    with service_errors(db):
        filters = {
            'doctor_id': doctor_id,
            'is_booked': is_booked,
            **doctor_availability.slot_window(date_from, date_to),
        }
        return _list_page(db, filters, page, limit, sort_by, sort_order)


@router.delete('/{schedule_id}', response_model=DoctorScheduleResponse)
def unassign_schedule(
    schedule_id: str,
    doctor_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(ROLE_ADMIN, ROLE_DOCTOR)),
):
    ensure_database_ready()

    with service_errors(db):
        target_doctor_id = resolve_target_doctor_id(db, user, doctor_id)
        link = doctor_availability.unassign_schedule(db, target_doctor_id, schedule_id)

    return DoctorScheduleResponse.model_validate(link)
