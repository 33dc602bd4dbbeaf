from datetime import date, datetime, time

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from clinic_backend.auth.dependencies import require_roles
from clinic_backend.core import config
from clinic_backend.database import get_db
from clinic_backend.models.user import ROLE_ADMIN, ROLE_DOCTOR, User
from clinic_backend.routes.common import PageMeta, ensure_database_ready, service_errors
from clinic_backend.services import slot_registry
from clinic_backend.services.doctor_availability import resolve_doctor_for_user, slot_window
from clinic_backend.services.pagination import calculate_pagination, page_payload

router = APIRouter(tags=['schedules'])


class GenerateSchedulesRequest(BaseModel):
    start_date: date
    end_date: date
    daily_start_time: time
    daily_end_time: time

    @field_validator('daily_start_time', 'daily_end_time')
    @classmethod
    def drop_seconds(cls, value: time) -> time:
        return value.replace(second=0, microsecond=0)


class GenerateSchedulesResponse(BaseModel):
    count: int
    created: int


class ScheduleResponse(BaseModel):
    id: str
    start_date_time: datetime
    end_date_time: datetime

    class Config:
        from_attributes = True


class SchedulePageResponse(BaseModel):
    meta: PageMeta
    data: list[ScheduleResponse]


@router.post('', response_model=GenerateSchedulesResponse, status_code=status.HTTP_201_CREATED)
def generate_schedules(
    data: GenerateSchedulesRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(ROLE_ADMIN)),
):
    ensure_database_ready()

    with service_errors(db):
        registration = slot_registry.generate_schedules(
            db,
            data.start_date,
            data.end_date,
            data.daily_start_time,
            data.daily_end_time,
        )

    return GenerateSchedulesResponse(count=registration.count, created=registration.created)


@router.get('', response_model=SchedulePageResponse)
def list_schedules(
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_LIMIT, ge=1),
    sort_by: str | None = Query(default=None),
    sort_order: str = Query(default='asc'),
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(ROLE_ADMIN, ROLE_DOCTOR)),
):
    ensure_database_ready()

    with service_errors(db):
        options = calculate_pagination(page, limit, sort_by, sort_order)
        window = slot_window(date_from, date_to)
        exclude_doctor_id = resolve_doctor_for_user(db, user).id if user.role == ROLE_DOCTOR else None

        total, rows = slot_registry.list_schedules(
            db,
            options,
            date_from=window['date_from'],
            date_to=window['date_to'],
            exclude_doctor_id=exclude_doctor_id,
        )

    return page_payload(total, options, [ScheduleResponse.model_validate(row) for row in rows])
