from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from clinic_backend.auth.dependencies import get_current_user, require_roles
from clinic_backend.core import config
from clinic_backend.database import get_db
from clinic_backend.models.user import ROLE_ADMIN, ROLE_DOCTOR, User
from clinic_backend.routes.common import PageMeta, ensure_database_ready, service_errors
from clinic_backend.services import doctor_profile
from clinic_backend.services.doctor_availability import resolve_doctor_for_user
from clinic_backend.services.pagination import calculate_pagination, page_payload

router = APIRouter(tags=['doctors'])

GENDERS = {'male', 'female', 'other'}
MIN_PASSWORD_LENGTH = 8


def _normalize_gender(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized not in GENDERS:
        raise ValueError('Gender must be male, female or other.')
    return normalized


def _normalize_ids(value: list[str]) -> list[str]:
    normalized = [item.strip() for item in value]
    if any(not item for item in normalized):
        raise ValueError('Ids cannot be blank.')
    return normalized


class DoctorCredentialInput(BaseModel):
    password: str

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters.')
        return value


class DoctorProfileInput(BaseModel):
    email: str
    name: str
    contact_number: str
    registration_number: str
    gender: str
    appointment_fee: int = Field(ge=0)
    qualification: str
    current_working_place: str
    designation: str
    experience: int = Field(default=0, ge=0)
    address: str | None = None
    profile_photo: str | None = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if '@' not in normalized:
            raise ValueError('A valid email is required.')
        return normalized

    @field_validator('gender')
    @classmethod
    def validate_gender(cls, value: str) -> str:
        return _normalize_gender(value)


class DoctorProfilePatch(BaseModel):
    name: str | None = None
    contact_number: str | None = None
    registration_number: str | None = None
    gender: str | None = None
    appointment_fee: int | None = Field(default=None, ge=0)
    qualification: str | None = None
    current_working_place: str | None = None
    designation: str | None = None
    experience: int | None = Field(default=None, ge=0)
    address: str | None = None
    profile_photo: str | None = None

    @field_validator(
        'name',
        'contact_number',
        'registration_number',
        'gender',
        'appointment_fee',
        'qualification',
        'current_working_place',
        'designation',
        'experience',
        mode='before',
    )
    @classmethod
    def reject_cleared_required_field(cls, value):
        if value is None:
            raise ValueError('This field is required and cannot be cleared.')
        return value

    @field_validator('gender')
    @classmethod
    def validate_gender(cls, value: str | None) -> str | None:
        return _normalize_gender(value)


class CreateDoctorRequest(BaseModel):
    credential: DoctorCredentialInput
    profile: DoctorProfileInput
    specialty_ids: list[str] = []

    @field_validator('specialty_ids')
    @classmethod
    def validate_specialty_ids(cls, value: list[str]) -> list[str]:
        return _normalize_ids(value)


class UpdateDoctorRequest(BaseModel):
    profile_patch: DoctorProfilePatch | None = None
    add_specialty_ids: list[str] = []
    remove_specialty_ids: list[str] = []

    @field_validator('add_specialty_ids', 'remove_specialty_ids')
    @classmethod
    def validate_specialty_ids(cls, value: list[str]) -> list[str]:
        return _normalize_ids(value)


class SpecialtyResponse(BaseModel):
    id: str
    title: str
    icon: str

    class Config:
        from_attributes = True


class SpecialtyLinkResponse(BaseModel):
    specialty_id: str
    specialty: SpecialtyResponse

    class Config:
        from_attributes = True


class DoctorResponse(BaseModel):
    id: str
    email: str
    name: str
    contact_number: str
    registration_number: str
    gender: str
    appointment_fee: int
    qualification: str
    current_working_place: str
    designation: str
    experience: int
    address: str | None = None
    profile_photo: str | None = None
    is_deleted: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None
    specialty_links: list[SpecialtyLinkResponse]

    class Config:
        from_attributes = True


class DoctorPageResponse(BaseModel):
    meta: PageMeta
    data: list[DoctorResponse]


def ensure_can_edit_doctor(db: Session, user: User, doctor_id: str) -> None:
    if user.role == ROLE_ADMIN:
        return
    if user.role == ROLE_DOCTOR and resolve_doctor_for_user(db, user).id == doctor_id:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail='Only admins or the doctor themself can update this profile.',
    )


@router.post('', response_model=DoctorResponse, status_code=status.HTTP_201_CREATED)
def create_doctor(
    data: CreateDoctorRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(ROLE_ADMIN)),
):
    ensure_database_ready()

    with service_errors(db):
        doctor = doctor_profile.create_doctor(
            db,
            password=data.credential.password,
            profile=data.profile.model_dump(),
            specialty_ids=data.specialty_ids,
        )
        return DoctorResponse.model_validate(doctor)


@router.get('', response_model=DoctorPageResponse)
def list_doctors(
    search_term: str | None = Query(default=None),
    specialty: str | None = Query(default=None),
    gender: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_LIMIT, ge=1),
    sort_by: str | None = Query(default=None),
    sort_order: str = Query(default='desc'),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    ensure_database_ready()

    with service_errors(db):
        options = calculate_pagination(page, limit, sort_by, sort_order)
        total, rows = doctor_profile.list_doctors(
            db,
            options,
            search_term=search_term,
            specialty=specialty,
            filters={'gender': gender.strip().lower() if gender else None},
        )
        return page_payload(total, options, [DoctorResponse.model_validate(row) for row in rows])


@router.get('/{doctor_id}', response_model=DoctorResponse)
def get_doctor(
    doctor_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    ensure_database_ready()

    with service_errors(db):
        return DoctorResponse.model_validate(doctor_profile.get_doctor(db, doctor_id))


@router.patch('/{doctor_id}', response_model=DoctorResponse)
def update_doctor(
    doctor_id: str,
    data: UpdateDoctorRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(ROLE_ADMIN, ROLE_DOCTOR)),
):
    ensure_database_ready()

    with service_errors(db):
        ensure_can_edit_doctor(db, user, doctor_id)
        patch = data.profile_patch.model_dump(exclude_unset=True) if data.profile_patch else {}
        doctor = doctor_profile.update_doctor(
            db,
            doctor_id,
            profile_patch=patch,
            add_specialty_ids=data.add_specialty_ids,
            remove_specialty_ids=data.remove_specialty_ids,
        )
        return DoctorResponse.model_validate(doctor)


@router.delete('/{doctor_id}', response_model=DoctorResponse)
def delete_doctor(
    doctor_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(ROLE_ADMIN)),
):
    ensure_database_ready()

    with service_errors(db):
        return DoctorResponse.model_validate(doctor_profile.soft_delete_doctor(db, doctor_id))
