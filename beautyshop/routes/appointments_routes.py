from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import Field, field_validator
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from beautyshop.auth.dependencies import get_current_user
from beautyshop.core import config
from beautyshop.database import get_db
from beautyshop.models.appointment import APPOINTMENT_STATUSES, STATUS_CANCELED, Appointment
from beautyshop.models.user import User
from beautyshop.routes.common import (
    SLOT_TAKEN_DETAIL,
    CamelModel,
    database_unavailable,
    ensure_database_ready,
    get_owned_service,
    normalize_notes,
    normalize_phone,
    normalize_required_text,
    resolve_end_time,
)
from beautyshop.scheduling.booking import SlotUnavailableError, reserve_slot, update_appointment
from beautyshop.scheduling.engine import InvalidSlotError, is_slot_available, to_utc_naive

router = APIRouter(tags=['appointments'])

STATUS_ALIASES = {'CANCELLED': STATUS_CANCELED}


def normalize_status(value: str) -> str:
    normalized = value.strip().upper()
    normalized = STATUS_ALIASES.get(normalized, normalized)
    if normalized not in APPOINTMENT_STATUSES:
        raise ValueError('Invalid appointment status.')
    return normalized


class ServiceSummaryResponse(CamelModel):
    id: int
    name: str
    price: int


class AppointmentResponse(CamelModel):
    id: int
    owner_id: int
    service_id: int | None = None
    client_name: str
    client_phone: str
    start_time: datetime
    end_time: datetime
    final_price: int | None = None
    notes: str | None = None
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    service: ServiceSummaryResponse | None = None


class AppointmentMessageResponse(CamelModel):
    message: str
    appointment: AppointmentResponse


class CreateAppointmentRequest(CamelModel):
    service_id: int | None = None
    client_name: str
    client_phone: str
    start_time: datetime
    end_time: datetime | None = None
    final_price: int | None = Field(default=None, ge=0)
    notes: str | None = None

    @field_validator('client_name')
    @classmethod
    def validate_client_name(cls, value: str) -> str:
        return normalize_required_text(value, 'Client name')

    @field_validator('client_phone')
    @classmethod
    def validate_client_phone(cls, value: str) -> str:
        return normalize_phone(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)


class UpdateAppointmentRequest(CamelModel):
    service_id: int | None = None
    client_name: str | None = None
    client_phone: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    final_price: int | None = Field(default=None, ge=0)
    notes: str | None = None
    status: str | None = None

    @field_validator('client_name')
    @classmethod
    def validate_client_name(cls, value: str | None) -> str | None:
        return None if value is None else normalize_required_text(value, 'Client name')

    @field_validator('client_phone')
    @classmethod
    def validate_client_phone(cls, value: str | None) -> str | None:
        return None if value is None else normalize_phone(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        return None if value is None else normalize_status(value)


class AvailabilityRequest(CamelModel):
    start_time: datetime
    end_time: datetime
    exclude_appointment_id: int | None = None


class AvailabilityResponse(CamelModel):
    available: bool


def get_owned_appointment(db: Session, owner_id: int, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.owner_id == owner_id,
    ).first()

    if appointment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Appointment not found.',
        )
    return appointment


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    status_filter: str | None = Query(default=None, alias='status'),
    start_date: datetime | None = Query(default=None, alias='startDate'),
    end_date: datetime | None = Query(default=None, alias='endDate'),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if status_filter is not None:
        try:
            status_filter = normalize_status(status_filter)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    try:
        query = db.query(Appointment).filter(Appointment.owner_id == current_user.id)

        if status_filter is not None:
            query = query.filter(Appointment.status == status_filter)
        if start_date is not None:
            query = query.filter(Appointment.start_time >= to_utc_naive(start_date))
        if end_date is not None:
            query = query.filter(Appointment.start_time <= to_utc_naive(end_date))

        return query.order_by(Appointment.start_time.desc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.post('', response_model=AppointmentMessageResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        service = None
        if data.service_id is not None:
            service = get_owned_service(db, current_user.id, data.service_id)

        end_time = resolve_end_time(data.start_time, data.end_time, service)

        appointment = reserve_slot(
            db,
            current_user.id,
            data.start_time,
            end_time,
            lambda start, end: Appointment(
                service_id=data.service_id,
                client_name=data.client_name,
                client_phone=data.client_phone,
                start_time=start,
                end_time=end,
                final_price=data.final_price,
                notes=data.notes,
            ),
            occupying_statuses=config.get_occupying_statuses(),
        )
    except InvalidSlotError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except SlotUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=SLOT_TAKEN_DETAIL) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc

    return AppointmentMessageResponse(
        message='Appointment created.',
        appointment=AppointmentResponse.model_validate(appointment),
    )


@router.post('/availability', response_model=AvailabilityResponse)
def check_availability(
    data: AvailabilityRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        available = is_slot_available(
            db,
            current_user.id,
            data.start_time,
            data.end_time,
            exclude_appointment_id=data.exclude_appointment_id,
            occupying_statuses=config.get_occupying_statuses(),
        )
    except InvalidSlotError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc

    return AvailabilityResponse(available=available)


@router.put('/{appointment_id}', response_model=AppointmentMessageResponse)
def update_existing_appointment(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    changes = data.model_dump(exclude_unset=True)
    for field in ('client_name', 'client_phone', 'start_time', 'end_time', 'status'):
        if field in changes and changes[field] is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f'{to_camel(field)} cannot be null.',
            )

    try:
        appointment = get_owned_appointment(db, current_user.id, appointment_id)

        if changes.get('service_id') is not None:
            get_owned_service(db, current_user.id, changes['service_id'])

        appointment = update_appointment(
            db,
            appointment,
            changes,
            occupying_statuses=config.get_occupying_statuses(),
        )
    except InvalidSlotError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except SlotUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=SLOT_TAKEN_DETAIL) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc

    return AppointmentMessageResponse(
        message='Appointment updated.',
        appointment=AppointmentResponse.model_validate(appointment),
    )
