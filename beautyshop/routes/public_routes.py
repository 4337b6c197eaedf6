import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from beautyshop.core import config
from beautyshop.database import get_db
from beautyshop.models.appointment import UPCOMING_STATUSES, Appointment
from beautyshop.models.service import Service
from beautyshop.models.user import BOOKING_MODE_SERVICE_LIST, User
from beautyshop.routes.appointments_routes import AppointmentMessageResponse, AppointmentResponse
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
    utc_now,
)
from beautyshop.scheduling.booking import SlotUnavailableError, reserve_slot
from beautyshop.scheduling.engine import InvalidSlotError, to_utc_naive

router = APIRouter(tags=['public'])

logger = logging.getLogger(__name__)


class PublicServiceResponse(CamelModel):
    id: int
    name: str
    price: int
    duration_min: int


class BusySlotResponse(CamelModel):
    id: int
    start_time: datetime
    end_time: datetime


class MasterPublicResponse(CamelModel):
    id: int
    name: str
    booking_mode: str
    services: list[PublicServiceResponse]
    appointments: list[BusySlotResponse]


class PublicBookingRequest(CamelModel):
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


def get_master_by_slug(db: Session, slug: str) -> User:
    master = db.query(User).filter(User.slug == slug.strip().lower()).first()
    if master is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Master not found.',
        )
    return master


@router.get('/{slug}', response_model=MasterPublicResponse)
def get_master_data(slug: str, db: Session = Depends(get_db)):
    try:
        master = get_master_by_slug(db, slug)

        services = db.query(Service).filter(
            Service.owner_id == master.id,
            Service.is_public.is_(True),
        ).order_by(Service.created_at.asc(), Service.id.asc()).all()

        busy_slots = db.query(Appointment).filter(
            Appointment.owner_id == master.id,
            Appointment.status.in_(UPCOMING_STATUSES),
            Appointment.start_time >= utc_now(),
        ).order_by(Appointment.start_time.asc()).all()

        return MasterPublicResponse(
            id=master.id,
            name=master.name,
            booking_mode=master.booking_mode,
            services=[PublicServiceResponse.model_validate(service) for service in services],
            appointments=[BusySlotResponse.model_validate(appointment) for appointment in busy_slots],
        )
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.post('/{slug}/book', response_model=AppointmentMessageResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(slug: str, data: PublicBookingRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        master = get_master_by_slug(db, slug)

        if master.booking_mode == BOOKING_MODE_SERVICE_LIST and data.service_id is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Please choose a service.',
            )

        service = None
        if data.service_id is not None:
            service = get_owned_service(db, master.id, data.service_id, public_only=True)

        end_time = resolve_end_time(data.start_time, data.end_time, service)

        if to_utc_naive(data.start_time) <= utc_now():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Appointments must be scheduled in the future.',
            )

        appointment = reserve_slot(
            db,
            master.id,
            data.start_time,
            end_time,
            lambda start, end: Appointment(
                service_id=data.service_id,
                client_name=data.client_name,
                client_phone=data.client_phone,
                start_time=start,
                end_time=end,
                final_price=data.final_price if data.final_price is not None else getattr(service, 'price', None),
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

    logger.info('Public booking %s created for master %s', appointment.id, master.slug)
    return AppointmentMessageResponse(
        message='Appointment created.',
        appointment=AppointmentResponse.model_validate(appointment),
    )
