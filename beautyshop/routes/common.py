import logging
import re
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from beautyshop.database import ensure_appointment_schema
from beautyshop.models.service import Service

logger = logging.getLogger(__name__)

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'
SLOT_TAKEN_DETAIL = 'Time slot is already taken.'
MAX_NOTES_LENGTH = 600
PHONE_PATTERN = re.compile(r'^\+?[0-9][0-9\s\-()]{5,18}[0-9]$')


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def normalize_required_text(value: str, field_name: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError(f'{field_name} is required.')
    return normalized


def normalize_phone(value: str) -> str:
    normalized = value.strip()
    if not PHONE_PATTERN.match(normalized):
        raise ValueError('Invalid phone number.')
    return normalized


def normalize_notes(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > MAX_NOTES_LENGTH:
        raise ValueError(f'Notes must be {MAX_NOTES_LENGTH} characters or fewer.')

    return normalized


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        logger.exception('Appointment schema check failed.')
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def database_unavailable(db: Session | None, exc: SQLAlchemyError) -> HTTPException:
    logger.exception('Database operation failed: %s', exc)
    if db is not None:
        db.rollback()
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def get_owned_service(db: Session, owner_id: int, service_id: int, public_only: bool = False) -> Service:
    query = db.query(Service).filter(Service.id == service_id, Service.owner_id == owner_id)
    if public_only:
        query = query.filter(Service.is_public.is_(True))

    service = query.first()
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Service not found.',
        )
    return service


def resolve_end_time(start_time: datetime, end_time: datetime | None, service: Service | None) -> datetime:
    if end_time is not None:
        return end_time

    if service is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='endTime is required when no service is selected.',
        )

    return start_time + timedelta(minutes=service.duration_min)
