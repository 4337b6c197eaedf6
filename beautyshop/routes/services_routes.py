from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from beautyshop.auth.dependencies import get_current_user
from beautyshop.database import get_db
from beautyshop.models.service import Service
from beautyshop.models.user import User
from beautyshop.routes.common import CamelModel, database_unavailable, get_owned_service, normalize_required_text

router = APIRouter(tags=['services'])

MIN_SERVICE_DURATION_MINUTES = 15


class ServiceRequest(CamelModel):
    name: str
    price: int = Field(ge=0)
    duration_min: int = Field(ge=MIN_SERVICE_DURATION_MINUTES)
    is_public: bool = True

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return normalize_required_text(value, 'Service name')


class UpdateServiceRequest(CamelModel):
    name: str | None = None
    price: int | None = Field(default=None, ge=0)
    duration_min: int | None = Field(default=None, ge=MIN_SERVICE_DURATION_MINUTES)
    is_public: bool | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        return None if value is None else normalize_required_text(value, 'Service name')


class ServiceResponse(CamelModel):
    id: int
    owner_id: int
    name: str
    price: int
    duration_min: int
    is_public: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ServiceMessageResponse(CamelModel):
    message: str
    service: ServiceResponse | None = None


@router.get('', response_model=list[ServiceResponse])
def list_services(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        return db.query(Service).filter(Service.owner_id == current_user.id).order_by(
            Service.created_at.desc(),
            Service.id.desc(),
        ).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.post('', response_model=ServiceMessageResponse, status_code=status.HTTP_201_CREATED)
def create_service(
    data: ServiceRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        service = Service(
            owner_id=current_user.id,
            name=data.name,
            price=data.price,
            duration_min=data.duration_min,
            is_public=data.is_public,
        )
        db.add(service)
        db.commit()
        db.refresh(service)
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc

    return ServiceMessageResponse(message='Service created.', service=ServiceResponse.model_validate(service))


@router.put('/{service_id}', response_model=ServiceMessageResponse)
def update_service(
    service_id: int,
    data: UpdateServiceRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    changes = {field: value for field, value in data.model_dump(exclude_unset=True).items() if value is not None}

    try:
        service = get_owned_service(db, current_user.id, service_id)
        for field, value in changes.items():
            setattr(service, field, value)
        db.commit()
        db.refresh(service)
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc

    return ServiceMessageResponse(message='Service updated.', service=ServiceResponse.model_validate(service))


@router.delete('/{service_id}', response_model=ServiceMessageResponse)
def delete_service(
    service_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        service = get_owned_service(db, current_user.id, service_id)
        db.delete(service)
        db.commit()
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc

    return ServiceMessageResponse(message='Service deleted.')
