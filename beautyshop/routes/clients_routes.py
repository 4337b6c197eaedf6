from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from beautyshop.auth.dependencies import get_current_user
from beautyshop.database import get_db
from beautyshop.models.client import Client
from beautyshop.models.user import User
from beautyshop.routes.common import (
    CamelModel,
    database_unavailable,
    normalize_notes,
    normalize_phone,
    normalize_required_text,
)

router = APIRouter(tags=['clients'])

DUPLICATE_PHONE_DETAIL = 'A client with this phone number already exists.'


class ClientRequest(CamelModel):
    name: str
    phone: str
    notes: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return normalize_required_text(value, 'Client name')

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value: str) -> str:
        return normalize_phone(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)


class ClientResponse(CamelModel):
    id: int
    owner_id: int
    name: str
    phone: str
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ClientMessageResponse(CamelModel):
    message: str
    client: ClientResponse


def ensure_phone_is_free(db: Session, owner_id: int, phone: str, exclude_client_id: int | None = None) -> None:
    query = db.query(Client.id).filter(Client.owner_id == owner_id, Client.phone == phone)
    if exclude_client_id is not None:
        query = query.filter(Client.id != exclude_client_id)

    if query.first() is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=DUPLICATE_PHONE_DETAIL,
        )


@router.get('', response_model=list[ClientResponse])
def list_clients(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        return db.query(Client).filter(Client.owner_id == current_user.id).order_by(Client.name.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.post('', response_model=ClientMessageResponse, status_code=status.HTTP_201_CREATED)
def create_client(
    data: ClientRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        ensure_phone_is_free(db, current_user.id, data.phone)

        client = Client(owner_id=current_user.id, name=data.name, phone=data.phone, notes=data.notes)
        db.add(client)
        db.commit()
        db.refresh(client)
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc

    return ClientMessageResponse(message='Client created.', client=ClientResponse.model_validate(client))


@router.put('/{client_id}', response_model=ClientMessageResponse)
def update_client(
    client_id: int,
    data: ClientRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        client = db.query(Client).filter(Client.id == client_id, Client.owner_id == current_user.id).first()
        if client is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Client not found.',
            )

        ensure_phone_is_free(db, current_user.id, data.phone, exclude_client_id=client.id)

        client.name = data.name
        client.phone = data.phone
        client.notes = data.notes
        db.commit()
        db.refresh(client)
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc

    return ClientMessageResponse(message='Client updated.', client=ClientResponse.model_validate(client))
