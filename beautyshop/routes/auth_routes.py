import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import Field, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from beautyshop.auth import jwt_handler
from beautyshop.auth.dependencies import get_current_user
from beautyshop.auth.passwords import hash_password, verify_password
from beautyshop.core.slugs import generate_slug
from beautyshop.database import get_db
from beautyshop.models.service import Service
from beautyshop.models.user import BOOKING_MODE_SERVICE_LIST, BOOKING_MODES, User
from beautyshop.routes.common import CamelModel, database_unavailable, normalize_required_text

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
INVALID_CREDENTIALS_DETAIL = 'Invalid email or password.'
DUPLICATE_EMAIL_DETAIL = 'A user with this email already exists.'
SLUG_ATTEMPTS = 3


def normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    local_part, _, domain = normalized.partition('@')
    if not local_part or '.' not in domain or domain.startswith('.') or domain.endswith('.'):
        raise ValueError('Invalid email address.')
    return normalized


class RegisterRequest(CamelModel):
    email: str
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    name: str
    booking_mode: str = BOOKING_MODE_SERVICE_LIST

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return normalize_required_text(value, 'Name')

    @field_validator('booking_mode')
    @classmethod
    def validate_booking_mode(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in BOOKING_MODES:
            raise ValueError('Invalid booking mode.')
        return normalized


class LoginRequest(CamelModel):
    email: str
    password: str = Field(min_length=1)

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)


class UserServiceResponse(CamelModel):
    id: int
    name: str
    price: int
    duration_min: int
    is_public: bool


class UserResponse(CamelModel):
    id: int
    email: str
    name: str
    slug: str
    booking_mode: str
    services: list[UserServiceResponse] | None = None


class AuthResponse(CamelModel):
    message: str
    user: UserResponse
    token: str


class MeResponse(CamelModel):
    user: UserResponse


def build_user_response(user: User, db: Session | None = None) -> UserResponse:
    response = UserResponse.model_validate(user)
    if db is not None:
        services = db.query(Service).filter(Service.owner_id == user.id).order_by(Service.id.asc()).all()
        response.services = [UserServiceResponse.model_validate(service) for service in services]
    return response


def issue_token(user: User) -> str:
    return jwt_handler.create_access_token(
        subject=str(user.id),
        claims={'email': user.email, 'slug': user.slug},
    )


def allocate_slug(db: Session, name: str) -> str:
    base_slug = generate_slug(name) or 'master'
    slug = base_slug
    suffix = 2
    while db.query(User.id).filter(User.slug == slug).first() is not None:
        slug = f'{base_slug}-{suffix}'
        suffix += 1
    return slug


def email_taken(db: Session, email: str) -> bool:
    return db.query(User.id).filter(User.email == email).first() is not None


@router.post('/register', response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    hashed_password = hash_password(data.password)

    try:
        for attempt in range(1, SLUG_ATTEMPTS + 1):
            if email_taken(db, data.email):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=DUPLICATE_EMAIL_DETAIL,
                )

            user = User(
                email=data.email,
                hashed_password=hashed_password,
                name=data.name,
                slug=allocate_slug(db, data.name),
                booking_mode=data.booking_mode,
            )
            db.add(user)
            try:
                db.commit()
                break
            except IntegrityError:
                # Another registration took the email or the slug after it was checked.
                db.rollback()
                logger.info('Registration for %s collided on attempt %s', data.email, attempt)
        else:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='Could not reserve a profile link. Please try again.',
            )

        db.refresh(user)
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc

    logger.info('Registered master %s with slug %s', user.id, user.slug)
    return AuthResponse(message='User created.', user=build_user_response(user), token=issue_token(user))


@router.post('/login', response_model=AuthResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    try:
        user = db.query(User).filter(User.email == data.email).first()
        if user is None or not verify_password(data.password, user.hashed_password):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=INVALID_CREDENTIALS_DETAIL,
            )

        return AuthResponse(
            message='Logged in.',
            user=build_user_response(user, db),
            token=issue_token(user),
        )
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.get('/me', response_model=MeResponse)
def me(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        return MeResponse(user=build_user_response(current_user, db))
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc
