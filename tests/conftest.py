import os
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')

from beautyshop.auth import jwt_handler  # noqa: E402
from beautyshop.auth.passwords import hash_password  # noqa: E402
from beautyshop.database import Base, get_db  # noqa: E402
from beautyshop.main import app  # noqa: E402
from beautyshop.models.appointment import STATUS_BOOKED, Appointment  # noqa: E402
from beautyshop.models.user import User  # noqa: E402


@pytest.fixture
def db_engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def _create_master(db, email: str, slug: str, name: str = 'Test Master', booking_mode: str = 'TIME_SLOT') -> User:
    master = User(
        email=email,
        hashed_password=hash_password('password123'),
        name=name,
        slug=slug,
        booking_mode=booking_mode,
    )
    db.add(master)
    db.commit()
    db.refresh(master)
    return master


@pytest.fixture
def master(db) -> User:
    return _create_master(db, 'master@example.com', 'test-master')


@pytest.fixture
def other_master(db) -> User:
    return _create_master(db, 'other@example.com', 'other-master', name='Other Master')


@pytest.fixture
def make_appointment(db):
    def _make_appointment(
        owner: User,
        start_time: datetime,
        end_time: datetime,
        status: str = STATUS_BOOKED,
        **fields,
    ) -> Appointment:
        appointment = Appointment(
            owner_id=owner.id,
            client_name=fields.pop('client_name', 'Existing Client'),
            client_phone=fields.pop('client_phone', '+79991234567'),
            start_time=start_time,
            end_time=end_time,
            status=status,
            **fields,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make_appointment


@pytest.fixture
def api_client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _auth_headers_for(user: User) -> dict[str, str]:
    token = jwt_handler.create_access_token(subject=str(user.id))
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def auth_headers(master) -> dict[str, str]:
    return _auth_headers_for(master)


@pytest.fixture
def master_factory(db):
    def _factory(email: str, slug: str, **fields) -> User:
        return _create_master(db, email, slug, **fields)

    return _factory


@pytest.fixture
def headers_for():
    return _auth_headers_for
