"""User model definitions."""

from sqlalchemy import Column, DateTime, Integer, String, func
from beautyshop.database import Base

BOOKING_MODE_SERVICE_LIST = "SERVICE_LIST"
BOOKING_MODE_TIME_SLOT = "TIME_SLOT"
BOOKING_MODES = (BOOKING_MODE_SERVICE_LIST, BOOKING_MODE_TIME_SLOT)


class User(Base):
    """Represents a master account that owns a calendar."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True, nullable=False)
    booking_mode = Column(String, nullable=False, default=BOOKING_MODE_SERVICE_LIST)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
