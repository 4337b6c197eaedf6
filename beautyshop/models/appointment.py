"""Appointment model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship
from beautyshop.database import Base
from beautyshop.models.service import Service

STATUS_BOOKED = "BOOKED"
STATUS_CONFIRMED = "CONFIRMED"
STATUS_COMPLETED = "COMPLETED"
STATUS_CANCELED = "CANCELED"
APPOINTMENT_STATUSES = (STATUS_BOOKED, STATUS_CONFIRMED, STATUS_COMPLETED, STATUS_CANCELED)
UPCOMING_STATUSES = (STATUS_BOOKED, STATUS_CONFIRMED)


class Appointment(Base):
    """Represents a scheduled appointment on a master's calendar."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    service_id = Column(Integer, ForeignKey("services.id", ondelete="SET NULL"), nullable=True)
    client_name = Column(String, nullable=False)
    client_phone = Column(String, nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    final_price = Column(Integer)
    notes = Column(String)
    status = Column(String, nullable=False, default=STATUS_BOOKED)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    service = relationship(Service, lazy="joined")
