"""Service catalog model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, func
from beautyshop.database import Base


class Service(Base):
    """Represents a service a master offers."""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    name = Column(String, nullable=False)
    price = Column(Integer, nullable=False)
    duration_min = Column(Integer, nullable=False)
    is_public = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
