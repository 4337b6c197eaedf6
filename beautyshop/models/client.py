"""Client model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from beautyshop.database import Base


class Client(Base):
    """Represents a client in a master's client list."""
    __tablename__ = "clients"
    __table_args__ = (UniqueConstraint("owner_id", "phone", name="uq_clients_owner_phone"),)

    id = Column(Integer, primary_key=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    notes = Column(String)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
