"""Expense model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func
from beautyshop.database import Base


class Expense(Base):
    """Represents money a master spent."""
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    amount = Column(Integer, nullable=False)
    description = Column(String, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
