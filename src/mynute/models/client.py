from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, String

from mynute.models.base import Base, utcnow


class Client(Base):
    """Public-namespace customer; not affiliated with any company."""

    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(120), nullable=False)
    surname = Column(String(120), nullable=True)
    email = Column(String(200), nullable=False, unique=True)
    phone = Column(String(32), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
