from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, String

from mynute.models.base import Base, utcnow


class Company(Base):
    """
    A tenant. Its business data lives in the storage namespace `schema_name`.
    """

    __tablename__ = "companies"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    legal_name = Column(String(200), nullable=False)
    trade_name = Column(String(200), nullable=True)
    tax_id = Column(String(32), nullable=True, unique=True)
    schema_name = Column(String(63), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
