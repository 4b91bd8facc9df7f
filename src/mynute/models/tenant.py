"""
Tenant-namespace models.

Declared under the placeholder schema; every session that touches them must be
bound through a `schema_translate_map` pointing at one company's schema.
Foreign keys stay inside the tenant schema; references to public rows
(`company_id`, `client_id`) are plain columns.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String

from mynute.models.base import TENANT_SCHEMA, Base, utcnow


def _uuid() -> str:
    return str(uuid.uuid4())


class Branch(Base):
    __tablename__ = "branches"
    __table_args__ = {"schema": TENANT_SCHEMA}

    id = Column(String(36), primary_key=True, default=_uuid)
    company_id = Column(String(36), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    street = Column(String(200), nullable=True)
    city = Column(String(120), nullable=True)
    country = Column(String(80), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class Employee(Base):
    __tablename__ = "employees"
    __table_args__ = {"schema": TENANT_SCHEMA}

    id = Column(String(36), primary_key=True, default=_uuid)
    company_id = Column(String(36), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    surname = Column(String(120), nullable=True)
    email = Column(String(200), nullable=False, unique=True)
    role = Column(String(40), nullable=False, default="employee")
    created_at = Column(DateTime(timezone=True), default=utcnow)


class Service(Base):
    __tablename__ = "services"
    __table_args__ = {"schema": TENANT_SCHEMA}

    id = Column(String(36), primary_key=True, default=_uuid)
    company_id = Column(String(36), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    description = Column(String(500), nullable=True)
    duration_minutes = Column(Integer, nullable=False, default=30)
    price = Column(Numeric(10, 2), nullable=True)


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = {"schema": TENANT_SCHEMA}

    id = Column(String(36), primary_key=True, default=_uuid)
    company_id = Column(String(36), nullable=False, index=True)
    branch_id = Column(String(36), ForeignKey(f"{TENANT_SCHEMA}.branches.id"), nullable=False)
    employee_id = Column(String(36), ForeignKey(f"{TENANT_SCHEMA}.employees.id"), nullable=False)
    service_id = Column(String(36), ForeignKey(f"{TENANT_SCHEMA}.services.id"), nullable=False)
    client_id = Column(String(36), nullable=False, index=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=True)
    cancelled = Column(Boolean, nullable=False, default=False)
