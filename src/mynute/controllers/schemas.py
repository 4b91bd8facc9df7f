from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _Row(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class CompanyOut(_Row):
    id: str
    legal_name: str
    trade_name: Optional[str] = None
    tax_id: Optional[str] = None


class ClientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    surname: Optional[str] = Field(default=None, max_length=120)
    email: str = Field(..., min_length=3, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=32)


class ClientOut(_Row):
    id: str
    name: str
    surname: Optional[str] = None
    email: str
    phone: Optional[str] = None


class BranchCreate(BaseModel):
    company_id: str
    name: str = Field(..., min_length=1, max_length=120)
    street: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None


class BranchOut(_Row):
    id: str
    company_id: str
    name: str
    street: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None


class EmployeeOut(_Row):
    id: str
    company_id: str
    name: str
    surname: Optional[str] = None
    email: str
    role: str


class ServiceOut(_Row):
    id: str
    company_id: str
    name: str
    description: Optional[str] = None
    duration_minutes: int
    price: Optional[Decimal] = None


class AppointmentOut(_Row):
    id: str
    company_id: str
    branch_id: str
    employee_id: str
    service_id: str
    client_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    cancelled: bool = False
