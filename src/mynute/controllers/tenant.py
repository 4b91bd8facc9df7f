"""
Handlers for company-scoped entities.

The session they receive is already bound to the company schema chosen by the
request's tenant header; they never pick a namespace themselves.
"""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.orm import Session

from mynute.api.dependencies import get_db, get_request_scope
from mynute.authz.pipeline import RequestScope
from mynute.controllers.schemas import (
    AppointmentOut,
    BranchCreate,
    BranchOut,
    EmployeeOut,
    ServiceOut,
)
from mynute.exceptions import ResourceNotFound, TenantHeaderInvalid
from mynute.models import Appointment, Branch, Employee, Service


def _get_or_404(db: Session, model, id: str, resource: str):
    row = db.get(model, id)
    if row is None:
        raise ResourceNotFound(details={"resource": resource})
    return row


def get_branch_by_id(id: str, db: Session = Depends(get_db)) -> BranchOut:
    return BranchOut.model_validate(_get_or_404(db, Branch, id, "branch"))


def create_branch(
    payload: BranchCreate, scope: RequestScope = Depends(get_request_scope)
) -> BranchOut:
    if payload.company_id != scope.namespace.company_id:
        raise TenantHeaderInvalid("Branch company does not match the company header")
    branch = Branch(**payload.model_dump())
    scope.session.add(branch)
    scope.session.commit()
    return BranchOut.model_validate(branch)


def get_employee_by_id(id: str, db: Session = Depends(get_db)) -> EmployeeOut:
    return EmployeeOut.model_validate(_get_or_404(db, Employee, id, "employee"))


def get_employee_by_email(email: str, db: Session = Depends(get_db)) -> EmployeeOut:
    employee = db.query(Employee).filter(Employee.email == email).first()
    if employee is None:
        raise ResourceNotFound(details={"resource": "employee"})
    return EmployeeOut.model_validate(employee)


def get_service_by_id(id: str, db: Session = Depends(get_db)) -> ServiceOut:
    return ServiceOut.model_validate(_get_or_404(db, Service, id, "service"))


def get_appointment_by_id(id: str, db: Session = Depends(get_db)) -> AppointmentOut:
    return AppointmentOut.model_validate(_get_or_404(db, Appointment, id, "appointment"))
