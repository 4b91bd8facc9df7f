"""Handlers for public-namespace entities (companies, clients)."""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mynute.api.dependencies import get_db
from mynute.controllers.schemas import ClientCreate, ClientOut, CompanyOut
from mynute.exceptions import MynuteException, ResourceNotFound
from mynute.models import Client, Company


class ClientAlreadyExists(MynuteException):
    code = "CLIENT_ALREADY_EXISTS"
    status_code = 409
    description_en = "A client with this email already exists"
    description_br = "Já existe um cliente com este email"


def get_company_by_id(id: str, db: Session = Depends(get_db)) -> CompanyOut:
    company = db.get(Company, id)
    if company is None:
        raise ResourceNotFound(details={"resource": "company"})
    return CompanyOut.model_validate(company)


def get_client_by_id(id: str, db: Session = Depends(get_db)) -> ClientOut:
    client = db.get(Client, id)
    if client is None:
        raise ResourceNotFound(details={"resource": "client"})
    return ClientOut.model_validate(client)


def get_client_by_email(email: str, db: Session = Depends(get_db)) -> ClientOut:
    client = db.query(Client).filter(Client.email == email).first()
    if client is None:
        raise ResourceNotFound(details={"resource": "client"})
    return ClientOut.model_validate(client)


def create_client(payload: ClientCreate, db: Session = Depends(get_db)) -> ClientOut:
    client = Client(**payload.model_dump())
    db.add(client)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ClientAlreadyExists().with_error(e) from e
    return ClientOut.model_validate(client)
