from __future__ import annotations

import uuid
from types import SimpleNamespace
from typing import Iterable, Optional

import pytest
from sqlalchemy.engine import Engine

from mynute.authz.endpoints import AuthzRuntime
from mynute.config import get_settings
from mynute.database import (
    create_db_engine,
    create_tenant_schema,
    get_db_session,
    init_db,
    schema_name_for_company,
)
from mynute.models import Company, Employee
from mynute.security.auth.jwt import build_access_token_payload, encode_hs256


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "concurrency: tests that issue requests from several threads against a file database",
    )


def make_engine(url: str = "sqlite://") -> Engine:
    engine = create_db_engine(url)
    init_db(create_tables=True, bind_engine=engine)
    return engine


def add_company(engine: Engine, name: str, company_id: Optional[str] = None) -> Company:
    company_id = company_id or str(uuid.uuid4())
    company = Company(
        id=company_id,
        legal_name=name,
        schema_name=schema_name_for_company(company_id),
    )
    with get_db_session(engine) as session:
        session.add(company)
    create_tenant_schema(engine, company.schema_name)
    return company


def add_employee(
    engine: Engine, company: Company, name: str, *, role: str = "employee", email: Optional[str] = None
) -> Employee:
    employee = Employee(
        id=str(uuid.uuid4()),
        company_id=company.id,
        name=name,
        email=email or f"{name.lower()}@{company.legal_name.lower().replace(' ', '')}.test",
        role=role,
    )
    with get_db_session(engine, schema=company.schema_name) as session:
        session.add(employee)
    return employee


def seed_catalogue(engine: Engine) -> None:
    from mynute.seeder import SeederRegistry

    with get_db_session(engine) as session:
        SeederRegistry.run_all(session)


@pytest.fixture
def engine():
    eng = make_engine()
    yield eng
    eng.dispose()


@pytest.fixture
def seeded_engine(engine):
    seed_catalogue(engine)
    return engine


@pytest.fixture
def runtime(seeded_engine) -> AuthzRuntime:
    rt = AuthzRuntime()
    with get_db_session(seeded_engine) as session:
        rt.load(session, retries=1)
    return rt


@pytest.fixture
def world(seeded_engine):
    """
    Two companies sharing nothing:
    C1 with employees X and Y, C2 with employee Z (owner).
    """
    c1 = add_company(seeded_engine, "Acme Cuts")
    c2 = add_company(seeded_engine, "Beta Spa")
    x = add_employee(seeded_engine, c1, "Xavier")
    y = add_employee(seeded_engine, c1, "Yara")
    z = add_employee(seeded_engine, c2, "Zoe", role="owner")
    return SimpleNamespace(engine=seeded_engine, c1=c1, c2=c2, x=x, y=y, z=z)


@pytest.fixture
def make_token():
    def _make(
        subject_id: str,
        *,
        company_id: Optional[str] = None,
        roles: Iterable[str] = (),
        branches: Iterable[str] = (),
        kind: str = "employee",
        ttl_seconds: int = 600,
    ) -> str:
        payload = build_access_token_payload(
            subject_id=subject_id,
            company_id=company_id,
            roles=roles,
            branches=branches,
            kind=kind,
            ttl_seconds=ttl_seconds,
        )
        return encode_hs256(payload, secret=get_settings().JWT_SECRET_KEY)

    return _make


@pytest.fixture
def token_for(make_token):
    """Bearer header for a seeded employee."""

    def _headers(employee: Employee, company: Optional[Company] = None, **extra) -> dict:
        token = make_token(
            employee.id,
            company_id=employee.company_id,
            roles=[employee.role],
            **extra,
        )
        headers = {"Authorization": f"Bearer {token}"}
        if company is not None:
            headers[get_settings().TENANT_HEADER] = company.id
        return headers

    return _headers
