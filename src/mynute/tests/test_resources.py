from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import add_company, add_employee, make_engine
from mynute.authz.attributes import RequestAttributes
from mynute.authz.resources import ResourceRegistry, build_resource
from mynute.database import get_db_session, open_session
from mynute.exceptions import ConfigurationError, ResourceNotFound, UnknownResourceError
from mynute.models import Employee, ResourceRecord


def _ref(storage_key, request_key, location):
    return {"storage_key": storage_key, "request_key": request_key, "request_location": location}


EMPLOYEE = build_resource(
    "employee",
    "employees",
    [
        _ref("id", "id", "path"),
        _ref("email", "email", "body"),
        _ref("id", "employee_id", "query"),
    ],
)


def test_build_resource_validates_table_and_columns():
    with pytest.raises(UnknownResourceError):
        build_resource("ghost", "no_such_table", [])
    with pytest.raises(ConfigurationError, match="column 'nope'"):
        build_resource("employee", "employees", [_ref("nope", "id", "path")])
    with pytest.raises(ConfigurationError, match="malformed"):
        build_resource("employee", "employees", [_ref("id", "id", "header")])


def test_registry_rejects_duplicates_and_unknown_names():
    with pytest.raises(ConfigurationError):
        ResourceRegistry([EMPLOYEE, EMPLOYEE])
    registry = ResourceRegistry([EMPLOYEE])
    assert "employee" in registry
    with pytest.raises(UnknownResourceError):
        registry.get("branch")


def test_load_reads_persisted_records(engine):
    with get_db_session(engine) as session:
        session.add(
            ResourceRecord(
                name="employee",
                storage_table="employees",
                references=[_ref("id", "id", "path")],
            )
        )
    with get_db_session(engine) as session:
        registry = ResourceRegistry.load(session)
    resource = registry.get("employee")
    assert resource.is_tenant_scoped
    assert [r.request_key for r in resource.references] == ["id"]


def test_locate_uses_declaration_order():
    # Both the body email and the query employee_id are present; path id is not.
    request = RequestAttributes(
        path={}, query={"employee_id": "by-query"}, body={"email": "by-body@x.test"}
    )
    reference, value = ResourceRegistry.locate(EMPLOYEE, request)
    assert reference.request_location.value == "body"
    assert value == "by-body@x.test"

    reordered = build_resource(
        "employee",
        "employees",
        [_ref("id", "employee_id", "query"), _ref("email", "email", "body")],
    )
    reference, value = ResourceRegistry.locate(reordered, request)
    assert reference.request_key == "employee_id"


def test_hydrate_first_declared_reference_wins(engine):
    company = add_company(engine, "Order Co")
    first = add_employee(engine, company, "First")

    # Both references name the same row; the path id drives the query.
    request = RequestAttributes(path={"id": first.id}, body={"email": first.email})
    with open_session(engine, schema=company.schema_name) as session:
        row = ResourceRegistry([EMPLOYEE]).hydrate(EMPLOYEE, request, session)
    assert row["id"] == first.id
    assert row["company_id"] == company.id
    assert set(row) == {c.name for c in Employee.__table__.columns}


@pytest.mark.parametrize(
    "request_kwargs",
    [
        lambda first, second: dict(path={"id": first.id}, body={"email": second.email}),
        lambda first, second: dict(path={"id": first.id}, query={"employee_id": second.id}),
        lambda first, second: dict(path={"id": first.id}, query={"employee_id": "garbage"}),
    ],
)
def test_hydrate_refuses_references_naming_different_rows(engine, request_kwargs):
    company = add_company(engine, "Split Co")
    first = add_employee(engine, company, "First")
    second = add_employee(engine, company, "Second")

    request = RequestAttributes(**request_kwargs(first, second))
    with open_session(engine, schema=company.schema_name) as session:
        with pytest.raises(ResourceNotFound) as exc_info:
            ResourceRegistry([EMPLOYEE]).hydrate(EMPLOYEE, request, session)
    assert exc_info.value.details["resource"] == "employee"


def test_hydrate_without_any_key_returns_empty_map(engine):
    company = add_company(engine, "Empty Co")
    with open_session(engine, schema=company.schema_name) as session:
        assert ResourceRegistry([EMPLOYEE]).hydrate(EMPLOYEE, RequestAttributes(), session) == {}


def test_hydrate_missing_row_is_not_found(engine):
    company = add_company(engine, "Missing Co")
    with open_session(engine, schema=company.schema_name) as session:
        with pytest.raises(ResourceNotFound):
            ResourceRegistry([EMPLOYEE]).hydrate(
                EMPLOYEE, RequestAttributes(path={"id": "does-not-exist"}), session
            )


def test_hydrate_rejects_uncoercible_values(engine):
    company = add_company(engine, "Odd Co")
    with open_session(engine, schema=company.schema_name) as session:
        with pytest.raises(ResourceNotFound):
            ResourceRegistry([EMPLOYEE]).hydrate(
                EMPLOYEE, RequestAttributes(query={"employee_id": ["a", "b"]}), session
            )


def test_same_local_id_resolves_per_tenant(engine):
    c1 = add_company(engine, "One")
    c2 = add_company(engine, "Two")
    add_employee(engine, c1, "Shared", email="shared@one.test")
    add_employee(engine, c2, "Shared", email="shared@two.test")

    by_email = build_resource("employee", "employees", [_ref("name", "name", "path")])
    request = RequestAttributes(path={"name": "Shared"})
    registry = ResourceRegistry([by_email])

    with open_session(engine, schema=c1.schema_name) as session:
        assert registry.hydrate(by_email, request, session)["company_id"] == c1.id
    with open_session(engine, schema=c2.schema_name) as session:
        assert registry.hydrate(by_email, request, session)["company_id"] == c2.id


@pytest.mark.concurrency
def test_concurrent_hydration_never_crosses_tenants(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'mynute.db'}")
    try:
        c1 = add_company(engine, "One")
        c2 = add_company(engine, "Two")
        shared_id = "00000000-0000-4000-8000-000000000001"
        for company in (c1, c2):
            with get_db_session(engine, schema=company.schema_name) as session:
                session.add(
                    Employee(
                        id=shared_id,
                        company_id=company.id,
                        name=f"Same id at {company.legal_name}",
                        email=f"same@{company.legal_name.lower()}.test",
                    )
                )

        registry = ResourceRegistry([EMPLOYEE])
        request = RequestAttributes(path={"id": shared_id})

        def hydrate_for(company):
            with open_session(engine, schema=company.schema_name) as session:
                return company.id, registry.hydrate(EMPLOYEE, request, session)["company_id"]

        jobs = [c1, c2] * 40
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(hydrate_for, jobs))

        assert len(results) == len(jobs)
        for expected, observed in results:
            assert observed == expected
    finally:
        engine.dispose()
