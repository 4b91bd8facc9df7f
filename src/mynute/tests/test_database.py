from types import SimpleNamespace
from unittest.mock import patch

import pytest
from sqlalchemy import inspect

from conftest import add_company, add_employee
from mynute.database import (
    _sqlite_schema_path,
    create_db_engine,
    create_tenant_schema,
    get_db_session,
    init_db,
    sanitize_schema_name,
    schema_name_for_company,
    scoped_engine,
    table_exists,
)
from mynute.models import TENANT_SCHEMA, Company, Employee


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Company_ABC", "company_abc"),
        ("acme cuts!", "acme_cuts"),
        ("1st-branch", "s_1st_branch"),
        ('x"; drop schema public; --', "x___drop_schema_public"),
    ],
)
def test_sanitize_schema_name(raw, expected):
    assert sanitize_schema_name(raw) == expected


def test_sanitize_schema_name_limits():
    assert len(sanitize_schema_name("a" * 100)) == 63
    with pytest.raises(ValueError):
        sanitize_schema_name("---")


def test_schema_name_for_company():
    name = schema_name_for_company("3F2504E0-4F89-11D3-9A0C-0305E82C3301")
    assert name == "company_3f2504e04f8911d39a0c0305e82c3301"


def test_sqlite_schema_files():
    assert _sqlite_schema_path("sqlite:///data/mynute.db", "company_a") == "data/mynute__company_a.db"
    assert _sqlite_schema_path("sqlite://", "company_a") == ":memory:"


def test_create_tenant_schema_is_idempotent(engine):
    company = add_company(engine, "Twice")
    employee = add_employee(engine, company, "Keep")
    assert create_tenant_schema(engine, company.schema_name) == company.schema_name

    assert table_exists(engine, "employees", schema=company.schema_name)
    with get_db_session(engine, schema=company.schema_name) as session:
        assert [e.id for e in session.query(Employee).all()] == [employee.id]


def test_public_tables_stay_out_of_tenant_schemas(engine):
    company = add_company(engine, "Split")
    names = set(inspect(engine).get_table_names(schema=company.schema_name))
    assert "employees" in names
    assert "companies" not in names
    assert "employees" not in inspect(engine).get_table_names()


def test_init_db_provisions_known_companies(tmp_path):
    url = f"sqlite:///{tmp_path / 'boot.db'}"
    first = create_db_engine(url)
    try:
        init_db(create_tables=True, bind_engine=first)
        company = add_company(first, "Persisted")
    finally:
        first.dispose()

    # A fresh process only knows the company from its row.
    second = create_db_engine(url)
    try:
        init_db(create_tables=True, bind_engine=second)
        with get_db_session(second) as session:
            assert session.get(Company, company.id) is not None
        assert table_exists(second, "employees", schema=company.schema_name)
    finally:
        second.dispose()


def test_init_db_migrations_mode_requires_tables():
    empty = create_db_engine("sqlite://")
    try:
        with patch("mynute.database.get_settings", return_value=SimpleNamespace(SCHEMA_MODE="migrations")):
            with pytest.raises(RuntimeError, match="migrations"):
                init_db(create_tables=True, bind_engine=empty)
    finally:
        empty.dispose()


def test_init_db_without_create_tables_is_a_noop():
    empty = create_db_engine("sqlite://")
    try:
        init_db(bind_engine=empty)
        assert inspect(empty).get_table_names() == []
    finally:
        empty.dispose()


def test_scoped_engines_are_cached_per_base_engine():
    first = create_db_engine("sqlite://")
    second = create_db_engine("sqlite://")
    try:
        scoped = scoped_engine(first, "Company_A")
        assert scoped_engine(first, "company_a") is scoped
        assert scoped.get_execution_options()["schema_translate_map"] == {TENANT_SCHEMA: "company_a"}
        assert scoped_engine(second, "company_a") is not scoped
    finally:
        first.dispose()
        second.dispose()
