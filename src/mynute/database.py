"""
Database configuration and tenant namespace management.

- One engine per process; the public namespace is the engine's default schema.
- Every company owns an isolated schema holding the tenant tables. Tenant
  models are declared under a placeholder schema which is rewritten per
  session through `schema_translate_map`, so the namespace selection lives on
  the session, never on the process.
- PostgreSQL uses real schemas. SQLite attaches one database per schema
  (a sibling file of the main database, or `:memory:`).
"""

from __future__ import annotations

import logging
import re
import weakref
from contextlib import contextmanager
from threading import RLock
from typing import Dict, Generator, List, Optional

from sqlalchemy import Table, create_engine, event, inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import Session, sessionmaker

from mynute.config import get_settings
from mynute.models.base import TENANT_SCHEMA, Base

logger = logging.getLogger(__name__)

_ATTACHED_INFO_KEY = "mynute_attached"

_schema_lock = RLock()


class _SchemaState:
    """Schemas addressable on one engine and the scoped engines derived from it."""

    def __init__(self) -> None:
        self.paths: Dict[str, str] = {}
        self.scoped: Dict[str, Engine] = {}


_engine_schemas: "weakref.WeakKeyDictionary[Engine, _SchemaState]" = weakref.WeakKeyDictionary()


def _schema_state(bind: Engine) -> _SchemaState:
    with _schema_lock:
        state = _engine_schemas.get(bind)
        if state is None:
            state = _engine_schemas[bind] = _SchemaState()
        return state


def get_database_url() -> str:
    settings = get_settings()
    return settings.DATABASE_URL


def sanitize_schema_name(raw: str) -> str:
    cleaned = re.sub(r"[^a-z0-9_]", "_", raw.strip().lower())
    cleaned = cleaned.strip("_")
    if not cleaned:
        raise ValueError(f"Cannot derive a schema name from {raw!r}")
    if cleaned[0].isdigit():
        cleaned = f"s_{cleaned}"
    return cleaned[:63]


def schema_name_for_company(company_id: str) -> str:
    return sanitize_schema_name(f"company_{company_id.replace('-', '')}")


def is_sqlite(bind: Engine) -> bool:
    return bind.dialect.name == "sqlite"


def _sqlite_schema_path(url: str, schema: str) -> str:
    # Dev-friendly default: a sibling file per schema, `:memory:` otherwise.
    if url.startswith("sqlite:///") and url.endswith(".db") and ":memory:" not in url:
        base = url[len("sqlite:///") : -len(".db")]
        return f"{base}__{schema}.db"
    return ":memory:"


def create_db_engine(database_url: Optional[str] = None, *, echo: bool = False) -> Engine:
    url = database_url or get_database_url()

    connect_args: dict = {}
    if "sqlite" in url:
        connect_args["check_same_thread"] = False

    if url.startswith("sqlite://") and (url == "sqlite://" or ":memory:" in url):
        from sqlalchemy.pool import StaticPool

        engine = create_engine(
            url,
            echo=echo,
            connect_args=connect_args,
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(
            url,
            echo=echo,
            pool_pre_ping=True,
            pool_recycle=3600,
            connect_args=connect_args,
        )

    state = _schema_state(engine)

    if "sqlite" in url:

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, _connection_record):  # pragma: no cover
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if ":memory:" not in url and url != "sqlite://":
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        @event.listens_for(engine, "checkout")
        def _attach_tenant_schemas(dbapi_connection, connection_record, _proxy):
            attached = connection_record.info.setdefault(_ATTACHED_INFO_KEY, set())
            pending = {
                name: path
                for name, path in list(state.paths.items())
                if name not in attached
            }
            if not pending:
                return
            cursor = dbapi_connection.cursor()
            try:
                for name, path in pending.items():
                    cursor.execute(f'ATTACH DATABASE ? AS "{name}"', (path,))
                    attached.add(name)
            finally:
                cursor.close()

    return engine


def public_tables() -> List[Table]:
    return [t for t in Base.metadata.sorted_tables if t.schema is None]


def tenant_tables() -> List[Table]:
    return [t for t in Base.metadata.sorted_tables if t.schema == TENANT_SCHEMA]


def find_table(name: str) -> Optional[Table]:
    """Look up a mapped table by its bare name, public or tenant."""
    for table in Base.metadata.sorted_tables:
        if table.name == name:
            return table
    return None


def register_schema(bind: Engine, schema: str) -> None:
    """Make `schema` addressable on every connection checked out from `bind`."""
    schema = sanitize_schema_name(schema)
    if not is_sqlite(bind):
        return
    with _schema_lock:
        known = _schema_state(bind).paths
        if schema not in known:
            known[schema] = _sqlite_schema_path(str(bind.url), schema)


def scoped_engine(bind: Engine, schema: str) -> Engine:
    """
    Return `bind` with the tenant placeholder translated to `schema`.

    The returned engine shares the pool of `bind`; only its compiled statements
    differ.
    """
    schema = sanitize_schema_name(schema)
    with _schema_lock:
        cache = _schema_state(bind).scoped
        existing = cache.get(schema)
        if existing is not None:
            return existing
        register_schema(bind, schema)
        scoped = bind.execution_options(schema_translate_map={TENANT_SCHEMA: schema})
        cache[schema] = scoped
        return scoped


def create_tenant_schema(bind: Engine, schema: str) -> str:
    """Provision (idempotently) the tenant tables inside `schema`."""
    schema = sanitize_schema_name(schema)
    if not is_sqlite(bind):
        with bind.begin() as conn:
            conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{schema}"'))
    scoped = scoped_engine(bind, schema)
    with scoped.begin() as conn:
        Base.metadata.create_all(bind=conn, tables=tenant_tables(), checkfirst=True)
    logger.info(f"Tenant schema ready: {schema}")
    return schema


def table_exists(bind: Engine, table_name: str, *, schema: Optional[str] = None) -> bool:
    return inspect(bind).has_table(table_name, schema=schema)


def interrupt_statement(connection: Connection) -> bool:
    """
    Abort the statement `connection` is running. Safe to call from another
    thread: sqlite3 exposes `interrupt()`, psycopg `cancel()`.
    """
    raw = connection.connection.dbapi_connection
    for name in ("interrupt", "cancel"):
        method = getattr(raw, name, None)
        if callable(method):
            method()
            return True
    logger.warning(f"Cannot interrupt statements on {connection.dialect.name} connections")
    return False


engine = create_db_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def open_session(bind: Engine, *, schema: Optional[str] = None) -> Session:
    """
    Open a session on the public namespace, or on `schema` when given.

    A public session compiles tenant tables against the untranslated
    placeholder schema, so they cannot resolve to any company's data.
    """
    target = scoped_engine(bind, schema) if schema else bind
    session = Session(bind=target, autoflush=False, expire_on_commit=False)
    timeout_ms = get_settings().AUTHZ_STATEMENT_TIMEOUT_MS
    if timeout_ms > 0 and bind.dialect.name == "postgresql":
        session.execute(text(f"SET LOCAL statement_timeout = {int(timeout_ms)}"))
    return session


@contextmanager
def get_db_session(
    bind: Optional[Engine] = None, *, schema: Optional[str] = None
) -> Generator[Session, None, None]:
    target = bind or engine
    session = open_session(target, schema=schema)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(*, create_tables: bool = False, bind_engine: Optional[Engine] = None) -> None:
    """
    Initialize the public namespace and every known company schema.

    When SCHEMA_MODE=migrations, this will NOT auto-create tables.
    """
    settings = get_settings()
    target_engine = bind_engine or engine

    if not create_tables:
        return

    if settings.SCHEMA_MODE == "migrations":
        if not inspect(target_engine).get_table_names():
            raise RuntimeError(
                "SCHEMA_MODE=migrations: Database is empty. "
                "Apply the migrations before starting the service."
            )
        return

    Base.metadata.create_all(bind=target_engine, tables=public_tables(), checkfirst=True)

    from mynute.models.company import Company

    with get_db_session(target_engine) as session:
        schemas = [row.schema_name for row in session.query(Company).all()]
    for schema in schemas:
        create_tenant_schema(target_engine, schema)
