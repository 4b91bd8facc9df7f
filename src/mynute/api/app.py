from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from sqlalchemy.engine import Engine

from mynute import __version__
from mynute.authz.endpoints import AuthzRuntime, ControllerRegistry
from mynute.authz.pipeline import build_routes
from mynute.authz.tenancy import TenantSchemaGate
from mynute.config import get_settings
from mynute.controllers import build_controller_registry
from mynute.database import get_db_session, init_db
from mynute.exceptions import register_exception_handlers
from mynute.security.subject import JWTSubjectResolver, SubjectResolver

logger = logging.getLogger(__name__)


def create_app(
    *,
    engine: Optional[Engine] = None,
    runtime: Optional[AuthzRuntime] = None,
    controllers: Optional[ControllerRegistry] = None,
    subject_resolver: Optional[SubjectResolver] = None,
) -> FastAPI:
    """
    Build the application.

    Routes come from the persisted endpoint table. When `runtime` is passed
    already loaded, routes are built immediately; otherwise the startup hook
    loads the registries and builds them before the first request is served.
    """
    settings = get_settings()
    if engine is None:
        from mynute.database import engine as default_engine

        engine = default_engine

    app = FastAPI(title="Mynute", version=__version__)
    register_exception_handlers(app)

    runtime = runtime or AuthzRuntime()
    controllers = controllers or build_controller_registry()
    subject_resolver = subject_resolver or JWTSubjectResolver()
    tenant_gate = TenantSchemaGate(engine)

    app.state.authz_runtime = runtime
    app.state.engine = engine

    def _build() -> None:
        build_routes(
            app.router,
            runtime,
            controllers,
            tenant_gate,
            subject_resolver,
            prefix=settings.API_PREFIX,
        )

    if runtime.loaded:
        _build()
    else:

        @app.on_event("startup")
        def _startup() -> None:  # pragma: no cover
            # Dev convenience: auto-create tables. Production runs migrations.
            if settings.ENVIRONMENT == "dev":
                init_db(create_tables=True, bind_engine=engine)
            with get_db_session(engine) as session:
                runtime.load(session)
            _build()

    return app
