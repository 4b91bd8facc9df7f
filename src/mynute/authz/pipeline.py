"""
Authorization Middleware Builder.

For every endpoint the builder registers one route whose single route-level
dependency runs the fixed chain

    acquire namespace session -> resolve subject -> authorize (gated only)
    -> confirm schema -> controller

Any step failing raises before FastAPI calls the controller.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import anyio
from fastapi import APIRouter, Depends
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session
from starlette.requests import Request

from mynute.authz.attributes import RequestAttributes
from mynute.authz.endpoints import (
    AuthzRuntime,
    AuthzSnapshot,
    ControllerRegistry,
    Endpoint,
    EndpointKey,
)
from mynute.authz.gate import AuthorizationGate, Decision
from mynute.authz.tenancy import StorageNamespace, TenantSchemaGate
from mynute.context import company_id_var, schema_name_var, subject_id_var
from mynute.database import interrupt_statement
from mynute.exceptions import InternalError, InvalidToken, NoToken
from mynute.models.base import TENANT_SCHEMA
from mynute.security.subject import Subject, SubjectResolver

logger = logging.getLogger(__name__)

SCOPE_STATE_KEY = "authz_scope"


@dataclass
class RequestScope:
    """Per-request state shared by the chain and handed to the controller."""

    endpoint: Endpoint
    snapshot: AuthzSnapshot
    attributes: RequestAttributes
    request: Optional[Request] = None
    headers: Dict[str, str] = field(default_factory=dict)
    namespace: Optional[StorageNamespace] = None
    session: Optional[Session] = None
    connection: Optional[Connection] = None
    subject: Optional[Subject] = None
    subject_error: Optional[Exception] = None
    decision: Optional[Decision] = None
    steps_run: List[str] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    cancelled: bool = False
    finished: bool = False

    @property
    def resource(self) -> Dict[str, Any]:
        return dict(self.decision.resource) if self.decision else {}

    def close_session(self) -> None:
        if self.session is not None:
            self.session.close()


ChainStep = Callable[[RequestScope], None]


class EndpointPipeline:
    """FastAPI dependency running the chain for one endpoint key."""

    def __init__(
        self,
        runtime: AuthzRuntime,
        key: EndpointKey,
        tenant_gate: TenantSchemaGate,
        subject_resolver: SubjectResolver,
        gate: AuthorizationGate,
        request_factory: Callable[[Request], Any] = RequestAttributes.from_request,
    ) -> None:
        self.runtime = runtime
        self.key = key
        self.tenant_gate = tenant_gate
        self.subject_resolver = subject_resolver
        self.gate = gate
        self.request_factory = request_factory

    def build_chain(self, endpoint: Endpoint) -> Tuple[ChainStep, ...]:
        steps: List[ChainStep] = [self.acquire_session, self.resolve_subject]
        if endpoint.deny_if_unauthorized:
            steps.append(self.authorize)
        steps.append(self.confirm_schema)
        return tuple(steps)

    # --- steps ---

    def acquire_session(self, scope: RequestScope) -> None:
        scope.namespace, scope.session = self.tenant_gate.acquire(scope.endpoint, scope.headers)
        scope.connection = scope.session.connection()

    def resolve_subject(self, scope: RequestScope) -> None:
        try:
            scope.subject = self.subject_resolver.resolve(scope.request)
        except (NoToken, InvalidToken) as exc:
            scope.subject = None
            scope.subject_error = exc

    def authorize(self, scope: RequestScope) -> None:
        decision = self.gate.authorize(
            scope.snapshot,
            scope.endpoint,
            scope.attributes,
            scope.session,
            scope.subject,
            scope.subject_error,
        )
        scope.decision = decision
        logger.debug(
            f"{scope.endpoint.method} {scope.endpoint.path} subject="
            f"{scope.subject.id if scope.subject else None} decision={decision.kind.value} "
            f"reason={decision.reason}"
        )
        decision.raise_for_deny()

    def confirm_schema(self, scope: RequestScope) -> None:
        expected = scope.namespace.schema_name if scope.namespace else None
        bind = scope.session.get_bind() if scope.session is not None else None
        translate = (bind.get_execution_options().get("schema_translate_map") or {}) if bind else {}
        actual = translate.get(TENANT_SCHEMA)
        if scope.session is None or actual != expected:
            logger.error(
                f"Session namespace mismatch on {scope.endpoint.method} {scope.endpoint.path}: "
                f"expected {expected!r}, got {actual!r}"
            )
            raise InternalError()
        if scope.decision is None:
            scope.decision = Decision.allow("public endpoint")

    # --- driver ---

    def run_chain(self, scope: RequestScope) -> None:
        try:
            for step in self.build_chain(scope.endpoint):
                scope.steps_run.append(step.__name__)
                step(scope)
        finally:
            with scope.lock:
                scope.finished = True
                abandoned = scope.cancelled
            if abandoned:
                scope.close_session()

    def cancel_chain(self, scope: RequestScope) -> bool:
        """
        Interrupt a chain still running in its worker thread.

        Returns True when the worker is still running; it then owns closing
        the session.
        """
        with scope.lock:
            scope.cancelled = True
            if scope.finished:
                return False
            if scope.connection is not None:
                interrupt_statement(scope.connection)
            return True

    async def __call__(self, request: Request):
        snapshot = self.runtime.snapshot
        endpoint = snapshot.endpoints.get(*self.key)
        if endpoint is None:
            logger.error(f"No endpoint registered for {self.key}")
            raise InternalError()

        attributes = await self.request_factory(request)
        scope = RequestScope(
            endpoint=endpoint,
            snapshot=snapshot,
            attributes=attributes,
            request=request,
            headers={k.lower(): v for k, v in request.headers.items()},
        )
        owns_session = True
        try:
            try:
                await anyio.to_thread.run_sync(self.run_chain, scope, abandon_on_cancel=True)
            except anyio.get_cancelled_exc_class():
                owns_session = not self.cancel_chain(scope)
                logger.info(
                    f"{endpoint.method} {endpoint.path} cancelled during "
                    f"{scope.steps_run[-1] if scope.steps_run else 'setup'}"
                )
                raise

            # The request task owns its context copy; no reset needed.
            company_id_var.set(scope.namespace.company_id if scope.namespace else None)
            schema_name_var.set(scope.namespace.schema_name if scope.namespace else None)
            subject_id_var.set(scope.subject.id if scope.subject else None)
            setattr(request.state, SCOPE_STATE_KEY, scope)

            yield scope
        finally:
            if owns_session:
                scope.close_session()


def build_routes(
    router: APIRouter,
    runtime: AuthzRuntime,
    controllers: ControllerRegistry,
    tenant_gate: TenantSchemaGate,
    subject_resolver: SubjectResolver,
    *,
    gate: Optional[AuthorizationGate] = None,
    prefix: str = "",
) -> List[Endpoint]:
    """
    Register one route per endpoint of the current snapshot.

    Raises ControllerNotFound for an unknown controller name before any route
    is served; freezes the controller registry afterwards.
    """
    gate = gate or AuthorizationGate()
    endpoints = sorted(runtime.snapshot.endpoints, key=lambda e: (e.path, e.method))
    handlers = [(endpoint, controllers.resolve(endpoint.controller_name)) for endpoint in endpoints]

    for endpoint, handler in handlers:
        pipeline = EndpointPipeline(runtime, endpoint.key, tenant_gate, subject_resolver, gate)
        router.add_api_route(
            f"{prefix}{endpoint.path}",
            handler,
            methods=[endpoint.method],
            dependencies=[Depends(pipeline)],
            name=f"{endpoint.controller_name}:{endpoint.method}",
            summary=endpoint.description or None,
        )
    controllers.freeze()
    logger.info(f"Registered {len(handlers)} endpoint routes")
    return endpoints
