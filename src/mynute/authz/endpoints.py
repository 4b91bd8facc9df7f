"""
Endpoint Registry, Controller Registry and the authorization runtime snapshot.

Endpoints are read once at startup; the resulting registries are immutable.
`AuthzRuntime.reload` rebuilds resources and policies into a new snapshot and
swaps it in one assignment, so a request never sees a half-built table.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from types import MappingProxyType
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from mynute.authz.policies import PolicyRepository
from mynute.authz.resources import Resource, ResourceRegistry
from mynute.config import get_settings
from mynute.database import table_exists
from mynute.exceptions import (
    ConfigurationError,
    ControllerNotFound,
    DuplicateEndpointError,
    UnknownResourceError,
)
from mynute.models import EndpointRecord
from mynute.models.base import utcnow

logger = logging.getLogger(__name__)

HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"})

Handler = Callable[..., object]
EndpointKey = Tuple[str, str]


@dataclass(frozen=True)
class Endpoint:
    id: str
    method: str
    path: str
    controller_name: str
    needs_tenant: bool = False
    deny_if_unauthorized: bool = False
    resource_name: Optional[str] = None
    description: str = ""
    resource: Optional[Resource] = field(default=None, compare=False, repr=False)

    @property
    def key(self) -> EndpointKey:
        return (self.method, self.path)

    @property
    def is_public(self) -> bool:
        return not self.deny_if_unauthorized


class ControllerRegistry:
    """
    Process-wide name → handler table.

    Populated by one initialization path, then frozen before routes are built.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, Handler] = {}
        self._frozen = False

    def register(self, handler: Handler, name: Optional[str] = None) -> Handler:
        if self._frozen:
            raise RuntimeError("Controller registry is frozen")
        key = name or handler.__name__
        existing = self._handlers.get(key)
        if existing is not None and existing is not handler:
            raise ConfigurationError(f"Controller '{key}' is already registered")
        self._handlers[key] = handler
        return handler

    def register_all(self, handlers: Iterable[Handler]) -> "ControllerRegistry":
        for handler in handlers:
            self.register(handler)
        return self

    def freeze(self) -> "ControllerRegistry":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def names(self) -> List[str]:
        return sorted(self._handlers)

    def resolve(self, controller_name: str) -> Handler:
        handler = self._handlers.get(controller_name)
        if handler is None:
            raise ControllerNotFound(controller_name)
        return handler


def _bind_resource(endpoint: Endpoint, resources: ResourceRegistry) -> Endpoint:
    if not endpoint.resource_name:
        return dataclasses.replace(endpoint, resource=None)
    if endpoint.resource_name not in resources:
        raise UnknownResourceError(
            endpoint.resource_name,
            f"Endpoint {endpoint.method} {endpoint.path} references unknown resource "
            f"'{endpoint.resource_name}'",
        )
    resource = resources.get(endpoint.resource_name)
    if resource.is_tenant_scoped and not endpoint.needs_tenant:
        raise ConfigurationError(
            f"Endpoint {endpoint.method} {endpoint.path} reads tenant resource "
            f"'{resource.name}' but does not require a company",
            details={"endpoint": endpoint.id, "resource": resource.name},
        )
    return dataclasses.replace(endpoint, resource=resource)


def endpoint_from_record(record: EndpointRecord) -> Endpoint:
    method = (record.method or "").upper()
    if method not in HTTP_METHODS:
        raise ConfigurationError(
            f"Endpoint {record.id} has unsupported method '{record.method}'",
            details={"endpoint": record.id},
        )
    if not record.path or not record.path.startswith("/"):
        raise ConfigurationError(
            f"Endpoint {record.id} path must start with '/': {record.path!r}",
            details={"endpoint": record.id},
        )
    return Endpoint(
        id=record.id,
        method=method,
        path=record.path,
        controller_name=record.controller_name,
        needs_tenant=bool(record.needs_tenant),
        deny_if_unauthorized=bool(record.deny_if_unauthorized),
        resource_name=record.resource or None,
        description=record.description or "",
    )


class EndpointRegistry:
    """Read-only route table keyed by (METHOD, path)."""

    def __init__(self, endpoints: Iterable[Endpoint], resources: ResourceRegistry) -> None:
        table: Dict[EndpointKey, Endpoint] = {}
        for endpoint in endpoints:
            if endpoint.key in table:
                raise DuplicateEndpointError(
                    f"Endpoint {endpoint.method} {endpoint.path} is declared more than once",
                    details={"method": endpoint.method, "path": endpoint.path},
                )
            table[endpoint.key] = _bind_resource(endpoint, resources)
        self._table: Mapping[EndpointKey, Endpoint] = MappingProxyType(table)

    @classmethod
    def load(
        cls,
        session: Session,
        resources: ResourceRegistry,
        *,
        retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ) -> "EndpointRegistry":
        settings = get_settings()
        attempts = max(1, retries if retries is not None else settings.ENDPOINT_LOAD_RETRIES)
        delay = (
            retry_delay
            if retry_delay is not None
            else settings.ENDPOINT_LOAD_RETRY_DELAY_SECONDS
        )

        bind = session.get_bind()
        for attempt in range(1, attempts + 1):
            if table_exists(bind, EndpointRecord.__tablename__):
                break
            if attempt == attempts:
                raise ConfigurationError(
                    f"Table '{EndpointRecord.__tablename__}' not found after {attempts} attempt(s)"
                )
            logger.warning(
                f"Endpoints table not found (attempt {attempt}/{attempts}); retrying in {delay}s"
            )
            time.sleep(delay)

        records = session.query(EndpointRecord).order_by(
            EndpointRecord.path, EndpointRecord.method
        ).all()
        registry = cls((endpoint_from_record(r) for r in records), resources)
        logger.info(f"Loaded {len(registry)} endpoints")
        return registry

    def rebind(self, resources: ResourceRegistry) -> "EndpointRegistry":
        return EndpointRegistry(self._table.values(), resources)

    def __len__(self) -> int:
        return len(self._table)

    def __iter__(self) -> Iterator[Endpoint]:
        return iter(self._table.values())

    def get(self, method: str, path: str) -> Optional[Endpoint]:
        return self._table.get((method.upper(), path))

    def unreachable(self, policies: PolicyRepository) -> List[Endpoint]:
        """Gated endpoints with zero bound rules; they deny everyone."""
        return [
            endpoint
            for endpoint in self._table.values()
            if endpoint.deny_if_unauthorized and not policies.rules_for(endpoint.id)
        ]


@dataclass(frozen=True)
class AuthzSnapshot:
    endpoints: EndpointRegistry
    resources: ResourceRegistry
    policies: PolicyRepository
    loaded_at: datetime = field(default_factory=utcnow)


def load_snapshot(
    session: Session,
    *,
    retries: Optional[int] = None,
    retry_delay: Optional[float] = None,
) -> AuthzSnapshot:
    resources = ResourceRegistry.load(session)
    endpoints = EndpointRegistry.load(
        session, resources, retries=retries, retry_delay=retry_delay
    )
    policies = PolicyRepository.load(session, endpoint_ids=[e.id for e in endpoints])
    snapshot = AuthzSnapshot(endpoints=endpoints, resources=resources, policies=policies)
    if get_settings().WARN_UNREACHABLE_ENDPOINTS:
        for endpoint in endpoints.unreachable(policies):
            logger.warning(
                f"Endpoint {endpoint.method} {endpoint.path} ({endpoint.controller_name}) "
                "is gated but has no policy rules; every request will be denied"
            )
    return snapshot


class AuthzRuntime:
    """Holder of the current snapshot; readers take `runtime.snapshot` once per request."""

    def __init__(self, snapshot: Optional[AuthzSnapshot] = None) -> None:
        self._snapshot = snapshot
        self._reload_lock = Lock()

    @property
    def loaded(self) -> bool:
        return self._snapshot is not None

    @property
    def snapshot(self) -> AuthzSnapshot:
        snapshot = self._snapshot
        if snapshot is None:
            raise RuntimeError("Authorization runtime is not loaded")
        return snapshot

    def load(self, session: Session, **kwargs) -> AuthzSnapshot:
        with self._reload_lock:
            self._snapshot = load_snapshot(session, **kwargs)
            return self._snapshot

    def reload(self, session: Session) -> AuthzSnapshot:
        """
        Rebuild resources and policies; the endpoint set itself is fixed until restart.

        On any configuration error the current snapshot stays in place.
        """
        with self._reload_lock:
            current = self.snapshot
            resources = ResourceRegistry.load(session)
            endpoints = current.endpoints.rebind(resources)
            policies = PolicyRepository.load(session, endpoint_ids=[e.id for e in endpoints])
            fresh = AuthzSnapshot(endpoints=endpoints, resources=resources, policies=policies)
            self._snapshot = fresh
            logger.info(
                f"Authorization snapshot reloaded: {len(resources)} resources, "
                f"{len(policies)} policy rules"
            )
            return fresh
