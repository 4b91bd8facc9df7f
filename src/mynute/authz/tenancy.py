"""
Tenant Schema Gate.

Decides the storage namespace of a request and opens the session bound to it.
The selection is carried by the returned session only; nothing process-wide
changes, so concurrent requests for different companies cannot observe each
other's namespace.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import RLock
from typing import Mapping, Optional, Set, Tuple

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from mynute.authz.endpoints import Endpoint
from mynute.config import get_settings
from mynute.database import create_tenant_schema, open_session
from mynute.exceptions import TenantHeaderInvalid, TenantHeaderMissing
from mynute.models import Company

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageNamespace:
    company_id: Optional[str] = None
    schema_name: Optional[str] = None

    @property
    def is_public(self) -> bool:
        return self.schema_name is None


PUBLIC_NAMESPACE = StorageNamespace()


class TenantSchemaGate:
    def __init__(self, engine: Engine, *, header: Optional[str] = None) -> None:
        self.engine = engine
        self.header = (header or get_settings().TENANT_HEADER).lower()
        self._provisioned: Set[str] = set()
        self._lock = RLock()

    def resolve(self, endpoint: Endpoint, headers: Mapping[str, str]) -> StorageNamespace:
        if not endpoint.needs_tenant:
            return PUBLIC_NAMESPACE

        raw = headers.get(self.header)
        company_id = raw.strip() if raw else ""
        if not company_id:
            raise TenantHeaderMissing(details={"header": self.header})

        with open_session(self.engine) as lookup:
            company = lookup.get(Company, company_id)
            schema_name = company.schema_name if company is not None else None
        if not schema_name:
            raise TenantHeaderInvalid(details={"header": self.header})

        self._ensure_schema(schema_name)
        return StorageNamespace(company_id=company_id, schema_name=schema_name)

    def _ensure_schema(self, schema_name: str) -> None:
        # Dev convenience: provision a company schema once per process (create_all mode only).
        settings = get_settings()
        if settings.ENVIRONMENT != "dev" or settings.SCHEMA_MODE != "create_all":
            return
        with self._lock:
            if schema_name in self._provisioned:
                return
            create_tenant_schema(self.engine, schema_name)
            self._provisioned.add(schema_name)

    def open_session(self, namespace: StorageNamespace) -> Session:
        return open_session(self.engine, schema=namespace.schema_name)

    def acquire(
        self, endpoint: Endpoint, headers: Mapping[str, str]
    ) -> Tuple[StorageNamespace, Session]:
        namespace = self.resolve(endpoint, headers)
        session = self.open_session(namespace)
        logger.debug(
            f"{endpoint.method} {endpoint.path} bound to "
            f"{'public' if namespace.is_public else namespace.schema_name}"
        )
        return namespace, session
