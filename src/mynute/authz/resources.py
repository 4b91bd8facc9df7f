"""
Resource Registry.

A Resource names a storage table and an ordered ladder of references telling
how a request points at one of its rows. Hydration fetches the row named by
the first reference (declaration order) whose key is present; every other
present reference must name that same row.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ValidationError
from sqlalchemy import Table, select
from sqlalchemy.orm import Session

from mynute.authz.attributes import RequestAttributes
from mynute.authz.conditions import MISSING
from mynute.database import find_table
from mynute.exceptions import ConfigurationError, ResourceNotFound, UnknownResourceError
from mynute.models import ResourceRecord
from mynute.models.base import TENANT_SCHEMA

logger = logging.getLogger(__name__)


class RequestLocation(str, enum.Enum):
    PATH = "path"
    QUERY = "query"
    BODY = "body"


@dataclass(frozen=True)
class ResourceReference:
    storage_key: str
    request_key: str
    request_location: RequestLocation


@dataclass(frozen=True)
class Resource:
    name: str
    storage_table: str
    references: Tuple[ResourceReference, ...]
    table: Table = field(compare=False, repr=False)

    @property
    def is_tenant_scoped(self) -> bool:
        return self.table.schema == TENANT_SCHEMA


class ReferenceSpec(BaseModel):
    storage_key: str
    request_key: str
    request_location: RequestLocation


def row_to_attributes(table: Table, row: Mapping[str, Any]) -> Dict[str, Any]:
    """Column-described serializer: every mapped column, nothing else."""
    return {column.name: row.get(column.name) for column in table.columns}


def _coerce(table: Table, storage_key: str, value: Any) -> Any:
    column = table.c[storage_key]
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value
    if isinstance(value, (list, tuple, dict)):
        raise ValueError(f"Cannot match {storage_key} against a {type(value).__name__}")
    if isinstance(value, python_type):
        return value
    if python_type is bool:
        raise ValueError(f"Cannot match boolean column {storage_key} against {value!r}")
    return python_type(value)


def _names_row(
    table: Table, reference: ResourceReference, raw_value: Any, row: Mapping[str, Any]
) -> bool:
    try:
        value = _coerce(table, reference.storage_key, raw_value)
    except (TypeError, ValueError, ArithmeticError):
        return False
    return row.get(reference.storage_key) == value


def build_resource(
    name: str, storage_table: str, references: Iterable[Mapping[str, Any]]
) -> Resource:
    table = find_table(storage_table)
    if table is None:
        raise UnknownResourceError(
            name, f"Resource '{name}' points at unknown table '{storage_table}'"
        )
    parsed: List[ResourceReference] = []
    for index, raw in enumerate(references, start=1):
        try:
            spec = ReferenceSpec.model_validate(raw)
        except ValidationError as exc:
            raise ConfigurationError(
                f"Resource '{name}' reference {index} is malformed",
                details={"resource": name, "reference": index},
            ).with_error(exc) from exc
        if spec.storage_key not in table.c:
            raise ConfigurationError(
                f"Resource '{name}' reference {index}: column '{spec.storage_key}' "
                f"does not exist on '{storage_table}'",
                details={"resource": name, "reference": index},
            )
        parsed.append(
            ResourceReference(
                storage_key=spec.storage_key,
                request_key=spec.request_key,
                request_location=spec.request_location,
            )
        )
    return Resource(name=name, storage_table=storage_table, references=tuple(parsed), table=table)


class ResourceRegistry:
    """Immutable name → Resource catalogue."""

    def __init__(self, resources: Iterable[Resource] = ()) -> None:
        by_name: Dict[str, Resource] = {}
        for resource in resources:
            if resource.name in by_name:
                raise ConfigurationError(f"Resource '{resource.name}' is defined twice")
            by_name[resource.name] = resource
        self._resources: Mapping[str, Resource] = MappingProxyType(by_name)

    @classmethod
    def load(cls, session: Session) -> "ResourceRegistry":
        records = session.query(ResourceRecord).order_by(ResourceRecord.name).all()
        registry = cls(
            build_resource(r.name, r.storage_table, r.references or []) for r in records
        )
        logger.info(f"Loaded {len(registry)} resources")
        return registry

    def __len__(self) -> int:
        return len(self._resources)

    def __contains__(self, name: object) -> bool:
        return name in self._resources

    def __iter__(self) -> Iterator[Resource]:
        return iter(self._resources.values())

    def get(self, name: str) -> Resource:
        resource = self._resources.get(name)
        if resource is None:
            raise UnknownResourceError(name)
        return resource

    @staticmethod
    def present(
        resource: Resource, request: RequestAttributes
    ) -> List[Tuple[ResourceReference, Any]]:
        """Every reference whose key is present in its location, in declaration order."""
        found = []
        for reference in resource.references:
            value = request.lookup(reference.request_location.value, reference.request_key)
            if value is not MISSING:
                found.append((reference, value))
        return found

    @classmethod
    def locate(
        cls, resource: Resource, request: RequestAttributes
    ) -> Optional[Tuple[ResourceReference, Any]]:
        """First reference (declaration order) whose key is present in its location."""
        found = cls.present(resource, request)
        return found[0] if found else None

    def hydrate(
        self, resource: Resource, request: RequestAttributes, session: Session
    ) -> Dict[str, Any]:
        """
        Fetch the row the request points at and return its columns.

        The session decides the namespace; it must already be bound to the
        request's tenant schema for tenant resources. A request naming two
        different rows (say `/client/{id}?id=...`) is refused as not found.
        """
        found = self.present(resource, request)
        if not found:
            return {}
        (reference, raw_value), others = found[0], found[1:]

        not_found = ResourceNotFound(
            details={"resource": resource.name, "key": reference.request_key}
        )
        try:
            value = _coerce(resource.table, reference.storage_key, raw_value)
        except (TypeError, ValueError, ArithmeticError) as exc:
            raise not_found.with_error(exc) from exc

        stmt = (
            select(resource.table)
            .where(resource.table.c[reference.storage_key] == value)
            .limit(2)
        )
        rows = session.execute(stmt).mappings().all()
        if not rows:
            raise not_found
        if len(rows) > 1:
            logger.warning(
                f"Resource '{resource.name}' matched several rows on "
                f"{reference.storage_key}; refusing to pick one"
            )
            raise not_found
        row = rows[0]
        for other, other_value in others:
            if not _names_row(resource.table, other, other_value, row):
                logger.warning(
                    f"Resource '{resource.name}': {other.request_location.value}."
                    f"{other.request_key} disagrees with "
                    f"{reference.request_location.value}.{reference.request_key}"
                )
                raise ResourceNotFound(
                    details={"resource": resource.name, "key": other.request_key}
                )
        return row_to_attributes(resource.table, row)
