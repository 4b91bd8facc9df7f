"""
Attribute Context Builder.

Merges the subject, the hydrated resource and the raw request locations into
one read-only namespace that condition leaves address with dotted paths
(`subject.company_id`, `resource.branch_id`, `path.id`, `body.items[*].id`).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from starlette.requests import Request

from mynute.authz.conditions import ATTRIBUTE_NAMESPACES, MISSING

logger = logging.getLogger(__name__)

_EMPTY: Mapping[str, Any] = MappingProxyType({})
_PROJECTION = "[*]"


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({str(k): _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, set):
        return frozenset(_freeze(v) for v in value)
    return value


def is_present(value: Any) -> bool:
    """A request key counts as present when it carries a non-empty value."""
    return value is not MISSING and value is not None and value != ""


@dataclass(frozen=True)
class RequestAttributes:
    """Raw request locations: path parameters, query parameters, JSON body."""

    path: Mapping[str, Any] = field(default_factory=dict)
    query: Mapping[str, Any] = field(default_factory=dict)
    body: Mapping[str, Any] = field(default_factory=dict)

    def location(self, name: str) -> Mapping[str, Any]:
        if name == "path":
            return self.path
        if name == "query":
            return self.query
        if name == "body":
            return self.body
        raise ValueError(f"Unknown request location: {name}")

    def lookup(self, location: str, key: str) -> Any:
        value = self.location(location).get(key, MISSING)
        return value if is_present(value) else MISSING

    @classmethod
    async def from_request(cls, request: Request) -> "RequestAttributes":
        query: Dict[str, Any] = {}
        for key in request.query_params.keys():
            values = request.query_params.getlist(key)
            query[key] = values[0] if len(values) == 1 else values

        body: Dict[str, Any] = {}
        content_type = request.headers.get("content-type", "")
        if "json" in content_type:
            raw = await request.body()
            if raw:
                try:
                    parsed = json.loads(raw)
                except ValueError:
                    logger.debug(f"Ignoring non-JSON body on {request.method} {request.url.path}")
                    parsed = None
                # Only object bodies expose `body.*` attributes.
                if isinstance(parsed, dict):
                    body = parsed

        return cls(path=dict(request.path_params), query=query, body=body)


class AttributeContext:
    """
    Per-request read-only map-of-maps.

    `resolve` never raises; an unknown namespace, a missing key or a step into
    a non-mapping all yield MISSING.
    """

    __slots__ = ("_namespaces",)

    def __init__(self, namespaces: Mapping[str, Mapping[str, Any]]) -> None:
        self._namespaces = MappingProxyType(
            {name: _freeze(namespaces.get(name) or {}) for name in ATTRIBUTE_NAMESPACES}
        )

    def __getitem__(self, namespace: str) -> Mapping[str, Any]:
        return self._namespaces.get(namespace, _EMPTY)

    def as_dict(self) -> Dict[str, Dict[str, Any]]:
        return {name: dict(values) for name, values in self._namespaces.items()}

    def resolve(self, path: str) -> Any:
        namespace, _, rest = path.partition(".")
        if namespace not in self._namespaces or not rest:
            return MISSING
        return _walk(self._namespaces[namespace], rest)


def _walk(value: Any, rest: str) -> Any:
    if _PROJECTION in rest:
        head, _, tail = rest.partition(_PROJECTION)
        items = _walk(value, head) if head else value
        if not isinstance(items, (list, tuple, set, frozenset)):
            return MISSING
        tail = tail.lstrip(".")
        if not tail:
            return tuple(items)
        projected = tuple(_walk(item, tail) for item in items)
        return tuple(v for v in projected if v is not MISSING)

    for part in rest.split("."):
        if isinstance(value, Mapping):
            value = value.get(part, MISSING)
        else:
            return MISSING
        if value is MISSING:
            return MISSING
    return value


def build_context(
    subject: Optional[Mapping[str, Any]],
    resource: Optional[Mapping[str, Any]],
    request: RequestAttributes,
) -> AttributeContext:
    return AttributeContext(
        {
            "subject": subject or {},
            "resource": resource or {},
            "path": request.path,
            "query": request.query,
            "body": request.body,
        }
    )
