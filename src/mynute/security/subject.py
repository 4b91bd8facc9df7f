"""
Subject resolution.

The authorization gate only consumes `SubjectResolver.resolve(request)`; the
JWT-backed resolver below is the default collaborator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional

from starlette.requests import Request

from mynute.config import get_settings
from mynute.exceptions import InvalidToken, NoToken
from mynute.security.auth.jwt import JWTError, decode_hs256

logger = logging.getLogger(__name__)

SUBJECT_KINDS = frozenset({"employee", "client"})


@dataclass(frozen=True)
class Subject:
    id: str
    company_id: Optional[str] = None
    roles: FrozenSet[str] = field(default_factory=frozenset)
    branches: FrozenSet[str] = field(default_factory=frozenset)
    kind: str = "employee"

    def attributes(self) -> Dict[str, Any]:
        """The `subject.*` namespace of the attribute context."""
        return {
            "id": self.id,
            "company_id": self.company_id,
            "roles": tuple(sorted(self.roles)),
            "branches": tuple(sorted(self.branches)),
            "kind": self.kind,
        }


class SubjectResolver:
    """Returns the authenticated Subject, or raises NoToken / InvalidToken."""

    def resolve(self, request: Request) -> Subject:  # pragma: no cover
        raise NotImplementedError


def get_bearer_token(request: Request, header: Optional[str] = None) -> Optional[str]:
    auth = request.headers.get(header or get_settings().AUTH_HEADER)
    if not auth:
        return None
    parts = auth.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1].strip() or None


def _string_set(raw: Any) -> FrozenSet[str]:
    if raw is None:
        return frozenset()
    if not isinstance(raw, (list, tuple)):
        raise InvalidToken("Token claim must be a list")
    return frozenset(str(item) for item in raw)


class JWTSubjectResolver(SubjectResolver):
    def __init__(self, *, secret: Optional[str] = None, leeway_seconds: Optional[int] = None):
        settings = get_settings()
        self.secret = secret or settings.JWT_SECRET_KEY
        self.leeway_seconds = (
            settings.AUTH_LEEWAY_SECONDS if leeway_seconds is None else leeway_seconds
        )

    def resolve(self, request: Request) -> Subject:
        raw_header = request.headers.get(get_settings().AUTH_HEADER)
        if not raw_header or not raw_header.strip():
            raise NoToken()
        token = get_bearer_token(request)
        if not token:
            raise InvalidToken("Authorization header is not a bearer token")

        try:
            payload = decode_hs256(token, secret=self.secret, leeway_seconds=self.leeway_seconds)
        except JWTError as e:
            raise InvalidToken(str(e)).with_error(e) from e

        return self.subject_from_claims(payload)

    @staticmethod
    def subject_from_claims(payload: Dict[str, Any]) -> Subject:
        sub = payload.get("sub")
        if not sub:
            raise InvalidToken("Invalid token claims")
        kind = payload.get("kind") or "employee"
        if kind not in SUBJECT_KINDS:
            raise InvalidToken(f"Unknown subject kind '{kind}'")
        company_id = payload.get("company_id") or None
        if kind == "employee" and not company_id:
            raise InvalidToken("Employee token without company_id")
        return Subject(
            id=str(sub),
            company_id=str(company_id) if company_id else None,
            roles=_string_set(payload.get("roles")),
            branches=_string_set(payload.get("branches")),
            kind=kind,
        )
