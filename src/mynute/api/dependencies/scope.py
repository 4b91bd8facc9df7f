from __future__ import annotations

from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session
from starlette.requests import Request

from mynute.authz.pipeline import SCOPE_STATE_KEY, RequestScope
from mynute.exceptions import InternalError
from mynute.security.subject import Subject


def get_request_scope(request: Request) -> RequestScope:
    scope = getattr(request.state, SCOPE_STATE_KEY, None)
    if scope is None:
        # Route registered outside the endpoint pipeline.
        raise InternalError("Request scope is not available for this route")
    return scope


def get_db(scope: RequestScope = Depends(get_request_scope)) -> Session:
    """The session bound to the request's namespace (public or company schema)."""
    return scope.session


def get_optional_subject(scope: RequestScope = Depends(get_request_scope)) -> Optional[Subject]:
    return scope.subject
