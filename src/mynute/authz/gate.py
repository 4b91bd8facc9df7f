"""
Authorization Gate: the single place where "who can do what" is decided.

`authorize` walks a fixed sequence and returns one `Decision`; the pipeline
turns a deny decision into the matching error.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Type

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mynute.authz.attributes import AttributeContext, RequestAttributes, build_context
from mynute.authz.endpoints import AuthzSnapshot, Endpoint
from mynute.authz.evaluator import PolicyEvaluator
from mynute.exceptions import (
    InvalidToken,
    MynuteException,
    NoToken,
    ResourceNotFound,
    Unauthorized,
)
from mynute.security.subject import Subject

logger = logging.getLogger(__name__)


class DecisionKind(str, enum.Enum):
    ALLOW = "Allow"
    NO_TOKEN = "NoToken"
    INVALID_TOKEN = "InvalidToken"
    UNAUTHORIZED = "Unauthorized"
    RESOURCE_NOT_FOUND = "ResourceNotFound"


_DENY_ERRORS: Dict[DecisionKind, Type[MynuteException]] = {
    DecisionKind.NO_TOKEN: NoToken,
    DecisionKind.INVALID_TOKEN: InvalidToken,
    DecisionKind.UNAUTHORIZED: Unauthorized,
    DecisionKind.RESOURCE_NOT_FOUND: ResourceNotFound,
}


@dataclass(frozen=True)
class Decision:
    kind: DecisionKind
    reason: str = ""
    matched_rule: Optional[str] = None
    resource: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def allowed(self) -> bool:
        return self.kind is DecisionKind.ALLOW

    @classmethod
    def allow(cls, reason: str = "", *, matched_rule: Optional[str] = None, resource=None) -> "Decision":
        return cls(DecisionKind.ALLOW, reason, matched_rule, dict(resource or {}))

    @classmethod
    def deny(cls, kind: DecisionKind, reason: str = "") -> "Decision":
        if kind is DecisionKind.ALLOW:
            raise ValueError("deny() needs a deny kind")
        return cls(kind, reason)

    def raise_for_deny(self) -> None:
        if self.allowed:
            return
        # The reason stays in the logs; clients get the catalogue description.
        raise _DENY_ERRORS[self.kind]()


def _subject_error_kind(error: Optional[MynuteException]) -> DecisionKind:
    if isinstance(error, InvalidToken):
        return DecisionKind.INVALID_TOKEN
    return DecisionKind.NO_TOKEN


class AuthorizationGate:
    def __init__(self, evaluator: Optional[PolicyEvaluator] = None) -> None:
        self.evaluator = evaluator or PolicyEvaluator()

    def authorize(
        self,
        snapshot: AuthzSnapshot,
        endpoint: Endpoint,
        request: RequestAttributes,
        session: Session,
        subject: Optional[Subject],
        subject_error: Optional[MynuteException] = None,
    ) -> Decision:
        """
        1. public endpoint -> Allow
        2. no subject -> NoToken / InvalidToken
        3. hydrate the resource in the session's namespace (404 when the row is missing)
        4. build the attribute context
        5. zero rules -> Unauthorized
        6. any rule true -> Allow, otherwise Unauthorized
        """
        if endpoint.is_public:
            return Decision.allow("public endpoint")

        if subject is None:
            kind = _subject_error_kind(subject_error)
            return Decision.deny(kind, str(subject_error) if subject_error else "anonymous")

        resource_attrs: Dict[str, Any] = {}
        if endpoint.resource is not None:
            try:
                resource_attrs = snapshot.resources.hydrate(endpoint.resource, request, session)
            except ResourceNotFound:
                return Decision.deny(
                    DecisionKind.RESOURCE_NOT_FOUND, f"{endpoint.resource.name} not found"
                )
            except SQLAlchemyError:
                logger.warning(
                    f"Resource hydration failed for {endpoint.method} {endpoint.path}",
                    exc_info=True,
                )
                return Decision.deny(DecisionKind.UNAUTHORIZED, "resource hydration failed")

        context = build_context(subject.attributes(), resource_attrs, request)
        return self.evaluate_rules(snapshot, endpoint, context, resource_attrs)

    def evaluate_rules(
        self,
        snapshot: AuthzSnapshot,
        endpoint: Endpoint,
        context: AttributeContext,
        resource_attrs: Optional[Dict[str, Any]] = None,
    ) -> Decision:
        rules = snapshot.policies.rules_for(endpoint.id)
        if not rules:
            return Decision.deny(DecisionKind.UNAUTHORIZED, "no policy rules bound")

        evaluated: Tuple[str, ...] = ()
        for rule in rules:
            if self.evaluator.evaluate(rule.conditions, context):
                return Decision.allow(
                    f"matched {rule.name}", matched_rule=rule.name, resource=resource_attrs
                )
            evaluated += (rule.name,)
        return Decision.deny(
            DecisionKind.UNAUTHORIZED, f"no rule matched ({', '.join(evaluated)})"
        )
