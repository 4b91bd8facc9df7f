from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from mynute.authz.conditions import ConditionNode, parse_condition
from mynute.exceptions import ConfigurationError, InvalidConditionError
from mynute.models import PolicyRuleRecord

logger = logging.getLogger(__name__)

ALLOW = "Allow"


@dataclass(frozen=True)
class PolicyRule:
    """One named Allow condition tree bound to an endpoint."""

    id: str
    name: str
    endpoint_id: str
    conditions: ConditionNode
    description: str = ""
    effect: str = ALLOW


def rule_from_record(record: PolicyRuleRecord) -> PolicyRule:
    if (record.effect or ALLOW) != ALLOW:
        raise ConfigurationError(
            f"Policy '{record.name}' has effect '{record.effect}'; only '{ALLOW}' is supported",
            details={"policy": record.name},
        )
    try:
        conditions = parse_condition(record.conditions)
    except InvalidConditionError as exc:
        exc.message = f"Policy '{record.name}': {exc.message}"
        exc.details.setdefault("policy", record.name)
        raise
    return PolicyRule(
        id=record.id,
        name=record.name,
        endpoint_id=record.endpoint_id,
        conditions=conditions,
        description=record.description or "",
    )


class PolicyRepository:
    """Immutable endpoint_id → rules index."""

    def __init__(self, rules: Iterable[PolicyRule] = ()) -> None:
        grouped: Dict[str, List[PolicyRule]] = {}
        count = 0
        for rule in rules:
            grouped.setdefault(rule.endpoint_id, []).append(rule)
            count += 1
        self._by_endpoint: Mapping[str, Tuple[PolicyRule, ...]] = MappingProxyType(
            {endpoint_id: tuple(items) for endpoint_id, items in grouped.items()}
        )
        self._count = count

    @classmethod
    def load(cls, session: Session, *, endpoint_ids: Optional[Iterable[str]] = None) -> "PolicyRepository":
        query = session.query(PolicyRuleRecord)
        if endpoint_ids is not None:
            query = query.filter(PolicyRuleRecord.endpoint_id.in_(list(endpoint_ids)))
        records = query.order_by(
            PolicyRuleRecord.priority.desc(), PolicyRuleRecord.name
        ).all()
        repository = cls(rule_from_record(record) for record in records)
        logger.info(f"Loaded {len(repository)} policy rules")
        return repository

    def __len__(self) -> int:
        return self._count

    def rules_for(self, endpoint_id: str) -> Tuple[PolicyRule, ...]:
        return self._by_endpoint.get(endpoint_id, ())
