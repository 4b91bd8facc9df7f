"""
Policy Evaluator.

Evaluates `Leaf | And | Or` trees against an AttributeContext. Every input has a
defined boolean result; absent attributes and comparison errors are False
(IsNull excepted), empty AND/OR nodes are False.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from numbers import Number
from typing import Any, Callable, Dict

from mynute.authz.attributes import AttributeContext
from mynute.authz.conditions import MISSING, And, ConditionNode, Leaf, Operator, Or

logger = logging.getLogger(__name__)

_COLLECTIONS = (list, tuple, set, frozenset)
_NIL_UUID = uuid.UUID(int=0)


def is_null(value: Any) -> bool:
    """Absent, None, empty string/collection, zero, False or the nil UUID."""
    if value is MISSING or value is None:
        return True
    if isinstance(value, bool):
        return value is False
    if isinstance(value, (str, bytes)):
        return len(value) == 0 or value == str(_NIL_UUID)
    if isinstance(value, uuid.UUID):
        return value == _NIL_UUID
    if isinstance(value, Number):
        return value == 0
    if hasattr(value, "__len__"):
        return len(value) == 0
    return False


def values_equal(left: Any, right: Any) -> bool:
    """
    Equality across the loose types that reach a context (JSON, ORM rows, claims).

    - numbers compare numerically (`1 == 1.0 == Decimal("1")`)
    - UUIDs compare with their string form, case-insensitively
    - booleans only equal booleans
    """
    if left is MISSING or right is MISSING or left is None or right is None:
        return False
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, uuid.UUID) or isinstance(right, uuid.UUID):
        return str(left).strip().lower() == str(right).strip().lower()
    if isinstance(left, Number) and isinstance(right, Number):
        if isinstance(left, Decimal) or isinstance(right, Decimal):
            return Decimal(str(left)) == Decimal(str(right))
        return left == right
    if type(left) is not type(right) and not (
        isinstance(left, str) and isinstance(right, str)
    ):
        return False
    return left == right


def _contains(collection: Any, needle: Any) -> bool:
    if not isinstance(collection, _COLLECTIONS):
        return False
    if needle is MISSING or needle is None:
        return False
    return any(values_equal(item, needle) for item in collection)


class PolicyEvaluator:
    """Stateless; one instance can serve every request."""

    def __init__(self) -> None:
        self._node_evaluators: Dict[type, Callable[[Any, AttributeContext], bool]] = {
            And: self._eval_and,
            Or: self._eval_or,
            Leaf: self._eval_leaf,
        }
        self._operators: Dict[Operator, Callable[[Any, Any], bool]] = {
            Operator.EQUALS: values_equal,
            Operator.NOT_EQUALS: lambda a, e: (
                a is not MISSING
                and e is not MISSING
                and a is not None
                and e is not None
                and not values_equal(a, e)
            ),
            Operator.CONTAINS: _contains,
            Operator.IS_NULL: lambda a, _e: is_null(a),
            Operator.IS_NOT_NULL: lambda a, _e: not is_null(a),
        }

    def evaluate(self, node: ConditionNode, context: AttributeContext) -> bool:
        evaluator_func = self._node_evaluators.get(type(node))
        if not evaluator_func:
            logger.warning(f"Unknown condition node type: {type(node).__name__}")
            return False
        return evaluator_func(node, context)

    def _eval_and(self, node: And, context: AttributeContext) -> bool:
        if not node.children:
            return False
        return all(self.evaluate(child, context) for child in node.children)

    def _eval_or(self, node: Or, context: AttributeContext) -> bool:
        if not node.children:
            return False
        return any(self.evaluate(child, context) for child in node.children)

    def _eval_leaf(self, leaf: Leaf, context: AttributeContext) -> bool:
        op_func = self._operators.get(leaf.operator)
        if not op_func:
            logger.warning(f"Unknown operator: {leaf.operator}")
            return False

        actual = context.resolve(leaf.attribute)
        if leaf.resource_attribute:
            expected = context.resolve(leaf.resource_attribute)
        else:
            expected = leaf.value

        try:
            return bool(op_func(actual, expected))
        except Exception as e:
            logger.error(
                f"Condition comparison error for '{leaf.attribute}' {leaf.operator.value}: {e}"
            )
            return False
