"""
Condition trees for policy rules.

A tree is a tagged variant: `Leaf | And | Or`. Persisted trees are validated in
full when loaded (`parse_condition`), so a malformed rule stops the process at
startup instead of failing mid-request.

Wire format (one node):

    {
        "description": "...",
        "logic_type": "AND|OR",          # branch only
        "children": [<node>, ...],       # branch only
        "leaf": {                        # leaf only
            "attribute": "subject.company_id",
            "operator": "Equals|NotEquals|Contains|IsNull|IsNotNull",
            "description": "...",
            "value": <literal>,          # or
            "resource_attribute": "resource.company_id"
        }
    }
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, ValidationError

from mynute.exceptions import InvalidConditionError

ATTRIBUTE_NAMESPACES = ("subject", "resource", "path", "query", "body")


class _Missing:
    """Marker for "no value" (distinct from a literal None)."""

    _instance: ClassVar[Optional["_Missing"]] = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


class Operator(str, enum.Enum):
    EQUALS = "Equals"
    NOT_EQUALS = "NotEquals"
    CONTAINS = "Contains"
    IS_NULL = "IsNull"
    IS_NOT_NULL = "IsNotNull"


UNARY_OPERATORS = frozenset({Operator.IS_NULL, Operator.IS_NOT_NULL})


class LogicType(str, enum.Enum):
    AND = "AND"
    OR = "OR"


@dataclass(frozen=True)
class Leaf:
    attribute: str
    operator: Operator
    value: Any = MISSING
    resource_attribute: Optional[str] = None
    description: str = ""

    @property
    def has_value(self) -> bool:
        return self.value is not MISSING


@dataclass(frozen=True)
class _Branch:
    children: Tuple["ConditionNode", ...] = field(default_factory=tuple)
    description: str = ""

    logic_type: ClassVar[LogicType]

    def __init__(self, *children: "ConditionNode", description: str = "") -> None:
        object.__setattr__(self, "children", tuple(children))
        object.__setattr__(self, "description", description)


@dataclass(frozen=True, init=False)
class And(_Branch):
    logic_type: ClassVar[LogicType] = LogicType.AND


@dataclass(frozen=True, init=False)
class Or(_Branch):
    logic_type: ClassVar[LogicType] = LogicType.OR


ConditionNode = Union[Leaf, And, Or]


# --- wire schema ---


class LeafSpec(BaseModel):
    attribute: str = ""
    operator: str = ""
    description: str = ""
    value: Any = None
    resource_attribute: Optional[str] = None


class NodeSpec(BaseModel):
    description: str = ""
    logic_type: Optional[str] = None
    children: List["NodeSpec"] = Field(default_factory=list)
    leaf: Optional[LeafSpec] = None


NodeSpec.model_rebuild()


def _node_label(spec: NodeSpec, where: str) -> str:
    name = spec.description or (spec.leaf.description if spec.leaf else "")
    return f"{where} ({name!r})" if name else where


def _check_path(path: str, label: str, field_name: str) -> None:
    head, sep, tail = path.partition(".")
    if not sep or not tail or head not in ATTRIBUTE_NAMESPACES:
        raise InvalidConditionError(
            f"Condition {label}: {field_name} '{path}' must start with one of "
            f"{', '.join(ns + '.' for ns in ATTRIBUTE_NAMESPACES)}",
            details={"node": label, field_name: path},
        )


def _build_leaf(leaf: LeafSpec, label: str) -> Leaf:
    if not leaf.attribute or not leaf.operator:
        raise InvalidConditionError(
            f"Condition {label}: leaf requires both attribute and operator",
            details={"node": label},
        )
    _check_path(leaf.attribute, label, "attribute")
    try:
        operator = Operator(leaf.operator)
    except ValueError:
        raise InvalidConditionError(
            f"Condition {label}: unknown operator '{leaf.operator}'",
            details={"node": label, "operator": leaf.operator},
        ) from None

    has_value = leaf.value is not None
    has_ref = bool(leaf.resource_attribute)
    null_literal = leaf.value is None and "value" in leaf.model_fields_set
    if operator in UNARY_OPERATORS:
        if has_value or has_ref:
            raise InvalidConditionError(
                f"Condition {label}: {operator.value} takes neither value nor resource_attribute",
                details={"node": label},
            )
    elif null_literal and not has_ref:
        raise InvalidConditionError(
            f"Condition {label}: {operator.value} cannot compare against a null literal; "
            f"use IsNull or IsNotNull",
            details={"node": label},
        )
    elif has_value == has_ref:
        raise InvalidConditionError(
            f"Condition {label}: {operator.value} needs exactly one of value or resource_attribute",
            details={"node": label},
        )
    if has_ref:
        _check_path(leaf.resource_attribute, label, "resource_attribute")

    return Leaf(
        attribute=leaf.attribute,
        operator=operator,
        value=leaf.value if has_value else MISSING,
        resource_attribute=leaf.resource_attribute or None,
        description=leaf.description,
    )


def _build(spec: NodeSpec, where: str) -> ConditionNode:
    label = _node_label(spec, where)
    is_branch = spec.logic_type is not None or bool(spec.children)
    if spec.leaf is not None and is_branch:
        raise InvalidConditionError(
            f"Condition {label}: a node is either a leaf or a branch, not both",
            details={"node": label},
        )
    if spec.leaf is not None:
        return _build_leaf(spec.leaf, label)
    if not is_branch:
        raise InvalidConditionError(
            f"Condition {label}: node has neither leaf nor children",
            details={"node": label},
        )
    if spec.logic_type not in (LogicType.AND.value, LogicType.OR.value):
        raise InvalidConditionError(
            f"Condition {label}: logic_type must be AND or OR, got {spec.logic_type!r}",
            details={"node": label},
        )
    if not spec.children:
        raise InvalidConditionError(
            f"Condition {label}: {spec.logic_type} node has no children",
            details={"node": label},
        )
    children = [
        _build(child, f"{where}.children[{index}]")
        for index, child in enumerate(spec.children, start=1)
    ]
    node_cls = And if spec.logic_type == LogicType.AND.value else Or
    return node_cls(*children, description=spec.description)


def parse_condition(raw: Union[str, bytes, Dict[str, Any]]) -> ConditionNode:
    """Validate a serialized tree and turn it into `Leaf | And | Or` nodes."""
    try:
        if isinstance(raw, (str, bytes)):
            spec = NodeSpec.model_validate_json(raw)
        else:
            spec = NodeSpec.model_validate(raw)
    except ValidationError as exc:
        raise InvalidConditionError(
            f"Condition tree is not well formed: {exc.error_count()} error(s)"
        ).with_error(exc) from exc
    return _build(spec, "root")


def dump_condition(node: ConditionNode) -> Dict[str, Any]:
    if isinstance(node, Leaf):
        leaf: Dict[str, Any] = {
            "attribute": node.attribute,
            "operator": node.operator.value,
        }
        if node.description:
            leaf["description"] = node.description
        if node.has_value:
            leaf["value"] = node.value
        if node.resource_attribute:
            leaf["resource_attribute"] = node.resource_attribute
        return {"leaf": leaf}
    payload: Dict[str, Any] = {
        "logic_type": node.logic_type.value,
        "children": [dump_condition(child) for child in node.children],
    }
    if node.description:
        payload["description"] = node.description
    return payload


def dumps_condition(node: ConditionNode, *, indent: Optional[int] = None) -> str:
    return json.dumps(dump_condition(node), indent=indent, ensure_ascii=False)
