import json

import pytest

from mynute.authz.attributes import AttributeContext
from mynute.authz.conditions import (
    MISSING,
    And,
    Leaf,
    Operator,
    Or,
    dump_condition,
    dumps_condition,
    parse_condition,
)
from mynute.authz.evaluator import PolicyEvaluator
from mynute.exceptions import InvalidConditionError
from mynute.seeder.core import blocks


def _leaf(attribute="subject.id", operator="Equals", **extra):
    payload = {"attribute": attribute, "operator": operator}
    payload.update(extra)
    return {"leaf": payload}


def test_parse_leaf_with_literal():
    node = parse_condition(_leaf(value="abc", description="id check"))
    assert node == Leaf("subject.id", Operator.EQUALS, value="abc", description="id check")


def test_parse_leaf_with_resource_attribute():
    node = parse_condition(_leaf(resource_attribute="resource.id"))
    assert isinstance(node, Leaf)
    assert node.resource_attribute == "resource.id"
    assert node.value is MISSING


def test_parse_branch_keeps_child_order():
    node = parse_condition(
        {
            "logic_type": "OR",
            "description": "either",
            "children": [_leaf(value="a"), _leaf(value="b")],
        }
    )
    assert isinstance(node, Or)
    assert [child.value for child in node.children] == ["a", "b"]


def test_parse_accepts_json_text():
    raw = json.dumps({"logic_type": "AND", "children": [_leaf("subject.company_id", "IsNotNull")]})
    node = parse_condition(raw)
    assert isinstance(node, And)
    assert node.children[0].operator is Operator.IS_NOT_NULL


@pytest.mark.parametrize(
    "raw, fragment",
    [
        ({"logic_type": "AND", "children": []}, "has no children"),
        ({"logic_type": "OR"}, "has no children"),
        ({}, "neither leaf nor children"),
        ({"logic_type": "XOR", "children": [_leaf(value=1)]}, "logic_type must be AND or OR"),
        (
            {"logic_type": "AND", "children": [_leaf(value=1)], **_leaf(value=2)},
            "either a leaf or a branch",
        ),
        (_leaf(attribute="", value=1), "requires both attribute and operator"),
        (_leaf(operator="", value=1), "requires both attribute and operator"),
        (_leaf(operator="GreaterThan", value=1), "unknown operator"),
        (_leaf(), "exactly one of value or resource_attribute"),
        (_leaf(value=None), "use IsNull or IsNotNull"),
        (_leaf(operator="NotEquals", value=None), "cannot compare against a null literal"),
        (_leaf(value=1, resource_attribute="resource.id"), "exactly one of value"),
        (_leaf(operator="IsNull", value=1), "takes neither"),
        (_leaf(operator="IsNotNull", resource_attribute="resource.id"), "takes neither"),
        (_leaf(attribute="user.id", value=1), "must start with one of"),
        (_leaf(attribute="subject", value=1), "must start with one of"),
        (_leaf(resource_attribute="other.id"), "must start with one of"),
    ],
)
def test_parse_rejects_malformed_trees(raw, fragment):
    with pytest.raises(InvalidConditionError) as exc_info:
        parse_condition(raw)
    assert fragment in exc_info.value.message


def test_error_names_offending_child_and_description():
    raw = {
        "logic_type": "AND",
        "description": "outer",
        "children": [
            _leaf(value="ok"),
            {"logic_type": "OR", "description": "inner", "children": []},
        ],
    }
    with pytest.raises(InvalidConditionError) as exc_info:
        parse_condition(raw)
    assert "root.children[2]" in exc_info.value.message
    assert "'inner'" in exc_info.value.message


def test_parse_rejects_wrong_shapes():
    with pytest.raises(InvalidConditionError):
        parse_condition("not json at all")
    with pytest.raises(InvalidConditionError):
        parse_condition({"children": "nope", "logic_type": "AND"})


def _battery():
    return [
        AttributeContext({}),
        AttributeContext(
            {
                "subject": {"id": "e1", "company_id": "c1", "roles": ["employee"], "kind": "employee"},
                "resource": {"id": "e1", "company_id": "c1"},
            }
        ),
        AttributeContext(
            {
                "subject": {"id": "e2", "company_id": "c1", "roles": ["owner"], "kind": "employee"},
                "resource": {"id": "e1", "company_id": "c1", "branch_id": "b1"},
            }
        ),
        AttributeContext(
            {
                "subject": {"id": "e3", "company_id": "c2", "roles": ["branch_manager"], "branches": ["b1"]},
                "resource": {"id": "a1", "company_id": "c1", "branch_id": "b1"},
                "path": {"branch_id": "b1"},
            }
        ),
        AttributeContext(
            {
                "subject": {"id": "cl1", "company_id": None, "kind": "client"},
                "resource": {"id": "cl1", "client_id": "cl1"},
            }
        ),
    ]


@pytest.mark.parametrize(
    "tree",
    [
        blocks.EMPLOYEE_SELF_OR_INTERNAL_USER,
        blocks.COMPANY_BRANCH_MANAGER_ASSIGNED_BRANCH,
        blocks.CLIENT_SELF_ACCESS,
        Or(blocks.CLIENT_ACCESS, blocks.COMPANY_ADMIN),
        Leaf("subject.roles", Operator.CONTAINS, value="owner"),
    ],
)
def test_round_trip_is_operationally_identical(tree):
    evaluator = PolicyEvaluator()
    compact = parse_condition(dumps_condition(tree))
    pretty = parse_condition(dumps_condition(tree, indent=4))

    assert compact == tree
    assert pretty == tree
    for context in _battery():
        expected = evaluator.evaluate(tree, context)
        assert evaluator.evaluate(compact, context) is expected
        assert evaluator.evaluate(pretty, context) is expected


def test_dump_omits_missing_value():
    payload = dump_condition(Leaf("subject.company_id", Operator.IS_NULL))
    assert payload == {"leaf": {"attribute": "subject.company_id", "operator": "IsNull"}}


def test_and_or_are_distinct_nodes():
    leaf = Leaf("subject.id", Operator.IS_NOT_NULL)
    assert And(leaf) != Or(leaf)
    assert And(leaf, description="x") == And(leaf, description="x")
