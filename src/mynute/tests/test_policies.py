from types import SimpleNamespace

import pytest

from mynute.authz.conditions import And, Leaf, Operator, dumps_condition
from mynute.authz.policies import PolicyRepository, PolicyRule, rule_from_record
from mynute.database import get_db_session
from mynute.exceptions import ConfigurationError, InvalidConditionError
from mynute.models import EndpointRecord, PolicyRuleRecord

TREE = And(
    Leaf("subject.company_id", Operator.EQUALS, resource_attribute="resource.company_id"),
    Leaf("subject.roles", Operator.CONTAINS, value="owner"),
)


def _record(**overrides):
    values = dict(
        id="r1", name="OwnerOnly", endpoint_id="ep", effect="Allow",
        conditions=dumps_condition(TREE), description=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def test_rule_from_record_parses_tree():
    rule = rule_from_record(_record())
    assert rule.conditions == TREE
    assert rule.effect == "Allow"
    assert rule.description == ""


def test_deny_effect_is_rejected():
    with pytest.raises(ConfigurationError, match="only 'Allow'"):
        rule_from_record(_record(effect="Deny"))


def test_invalid_tree_names_the_policy():
    with pytest.raises(InvalidConditionError) as exc_info:
        rule_from_record(_record(name="Broken", conditions='{"leaf": {"attribute": "subject.id"}}'))
    assert str(exc_info.value).startswith("Policy 'Broken': ")
    assert exc_info.value.details["policy"] == "Broken"


def test_rules_for_groups_by_endpoint():
    leaf = Leaf("subject.id", Operator.IS_NOT_NULL)
    repo = PolicyRepository(
        [
            PolicyRule(id="1", name="A", endpoint_id="e1", conditions=leaf),
            PolicyRule(id="2", name="B", endpoint_id="e2", conditions=leaf),
            PolicyRule(id="3", name="C", endpoint_id="e1", conditions=leaf),
        ]
    )
    assert len(repo) == 3
    assert [r.name for r in repo.rules_for("e1")] == ["A", "C"]
    assert repo.rules_for("unknown") == ()


def test_load_orders_by_priority_then_name(engine):
    leaf = dumps_condition(Leaf("subject.id", Operator.IS_NOT_NULL))
    with get_db_session(engine) as session:
        endpoint = EndpointRecord(method="GET", path="/x", controller_name="x", deny_if_unauthorized=True)
        other = EndpointRecord(method="GET", path="/y", controller_name="y", deny_if_unauthorized=True)
        session.add_all([endpoint, other])
        session.flush()
        session.add_all(
            [
                PolicyRuleRecord(name="Zeta", endpoint_id=endpoint.id, conditions=leaf),
                PolicyRuleRecord(name="Alpha", endpoint_id=endpoint.id, conditions=leaf),
                PolicyRuleRecord(name="Urgent", endpoint_id=endpoint.id, conditions=leaf, priority=10),
                PolicyRuleRecord(name="Elsewhere", endpoint_id=other.id, conditions=leaf),
            ]
        )
        endpoint_id = endpoint.id

    with get_db_session(engine) as session:
        repo = PolicyRepository.load(session, endpoint_ids=[endpoint_id])
    assert len(repo) == 3
    assert [r.name for r in repo.rules_for(endpoint_id)] == ["Urgent", "Alpha", "Zeta"]
