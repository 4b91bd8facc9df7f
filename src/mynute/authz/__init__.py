from mynute.authz.attributes import AttributeContext, RequestAttributes, build_context
from mynute.authz.conditions import (
    And,
    ConditionNode,
    Leaf,
    LogicType,
    Operator,
    Or,
    dump_condition,
    dumps_condition,
    parse_condition,
)
from mynute.authz.endpoints import (
    AuthzRuntime,
    AuthzSnapshot,
    ControllerRegistry,
    Endpoint,
    EndpointRegistry,
    load_snapshot,
)
from mynute.authz.evaluator import PolicyEvaluator
from mynute.authz.gate import AuthorizationGate, Decision, DecisionKind
from mynute.authz.policies import PolicyRepository, PolicyRule
from mynute.authz.resources import Resource, ResourceReference, ResourceRegistry
from mynute.authz.tenancy import StorageNamespace, TenantSchemaGate

__all__ = [
    "AttributeContext",
    "RequestAttributes",
    "build_context",
    "And",
    "Or",
    "Leaf",
    "ConditionNode",
    "LogicType",
    "Operator",
    "parse_condition",
    "dump_condition",
    "dumps_condition",
    "AuthzRuntime",
    "AuthzSnapshot",
    "ControllerRegistry",
    "Endpoint",
    "EndpointRegistry",
    "load_snapshot",
    "PolicyEvaluator",
    "AuthorizationGate",
    "Decision",
    "DecisionKind",
    "PolicyRepository",
    "PolicyRule",
    "Resource",
    "ResourceReference",
    "ResourceRegistry",
    "StorageNamespace",
    "TenantSchemaGate",
]
