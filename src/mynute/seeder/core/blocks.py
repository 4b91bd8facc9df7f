"""
Reusable condition blocks for the seeded policy rules.

Each block is a plain `ConditionNode`; rules combine them with `And` / `Or`.
"""

from mynute.authz.conditions import And, Leaf, Operator, Or

OWNER = "owner"
GENERAL_MANAGER = "general_manager"
BRANCH_MANAGER = "branch_manager"
EMPLOYEE = "employee"
INTERNAL_ROLES = (OWNER, GENERAL_MANAGER, BRANCH_MANAGER, EMPLOYEE)


def has_role(role: str) -> Leaf:
    return Leaf(
        "subject.roles", Operator.CONTAINS, value=role, description=f"Subject has role {role}"
    )


def any_role(*roles: str) -> Or:
    return Or(*(has_role(role) for role in roles), description=f"Subject has one of {', '.join(roles)}")


COMPANY_MEMBERSHIP = Leaf(
    "subject.company_id",
    Operator.EQUALS,
    resource_attribute="resource.company_id",
    description="Subject belongs to the resource's company",
)

# For the company resource itself, whose key is `id`.
COMPANY_SELF_MEMBERSHIP = Leaf(
    "subject.company_id",
    Operator.EQUALS,
    resource_attribute="resource.id",
    description="Subject belongs to this company",
)

EMPLOYEE_SELF_ACCESS = And(
    COMPANY_MEMBERSHIP,
    Leaf("subject.id", Operator.EQUALS, resource_attribute="resource.id", description="Subject is the employee"),
    description="EmployeeSelfAccessCheck",
)

COMPANY_INTERNAL_USER = And(
    COMPANY_MEMBERSHIP,
    any_role(*INTERNAL_ROLES),
    description="CompanyInternalUserCheck",
)

COMPANY_OWNER = And(COMPANY_MEMBERSHIP, has_role(OWNER), description="CompanyOwnerCheck")

COMPANY_GENERAL_MANAGER = And(
    COMPANY_MEMBERSHIP, has_role(GENERAL_MANAGER), description="CompanyGeneralManagerCheck"
)

COMPANY_BRANCH_MANAGER = And(
    COMPANY_MEMBERSHIP, has_role(BRANCH_MANAGER), description="CompanyBranchManagerCheck"
)

COMPANY_ADMIN = And(
    COMPANY_MEMBERSHIP, any_role(OWNER, GENERAL_MANAGER), description="CompanyAdminCheck"
)

COMPANY_ADMIN_OF_COMPANY = And(
    COMPANY_SELF_MEMBERSHIP, any_role(OWNER, GENERAL_MANAGER), description="CompanyAdminOfCompanyCheck"
)

# The branch may come from the hydrated resource or from any request location.
ASSIGNED_TO_BRANCH = Or(
    Leaf("subject.branches", Operator.CONTAINS, resource_attribute="resource.branch_id"),
    Leaf("subject.branches", Operator.CONTAINS, resource_attribute="path.branch_id"),
    Leaf("subject.branches", Operator.CONTAINS, resource_attribute="body.branch_id"),
    Leaf("subject.branches", Operator.CONTAINS, resource_attribute="query.branch_id"),
    description="Subject is assigned to the branch",
)

COMPANY_BRANCH_MANAGER_ASSIGNED_BRANCH = And(
    COMPANY_BRANCH_MANAGER,
    ASSIGNED_TO_BRANCH,
    description="CompanyBranchManagerAssignedBranchCheck",
)

COMPANY_EMPLOYEE_ASSIGNED_EMPLOYEE = And(
    COMPANY_MEMBERSHIP,
    Leaf(
        "subject.id",
        Operator.EQUALS,
        resource_attribute="resource.employee_id",
        description="Subject is the assigned employee",
    ),
    description="CompanyEmployeeAssignedEmployeeCheck",
)

EMPLOYEE_SELF_OR_INTERNAL_USER = Or(
    EMPLOYEE_SELF_ACCESS, COMPANY_INTERNAL_USER, description="EmployeeSelfOrInternalUserCheck"
)

IS_CLIENT = And(
    Leaf("subject.company_id", Operator.IS_NULL, description="Subject has no company"),
    Leaf("subject.kind", Operator.EQUALS, value="client", description="Subject is a client"),
    description="ClientCheck",
)

CLIENT_SELF_ACCESS = And(
    IS_CLIENT,
    Leaf("subject.id", Operator.EQUALS, resource_attribute="resource.id", description="Subject is the client"),
    description="ClientSelfAccessCheck",
)

CLIENT_ACCESS = And(
    IS_CLIENT,
    Leaf(
        "subject.id",
        Operator.EQUALS,
        resource_attribute="resource.client_id",
        description="Record belongs to the client",
    ),
    description="ClientAccessCheck",
)
