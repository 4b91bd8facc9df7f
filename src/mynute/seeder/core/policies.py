from mynute.authz.conditions import Or, dumps_condition
from mynute.models import EndpointRecord, PolicyRuleRecord
from mynute.seeder.base import BaseSeeder
from mynute.seeder.core import blocks
from mynute.seeder.registry import SeederRegistry

# (method, path, rule name, condition tree)
POLICIES = (
    ("GET", "/company/{id}", "CompanyMemberReadsCompany", blocks.COMPANY_SELF_MEMBERSHIP),
    ("GET", "/client/{id}", "ClientReadsSelf", blocks.CLIENT_SELF_ACCESS),
    ("GET", "/client/email/{email}", "ClientReadsSelfByEmail", blocks.CLIENT_SELF_ACCESS),
    ("POST", "/branch", "CompanyAdminCreatesBranch", blocks.COMPANY_ADMIN_OF_COMPANY),
    ("GET", "/branch/{id}", "InternalUserReadsBranch", blocks.COMPANY_INTERNAL_USER),
    (
        "GET",
        "/employee/{id}",
        "EmployeeSelfOrInternalUserReadsEmployee",
        blocks.EMPLOYEE_SELF_OR_INTERNAL_USER,
    ),
    (
        "GET",
        "/employee/email/{email}",
        "EmployeeSelfOrInternalUserReadsEmployeeByEmail",
        blocks.EMPLOYEE_SELF_OR_INTERNAL_USER,
    ),
    (
        "GET",
        "/service/{id}",
        "InternalUserOrClientReadsService",
        Or(blocks.COMPANY_INTERNAL_USER, blocks.IS_CLIENT),
    ),
    (
        "GET",
        "/appointment/{id}",
        "ParticipantsReadAppointment",
        Or(
            blocks.CLIENT_ACCESS,
            blocks.COMPANY_EMPLOYEE_ASSIGNED_EMPLOYEE,
            blocks.COMPANY_BRANCH_MANAGER_ASSIGNED_BRANCH,
            blocks.COMPANY_ADMIN,
        ),
    ),
)


@SeederRegistry.register
class PolicySeeder(BaseSeeder):
    """Binds the seeded endpoints to their Allow rules."""
    priority = 30

    def run(self):
        self.session.flush()
        for method, path, name, tree in POLICIES:
            endpoint = (
                self.session.query(EndpointRecord).filter_by(method=method, path=path).first()
            )
            if endpoint is None:
                raise RuntimeError(f"Endpoint {method} {path} must be seeded before its policies")
            rule = (
                self.session.query(PolicyRuleRecord)
                .filter_by(endpoint_id=endpoint.id, name=name)
                .first()
            )
            if rule is None:
                rule = PolicyRuleRecord(endpoint_id=endpoint.id, name=name)
                self.session.add(rule)
                self.log(f"Created policy '{name}'.")
            rule.effect = "Allow"
            rule.description = tree.description or name
            rule.conditions = dumps_condition(tree)
