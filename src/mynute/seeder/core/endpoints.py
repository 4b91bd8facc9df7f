from mynute.models import EndpointRecord
from mynute.seeder.base import BaseSeeder
from mynute.seeder.registry import SeederRegistry

# (method, path, controller, resource, needs_tenant, deny_if_unauthorized, description)
ENDPOINTS = (
    ("GET", "/health", "health", None, False, False, "Service health"),
    ("GET", "/company/{id}", "get_company_by_id", "company", False, True, "Read a company"),
    ("POST", "/client", "create_client", None, False, False, "Client sign-up"),
    ("GET", "/client/{id}", "get_client_by_id", "client", False, True, "Read a client"),
    ("GET", "/client/email/{email}", "get_client_by_email", "client", False, True, "Read a client by email"),
    ("POST", "/branch", "create_branch", "company", True, True, "Create a branch"),
    ("GET", "/branch/{id}", "get_branch_by_id", "branch", True, True, "Read a branch"),
    ("GET", "/employee/{id}", "get_employee_by_id", "employee", True, True, "Read an employee"),
    ("GET", "/employee/email/{email}", "get_employee_by_email", "employee", True, True, "Read an employee by email"),
    ("GET", "/service/{id}", "get_service_by_id", "service", True, True, "Read a service"),
    ("GET", "/appointment/{id}", "get_appointment_by_id", "appointment", True, True, "Read an appointment"),
)


@SeederRegistry.register
class EndpointSeeder(BaseSeeder):
    """Seeds the persisted route table."""
    priority = 20

    def run(self):
        for method, path, controller, resource, needs_tenant, gated, description in ENDPOINTS:
            endpoint = (
                self.session.query(EndpointRecord).filter_by(method=method, path=path).first()
            )
            if endpoint is None:
                endpoint = EndpointRecord(method=method, path=path)
                self.session.add(endpoint)
                self.log(f"Created endpoint {method} {path}.")
            endpoint.controller_name = controller
            endpoint.resource = resource
            endpoint.needs_tenant = needs_tenant
            endpoint.deny_if_unauthorized = gated
            endpoint.description = description
