from mynute.authz.endpoints import ControllerRegistry
from mynute.controllers.public import (
    create_client,
    get_client_by_email,
    get_client_by_id,
    get_company_by_id,
)
from mynute.controllers.system import health
from mynute.controllers.tenant import (
    create_branch,
    get_appointment_by_id,
    get_branch_by_id,
    get_employee_by_email,
    get_employee_by_id,
    get_service_by_id,
)

HANDLERS = (
    health,
    get_company_by_id,
    get_client_by_id,
    get_client_by_email,
    create_client,
    get_branch_by_id,
    create_branch,
    get_employee_by_id,
    get_employee_by_email,
    get_service_by_id,
    get_appointment_by_id,
)


def build_controller_registry() -> ControllerRegistry:
    """A fresh, unfrozen registry holding every built-in controller."""
    return ControllerRegistry().register_all(HANDLERS)
