from mynute.models.authz import EndpointRecord, PolicyRuleRecord, ResourceRecord
from mynute.models.base import TENANT_SCHEMA, Base
from mynute.models.client import Client
from mynute.models.company import Company
from mynute.models.tenant import Appointment, Branch, Employee, Service

__all__ = [
    "Base",
    "TENANT_SCHEMA",
    "Company",
    "Client",
    "ResourceRecord",
    "EndpointRecord",
    "PolicyRuleRecord",
    "Branch",
    "Employee",
    "Service",
    "Appointment",
]
