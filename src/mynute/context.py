from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass
from typing import Optional


company_id_var: ContextVar[Optional[str]] = ContextVar("company_id", default=None)
schema_name_var: ContextVar[Optional[str]] = ContextVar("schema_name", default=None)
subject_id_var: ContextVar[Optional[str]] = ContextVar("subject_id", default=None)


@dataclass(frozen=True)
class RequestContext:
    company_id: Optional[str]
    schema_name: Optional[str]
    subject_id: Optional[str]


def get_request_context() -> RequestContext:
    return RequestContext(
        company_id=company_id_var.get(),
        schema_name=schema_name_var.get(),
        subject_id=subject_id_var.get(),
    )
