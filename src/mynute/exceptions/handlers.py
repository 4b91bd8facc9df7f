from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI
from starlette.requests import Request
from starlette.responses import JSONResponse

from mynute.config import get_settings

logger = logging.getLogger(__name__)


class MynuteException(Exception):
    """
    Base exception carrying everything needed to build the client payload.

    - message/code/status_code/details
    - localized descriptions (`en`, `pt-BR`)
    - inner errors, only surfaced when ERROR_DETAILS_ENABLED is on
    """

    code = "MYNUTE_ERROR"
    status_code = 400
    description_en = "Request failed"
    description_br = "A requisição falhou"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
        inner_errors: Optional[List[str]] = None,
    ) -> None:
        self.message = message or self.description_en
        self.details: Dict[str, Any] = details or {}
        self.inner_errors: List[str] = list(inner_errors or [])
        super().__init__(self.message)

    def with_error(self, err: BaseException) -> "MynuteException":
        self.inner_errors.append(str(err))
        return self

    def user_message(self, language: Optional[str] = None) -> str:
        if language and language.strip().lower().startswith("pt"):
            return self.description_br
        return self.description_en

    def to_dict(
        self, *, language: Optional[str] = None, include_inner: bool = False
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "user_message": self.user_message(language),
            "description_en": self.description_en,
            "description_br": self.description_br,
            "http_status": self.status_code,
            "details": self.details,
        }
        if include_inner and self.inner_errors:
            payload["inner_error"] = list(self.inner_errors)
        return payload

    def __str__(self) -> str:  # pragma: no cover
        return self.message


# --- Configuration (startup-fatal) ---


class ConfigurationError(MynuteException):
    code = "CONFIGURATION_ERROR"
    status_code = 500
    description_en = "System configuration error"
    description_br = "Erro de configuração do sistema"


class ControllerNotFound(ConfigurationError):
    code = "CONTROLLER_NOT_FOUND"

    def __init__(self, controller_name: str, **kwargs: Any) -> None:
        super().__init__(
            f"Controller '{controller_name}' is not registered",
            details={"controller_name": controller_name},
            **kwargs,
        )


class UnknownResourceError(ConfigurationError):
    code = "UNKNOWN_RESOURCE"

    def __init__(self, resource_name: str, message: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(
            message or f"Resource '{resource_name}' is not defined",
            details={"resource": resource_name},
            **kwargs,
        )


class InvalidConditionError(ConfigurationError):
    code = "INVALID_CONDITION"


class DuplicateEndpointError(ConfigurationError):
    code = "DUPLICATE_ENDPOINT"


# --- Tenant resolution ---


class TenantHeaderMissing(MynuteException):
    code = "TENANT_HEADER_MISSING"
    status_code = 400
    description_en = "Company header is missing"
    description_br = "O cabeçalho da empresa está ausente"


class TenantHeaderInvalid(MynuteException):
    code = "TENANT_HEADER_INVALID"
    status_code = 400
    description_en = "Company header does not match any company"
    description_br = "O cabeçalho da empresa não corresponde a nenhuma empresa"


# --- Authentication ---


class NoToken(MynuteException):
    code = "NO_TOKEN"
    status_code = 401
    description_en = "No token provided"
    description_br = "Nenhum token fornecido"


class InvalidToken(MynuteException):
    code = "INVALID_TOKEN"
    status_code = 401
    description_en = "Invalid token"
    description_br = "Token inválido"


# --- Authorization ---


class Unauthorized(MynuteException):
    code = "UNAUTHORIZED"
    status_code = 403
    description_en = "You are not authorized to access this resource"
    description_br = "Você não está autorizado a acessar este recurso"


class ResourceNotFound(MynuteException):
    code = "RESOURCE_NOT_FOUND"
    status_code = 404
    description_en = "Resource not found"
    description_br = "Recurso não encontrado"


class InternalError(MynuteException):
    code = "INTERNAL_ERROR"
    status_code = 500
    description_en = "Internal server error while processing the request"
    description_br = "Erro interno do servidor ao processar a requisição"


async def _mynute_exception_handler(request: Request, exc: MynuteException) -> JSONResponse:
    settings = get_settings()
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    payload = exc.to_dict(
        language=request.headers.get("accept-language"),
        include_inner=settings.ERROR_DETAILS_ENABLED,
    )
    return JSONResponse(payload, status_code=exc.status_code)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MynuteException, _mynute_exception_handler)
