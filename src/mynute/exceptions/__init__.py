from mynute.exceptions.handlers import (
    ConfigurationError,
    ControllerNotFound,
    DuplicateEndpointError,
    InternalError,
    InvalidConditionError,
    InvalidToken,
    MynuteException,
    NoToken,
    ResourceNotFound,
    TenantHeaderInvalid,
    TenantHeaderMissing,
    Unauthorized,
    UnknownResourceError,
    register_exception_handlers,
)

__all__ = [
    "MynuteException",
    "ConfigurationError",
    "ControllerNotFound",
    "UnknownResourceError",
    "InvalidConditionError",
    "DuplicateEndpointError",
    "TenantHeaderMissing",
    "TenantHeaderInvalid",
    "NoToken",
    "InvalidToken",
    "Unauthorized",
    "ResourceNotFound",
    "InternalError",
    "register_exception_handlers",
]
