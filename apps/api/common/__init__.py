from .errors import (
    register_api_error_handlers,
    request_validation_error_handler,
    security_operation_error_handler,
    storefront_error_handler,
)

__all__ = [
    "register_api_error_handlers",
    "request_validation_error_handler",
    "security_operation_error_handler",
    "storefront_error_handler",
]
