"""HTTP mapping for commerce errors.

Protean's own exceptions (ValidationError, ObjectNotFoundError, ...) are
handled by protean.integrations.fastapi.register_exception_handlers. This
module maps the commerce-specific classes. Gateway and inconsistency
failures get a generic message; their details only go to the log.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from commerce.errors import (
    CommerceError,
    ConflictError,
    ExternalGatewayError,
    InternalInconsistencyError,
)

logger = structlog.get_logger(__name__)

ERROR_STATUS_CODES = {
    ConflictError: 409,
    ExternalGatewayError: 502,
    InternalInconsistencyError: 500,
}

_GENERIC_MESSAGES = {
    ExternalGatewayError: "Payment provider error, please try again",
    InternalInconsistencyError: "Something went wrong, our team has been notified",
}


def _lookup(table: dict, exc: Exception, default=None):
    for cls in type(exc).__mro__:
        if cls in table:
            return table[cls]
    return default


async def commerce_error_handler(request: Request, exc: CommerceError) -> JSONResponse:
    status_code = _lookup(ERROR_STATUS_CODES, exc, 500)
    message = _lookup(_GENERIC_MESSAGES, exc)
    if message is None:
        content = {"error": exc.message, "error_type": type(exc).__name__}
        if isinstance(exc, ConflictError) and "current" in exc.details:
            content["current_status"] = exc.details["current"]
    else:
        logger.error(
            "Request failed",
            path=request.url.path,
            error_type=type(exc).__name__,
            error=exc.message,
            details=exc.details,
        )
        content = {"error": message, "error_type": type(exc).__name__}
    return JSONResponse(status_code=status_code, content=content)


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(CommerceError, commerce_error_handler)
