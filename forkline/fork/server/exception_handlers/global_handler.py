"""
Exception Handlers for the Management Server.

- ``DeliveryRejected`` is an expected outcome: a delivery hook refused the
  message. It maps to 503 (temporary, SMTP 451) or 422 (permanent, SMTP 550)
  and keeps the SMTP code in the body.
- Every other unhandled exception is logged with its request context and
  answered with a 500 carrying an error ID.
"""

import traceback

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from forkline.core.logging_config import get_logger
from forkline.upstream.delivery import DeliveryRejected

logger = get_logger(__name__)


async def delivery_rejected_handler(request: Request, exc: DeliveryRejected) -> JSONResponse:
    """Translate a hook rejection into an HTTP error with the SMTP code."""
    status_code = (
        status.HTTP_503_SERVICE_UNAVAILABLE if exc.temporary else status.HTTP_422_UNPROCESSABLE_ENTITY
    )
    logger.info(f"Delivery rejected in {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": exc.reason,
            "smtp_code": exc.code,
            "temporary": exc.temporary,
            "source": exc.source,
        },
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler to log detailed error information.

    Args:
        request: The HTTP request that caused the exception
        exc: The exception that was raised

    Returns:
        JSONResponse with error details and error ID
    """
    error_id = id(exc)

    logger.error(
        f"Unhandled exception [{error_id}] in {request.method} {request.url.path}: {str(exc)}",
        exc_info=True,
        extra={
            "error_id": error_id,
            "method": request.method,
            "path": request.url.path,
            "query_params": dict(request.query_params),
            "client": request.client.host if request.client else "unknown",
            "error_type": type(exc).__name__,
            "traceback": traceback.format_exc(),
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_id": error_id,
            "error_type": type(exc).__name__,
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """
    Register exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(DeliveryRejected, delivery_rejected_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    logger.debug("Exception handlers registered successfully")
