"""
Global exception handlers.
Every failure leaves the API in the same envelope as a success, with
success=false / status="ERROR" and data=null (validation errors list the fields).
"""
import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.schemas.common import error_body

logger = logging.getLogger(__name__)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for error in exc.errors():
        # Field name is the last element of 'loc'
        field = str(error["loc"][-1]) if error["loc"] else "unknown"
        errors.append({"field": field, "message": error["msg"]})

    message = f"{errors[0]['field']}: {errors[0]['message']}" if errors else "Validation Error"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(message, {"errors": errors}),
    )


async def operational_error_handler(request: Request, exc: OperationalError):
    # Timeouts and dropped connections are transient: the caller may retry
    logger.error(f"Data store unavailable on {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=error_body("Data store temporarily unavailable, please retry"),
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"Data store error on {request.method} {request.url.path}")
    detail = getattr(exc, "orig", None) or exc
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(f"Internal error: {detail}"),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error"),
    )


def register_exception_handlers(app) -> None:
    """Order matters for SQLAlchemy: the OperationalError subclass goes first."""
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(OperationalError, operational_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
