from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from pydantic import ValidationError
import traceback
from .logging import get_logger
from .responses import ResponseBuilder

logger = get_logger()


class AppError(Exception):
    """Base class for errors rendered as a typed API response.

    Subclasses pick the HTTP status and the ``error_type`` reported in the
    response meta. ``details`` are merged into the meta as-is.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_type: str = "APP_ERROR"
    default_message: str = "Request failed"
    default_code: str = "APP_ERROR"

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.error_code = error_code or self.default_code
        self.details = details
        super().__init__(self.message)


class DatabaseError(AppError):
    """Custom exception for database-related errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type = "DATABASE_ERROR"
    default_message = "A database error occurred"
    default_code = "DB_ERROR"


class BusinessLogicError(AppError):
    """Rejected input and business rule violations."""

    error_type = "BUSINESS_ERROR"
    default_code = "BLOC_ERROR"


class ConflictError(AppError):
    """Request is incompatible with the current state of a resource."""

    status_code = status.HTTP_409_CONFLICT
    error_type = "CONFLICT_ERROR"
    default_message = "Conflict"
    default_code = "CONFLICT"


class UserExistsError(ConflictError):
    """A credential already exists for the email being registered.

    Clients use the distinct error code to redirect the user to login.
    """

    default_message = "User already exists"
    default_code = "USER_EXISTS"

    def __init__(self, message: str = "User already exists"):
        super().__init__(message, "USER_EXISTS")


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = "AUTHENTICATION_ERROR"
    default_message = "Authentication failed"
    default_code = "AUTH_ERROR"


class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    error_type = "AUTHORIZATION_ERROR"
    default_message = "Access denied"
    default_code = "AUTHZ_ERROR"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    error_type = "NOT_FOUND_ERROR"
    default_message = "Resource not found"
    default_code = "NOT_FOUND"


def _format_validation_errors(errors) -> list:
    # Inputs are left out: they may carry passwords or national ID numbers
    return [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in errors
    ]


def setup_error_handlers(app: FastAPI):
    """Setup custom error handlers."""

    @app.exception_handler(AppError)
    async def app_exception_handler(request: Request, exc: AppError):
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(f"{exc.error_type}: {exc.error_code} - {exc.message}")

        return ResponseBuilder.error(
            request=request,
            message=exc.message,
            error_code=exc.error_code,
            status_code=exc.status_code,
            meta={"error_type": exc.error_type, **(exc.details or {})},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.warning(f"HTTP Exception: {exc.status_code} - {exc.detail}")
        return ResponseBuilder.error(
            request=request,
            message=str(exc.detail),
            error_code="HTTP_ERROR",
            status_code=exc.status_code,
            meta={"http_status": exc.status_code},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        formatted_errors = _format_validation_errors(exc.errors())
        logger.warning(f"Request Validation Error: {formatted_errors}")

        return ResponseBuilder.error(
            request=request,
            message="Request validation failed",
            errors=formatted_errors,
            error_code="VALIDATION_ERROR",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    # Raised by services that validate a raw body themselves
    @app.exception_handler(ValidationError)
    async def pydantic_validation_exception_handler(
        request: Request, exc: ValidationError
    ):
        formatted_errors = _format_validation_errors(exc.errors())
        logger.warning(f"Pydantic Validation Error: {formatted_errors}")

        return ResponseBuilder.error(
            request=request,
            message="Invalid payload",
            errors=formatted_errors,
            error_code="VALIDATION_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    # A unique constraint lost a race with a concurrent request
    @app.exception_handler(IntegrityError)
    async def integrity_exception_handler(request: Request, exc: IntegrityError):
        logger.warning(f"Integrity Error: {str(exc.orig)}")

        return ResponseBuilder.error(
            request=request,
            message="The resource was modified concurrently, please retry",
            error_code="CONFLICT",
            status_code=status.HTTP_409_CONFLICT,
            meta={"error_type": "CONFLICT_ERROR", "retryable": True},
        )

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"SQLAlchemy Error: {str(exc)}")

        # Don't expose internal database errors to users
        return ResponseBuilder.error(
            request=request,
            message="A database error occurred",
            error_code="DATABASE_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            meta={"error_type": "SQLALCHEMY_ERROR"},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle all other unhandled exceptions"""
        logger.error(f"Unhandled Exception: {str(exc)}")
        logger.error(f"Traceback: {traceback.format_exc()}")

        return ResponseBuilder.error(
            request=request,
            message="An internal server error occurred",
            error_code="INTERNAL_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            meta={"error_type": "INTERNAL_ERROR"},
        )
