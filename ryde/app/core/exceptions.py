"""
Custom exceptions and error handlers for consistent error responses.

Every failure leaves the API in the same envelope as a success:
``{"success": false, "data": {"error_code": ..., "details": ...}, "message": ...}``.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from typing import Any, Dict

logger = logging.getLogger("ryde.errors")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ValidationError(AppException):
    """Raised for missing or malformed input."""

    def __init__(self, message: str = "Invalid request", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class ConflictError(AppException):
    """Raised when a unique resource already exists."""

    def __init__(self, message: str = "User already exists"):
        super().__init__(
            message=message,
            error_code="ERR_CONFLICT",
            status_code=status.HTTP_409_CONFLICT
        )


class NotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, message: str = "User does not exist", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND",
            status_code=status.HTTP_404_NOT_FOUND,
            details=details
        )


class StateError(AppException):
    """Raised when an account is not in a state that allows the action."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="ERR_STATE",
            status_code=status.HTTP_400_BAD_REQUEST
        )


class AuthError(AppException):
    """Raised for authentication failures."""

    def __init__(self, message: str = "Unauthorized request"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


class AuthorizationError(AppException):
    """Raised when user doesn't have permission to perform an action."""

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            message=message,
            error_code="ERR_FORBIDDEN",
            status_code=status.HTTP_403_FORBIDDEN
        )


def error_envelope(status_code: int, error_code: str, message: str, details: Dict[str, Any] = None) -> JSONResponse:
    """Build the failure envelope."""
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({
            "success": False,
            "data": {"error_code": error_code, "details": details or {}},
            "message": message,
        })
    )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    headers = None
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    response = error_envelope(exc.status_code, exc.error_code, exc.message, exc.details)
    if headers:
        response.headers.update(headers)
    return response


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_AUTH",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        405: "ERR_METHOD_NOT_ALLOWED",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")
    return error_envelope(exc.status_code, error_code, str(exc.detail))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors (malformed input is a 400)."""
    return error_envelope(
        status.HTTP_400_BAD_REQUEST,
        "ERR_VALIDATION",
        "Validation error",
        {"errors": exc.errors()},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return error_envelope(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "ERR_INTERNAL_SERVER",
        "An internal server error occurred",
    )
