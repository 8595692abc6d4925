"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger("paygate.errors")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class InsufficientPermissionsError(AppException):
    """Raised when user doesn't have permission to perform an action."""

    def __init__(self, message: str = "Insufficient permissions", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class AuthenticationError(AppException):
    """Raised for authentication failures."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


class BusinessRuleError(AppException):
    """Raised when a request is well-formed but breaks a business rule."""

    def __init__(self, message: str, error_code: str = "ERR_RULE_001", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class InsufficientBalanceError(BusinessRuleError):
    """Raised when a balance cannot cover the requested deduction."""

    def __init__(self, message: str = "Insufficient balance", details: Dict[str, Any] = None):
        super().__init__(message=message, error_code="ERR_BALANCE_001", details=details)


class ChargeBracketNotFoundError(BusinessRuleError):
    """Raised when no charge bracket prices the requested amount."""

    def __init__(self, message: str = "No charge bracket found for the given amount", details: Dict[str, Any] = None):
        super().__init__(message=message, error_code="ERR_CHARGE_001", details=details)


class ChargeBracketOverlapError(AppException):
    """Raised when a bracket range would intersect another bracket of the same user."""

    def __init__(self, conflicting_id: int):
        super().__init__(
            message=f"Charge bracket overlaps existing bracket {conflicting_id}",
            error_code="ERR_CHARGE_002",
            status_code=status.HTTP_409_CONFLICT,
            details={"conflicting_bracket_id": conflicting_id}
        )


class PlatformChargeConflictError(AppException):
    """Raised when another platform charge was activated concurrently."""

    def __init__(self):
        super().__init__(
            message="Another platform charge was activated at the same time, retry the request",
            error_code="ERR_CHARGE_003",
            status_code=status.HTTP_409_CONFLICT,
        )


class IpNotWhitelistedError(AppException):
    """Raised when a payout arrives from a non-whitelisted source address."""

    def __init__(self, ip_address: str):
        super().__init__(
            message=f"User IP address {ip_address} is not whitelisted",
            error_code="ERR_PERM_002",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"ip_address": ip_address}
        )


class AccountDisabledError(AppException):
    """Raised when the account or one of its capabilities is switched off."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="ERR_ACCOUNT_001",
            status_code=status.HTTP_403_FORBIDDEN
        )


class DuplicateTransactionError(AppException):
    """Raised when a reference_id has already been used."""

    def __init__(self, reference_id: str, existing_status: str = None):
        super().__init__(
            message="Transaction already exists",
            error_code="ERR_TXN_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"reference_id": reference_id, "status": existing_status}
        )


class GatewayRejectedError(AppException):
    """Raised when the payout gateway explicitly declines a payout."""

    def __init__(self, message: str = "Payout processing failed", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_GATEWAY_001",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details=details
        )


class GatewayUnavailableError(AppException):
    """Raised when the payout gateway cannot be reached or its circuit is open."""

    def __init__(self, message: str = "Payout gateway unavailable", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_GATEWAY_002",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": jsonable_errors(exc)
            }
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry exception instances (e.g. from custom validators)
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception(
        "Unhandled exception",
        extra={"path": request.url.path, "exception_type": type(exc).__name__}
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
