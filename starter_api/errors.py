"""
Application error taxonomy.

Services raise ``AppError`` subclasses; the exception handlers registered
in ``starter_api.main`` turn them into the JSON error envelope with the
status code attached to the error code.
"""
from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    # Client errors (4xx)
    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    VALIDATION = "VALIDATION_ERROR"
    TOO_MANY_REQUESTS = "TOO_MANY_REQUESTS"
    UNPROCESSABLE_ENTITY = "UNPROCESSABLE_ENTITY"

    # Server errors (5xx)
    INTERNAL_SERVER = "INTERNAL_SERVER_ERROR"
    BAD_GATEWAY = "BAD_GATEWAY"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    GATEWAY_TIMEOUT = "GATEWAY_TIMEOUT"

    # Business logic errors
    BUSINESS_LOGIC = "BUSINESS_LOGIC_ERROR"
    DATABASE = "DATABASE_ERROR"
    EXTERNAL_SERVICE = "EXTERNAL_SERVICE_ERROR"


STATUS_CODES: dict[ErrorCode, int] = {
    ErrorCode.BAD_REQUEST: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.CONFLICT: 409,
    ErrorCode.VALIDATION: 400,
    ErrorCode.TOO_MANY_REQUESTS: 429,
    ErrorCode.UNPROCESSABLE_ENTITY: 422,
    ErrorCode.INTERNAL_SERVER: 500,
    ErrorCode.BAD_GATEWAY: 502,
    ErrorCode.SERVICE_UNAVAILABLE: 503,
    ErrorCode.GATEWAY_TIMEOUT: 504,
    ErrorCode.BUSINESS_LOGIC: 400,
    ErrorCode.DATABASE: 500,
    ErrorCode.EXTERNAL_SERVICE: 502,
}

# Reverse lookup used when an HTTPException has to be rendered as an error.
_CODE_FOR_STATUS: dict[int, ErrorCode] = {
    400: ErrorCode.BAD_REQUEST,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    405: ErrorCode.BAD_REQUEST,
    409: ErrorCode.CONFLICT,
    422: ErrorCode.UNPROCESSABLE_ENTITY,
    429: ErrorCode.TOO_MANY_REQUESTS,
    502: ErrorCode.BAD_GATEWAY,
    503: ErrorCode.SERVICE_UNAVAILABLE,
    504: ErrorCode.GATEWAY_TIMEOUT,
}


def status_for(code: ErrorCode) -> int:
    return STATUS_CODES.get(code, 500)


def code_for_status(status_code: int) -> ErrorCode:
    if status_code in _CODE_FOR_STATUS:
        return _CODE_FOR_STATUS[status_code]
    return ErrorCode.BAD_REQUEST if status_code < 500 else ErrorCode.INTERNAL_SERVER


class AppError(Exception):
    """Base application error with structured context."""

    default_code: ErrorCode = ErrorCode.INTERNAL_SERVER

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        *,
        details: str | None = None,
        fields: dict[str, Any] | None = None,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code or self.default_code
        self.message = message
        self.details = details
        self.fields: dict[str, Any] = dict(fields or {})
        self.status_code = status_code or status_for(self.code)
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.code.value}: {self.message} (caused by: {self.cause})"
        return f"{self.code.value}: {self.message}"

    def with_details(self, details: str) -> "AppError":
        self.details = details
        return self

    def with_field(self, key: str, value: Any) -> "AppError":
        self.fields[key] = value
        return self

    def with_fields(self, fields: dict[str, Any]) -> "AppError":
        self.fields.update(fields)
        return self

    def with_status_code(self, status_code: int) -> "AppError":
        self.status_code = status_code
        return self

    def is_type(self, code: ErrorCode) -> bool:
        return self.code == code

    def to_dict(self) -> dict[str, Any]:
        """Serialise for the ``error`` member of the response envelope."""
        result: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            result["details"] = self.details
        if self.fields:
            result["fields"] = self.fields
        return result


class BadRequestError(AppError):
    default_code = ErrorCode.BAD_REQUEST


class ValidationError(AppError):
    """Raised by business validators; carries the offending field."""

    default_code = ErrorCode.VALIDATION

    def __init__(self, message: str, field: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.field = field
        if field and "field" not in self.fields:
            self.fields["field"] = field


class UnauthorizedError(AppError):
    default_code = ErrorCode.UNAUTHORIZED


class ForbiddenError(AppError):
    default_code = ErrorCode.FORBIDDEN


class NotFoundError(AppError):
    default_code = ErrorCode.NOT_FOUND


class ConflictError(AppError):
    default_code = ErrorCode.CONFLICT


class BusinessLogicError(AppError):
    default_code = ErrorCode.BUSINESS_LOGIC


class DatabaseError(AppError):
    default_code = ErrorCode.DATABASE


class InternalServerError(AppError):
    default_code = ErrorCode.INTERNAL_SERVER


def wrap(exc: BaseException, code: ErrorCode, message: str) -> AppError:
    """Wrap *exc* in an ``AppError`` that keeps it as the cause."""
    return AppError(message, code, cause=exc)


def database_error(exc: BaseException) -> DatabaseError:
    return DatabaseError("Database operation failed", cause=exc)


def external_service_error(service: str, exc: BaseException) -> AppError:
    return wrap(exc, ErrorCode.EXTERNAL_SERVICE, f"External service {service} failed")


def error_code_of(exc: BaseException) -> ErrorCode:
    if isinstance(exc, AppError):
        return exc.code
    return ErrorCode.INTERNAL_SERVER


def status_code_of(exc: BaseException) -> int:
    if isinstance(exc, AppError):
        return exc.status_code
    return 500
