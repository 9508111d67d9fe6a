"""Error classification and response envelopes."""

import logging
from collections.abc import Mapping
from dataclasses import replace
from datetime import UTC, datetime

import httpx

from club_scheduler.domain.errors import (
    ClassifiedError,
    ClassifiedFailure,
    ErrorKind,
    ErrorSeverity,
)
from club_scheduler.domain.results import FailureEnvelope, SuccessEnvelope

_logger = logging.getLogger(__name__)

_HTTP_STATUS_DIGITS = 3
_SERVER_ERROR_RANGE = range(500, 600)

_ERROR_CODE_MAPPING: dict[int | str, tuple[ErrorKind, ErrorSeverity]] = {
    401: (ErrorKind.AUTHENTICATION, ErrorSeverity.MEDIUM),
    "user_unauthorized": (ErrorKind.AUTHENTICATION, ErrorSeverity.MEDIUM),
    "user_not_found": (ErrorKind.AUTHENTICATION, ErrorSeverity.HIGH),
    "session_expired": (ErrorKind.AUTHENTICATION, ErrorSeverity.LOW),
    403: (ErrorKind.PERMISSION, ErrorSeverity.MEDIUM),
    "permission_denied": (ErrorKind.PERMISSION, ErrorSeverity.MEDIUM),
    "insufficient_permissions": (ErrorKind.AUTHORIZATION, ErrorSeverity.MEDIUM),
    "network_error": (ErrorKind.NETWORK, ErrorSeverity.HIGH),
    "connection_timeout": (ErrorKind.TIMEOUT, ErrorSeverity.MEDIUM),
    408: (ErrorKind.TIMEOUT, ErrorSeverity.MEDIUM),
    502: (ErrorKind.NETWORK, ErrorSeverity.HIGH),
    503: (ErrorKind.NETWORK, ErrorSeverity.HIGH),
    504: (ErrorKind.TIMEOUT, ErrorSeverity.HIGH),
    400: (ErrorKind.VALIDATION, ErrorSeverity.LOW),
    "validation_failed": (ErrorKind.VALIDATION, ErrorSeverity.LOW),
    "required_field_missing": (ErrorKind.VALIDATION, ErrorSeverity.LOW),
    "scheduling_conflict": (ErrorKind.VALIDATION, ErrorSeverity.LOW),
    404: (ErrorKind.NOT_FOUND, ErrorSeverity.LOW),
    "document_not_found": (ErrorKind.NOT_FOUND, ErrorSeverity.LOW),
    "collection_not_found": (ErrorKind.NOT_FOUND, ErrorSeverity.HIGH),
    "PGRST116": (ErrorKind.NOT_FOUND, ErrorSeverity.LOW),
    409: (ErrorKind.CONFLICT, ErrorSeverity.MEDIUM),
    "23505": (ErrorKind.CONFLICT, ErrorSeverity.MEDIUM),
    429: (ErrorKind.RATE_LIMIT, ErrorSeverity.MEDIUM),
    "rate_limit_exceeded": (ErrorKind.RATE_LIMIT, ErrorSeverity.MEDIUM),
    500: (ErrorKind.SERVER, ErrorSeverity.CRITICAL),
    "database_error": (ErrorKind.SERVER, ErrorSeverity.HIGH),
    "bulk_operation_failed": (ErrorKind.UNKNOWN, ErrorSeverity.HIGH),
    "operation_cancelled": (ErrorKind.UNKNOWN, ErrorSeverity.LOW),
}

_ERROR_MESSAGES: dict[int | str, str] = {
    401: "Invalid credentials. Please check your email and password.",
    "user_unauthorized": "You are not authorized to access this resource.",
    "user_not_found": "User account not found. Please contact an administrator.",
    "session_expired": "Your session has expired. Please log in again.",
    403: "Access denied. You don't have permission to perform this action.",
    "permission_denied": (
        "You don't have the required permissions for this operation."
    ),
    "insufficient_permissions": "Your account has insufficient permissions.",
    "network_error": (
        "Network connection failed. Please check your internet connection."
    ),
    "connection_timeout": "Connection timed out. Please try again.",
    "service_unavailable": "Service is currently unavailable. Please try again later.",
    408: "The request timed out. Please try again.",
    503: "Service temporarily unavailable. Please try again in a few minutes.",
    504: "The server took too long to respond. Please try again.",
    400: "Invalid request. Please check your input and try again.",
    "validation_failed": "Input validation failed. Please check your data.",
    "required_field_missing": (
        "Required information is missing. Please fill in all required fields."
    ),
    "scheduling_conflict": "Some of the requested sessions are already scheduled.",
    404: "The requested resource was not found.",
    409: "Conflict detected. The resource already exists or has been modified.",
    "23505": "This session is already scheduled for that date and batch.",
    "document_not_found": "The requested record was not found.",
    "collection_not_found": "Database collection not found.",
    "PGRST116": "The requested record was not found.",
    429: "Too many requests. Please wait a moment before trying again.",
    "rate_limit_exceeded": "Request limit exceeded. Please try again later.",
    500: "Internal server error. Our team has been notified.",
    502: "Service gateway error. Please try again later.",
    "database_error": "Database operation failed. Please try again.",
    "bulk_operation_failed": "None of the requested sessions could be processed.",
    "operation_cancelled": "The operation was cancelled before it finished.",
}

_DEFAULT_MESSAGE = "An unexpected error occurred. Please try again."

_RETRYABLE_CODES = {"service_unavailable", "connection_timeout", "database_error"}

_RETRYABLE_KINDS = {ErrorKind.NETWORK, ErrorKind.TIMEOUT, ErrorKind.RATE_LIMIT}


def classify_error(
    raw: object, operation: str, context: dict[str, object] | None = None
) -> ClassifiedError:
    """Map a raw failure to a classified error and log it."""
    if isinstance(raw, ClassifiedFailure):
        return raw.error
    if isinstance(raw, ClassifiedError):
        return raw

    code = extract_error_code(raw)
    kind, severity = _ERROR_CODE_MAPPING.get(
        code, (ErrorKind.UNKNOWN, ErrorSeverity.MEDIUM)
    )
    error = ClassifiedError(
        kind=kind,
        severity=severity,
        code=code,
        user_message=_ERROR_MESSAGES.get(code, _DEFAULT_MESSAGE),
        technical_detail=_technical_detail(raw),
        operation=operation,
        timestamp=datetime.now(tz=UTC),
        retryable=is_retryable(code, kind),
        context=dict(context or {}),
    )
    _log_error(error)
    return error


def extract_error_code(raw: object) -> int | str:
    """Extract an HTTP-like status or a string tag from a raw failure."""
    if isinstance(raw, TimeoutError | httpx.TimeoutException):
        return "connection_timeout"
    if isinstance(raw, httpx.HTTPStatusError):
        return raw.response.status_code
    if isinstance(raw, ConnectionError | httpx.TransportError):
        return "network_error"

    for name in ("code", "status", "status_code"):
        if isinstance(raw, Mapping):
            value = raw.get(name)
        else:
            value = getattr(raw, name, None)
        code = _normalize_code(value)
        if code is not None:
            return code
    return "unknown"


def is_retryable(code: int | str, kind: ErrorKind) -> bool:
    """Return True if the failure is transient."""
    if kind in _RETRYABLE_KINDS:
        return True
    if isinstance(code, int) and code in _SERVER_ERROR_RANGE:
        return True
    return code in _RETRYABLE_CODES


def validation_error(
    problems: list[str],
    operation: str,
    field_errors: dict[str, str] | None = None,
    context: dict[str, object] | None = None,
) -> ClassifiedError:
    """Build one aggregated validation failure."""
    merged: dict[str, object] = {
        "problems": list(problems),
        "field_errors": dict(field_errors or {}),
    }
    merged.update(context or {})
    error = classify_error(
        {"code": "validation_failed", "message": ". ".join(problems)},
        operation,
        merged,
    )
    if problems:
        message = ". ".join(problems)
    elif field_errors:
        message = f"Please check the following fields: {', '.join(field_errors)}"
    else:
        return error
    return _with_message(error, message)


def conflict_error(
    conflict_count: int, operation: str, conflicts: list[dict[str, object]]
) -> ClassifiedError:
    """Build the failure returned when scheduling would collide."""
    error = classify_error(
        {
            "code": "scheduling_conflict",
            "message": f"{conflict_count} requested sessions are already scheduled",
        },
        operation,
        {"conflicts": conflicts},
    )
    return _with_message(
        error, f"Scheduling conflicts found for {conflict_count} sessions"
    )


def success_response(
    data: object,
    message: str = "Operation completed successfully",
    meta: dict[str, object] | None = None,
) -> SuccessEnvelope:
    """Wrap data in a success envelope."""
    return SuccessEnvelope(
        data=data,
        message=message,
        timestamp=datetime.now(tz=UTC),
        meta=dict(meta or {}),
    )


def failure_response(error: ClassifiedError) -> FailureEnvelope:
    """Wrap a classified error in a failure envelope."""
    return FailureEnvelope(error=error)


def _normalize_code(value: object) -> int | str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value:
        if value.isdigit() and len(value) == _HTTP_STATUS_DIGITS:
            return int(value)
        return value
    return None


def _technical_detail(raw: object) -> str:
    if isinstance(raw, Mapping):
        message = raw.get("message")
        return str(message) if message else "Unknown error occurred"
    message = getattr(raw, "message", None)
    if isinstance(message, str) and message:
        return message
    text = str(raw)
    return text or type(raw).__name__


def _with_message(error: ClassifiedError, message: str) -> ClassifiedError:
    return replace(error, user_message=message)


def _log_error(error: ClassifiedError) -> None:
    message = "[%s] %s: %s (code=%s, retryable=%s, details=%s)"
    args = (
        error.operation,
        error.kind.value,
        error.user_message,
        error.code,
        error.retryable,
        error.technical_detail,
    )
    if error.severity in {ErrorSeverity.CRITICAL, ErrorSeverity.HIGH}:
        _logger.error(message, *args)
    elif error.severity is ErrorSeverity.MEDIUM:
        _logger.warning(message, *args)
    else:
        _logger.info(message, *args)
