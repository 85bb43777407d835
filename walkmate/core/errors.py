"""Error classification utilities for backend and workflow errors."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel


class ErrorCategory(Enum):
    """Categories of sign-in and sign-up failures."""

    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_NOT_CONFIRMED = "email_not_confirmed"
    ALREADY_REGISTERED = "already_registered"
    NETWORK_ERROR = "network_error"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"


class ErrorCode:
    """Error codes for specific error conditions."""

    # Auth errors
    ERR_INVALID_CREDENTIALS = "ERR_INVALID_CREDENTIALS"
    ERR_EMAIL_NOT_CONFIRMED = "ERR_EMAIL_NOT_CONFIRMED"
    ERR_ALREADY_REGISTERED = "ERR_ALREADY_REGISTERED"
    ERR_AUTHENTICATION_FAILED = "ERR_AUTHENTICATION_FAILED"

    # Backend errors
    ERR_NETWORK_ERROR = "ERR_NETWORK_ERROR"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"

    # Workflow errors
    ERR_VALIDATION_FAILED = "ERR_VALIDATION_FAILED"
    ERR_INVALID_STATE_TRANSITION = "ERR_INVALID_STATE_TRANSITION"
    ERR_ALREADY_APPLIED = "ERR_ALREADY_APPLIED"

    # Permission errors
    ERR_PERMISSION_DENIED = "ERR_PERMISSION_DENIED"

    # Generic errors
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


PatternType = Literal["invalid_credentials", "email_not_confirmed", "already_registered", "network", "missing_profile"]

_ERROR_PATTERNS: dict[PatternType, dict[str, list[str] | set[str]]] = {
    "invalid_credentials": {
        "phrases": [
            "failed to authenticate",
            "invalid login credentials",
            "invalid credentials",
        ],
        "exception_types": set(),
    },
    "email_not_confirmed": {
        "phrases": [
            "not verified",
            "email not confirmed",
            "unverified",
        ],
        "exception_types": set(),
    },
    "already_registered": {
        "phrases": [
            "already registered",
            "already exists",
            "already in use",
            "validation_not_unique",
            "value must be unique",
        ],
        "exception_types": set(),
    },
    "network": {
        "phrases": [
            "connection",
            "timeout",
            "network",
            "503",
            "502",
            "504",
            "unreachable",
        ],
        "exception_types": {"ConnectionError", "TimeoutError", "ConnectError"},
    },
    "missing_profile": {
        "phrases": [
            "record not found",
            "wasn't found",
            "requested resource",
        ],
        "exception_types": {"RecordNotFoundError"},
    },
}


def _match_error_pattern(*, error_str: str, exception_type: str, pattern_type: PatternType) -> bool:
    """Return True if the error matches the configured pattern type."""
    patterns = _ERROR_PATTERNS[pattern_type]
    return any(phrase in error_str for phrase in patterns["phrases"]) or exception_type in patterns["exception_types"]


def is_missing_profile_error(exception: Exception) -> bool:
    """Return True if the error means an authenticated user has no profile row yet."""
    return _match_error_pattern(
        error_str=str(exception).lower(),
        exception_type=type(exception).__name__,
        pattern_type="missing_profile",
    )


def classify_auth_error(exception: Exception) -> tuple[ErrorCategory, str]:
    """Classify an identity provider error and return a user-facing message.

    Args:
        exception: The exception raised by login or sign-up

    Returns:
        Tuple of (ErrorCategory, user_friendly_message)
    """
    error_str = str(exception).lower()
    exception_type = type(exception).__name__

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="email_not_confirmed"):
        return (
            ErrorCategory.EMAIL_NOT_CONFIRMED,
            "이메일 인증이 완료되지 않았습니다. 메일함을 확인해 주세요.",
        )

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="already_registered"):
        return (
            ErrorCategory.ALREADY_REGISTERED,
            "이미 가입된 이메일입니다. 로그인해 주세요.",
        )

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="invalid_credentials"):
        return (
            ErrorCategory.INVALID_CREDENTIALS,
            "이메일 또는 비밀번호가 올바르지 않습니다.",
        )

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="network"):
        return (
            ErrorCategory.NETWORK_ERROR,
            "네트워크 연결을 확인한 뒤 다시 시도해 주세요.",
        )

    return (
        ErrorCategory.UNKNOWN,
        "인증 중 오류가 발생했습니다. 잠시 후 다시 시도해 주세요.",
    )


def classify_error_with_response(exception: Exception) -> ErrorResponse:  # noqa: PLR0911
    """Classify a workflow error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised while handling a view action

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    error_str = str(exception).lower()
    exception_type = type(exception).__name__

    if exception_type == "AuthenticationError":
        category, message = classify_auth_error(exception)
        codes = {
            ErrorCategory.INVALID_CREDENTIALS: ErrorCode.ERR_INVALID_CREDENTIALS,
            ErrorCategory.EMAIL_NOT_CONFIRMED: ErrorCode.ERR_EMAIL_NOT_CONFIRMED,
            ErrorCategory.ALREADY_REGISTERED: ErrorCode.ERR_ALREADY_REGISTERED,
            ErrorCategory.NETWORK_ERROR: ErrorCode.ERR_NETWORK_ERROR,
        }
        return ErrorResponse(
            code=codes.get(category, ErrorCode.ERR_AUTHENTICATION_FAILED),
            message=message,
            suggestion="Check your e-mail and password and try again.",
            severity=ErrorSeverity.MEDIUM,
        )

    if "already applied" in error_str:
        return ErrorResponse(
            code=ErrorCode.ERR_ALREADY_APPLIED,
            message="이미 지원한 산책입니다.",
            suggestion="Wait for the owner to pick a walker.",
            severity=ErrorSeverity.LOW,
        )

    if exception_type == "PermissionError" or "permission denied" in error_str or "does not belong to" in error_str:
        return ErrorResponse(
            code=ErrorCode.ERR_PERMISSION_DENIED,
            message="이 작업을 수행할 권한이 없습니다.",
            suggestion="Switch to an account with the right role.",
            severity=ErrorSeverity.MEDIUM,
        )

    if isinstance(exception, KeyError) or "not found" in error_str:
        return ErrorResponse(
            code=ErrorCode.ERR_NOT_FOUND,
            message="요청한 항목을 찾을 수 없습니다.",
            suggestion="Refresh the list and try again.",
            severity=ErrorSeverity.LOW,
        )

    if exception_type == "ValueError" and ("cannot" in error_str or "invalid state" in error_str):
        return ErrorResponse(
            code=ErrorCode.ERR_INVALID_STATE_TRANSITION,
            message="현재 상태에서는 이 작업을 할 수 없습니다.",
            suggestion="Refresh to see the latest status of the walk.",
            severity=ErrorSeverity.LOW,
        )

    if exception_type == "ValueError":
        return ErrorResponse(
            code=ErrorCode.ERR_VALIDATION_FAILED,
            message=str(exception),
            suggestion="Fix the highlighted field and submit again.",
            severity=ErrorSeverity.LOW,
        )

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="network"):
        return ErrorResponse(
            code=ErrorCode.ERR_NETWORK_ERROR,
            message="네트워크 오류가 발생했습니다.",
            suggestion="Please check your connection and try again.",
            severity=ErrorSeverity.MEDIUM,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="알 수 없는 오류가 발생했습니다.",
        suggestion="Please try again later.",
        severity=ErrorSeverity.MEDIUM,
    )
