"""
Exception hierarchy for the AIOCENSOR console client.

This module defines structured exceptions with error codes, context information,
and recovery suggestions so that session, transport and storage failures are
reported consistently across the client.
"""

from datetime import datetime
from typing import Optional, Dict, Any, List
from enum import Enum


class ErrorCode(Enum):
    """Standardized error codes for the console client."""

    # Authentication errors (1000-1099)
    AUTH_CREDENTIAL_REJECTED = "AUTH_1001"
    AUTH_TOKEN_EXPIRED = "AUTH_1002"
    AUTH_REFRESH_REJECTED = "AUTH_1003"

    # Network and communication errors (2000-2099)
    NETWORK_TRANSPORT_FAILURE = "NETWORK_2001"
    NETWORK_TIMEOUT = "NETWORK_2002"

    # Server errors (3000-3099)
    SERVER_ERROR = "SERVER_3001"
    SERVER_REQUEST_FAILED = "SERVER_3002"

    # Storage errors (4000-4099)
    STORAGE_CORRUPT = "STORAGE_4001"
    STORAGE_WRITE_FAILED = "STORAGE_4002"

    # Configuration errors (8000-8099)
    CONFIG_INVALID_VALUE = "CONFIG_8001"

    # Internal errors (9000-9099)
    INTERNAL_UNEXPECTED_ERROR = "INTERNAL_9001"


class ErrorSeverity(Enum):
    """Error severity levels for logging and handling."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RecoveryAction(Enum):
    """Suggested recovery actions for errors."""
    RETRY = "retry"
    RETRY_WITH_BACKOFF = "retry_with_backoff"
    REFRESH_TOKEN = "refresh_token"
    LOGIN_AGAIN = "login_again"
    USER_INTERVENTION = "user_intervention"
    IGNORE = "ignore"


class ConsoleClientError(Exception):
    """
    Base exception class for all console client errors.

    Provides structured error information including error codes, context,
    and recovery suggestions for consistent error handling.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: Optional[Dict[str, Any]] = None,
        recovery_actions: Optional[List[RecoveryAction]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.context = context or {}
        self.recovery_actions = recovery_actions or []
        self.cause = cause
        self.user_message = user_message or message
        self.timestamp = datetime.now()

        if cause:
            self.context['cause_type'] = type(cause).__name__
            self.context['cause_message'] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary format for serialization."""
        return {
            'error': {
                'code': self.error_code.value,
                'message': self.message,
                'user_message': self.user_message,
                'severity': self.severity.value,
                'timestamp': self.timestamp.isoformat(),
                'context': self.context,
                'recovery_actions': [action.value for action in self.recovery_actions],
                'cause': {
                    'type': self.context.get('cause_type'),
                    'message': self.context.get('cause_message')
                } if self.cause else None
            }
        }


class CredentialRejectedError(ConsoleClientError):
    """The remote authenticator rejected the supplied password."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            error_code=ErrorCode.AUTH_CREDENTIAL_REJECTED,
            severity=ErrorSeverity.LOW,
            recovery_actions=[RecoveryAction.USER_INTERVENTION],
            **kwargs
        )


class TokenExpiredError(ConsoleClientError):
    """A protected call was answered with 401."""

    def __init__(self, message: str, status: int = 401, **kwargs):
        context = kwargs.pop('context', {})
        context['status'] = status

        super().__init__(
            message=message,
            error_code=ErrorCode.AUTH_TOKEN_EXPIRED,
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.REFRESH_TOKEN, RecoveryAction.LOGIN_AGAIN],
            context=context,
            **kwargs
        )


class RefreshRejectedError(ConsoleClientError):
    """The refresh token itself is invalid or expired."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            error_code=ErrorCode.AUTH_REFRESH_REJECTED,
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.LOGIN_AGAIN],
            **kwargs
        )


class TransportError(ConsoleClientError):
    """Network failures and timeouts talking to the console API."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.NETWORK_TRANSPORT_FAILURE, **kwargs):
        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.MEDIUM,
            recovery_actions=[RecoveryAction.RETRY_WITH_BACKOFF],
            **kwargs
        )


class ServerError(ConsoleClientError):
    """The console API answered with a 5xx status."""

    def __init__(self, message: str, status: int, **kwargs):
        context = kwargs.pop('context', {})
        context['status'] = status

        super().__init__(
            message=message,
            error_code=ErrorCode.SERVER_ERROR,
            severity=ErrorSeverity.MEDIUM,
            recovery_actions=[RecoveryAction.RETRY],
            context=context,
            **kwargs
        )


class StorageCorruptError(ConsoleClientError):
    """Persisted session data could not be decrypted or parsed."""

    def __init__(self, message: str, slot: Optional[str] = None, **kwargs):
        context = kwargs.pop('context', {})
        if slot:
            context['slot'] = slot

        super().__init__(
            message=message,
            error_code=ErrorCode.STORAGE_CORRUPT,
            severity=ErrorSeverity.LOW,
            recovery_actions=[RecoveryAction.IGNORE, RecoveryAction.LOGIN_AGAIN],
            context=context,
            **kwargs
        )


class ConfigurationError(ConsoleClientError):
    """Configuration related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        context = kwargs.pop('context', {})
        if config_key:
            context['config_key'] = config_key

        super().__init__(
            message=message,
            error_code=ErrorCode.CONFIG_INVALID_VALUE,
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.USER_INTERVENTION],
            context=context,
            **kwargs
        )


def handle_exception(
    exception: Exception,
    context: Optional[Dict[str, Any]] = None,
    default_error_code: ErrorCode = ErrorCode.INTERNAL_UNEXPECTED_ERROR
) -> ConsoleClientError:
    """
    Convert a generic exception to a structured ConsoleClientError.

    Args:
        exception: The original exception
        context: Additional context information
        default_error_code: Default error code if specific mapping not found

    Returns:
        Structured ConsoleClientError
    """
    if isinstance(exception, ConsoleClientError):
        return exception

    if isinstance(exception, TimeoutError):
        return TransportError(
            str(exception) or "Request timed out",
            error_code=ErrorCode.NETWORK_TIMEOUT,
            context=context,
            cause=exception
        )

    if isinstance(exception, (ConnectionError, OSError)):
        return TransportError(str(exception), context=context, cause=exception)

    if isinstance(exception, ValueError):
        return ConfigurationError(str(exception), context=context, cause=exception)

    return ConsoleClientError(
        message=str(exception),
        error_code=default_error_code,
        context=context,
        cause=exception
    )
