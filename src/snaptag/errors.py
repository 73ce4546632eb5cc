"""
Centralized error classification for snaptag.

Every failure the core raises is a ``SnapTagError`` subclass carrying a
category, a severity, a stable machine-readable code and structured details.
Errors log themselves when constructed so that absorbed failures (for
example a flaky vision tagger) still leave a diagnostic trail.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import duckdb
import requests

from .logging_config import get_logger, log_error, log_security_event

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Error categories for classification and handling."""

    CONFIGURATION = "configuration"
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    TRANSPORT = "transport"
    UPLOAD = "upload"
    PERSISTENCE = "persistence"
    TAGGING = "tagging"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# HTTP status used by the API layer for each category
HTTP_STATUS_BY_CATEGORY = {
    ErrorCategory.CONFIGURATION: 500,
    ErrorCategory.AUTHENTICATION: 401,
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.TRANSPORT: 502,
    ErrorCategory.UPLOAD: 502,
    ErrorCategory.PERSISTENCE: 500,
    ErrorCategory.TAGGING: 502,
    ErrorCategory.UNKNOWN: 500,
}


@dataclass
class ErrorInfo:
    """Structured error information."""

    category: ErrorCategory
    severity: ErrorSeverity
    code: str
    message: str
    details: dict[str, Any]
    timestamp: datetime
    retry_suggested: bool = False

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_CATEGORY.get(self.category, 500)

    def to_dict(self) -> dict[str, Any]:
        """Convert error info to dictionary."""
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "retry_suggested": self.retry_suggested,
        }


class SnapTagError(Exception):
    """Base exception class for snaptag."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        retry_suggested: bool = False,
        original_exception: Exception | None = None,
    ):
        super().__init__(message)
        self.category = category
        self.severity = severity
        self.code = code or f"{category.value}_error"
        self.details = details or {}
        self.retry_suggested = retry_suggested
        self.original_exception = original_exception
        self.timestamp = datetime.now(UTC)

        self._log_error()

    def _log_error(self) -> None:
        """Log the error with its classification."""
        error_context = {
            "category": self.category.value,
            "severity": self.severity.value,
            "code": self.code,
            **self.details,
        }

        if self.original_exception:
            error_context["original_exception"] = str(self.original_exception)

        log_error(self, error_context)

        if self.category is ErrorCategory.AUTHENTICATION:
            log_security_event(self.code, context=error_context)

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_CATEGORY.get(self.category, 500)

    def get_error_info(self) -> ErrorInfo:
        """Get structured error information."""
        return ErrorInfo(
            category=self.category,
            severity=self.severity,
            code=self.code,
            message=str(self),
            details=self.details,
            timestamp=self.timestamp,
            retry_suggested=self.retry_suggested,
        )


class ConfigurationError(SnapTagError):
    """A required credential or setting is missing."""

    def __init__(
        self,
        message: str,
        missing: list[str] | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = dict(details or {})
        if missing:
            details["missing"] = missing
        self.missing = missing or []
        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            code=code or "not_configured",
            details=details,
        )


class AuthenticationError(SnapTagError):
    """Missing or invalid caller credentials."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.AUTHENTICATION,
            severity=ErrorSeverity.HIGH,
            code=code or "unauthorized",
            details=details,
            original_exception=original_exception,
        )


class ValidationError(SnapTagError):
    """Rejected input, raised before any side effect."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.LOW,
            code=code or "validation_failed",
            details=details,
        )


class TransportError(SnapTagError):
    """Network failure reaching object storage or the tagger."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.TRANSPORT,
            severity=ErrorSeverity.MEDIUM,
            code=code or "transport_failed",
            details=details,
            retry_suggested=True,
            original_exception=original_exception,
        )


class UploadRejectedError(SnapTagError):
    """Object storage answered the PUT with a non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: int,
        body: str = "",
        details: dict[str, Any] | None = None,
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(
            message=message,
            category=ErrorCategory.UPLOAD,
            severity=ErrorSeverity.HIGH,
            code="upload_rejected",
            details={"status_code": status_code, "body": body, **(details or {})},
            retry_suggested=status_code >= 500,
        )


class PersistenceError(SnapTagError):
    """Metadata store insert or update failure."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.PERSISTENCE,
            severity=ErrorSeverity.HIGH,
            code=code or "persistence_failed",
            details=details,
            retry_suggested=True,
            original_exception=original_exception,
        )


class RecordNotFoundError(PersistenceError):
    """No image record with the requested id."""

    def __init__(self, image_id: str):
        self.image_id = image_id
        super().__init__(f"Image '{image_id}' not found", code="record_not_found", details={"image_id": image_id})

    @property
    def http_status(self) -> int:
        return 404


class TaggingError(SnapTagError):
    """Vision tagging could not produce tags."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.TAGGING,
            severity=ErrorSeverity.LOW,
            code=code or "tagging_failed",
            details=details,
            original_exception=original_exception,
        )


class ErrorHandler:
    """Classifies arbitrary exceptions into the snaptag taxonomy."""

    def __init__(self) -> None:
        self.error_counts: dict[str, int] = {}
        self.logger = get_logger(__name__)

    def handle_error(self, error: Exception, context: dict[str, Any] | None = None) -> ErrorInfo:
        """
        Handle and classify errors.

        Args:
            error: Exception to handle
            context: Additional context information

        Returns:
            ErrorInfo: Structured error information
        """
        if isinstance(error, SnapTagError):
            error_info = error.get_error_info()
        else:
            error_info = self._classify_error(error, context or {}).get_error_info()

        self._track_error(error_info.code)
        return error_info

    def _classify_error(self, error: Exception, context: dict[str, Any]) -> SnapTagError:
        """Wrap a foreign exception into the matching SnapTagError."""
        error_type = type(error).__name__
        error_message = str(error)
        details = {"original_type": error_type, **context}

        if isinstance(error, requests.RequestException):
            return TransportError(error_message, details=details, original_exception=error)

        if isinstance(error, duckdb.Error):
            return PersistenceError(error_message, details=details, original_exception=error)

        if any(keyword in error_message.lower() for keyword in ["timeout", "timed out", "connection refused"]):
            return TransportError(error_message, details=details, original_exception=error)

        return SnapTagError(
            message=error_message,
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.MEDIUM,
            details=details,
            original_exception=error,
        )

    def _track_error(self, error_code: str) -> None:
        """Track error occurrence for monitoring."""
        self.error_counts[error_code] = self.error_counts.get(error_code, 0) + 1

        if self.error_counts[error_code] % 10 == 0:
            self.logger.warning("frequent_error_detected", error_code=error_code, count=self.error_counts[error_code])

    def get_error_statistics(self) -> dict[str, int]:
        """Get error occurrence statistics."""
        return self.error_counts.copy()


# Global error handler instance
error_handler = ErrorHandler()


def handle_error(error: Exception, context: dict[str, Any] | None = None) -> ErrorInfo:
    """
    Global error handling function.

    Args:
        error: Exception to handle
        context: Additional context information

    Returns:
        ErrorInfo: Structured error information
    """
    return error_handler.handle_error(error, context)


def get_error_handler() -> ErrorHandler:
    """Get the global error handler instance."""
    return error_handler
