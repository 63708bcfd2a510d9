"""
Error handling utilities for the Identity Intelligence System.

This module provides custom exceptions and error handling functions for the
document recognition and reconciliation pipeline.

Classes:
    IdentityProcessingError: Base exception for all pipeline errors.
    RecognitionErrorKind: Classification of recognition service failures.
    RecognitionError: Exception for recognition service call failures.
    ReconciliationFailure: Aggregate exception when no image could be used.
    ConfigurationError: Exception for configuration errors.
    ValidationError: Exception for invalid caller input.

Functions:
    handle_processing_error: Generic error handler with logging and retry decision.
    log_error_with_context: Log error with full context for debugging.
    create_error_report: Create structured error report for storage/analysis.
    is_retriable_error: Determine if an error should trigger a retry.
    get_retry_delay: Calculate retry delay using exponential backoff.
"""

import logging
import traceback
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class IdentityProcessingError(Exception):
    """
    Base exception for identity document processing errors.

    Attributes:
        message: Error message describing what went wrong.
        image_role: Optional role of the image being processed.
        stage: Optional processing stage where the error occurred.
        recoverable: Whether the error is recoverable with retry.
        original_error: Optional underlying exception that was wrapped.
    """

    def __init__(
        self,
        message: str,
        image_role: Optional[str] = None,
        stage: Optional[str] = None,
        recoverable: bool = False,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.image_role = image_role
        self.stage = stage
        self.recoverable = recoverable
        self.original_error = original_error
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for logging and reporting.

        Returns:
            Dictionary containing error_type, message, image_role, stage,
            recoverable status, and original error information if available.
        """
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "image_role": self.image_role,
            "stage": self.stage,
            "recoverable": self.recoverable,
        }

        if self.original_error:
            result["original_error_type"] = type(self.original_error).__name__
            result["original_error_message"] = str(self.original_error)

        return result


class RecognitionErrorKind(Enum):
    """Classification of recognition service failures."""

    TRANSPORT = "transport"
    PROCESSOR_NOT_FOUND = "processor_not_found"
    AUTHENTICATION = "authentication"
    TIMEOUT = "timeout"
    QUOTA_EXCEEDED = "quota_exceeded"
    INVALID_INPUT = "invalid_input"


# Kinds worth retrying; everything else needs a configuration or input fix.
RETRYABLE_KINDS = {RecognitionErrorKind.TRANSPORT, RecognitionErrorKind.TIMEOUT}

SUGGESTED_ACTIONS = {
    RecognitionErrorKind.TRANSPORT: "Retry the request; check network connectivity",
    RecognitionErrorKind.PROCESSOR_NOT_FOUND: (
        "Verify processor ID and project configuration"
    ),
    RecognitionErrorKind.AUTHENTICATION: "Check service account permissions",
    RecognitionErrorKind.TIMEOUT: (
        "Retry with smaller file or better network connection"
    ),
    RecognitionErrorKind.QUOTA_EXCEEDED: "Check Google Cloud quotas and billing",
    RecognitionErrorKind.INVALID_INPUT: (
        "Upload a supported image format within the size limit"
    ),
}


class RecognitionError(IdentityProcessingError):
    """
    Exception for recognition service failures.

    The retryable flag is derived from the kind: only timeouts and generic
    transport failures are retryable. The adapter never retries by itself.

    Attributes:
        kind: Failure classification.
        retryable: Whether the caller may retry the same request.
        suggested_action: Human-readable remediation hint.
        processor_id: Optional processor identifier that was called.
        status_code: Optional transport status code.
    """

    def __init__(
        self,
        message: str,
        kind: RecognitionErrorKind = RecognitionErrorKind.TRANSPORT,
        image_role: Optional[str] = None,
        processor_id: Optional[str] = None,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        retryable = kind in RETRYABLE_KINDS
        super().__init__(
            message=message,
            image_role=image_role,
            stage="recognition",
            recoverable=retryable,
            original_error=original_error,
        )
        self.kind = kind
        self.processor_id = processor_id
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.recoverable

    @property
    def suggested_action(self) -> str:
        return SUGGESTED_ACTIONS[self.kind]

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary including classification details.

        Returns:
            Dictionary with all base fields plus kind, retryable,
            suggested_action, processor_id and status_code.
        """
        result = super().to_dict()
        result["kind"] = self.kind.value
        result["retryable"] = self.retryable
        result["suggested_action"] = self.suggested_action
        result["processor_id"] = self.processor_id
        result["status_code"] = self.status_code
        return result


class ReconciliationFailure(IdentityProcessingError):
    """
    Raised when none of the supplied images produced a usable field set.

    Attributes:
        failures: Mapping of image role value -> failure reason.
        errors: Mapping of image role value -> serialized error details.
    """

    def __init__(
        self,
        failures: Dict[str, str],
        errors: Optional[Dict[str, Dict[str, Any]]] = None,
    ):
        summary = "; ".join(f"{role}: {reason}" for role, reason in failures.items())
        super().__init__(
            message=f"All {len(failures)} image(s) failed: {summary}",
            stage="reconciliation",
            recoverable=False,
        )
        self.failures = dict(failures)
        self.errors = dict(errors or {})

    @property
    def reasons(self) -> List[str]:
        return list(self.failures.values())

    @property
    def all_retryable(self) -> bool:
        """True when every per-image failure was a retryable recognition error."""
        if not self.errors:
            return False
        return all(err.get("retryable", False) for err in self.errors.values())

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["failures"] = dict(self.failures)
        result["errors"] = dict(self.errors)
        return result


class ConfigurationError(IdentityProcessingError):
    """
    Exception for configuration errors.

    Attributes:
        config_key: Optional configuration key that caused the error.
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            stage="initialization",
            recoverable=False,  # Config errors not recoverable without fix
            original_error=original_error,
        )
        self.config_key = config_key

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["config_key"] = self.config_key
        return result


class ValidationError(IdentityProcessingError):
    """
    Exception for invalid caller input.

    Attributes:
        field_name: Optional field or argument name that failed validation.
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            stage="validation",
            recoverable=False,
            original_error=original_error,
        )
        self.field_name = field_name

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["field_name"] = self.field_name
        return result


def handle_processing_error(
    error: Exception, context: Dict[str, Any], logger: Optional[logging.Logger] = None
) -> Tuple[bool, str]:
    """
    Handle processing errors with logging and retry decision.

    Args:
        error: The exception that occurred during processing.
        context: Dictionary containing contextual information such as
            image_role, stage, and other relevant metadata.
        logger: Optional logger instance. If None, uses module logger.

    Returns:
        A tuple containing:
            - bool: True if the error is retryable.
            - str: Human-readable error message.

    Example:
        >>> context = {"image_role": "id_front", "stage": "recognition"}
        >>> should_retry, msg = handle_processing_error(
        ...     RecognitionError("Deadline", kind=RecognitionErrorKind.TIMEOUT),
        ...     context,
        ... )
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    log_error_with_context(error, logger, context)

    should_retry = is_retriable_error(error)

    if isinstance(error, IdentityProcessingError):
        error_message = error.message
    elif isinstance(error, (ConnectionError, TimeoutError)):
        error_message = f"Network error: {error}"
    elif isinstance(error, MemoryError):
        error_message = f"Out of memory: {error}"
    elif hasattr(error, "status_code") and error.status_code == 429:
        error_message = f"Rate limit exceeded: {error}"
    else:
        error_message = f"Unexpected error: {error}"

    return should_retry, error_message


def log_error_with_context(
    error: Exception, logger: logging.Logger, context: Dict[str, Any]
) -> None:
    """
    Log error with context information for debugging.

    Stack traces are only logged when the logger is at DEBUG level or lower.

    Args:
        error: The exception that occurred.
        logger: Logger instance to use for logging.
        context: Dictionary with contextual information (image_role, stage, etc.).
    """
    error_type = type(error).__name__
    error_message = str(error)

    image_role = context.get("image_role", "unknown")
    stage = context.get("stage", "unknown")

    logger.error(
        f"Error in {stage} for image {image_role}: [{error_type}] {error_message}"
    )

    if isinstance(error, IdentityProcessingError) and error.original_error:
        original_type = type(error.original_error).__name__
        original_msg = str(error.original_error)
        logger.error(f"  Original error: [{original_type}] {original_msg}")

    if isinstance(error, RecognitionError):
        logger.error(f"  Suggested action: {error.suggested_action}")

    for key, value in context.items():
        if key not in ["image_role", "stage"]:
            logger.error(f"  {key}: {value}")

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Stack trace:")
        logger.debug(traceback.format_exc())


def create_error_report(
    error: Exception,
    timestamp: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Create a structured error report for storage and analysis.

    Args:
        error: The exception that occurred.
        timestamp: Optional timestamp for the error. Defaults to current time.

    Returns:
        A dictionary containing error_type, error_message, traceback,
        timestamp, and the exception's own fields when it is an
        IdentityProcessingError.
    """
    if timestamp is None:
        timestamp = datetime.now()

    report = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "traceback": traceback.format_exc(),
        "timestamp": timestamp.isoformat(),
    }

    if isinstance(error, IdentityProcessingError):
        report.update(error.to_dict())

    return report


def is_retriable_error(error: Exception) -> bool:
    """
    Determine if an error should trigger a retry attempt.

    Args:
        error: The exception to evaluate.

    Returns:
        True for retryable recognition errors, aggregate failures whose
        per-image errors are all retryable, network errors and HTTP 429;
        False otherwise.

    Example:
        >>> is_retriable_error(
        ...     RecognitionError("x", kind=RecognitionErrorKind.TIMEOUT)
        ... )
        True
    """
    if isinstance(error, ReconciliationFailure):
        return error.all_retryable

    if isinstance(error, IdentityProcessingError):
        return error.recoverable

    if isinstance(error, (ConnectionError, TimeoutError)):
        return True

    if hasattr(error, "status_code") and error.status_code == 429:
        return True

    return False


def get_retry_delay(attempt: int, base_delay: float = 1.0) -> float:
    """
    Calculate retry delay using exponential backoff with cap.

    delay = base_delay * 2^(attempt-1), capped at 60 seconds.

    Args:
        attempt: Current retry attempt number (1-indexed).
        base_delay: Base delay in seconds for the first retry.

    Returns:
        Calculated delay in seconds, capped at 60.0 seconds.

    Example:
        >>> get_retry_delay(1)
        1.0
        >>> get_retry_delay(5)
        16.0
        >>> get_retry_delay(10)
        60.0
    """
    delay = base_delay * (2 ** (attempt - 1))
    return min(delay, 60.0)
