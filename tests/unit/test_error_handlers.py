"""
Unit tests for error_handlers module.
"""

import logging
from datetime import datetime

import pytest

from identity_intelligence.utils.error_handlers import (
    ConfigurationError,
    IdentityProcessingError,
    RecognitionError,
    RecognitionErrorKind,
    ReconciliationFailure,
    ValidationError,
    create_error_report,
    get_retry_delay,
    handle_processing_error,
    is_retriable_error,
)


class TestRecognitionError:
    """Tests for RecognitionError class."""

    @pytest.mark.parametrize(
        "kind, retryable",
        [
            (RecognitionErrorKind.TRANSPORT, True),
            (RecognitionErrorKind.TIMEOUT, True),
            (RecognitionErrorKind.PROCESSOR_NOT_FOUND, False),
            (RecognitionErrorKind.AUTHENTICATION, False),
            (RecognitionErrorKind.QUOTA_EXCEEDED, False),
            (RecognitionErrorKind.INVALID_INPUT, False),
        ],
    )
    def test_retryable_by_kind(self, kind, retryable):
        error = RecognitionError("failed", kind=kind)

        assert error.retryable is retryable
        assert is_retriable_error(error) is retryable

    def test_to_dict(self):
        original = ConnectionError("reset")
        error = RecognitionError(
            "Document AI call failed",
            kind=RecognitionErrorKind.TRANSPORT,
            image_role="id_front",
            processor_id="projects/p/locations/us/processors/x",
            original_error=original,
        )

        data = error.to_dict()

        assert data["error_type"] == "RecognitionError"
        assert data["kind"] == "transport"
        assert data["stage"] == "recognition"
        assert data["image_role"] == "id_front"
        assert data["suggested_action"].startswith("Retry")
        assert data["original_error_type"] == "ConnectionError"


class TestReconciliationFailure:
    """Tests for ReconciliationFailure class."""

    def test_message_lists_reasons(self):
        failure = ReconciliationFailure({"id_front": "timeout", "id_back": "bad key"})

        assert "All 2 image(s) failed" in failure.message
        assert failure.reasons == ["timeout", "bad key"]

    def test_all_retryable_without_errors(self):
        failure = ReconciliationFailure({"id_front": "boom"})

        assert failure.all_retryable is False

    def test_all_retryable(self):
        failure = ReconciliationFailure(
            {"id_front": "a", "id_back": "b"},
            {"id_front": {"retryable": True}, "id_back": {"retryable": True}},
        )

        assert failure.all_retryable is True
        assert failure.to_dict()["failures"] == {"id_front": "a", "id_back": "b"}


class TestIsRetriableError:
    """Tests for is_retriable_error function."""

    def test_network_errors(self):
        assert is_retriable_error(ConnectionError()) is True
        assert is_retriable_error(TimeoutError()) is True

    def test_configuration_and_validation_errors(self):
        assert is_retriable_error(ConfigurationError("bad")) is False
        assert is_retriable_error(ValidationError("bad")) is False

    def test_other_errors(self):
        assert is_retriable_error(ValueError("x")) is False


class TestGetRetryDelay:
    """Tests for get_retry_delay function."""

    @pytest.mark.parametrize(
        "attempt, expected", [(1, 1.0), (2, 2.0), (3, 4.0), (10, 60.0)]
    )
    def test_exponential_backoff(self, attempt, expected):
        assert get_retry_delay(attempt) == expected

    def test_base_delay(self):
        assert get_retry_delay(2, base_delay=0.5) == 1.0


class TestHandleProcessingError:
    """Tests for handle_processing_error and create_error_report."""

    def test_timeout(self, caplog):
        error = RecognitionError("Deadline exceeded", kind=RecognitionErrorKind.TIMEOUT)
        logger = logging.getLogger("test_error_handlers")

        with caplog.at_level(logging.ERROR):
            should_retry, message = handle_processing_error(
                error, {"image_role": "id_back", "stage": "recognition"}, logger
            )

        assert should_retry is True
        assert message == "Deadline exceeded"
        assert "Error in recognition for image id_back" in caplog.text

    def test_unexpected(self):
        should_retry, message = handle_processing_error(KeyError("x"), {})

        assert should_retry is False
        assert message.startswith("Unexpected error")

    def test_create_error_report(self):
        timestamp = datetime(2025, 1, 1, 12, 0, 0)
        error = IdentityProcessingError("bad image", image_role="id_front", stage="mapping")

        report = create_error_report(error, timestamp)

        assert report["timestamp"] == "2025-01-01T12:00:00"
        assert report["error_type"] == "IdentityProcessingError"
        assert report["image_role"] == "id_front"
        assert report["stage"] == "mapping"
