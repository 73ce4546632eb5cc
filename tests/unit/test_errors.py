"""
Tests for the error taxonomy and error handler.
"""

from unittest.mock import patch

import duckdb
import pytest
import requests

from src.snaptag.errors import (
    AuthenticationError,
    ConfigurationError,
    ErrorCategory,
    ErrorHandler,
    PersistenceError,
    RecordNotFoundError,
    SnapTagError,
    TaggingError,
    TransportError,
    UploadRejectedError,
    ValidationError,
    handle_error,
)


class TestErrorClasses:
    """Categories, codes and HTTP statuses."""

    @pytest.mark.parametrize(
        "error, category, status",
        [
            (ConfigurationError("missing", missing=["S3_BUCKET_NAME"]), ErrorCategory.CONFIGURATION, 500),
            (AuthenticationError("Unauthorized"), ErrorCategory.AUTHENTICATION, 401),
            (ValidationError("bad"), ErrorCategory.VALIDATION, 400),
            (TransportError("down"), ErrorCategory.TRANSPORT, 502),
            (UploadRejectedError("rejected", status_code=403), ErrorCategory.UPLOAD, 502),
            (PersistenceError("failed"), ErrorCategory.PERSISTENCE, 500),
            (RecordNotFoundError("abc"), ErrorCategory.PERSISTENCE, 404),
            (TaggingError("failed"), ErrorCategory.TAGGING, 502),
        ],
    )
    def test_category_and_status(self, error, category, status):
        assert isinstance(error, SnapTagError)
        assert error.category is category
        assert error.http_status == status

    def test_configuration_error_lists_missing(self):
        error = ConfigurationError("missing", missing=["AWS_ACCESS_KEY_ID"])

        assert error.code == "not_configured"
        assert error.missing == ["AWS_ACCESS_KEY_ID"]
        assert error.details["missing"] == ["AWS_ACCESS_KEY_ID"]

    def test_upload_rejection_carries_status_and_body(self):
        error = UploadRejectedError("rejected", status_code=503, body="SlowDown")

        assert error.status_code == 503
        assert error.body == "SlowDown"
        assert error.retry_suggested is True
        assert error.details["status_code"] == 503

    def test_error_info(self):
        error = TransportError("down", code="storage_unreachable", details={"object_key": "k"})

        info = error.get_error_info().to_dict()

        assert info["category"] == "transport"
        assert info["code"] == "storage_unreachable"
        assert info["message"] == "down"
        assert info["details"] == {"object_key": "k"}
        assert info["retry_suggested"] is True

    @patch("src.snaptag.errors.log_error")
    def test_errors_log_on_construction(self, mock_log_error):
        error = TaggingError("provider down")

        mock_log_error.assert_called_once()
        assert mock_log_error.call_args.args[0] is error

    @patch("src.snaptag.errors.log_security_event")
    def test_authentication_errors_are_security_events(self, mock_security_event):
        AuthenticationError("Unauthorized", code="invalid_token")

        assert mock_security_event.call_args.args[0] == "invalid_token"


class TestErrorHandler:
    """Test cases for ErrorHandler."""

    def setup_method(self):
        self.handler = ErrorHandler()

    def test_known_error_passes_through(self):
        info = self.handler.handle_error(ValidationError("bad", code="missing_file"))

        assert info.code == "missing_file"
        assert info.http_status == 400

    def test_requests_exception_is_transport(self):
        info = self.handler.handle_error(requests.ConnectionError("refused"))

        assert info.category is ErrorCategory.TRANSPORT

    def test_duckdb_error_is_persistence(self):
        info = self.handler.handle_error(duckdb.Error("io error"))

        assert info.category is ErrorCategory.PERSISTENCE

    def test_timeout_message_is_transport(self):
        info = self.handler.handle_error(RuntimeError("operation timed out"))

        assert info.category is ErrorCategory.TRANSPORT

    def test_unknown_error(self):
        info = self.handler.handle_error(KeyError("x"), {"operation": "test"})

        assert info.category is ErrorCategory.UNKNOWN
        assert info.details["original_type"] == "KeyError"
        assert info.details["operation"] == "test"

    def test_statistics(self):
        self.handler.handle_error(ValidationError("bad", code="missing_file"))
        self.handler.handle_error(ValidationError("bad", code="missing_file"))

        assert self.handler.get_error_statistics() == {"missing_file": 2}


    def test_global_handle_error(self):
        assert handle_error(ValidationError("bad")).category is ErrorCategory.VALIDATION
