"""
Unit Tests for error codes and the error envelope
"""
import pytest

from app.core.exceptions import (
    ERROR_STATUS,
    USER_MESSAGES,
    BookletTooLargeError,
    DownloadNotAvailableError,
    ErrorCode,
    GraduationError,
    GraduationNotFoundError,
    NetworkError,
    NoPdfsMergedError,
    UploadFailedError,
    ValidationError,
    error_response,
    user_message_for,
)


def test_every_code_has_status_and_message():
    for code in ErrorCode:
        assert code in ERROR_STATUS
        assert USER_MESSAGES.get(code)


@pytest.mark.parametrize("error,status", [
    (ValidationError("bad", field="x"), 400),
    (GraduationNotFoundError("g1"), 404),
    (NoPdfsMergedError(2, ["Ann", "Ben"]), 400),
    (BookletTooLargeError(150 * 1024 * 1024, 100 * 1024 * 1024), 413),
    (DownloadNotAvailableError("later", "2030-01-01T00:00:00Z", 5), 403),
    (UploadFailedError("k", "disk full"), 500),
    (NetworkError("unreachable", url="https://minio.local"), 502),
    (GraduationError("oops"), 500),
])
def test_status_codes(error, status):
    assert error.status_code == status


def test_error_response_envelope():
    error = DownloadNotAvailableError("Come back later", "2030-01-01T00:00:00Z", 1234)

    assert error_response(error) == {
        "success": False,
        "error": "DOWNLOAD_NOT_AVAILABLE",
        "message": "Come back later",
        "userMessage": user_message_for(ErrorCode.DOWNLOAD_NOT_AVAILABLE),
        "details": {"availableAt": "2030-01-01T00:00:00Z", "remainingMilliseconds": 1234},
    }


def test_too_large_message_reports_sizes():
    error = BookletTooLargeError(150 * 1024 * 1024, 100 * 1024 * 1024)
    assert "150.00MB" in error.message
    assert "100MB" in error.message


def test_upload_failed_is_storage_error_with_own_code():
    error = UploadFailedError("graduation-booklets/a.pdf", "timeout")
    assert error.code == ErrorCode.UPLOAD_FAILED
    assert error.details == {"operation": "upload", "key": "graduation-booklets/a.pdf"}
