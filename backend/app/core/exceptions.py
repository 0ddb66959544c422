"""
Custom Exceptions for Graduation Booklets
=========================================

Every failure the service reports carries a code from ``ErrorCode``. The
code, not the message text, is what clients branch on.

Usage:
    from app.core.exceptions import GraduationNotFoundError, NoStudentPdfsError

    if not graduation:
        raise GraduationNotFoundError(graduation_id)
"""

from enum import Enum
from typing import Optional, Any, Dict


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    GRADUATION_NOT_FOUND = "GRADUATION_NOT_FOUND"
    STUDENT_NOT_FOUND = "STUDENT_NOT_FOUND"
    DOCUMENT_NOT_FOUND = "DOCUMENT_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    NOT_AN_EDITOR = "NOT_AN_EDITOR"
    ALREADY_EDITOR = "ALREADY_EDITOR"
    LAST_EDITOR = "LAST_EDITOR"
    NO_STUDENT_PDFS = "NO_STUDENT_PDFS"
    NO_PDFS_MERGED = "NO_PDFS_MERGED"
    BOOKLET_TOO_LARGE = "BOOKLET_TOO_LARGE"
    BOOKLET_NOT_GENERATED = "BOOKLET_NOT_GENERATED"
    DOWNLOAD_NOT_AVAILABLE = "DOWNLOAD_NOT_AVAILABLE"
    STORAGE_ERROR = "STORAGE_ERROR"
    UPLOAD_FAILED = "UPLOAD_FAILED"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    NETWORK_ERROR = "NETWORK_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


ERROR_STATUS: Dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.GRADUATION_NOT_FOUND: 404,
    ErrorCode.STUDENT_NOT_FOUND: 404,
    ErrorCode.DOCUMENT_NOT_FOUND: 404,
    ErrorCode.USER_NOT_FOUND: 404,
    ErrorCode.NOT_AN_EDITOR: 403,
    ErrorCode.ALREADY_EDITOR: 400,
    ErrorCode.LAST_EDITOR: 400,
    ErrorCode.NO_STUDENT_PDFS: 400,
    ErrorCode.NO_PDFS_MERGED: 400,
    ErrorCode.BOOKLET_TOO_LARGE: 413,
    ErrorCode.BOOKLET_NOT_GENERATED: 404,
    ErrorCode.DOWNLOAD_NOT_AVAILABLE: 403,
    ErrorCode.STORAGE_ERROR: 500,
    ErrorCode.UPLOAD_FAILED: 500,
    ErrorCode.CONFIGURATION_ERROR: 500,
    ErrorCode.RATE_LIMITED: 429,
    ErrorCode.NETWORK_ERROR: 502,
    ErrorCode.INTERNAL_ERROR: 500,
}

# Friendly text shown to teachers; keyed by code so wording can change freely
USER_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.VALIDATION_ERROR: "The request was malformed. Please refresh the page and try again.",
    ErrorCode.GRADUATION_NOT_FOUND: "This graduation could not be found.",
    ErrorCode.STUDENT_NOT_FOUND: "This student could not be found.",
    ErrorCode.DOCUMENT_NOT_FOUND: "The requested record no longer exists.",
    ErrorCode.USER_NOT_FOUND: "No user with that email was found. They need to sign up first.",
    ErrorCode.NOT_AN_EDITOR: "You do not have permission to edit this graduation.",
    ErrorCode.ALREADY_EDITOR: "That user is already an editor.",
    ErrorCode.LAST_EDITOR: "A graduation must keep at least one editor.",
    ErrorCode.NO_STUDENT_PDFS: "No student PDFs have been uploaded yet. Upload at least one student PDF first.",
    ErrorCode.NO_PDFS_MERGED: "None of the uploaded student PDFs could be read. Please re-upload them and try again.",
    ErrorCode.BOOKLET_TOO_LARGE: "The booklet is too large. Try compressing the student PDFs.",
    ErrorCode.BOOKLET_NOT_GENERATED: "The booklet has not been generated yet.",
    ErrorCode.DOWNLOAD_NOT_AVAILABLE: "The booklet is not available for download yet.",
    ErrorCode.STORAGE_ERROR: "The server is misconfigured. Please contact support.",
    ErrorCode.UPLOAD_FAILED: "The server is misconfigured. Please contact support.",
    ErrorCode.CONFIGURATION_ERROR: "The server is misconfigured. Please contact support.",
    ErrorCode.RATE_LIMITED: "The server is overloaded. Please wait a moment and try again.",
    ErrorCode.NETWORK_ERROR: "A network error occurred. Check your connection and try again.",
    ErrorCode.INTERNAL_ERROR: "The server is overloaded. Please wait a moment and try again.",
}


def user_message_for(code: ErrorCode) -> str:
    return USER_MESSAGES.get(ErrorCode(code), USER_MESSAGES[ErrorCode.INTERNAL_ERROR])


class GraduationError(Exception):
    """Base exception for all service errors"""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = ErrorCode(code)
        self.details = details or {}
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return ERROR_STATUS[self.code]

    @property
    def user_message(self) -> str:
        return user_message_for(self.code)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Validation Errors
# ============================================

class ValidationError(GraduationError):
    """Input validation failed"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, code=ErrorCode.VALIDATION_ERROR)
        if field:
            self.details["field"] = field


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(GraduationError):
    """Base class for not found errors"""

    def __init__(self, resource_type: str, resource_id: str, code: ErrorCode):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=code,
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class GraduationNotFoundError(ResourceNotFoundError):
    def __init__(self, graduation_id: str):
        super().__init__("Graduation", graduation_id, ErrorCode.GRADUATION_NOT_FOUND)


class StudentNotFoundError(ResourceNotFoundError):
    def __init__(self, student_id: str):
        super().__init__("Student", student_id, ErrorCode.STUDENT_NOT_FOUND)


class DocumentNotFoundError(ResourceNotFoundError):
    """Raised by the document store when updating a missing document"""

    def __init__(self, path: str):
        super().__init__("Document", path, ErrorCode.DOCUMENT_NOT_FOUND)


class UserNotFoundError(GraduationError):
    def __init__(self, email: str):
        super().__init__(
            "User not found. They need to sign up first.",
            code=ErrorCode.USER_NOT_FOUND,
            details={"email": email}
        )


# ============================================
# Editor Errors
# ============================================

class NotAnEditorError(GraduationError):
    """Requester is not an editor of the graduation"""

    def __init__(self, graduation_id: str, editor_id: str):
        super().__init__(
            "You do not have permission to manage this graduation",
            code=ErrorCode.NOT_AN_EDITOR,
            details={"graduation_id": graduation_id, "editor_id": editor_id}
        )


class AlreadyEditorError(GraduationError):
    def __init__(self, email: str):
        super().__init__("User is already an editor", code=ErrorCode.ALREADY_EDITOR)
        self.details["email"] = email


class LastEditorError(GraduationError):
    def __init__(self):
        super().__init__("Cannot remove the last editor", code=ErrorCode.LAST_EDITOR)


# ============================================
# Booklet Errors
# ============================================

class BookletError(GraduationError):
    """Booklet assembly failed"""


class NoStudentPdfsError(BookletError):
    """Nobody on the roster has uploaded a PDF"""

    def __init__(self, total_students: int):
        super().__init__(
            "No student PDFs found to merge",
            code=ErrorCode.NO_STUDENT_PDFS,
            details={"total_students": total_students}
        )


class NoPdfsMergedError(BookletError):
    """PDFs were expected but every one of them failed"""

    def __init__(self, expected: int, skipped_students: list):
        super().__init__(
            "No PDFs could be merged successfully",
            code=ErrorCode.NO_PDFS_MERGED,
            details={"expected": expected, "skipped_students": skipped_students}
        )


class BookletTooLargeError(BookletError):
    def __init__(self, size_bytes: int, limit_bytes: int):
        super().__init__(
            f"Generated PDF is too large ({size_bytes / (1024 * 1024):.2f}MB). "
            f"Maximum size is {limit_bytes // (1024 * 1024)}MB.",
            code=ErrorCode.BOOKLET_TOO_LARGE,
            details={"size_bytes": size_bytes, "limit_bytes": limit_bytes}
        )


class BookletNotGeneratedError(GraduationError):
    def __init__(self, graduation_id: str):
        super().__init__(
            "Booklet has not been generated yet",
            code=ErrorCode.BOOKLET_NOT_GENERATED,
            details={"graduation_id": graduation_id}
        )


class DownloadNotAvailableError(GraduationError):
    """Download is scheduled for a later time"""

    def __init__(self, message: str, available_at: str, remaining_ms: int):
        super().__init__(
            message,
            code=ErrorCode.DOWNLOAD_NOT_AVAILABLE,
            details={"availableAt": available_at, "remainingMilliseconds": remaining_ms}
        )


# ============================================
# Storage & Infrastructure Errors
# ============================================

class StorageError(GraduationError):
    """Asset storage operation failed"""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message, code=ErrorCode.STORAGE_ERROR)
        if operation:
            self.details["operation"] = operation


class UploadFailedError(StorageError):
    def __init__(self, key: str, reason: str = ""):
        super().__init__(f"Failed to upload '{key}': {reason}", operation="upload")
        self.code = ErrorCode.UPLOAD_FAILED
        self.details["key"] = key


class ConfigurationError(GraduationError):
    def __init__(self, message: str):
        super().__init__(message, code=ErrorCode.CONFIGURATION_ERROR)


class NetworkError(GraduationError):
    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message, code=ErrorCode.NETWORK_ERROR)
        if url:
            self.details["url"] = url


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: GraduationError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "success": False,
        "error": error.code.value,
        "message": error.message,
        "userMessage": error.user_message,
        "details": error.details,
    }
