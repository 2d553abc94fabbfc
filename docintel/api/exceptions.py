"""
Custom exceptions for the document pipeline.
Separates business exceptions from HTTP exceptions.

Every pipeline failure is a DocumentError carrying an ErrorKind. The
processing queue converts them into the structured error persisted on a
document; the HTTP layer converts them into HTTPException.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from fastapi import HTTPException, status

from ..models.document import DocumentErrorInfo


class ErrorKind(str, Enum):
    """Classification of pipeline failures."""
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    UNSUPPORTED_TYPE = "UNSUPPORTED_TYPE"
    UPLOAD_FAILED = "UPLOAD_FAILED"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    OCR_FAILED = "OCR_FAILED"
    GEMINI_API_ERROR = "GEMINI_API_ERROR"
    ANALYSIS_FAILED = "ANALYSIS_FAILED"
    PROCESSING_FAILED = "PROCESSING_FAILED"
    ABORTED = "ABORTED"
    STORAGE_ERROR = "STORAGE_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    NOT_FOUND = "NOT_FOUND"


RECOVERABLE_KINDS = {ErrorKind.NETWORK_ERROR, ErrorKind.PROCESSING_FAILED, ErrorKind.ABORTED}


class DocumentError(Exception):
    """Base class for all pipeline errors."""

    kind: ErrorKind = ErrorKind.PROCESSING_FAILED

    def __init__(self, message: str, details: Any = None, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        if kind is not None:
            self.kind = kind
        self.message = message
        self.details = details
        self.timestamp = datetime.now()

    @property
    def is_recoverable(self) -> bool:
        return self.kind in RECOVERABLE_KINDS

    def to_info(self) -> DocumentErrorInfo:
        """Convert into the structured error stored on a document."""
        return DocumentErrorInfo(
            kind=self.kind.value,
            message=self.message,
            is_recoverable=self.is_recoverable,
            details=None if self.details is None else str(self.details),
            timestamp=self.timestamp,
        )


class UnsupportedTypeError(DocumentError):
    """Raised when no extractor handles a file extension."""
    kind = ErrorKind.UNSUPPORTED_TYPE


class ExtractionFailedError(DocumentError):
    """Raised when a file is malformed or text extraction fails."""
    kind = ErrorKind.EXTRACTION_FAILED


class OCRFailedError(DocumentError):
    """Raised when OCR returns no usable text."""
    kind = ErrorKind.OCR_FAILED


class AIServiceError(DocumentError):
    """Raised on transport or auth failures of the remote AI endpoint."""
    kind = ErrorKind.GEMINI_API_ERROR

    def __init__(self, message: str, details: Any = None, status_code: Optional[int] = None):
        super().__init__(message, details)
        self.status_code = status_code


class AnalysisFailedError(DocumentError):
    """Raised when remote analysis output cannot be parsed or validated."""
    kind = ErrorKind.ANALYSIS_FAILED


class ProcessingFailedError(DocumentError):
    """Generic queue-level failure."""
    kind = ErrorKind.PROCESSING_FAILED


class ProcessingAbortedError(DocumentError):
    """Raised when an operation is cancelled through its abort signal."""
    kind = ErrorKind.ABORTED


class StorageError(DocumentError):
    """Raised when storage backends cannot satisfy a request."""
    kind = ErrorKind.STORAGE_ERROR


class FileValidationError(DocumentError):
    """Raised when an uploaded file fails validation."""
    kind = ErrorKind.UNSUPPORTED_TYPE


class DocumentNotFoundError(DocumentError):
    """Raised when document is not found."""
    kind = ErrorKind.NOT_FOUND


def handle_business_exception(e: Exception) -> HTTPException:
    """
    Convert business exceptions to HTTP exceptions.
    This keeps business logic clean of HTTP concerns.
    """
    if isinstance(e, DocumentNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    elif isinstance(e, FileValidationError):
        if e.kind == ErrorKind.FILE_TOO_LARGE:
            return HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(e))
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    elif isinstance(e, (UnsupportedTypeError, ExtractionFailedError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    elif isinstance(e, ProcessingFailedError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    elif isinstance(e, StorageError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    else:
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
