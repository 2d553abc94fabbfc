"""
Validation utilities - Pure validation functions.
"""
from typing import List, Dict

from ..api.exceptions import ErrorKind, FileValidationError
from ..core.config import MAX_FILE_SIZE, MAX_FILENAME_LENGTH, SUPPORTED_TYPES
from ..core.logging_config import get_logger
from .document_utils import get_file_extension

logger = get_logger(__name__)

MIME_TYPE_MAP: Dict[str, List[str]] = {
    "pdf": ["application/pdf"],
    "docx": ["application/vnd.openxmlformats-officedocument.wordprocessingml.document"],
    "txt": ["text/plain"],
    "jpg": ["image/jpeg"],
    "jpeg": ["image/jpeg"],
    "png": ["image/png"],
    "webp": ["image/webp"],
}

_DANGEROUS_CHARS = ['<', '>', ':', '"', '|', '?', '*', '\x00']


def format_file_size(size: int) -> str:
    """Human readable byte count (e.g. '1.5 MB')."""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


def has_dangerous_filename(filename: str) -> bool:
    if any(char in filename for char in _DANGEROUS_CHARS):
        return True
    return ".." in filename or filename.startswith(("/", "\\"))


def validate_upload(filename: str, size: int, mime_type: str) -> List[str]:
    """
    Validate an uploaded file before it enters the pipeline.

    Args:
        filename: Original filename
        size: File size in bytes
        mime_type: Reported MIME type

    Returns:
        List of non-fatal warnings (e.g. MIME type mismatch)

    Raises:
        FileValidationError: If the file is too large, empty, of an
            unsupported type or has an unsafe name
    """
    warnings: List[str] = []

    if size > MAX_FILE_SIZE:
        raise FileValidationError(
            f"File size ({format_file_size(size)}) exceeds maximum allowed size "
            f"({format_file_size(MAX_FILE_SIZE)})",
            kind=ErrorKind.FILE_TOO_LARGE,
        )

    if size == 0:
        raise FileValidationError("File is empty")

    if not filename or not filename.strip():
        raise FileValidationError("Filename cannot be empty")

    if len(filename) > MAX_FILENAME_LENGTH:
        raise FileValidationError(f"File name is too long (maximum {MAX_FILENAME_LENGTH} characters)")

    if has_dangerous_filename(filename):
        raise FileValidationError("File name contains potentially dangerous characters")

    extension = get_file_extension(filename)
    if extension not in SUPPORTED_TYPES:
        raise FileValidationError(
            f'File type "{extension}" is not supported. Supported types: {", ".join(SUPPORTED_TYPES)}'
        )

    expected = MIME_TYPE_MAP.get(extension)
    if expected and mime_type and mime_type not in expected:
        message = (
            f'File MIME type "{mime_type}" doesn\'t match extension "{extension}". '
            "This might indicate a renamed file."
        )
        logger.warning(f"{filename}: {message}")
        warnings.append(message)

    return warnings
