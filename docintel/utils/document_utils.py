"""
Document utility functions for identifiers, file names and record creation.
"""
import random
import string
import time
from datetime import datetime
from typing import Optional

from ..models.document import DocumentStatus, FileMetadata, ProcessedDocument


def generate_document_id() -> str:
    """Generate an opaque document id: doc_<millis>_<9 random chars>."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"doc_{int(time.time() * 1000)}_{suffix}"


def get_file_extension(filename: str) -> str:
    """Return the lower-case extension without the dot, or '' if there is none."""
    last_dot = filename.rfind(".")
    if last_dot == -1:
        return ""
    return filename[last_dot + 1:].lower()


def strip_extension(filename: str) -> str:
    last_dot = filename.rfind(".")
    return filename[:last_dot] if last_dot > 0 else filename


def create_empty_document(
    document_id: str,
    filename: str,
    mime_type: str,
    size: int,
    last_modified: Optional[datetime] = None
) -> ProcessedDocument:
    """
    Create the initial record for an ingested file (status 'uploading').

    Args:
        document_id: Identifier assigned at ingestion
        filename: Original filename
        mime_type: MIME type reported by the uploader
        size: Size in bytes
        last_modified: Optional last-modified timestamp of the source file

    Returns:
        New ProcessedDocument
    """
    return ProcessedDocument(
        id=document_id,
        original_file=FileMetadata(
            name=filename,
            mime_type=mime_type or "application/octet-stream",
            size=size,
            extension=get_file_extension(filename),
            last_modified=last_modified,
        ),
        status=DocumentStatus.UPLOADING,
        uploaded_at=datetime.now(),
    )
