"""
Utility functions - Pure functions with no service dependencies.
These can be used across all layers.
"""
from .document_utils import create_empty_document, generate_document_id, get_file_extension
from .search_utils import apply_filters, extract_context, sort_results
from .text_processing import prepare_text_payload
from .validators import validate_upload

__all__ = [
    "create_empty_document",
    "generate_document_id",
    "get_file_extension",
    "apply_filters",
    "extract_context",
    "sort_results",
    "prepare_text_payload",
    "validate_upload",
]
