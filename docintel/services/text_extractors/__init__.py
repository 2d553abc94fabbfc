"""
Text Extractors Package.

Provides pluggable text extraction for different file formats.
"""
from .base import BaseTextExtractor, ExtractionResult, LocalTextExtractor
from .docx_extractor import DOCXExtractor
from .factory import IMAGE_EXTENSIONS, TextExtractorFactory
from .ocr_extractor import OCRExtractor
from .pdf_extractor import PDFExtractor
from .text_extractor import TextExtractor

__all__ = [
    "BaseTextExtractor",
    "ExtractionResult",
    "LocalTextExtractor",
    "PDFExtractor",
    "DOCXExtractor",
    "TextExtractor",
    "OCRExtractor",
    "TextExtractorFactory",
    "IMAGE_EXTENSIONS",
]
